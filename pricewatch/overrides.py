"""
Manual per-product corrections curated by an operator.

An override can replace the scraped size, replace the scraped category list
with a single category, or exclude the product by setting its category to
"invalid".

Override files are JSON objects keyed by product id:

    {
        "P5012345": {"size": "500g"},
        "P5099999": {"category": "invalid"},
        "P5000001": {"size": "per kg", "category": "fruit"}
    }
"""

import json
import logging
from dataclasses import dataclass
from typing import Dict, Mapping, Optional

from pydantic import BaseModel, ConfigDict, ValidationError


logger = logging.getLogger(__name__)

INVALID_CATEGORY = "invalid"


class OverrideFileError(ValueError):
    """Raised when an override file cannot be read or validated."""


class OverrideEntry(BaseModel):
    """One entry of an override file."""
    model_config = ConfigDict(extra='forbid', str_strip_whitespace=True)

    size: Optional[str] = None
    category: Optional[str] = None


@dataclass(frozen=True)
class Override:
    size: Optional[str] = None
    category: Optional[str] = None

    @property
    def is_invalid(self) -> bool:
        return self.category == INVALID_CATEGORY

    @property
    def size_override(self) -> Optional[str]:
        return self.size or None

    @property
    def category_override(self) -> Optional[str]:
        if self.is_invalid:
            return None
        return self.category or None


NO_OVERRIDE = Override()


class OverrideTable:
    """Read-only lookup of overrides by product id."""

    def __init__(self, entries: Optional[Mapping[str, Override]] = None):
        self._entries: Dict[str, Override] = dict(entries or {})

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, product_id: str) -> bool:
        return product_id in self._entries

    def lookup(self, product_id: str) -> Override:
        """Override for a product, or an empty override if none is listed."""
        return self._entries.get(product_id, NO_OVERRIDE)

    @classmethod
    def from_dict(cls, data: Mapping[str, Mapping]) -> 'OverrideTable':
        """Build a table from parsed JSON, validating every entry."""
        if not isinstance(data, Mapping):
            raise OverrideFileError("Override data must be an object keyed by product id")

        entries = {}
        for product_id, raw in data.items():
            try:
                entry = OverrideEntry.model_validate(raw)
            except ValidationError as e:
                raise OverrideFileError(f"Invalid override for {product_id}: {e}") from e
            entries[product_id.strip()] = Override(size=entry.size, category=entry.category)
        return cls(entries)


def load_overrides(path: Optional[str]) -> OverrideTable:
    """
    Load an override table from a JSON file.

    A missing path yields an empty table; an unreadable or malformed file
    raises OverrideFileError.
    """
    if not path:
        return OverrideTable()

    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except OSError as e:
        raise OverrideFileError(f"Could not read override file {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise OverrideFileError(f"Override file {path} is not valid JSON: {e}") from e

    table = OverrideTable.from_dict(data)
    logger.info("Loaded %d product overrides from %s", len(table), path)
    return table
