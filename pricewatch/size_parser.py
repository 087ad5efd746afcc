"""
Size / Unit Parser

Turns the free-text size printed on a product card into a canonical display
size and, where a quantity can be recognised, a unit price.

Handles:
- Litre casing: "2l" -> "2L"
- Bulk items: "kg" -> "per kg"
- Sub-kilo / sub-litre decimals: "0.25kg" -> "250g", "0.33L" -> "330ml"
- Quantities: "400g", "1.5kg", "330ml", "2L", "6 x 330ml", "6pk", "each"

Both stages are ordered tables of (pattern, handler) rules; the first rule
that matches wins and anything unmatched falls through untouched. Nothing in
this module raises on bad input.

Example:
    >>> parse_size("0.25kg", 5.00).size
    '250g'
    >>> parse_size("400g", 3.00).unit_price
    UnitPrice(unit_price=7.5, unit_name='kg', original_unit_quantity=400.0)
"""

import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Callable, List, Match, Optional, Pattern, Tuple


@dataclass(frozen=True)
class UnitPrice:
    """Price per base unit plus the quantity it was derived from."""
    unit_price: float
    unit_name: str
    original_unit_quantity: float


@dataclass(frozen=True)
class ParsedSize:
    size: Optional[str]
    unit_price: Optional[UnitPrice] = None


# === Display Normalization ===

LITRE_AFTER_DIGIT = re.compile(r'(?<=\d)l')


def _thousandths(match: Match, suffix: str) -> Optional[str]:
    """'0.25' style decimal -> '250' + suffix, rounded half-up."""
    try:
        value = Decimal(match.group(1)) * 1000
    except InvalidOperation:
        return None
    return f"{value.quantize(Decimal('1'), rounding=ROUND_HALF_UP)}{suffix}"


# Ordered: first match rewrites the size
SIZE_RULES: List[Tuple[Pattern, Callable[[Match], Optional[str]]]] = [
    # Bulk produce sold by weight: "kg"
    (re.compile(r'^kg$', re.IGNORECASE), lambda m: "per kg"),

    # Sub-kilogram decimal: "0.25kg" -> "250g"
    (re.compile(r'^(0\.\d+)\s*kg$', re.IGNORECASE), lambda m: _thousandths(m, "g")),

    # Sub-litre decimal: "0.33L" -> "330ml"
    (re.compile(r'^(0\.\d+)\s*L$'), lambda m: _thousandths(m, "ml")),
]


def normalize_size(size_text: Optional[str]) -> Optional[str]:
    """
    Canonical display form of a scraped size string.

    Returns None for missing or blank input.
    """
    if not isinstance(size_text, str):
        return None
    size = size_text.strip()
    if not size:
        return None

    size = LITRE_AFTER_DIGIT.sub('L', size)

    for pattern, handler in SIZE_RULES:
        match = pattern.match(size)
        if match:
            rewritten = handler(match)
            if rewritten:
                return rewritten
            break
    return size


# === Quantity Extraction ===

# Conversion of a stated unit into the unit the price is quoted per
BASE_UNITS = {
    'g': ('kg', 0.001),
    'kg': ('kg', 1.0),
    'ml': ('L', 0.001),
    'l': ('L', 1.0),
    'each': ('each', 1.0),
}

COUNT_WORDS = r'(?:pk|pack|packs|ea|each|pcs|pieces)'


def _per_kg(match: Match) -> Tuple[float, str]:
    return 1.0, 'kg'


def _multipack(match: Match) -> Tuple[float, str]:
    return float(match.group(1)) * float(match.group(2)), match.group(3).lower()


def _single(match: Match) -> Tuple[float, str]:
    return float(match.group(1)), match.group(2).lower()


def _count(match: Match) -> Tuple[float, str]:
    return float(match.group(1)), 'each'


def _each(match: Match) -> Tuple[float, str]:
    return 1.0, 'each'


# Ordered by specificity (most specific first)
QUANTITY_RULES: List[Tuple[Pattern, Callable[[Match], Tuple[float, str]]]] = [
    # "per kg", "kg"
    (re.compile(r'^(?:per\s+)?kg$', re.IGNORECASE), _per_kg),

    # Multipack: "6 x 330ml", "4×1.5L"
    (re.compile(r'(\d+)\s*[x×]\s*(\d+(?:\.\d+)?)\s*(kg|g|ml|l)\b', re.IGNORECASE), _multipack),

    # Simple: "400g", "1.5kg", "330ml", "2L"
    (re.compile(r'(\d+(?:\.\d+)?)\s*(kg|g|ml|l)\b', re.IGNORECASE), _single),

    # Count of items: "6pk", "10 pack", "12 each"
    (re.compile(r'(\d+)\s*' + COUNT_WORDS + r'\b', re.IGNORECASE), _count),

    # Single item: "each", "ea"
    (re.compile(r'^(?:each|ea)$', re.IGNORECASE), _each),
]


def extract_quantity(size: Optional[str]) -> Tuple[Optional[float], Optional[str]]:
    """
    Recognise a quantity and its stated unit.

    Returns:
        (quantity, unit) where unit is one of 'g', 'kg', 'ml', 'l', 'each',
        or (None, None) when nothing recognisable is present.
    """
    if not size:
        return (None, None)

    for pattern, handler in QUANTITY_RULES:
        match = pattern.search(size)
        if match:
            return handler(match)
    return (None, None)


def derive_unit_price(size: Optional[str], price: float) -> Optional[UnitPrice]:
    """
    Price per kg, per L or per item for a size string.

    Returns None when no quantity is recognised or the arithmetic is
    meaningless (zero quantity or zero price).
    """
    quantity, unit = extract_quantity(size)
    if quantity is None or unit not in BASE_UNITS:
        return None

    unit_name, factor = BASE_UNITS[unit]
    base_quantity = quantity * factor
    if base_quantity <= 0 or price <= 0:
        return None

    return UnitPrice(
        unit_price=round(price / base_quantity, 2),
        unit_name=unit_name,
        original_unit_quantity=quantity,
    )


def parse_size(size_text: Optional[str], price: float) -> ParsedSize:
    """Normalize the display size and derive its unit price in one step."""
    size = normalize_size(size_text)
    return ParsedSize(size=size, unit_price=derive_unit_price(size, price))
