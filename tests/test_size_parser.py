"""
Tests for size normalization and unit price derivation.
These are pure functions with no database dependencies.
"""
import pytest


class TestNormalizeSize:
    """Display-size normalization rules."""

    def test_litre_after_digit_is_capitalised(self):
        """Lower-case l directly after a digit becomes L."""
        from pricewatch.size_parser import normalize_size

        assert normalize_size("2l") == "2L"
        assert normalize_size("1.5l") == "1.5L"
        assert normalize_size("3l") == "3L"

    def test_millilitres_untouched(self):
        """The l in ml does not follow a digit."""
        from pricewatch.size_parser import normalize_size

        assert normalize_size("330ml") == "330ml"
        assert normalize_size("6 x 330ml") == "6 x 330ml"

    def test_bare_kg_becomes_per_kg(self):
        """Bulk produce sold by weight."""
        from pricewatch.size_parser import normalize_size

        assert normalize_size("kg") == "per kg"

    def test_kg_with_quantity_is_kept(self):
        """Only a bare 'kg' is rewritten."""
        from pricewatch.size_parser import normalize_size

        assert normalize_size("1kg") == "1kg"
        assert normalize_size("1.5kg") == "1.5kg"

    @pytest.mark.parametrize("size,expected", [
        ("0.25kg", "250g"),
        ("0.5kg", "500g"),
        ("0.125kg", "125g"),
        ("0.1234kg", "123g"),
        ("0.9995kg", "1000g"),
    ])
    def test_sub_kilogram_to_grams(self, size, expected):
        """0.<digits>kg is rewritten to whole grams."""
        from pricewatch.size_parser import normalize_size

        assert normalize_size(size) == expected

    @pytest.mark.parametrize("size,expected", [
        ("0.33L", "330ml"),
        ("0.75L", "750ml"),
        ("0.33l", "330ml"),
        ("0.2505L", "251ml"),
    ])
    def test_sub_litre_to_millilitres(self, size, expected):
        """0.<digits>L is rewritten to whole millilitres."""
        from pricewatch.size_parser import normalize_size

        assert normalize_size(size) == expected

    def test_blank_and_missing(self):
        """Missing sizes stay missing."""
        from pricewatch.size_parser import normalize_size

        assert normalize_size(None) is None
        assert normalize_size("") is None
        assert normalize_size("   ") is None

    def test_whitespace_is_trimmed(self):
        """Surrounding whitespace is removed."""
        from pricewatch.size_parser import normalize_size

        assert normalize_size("  400g ") == "400g"


class TestExtractQuantity:
    """Quantity rule table."""

    def test_simple_units(self):
        """Single quantity with a weight or volume unit."""
        from pricewatch.size_parser import extract_quantity

        assert extract_quantity("400g") == (400.0, 'g')
        assert extract_quantity("1.5kg") == (1.5, 'kg')
        assert extract_quantity("330ml") == (330.0, 'ml')
        assert extract_quantity("2L") == (2.0, 'l')

    def test_multipack_is_multiplied_out(self):
        """'N x Q unit' yields the total quantity."""
        from pricewatch.size_parser import extract_quantity

        assert extract_quantity("6 x 330ml") == (1980.0, 'ml')
        assert extract_quantity("4×1.5L") == (6.0, 'l')

    def test_counts(self):
        """Discrete item counts are priced per item."""
        from pricewatch.size_parser import extract_quantity

        assert extract_quantity("6pk") == (6.0, 'each')
        assert extract_quantity("10 pack") == (10.0, 'each')
        assert extract_quantity("each") == (1.0, 'each')

    def test_per_kg(self):
        """Bulk items are priced per single kilogram."""
        from pricewatch.size_parser import extract_quantity

        assert extract_quantity("per kg") == (1.0, 'kg')
        assert extract_quantity("kg") == (1.0, 'kg')

    def test_unrecognised(self):
        """No quantity yields (None, None)."""
        from pricewatch.size_parser import extract_quantity

        assert extract_quantity("Large") == (None, None)
        assert extract_quantity("") == (None, None)
        assert extract_quantity(None) == (None, None)


class TestDeriveUnitPrice:
    """Unit price derivation."""

    def test_grams_priced_per_kg(self):
        """Grams normalize to kilograms."""
        from pricewatch.size_parser import derive_unit_price

        unit = derive_unit_price("400g", 3.00)
        assert unit.unit_price == 7.5
        assert unit.unit_name == 'kg'
        assert unit.original_unit_quantity == 400.0

    def test_kilograms(self):
        """Kilograms are already the base unit."""
        from pricewatch.size_parser import derive_unit_price

        unit = derive_unit_price("1.5kg", 9.00)
        assert unit.unit_price == 6.0
        assert unit.unit_name == 'kg'
        assert unit.original_unit_quantity == 1.5

    def test_millilitres_priced_per_litre(self):
        """Millilitres normalize to litres."""
        from pricewatch.size_parser import derive_unit_price

        unit = derive_unit_price("330ml", 1.65)
        assert unit.unit_price == 5.0
        assert unit.unit_name == 'L'
        assert unit.original_unit_quantity == 330.0

    def test_litres(self):
        """Litres are already the base unit."""
        from pricewatch.size_parser import derive_unit_price

        unit = derive_unit_price("2L", 5.00)
        assert unit.unit_price == 2.5
        assert unit.unit_name == 'L'

    def test_multipack(self):
        """Multipacks price the combined volume."""
        from pricewatch.size_parser import derive_unit_price

        unit = derive_unit_price("6 x 330ml", 9.90)
        assert unit.unit_price == 5.0
        assert unit.unit_name == 'L'
        assert unit.original_unit_quantity == 1980.0

    def test_counts_priced_each(self):
        """Item counts use 'each'."""
        from pricewatch.size_parser import derive_unit_price

        unit = derive_unit_price("6pk", 3.00)
        assert unit.unit_price == 0.5
        assert unit.unit_name == 'each'
        assert unit.original_unit_quantity == 6.0

    def test_per_kg(self):
        """Per-kg produce has a unit price equal to its price."""
        from pricewatch.size_parser import derive_unit_price

        unit = derive_unit_price("per kg", 12.99)
        assert unit.unit_price == 12.99
        assert unit.unit_name == 'kg'
        assert unit.original_unit_quantity == 1.0

    def test_no_derivation(self):
        """Unrecognised sizes and meaningless arithmetic give no unit price."""
        from pricewatch.size_parser import derive_unit_price

        assert derive_unit_price("Large", 3.00) is None
        assert derive_unit_price(None, 3.00) is None
        assert derive_unit_price("0g", 3.00) is None
        assert derive_unit_price("400g", 0) is None

    @pytest.mark.parametrize("size", [
        "x", "1.2.3kg", "kgkg", "??", "12 x", "0.kg", "x 330ml", "½ kg", "-5g",
    ])
    def test_malformed_never_raises(self, size):
        """Malformed sizes degrade to no derivation rather than failing."""
        from pricewatch.size_parser import parse_size

        parsed = parse_size(size, 2.50)
        assert parsed.size is not None


class TestParseSize:
    """Combined normalization and derivation."""

    def test_derivation_uses_normalized_size(self):
        """0.25kg is displayed as grams and priced per kg."""
        from pricewatch.size_parser import parse_size

        parsed = parse_size("0.25kg", 5.00)
        assert parsed.size == "250g"
        assert parsed.unit_price.unit_price == 20.0
        assert parsed.unit_price.unit_name == 'kg'
        assert parsed.unit_price.original_unit_quantity == 250.0

    def test_bare_kg(self):
        """A bare 'kg' size becomes 'per kg' with a per-kg unit price."""
        from pricewatch.size_parser import parse_size

        parsed = parse_size("kg", 3.49)
        assert parsed.size == "per kg"
        assert parsed.unit_price.unit_price == 3.49

    def test_missing_size(self):
        """No size means no size and no unit price."""
        from pricewatch.size_parser import parse_size

        parsed = parse_size(None, 3.49)
        assert parsed.size is None
        assert parsed.unit_price is None
