"""
Recognised product categories.

Category names match the slugs used on the supermarket's category pages, so a
stored record whose categories fall outside this set was assigned by an older
scrape and needs its metadata refreshed.
"""

from typing import FrozenSet, Iterable, List


VALID_CATEGORIES: FrozenSet[str] = frozenset([
    # Fresh
    "eggs", "fruit", "fresh-vegetables", "salads-coleslaw", "mushrooms",
    "herbs", "potatoes",

    # Bakery
    "bread", "bread-rolls", "specialty-bread", "bakery-cakes", "bakery-desserts",
    "wraps",

    # Chilled & dairy
    "milk", "long-life-milk", "sour-cream", "cream", "yoghurt", "butter",
    "cheese", "cheese-slices", "dips", "desserts", "custard",

    # Meat & seafood
    "seafood", "salmon", "ham", "bacon", "pork", "patties-meatballs",
    "sausages", "deli-meats", "meat-alternatives", "chicken", "beef-lamb",
    "mince", "salami",

    # Frozen
    "frozen-vegetables", "frozen-fruit", "frozen-chips", "frozen-pizza",
    "frozen-meals", "frozen-seafood", "ice-cream", "ice-blocks",

    # Pantry
    "rice", "pasta", "noodles", "cereal", "muesli", "oats", "flour",
    "baking", "sugar-sweeteners", "spreads", "honey", "jam", "sauces",
    "pasta-sauces", "soups", "canned-fish", "canned-meat", "canned-fruit",
    "canned-vegetables", "baked-beans", "oils", "vinegar", "spices",
    "herbs-spices", "stock", "asian", "mexican",

    # Snacks
    "chips", "corn-chips", "crackers", "biscuits", "chocolate", "lollies",
    "muesli-bars", "nuts", "dried-fruit", "popcorn",

    # Drinks
    "coffee", "tea", "juice", "soft-drinks", "water", "sports-drinks",
    "energy-drinks", "cordial",

    # Household
    "cleaning", "laundry", "dishwashing", "toilet-paper", "tissues",
    "paper-towels", "pet-food", "baby",
])


def unrecognized_categories(categories: Iterable[str],
                            vocabulary: FrozenSet[str] = VALID_CATEGORIES) -> List[str]:
    """Categories not present in the vocabulary, in their original order."""
    return [c for c in categories if c not in vocabulary]


def needs_category_refresh(categories: List[str],
                           vocabulary: FrozenSet[str] = VALID_CATEGORIES) -> bool:
    """True when a stored category list is empty or holds an unknown category."""
    return not categories or bool(unrecognized_categories(categories, vocabulary))
