"""
Query construction for product list requests.

``build_query`` maps a ``FilterSpec`` to the query parameters understood by
``GET /api/products``. The server is the filtering authority; ``matches`` is
the same predicate applied locally, used only to narrow an already cached
collection while a fresh query is in flight.
"""

from typing import Dict, Iterable, List, Optional

from .models import FilterSpec, Product

SEARCH_PARAM = "search"
CATEGORY_PARAM = "category"
SORT_PARAM = "sort"


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def build_query(spec: Optional[FilterSpec] = None) -> Dict[str, str]:
    """
    Build list query parameters from filter criteria.

    Absent or blank fields are omitted rather than sent as empty strings.
    Keys always appear in the order search, category, sort.

    Args:
        spec: Filter criteria, or None for an unfiltered listing

    Returns:
        Query parameter mapping, possibly empty
    """
    if spec is None:
        return {}

    query: Dict[str, str] = {}
    for param, value in (
        (SEARCH_PARAM, spec.search_term),
        (CATEGORY_PARAM, spec.category),
        (SORT_PARAM, spec.sort_key),
    ):
        cleaned = _clean(value)
        if cleaned is not None:
            query[param] = cleaned
    return query


def matches(product: Product, spec: Optional[FilterSpec]) -> bool:
    """
    Check a product against search term and category.

    The search term is a case-insensitive substring of name or description;
    the category must match exactly. Sorting is left to the server.
    """
    if spec is None:
        return True

    term = _clean(spec.search_term)
    if term is not None:
        needle = term.lower()
        if needle not in product.name.lower() and needle not in product.description.lower():
            return False

    category = _clean(spec.category)
    if category is not None and product.category != category:
        return False

    return True


def filter_products(products: Iterable[Product], spec: Optional[FilterSpec]) -> List[Product]:
    """Products matching ``spec``, in their original order."""
    return [product for product in products if matches(product, spec)]
