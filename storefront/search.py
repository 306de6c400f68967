"""Client-side product filtering, sorting and facets.

Everything here is a pure function of (products, query). Predicates are
combined with AND: category, subcategory set, free text, price bucket.
Sorting is stable, so "relevance" keeps catalog order and ties keep it too.
"""

import unicodedata
from enum import Enum
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Sequence
from urllib.parse import parse_qs, urlencode

from pydantic import BaseModel, ConfigDict, Field

from .schemas import Category, Product, Subcategory

ALL = "all"

# Query-string names; "q" is the one shared in bookmarkable search links
SEARCH_PARAM = "q"
CATEGORY_PARAM = "category"
SUBCATEGORY_PARAM = "subcategory"
PRICE_PARAM = "price"
SORT_PARAM = "sort"

class PriceBucket(str, Enum):
    ALL = "all"
    UNDER_500 = "under-500"
    FROM_500_TO_1000 = "500-1000"
    ABOVE_1000 = "above-1000"

class SortMode(str, Enum):
    RELEVANCE = "relevance"
    PRICE_ASC = "price-asc"
    PRICE_DESC = "price-desc"
    NAME = "name"

class ProductQuery(BaseModel):
    model_config = ConfigDict(frozen=True)

    category: str = ALL
    subcategories: FrozenSet[str] = Field(default_factory=frozenset)
    text: str = ""
    price: PriceBucket = PriceBucket.ALL
    sort: SortMode = SortMode.RELEVANCE

    def select_category(self, category_id: Optional[str]) -> "ProductQuery":
        """Switch category; any subcategory selection is dropped."""
        return self.model_copy(update={"category": category_id or ALL, "subcategories": frozenset()})

    def toggle_subcategory(self, subcategory_id: str) -> "ProductQuery":
        return self.model_copy(update={"subcategories": self.subcategories ^ {subcategory_id}})

    def clear_subcategories(self) -> "ProductQuery":
        return self.model_copy(update={"subcategories": frozenset()})

    def with_text(self, text: str) -> "ProductQuery":
        return self.model_copy(update={"text": text})

def price_bucket(price: float) -> PriceBucket:
    if price < 500:
        return PriceBucket.UNDER_500
    if price <= 1000:
        return PriceBucket.FROM_500_TO_1000
    return PriceBucket.ABOVE_1000

def matches_category(product: Product, category: str) -> bool:
    return category == ALL or product.category_id == category

def matches_subcategories(product: Product, subcategories: FrozenSet[str]) -> bool:
    return not subcategories or product.subcategory_id in subcategories

def matches_text(product: Product, text: str) -> bool:
    needle = text.strip().casefold()
    if not needle:
        return True
    haystacks = [product.name, product.description, *product.tags]
    return any(needle in (h or "").casefold() for h in haystacks)

def matches_price(product: Product, bucket: PriceBucket) -> bool:
    return bucket is PriceBucket.ALL or price_bucket(product.effective_price) is bucket

def matches(product: Product, query: ProductQuery) -> bool:
    return (
        matches_category(product, query.category)
        and matches_subcategories(product, query.subcategories)
        and matches_text(product, query.text)
        and matches_price(product, query.price)
    )

def filter_products(products: Iterable[Product], query: ProductQuery) -> List[Product]:
    return [p for p in products if matches(p, query)]

def collation_key(name: str) -> tuple:
    """Accent- and case-insensitive ordering key, falling back to the raw name for ties."""
    decomposed = unicodedata.normalize("NFKD", name)
    base = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return (base.casefold(), name.casefold(), name)

def sort_products(products: Sequence[Product], mode: SortMode) -> List[Product]:
    if mode is SortMode.PRICE_ASC:
        return sorted(products, key=lambda p: p.effective_price)
    if mode is SortMode.PRICE_DESC:
        return sorted(products, key=lambda p: p.effective_price, reverse=True)
    if mode is SortMode.NAME:
        return sorted(products, key=lambda p: collation_key(p.name))
    return list(products)

def run_query(products: Sequence[Product], query: ProductQuery) -> List[Product]:
    return sort_products(filter_products(products, query), query.sort)

# Facets

def subcategory_options(subcategories: Iterable[Subcategory], category: str) -> List[Subcategory]:
    """Subcategories offered for the selected category; none while browsing all."""
    if category == ALL:
        return []
    return [s for s in subcategories if s.category_id == category]

def category_options(categories: Iterable[Category]) -> List[Category]:
    """Global search offers every category."""
    return list(categories)

def price_bucket_counts(products: Iterable[Product]) -> Dict[PriceBucket, int]:
    counts = {
        PriceBucket.UNDER_500: 0,
        PriceBucket.FROM_500_TO_1000: 0,
        PriceBucket.ABOVE_1000: 0,
    }
    for p in products:
        counts[price_bucket(p.effective_price)] += 1
    return counts

def price_bucket_facets(products: Iterable[Product], query: ProductQuery) -> Dict[PriceBucket, int]:
    """Bucket counts under every other predicate, so unselected buckets keep their counts."""
    return price_bucket_counts(filter_products(products, query.model_copy(update={"price": PriceBucket.ALL})))

# URL state

def encode_query(query: ProductQuery) -> str:
    """Query-string form of a query. Default predicates are left out."""
    params: List[tuple] = []
    if query.text:
        params.append((SEARCH_PARAM, query.text))
    if query.category != ALL:
        params.append((CATEGORY_PARAM, query.category))
    for sub in sorted(query.subcategories):
        params.append((SUBCATEGORY_PARAM, sub))
    if query.price is not PriceBucket.ALL:
        params.append((PRICE_PARAM, query.price.value))
    if query.sort is not SortMode.RELEVANCE:
        params.append((SORT_PARAM, query.sort.value))
    return urlencode(params)

def _enum_or_default(enum_cls, value: Optional[str], default):
    try:
        return enum_cls(value) if value else default
    except ValueError:
        return default

def query_from_params(params: Mapping[str, Sequence[str]]) -> ProductQuery:
    """Build a query from already-split parameters. Unknown values fall back to defaults."""
    def first(name: str) -> Optional[str]:
        values = params.get(name) or []
        return values[0] if values else None

    return ProductQuery(
        category=first(CATEGORY_PARAM) or ALL,
        subcategories=frozenset(v for v in params.get(SUBCATEGORY_PARAM, []) if v),
        text=first(SEARCH_PARAM) or "",
        price=_enum_or_default(PriceBucket, first(PRICE_PARAM), PriceBucket.ALL),
        sort=_enum_or_default(SortMode, first(SORT_PARAM), SortMode.RELEVANCE),
    )

def decode_query(query_string: str) -> ProductQuery:
    return query_from_params(parse_qs(query_string.lstrip("?")))
