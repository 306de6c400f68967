"""Process-wide catalog cache.

Categories, subcategories and active products are fetched in parallel and
published together as one snapshot. Until a fetch completes the previous
snapshot (initially empty) stays visible; a failed fetch publishes an empty
snapshot and the error state instead of anything partial.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, List, Optional, Tuple, Type, TypeVar

from pydantic import BaseModel, ValidationError

from .database import DocumentStore
from .exceptions import CatalogUnavailableError, ProductNotFoundError
from .schemas import ACTIVE, Category, Product, Subcategory

logger = logging.getLogger(__name__)

CATEGORIES = "categories"
SUBCATEGORIES = "subcategories"
PRODUCTS = "products"

LOAD_ERROR_MESSAGE = "Failed to load data. Please refresh the page."

M = TypeVar("M", bound=BaseModel)

class CatalogState(str, Enum):
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"

@dataclass(frozen=True)
class CatalogSnapshot:
    categories: Tuple[Category, ...] = ()
    subcategories: Tuple[Subcategory, ...] = ()
    products: Tuple[Product, ...] = ()
    _by_id: dict = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def build(
        cls,
        categories: Iterable[Category],
        subcategories: Iterable[Subcategory],
        products: Iterable[Product],
    ) -> "CatalogSnapshot":
        products = tuple(products)
        return cls(
            categories=tuple(categories),
            subcategories=tuple(subcategories),
            products=products,
            _by_id={p.id: p for p in products},
        )

EMPTY_SNAPSHOT = CatalogSnapshot()

def project(model: Type[M], records: Iterable[dict[str, Any]], collection: str) -> List[M]:
    """Turn raw records into typed entities, skipping ones that do not fit."""
    out: List[M] = []
    for record in records:
        try:
            out.append(model.model_validate(record))
        except ValidationError as e:
            logger.warning(
                "Skipping malformed %s record %s: %s",
                collection, record.get("id"), e.errors()[0].get("msg"),
            )
    return out

class CatalogCache:
    def __init__(self, store: DocumentStore) -> None:
        self.store = store
        self._snapshot = EMPTY_SNAPSHOT
        self._state = CatalogState.UNINITIALIZED
        self._error: Optional[str] = None
        self._generation = 0

    @property
    def state(self) -> CatalogState:
        return self._state

    @property
    def error(self) -> Optional[str]:
        return self._error

    @property
    def is_ready(self) -> bool:
        return self._state is CatalogState.READY

    async def initialize(self) -> bool:
        """Load the catalog once. Later calls are no-ops while a snapshot is ready."""
        if self._state is CatalogState.READY:
            return True
        return await self.refetch()

    async def refetch(self) -> bool:
        """Replace the whole snapshot. Returns False when the fetch failed."""
        self._generation += 1
        generation = self._generation
        self._state = CatalogState.LOADING
        self._error = None

        try:
            category_docs, subcategory_docs, product_docs = await asyncio.gather(
                self.store.list_all(CATEGORIES),
                self.store.list_all(SUBCATEGORIES),
                self.store.list_where(PRODUCTS, "status", ACTIVE),
            )
        except Exception:
            if generation != self._generation:
                return False
            logger.exception("Error fetching catalog")
            self._snapshot = EMPTY_SNAPSHOT
            self._state = CatalogState.ERROR
            self._error = LOAD_ERROR_MESSAGE
            return False

        # A newer refetch started while this one was in flight
        if generation != self._generation:
            return False

        snapshot = CatalogSnapshot.build(
            project(Category, category_docs, CATEGORIES),
            project(Subcategory, subcategory_docs, SUBCATEGORIES),
            project(Product, product_docs, PRODUCTS),
        )
        self._snapshot = snapshot
        self._state = CatalogState.READY
        logger.info(
            "Catalog loaded: %d categories, %d subcategories, %d products",
            len(snapshot.categories), len(snapshot.subcategories), len(snapshot.products),
        )
        return True

    def dispose(self) -> None:
        self._generation += 1
        self._snapshot = EMPTY_SNAPSHOT
        self._state = CatalogState.UNINITIALIZED
        self._error = None

    def require_ready(self) -> None:
        if self._state is CatalogState.READY:
            return
        if self._state is CatalogState.ERROR:
            raise CatalogUnavailableError(self._error or LOAD_ERROR_MESSAGE, self._state.value)
        raise CatalogUnavailableError("Catalog is loading", self._state.value)

    @property
    def _visible(self) -> CatalogSnapshot:
        if self._state is CatalogState.ERROR:
            return EMPTY_SNAPSHOT
        return self._snapshot

    @property
    def snapshot(self) -> CatalogSnapshot:
        return self._visible

    @property
    def categories(self) -> Tuple[Category, ...]:
        return self._visible.categories

    @property
    def subcategories(self) -> Tuple[Subcategory, ...]:
        return self._visible.subcategories

    @property
    def products(self) -> Tuple[Product, ...]:
        return self._visible.products

    def get_product_by_id(self, product_id: str) -> Optional[Product]:
        return self._visible._by_id.get(product_id)

    def require_product(self, product_id: str) -> Product:
        self.require_ready()
        product = self.get_product_by_id(product_id)
        if product is None:
            raise ProductNotFoundError(product_id)
        return product

    def get_products_by_category(self, category_id: str) -> List[Product]:
        return [p for p in self.products if p.category_id == category_id]

    def get_products_by_subcategory(self, subcategory_id: str) -> List[Product]:
        return [p for p in self.products if p.subcategory_id == subcategory_id]

    def get_category_by_id(self, category_id: str) -> Optional[Category]:
        return next((c for c in self.categories if c.id == category_id), None)

    def get_subcategories_for_category(self, category_id: str) -> List[Subcategory]:
        return [s for s in self.subcategories if s.category_id == category_id]

    def get_related_products(self, product: Product, limit: int = 4) -> List[Product]:
        if not product.subcategory_id:
            return []
        related = [
            p for p in self.get_products_by_subcategory(product.subcategory_id)
            if p.id != product.id
        ]
        return related[:limit]
