"""Shared pytest fixtures for storefront tests."""

import asyncio

import pytest

from storefront.cart import CartStore
from storefront.catalog import CatalogCache
from storefront.config import Settings
from storefront.kvstore import MemoryKeyValueStore


class StoreUnavailable(ConnectionError):
    pass


class InMemoryDocumentStore:
    """Document store fake. Operations named in `fail_on` raise StoreUnavailable."""

    def __init__(self, collections=None):
        self.collections = {
            name: [dict(doc) for doc in docs] for name, docs in (collections or {}).items()
        }
        self.fail_on = set()
        self.calls = []

    def _check(self, operation, collection_name):
        self.calls.append((operation, collection_name))
        if operation in self.fail_on or (operation, collection_name) in self.fail_on:
            raise StoreUnavailable(f"{operation} {collection_name} failed")

    async def list_all(self, collection_name):
        self._check("list_all", collection_name)
        return [dict(doc) for doc in self.collections.get(collection_name, [])]

    async def list_where(self, collection_name, field, value):
        self._check("list_where", collection_name)
        return [
            dict(doc) for doc in self.collections.get(collection_name, [])
            if doc.get(field) == value
        ]

    async def get_by_id(self, collection_name, doc_id):
        self._check("get_by_id", collection_name)
        for doc in self.collections.get(collection_name, []):
            if doc.get("id") == doc_id:
                return dict(doc)
        return None

    async def create(self, collection_name, data):
        self._check("create", collection_name)
        docs = self.collections.setdefault(collection_name, [])
        doc_id = f"{collection_name}-{len(docs) + 1}"
        docs.append({**data, "id": doc_id})
        return doc_id


CATEGORIES = [
    {"id": "men", "name": "Men", "imageUrl": "https://img.example/men.jpg"},
    {"id": "women", "name": "Women", "imageUrl": "https://img.example/women.jpg"},
]

SUBCATEGORIES = [
    {"id": "tees", "name": "T-Shirts", "categoryId": "men"},
    {"id": "hoodies", "name": "Hoodies", "categoryId": "men"},
    {"id": "dresses", "name": "Dresses", "categoryId": "women"},
]

PRODUCTS = [
    {
        "id": "p1", "name": "Classic Tee", "price": 499, "discountPrice": 399,
        "images": ["https://img.example/p1-a.jpg", "https://img.example/p1-b.jpg"],
        "colors": ["Black", "White"], "sizes": ["S", "M", "L"], "stock": 10,
        "status": "Active", "categoryId": "men", "subcategoryId": "tees",
        "description": "Soft cotton tee", "sku": "HT-001", "tags": ["cotton", "basic"],
    },
    {
        "id": "p2", "name": "Zip Hoodie", "price": 1299, "discountPrice": 999,
        "images": ["https://img.example/p2.jpg"], "colors": ["Gray"], "sizes": ["M", "L", "XL"],
        "stock": 4, "status": "Active", "categoryId": "men", "subcategoryId": "hoodies",
        "description": "Fleece lined", "tags": ["winter"],
    },
    {
        "id": "p3", "name": "Summer Dress", "price": 1000,
        "images": ["https://img.example/p3.jpg"], "colors": ["Red"], "sizes": ["S", "M"],
        "stock": 0, "status": "Active", "categoryId": "women", "subcategoryId": "dresses",
        "description": "Floral print (limited)",
    },
    {
        "id": "p4", "name": "Graphic Tee", "price": 699, "discountPrice": 799,
        "images": ["https://img.example/p4.jpg"], "colors": ["Black"], "sizes": ["M", "L"],
        "stock": 7, "status": "Active", "categoryId": "men", "subcategoryId": "tees",
        "description": "Printed front",
    },
    {
        "id": "p5", "name": "Inactive Tee", "price": 299,
        "images": [], "colors": ["Blue"], "sizes": ["M"], "stock": 3,
        "status": "Inactive", "categoryId": "men", "subcategoryId": "tees",
        "description": "Discontinued",
    },
    {
        "id": "p6", "name": "Éclair Scarf", "price": 250,
        "images": ["https://img.example/p6.jpg"], "colors": ["Beige"], "sizes": ["One Size"],
        "stock": 12, "status": "Active", "categoryId": "women",
        "description": "Lightweight", "tags": ["accessory"],
    },
    {
        "id": "p7", "name": "Leather Jacket", "price": 2499,
        "images": ["https://img.example/p7.jpg"], "colors": ["Brown"], "sizes": ["M", "L"],
        "stock": 2, "status": "Active", "categoryId": "men",
        "description": "Genuine leather",
    },
]


def catalog_collections():
    return {
        "categories": CATEGORIES,
        "subcategories": SUBCATEGORIES,
        "products": PRODUCTS,
    }


@pytest.fixture
def store():
    return InMemoryDocumentStore(catalog_collections())


@pytest.fixture
def kv():
    return MemoryKeyValueStore()


@pytest.fixture
def cart(kv):
    return CartStore(kv, "test_cart")


@pytest.fixture
def catalog(store):
    cache = CatalogCache(store)
    assert asyncio.run(cache.initialize())
    return cache


@pytest.fixture
def products(catalog):
    return catalog.products


@pytest.fixture
def settings():
    return Settings(
        CLOUDINARY_CLOUD_NAME="demo",
        CLOUDINARY_UPLOAD_PRESET="storefront",
        STATE_FILE="/nonexistent/state.json",
    )
