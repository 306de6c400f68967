import os
from contextlib import asynccontextmanager
from typing import List, Optional
from fastapi import FastAPI, File, Form, Query, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .cart import CartStore
from .catalog import CatalogCache
from .checkout import INDIAN_STATES, CheckoutForm, CheckoutSession, CheckoutStep, PaymentMethod
from .config import Settings, settings as default_settings, setup_logging
from .custom_orders import COLORS, PRODUCT_TYPES, SIZES, CustomOrderForm, submit_custom_order
from .database import DocumentStore, MongoDocumentStore
from .exceptions import (
    CatalogUnavailableError,
    CheckoutInProgressError,
    CustomOrderSubmissionError,
    EmptyCartError,
    FieldValidationError,
    InvalidSelectionError,
    OrderAlreadyPlacedError,
    OutOfStockError,
    OrderSubmissionError,
    ProductNotFoundError,
    UploadError,
)
from .kvstore import FileKeyValueStore, KeyValueStore
from .schemas import CartLine, ProductCard, ProductDetail
from .search import (
    ALL,
    PriceBucket,
    ProductQuery,
    SortMode,
    category_options,
    encode_query,
    price_bucket_facets,
    run_query,
    subcategory_options,
)
from .uploads import ImageBlob, ImageUploader

CART_PATH = "/api/cart"
REFRESH_PATH = "/api/catalog/refresh"
BROWSE_PATH = "/api/products"

UPLOAD_STATUS = {
    UploadError.SIZE: 413,
    UploadError.TYPE: 415,
    UploadError.TRANSPORT: 502,
}

class AddToCartRequest(BaseModel):
    product_id: str
    size: Optional[str] = None
    color: Optional[str] = None
    quantity: int = Field(1, ge=1)

class QuantityUpdate(BaseModel):
    product_id: str
    size: str
    color: str
    quantity: int

# Utils

def card(product) -> dict:
    return ProductCard.from_product(product).to_record()

def line_to_client(line: CartLine) -> dict:
    return {**line.to_record(), "unitPrice": line.unit_price, "lineTotal": line.line_total}

def cart_to_client(cart: CartStore) -> dict:
    totals = cart.totals()
    return {
        "items": [line_to_client(line) for line in cart.lines],
        "count": cart.count,
        "subtotal": totals.subtotal,
        "shippingFee": totals.shipping_fee,
        "total": totals.total,
    }

def pick_option(requested: Optional[str], offered: List[str], field: str) -> str:
    """Validate a size/color choice. Products that offer none take the empty option."""
    if not offered:
        if requested:
            raise InvalidSelectionError(field, requested)
        return ""
    if requested not in offered:
        raise InvalidSelectionError(field, requested)
    return requested

def check_stock(product, cart: CartStore, quantity: int) -> None:
    in_cart = sum(line.quantity for line in cart if line.product_id == product.id)
    if in_cart + quantity > product.stock:
        raise OutOfStockError(product.id, product.stock, in_cart + quantity)

def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(CatalogUnavailableError)
    async def catalog_unavailable(request, exc: CatalogUnavailableError):
        return JSONResponse(status_code=503, content={"detail": str(exc), "state": exc.state, "retry": REFRESH_PATH})

    @app.exception_handler(ProductNotFoundError)
    async def product_not_found(request, exc: ProductNotFoundError):
        return JSONResponse(status_code=404, content={"detail": "Product not found", "browse": BROWSE_PATH})

    @app.exception_handler(InvalidSelectionError)
    async def invalid_selection(request, exc: InvalidSelectionError):
        return JSONResponse(status_code=422, content={"detail": "Please select color and size", "field": exc.field})

    @app.exception_handler(OutOfStockError)
    async def out_of_stock(request, exc: OutOfStockError):
        return JSONResponse(status_code=409, content={"detail": str(exc), "stock": exc.stock})

    @app.exception_handler(FieldValidationError)
    async def invalid_fields(request, exc: FieldValidationError):
        return JSONResponse(status_code=422, content={"detail": str(exc), "fields": exc.fields})

    @app.exception_handler(EmptyCartError)
    async def empty_cart(request, exc: EmptyCartError):
        return JSONResponse(status_code=409, content={"detail": str(exc), "redirect": CART_PATH})

    @app.exception_handler(OrderAlreadyPlacedError)
    async def already_placed(request, exc: OrderAlreadyPlacedError):
        return JSONResponse(status_code=409, content={"detail": str(exc), "orderId": exc.order_id})

    @app.exception_handler(CheckoutInProgressError)
    async def in_progress(request, exc: CheckoutInProgressError):
        return JSONResponse(status_code=409, content={"detail": str(exc)})

    @app.exception_handler(OrderSubmissionError)
    @app.exception_handler(CustomOrderSubmissionError)
    async def submission_failed(request, exc):
        return JSONResponse(status_code=502, content={"detail": str(exc), "retryable": True})

    @app.exception_handler(UploadError)
    async def upload_failed(request, exc: UploadError):
        return JSONResponse(
            status_code=UPLOAD_STATUS.get(exc.reason, 502),
            content={"detail": str(exc), "reason": exc.reason, "retryable": exc.retryable},
        )

def create_app(
    settings: Settings | None = None,
    store: DocumentStore | None = None,
    kv: KeyValueStore | None = None,
    uploader: ImageUploader | None = None,
) -> FastAPI:
    settings = settings or default_settings
    setup_logging(settings.LOG_LEVEL)

    owns_store = store is None
    store = store or MongoDocumentStore(settings)
    kv = kv or FileKeyValueStore(settings.STATE_FILE)
    uploader = uploader or ImageUploader(settings)

    catalog = CatalogCache(store)
    cart = CartStore(kv, settings.CART_STORAGE_KEY)
    checkout = CheckoutSession(cart, store)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await catalog.initialize()
        yield
        catalog.dispose()
        if owns_store:
            store.close()

    app = FastAPI(title="HuskThreads Storefront API", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.catalog = catalog
    app.state.cart = cart
    app.state.checkout = checkout
    register_error_handlers(app)

    @app.get("/")
    async def root():
        return {"message": "HuskThreads Storefront Running"}

    @app.get("/test")
    async def test():
        snapshot = catalog.snapshot
        return {
            "backend": "✅ Running",
            "catalog": catalog.state.value,
            "error": catalog.error,
            "database_url": "✅ Set" if os.getenv("DATABASE_URL") else "❌ Not Set",
            "database_name": settings.DATABASE_NAME,
            "uploads": "✅ Configured" if settings.CLOUDINARY_CLOUD_NAME else "❌ Not Configured",
            "counts": {
                "categories": len(snapshot.categories),
                "subcategories": len(snapshot.subcategories),
                "products": len(snapshot.products),
            },
        }

    # Catalog endpoints

    @app.post(REFRESH_PATH)
    async def refresh_catalog():
        await catalog.refetch()
        catalog.require_ready()
        return {"state": catalog.state.value, "products": len(catalog.products)}

    @app.get("/api/categories")
    async def list_categories():
        catalog.require_ready()
        return [c.to_record() for c in catalog.categories]

    @app.get("/api/categories/{category_id}/subcategories")
    async def list_subcategories(category_id: str):
        catalog.require_ready()
        return [s.to_record() for s in subcategory_options(catalog.subcategories, category_id)]

    @app.get("/api/categories/{category_id}/products")
    async def category_products(category_id: str):
        catalog.require_ready()
        return [card(p) for p in catalog.get_products_by_category(category_id)]

    @app.get("/api/subcategories/{subcategory_id}/products")
    async def subcategory_products(subcategory_id: str):
        catalog.require_ready()
        return [card(p) for p in catalog.get_products_by_subcategory(subcategory_id)]

    @app.get(BROWSE_PATH)
    async def list_products(
        q: Optional[str] = Query(None),
        category: Optional[str] = Query(None),
        subcategory: List[str] = Query([]),
        price: PriceBucket = Query(PriceBucket.ALL),
        sort: SortMode = Query(SortMode.RELEVANCE),
    ):
        catalog.require_ready()
        query = ProductQuery(
            category=category or ALL,
            subcategories=frozenset(s for s in subcategory if s),
            text=q or "",
            price=price,
            sort=sort,
        )
        results = run_query(catalog.products, query)
        return {
            "query": encode_query(query),
            "count": len(results),
            "products": [card(p) for p in results],
            "facets": {
                "categories": [c.to_record() for c in category_options(catalog.categories)],
                "subcategories": [s.to_record() for s in subcategory_options(catalog.subcategories, query.category)],
                "priceBuckets": {b.value: n for b, n in price_bucket_facets(catalog.products, query).items()},
            },
        }

    @app.get(BROWSE_PATH + "/{product_id}")
    async def get_product(product_id: str):
        product = catalog.require_product(product_id)
        return {
            "product": ProductDetail.from_product(product).to_record(),
            "related": [card(p) for p in catalog.get_related_products(product)],
        }

    # Cart endpoints

    @app.get(CART_PATH)
    async def get_cart():
        return cart_to_client(cart)

    @app.post(CART_PATH + "/items", status_code=201)
    async def add_to_cart(item: AddToCartRequest):
        product = catalog.require_product(item.product_id)
        size = pick_option(item.size, product.sizes, "size")
        color = pick_option(item.color, product.colors, "color")
        check_stock(product, cart, item.quantity)
        cart.add(CartLine.from_product(product, size, color, item.quantity))
        return cart_to_client(cart)

    @app.patch(CART_PATH + "/items")
    async def update_quantity(update: QuantityUpdate):
        cart.set_quantity(update.product_id, update.size, update.color, update.quantity)
        return cart_to_client(cart)

    @app.delete(CART_PATH + "/items")
    async def remove_from_cart(product_id: str, size: str, color: str):
        cart.remove(product_id, size, color)
        return cart_to_client(cart)

    @app.delete(CART_PATH)
    async def clear_cart():
        cart.clear()
        return cart_to_client(cart)

    # Checkout

    @app.get("/api/checkout")
    async def get_checkout():
        step = checkout.step
        if step is CheckoutStep.REDIRECT_TO_CART:
            return {"step": step.value, "redirect": CART_PATH}
        if step is CheckoutStep.CONFIRMATION:
            return {
                "step": step.value,
                "orderId": checkout.order_id,
                "total": checkout.order.total_amount if checkout.order else None,
            }
        return {
            "step": step.value,
            "error": checkout.error,
            "submitting": checkout.submitting,
            "cart": cart_to_client(cart),
            "paymentMethods": [{"value": m.value, "label": m.label} for m in PaymentMethod],
            "states": list(INDIAN_STATES),
            "country": settings.DEFAULT_COUNTRY,
        }

    @app.post("/api/checkout", status_code=201)
    async def place_order(form: CheckoutForm):
        order_id = await checkout.submit(form)
        return {"step": checkout.step.value, "orderId": order_id, "total": checkout.order.total_amount}

    @app.post("/api/checkout/reset")
    async def reset_checkout():
        checkout.reset()
        return {"step": checkout.step.value}

    # Custom orders

    @app.get("/api/custom-orders/options")
    async def custom_order_options():
        return {"productTypes": list(PRODUCT_TYPES), "colors": list(COLORS), "sizes": list(SIZES)}

    @app.post("/api/custom-orders", status_code=201)
    async def create_custom_order(
        customer_name: str = Form(""),
        customer_phone: str = Form(""),
        product_type: str = Form(PRODUCT_TYPES[0]),
        color: str = Form(COLORS[0]),
        sizes: List[str] = Form([]),
        quantity: int = Form(1, ge=1),
        notes: str = Form(""),
        design: Optional[UploadFile] = File(None),
    ):
        form = CustomOrderForm(
            customer_name=customer_name,
            customer_phone=customer_phone,
            product_type=product_type,
            color=color,
            sizes=sizes,
            quantity=quantity,
            notes=notes,
        )
        blob = None
        if design is not None and design.filename:
            blob = ImageBlob(
                filename=design.filename,
                content_type=design.content_type or "",
                data=await design.read(),
            )
        order_id = await submit_custom_order(form, blob, store, uploader)
        return {"id": order_id, "message": "Our team will contact you within 24 hours"}

    return app

def run() -> None:
    import uvicorn
    uvicorn.run("storefront.main:create_app", factory=True, host="0.0.0.0", port=default_settings.PORT)

if __name__ == "__main__":
    run()
