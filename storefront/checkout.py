"""Checkout: validate the shipping form, snapshot the cart into an order, submit it.

A session moves from FORM to CONFIRMATION once an order id comes back from
the store; an empty cart sends the customer back to the cart instead.
"""

import logging
from enum import Enum
from typing import Iterable, List, Optional

from pydantic import Field

from .cart import CartStore
from .config import settings
from .database import DocumentStore
from .exceptions import (
    CheckoutInProgressError,
    CheckoutValidationError,
    EmptyCartError,
    OrderAlreadyPlacedError,
    OrderSubmissionError,
)
from .pricing import OrderTotals
from .schemas import CartLine, Order, OrderLine, ShippingAddress, StoreModel

logger = logging.getLogger(__name__)

ORDERS = "orders"

SUBMIT_ERROR_MESSAGE = "Failed to place order. Please try again."

REQUIRED_FIELDS = ("customer_name", "customer_phone", "street", "city", "state", "zip_code")

INDIAN_STATES = (
    "Andhra Pradesh", "Arunachal Pradesh", "Assam", "Bihar", "Chhattisgarh",
    "Goa", "Gujarat", "Haryana", "Himachal Pradesh", "Jharkhand", "Karnataka",
    "Kerala", "Madhya Pradesh", "Maharashtra", "Manipur", "Meghalaya", "Mizoram",
    "Nagaland", "Odisha", "Punjab", "Rajasthan", "Sikkim", "Tamil Nadu",
    "Telangana", "Tripura", "Uttar Pradesh", "Uttarakhand", "West Bengal",
)

class PaymentMethod(str, Enum):
    COD = "COD"
    UPI = "UPI"
    CARD = "Card"
    NET_BANKING = "Net Banking"

    @property
    def label(self) -> str:
        return "Cash on Delivery" if self is PaymentMethod.COD else self.value

class CheckoutStep(str, Enum):
    REDIRECT_TO_CART = "redirect_to_cart"
    FORM = "form"
    CONFIRMATION = "confirmation"

class CheckoutForm(StoreModel):
    customer_name: str = ""
    customer_phone: str = ""
    street: str = ""
    city: str = ""
    state: str = ""
    zip_code: str = ""
    country: str = Field(default_factory=lambda: settings.DEFAULT_COUNTRY)
    payment_method: PaymentMethod = PaymentMethod.COD

    def missing_fields(self) -> List[str]:
        return [name for name in REQUIRED_FIELDS if not getattr(self, name).strip()]

    def shipping_address(self) -> ShippingAddress:
        return ShippingAddress(
            street=self.street.strip(),
            city=self.city.strip(),
            state=self.state.strip(),
            zip_code=self.zip_code.strip(),
            country=self.country.strip() or settings.DEFAULT_COUNTRY,
        )

def build_order(lines: Iterable[CartLine], form: CheckoutForm, totals: OrderTotals) -> Order:
    """Order snapshot from cart lines as they are now, priced at their effective price."""
    return Order(
        customer_name=form.customer_name.strip(),
        customer_phone=form.customer_phone.strip(),
        shipping_address=form.shipping_address(),
        products=[OrderLine.from_cart_line(line) for line in lines],
        total_amount=totals.total,
        payment_method=form.payment_method.value,
    )

class CheckoutSession:
    def __init__(self, cart: CartStore, store: DocumentStore) -> None:
        self.cart = cart
        self.store = store
        self.order_id: Optional[str] = None
        self.order: Optional[Order] = None
        self.error: Optional[str] = None
        self._submitting = False

    @property
    def step(self) -> CheckoutStep:
        if self.order_id is not None:
            return CheckoutStep.CONFIRMATION
        if self.cart.is_empty:
            return CheckoutStep.REDIRECT_TO_CART
        return CheckoutStep.FORM

    @property
    def submitting(self) -> bool:
        return self._submitting

    def summary(self) -> OrderTotals:
        return self.cart.totals()

    async def submit(self, form: CheckoutForm) -> str:
        """Place the order. On failure cart and form are left as they were and the call may be repeated."""
        if self.order_id is not None:
            raise OrderAlreadyPlacedError(self.order_id)
        if self._submitting:
            raise CheckoutInProgressError()
        if self.cart.is_empty:
            raise EmptyCartError()
        missing = form.missing_fields()
        if missing:
            raise CheckoutValidationError(missing)

        ordered = self.cart.lines
        order = build_order(ordered, form, self.summary())

        self._submitting = True
        self.error = None
        try:
            order_id = await self.store.create(ORDERS, order.to_record())
        except Exception as e:
            logger.exception("Error placing order")
            self.error = SUBMIT_ERROR_MESSAGE
            raise OrderSubmissionError(SUBMIT_ERROR_MESSAGE) from e
        finally:
            self._submitting = False

        self.order_id = order_id
        self.order = order
        self.cart.discard(ordered)
        logger.info("Order %s placed: %d line(s), total %.2f", order_id, len(order.products), order.total_amount)
        return order_id

    def reset(self) -> None:
        """Leave the confirmation view and allow a fresh checkout."""
        self.order_id = None
        self.order = None
        self.error = None
