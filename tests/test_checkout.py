"""Tests for checkout submission."""

import asyncio

import pytest

from storefront.checkout import (
    ORDERS,
    SUBMIT_ERROR_MESSAGE,
    CheckoutForm,
    CheckoutSession,
    CheckoutStep,
    PaymentMethod,
    build_order,
)
from storefront.exceptions import (
    CheckoutValidationError,
    EmptyCartError,
    OrderAlreadyPlacedError,
    OrderSubmissionError,
)
from storefront.schemas import CartLine


def valid_form(**overrides):
    data = {
        "customer_name": "Asha Rao",
        "customer_phone": "+91 98765 43210",
        "street": "12 MG Road",
        "city": "Bengaluru",
        "state": "Karnataka",
        "zip_code": "560001",
        "payment_method": PaymentMethod.UPI,
    }
    data.update(overrides)
    return CheckoutForm(**data)


@pytest.fixture
def session(cart, store):
    return CheckoutSession(cart, store)


@pytest.fixture
def filled_cart(cart, catalog):
    cart.add(CartLine.from_product(catalog.get_product_by_id("p1"), "M", "Black", 2))
    cart.add(CartLine.from_product(catalog.get_product_by_id("p6"), "One Size", "Beige", 1))
    return cart


def orders(store):
    return store.collections.get(ORDERS, [])


class TestSteps:
    def test_empty_cart_redirects(self, session):
        assert session.step is CheckoutStep.REDIRECT_TO_CART

    def test_cart_with_items_shows_form(self, session, filled_cart):
        assert session.step is CheckoutStep.FORM


class TestValidation:
    def test_empty_cart_is_rejected(self, session, store):
        with pytest.raises(EmptyCartError):
            asyncio.run(session.submit(valid_form()))

        assert orders(store) == []

    def test_missing_fields_block_submission(self, session, store, filled_cart):
        form = valid_form(customer_phone="", city="   ", zip_code="")

        with pytest.raises(CheckoutValidationError) as exc:
            asyncio.run(session.submit(form))

        assert exc.value.fields == ["customer_phone", "city", "zip_code"]
        assert orders(store) == []
        assert len(filled_cart) == 2

    def test_country_defaults_to_india(self):
        assert CheckoutForm().country == "India"
        assert CheckoutForm().payment_method is PaymentMethod.COD


class TestSubmit:
    def test_successful_order(self, session, store, filled_cart):
        order_id = asyncio.run(session.submit(valid_form()))

        assert order_id == "orders-1"
        assert session.order_id == order_id
        assert session.step is CheckoutStep.CONFIRMATION
        assert filled_cart.is_empty

        record = orders(store)[0]
        assert record["customerName"] == "Asha Rao"
        assert record["shippingAddress"] == {
            "street": "12 MG Road",
            "city": "Bengaluru",
            "state": "Karnataka",
            "zipCode": "560001",
            "country": "India",
        }
        assert record["paymentMethod"] == "UPI"
        assert record["status"] == "Pending"
        assert record["paymentStatus"] == "Pending"
        assert "createdAt" in record
        assert [(p["productId"], p["price"], p["quantity"]) for p in record["products"]] == [
            ("p1", 399, 2),
            ("p6", 250, 1),
        ]
        # 399 * 2 + 250 = 1048, above the free shipping threshold
        assert record["totalAmount"] == 1048

    def test_shipping_fee_is_added_below_threshold(self, session, store, cart):
        cart.add(CartLine(product_id="x", name="Tee", price=950, size="M", color="Red"))

        asyncio.run(session.submit(valid_form()))

        assert orders(store)[0]["totalAmount"] == 1049

    def test_order_uses_cart_snapshot_not_live_catalog(self, cart):
        cart.add(CartLine(product_id="p1", name="Old Name", price=600, discount_price=450,
                          quantity=1, size="M", color="Black"))

        order = build_order(cart.lines, valid_form(), cart.totals())

        assert order.products[0].name == "Old Name"
        assert order.products[0].price == 450

    def test_lines_added_while_submitting_stay_in_cart(self, session, store, filled_cart):
        late = CartLine(product_id="x", name="Tee", price=100, size="M", color="Red")
        create = store.create

        async def create_while_customer_shops(collection_name, data):
            filled_cart.add(late)
            filled_cart.add(CartLine(product_id="p1", name="Classic Tee", price=499,
                                     discount_price=399, size="M", color="Black"))
            return await create(collection_name, data)

        store.create = create_while_customer_shops

        asyncio.run(session.submit(valid_form()))

        assert [p["productId"] for p in orders(store)[0]["products"]] == ["p1", "p6"]
        assert [(line.product_id, line.quantity) for line in filled_cart] == [("p1", 1), ("x", 1)]

    def test_resubmission_is_refused(self, session, store, filled_cart):
        asyncio.run(session.submit(valid_form()))
        filled_cart.add(CartLine(product_id="x", name="Tee", price=100, size="M", color="Red"))

        with pytest.raises(OrderAlreadyPlacedError):
            asyncio.run(session.submit(valid_form()))

        assert len(orders(store)) == 1

    def test_failure_keeps_cart_and_allows_retry(self, session, store, filled_cart):
        store.fail_on.add("create")
        lines = filled_cart.lines

        with pytest.raises(OrderSubmissionError) as exc:
            asyncio.run(session.submit(valid_form()))

        assert exc.value.retryable
        assert session.error == SUBMIT_ERROR_MESSAGE
        assert session.order_id is None
        assert session.step is CheckoutStep.FORM
        assert filled_cart.lines == lines

        store.fail_on.clear()
        assert asyncio.run(session.submit(valid_form())) == "orders-1"
        assert session.error is None

    def test_reset_after_confirmation(self, session, filled_cart):
        asyncio.run(session.submit(valid_form()))

        session.reset()

        assert session.order_id is None
        assert session.step is CheckoutStep.REDIRECT_TO_CART
