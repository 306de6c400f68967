"""Customized apparel orders: customer details, garment options and an uploaded design."""

import logging
from typing import List, Optional

from pydantic import Field

from .database import DocumentStore
from .exceptions import CustomOrderSubmissionError, CustomOrderValidationError
from .schemas import CustomOrder, StoreModel
from .uploads import ImageBlob, ImageUploader

logger = logging.getLogger(__name__)

CUSTOM_ORDERS = "customOrders"

PRODUCT_TYPES = ("T-shirt", "Hoodie", "Sweatshirt", "Polo", "Tank Top")
COLORS = ("Black", "White", "Navy", "Gray", "Red", "Blue", "Green")
SIZES = ("S", "M", "L", "XL", "XXL")

class CustomOrderForm(StoreModel):
    customer_name: str = ""
    customer_phone: str = ""
    product_type: str = PRODUCT_TYPES[0]
    color: str = COLORS[0]
    sizes: List[str] = Field(default_factory=list)
    quantity: int = Field(1, ge=1)
    notes: str = ""

    def invalid_fields(self, design: Optional[ImageBlob]) -> List[str]:
        fields = []
        if not self.customer_name.strip():
            fields.append("customer_name")
        if not self.customer_phone.strip():
            fields.append("customer_phone")
        if design is None:
            fields.append("design")
        if self.product_type not in PRODUCT_TYPES:
            fields.append("product_type")
        if self.color not in COLORS:
            fields.append("color")
        if not self.sizes or any(s not in SIZES for s in self.sizes):
            fields.append("sizes")
        return fields

    def selected_sizes(self) -> List[str]:
        """Selected sizes, de-duplicated, in the standard size order."""
        return [s for s in SIZES if s in self.sizes]

async def submit_custom_order(
    form: CustomOrderForm,
    design: Optional[ImageBlob],
    store: DocumentStore,
    uploader: ImageUploader,
) -> str:
    """Upload the design and record the custom order. Returns the new order id.

    Raises:
        CustomOrderValidationError: required details missing; nothing uploaded.
        UploadError: design rejected or upload failed.
        CustomOrderSubmissionError: the order store failed the create.
    """
    invalid = form.invalid_fields(design)
    if invalid:
        raise CustomOrderValidationError(invalid)

    design_url = await uploader.upload(design)

    order = CustomOrder(
        customer_name=form.customer_name.strip(),
        customer_phone=form.customer_phone.strip(),
        product_type=form.product_type,
        color=form.color,
        sizes=form.selected_sizes(),
        quantity=form.quantity,
        notes=form.notes.strip(),
        design_file_name=design.filename,
        design_url=design_url,
    )
    try:
        order_id = await store.create(CUSTOM_ORDERS, order.to_record())
    except Exception as e:
        logger.exception("Error submitting custom order")
        raise CustomOrderSubmissionError("Failed to submit order. Please try again.") from e

    logger.info("Custom order %s submitted: %s x%d", order_id, order.product_type, order.quantity)
    return order_id
