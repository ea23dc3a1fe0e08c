from typing import Annotated, List, Optional
from pydantic import BaseModel, ConfigDict, Field

# primary keys are BIGINT columns
RowId = Annotated[int, Field(gt=0, le=2**63 - 1)]


class CartItem(BaseModel):
    """One cart line. Clients send camelCase; snake_case is accepted too."""

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    product_id: RowId = Field(alias="productId")
    shop_id: RowId = Field(alias="shopId")
    quantity: int = Field(ge=1, le=1000)


class CheckoutRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    cart_items: List[CartItem] = Field(default_factory=list, alias="cartItems")
    address_id: Optional[RowId] = Field(default=None, alias="addressId")


class StatusUpdateRequest(BaseModel):
    status: str
