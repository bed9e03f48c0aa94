from pydantic import BaseModel, Field
from typing import Optional, List, Literal
from datetime import datetime

class OrderItemRead(BaseModel):
    id: int
    product_id: int
    title: str
    quantity: int
    unit_price_cents: int
    line_total_cents: int

class OrderRead(BaseModel):
    id: int
    status: str
    total_cents: int
    currency: str
    payment_method: Optional[str] = None
    items: List[OrderItemRead] = []
    created_at: datetime
    updated_at: datetime

class CartRead(BaseModel):
    order: Optional[OrderRead] = None

class CartCount(BaseModel):
    count: int

class AddItem(BaseModel):
    product_id: int
    quantity: int = Field(default=1, ge=1)
    payment_method: Optional[str] = Field(default=None, max_length=100)

class UpdateItem(BaseModel):
    quantity: int = Field(ge=0)

class ItemUpdated(BaseModel):
    item: Optional[OrderItemRead] = None
    order: Optional[OrderRead] = None

class CheckoutRequest(BaseModel):
    order_id: int
    provider: Optional[str] = Field(default=None, max_length=100)

class ChallengeRead(BaseModel):
    reference: str
    qr_url: str
    expires_at: datetime
    otp: Optional[str] = None  # only when OTP_ECHO_CODE is on

class CheckoutResponse(BaseModel):
    payment_id: int
    order_id: int
    amount: int
    currency: str
    provider: str
    challenge: ChallengeRead

class ConfirmOtp(BaseModel):
    otp: str = Field(min_length=4, max_length=12, pattern=r"^\s*\d+\s*$")

class ConfirmResponse(BaseModel):
    status: Literal["success", "failed"]
    payment_id: int
    order_id: Optional[int] = None
    reason: Optional[str] = None
    attempts_left: Optional[int] = None
    message: str

class PaymentRead(BaseModel):
    id: int
    order_id: Optional[int] = None
    provider: str
    amount_cents: int
    currency: str
    status: str
    provider_payment_id: Optional[str] = None
    order_snapshot: Optional[dict] = None
    created_at: datetime
    confirmed_at: Optional[datetime] = None
    class Config: from_attributes = True

class LibraryItem(BaseModel):
    product_id: int
    title: str
    kind: str
    category: Optional[str] = None
    purchased_at: datetime

class AccessRead(BaseModel):
    product_id: int
    can_access: bool

class OrderStatusUpdate(BaseModel):
    status: Literal["cancelled", "refunded"]

class RevokeResult(BaseModel):
    revoked: bool
