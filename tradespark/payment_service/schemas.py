from decimal import Decimal
from pydantic import BaseModel


class CreateOrderResult(BaseModel):
    order_id: str | None = None
    payment_link: str | None = None


class VerifyOrderResult(BaseModel):
    success: bool
    status: str | None = None


class DepositCustomer(BaseModel):
    auth_id: str
    user_id: str
    email: str = ""
    phone: str = ""


class PendingOrderOut(BaseModel):
    orderId: str
    amount: Decimal
    currency: str
    checkoutUrl: str
    status: str
    verified: bool
