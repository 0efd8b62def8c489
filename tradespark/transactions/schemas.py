from pydantic import BaseModel, Field
from decimal import Decimal
from typing import Optional, List


class DepositRequest(BaseModel):
    amount: Decimal


class WithdrawRequest(BaseModel):
    amount: Decimal


class NavigationEvent(BaseModel):
    url: str = ""


class TransactionItem(BaseModel):
    id: str
    type: str
    amount: Decimal
    status: str
    createdAt: str


class WalletSummary(BaseModel):
    totalDeposits: Decimal = Decimal("0")
    totalWithdrawals: Decimal = Decimal("0")
    totalEarnings: Decimal = Decimal("0")
    todayEarnings: Decimal = Decimal("0")


class WalletSnapshot(BaseModel):
    balance: Decimal
    transactions: List[TransactionItem] = Field(default_factory=list)
    summary: WalletSummary = Field(default_factory=WalletSummary)


class WalletResponse(BaseModel):
    success: bool = True
    data: WalletSnapshot


class DepositStarted(BaseModel):
    orderId: str
    amount: Decimal
    checkoutUrl: str
    status: str


class DepositStartedResponse(BaseModel):
    success: bool = True
    data: DepositStarted


class NavigationResult(BaseModel):
    completed: bool
    orderId: str
    status: Optional[str] = None
    title: Optional[str] = None
    message: Optional[str] = None
    wallet: Optional[WalletSnapshot] = None


class NavigationResponse(BaseModel):
    success: bool = True
    data: NavigationResult


class WithdrawalResult(BaseModel):
    amount: Decimal
    message: str
    wallet: WalletSnapshot


class WithdrawalResponse(BaseModel):
    success: bool = True
    data: WithdrawalResult
