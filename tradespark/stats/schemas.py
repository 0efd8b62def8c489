from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from tradespark.transactions.schemas import TransactionItem, WalletSummary


class ReferralSummary(BaseModel):
    referralCode: Optional[str] = None
    totalReferrals: int = 0
    rewardPoints: float = 0


class DashboardStats(BaseModel):
    balance: Decimal
    referral: ReferralSummary = Field(default_factory=ReferralSummary)
    transactions: List[TransactionItem] = Field(default_factory=list)
    summary: WalletSummary = Field(default_factory=WalletSummary)


class DashboardResponse(BaseModel):
    success: bool = True
    data: DashboardStats
