import logging

from tradespark.backend.client import BackendClient, BackendError
from tradespark.core.errors import ErrorCode, upstream_error
from tradespark.stats.schemas import DashboardStats, ReferralSummary
from tradespark.transactions.ledger import load_wallet

logger = logging.getLogger(__name__)


async def get_referral_summary(backend: BackendClient, user_id: str) -> ReferralSummary:
    try:
        row = await (
            backend.table("referrals")
            .select("referral_code, referred_count, points")
            .eq("user_id", user_id)
            .maybe_single()
        )
    except BackendError as e:
        logger.warning("Referral summary failed for user %s: %s", user_id, e.message)
        raise upstream_error(ErrorCode.BACKEND_ERROR, e.message)

    if not row:
        return ReferralSummary()
    return ReferralSummary(
        referralCode=row.get("referral_code"),
        totalReferrals=row.get("referred_count") or 0,
        rewardPoints=row.get("points") or 0,
    )


async def get_dashboard_stats(backend: BackendClient, user_id: str) -> DashboardStats:
    wallet = await load_wallet(backend, user_id)
    return DashboardStats(
        balance=wallet.balance,
        referral=await get_referral_summary(backend, user_id),
        transactions=wallet.transactions,
        summary=wallet.summary,
    )
