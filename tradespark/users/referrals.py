import logging
import re
from dataclasses import dataclass

from tradespark.backend.client import BackendClient, BackendError
from tradespark.core.config import settings
from tradespark.core.errors import ErrorCode, ErrorMessage, bad_request

logger = logging.getLogger(__name__)

_NON_ALNUM = re.compile(r"[^A-Za-z0-9]")


def normalize_referral_code(code: str | None) -> str:
    return _NON_ALNUM.sub("", code or "").upper()


@dataclass(frozen=True)
class ReferralMatch:
    code: str
    referrer_id: str | None
    reserved: bool = False


class ReferralService:
    def __init__(self, backend: BackendClient, reserved_code: str = settings.RESERVED_REFERRAL_CODE):
        self.backend = backend
        self.reserved_code = reserved_code.upper()

    def is_reserved(self, code: str) -> bool:
        return normalize_referral_code(code) == self.reserved_code

    async def find_referrer(self, code: str | None) -> ReferralMatch | None:
        normalized = normalize_referral_code(code)
        if not normalized:
            return None

        if normalized == self.reserved_code:
            return ReferralMatch(code=normalized, referrer_id=None, reserved=True)

        try:
            row = await (
                self.backend.table("referrals")
                .select("user_id")
                .eq("referral_code", normalized)
                .maybe_single()
            )
        except BackendError as e:
            logger.error("Referral lookup error: %s", e.message)
            return None

        if not row or not row.get("user_id"):
            return None
        return ReferralMatch(code=normalized, referrer_id=str(row["user_id"]))

    async def resolve(self, code: str | None) -> ReferralMatch | None:
        """Like find_referrer, but a non-empty code that matches nothing is rejected."""
        match = await self.find_referrer(code)
        if match is None and normalize_referral_code(code):
            raise bad_request(ErrorCode.REFERRAL_INVALID, ErrorMessage.REFERRAL_INVALID)
        return match

    async def process_referral(self, match: ReferralMatch, referred_user_id: str) -> bool:
        if match.reserved or not match.referrer_id:
            return False

        try:
            await self.backend.rpc(
                "process_referral",
                {
                    "referrer_user_id": match.referrer_id,
                    "referred_user_id": referred_user_id,
                    "ref_code": match.code,
                },
            )
        except BackendError as e:
            # logged only, the account is already created
            logger.error("Referral processing error: %s", e.message)
            return False
        return True

    async def is_code_available(self, code: str, user_id: str) -> bool:
        row = await (
            self.backend.table("referrals")
            .select("referral_code")
            .eq("referral_code", normalize_referral_code(code))
            .neq("user_id", user_id)
            .maybe_single()
        )
        return row is None
