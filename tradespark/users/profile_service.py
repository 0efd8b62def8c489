import logging
import re

from tradespark.backend.client import BackendClient, BackendError
from tradespark.core.auth import AuthSession
from tradespark.core.config import settings
from tradespark.core.errors import (
    ErrorCode,
    ErrorMessage,
    bad_request,
    conflict,
    not_found,
    upstream_error,
)
from tradespark.users.referrals import ReferralService
from tradespark.users.users_schema import (
    ProfileOut,
    ProfileUpdateResult,
    ReferralStats,
    ReferredUser,
    UpdateProfileSchema,
)
from tradespark.users.validation import is_valid_email, is_valid_phone

logger = logging.getLogger(__name__)


class ProfileService:
    def __init__(self, backend: BackendClient, session: AuthSession):
        self.backend = backend
        self.session = session
        self.referrals = ReferralService(backend)
        self._code_re = re.compile(rf"^[A-Za-z0-9]{{{settings.REFERRAL_CODE_LENGTH}}}$")

    async def _user_row(self) -> dict:
        try:
            row = await (
                self.backend.table("users")
                .select("id, full_name, phone, email")
                .eq("auth_id", self.session.auth_id)
                .maybe_single()
            )
        except BackendError as e:
            logger.error("Profile lookup failed: %s", e.message)
            raise upstream_error(ErrorCode.BACKEND_ERROR, "Failed to load user profile")
        if not row:
            raise not_found(ErrorCode.USER_NOT_FOUND, "Failed to load user profile")
        return row

    async def _referral_stats(self, user_id: str) -> ReferralStats:
        try:
            row = await (
                self.backend.table("referrals")
                .select("referral_code, referred_count, points, total_rewards, earnings")
                .eq("user_id", user_id)
                .maybe_single()
            )
        except BackendError as e:
            logger.error("Referral stats lookup failed: %s", e.message)
            raise upstream_error(ErrorCode.BACKEND_ERROR, "Failed to load referral data")
        if not row:
            return ReferralStats()
        return ReferralStats(
            referralCode=row.get("referral_code"),
            referredCount=row.get("referred_count") or 0,
            points=row.get("points") or 0,
            totalEarnings=row.get("total_rewards") or row.get("earnings") or 0,
        )

    async def _referred_users(self, user_id: str) -> list[ReferredUser]:
        try:
            rows = await (
                self.backend.table("referral_history")
                .select("referred_id, created_at, users!referred_id(full_name, email)")
                .eq("referrer_id", user_id)
                .order("created_at", desc=True)
                .execute()
            )
        except BackendError as e:
            # the list is optional on the profile screen
            logger.error("Referred users lookup failed: %s", e.message)
            return []

        users = []
        for row in rows:
            joined = row.get("users") or {}
            users.append(
                ReferredUser(
                    id=str(row.get("referred_id")),
                    fullName=joined.get("full_name") or "Unknown",
                    email=joined.get("email") or "Unknown",
                    createdAt=row.get("created_at"),
                )
            )
        return users

    async def get_profile(self) -> ProfileOut:
        row = await self._user_row()
        user_id = str(row["id"])
        return ProfileOut(
            id=user_id,
            fullName=row.get("full_name"),
            email=row.get("email"),
            phone=row.get("phone"),
            referral=await self._referral_stats(user_id),
            referredUsers=await self._referred_users(user_id),
        )

    async def update_profile(self, data: UpdateProfileSchema) -> ProfileUpdateResult:
        row = await self._user_row()
        user_id = str(row["id"])

        full_name = (data.fullName if data.fullName is not None else row.get("full_name") or "").strip()
        phone = data.phone if data.phone is not None else row.get("phone")
        current_email = (row.get("email") or "").lower()
        email = (data.email or current_email).strip().lower()
        new_code = data.referralCode.strip().upper() if data.referralCode else None

        if new_code is not None:
            if not self._code_re.match(new_code):
                raise bad_request(
                    ErrorCode.VALIDATION_FAILED,
                    f"Referral code must be exactly {settings.REFERRAL_CODE_LENGTH} characters",
                )
            try:
                available = await self.referrals.is_code_available(new_code, user_id)
            except BackendError as e:
                logger.error("Referral code check failed: %s", e.message)
                raise upstream_error(ErrorCode.BACKEND_ERROR, "Failed to validate referral code")
            if not available:
                raise conflict(ErrorCode.REFERRAL_CODE_TAKEN, ErrorMessage.REFERRAL_CODE_TAKEN)

        if phone and not is_valid_phone(phone):
            raise bad_request(ErrorCode.VALIDATION_FAILED, "Phone number must be 10 digits.")
        if not is_valid_email(email):
            raise bad_request(ErrorCode.VALIDATION_FAILED, "Invalid email address.")

        email_changed = email != current_email

        attributes: dict = {"data": {"full_name": full_name, "phone": phone}}
        if email_changed:
            attributes["email"] = email

        try:
            await self.backend.update_user(attributes)
        except BackendError as e:
            raise bad_request(ErrorCode.AUTH_FAILED, e.message)

        try:
            await self.backend.table("users").eq("id", user_id).update(
                {"email": email, "full_name": full_name, "phone": phone}
            )
        except BackendError as e:
            logger.error("Users table update error: %s", e.message)
            raise upstream_error(ErrorCode.BACKEND_ERROR, "Failed to update profile in database")

        if new_code is not None:
            try:
                await self.backend.table("referrals").eq("user_id", user_id).update(
                    {"referral_code": new_code}
                )
            except BackendError as e:
                logger.error("Referral code update error: %s", e.message)
                raise upstream_error(ErrorCode.BACKEND_ERROR, "Failed to update referral code")

        if email_changed:
            try:
                await self.backend.sign_out()
            except BackendError as e:
                logger.warning("Sign out after email change failed: %s", e.message)
            return ProfileUpdateResult(
                message=(
                    "Profile updated! Please check your new email address to confirm the change. "
                    "You'll need to verify the new email before it takes effect."
                ),
                requires_reauth=True,
            )

        return ProfileUpdateResult(
            message="Profile updated successfully!",
            profile=await self.get_profile(),
        )

    async def delete_account(self) -> str:
        try:
            await self.backend.rpc("delete_user_completely", {"p_auth_id": self.session.auth_id})
        except BackendError as e:
            logger.error("Error deleting user %s: %s", self.session.auth_id, e.message)
            raise upstream_error(ErrorCode.BACKEND_ERROR, f"Failed to delete account: {e.message}")

        try:
            await self.backend.sign_out()
        except BackendError as e:
            logger.info("Sign out after deletion failed: %s", e.message)

        logger.info("Account %s deleted", self.session.auth_id)
        return "Your account has been permanently deleted."
