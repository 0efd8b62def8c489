import logging
from datetime import datetime, timedelta, timezone
from urllib.parse import parse_qs, urlparse

from tradespark.backend.client import BackendClient, BackendError, BackendSession
from tradespark.core.auth import AuthSession, Route
from tradespark.core.config import settings
from tradespark.core.errors import (
    ErrorCode,
    ErrorMessage,
    bad_request,
    conflict,
    upstream_error,
)
from tradespark.users.auth_schema import (
    AuthResult,
    CompleteProfileSchema,
    SessionOut,
    SignInSchema,
    SignUpSchema,
)
from tradespark.users.referrals import ReferralService
from tradespark.users.validation import (
    validate_otp,
    validate_profile_completion,
    validate_sign_up,
)

logger = logging.getLogger(__name__)


def session_out(session: BackendSession) -> SessionOut:
    return SessionOut(
        accessToken=session.access_token,
        refreshToken=session.refresh_token,
        expiresIn=session.expires_in,
        userId=session.user.get("id"),
        email=session.user.get("email"),
    )


def _parse_timestamp(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _first(params: dict[str, list[str]], key: str) -> str | None:
    values = params.get(key) or [None]
    return values[0]


class AuthService:
    def __init__(self, backend: BackendClient, new_user_window: int = settings.NEW_USER_WINDOW_SECONDS):
        self.backend = backend
        self.referrals = ReferralService(backend)
        self.new_user_window = timedelta(seconds=new_user_window)

    async def sign_up(self, data: SignUpSchema) -> AuthResult:
        validate_sign_up(data)
        email = data.email.strip().lower()

        try:
            existing = await self.backend.table("users").select("email").eq("email", email).maybe_single()
        except BackendError as e:
            logger.error("Email availability check failed: %s", e.message)
            raise upstream_error(ErrorCode.BACKEND_ERROR, "Failed to check email availability.")
        if existing:
            raise conflict(ErrorCode.EMAIL_IN_USE, ErrorMessage.EMAIL_IN_USE)

        referral = await self.referrals.resolve(data.referral)

        try:
            user, session = await self.backend.sign_up(
                email,
                data.password,
                {"full_name": data.name.strip(), "phone": data.phone},
            )
        except BackendError as e:
            raise bad_request(ErrorCode.AUTH_FAILED, e.message or "Signup failed. Please try again.")

        auth_id = user.get("id")
        if not auth_id:
            raise bad_request(ErrorCode.AUTH_FAILED, "Failed to create account.")

        backend = self.backend.with_token(session.access_token) if session else self.backend

        try:
            rows = await backend.table("users").insert(
                {
                    "auth_id": auth_id,
                    "email": email,
                    "full_name": data.name.strip(),
                    "phone": data.phone,
                    "referred_by": referral.referrer_id if referral else None,
                }
            )
        except BackendError as e:
            raise upstream_error(ErrorCode.BACKEND_ERROR, e.message)

        if not rows or rows[0].get("id") is None:
            logger.error("Profile insert for %s returned no row", email)
            raise upstream_error(ErrorCode.BACKEND_ERROR, "Failed to create user profile.")

        user_id = str(rows[0]["id"])

        try:
            await backend.table("wallets").insert({"user_id": user_id, "balance": 0})
        except BackendError as e:
            logger.error("Wallet initialisation failed for %s: %s", user_id, e.message)
            raise upstream_error(ErrorCode.BACKEND_ERROR, "Failed to initialize wallet.")

        if referral:
            await ReferralService(backend).process_referral(referral, user_id)

        logger.info("Account created for %s", email)
        return AuthResult(
            route=Route.DASHBOARD,
            message="Account created successfully!",
            session=session_out(session) if session else None,
        )

    async def sign_in(self, data: SignInSchema) -> AuthResult:
        if not data.email or not data.password:
            raise bad_request(ErrorCode.AUTH_INVALID_CREDENTIALS, ErrorMessage.INVALID_CREDENTIALS)

        try:
            session = await self.backend.sign_in_with_password(data.email.strip().lower(), data.password)
        except BackendError as e:
            raise bad_request(ErrorCode.AUTH_INVALID_CREDENTIALS, e.message or "Login failed")

        logger.info("Login successful: %s", session.user.get("email"))
        return AuthResult(route=Route.DASHBOARD, session=session_out(session))

    async def forgot_password(self, email: str) -> AuthResult:
        if not email:
            raise bad_request(ErrorCode.VALIDATION_FAILED, "Please enter your email to reset password.")

        try:
            await self.backend.reset_password_for_email(
                email.strip().lower(), settings.PASSWORD_RESET_REDIRECT_URL
            )
        except BackendError as e:
            raise bad_request(ErrorCode.AUTH_FAILED, e.message or "Failed to send reset link.")

        return AuthResult(message="Check your email for the password reset link.")

    async def send_otp(self, phone: str) -> AuthResult:
        if not phone:
            raise bad_request(ErrorCode.VALIDATION_FAILED, "Enter a phone number")

        try:
            await self.backend.sign_in_with_otp(phone)
        except BackendError as e:
            raise bad_request(ErrorCode.AUTH_FAILED, e.message)

        return AuthResult(message="Check your phone for the OTP")

    async def verify_otp(self, phone: str, otp: str) -> AuthResult:
        validate_otp(otp)

        try:
            session = await self.backend.verify_otp(phone, otp)
        except BackendError as e:
            raise bad_request(ErrorCode.AUTH_FAILED, e.message)

        return AuthResult(
            route=Route.DASHBOARD,
            message="Logged in successfully!",
            session=session_out(session),
        )

    def oauth_url(self, redirect_to: str | None = None) -> str:
        return self.backend.authorize_url(settings.OAUTH_PROVIDER, redirect_to or settings.OAUTH_REDIRECT_URL)

    def is_new_user(self, user: dict, now: datetime | None = None) -> bool:
        created_at = _parse_timestamp(user.get("created_at"))
        if created_at is None:
            return False
        now = now or datetime.now(timezone.utc)
        return now - created_at < self.new_user_window

    async def complete_oauth(self, url: str, code_verifier: str | None = None) -> AuthResult:
        """Turn the provider redirect into a session.

        Development builds get the tokens in the URL fragment; standalone
        builds get a ``code`` to exchange.
        """
        parsed = urlparse(url)
        fragment = parse_qs(parsed.fragment)
        query = parse_qs(parsed.query)

        access_token = _first(fragment, "access_token")
        refresh_token = _first(fragment, "refresh_token")
        code = _first(query, "code")

        try:
            if access_token and refresh_token:
                user = await self.backend.with_token(access_token).get_user()
                expires_in = _first(fragment, "expires_in")
                session = BackendSession(
                    access_token=access_token,
                    refresh_token=refresh_token,
                    expires_in=int(expires_in) if expires_in and expires_in.isdigit() else None,
                    user=user,
                )
            elif code:
                session = await self.backend.exchange_code_for_session(code, code_verifier)
                if not session.user:
                    session.user = await self.backend.with_token(session.access_token).get_user()
            else:
                provider = settings.OAUTH_PROVIDER.title()
                raise bad_request(ErrorCode.AUTH_FAILED, f"No access token or code returned from {provider}.")
        except BackendError as e:
            raise bad_request(ErrorCode.AUTH_FAILED, e.message or "OAuth login failed")

        if self.is_new_user(session.user):
            logger.info("New OAuth user %s, profile completion required", session.user.get("id"))
            route = Route.COMPLETE_PROFILE
        else:
            route = Route.DASHBOARD

        return AuthResult(route=route, session=session_out(session))

    async def complete_profile(self, session: AuthSession, data: CompleteProfileSchema) -> AuthResult:
        validate_profile_completion(data)

        try:
            existing_phone = await (
                self.backend.table("users").select("phone").eq("phone", data.phone).maybe_single()
            )
        except BackendError as e:
            logger.error("Phone availability check failed: %s", e.message)
            raise upstream_error(ErrorCode.BACKEND_ERROR, "Failed to check phone availability.")
        if existing_phone:
            raise conflict(ErrorCode.PHONE_IN_USE, ErrorMessage.PHONE_IN_USE)

        referral = await self.referrals.resolve(data.referral)

        try:
            existing_user = await (
                self.backend.table("users").select("id").eq("auth_id", session.auth_id).maybe_single()
            )
        except BackendError as e:
            logger.error("User check failed: %s", e.message)
            raise upstream_error(ErrorCode.BACKEND_ERROR, "Failed to check user data.")

        if existing_user:
            return AuthResult(
                route=Route.DASHBOARD,
                message="Your profile already exists. Redirecting to dashboard.",
            )

        # a server-side trigger creates the wallet and referral rows
        try:
            await self.backend.table("users").insert(
                {
                    "auth_id": session.auth_id,
                    "email": (session.email or "").lower(),
                    "full_name": data.name.strip(),
                    "phone": data.phone,
                    "referred_by": referral.referrer_id if referral else None,
                }
            )
        except BackendError as e:
            raise upstream_error(ErrorCode.BACKEND_ERROR, e.message)

        return AuthResult(
            route=Route.DASHBOARD,
            message="Profile completed successfully! Your unique referral code has been generated.",
        )

    async def refresh(self, refresh_token: str) -> AuthResult:
        try:
            session = await self.backend.refresh_session(refresh_token)
        except BackendError as e:
            raise bad_request(ErrorCode.AUTH_FAILED, e.message)
        return AuthResult(route=Route.DASHBOARD, session=session_out(session))

    async def sign_out(self) -> AuthResult:
        try:
            await self.backend.sign_out()
        except BackendError as e:
            logger.warning("Sign out failed: %s", e.message)
        return AuthResult(route=Route.SIGN_IN)
