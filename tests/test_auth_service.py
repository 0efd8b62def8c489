from datetime import datetime, timedelta, timezone

import httpx
import pytest

from tradespark.core.auth import Route
from tradespark.core.exceptions import AppException
from tradespark.users.auth_schema import CompleteProfileSchema, SignInSchema, SignUpSchema
from tradespark.users.auth_service import AuthService
from tests.conftest import body

SESSION = {
    "access_token": "at",
    "refresh_token": "rt",
    "expires_in": 3600,
    "user": {"id": "auth-new", "email": "new@example.com"},
}


def sign_up_form(**overrides):
    data = {
        "name": " New Trader ",
        "email": "New@Example.com",
        "phone": "9876543210",
        "password": "secret1",
        "confirmPassword": "secret1",
        "referral": "",
    }
    data.update(overrides)
    return SignUpSchema(**data)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "overrides,message",
    [
        ({"name": ""}, "All fields are required."),
        ({"confirmPassword": "other1"}, "Passwords do not match."),
        ({"password": "abc", "confirmPassword": "abc"}, "Password must be at least 6 characters."),
        ({"phone": "12345"}, "Phone number must be 10 digits."),
        ({"email": "not-an-email"}, "Invalid email address."),
    ],
)
async def test_sign_up_validation(fake_backend, overrides, message):
    auth = AuthService(fake_backend.client())

    with pytest.raises(AppException) as exc:
        await auth.sign_up(sign_up_form(**overrides))

    assert exc.value.message == message
    assert fake_backend.requests == []


@pytest.mark.asyncio
async def test_sign_up_rejects_existing_email(fake_backend):
    fake_backend.on("GET", "/rest/v1/users", [{"email": "new@example.com"}])
    auth = AuthService(fake_backend.client())

    with pytest.raises(AppException) as exc:
        await auth.sign_up(sign_up_form())

    assert exc.value.message == "Email already in use."
    assert fake_backend.requests[0].url.params["email"] == "eq.new@example.com"


@pytest.mark.asyncio
async def test_sign_up_with_referral(fake_backend):
    fake_backend.on("GET", "/rest/v1/users", [])
    fake_backend.on("GET", "/rest/v1/referrals", [{"user_id": 42}])
    fake_backend.on("POST", "/auth/v1/signup", SESSION)
    fake_backend.on("POST", "/rest/v1/users", httpx.Response(201, json=[{"id": 77}]))
    fake_backend.on("POST", "/rest/v1/wallets", httpx.Response(201, json=[{"user_id": 77, "balance": 0}]))
    fake_backend.on("POST", "/rest/v1/rpc/process_referral", httpx.Response(204))
    auth = AuthService(fake_backend.client())

    result = await auth.sign_up(sign_up_form(referral="abcd1234"))

    assert result.route == Route.DASHBOARD
    assert result.message == "Account created successfully!"
    assert result.session.accessToken == "at"

    user_row = body(fake_backend.calls("POST", "/rest/v1/users")[0])
    assert user_row == {
        "auth_id": "auth-new",
        "email": "new@example.com",
        "full_name": "New Trader",
        "phone": "9876543210",
        "referred_by": "42",
    }
    assert body(fake_backend.calls("POST", "/rest/v1/wallets")[0]) == {"user_id": "77", "balance": 0}
    assert body(fake_backend.calls("POST", "/rest/v1/rpc/process_referral")[0])["referrer_user_id"] == "42"
    assert fake_backend.calls("POST", "/rest/v1/users")[0].headers["authorization"] == "Bearer at"


@pytest.mark.asyncio
async def test_sign_up_with_reserved_code_skips_referral(fake_backend):
    fake_backend.on("GET", "/rest/v1/users", [])
    fake_backend.on("POST", "/auth/v1/signup", SESSION)
    fake_backend.on("POST", "/rest/v1/users", httpx.Response(201, json=[{"id": 77}]))
    fake_backend.on("POST", "/rest/v1/wallets", httpx.Response(201, json=[]))
    auth = AuthService(fake_backend.client())

    await auth.sign_up(sign_up_form(referral="TEST2024"))

    assert fake_backend.calls("GET", "/rest/v1/referrals") == []
    assert fake_backend.calls("POST", "/rest/v1/rpc/process_referral") == []
    assert body(fake_backend.calls("POST", "/rest/v1/users")[0])["referred_by"] is None


@pytest.mark.asyncio
@pytest.mark.parametrize("inserted", [[], [{"email": "new@example.com"}]])
async def test_sign_up_without_profile_row(fake_backend, inserted):
    fake_backend.on("GET", "/rest/v1/users", [])
    fake_backend.on("POST", "/auth/v1/signup", SESSION)
    fake_backend.on("POST", "/rest/v1/users", httpx.Response(201, json=inserted))
    auth = AuthService(fake_backend.client())

    with pytest.raises(AppException) as exc:
        await auth.sign_up(sign_up_form())

    assert exc.value.status_code == 502
    assert exc.value.code == "BACKEND_ERROR"
    assert exc.value.message == "Failed to create user profile."
    assert fake_backend.calls("POST", "/rest/v1/wallets") == []


@pytest.mark.asyncio
async def test_sign_in_requires_credentials(fake_backend):
    auth = AuthService(fake_backend.client())

    with pytest.raises(AppException) as exc:
        await auth.sign_in(SignInSchema(email="", password=""))

    assert exc.value.message == "Please enter email and password."


@pytest.mark.asyncio
async def test_sign_in_normalizes_email(fake_backend):
    fake_backend.on("POST", "/auth/v1/token", SESSION)
    auth = AuthService(fake_backend.client())

    result = await auth.sign_in(SignInSchema(email="  Trader@Example.COM ", password="secret1"))

    assert result.route == Route.DASHBOARD
    assert body(fake_backend.requests[0])["email"] == "trader@example.com"


@pytest.mark.asyncio
async def test_sign_in_failure(fake_backend):
    fake_backend.on("POST", "/auth/v1/token", httpx.Response(400, json={"error_description": "Invalid login credentials"}))
    auth = AuthService(fake_backend.client())

    with pytest.raises(AppException) as exc:
        await auth.sign_in(SignInSchema(email="a@b.co", password="wrong"))

    assert exc.value.message == "Invalid login credentials"


@pytest.mark.asyncio
async def test_verify_otp_requires_six_digits(fake_backend):
    auth = AuthService(fake_backend.client())

    with pytest.raises(AppException) as exc:
        await auth.verify_otp("9876543210", "123")

    assert exc.value.message == "Enter a 6-digit OTP"
    assert fake_backend.requests == []


def test_is_new_user():
    auth = AuthService(None, new_user_window=10)
    now = datetime(2026, 10, 19, 12, 0, 0, tzinfo=timezone.utc)

    assert auth.is_new_user({"created_at": (now - timedelta(seconds=3)).isoformat()}, now=now)
    assert not auth.is_new_user({"created_at": "2026-10-01T12:00:00Z"}, now=now)
    assert not auth.is_new_user({}, now=now)


@pytest.mark.asyncio
async def test_oauth_fragment_tokens_for_new_user(fake_backend):
    created = datetime.now(timezone.utc).isoformat()
    fake_backend.on("GET", "/auth/v1/user", {"id": "g1", "email": "g@example.com", "created_at": created})
    auth = AuthService(fake_backend.client())

    result = await auth.complete_oauth("tradeapp://auth-callback#access_token=at&refresh_token=rt&expires_in=3600")

    assert result.route == Route.COMPLETE_PROFILE
    assert result.session.refreshToken == "rt"
    assert fake_backend.requests[0].headers["authorization"] == "Bearer at"


@pytest.mark.asyncio
async def test_oauth_code_exchange_for_existing_user(fake_backend):
    fake_backend.on(
        "POST",
        "/auth/v1/token",
        {**SESSION, "user": {"id": "g1", "created_at": "2025-01-01T00:00:00Z"}},
    )
    auth = AuthService(fake_backend.client())

    result = await auth.complete_oauth("tradeapp://auth-callback?code=xyz", code_verifier="v")

    assert result.route == Route.DASHBOARD
    assert fake_backend.requests[0].url.params["grant_type"] == "pkce"


@pytest.mark.asyncio
async def test_oauth_without_token_or_code(fake_backend):
    auth = AuthService(fake_backend.client())

    with pytest.raises(AppException) as exc:
        await auth.complete_oauth("tradeapp://auth-callback")

    assert exc.value.message == "No access token or code returned from Google."


@pytest.mark.asyncio
async def test_complete_profile_rejects_used_phone(fake_backend, auth_session):
    fake_backend.on("GET", "/rest/v1/users", [{"phone": "9876543210"}])
    auth = AuthService(fake_backend.client(auth_session.access_token))

    with pytest.raises(AppException) as exc:
        await auth.complete_profile(
            auth_session, CompleteProfileSchema(name="G", phone="9876543210", referral="TEST2024")
        )

    assert exc.value.message == "Phone number already in use."


@pytest.mark.asyncio
async def test_complete_profile_inserts_user(fake_backend, auth_session):
    fake_backend.on("GET", "/rest/v1/users", [])
    fake_backend.on("POST", "/rest/v1/users", httpx.Response(201, json=[{"id": 5}]))
    auth = AuthService(fake_backend.client(auth_session.access_token))

    result = await auth.complete_profile(
        auth_session, CompleteProfileSchema(name="Google User", phone="9876543210", referral="TEST2024")
    )

    assert result.route == Route.DASHBOARD
    assert result.message.startswith("Profile completed successfully!")
    row = body(fake_backend.calls("POST", "/rest/v1/users")[0])
    assert row["auth_id"] == auth_session.auth_id
    assert row["referred_by"] is None


@pytest.mark.asyncio
async def test_complete_profile_when_row_exists(fake_backend, auth_session):
    def users(request):
        if "phone" in request.url.params:
            return httpx.Response(200, json=[])
        return httpx.Response(200, json=[{"id": 5}])

    fake_backend.on("GET", "/rest/v1/users", users)
    auth = AuthService(fake_backend.client(auth_session.access_token))

    result = await auth.complete_profile(
        auth_session, CompleteProfileSchema(name="G", phone="9876543210", referral="TEST2024")
    )

    assert result.message == "Your profile already exists. Redirecting to dashboard."
    assert fake_backend.calls("POST", "/rest/v1/users") == []
