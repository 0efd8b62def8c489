from fastapi import APIRouter, Depends

from tradespark.backend.client import BackendClient
from tradespark.core.auth import AuthSession, get_current_session
from tradespark.core.dependencies import get_backend_client, get_user_backend
from tradespark.users.auth_schema import (
    CompleteProfileSchema,
    ForgotPasswordSchema,
    OAuthCallbackSchema,
    OtpRequestSchema,
    OtpVerifySchema,
    RefreshSchema,
    SignInSchema,
    SignUpSchema,
)
from tradespark.users.auth_service import AuthService

router = APIRouter(prefix="/api/auth", tags=["Auth"])


def get_auth_service(backend: BackendClient = Depends(get_backend_client)) -> AuthService:
    return AuthService(backend)


def get_user_auth_service(backend: BackendClient = Depends(get_user_backend)) -> AuthService:
    return AuthService(backend)


@router.post("/signup")
async def signup(req: SignUpSchema, auth: AuthService = Depends(get_auth_service)):
    return {"success": True, "data": await auth.sign_up(req)}


@router.post("/signin")
async def signin(req: SignInSchema, auth: AuthService = Depends(get_auth_service)):
    return {"success": True, "data": await auth.sign_in(req)}


@router.post("/forgot-password")
async def forgot_password(req: ForgotPasswordSchema, auth: AuthService = Depends(get_auth_service)):
    return {"success": True, "data": await auth.forgot_password(req.email)}


@router.post("/otp")
async def send_otp(req: OtpRequestSchema, auth: AuthService = Depends(get_auth_service)):
    return {"success": True, "data": await auth.send_otp(req.phone)}


@router.post("/otp/verify")
async def verify_otp(req: OtpVerifySchema, auth: AuthService = Depends(get_auth_service)):
    return {"success": True, "data": await auth.verify_otp(req.phone, req.otp)}


@router.get("/oauth/url")
def oauth_url(redirect_to: str | None = None, auth: AuthService = Depends(get_auth_service)):
    return {"success": True, "data": {"url": auth.oauth_url(redirect_to)}}


@router.post("/oauth/callback")
async def oauth_callback(req: OAuthCallbackSchema, auth: AuthService = Depends(get_auth_service)):
    return {"success": True, "data": await auth.complete_oauth(req.url, req.codeVerifier)}


@router.post("/complete-profile")
async def complete_profile(
    req: CompleteProfileSchema,
    session: AuthSession = Depends(get_current_session),
    auth: AuthService = Depends(get_user_auth_service),
):
    return {"success": True, "data": await auth.complete_profile(session, req)}


@router.post("/refresh")
async def refresh(req: RefreshSchema, auth: AuthService = Depends(get_auth_service)):
    return {"success": True, "data": await auth.refresh(req.refreshToken)}


@router.post("/signout")
async def signout(auth: AuthService = Depends(get_user_auth_service)):
    return {"success": True, "data": await auth.sign_out()}
