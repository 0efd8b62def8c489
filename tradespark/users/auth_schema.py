from pydantic import BaseModel


class SignUpSchema(BaseModel):
    name: str = ""
    email: str = ""
    phone: str = ""
    password: str = ""
    confirmPassword: str = ""
    referral: str = ""


class SignInSchema(BaseModel):
    email: str = ""
    password: str = ""


class ForgotPasswordSchema(BaseModel):
    email: str = ""


class OtpRequestSchema(BaseModel):
    phone: str = ""


class OtpVerifySchema(BaseModel):
    phone: str = ""
    otp: str = ""


class OAuthCallbackSchema(BaseModel):
    url: str
    codeVerifier: str | None = None


class CompleteProfileSchema(BaseModel):
    name: str = ""
    phone: str = ""
    referral: str = ""


class RefreshSchema(BaseModel):
    refreshToken: str


class SessionOut(BaseModel):
    accessToken: str
    refreshToken: str | None = None
    expiresIn: int | None = None
    userId: str | None = None
    email: str | None = None


class AuthResult(BaseModel):
    route: str | None = None
    message: str | None = None
    session: SessionOut | None = None
