from pydantic import BaseModel, Field


class UpdateProfileSchema(BaseModel):
    fullName: str | None = None
    email: str | None = None
    phone: str | None = None
    referralCode: str | None = None


class ReferredUser(BaseModel):
    id: str
    fullName: str = "Unknown"
    email: str = "Unknown"
    createdAt: str | None = None


class ReferralStats(BaseModel):
    referralCode: str | None = None
    referredCount: int = 0
    points: float = 0
    totalEarnings: float = 0


class ProfileOut(BaseModel):
    id: str
    fullName: str | None = None
    email: str | None = None
    phone: str | None = None
    referral: ReferralStats = Field(default_factory=ReferralStats)
    referredUsers: list[ReferredUser] = Field(default_factory=list)


class ProfileUpdateResult(BaseModel):
    message: str
    requires_reauth: bool = False
    profile: ProfileOut | None = None
