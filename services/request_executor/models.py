"""
Request Executor Models
Request and response bodies for the auth and booking endpoints.
"""
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, EmailStr, Field, field_validator

from shared.models import UserProfile, UserRole
from shared.pagination import Pagination


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class RegisterRequest(BaseModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(..., min_length=6)
    phone: Optional[str] = None
    role: Optional[str] = None


class GoogleAuthRequest(BaseModel):
    """Body of POST /auth/google."""
    model_config = ConfigDict(populate_by_name=True)

    google_id: str = Field(..., min_length=1, serialization_alias="googleId")
    email: EmailStr
    name: str
    profile_image: Optional[str] = Field(None, serialization_alias="profileImage")
    role: str = "user"
    is_verified: bool = Field(True, serialization_alias="isVerified")

    @field_validator('role', mode='before')
    @classmethod
    def wire_role(cls, v: Any) -> str:
        """The server spells the customer role 'user'."""
        return "vendor" if UserRole.parse(v) is UserRole.VENDOR else "user"

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class LoginResponse(BaseModel):
    """Response of the login, register and Google sign-in endpoints."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    success: bool = True
    token: Optional[str] = None
    user: Optional[UserProfile] = None
    message: str = ""
    is_new_user: bool = Field(False, validation_alias=AliasChoices("isNewUser", "is_new_user"))


class BookingCreateRequest(BaseModel):
    """Body of POST /bookings."""
    model_config = ConfigDict(populate_by_name=True)

    zone_id: str = Field(..., min_length=1, serialization_alias="zoneId")
    date: str = Field(..., pattern=r"^\d{4}-\d{2}-\d{2}$", description="YYYY-MM-DD")
    time_slot: str = Field(..., pattern=r"^\d{2}:\d{2}$", serialization_alias="timeSlot", description="HH:MM")
    duration: int = Field(..., ge=1, le=24, description="Hours")
    notes: Optional[str] = None

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class BookingList(BaseModel):
    """Bookings page with the server's pagination block (or a computed fallback)."""
    bookings: List[Dict[str, Any]] = Field(default_factory=list)
    pagination: Pagination


class GameZoneList(BaseModel):
    game_zones: List[Dict[str, Any]] = Field(default_factory=list)
    pagination: Pagination
