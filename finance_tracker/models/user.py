"""
User Models

Identity arrives already resolved from the authentication provider.
Profiles and settings are simple keyed records with last-write-wins
semantics: no versioning, no conflict detection.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from finance_tracker.models.transaction import Currency, DEFAULT_CURRENCY, utc_now


class AuthUser(BaseModel):
    """The signed-in user as reported by the authentication provider."""
    model_config = ConfigDict(frozen=True)

    uid: str = Field(..., min_length=1)
    email: Optional[str] = None
    display_name: Optional[str] = None
    email_verified: bool = False

    @property
    def effective_display_name(self) -> str:
        """Display name, else the local part of the email, else 'User'."""
        if self.display_name:
            return self.display_name
        if self.email:
            local_part = self.email.split("@")[0]
            if local_part:
                return local_part
        return "User"


class UserProfile(BaseModel):
    """Profile shown on the profile page (users/{uid})."""
    model_config = ConfigDict(str_strip_whitespace=True)

    user_id: str = Field(..., min_length=1)
    name: str = Field(default="", max_length=100)
    email: str = ""
    photo_url: str = ""
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class NotificationSettings(BaseModel):
    email: bool = True
    push: bool = False
    weekly: bool = True
    monthly: bool = True


class UserSettings(BaseModel):
    """Per-user preferences (userSettings/{uid})."""

    user_id: str = Field(..., min_length=1)
    currency: Currency = DEFAULT_CURRENCY
    notifications: NotificationSettings = Field(default_factory=NotificationSettings)
    budget_alerts: bool = True
    theme: str = Field(default="system", pattern="^(light|dark|system)$")
    timezone: str = "UTC"
