"""WaitlistEntry data model."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+$"


class WaitlistEntry(BaseModel):
    """Represents a waitlist sign-up."""

    id: str = Field(..., min_length=1, description="Entry ID")
    name: str = Field(..., min_length=1, description="Contact name")
    email: str = Field(..., pattern=EMAIL_PATTERN, description="Contact email")
    telegram: Optional[str] = Field(default=None, description="Telegram handle")
    referral_code: Optional[str] = Field(default=None, description="Referral code")
    created_at: datetime = Field(..., description="Sign-up timestamp")

    model_config = {"frozen": True}
