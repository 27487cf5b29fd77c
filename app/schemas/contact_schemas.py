from typing import Optional

from pydantic import EmailStr, Field, field_validator

from app.schemas.common import CamelModel
from app.utils.sanitize import SanitizedStr


class ContactRequest(CamelModel):
    name: SanitizedStr = Field(..., min_length=2, max_length=100)
    email: EmailStr
    subject: SanitizedStr = Field(..., min_length=5, max_length=200)
    message: Optional[SanitizedStr] = Field(default="", max_length=2000)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.strip().lower()


class ContactReceipt(CamelModel):
    name: str
    email: str
    subject: str
    submitted_at: str
