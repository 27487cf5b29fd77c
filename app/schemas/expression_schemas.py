from typing import Any, Dict, Optional

from pydantic import BaseModel, EmailStr, Field

from app.models.expression_model import ExpressionStatus
from app.utils.sanitize import SanitizedStr


class ExpressionCreateRequest(BaseModel):
    """Expression-of-interest form; the website posts snake_case fields."""

    community_name: SanitizedStr = Field(..., min_length=1, max_length=200)
    province: Optional[SanitizedStr] = Field(default=None, max_length=100)
    address: Optional[SanitizedStr] = Field(default=None, max_length=300)
    contact_name: SanitizedStr = Field(..., min_length=1, max_length=100)
    contact_email: EmailStr
    contact_phone: Optional[SanitizedStr] = Field(default=None, max_length=50)
    contact_title: Optional[SanitizedStr] = Field(default=None, max_length=100)
    home_model_id: SanitizedStr = Field(..., min_length=1, max_length=100)
    home_model_name: Optional[SanitizedStr] = Field(default=None, max_length=200)
    program_type: Optional[SanitizedStr] = Field(default=None, max_length=100)
    preferred_timeline: Optional[SanitizedStr] = Field(default=None, max_length=100)
    estimated_families: Optional[int] = Field(default=None, ge=0)
    homes_per_year: Optional[int] = Field(default=None, ge=0)
    assessment_completed: bool = False
    technical_capacity: Optional[SanitizedStr] = Field(default=None, max_length=200)
    funding_status: Optional[SanitizedStr] = Field(default=None, max_length=100)
    comments: Optional[SanitizedStr] = Field(default=None, max_length=2000)
    newsletter_signup: bool = False
    authorization_confirmed: bool = False

    def to_record_fields(self) -> Dict[str, Any]:
        """Shape the flat form into the nested record kept by the store."""
        return {
            "home_model_id": self.home_model_id,
            "home_model_name": self.home_model_name,
            "community_details": {
                "name": self.community_name,
                "province": self.province,
                "address": self.address,
            },
            "coordinator": {
                "name": self.contact_name,
                "email": self.contact_email.strip().lower(),
                "phone": self.contact_phone,
                "title": self.contact_title,
            },
            "program_details": {
                "program_type": self.program_type,
                "members_to_enroll": self.estimated_families,
                "program_duration": self.preferred_timeline,
                "homes_per_year": self.homes_per_year,
            },
            "project_assessment": {
                "lands_identified": self.assessment_completed,
                "construction_funds_available": self.funding_status == "available",
                "technical_capacity": self.technical_capacity,
                "funding_status": self.funding_status,
            },
            "comments": self.comments,
            "newsletter_signup": self.newsletter_signup,
            "authorized": self.authorization_confirmed,
        }


class ExpressionUpdateRequest(BaseModel):
    status: Optional[ExpressionStatus] = None
    admin_notes: Optional[SanitizedStr] = Field(default=None, max_length=2000)
