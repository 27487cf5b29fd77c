from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ExpressionStatus(str, Enum):
    pending = "pending"
    reviewed = "reviewed"
    contacted = "contacted"
    in_progress = "in_progress"
    approved = "approved"
    rejected = "rejected"

    @classmethod
    def values(cls) -> List[str]:
        return [member.value for member in cls]


class CommunityDetails(BaseModel):
    name: str
    province: Optional[str] = None
    address: Optional[str] = None


class Coordinator(BaseModel):
    name: str
    email: str
    phone: Optional[str] = None
    title: Optional[str] = None


class ProgramDetails(BaseModel):
    program_type: Optional[str] = None
    members_to_enroll: Optional[int] = None
    program_duration: Optional[str] = None
    homes_per_year: Optional[int] = None
    total_homes_over_five_years: Optional[int] = None


class ProjectAssessment(BaseModel):
    lands_identified: bool = False
    site_survey_completed: bool = False
    soil_study_completed: bool = False
    architectural_design_selected: bool = False
    construction_funds_available: bool = False
    education_funds_available: bool = False
    technical_capacity: Optional[str] = None
    funding_status: Optional[str] = None


class ExpressionOfInterest(BaseModel):
    """A community's request to join the housing program."""

    id: int
    home_model_id: str
    home_model_name: Optional[str] = None
    community_details: CommunityDetails
    coordinator: Coordinator
    program_details: ProgramDetails = Field(default_factory=ProgramDetails)
    project_assessment: ProjectAssessment = Field(default_factory=ProjectAssessment)
    comments: Optional[str] = None
    newsletter_signup: bool = False
    authorized: bool = False
    status: ExpressionStatus = ExpressionStatus.pending
    admin_notes: Optional[str] = None
    submitted_at: datetime = Field(default_factory=utcnow)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def __str__(self):
        return f"ExpressionOfInterest(id={self.id}, community={self.community_details.name}, status={self.status.value})"
