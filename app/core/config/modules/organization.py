from pydantic import Field
from app.core.config.base import EnvBaseSettings


class OrganizationSettings(EnvBaseSettings):
    ORG_NAME: str = Field(default="Metrax", description="Organization name")
    ORG_TAGLINE: str = Field(
        default="Supporting Indigenous Communities", description="Receipt tagline"
    )
    ORG_CONTACT_EMAIL: str = Field(
        default="info@metraxindigenous.com", description="Public contact address"
    )
    ORG_WEBSITE: str = Field(
        default="https://metraxindigenous.com", description="Public website"
    )
    ORG_CHARITY_STATEMENT: str = Field(
        default="Metrax is a registered charitable organization. Your donation may be tax deductible.",
        description="Tax statement printed on receipts",
    )
    DEFAULT_PROJECT_TITLE: str = Field(
        default="Community Project", description="Project title when none is given"
    )
    DEFAULT_PROJECT_CATEGORY: str = Field(default="Community")
    DEFAULT_PROJECT_LOCATION: str = Field(default="Canada")
