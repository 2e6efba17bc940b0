"""Singleton site configuration document."""

from typing import Any

from pydantic import BaseModel, ConfigDict

SETTINGS_COLLECTION = "settings"
SETTINGS_DOC_ID = "config"


class SiteSettings(BaseModel):
    """Site-wide switches edited from the admin dashboard.

    Stored data is merged over these defaults, so older documents missing
    newer switches keep working.
    """

    site_name: str = "AmarKotha"
    tagline: str = "Voice of Bangladesh"
    contact_email: str = "admin@amarkotha.com"
    maintenance_mode: bool = False
    ai_analysis_enabled: bool = True
    ai_suggestions_enabled: bool = True
    default_division: str = "Dhaka"
    registration_open: bool = True

    model_config = ConfigDict(extra="ignore", frozen=True)

    @classmethod
    def from_document(cls, data: dict[str, Any]) -> "SiteSettings":
        """Merge stored ``data`` over the defaults."""
        return cls.model_validate({k: v for k, v in data.items() if v is not None})

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(mode="json")
