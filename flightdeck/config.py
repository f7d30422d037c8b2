"""
Engine settings.
"""

from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Dotted names accepted by from_mapping, mapped to field names
SETTING_ALIASES = {
    "flight.base_url": "base_url",
    "flight.case_sensitive": "case_sensitive",
    "flight.handle_errors": "handle_errors",
    "flight.log_errors": "log_errors",
    "flight.content_length": "content_length",
    "flight.views.path": "views_path",
    "flight.views.extension": "views_extension",
}


class EngineSettings(BaseModel):
    """Settings for an Engine instance."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    base_url: Optional[str] = Field(default=None, description="Prefix for relative redirect targets")
    case_sensitive: bool = Field(default=False, description="Match route patterns case-sensitively")
    handle_errors: bool = Field(default=True, description="Turn handler exceptions into 500 responses")
    log_errors: bool = Field(default=False, description="Log handler exceptions")
    content_length: bool = Field(default=True, description="Send a Content-Length header")
    views_path: str = Field(default="./views", description="Template directory")
    views_extension: str = Field(default=".html", description="Default template extension")

    @field_validator("views_extension")
    @classmethod
    def _dotted_extension(cls, value: str) -> str:
        if value and not value.startswith("."):
            return "." + value
        return value

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> "EngineSettings":
        """Build settings from field names or their dotted ``flight.*`` aliases."""
        data = {SETTING_ALIASES.get(key, key): value for key, value in values.items()}
        return cls.model_validate(data)
