"""
Pydantic model for the client-side settings of the session manager.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator

from pavlovia_session import __version__

DEFAULT_CONFIG_URL = "config.json"


class ClientSettings(BaseModel):
    """A validated settings model for the session client."""

    model_config = ConfigDict(validate_assignment=True, str_strip_whitespace=True)

    config_url: str = DEFAULT_CONFIG_URL
    page_url: str = ""
    request_timeout: float = 30.0
    downloads_dir: str = "downloads"
    log_dir: str = ""
    user_agent: str = f"pavlovia-session/{__version__}"

    # Internal fields not loaded from INI file
    settings_path: str = Field(default="", repr=False)

    @field_validator("config_url")
    @classmethod
    def validate_config_url(cls, v: str) -> str:
        if not v:
            raise ValueError("Config URL cannot be empty.")
        return v

    @field_validator("request_timeout")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        """Ensures a reasonable request timeout."""
        if v <= 0 or v > 300:
            raise ValueError("Request timeout must be between 0 and 300 seconds.")
        return v

    @field_validator("downloads_dir")
    @classmethod
    def validate_downloads_dir(cls, v: str) -> str:
        if not v:
            raise ValueError("Downloads directory cannot be empty.")
        return v

    @classmethod
    def get_ini_keys(cls) -> set[str]:
        """Returns a set of all keys that are expected in the INI file."""
        internal_fields = {"settings_path"}
        return {key for key in cls.model_fields if key not in internal_fields}
