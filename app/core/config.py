"""HSM groups configuration settings."""

from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class HsmSettings(BaseSettings):
    """Hardware State Manager (HSM) connection settings.

    These values are handed to the group store client once, at construction
    time. Nothing in the groups module reads them directly.

    Environment Variables:
        HSM_BASE_URL: Base URL of the HSM API (e.g. https://api.cluster/apis/smd)
        HSM_ROOT_CERT: Path to the CA bundle used to verify the HSM endpoint
        HSM_ACCESS_TOKEN: Bearer token used for every request
        HSM_REQUEST_TIMEOUT_SECONDS: Default per-request timeout
        SOCKS5: Optional SOCKS5 proxy URL (e.g. socks5h://127.0.0.1:1080)
    """

    HSM_BASE_URL: str = Field(default="", alias="HSM_BASE_URL")
    HSM_ROOT_CERT: str = Field(default="", alias="HSM_ROOT_CERT")
    HSM_ACCESS_TOKEN: str = Field(default="", alias="HSM_ACCESS_TOKEN")
    HSM_REQUEST_TIMEOUT_SECONDS: float = Field(
        default=30, alias="HSM_REQUEST_TIMEOUT_SECONDS"
    )
    SOCKS5: Optional[str] = Field(default=None, alias="SOCKS5")

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )


class GroupsFeatureSettings(BaseSettings):
    """Configuration for group membership operations.

    Environment Variables:
        GROUPS_FETCH_CONCURRENCY: Max in-flight group reads during bulk fetches
    """

    fetch_concurrency: int = Field(
        default=10,
        alias="GROUPS_FETCH_CONCURRENCY",
        description="Maximum number of concurrent group membership requests",
    )

    @field_validator("fetch_concurrency")
    @classmethod
    def _validate_fetch_concurrency(cls, v: int) -> int:
        if v < 1:
            raise ValueError(
                f"GROUPS_FETCH_CONCURRENCY must be at least 1, got {v}"
            )
        return v

    def __init__(self, **kwargs):
        """Allow programmatic construction using the field name."""
        if "fetch_concurrency" in kwargs and "GROUPS_FETCH_CONCURRENCY" not in kwargs:
            kwargs["GROUPS_FETCH_CONCURRENCY"] = kwargs.pop("fetch_concurrency")
        super().__init__(**kwargs)

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )


class Settings(BaseSettings):
    """HSM groups configuration settings."""

    PREFIX: str = ""
    LOG_LEVEL: str = "INFO"

    # Integration settings
    hsm: HsmSettings

    # Functionality settings
    groups: GroupsFeatureSettings

    @property
    def is_production(self) -> bool:
        """Check if the application is running in production."""
        return not bool(self.PREFIX)

    def __init__(self, **kwargs):
        settings_map = {
            "hsm": HsmSettings,
            "groups": GroupsFeatureSettings,
        }

        for setting_name, setting_class in settings_map.items():
            if setting_name not in kwargs:
                kwargs[setting_name] = setting_class()

        super().__init__(**kwargs)

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )


# Create the settings instance
settings = Settings()
