"""Sync configuration.

The persisted shape is provider-agnostic::

    {"provider": "gist", "settings": {"gistToken": "...", "gistId": "..."}}

In memory each provider gets its own settings model, selected by the
``provider`` tag, and validated when the config is parsed or saved rather
than half-way through a sync.
"""

import json
import logging
from typing import Annotated, Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator
from pydantic.alias_generators import to_camel

from memosync.errors import ConfigurationError
from memosync.utils import validate_backend_url

logger = logging.getLogger(__name__)

PROVIDER_NONE = "none"
PROVIDER_SUPABASE = "supabase"
PROVIDER_WEBDAV = "webdav"
PROVIDER_GIST = "gist"
PROVIDER_GITHUB = "github"

PROVIDERS = (PROVIDER_NONE, PROVIDER_SUPABASE, PROVIDER_WEBDAV, PROVIDER_GIST, PROVIDER_GITHUB)

DEFAULT_SYNC_FILENAME = "memoai_sync.json"
DEFAULT_ENCRYPTED_PATH = "memoai_sync.enc.json"
GITHUB_API_BASE = "https://api.github.com"


def _require_safe_url(value: str) -> str:
    if validate_backend_url(value) is None:
        raise ValueError("must be an https URL (plain http only for localhost)")
    return value.rstrip("/")


class _ProviderSettings(BaseModel):
    """Common model behaviour: camelCase wire keys, immutable, unknown keys dropped."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
        str_strip_whitespace=True,
    )


class NoSyncSettings(_ProviderSettings):
    provider: Literal["none"] = PROVIDER_NONE


class DeltaRestSettings(_ProviderSettings):
    """PostgREST-style backend (Supabase) pulled and pushed by delta."""

    provider: Literal["supabase"] = PROVIDER_SUPABASE
    supabase_url: str = Field(min_length=1)
    supabase_key: str = Field(min_length=1, repr=False)
    table: str = Field(default="memos", pattern=r"^[A-Za-z_][A-Za-z0-9_]*$")

    @field_validator("supabase_url")
    @classmethod
    def check_url(cls, v: str) -> str:
        return _require_safe_url(v)


class SingleFileSettings(_ProviderSettings):
    """One JSON document on a WebDAV share."""

    provider: Literal["webdav"] = PROVIDER_WEBDAV
    webdav_url: str = Field(min_length=1)
    webdav_user: str = Field(min_length=1)
    webdav_pass: str = Field(min_length=1, repr=False)
    filename: str = Field(default=DEFAULT_SYNC_FILENAME, min_length=1)

    @field_validator("webdav_url")
    @classmethod
    def check_url(cls, v: str) -> str:
        return _require_safe_url(v)


class GistSettings(_ProviderSettings):
    """One JSON file inside a private GitHub gist."""

    provider: Literal["gist"] = PROVIDER_GIST
    gist_token: str = Field(min_length=1, repr=False)
    gist_id: Optional[str] = None
    filename: str = Field(default=DEFAULT_SYNC_FILENAME, min_length=1)
    api_base: str = GITHUB_API_BASE

    @field_validator("api_base")
    @classmethod
    def check_url(cls, v: str) -> str:
        return _require_safe_url(v)

    @field_validator("gist_id")
    @classmethod
    def blank_id_is_none(cls, v: Optional[str]) -> Optional[str]:
        return v or None


class EncryptedBlobSettings(_ProviderSettings):
    """An encrypted snapshot committed to a GitHub repository."""

    provider: Literal["github"] = PROVIDER_GITHUB
    github_token: str = Field(min_length=1, repr=False)
    github_repo: str = Field(pattern=r"^[A-Za-z0-9_.-]+/[A-Za-z0-9_.-]+$")
    encryption_password: str = Field(min_length=1, repr=False)
    path: str = Field(default=DEFAULT_ENCRYPTED_PATH, min_length=1)
    branch: Optional[str] = None
    api_base: str = GITHUB_API_BASE

    @field_validator("api_base")
    @classmethod
    def check_url(cls, v: str) -> str:
        return _require_safe_url(v)

    @field_validator("path")
    @classmethod
    def relative_path(cls, v: str) -> str:
        v = v.strip("/")
        if not v or ".." in v.split("/"):
            raise ValueError("must be a relative path inside the repository")
        return v

    @field_validator("branch")
    @classmethod
    def blank_branch_is_none(cls, v: Optional[str]) -> Optional[str]:
        return v or None


ProviderSettings = Annotated[
    Union[
        NoSyncSettings,
        DeltaRestSettings,
        SingleFileSettings,
        GistSettings,
        EncryptedBlobSettings,
    ],
    Field(discriminator="provider"),
]


class SyncConfig(BaseModel):
    """Which backend to sync with and how to reach it."""

    model_config = ConfigDict(frozen=True)

    provider: Literal["none", "supabase", "webdav", "gist", "github"] = PROVIDER_NONE
    settings: ProviderSettings = Field(default_factory=NoSyncSettings)

    @model_validator(mode="before")
    @classmethod
    def tag_settings(cls, data: Any) -> Any:
        # The wire form keeps the tag outside the settings bag
        if isinstance(data, dict):
            provider = data.get("provider") or PROVIDER_NONE
            settings = data.get("settings")
            if settings is None:
                settings = {}
            if isinstance(settings, dict):
                data = {**data, "provider": provider, "settings": {**settings, "provider": provider}}
        return data

    @model_validator(mode="after")
    def provider_matches_settings(self) -> "SyncConfig":
        if self.settings.provider != self.provider:
            raise ValueError(
                f"settings are for {self.settings.provider!r}, provider is {self.provider!r}"
            )
        return self

    @property
    def enabled(self) -> bool:
        return self.provider != PROVIDER_NONE

    def to_dict(self) -> Dict[str, Any]:
        """Persisted form, camelCase settings keys, unset optionals omitted."""
        return {
            "provider": self.provider,
            "settings": self.settings.model_dump(
                by_alias=True, exclude={"provider"}, exclude_none=True
            ),
        }

    def with_settings(self, **changes: Any) -> "SyncConfig":
        """Return a re-validated copy with some settings replaced."""
        current = self.settings.model_dump(exclude={"provider"})
        current.update(changes)
        return parse_sync_config({"provider": self.provider, "settings": current})


def parse_sync_config(raw: Union[str, bytes, Dict[str, Any], None]) -> SyncConfig:
    """Validate a stored or user-supplied config.

    Args:
        raw: JSON text or an already-decoded dict; ``None`` means "not configured"

    Raises:
        ConfigurationError: If the provider is unknown or required settings
            are missing or invalid
    """
    if raw is None:
        return SyncConfig()
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Sync config is not valid JSON: {e}") from e
    if not isinstance(raw, dict):
        raise ConfigurationError("Sync config must be an object")

    try:
        return SyncConfig.model_validate(raw)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'] if p != 'settings') or 'config'}: {err['msg']}"
            for err in e.errors()
        )
        raise ConfigurationError(f"Invalid sync config for {raw.get('provider')!r}: {problems}") from e
