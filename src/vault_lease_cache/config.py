"""Configuration management for the Vault lease cache."""

import re
from typing import TYPE_CHECKING, Iterable

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import InvalidArgument

if TYPE_CHECKING:
    from .services.vault_client import VaultTransport

SECRET_PATH_PATTERN = re.compile(r"^[a-zA-Z0-9._\-/]*$")


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="VAULT_LEASE_",
        env_file=".env",
        env_file_encoding="utf-8",
    )

    # Vault connection
    vault_addr: str = Field(
        default="http://127.0.0.1:8200",
        description="HashiCorp Vault server address",
    )
    vault_token: str | None = Field(
        default=None,
        description="Vault authentication token",
    )
    vault_namespace: str | None = Field(
        default=None,
        description="Vault namespace (for Vault Enterprise)",
    )
    request_timeout: float = Field(
        default=30.0,
        gt=0,
        description="HTTP timeout in seconds for every Vault request",
    )

    # Default provider configuration
    secret_engine_mount: str = Field(
        default="aws/",
        description="Mount point of the dynamic secret engine",
    )
    secret_path: str = Field(
        default="",
        description="Role path under the mount, e.g. 'deploy'",
    )

    # Lease state
    state_namespace: str = Field(
        default="vault_key_aws",
        description="Prefix for lease store keys",
    )
    state_file: str = Field(
        default=".vault_leases.json",
        description="File used by the CLI to persist lease records",
    )

    # Fetch policy
    strict_fetch: bool = Field(
        default=False,
        description="Raise FetchError instead of returning an empty value",
    )
    max_retries: int = Field(
        default=0,
        ge=0,
        description="Retries for transient transport failures",
    )
    retry_backoff_seconds: float = Field(
        default=0.5,
        ge=0,
        description="Initial backoff between retries, doubled each attempt",
    )

    aws_region: str = Field(
        default="us-east-1",
        description="Default AWS region for sessions built from leased credentials",
    )

    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )


class ProviderConfig(BaseModel):
    """Where a dynamic secret lives in Vault.

    Both fields may be edited until :meth:`lock` is called. The lease
    manager locks a config after its first successful fetch, since moving
    the mount or path would orphan the lease already issued.
    """

    model_config = ConfigDict(validate_assignment=True)

    secret_engine_mount: str = "aws/"
    secret_path: str = ""

    _locked: bool = PrivateAttr(default=False)

    def __init__(self, **data: object) -> None:
        try:
            super().__init__(**data)
        except ValidationError as exc:
            raise InvalidArgument(str(exc)) from exc

    @field_validator("secret_engine_mount")
    @classmethod
    def validate_mount(cls, value: str) -> str:
        value = value.strip("/")
        if not value or not SECRET_PATH_PATTERN.match(value):
            raise ValueError(
                "Secret Engine Mount only supports the following characters: a-z 0-9 . - _ /"
            )
        return value + "/"

    @field_validator("secret_path")
    @classmethod
    def validate_secret_path(cls, value: str) -> str:
        if not SECRET_PATH_PATTERN.match(value):
            raise ValueError(
                "Secret Path only supports the following characters: a-z 0-9 . - _ /"
            )
        return value

    @property
    def locked(self) -> bool:
        return self._locked

    def lock(self) -> None:
        """Disallow further changes to this config."""
        self._locked = True

    def __setattr__(self, name: str, value: object) -> None:
        if not name.startswith("_") and self._locked:
            raise InvalidArgument(
                f"Cannot change '{name}' once a lease has been issued for this config"
            )
        try:
            super().__setattr__(name, value)
        except ValidationError as exc:
            raise InvalidArgument(str(exc)) from exc

    @classmethod
    def from_settings(cls, settings: Settings) -> "ProviderConfig":
        return cls(
            secret_engine_mount=settings.secret_engine_mount,
            secret_path=settings.secret_path,
        )


def ensure_mount_enabled(
    config: ProviderConfig,
    transport: "VaultTransport",
    engine_types: Iterable[str] = ("aws",),
) -> None:
    """Check the config's mount is an enabled engine of the right type.

    Raises:
        InvalidArgument: If the mount is missing or of another type
    """
    engine_types = list(engine_types)
    mounts = transport.list_secret_engine_mounts(engine_types)
    if config.secret_engine_mount not in mounts:
        raise InvalidArgument(
            f"Mount '{config.secret_engine_mount}' is not an enabled "
            f"{'/'.join(engine_types)} secret engine (available: {sorted(mounts)})"
        )


settings = Settings()
