"""Pydantic models for dbharness configuration."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_PREFIX = "db_"
PRIVILEGED_PREFIX = "tmpdb_"

# Recognized simple keys, in the order they are looked up under a prefix.
CONNECTION_PARAMETER_KEYS = (
    "driver",
    "user",
    "password",
    "host",
    "dbname",
    "memory",
    "port",
    "server",
    "ssl_key",
    "ssl_cert",
    "ssl_ca",
    "ssl_capath",
    "ssl_cipher",
    "unix_socket",
    "path",
    "charset",
    "event_subscribers",
)

DRIVER_OPTION_INFIX = "driver_option_"

SECRET_KEYS = frozenset({"password"})


class ConnectionParameters(BaseModel):
    """Structured connection parameters resolved from a configuration source.

    Instances are built with ``model_construct`` by the resolver, so values are
    carried exactly as found in the source. Only fields that were present in
    the source are part of ``model_fields_set``; ``to_dict`` relies on that to
    keep "absent" distinct from "empty".
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    driver: Optional[Any] = None
    user: Optional[Any] = None
    password: Optional[Any] = None
    host: Optional[Any] = None
    dbname: Optional[Any] = None
    memory: Optional[Any] = None
    port: Optional[Any] = None
    server: Optional[Any] = None
    ssl_key: Optional[Any] = None
    ssl_cert: Optional[Any] = None
    ssl_ca: Optional[Any] = None
    ssl_capath: Optional[Any] = None
    ssl_cipher: Optional[Any] = None
    unix_socket: Optional[Any] = None
    path: Optional[Any] = None
    charset: Optional[Any] = None
    event_subscribers: Optional[Any] = None
    driver_options: Dict[str, Any] = Field(default_factory=dict)

    def has(self, key: str) -> bool:
        """Return True if ``key`` was present in the configuration source."""
        return key in self.model_fields_set

    def get(self, key: str, default: Any = None) -> Any:
        """Return the value for ``key`` or ``default`` when it was absent."""
        if not self.has(key):
            return default
        return getattr(self, key)

    def without(self, *keys: str) -> "ConnectionParameters":
        """Return a copy with the given keys removed."""
        data = self.to_dict()
        for key in keys:
            data.pop(key, None)
        return self.from_mapping(data)

    def subscriber_names(self) -> List[str]:
        """Split the comma-joined event subscriber list.

        A list or tuple value, as written in YAML, is taken item by item.
        """
        if not self.has("event_subscribers") or not self.event_subscribers:
            return []
        value = self.event_subscribers
        names = [str(item) for item in value] if isinstance(value, (list, tuple)) else str(value).split(",")
        return [name.strip() for name in names if name.strip()]

    def to_dict(self, mask_secrets: bool = False) -> Dict[str, Any]:
        """Return only the populated parameters, in recognized-key order."""
        data: Dict[str, Any] = {}
        for key in CONNECTION_PARAMETER_KEYS:
            if self.has(key):
                value = getattr(self, key)
                data[key] = "***" if mask_secrets and key in SECRET_KEYS else value
        if self.has("driver_options"):
            data["driver_options"] = dict(self.driver_options)
        return data

    @classmethod
    def from_mapping(cls, data: Dict[str, Any]) -> "ConnectionParameters":
        """Build parameters from an already-structured mapping without validation."""
        fields = {key: value for key, value in data.items() if key in cls.model_fields}
        return cls.model_construct(_fields_set=set(fields), **fields)


class EnvironmentSettings(BaseSettings):
    """Environment-specific settings."""

    model_config = SettingsConfigDict(env_prefix="DBHARNESS_", case_sensitive=False)

    log_level: str = Field(default="INFO")
    debug: bool = Field(default=False)
    config_file: Optional[str] = Field(default=None)
