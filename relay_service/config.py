from pydantic_settings import (
    BaseSettings,
    JsonConfigSettingsSource,
    PydanticBaseSettingsSource,
)
from pydantic import field_validator
from typing import Optional


class RelaySettings(BaseSettings):
    """Relay service configuration.

    Values come from the environment first, then from the JSON file named by
    ``RELAY_CONFIG_FILE`` (default ``config.json``, skipped when missing).

    Two backends are configured here:
      redis  – mailboxes, sessions, completion values and the auth cache
      oracle – system-of-record for accounts, payments and vault keys
    """

    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_user: Optional[str] = None
    redis_password: Optional[str] = None
    redis_db: int = 0

    oracle_user: str = "relay"
    oracle_password: str = ""
    oracle_host: str = "localhost"
    oracle_port: int = 1521
    oracle_service: str = "FREEPDB1"
    oracle_dsn: Optional[str] = None
    oracle_pool_min: int = 2
    oracle_pool_max: int = 10

    relay_service_port: int = 8080
    relay_admin_token: Optional[str] = None
    relay_config_file: str = "config.json"
    require_api_key: bool = False

    session_ttl_seconds: int = 300
    value_ttl_seconds: int = 3600
    account_cache_ttl_seconds: int = 300
    key_cache_ttl_seconds: int = 300
    backend_timeout_seconds: float = 5.0
    auto_init: bool = False

    model_config = {"env_prefix": "", "case_sensitive": False}

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        config_file = env_settings().get("relay_config_file", "config.json")
        return (
            init_settings,
            env_settings,
            JsonConfigSettingsSource(settings_cls, json_file=config_file),
        )

    @field_validator(
        "session_ttl_seconds",
        "value_ttl_seconds",
        "account_cache_ttl_seconds",
        "key_cache_ttl_seconds",
        "backend_timeout_seconds",
    )
    @classmethod
    def validate_positive(cls, v):
        if v <= 0:
            raise ValueError(f"must be greater than zero, got {v!r}")
        return v

    def get_dsn(self) -> str:
        """Return the DSN for the oracledb pool.

        A full descriptor in ``oracle_dsn`` wins; otherwise host:port/service.
        """
        if self.oracle_dsn:
            return self.oracle_dsn
        return f"{self.oracle_host}:{self.oracle_port}/{self.oracle_service}"
