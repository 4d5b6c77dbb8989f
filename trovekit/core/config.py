# /trovekit/core/config.py
from pydantic_settings import BaseSettings
from pydantic import SecretStr


class Settings(BaseSettings):
    # RPC & block feed endpoints
    RPC_URL: SecretStr | None = None
    BLOCK_WSS_URL: SecretStr | None = None
    BLOCK_POLL_INTERVAL: float = 4.0

    # Deployment addresses
    TROVE_MANAGER_ADDRESS: str | None = None
    BORROWER_OPERATIONS_ADDRESS: str | None = None
    SORTED_TROVES_ADDRESS: str | None = None
    HINT_HELPERS_ADDRESS: str | None = None
    PRICE_FEED_ADDRESS: str | None = None
    ACTIVE_POOL_ADDRESS: str | None = None
    DEFAULT_POOL_ADDRESS: str | None = None
    STABILITY_POOL_ADDRESS: str | None = None
    COLL_SURPLUS_POOL_ADDRESS: str | None = None
    LUSD_TOKEN_ADDRESS: str | None = None
    MULTI_TROVE_GETTER_ADDRESS: str | None = None

    # Connection identity (both optional; the store binds user fields to them)
    USER_ADDRESS: str | None = None
    FRONTEND_TAG: str | None = None

    # Operational Settings
    LOG_LEVEL: str = "INFO"
    SENTRY_DSN: SecretStr | None = None
    HEALTH_PORT: int = 8080

    @property
    def contract_addresses(self) -> dict[str, str | None]:
        return {
            "troveManager": self.TROVE_MANAGER_ADDRESS,
            "borrowerOperations": self.BORROWER_OPERATIONS_ADDRESS,
            "sortedTroves": self.SORTED_TROVES_ADDRESS,
            "hintHelpers": self.HINT_HELPERS_ADDRESS,
            "priceFeed": self.PRICE_FEED_ADDRESS,
            "activePool": self.ACTIVE_POOL_ADDRESS,
            "defaultPool": self.DEFAULT_POOL_ADDRESS,
            "stabilityPool": self.STABILITY_POOL_ADDRESS,
            "collSurplusPool": self.COLL_SURPLUS_POOL_ADDRESS,
            "lusdToken": self.LUSD_TOKEN_ADDRESS,
            "multiTroveGetter": self.MULTI_TROVE_GETTER_ADDRESS,
        }

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

try:
    settings = Settings()
except Exception as e:
    # Late import; the logger module itself depends on settings
    import structlog
    structlog.get_logger("trovekit.config").critical("FAILED_TO_LOAD_SETTINGS", error=str(e))
    raise SystemExit(1)
