"""
DropMint configuration.

Settings are read from environment variables (a .env file is loaded by the
CLI before this runs):

    DROPMINT_MAX_MINT_AMOUNT      Max units per item per call (default 100)
    DROPMINT_FREE_MINT_FEE        Flat native fee per free-minted unit
    DROPMINT_PLATFORM_RECIPIENT   Default platform fee recipient
    DROPMINT_PLATFORM_BPS         Default platform share (default 500)
    DROPMINT_TREASURY             Default treasury (unset: collection retains)
    DROPMINT_ADMIN                Administrator address of the served storefront
    DROPMINT_API_KEY              Key for mutating/estimating API calls
    DROPMINT_REQUIRE_AUTH         Require X-API-Key on POST routes (default true)
    LOG_LEVEL, LOG_FORMAT         Logging level and format (console/json)
    HOST, PORT                    API bind address
"""

import os
import re
from dataclasses import dataclass

from errors import ConfigurationError, InvalidBasisPointsError
from fees import BPS_DENOMINATOR, DEFAULT_FREE_MINT_FEE
from ledger import ZERO_ADDRESS, is_zero_address

_ADDRESS_RE = re.compile(r"^0x[a-fA-F0-9]{40}$")
_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}

LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def _int_env(name: str, default: int, minimum: int = 0) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw.replace("_", ""))
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer", {"variable": name, "value": raw}) from None
    if value < minimum:
        raise ConfigurationError(f"{name} must be at least {minimum}", {"variable": name, "value": value})
    return value


def _bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    lowered = raw.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ConfigurationError(f"{name} must be a boolean", {"variable": name, "value": raw})


def _address_env(name: str) -> str:
    raw = os.getenv(name, "").strip()
    if not raw:
        return ZERO_ADDRESS
    if not _ADDRESS_RE.match(raw):
        raise ConfigurationError(f"{name} is not a valid address", {"variable": name, "value": raw})
    return raw.lower()


@dataclass
class Settings:
    """Runtime settings for the storefront, API and CLI."""

    max_mint_amount: int = 100
    free_mint_fee: int = DEFAULT_FREE_MINT_FEE
    platform_recipient: str = ZERO_ADDRESS
    platform_bps: int = 500
    treasury: str = ZERO_ADDRESS
    admin: str = ZERO_ADDRESS
    api_key: str | None = None
    require_auth: bool = True
    log_level: str = "INFO"
    log_format: str = "console"
    host: str = "0.0.0.0"
    port: int = 5000

    @classmethod
    def from_env(cls) -> "Settings":
        """
        Build settings from the environment.

        Raises:
            ConfigurationError: a variable is present but malformed
        """
        settings = cls(
            max_mint_amount=_int_env("DROPMINT_MAX_MINT_AMOUNT", 100, minimum=1),
            free_mint_fee=_int_env("DROPMINT_FREE_MINT_FEE", DEFAULT_FREE_MINT_FEE),
            platform_recipient=_address_env("DROPMINT_PLATFORM_RECIPIENT"),
            platform_bps=_int_env("DROPMINT_PLATFORM_BPS", 500),
            treasury=_address_env("DROPMINT_TREASURY"),
            admin=_address_env("DROPMINT_ADMIN"),
            api_key=os.getenv("DROPMINT_API_KEY") or None,
            require_auth=_bool_env("DROPMINT_REQUIRE_AUTH", True),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            log_format=os.getenv("LOG_FORMAT", "console").lower(),
            host=os.getenv("HOST", "0.0.0.0"),
            port=_int_env("PORT", 5000, minimum=1),
        )
        return settings.validate()

    def validate(self) -> "Settings":
        if self.platform_bps > BPS_DENOMINATOR or self.platform_bps < 0:
            raise InvalidBasisPointsError(self.platform_bps)
        if self.log_level not in LOG_LEVELS:
            raise ConfigurationError(f"Unknown log level: {self.log_level}", {"value": self.log_level})
        if self.log_format not in ("console", "json"):
            raise ConfigurationError(f"Unknown log format: {self.log_format}", {"value": self.log_format})
        if self.port > 65535:
            raise ConfigurationError("PORT must be at most 65535", {"value": self.port})
        return self

    @property
    def has_platform_recipient(self) -> bool:
        return not is_zero_address(self.platform_recipient)

    def to_dict(self) -> dict:
        """Convert to dictionary, without secrets."""
        return {
            "max_mint_amount": self.max_mint_amount,
            "free_mint_fee": self.free_mint_fee,
            "platform_recipient": self.platform_recipient,
            "platform_bps": self.platform_bps,
            "treasury": self.treasury,
            "admin": self.admin,
            "api_key": "configured" if self.api_key else "not set",
            "require_auth": self.require_auth,
            "log_level": self.log_level,
            "log_format": self.log_format,
            "host": self.host,
            "port": self.port,
        }
