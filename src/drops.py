"""
DropMint - Drop Registry

Per-token drop configuration for one collection: native price, optional
per-currency prices, time window and active flag, plus the two-tier fee
configuration (per-token override falling back to the collection default)
and the protocol fee table for free mints.

Drop lifecycle:
    created -> {inactive <-> active}
Drops are never deleted, only deactivated. Within an active drop a mint is
allowed while start_time <= now and (end_time == 0 or now <= end_time).
"""

from dataclasses import dataclass, field
from typing import Any

from errors import (
    CurrencyNotEnabledError,
    DropEndedError,
    DropNotActiveError,
    DropNotFoundError,
    DropNotStartedError,
    InvalidTimeWindowError,
)
from fees import FeeConfig, ProtocolFeeTable, required_payment
from ledger import NATIVE_CURRENCY, normalize_address

# =============================================================================
# Data Classes
# =============================================================================


@dataclass
class CurrencyPrice:
    """Price of one unit in a fungible currency."""

    price: int
    enabled: bool

    def to_dict(self) -> dict[str, Any]:
        return {"price": self.price, "enabled": self.enabled}


@dataclass
class Drop:
    """A priced, time-windowed, togglable sale for one token id."""

    token_id: int
    native_price: int
    start_time: int
    end_time: int = 0  # 0 = no end
    active: bool = True
    currency_prices: dict[str, CurrencyPrice] = field(default_factory=dict)

    def has_started(self, now: int) -> bool:
        return now >= self.start_time

    def has_ended(self, now: int) -> bool:
        return self.end_time != 0 and now > self.end_time

    def is_live(self, now: int) -> bool:
        return self.active and self.has_started(now) and not self.has_ended(now)

    def enabled_currencies(self) -> list[str]:
        return [c for c, p in self.currency_prices.items() if p.enabled]

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "token_id": self.token_id,
            "native_price": self.native_price,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "active": self.active,
            "currency_prices": {c: p.to_dict() for c, p in self.currency_prices.items()},
        }


def _check_window(start_time: int, end_time: int) -> None:
    if start_time < 0 or end_time < 0:
        raise InvalidTimeWindowError(start_time, end_time)
    if end_time != 0 and end_time < start_time:
        raise InvalidTimeWindowError(start_time, end_time)


# =============================================================================
# Registry
# =============================================================================


class DropRegistry:
    """
    Drop and fee configuration store for a single collection.

    This is plain state; permission checks and event emission belong to the
    owning collection.
    """

    def __init__(
        self,
        collection: str,
        default_fee_config: FeeConfig,
        protocol_fees: ProtocolFeeTable | None = None,
    ):
        self.collection = collection
        self.drops: dict[int, Drop] = {}
        self.next_token_id = 0
        self.default_fee_config = default_fee_config.validate()
        self.token_fee_configs: dict[int, FeeConfig] = {}
        self.has_override: dict[int, bool] = {}
        if protocol_fees is None:
            protocol_fees = ProtocolFeeTable()
        # Each collection owns its own copy
        self.protocol_fees = ProtocolFeeTable(protocol_fees.native_fee, dict(protocol_fees.currency_fees))

    # =========================================================================
    # Drops
    # =========================================================================

    def create(self, price: int, start_time: int, end_time: int = 0, active: bool = True) -> Drop:
        if price < 0:
            raise ValueError("price must be non-negative")
        _check_window(start_time, end_time)
        drop = Drop(
            token_id=self.next_token_id,
            native_price=price,
            start_time=start_time,
            end_time=end_time,
            active=active,
        )
        self.drops[drop.token_id] = drop
        self.next_token_id += 1
        return drop

    def exists(self, token_id: int) -> bool:
        return token_id in self.drops

    def get(self, token_id: int) -> Drop:
        drop = self.drops.get(token_id)
        if drop is None:
            raise DropNotFoundError(self.collection, token_id)
        return drop

    def update_price(self, token_id: int, price: int) -> Drop:
        if price < 0:
            raise ValueError("price must be non-negative")
        drop = self.get(token_id)
        drop.native_price = price
        return drop

    def update_start_time(self, token_id: int, start_time: int) -> Drop:
        drop = self.get(token_id)
        _check_window(start_time, drop.end_time)
        drop.start_time = start_time
        return drop

    def update_end_time(self, token_id: int, end_time: int) -> Drop:
        drop = self.get(token_id)
        _check_window(drop.start_time, end_time)
        drop.end_time = end_time
        return drop

    def set_active(self, token_id: int, active: bool) -> Drop:
        drop = self.get(token_id)
        drop.active = active
        return drop

    def set_currency_price(self, token_id: int, currency: str, price: int, enabled: bool) -> Drop:
        if price < 0:
            raise ValueError("price must be non-negative")
        drop = self.get(token_id)
        drop.currency_prices[normalize_address(currency)] = CurrencyPrice(price=price, enabled=enabled)
        return drop

    def is_currency_enabled(self, token_id: int, currency: str) -> bool:
        drop = self.drops.get(token_id)
        if drop is None:
            return False
        entry = drop.currency_prices.get(normalize_address(currency))
        return entry is not None and entry.enabled

    def check_mintable(self, token_id: int, now: int) -> Drop:
        """
        Return the drop if it can be minted at `now`.

        Raises:
            DropNotFoundError, DropNotActiveError, DropNotStartedError, DropEndedError
        """
        drop = self.get(token_id)
        if not drop.active:
            raise DropNotActiveError(self.collection, token_id)
        if not drop.has_started(now):
            raise DropNotStartedError(self.collection, token_id, drop.start_time, now)
        if drop.has_ended(now):
            raise DropEndedError(self.collection, token_id, drop.end_time, now)
        return drop

    # =========================================================================
    # Quotes
    # =========================================================================

    def native_quote(self, token_id: int, amount: int) -> tuple[int, bool]:
        """(required, is_free_mint) for paying `amount` units in native value."""
        drop = self.get(token_id)
        return required_payment(drop.native_price, amount, self.protocol_fees.native_fee)

    def currency_quote(self, token_id: int, amount: int, currency: str) -> tuple[int, bool]:
        """
        (required, is_free_mint) for paying `amount` units in `currency`.

        Only currencies explicitly enabled for the token are accepted, so a
        price of zero in an enabled currency is a genuine free mint.
        """
        currency = normalize_address(currency)
        if currency == NATIVE_CURRENCY:
            return self.native_quote(token_id, amount)
        drop = self.get(token_id)
        entry = drop.currency_prices.get(currency)
        if entry is None or not entry.enabled:
            raise CurrencyNotEnabledError(self.collection, token_id, currency)
        return required_payment(entry.price, amount, self.protocol_fees.fee_for(currency))

    # =========================================================================
    # Fee configuration
    # =========================================================================

    def fee_config_for(self, token_id: int) -> FeeConfig:
        if self.has_override.get(token_id, False):
            return self.token_fee_configs[token_id]
        return self.default_fee_config

    def has_custom_fee_config(self, token_id: int) -> bool:
        return self.has_override.get(token_id, False)

    def set_default_fee_config(self, fee_config: FeeConfig) -> None:
        self.default_fee_config = fee_config.validate()

    def set_token_fee_config(self, token_id: int, fee_config: FeeConfig) -> None:
        self.get(token_id)
        self.token_fee_configs[token_id] = fee_config.validate()
        self.has_override[token_id] = True

    def remove_token_fee_config(self, token_id: int) -> bool:
        """Drop a per-token override. Returns whether one existed."""
        existed = self.has_override.pop(token_id, False)
        self.token_fee_configs.pop(token_id, None)
        return existed
