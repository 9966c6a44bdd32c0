"""
Tests for the drop registry (src/drops.py)

Tests cover:
- Drop creation and token id allocation
- Time window and active flag
- Native and per-currency quotes
- Two-tier fee configuration
"""

import pytest

from drops import DropRegistry
from errors import (
    CurrencyNotEnabledError,
    DropEndedError,
    DropNotActiveError,
    DropNotFoundError,
    DropNotStartedError,
    InvalidTimeWindowError,
)
from fees import FeeConfig, ProtocolFeeTable
from ledger import NATIVE_CURRENCY, derive_address

COLLECTION = derive_address("drops:collection")
PLATFORM = derive_address("drops:platform")
CREATOR = derive_address("drops:creator")
OTHER_CREATOR = derive_address("drops:other-creator")
USDC = derive_address("drops:usdc")


@pytest.fixture
def registry():
    config = FeeConfig(PLATFORM, 500, CREATOR, 1000)
    return DropRegistry(COLLECTION, config, ProtocolFeeTable(native_fee=7, currency_fees={USDC: 3}))


# ============================================================
# Drop Lifecycle Tests
# ============================================================

class TestDropLifecycle:
    """Tests for creating and updating drops."""

    def test_token_ids_increment_from_zero(self, registry):
        first = registry.create(100, 10)
        second = registry.create(200, 10)

        assert (first.token_id, second.token_id) == (0, 1)
        assert registry.next_token_id == 2

    def test_end_before_start_rejected(self, registry):
        with pytest.raises(InvalidTimeWindowError):
            registry.create(100, start_time=50, end_time=40)

        assert registry.next_token_id == 0

    def test_unknown_drop(self, registry):
        with pytest.raises(DropNotFoundError):
            registry.get(5)

    def test_updates(self, registry):
        drop = registry.create(100, 10, 100)
        registry.update_price(drop.token_id, 150)
        registry.update_start_time(drop.token_id, 20)
        registry.update_end_time(drop.token_id, 0)
        registry.set_active(drop.token_id, False)

        assert drop.native_price == 150
        assert drop.start_time == 20
        assert drop.end_time == 0
        assert drop.active is False

    def test_update_end_before_start_rejected(self, registry):
        drop = registry.create(100, 10, 100)

        with pytest.raises(InvalidTimeWindowError):
            registry.update_end_time(drop.token_id, 5)


class TestMintability:
    """Tests for the active flag and time window."""

    def test_window_boundaries_inclusive(self, registry):
        drop = registry.create(100, start_time=10, end_time=20)

        assert registry.check_mintable(drop.token_id, 10) is drop
        assert registry.check_mintable(drop.token_id, 20) is drop

    def test_not_started(self, registry):
        drop = registry.create(100, start_time=10)

        with pytest.raises(DropNotStartedError):
            registry.check_mintable(drop.token_id, 9)

    def test_ended(self, registry):
        drop = registry.create(100, start_time=10, end_time=20)

        with pytest.raises(DropEndedError):
            registry.check_mintable(drop.token_id, 21)

    def test_open_ended(self, registry):
        drop = registry.create(100, start_time=10)

        assert drop.is_live(10**12)

    def test_inactive_checked_first(self, registry):
        drop = registry.create(100, start_time=10, active=False)

        with pytest.raises(DropNotActiveError):
            registry.check_mintable(drop.token_id, 0)


# ============================================================
# Quote Tests
# ============================================================

class TestQuotes:
    """Tests for required payment per currency."""

    def test_native_quote(self, registry):
        drop = registry.create(100, 0)

        assert registry.native_quote(drop.token_id, 3) == (300, False)
        assert registry.currency_quote(drop.token_id, 3, NATIVE_CURRENCY) == (300, False)

    def test_free_native_quote_uses_protocol_fee(self, registry):
        drop = registry.create(0, 0)

        assert registry.native_quote(drop.token_id, 4) == (28, True)

    def test_currency_must_be_enabled(self, registry):
        drop = registry.create(100, 0)

        with pytest.raises(CurrencyNotEnabledError):
            registry.currency_quote(drop.token_id, 1, USDC)

        registry.set_currency_price(drop.token_id, USDC, 50, enabled=False)
        with pytest.raises(CurrencyNotEnabledError):
            registry.currency_quote(drop.token_id, 1, USDC)

    def test_enabled_currency_quote(self, registry):
        drop = registry.create(100, 0)
        registry.set_currency_price(drop.token_id, USDC, 50, enabled=True)

        assert registry.currency_quote(drop.token_id, 2, USDC) == (100, False)
        assert registry.is_currency_enabled(drop.token_id, USDC)
        assert drop.enabled_currencies() == [USDC]

    def test_checksummed_currency_shares_one_price(self, registry):
        drop = registry.create(100, 0)
        registry.set_currency_price(drop.token_id, "0x" + USDC[2:].upper(), 50, enabled=True)

        assert drop.enabled_currencies() == [USDC]
        assert registry.is_currency_enabled(drop.token_id, "0x" + USDC[2:].upper())
        assert registry.currency_quote(drop.token_id, 1, "0x" + USDC[2:].upper()) == (50, False)

    def test_enabled_zero_price_is_a_free_mint(self, registry):
        """An enabled zero price charges the currency's protocol fee."""
        drop = registry.create(100, 0)
        registry.set_currency_price(drop.token_id, USDC, 0, enabled=True)

        assert registry.currency_quote(drop.token_id, 2, USDC) == (6, True)


# ============================================================
# Fee Configuration Tests
# ============================================================

class TestFeeConfiguration:
    """Tests for per-token overrides falling back to the default."""

    def test_default_applies_without_override(self, registry):
        drop = registry.create(100, 0)

        assert registry.fee_config_for(drop.token_id) == registry.default_fee_config
        assert not registry.has_custom_fee_config(drop.token_id)

    def test_override_and_removal(self, registry):
        drop = registry.create(100, 0)
        override = FeeConfig(PLATFORM, 100, OTHER_CREATOR, 2000)

        registry.set_token_fee_config(drop.token_id, override)
        assert registry.fee_config_for(drop.token_id) == override
        assert registry.has_custom_fee_config(drop.token_id)

        assert registry.remove_token_fee_config(drop.token_id) is True
        assert registry.fee_config_for(drop.token_id) == registry.default_fee_config
        assert registry.remove_token_fee_config(drop.token_id) is False

    def test_override_requires_existing_drop(self, registry):
        with pytest.raises(DropNotFoundError):
            registry.set_token_fee_config(9, FeeConfig(PLATFORM, 100, CREATOR, 100))

    def test_protocol_table_is_copied(self):
        table = ProtocolFeeTable(native_fee=1)
        first = DropRegistry(COLLECTION, FeeConfig(PLATFORM, 0, CREATOR, 0), table)
        first.protocol_fees.native_fee = 99

        assert table.native_fee == 1
