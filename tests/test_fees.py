"""
Tests for the fee engine (src/fees.py)

Tests cover:
- Basis point split with residual to treasury
- Reward pool reservation against treasury
- Free mint protocol fee routing
- Fee configuration validation
"""

import pytest

from errors import InvalidBasisPointsError, ZeroAddressError
from fees import (
    DEFAULT_FREE_MINT_FEE,
    FeeConfig,
    ProtocolFeeTable,
    required_payment,
    split,
)
from ledger import NATIVE_CURRENCY, ZERO_ADDRESS, derive_address

PLATFORM = derive_address("fees:platform")
CREATOR = derive_address("fees:creator")
REWARD = derive_address("fees:reward")
TREASURY = derive_address("fees:treasury")
USDC = derive_address("fees:usdc")


def make_config(platform_bps=500, creator_bps=1000, reward_pool_bps=300, reward_pool=REWARD):
    return FeeConfig(
        platform_recipient=PLATFORM,
        platform_bps=platform_bps,
        creator_recipient=CREATOR,
        creator_bps=creator_bps,
        reward_pool_recipient=reward_pool,
        reward_pool_bps=reward_pool_bps,
        treasury=TREASURY,
    )


# ============================================================
# Split Tests
# ============================================================

class TestSplit:
    """Tests for the four-way split."""

    def test_priced_mint_example(self):
        """Price 1000 x 2 with 5%/10%/3% splits 100/200/60/1640."""
        required, is_free = required_payment(1000, 2, DEFAULT_FREE_MINT_FEE)
        result = split(required, make_config(), is_free)

        assert required == 2000
        assert is_free is False
        assert result.platform == 100
        assert result.creator == 200
        assert result.reward_pool == 60
        assert result.treasury == 1640
        assert result.reward_pool_paid is True

    def test_free_mint_example(self):
        """A zero price charges the flat fee per unit, all to the platform."""
        required, is_free = required_payment(0, 3, 111_000_000_000_000)
        result = split(required, make_config(), is_free)

        assert required == 333_000_000_000_000
        assert is_free is True
        assert result.platform == 333_000_000_000_000
        assert result.creator == 0
        assert result.reward_pool == 0
        assert result.treasury == 0

    def test_free_mint_ignores_configured_bps(self):
        """Free mints route everything to the platform regardless of bps."""
        result = split(1234, make_config(platform_bps=0, creator_bps=9000), is_free_mint=True)

        assert result.platform == 1234
        assert result.creator == 0

    def test_unpaid_reward_pool_stays_with_treasury(self):
        """With no reward recipient the reserved share is kept by treasury."""
        result = split(2000, make_config(reward_pool=ZERO_ADDRESS), is_free_mint=False)

        assert result.reward_pool == 0
        assert result.reward_pool_paid is False
        assert result.treasury == 1700

    def test_zero_reward_bps_is_not_paid(self):
        result = split(2000, make_config(reward_pool_bps=0), is_free_mint=False)

        assert result.reward_pool_paid is False
        assert result.treasury == 1700

    def test_truncation_residual_lands_in_treasury(self):
        """Integer truncation never loses value."""
        result = split(999, make_config(platform_bps=333, creator_bps=333, reward_pool_bps=333), False)

        assert result.platform == 33
        assert result.creator == 33
        assert result.reward_pool == 33
        assert result.treasury == 999 - 99

    @pytest.mark.parametrize("required", [0, 1, 7, 99, 10_001, 123_456_789, 10**18 + 3])
    @pytest.mark.parametrize("bps", [(0, 0, 0), (500, 1000, 300), (10_000, 0, 0), (3333, 3333, 3334), (1, 1, 1)])
    def test_legs_always_sum_to_payment(self, required, bps):
        """platform + creator + reward pool + treasury == required, exactly."""
        result = split(required, make_config(*bps), is_free_mint=False)

        total = result.platform + result.creator + result.reward_pool + result.treasury
        assert total == required
        assert min(result.platform, result.creator, result.reward_pool, result.treasury) >= 0

    def test_full_allocation_leaves_treasury_empty(self):
        result = split(10_000, make_config(3333, 3333, 3334), False)

        assert result.treasury == 0

    def test_negative_payment_rejected(self):
        with pytest.raises(ValueError):
            split(-1, make_config(), False)


# ============================================================
# Required Payment Tests
# ============================================================

class TestRequiredPayment:
    """Tests for the price x amount / protocol fee rule."""

    def test_priced(self):
        assert required_payment(250, 4, 999) == (1000, False)

    def test_free_with_zero_fee(self):
        assert required_payment(0, 5, 0) == (0, True)

    def test_negative_inputs_rejected(self):
        with pytest.raises(ValueError):
            required_payment(-1, 1, 0)


# ============================================================
# Fee Config Tests
# ============================================================

class TestFeeConfig:
    """Tests for fee configuration validation."""

    def test_valid_config(self):
        config = make_config().validate()

        assert config.total_bps == 1800
        assert config.pays_reward_pool is True

    def test_zero_platform_recipient_rejected(self):
        with pytest.raises(ZeroAddressError) as exc:
            FeeConfig(ZERO_ADDRESS, 500, CREATOR, 1000).validate()

        assert exc.value.details["field"] == "platform_recipient"

    def test_zero_creator_recipient_rejected(self):
        with pytest.raises(ZeroAddressError):
            FeeConfig(PLATFORM, 500, ZERO_ADDRESS, 1000).validate()

    def test_bps_over_limit_rejected(self):
        with pytest.raises(InvalidBasisPointsError):
            make_config(6000, 4000, 1).validate()

    def test_negative_bps_rejected(self):
        with pytest.raises(InvalidBasisPointsError):
            make_config(-1, 100, 0).validate()

    def test_with_changes_validates(self):
        config = make_config()

        updated = config.with_changes(creator_bps=2000)
        assert updated.creator_bps == 2000
        assert config.creator_bps == 1000

        with pytest.raises(InvalidBasisPointsError):
            config.with_changes(creator_bps=9500)

    def test_dict_round_trip(self):
        config = make_config()

        assert FeeConfig.from_dict(config.to_dict()) == config


class TestProtocolFeeTable:
    """Tests for per-currency free mint fees."""

    def test_native_default(self):
        assert ProtocolFeeTable().fee_for(NATIVE_CURRENCY) == DEFAULT_FREE_MINT_FEE

    def test_currency_fee_defaults_to_zero(self):
        table = ProtocolFeeTable(currency_fees={USDC: 5})

        assert table.fee_for(USDC) == 5
        assert table.fee_for(derive_address("fees:dai")) == 0
