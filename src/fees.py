"""
DropMint - Fee Engine

Pure, integer-exact computation of how a mint payment is divided between
the platform, the creator, the reward pool and the treasury.

Rules:
- Percentages are basis points (10000 bps = 100%); division truncates.
- Treasury receives the residual, so the legs always sum to the payment.
- The reward pool share is reserved against treasury: it is separated out
  only when it is actually paid (bps > 0 and a recipient is set).
- Free mints (price zero) charge a flat protocol fee per unit that goes
  entirely to the platform, whatever bps are configured.

Usage:
    config = FeeConfig(platform, 500, creator, 1000, reward_pool, 300, treasury)
    split(2000, config, is_free_mint=False)
    # -> platform=100, creator=200, reward_pool=60, treasury=1640
"""

from dataclasses import asdict, dataclass, field, replace
from typing import Any

from errors import InvalidBasisPointsError, ZeroAddressError
from ledger import NATIVE_CURRENCY, ZERO_ADDRESS, is_zero_address, normalize_address

# =============================================================================
# Constants
# =============================================================================

BPS_DENOMINATOR = 10_000

# Flat per-unit protocol fee for zero-priced native mints (0.000111 ETH in wei)
DEFAULT_FREE_MINT_FEE = 111_000_000_000_000


# =============================================================================
# Data Classes
# =============================================================================


@dataclass(frozen=True)
class FeeConfig:
    """Four-way fee configuration for a collection or a single token."""

    platform_recipient: str
    platform_bps: int
    creator_recipient: str
    creator_bps: int
    reward_pool_recipient: str = ZERO_ADDRESS
    reward_pool_bps: int = 0
    treasury: str = ZERO_ADDRESS

    @property
    def total_bps(self) -> int:
        return self.platform_bps + self.creator_bps + self.reward_pool_bps

    @property
    def pays_reward_pool(self) -> bool:
        return self.reward_pool_bps > 0 and not is_zero_address(self.reward_pool_recipient)

    def validate(self) -> "FeeConfig":
        """
        Reject configurations that could never settle.

        Raises:
            ZeroAddressError: platform or creator recipient is unset
            InvalidBasisPointsError: a bps value is negative or the sum exceeds 10000
        """
        if is_zero_address(self.platform_recipient):
            raise ZeroAddressError("platform_recipient")
        if is_zero_address(self.creator_recipient):
            raise ZeroAddressError("creator_recipient")
        if min(self.platform_bps, self.creator_bps, self.reward_pool_bps) < 0:
            raise InvalidBasisPointsError(self.total_bps)
        if self.total_bps > BPS_DENOMINATOR:
            raise InvalidBasisPointsError(self.total_bps)
        return self

    def with_changes(self, **changes: Any) -> "FeeConfig":
        """Return a validated copy with some fields replaced."""
        return replace(self, **changes).validate()

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FeeConfig":
        """Create from dictionary."""
        return cls(
            platform_recipient=data["platform_recipient"],
            platform_bps=int(data["platform_bps"]),
            creator_recipient=data["creator_recipient"],
            creator_bps=int(data["creator_bps"]),
            reward_pool_recipient=data.get("reward_pool_recipient", ZERO_ADDRESS),
            reward_pool_bps=int(data.get("reward_pool_bps", 0)),
            treasury=data.get("treasury", ZERO_ADDRESS),
        )


@dataclass(frozen=True)
class FeeSplit:
    """Result of splitting one payment."""

    total: int
    platform: int
    creator: int
    reward_pool: int
    treasury: int
    reward_pool_paid: bool
    is_free_mint: bool

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)


@dataclass
class ProtocolFeeTable:
    """Flat per-unit fees charged for free mints, per payment currency."""

    native_fee: int = DEFAULT_FREE_MINT_FEE
    currency_fees: dict[str, int] = field(default_factory=dict)

    def fee_for(self, currency: str) -> int:
        if currency == NATIVE_CURRENCY:
            return self.native_fee
        return self.currency_fees.get(normalize_address(currency), 0)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {"native_fee": self.native_fee, "currency_fees": dict(self.currency_fees)}


# =============================================================================
# Fee Computation
# =============================================================================


def required_payment(unit_price: int, amount: int, free_mint_fee: int) -> tuple[int, bool]:
    """
    Payment owed for `amount` units at `unit_price`.

    Returns:
        Tuple of (required, is_free_mint). A zero price makes the mint free,
        in which case the flat protocol fee is charged per unit instead.
    """
    if unit_price < 0 or amount < 0 or free_mint_fee < 0:
        raise ValueError("price, amount and fee must be non-negative")
    if unit_price == 0:
        return free_mint_fee * amount, True
    return unit_price * amount, False


def split(required: int, fee_config: FeeConfig, is_free_mint: bool) -> FeeSplit:
    """
    Split a payment into (platform, creator, reward pool, treasury) legs.

    Args:
        required: Exact payment being distributed
        fee_config: Resolved configuration for the token being minted
        is_free_mint: Whether `required` is a flat protocol fee

    Returns:
        FeeSplit whose legs sum to `required` exactly
    """
    if required < 0:
        raise ValueError("required payment must be non-negative")

    if is_free_mint:
        return FeeSplit(
            total=required,
            platform=required,
            creator=0,
            reward_pool=0,
            treasury=0,
            reward_pool_paid=False,
            is_free_mint=True,
        )

    platform = required * fee_config.platform_bps // BPS_DENOMINATOR
    creator = required * fee_config.creator_bps // BPS_DENOMINATOR
    reward_pool = required * fee_config.reward_pool_bps // BPS_DENOMINATOR
    treasury = required - platform - creator

    paid = fee_config.pays_reward_pool and reward_pool > 0
    if paid:
        treasury -= reward_pool
    else:
        # Unpaid reward share stays with treasury
        reward_pool = 0

    return FeeSplit(
        total=required,
        platform=platform,
        creator=creator,
        reward_pool=reward_pool,
        treasury=treasury,
        reward_pool_paid=paid,
        is_free_mint=False,
    )
