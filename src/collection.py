"""
DropMint - Drop Collection

A multi-token (ERC1155-style) collection that sells its tokens through
drops. Each public mint entrypoint follows the same sequence:

1. Validate recipient, amounts and drop state; quote the required payment
2. Check the payment (attached value, or fungible balance and allowance)
3. Mint and update supply counters
4. Split every item's payment with the fee engine and move each leg
5. Refund any excess native value and emit events

All state changes happen before any value leaves the contract, the
collection's re-entrancy guard is held throughout, and any failure rolls
the whole call back.

Interface versions:
- 1: batch_mint_with_currency takes no referrer
- 2: batch_mint_with_currency accepts a referrer; strict fungible mints
"""

import logging
from dataclasses import dataclass
from typing import Any

import fees
from drops import Drop, DropRegistry
from errors import (
    ArrayLengthMismatchError,
    EmptyBatchError,
    InsufficientAllowanceError,
    InsufficientBalanceError,
    InsufficientPaymentError,
    InvalidAmountError,
    InvalidCurrencyError,
    InvalidRecipientError,
    PaymentError,
    RefundFailedError,
    SettlementError,
    TransferFailedError,
    ZeroAddressError,
)
from fees import FeeConfig, FeeSplit, ProtocolFeeTable
from ledger import (
    NATIVE_CURRENCY,
    ZERO_ADDRESS,
    Contract,
    Ledger,
    entrypoint,
    is_zero_address,
    normalize_address,
)
from monitoring.metrics import metrics
from permissions import Authorizer, Role
from tokens import FungibleToken
from transfers import PlainTransfer, TransferStrategy, strategy_for

logger = logging.getLogger(__name__)

# =============================================================================
# Constants
# =============================================================================

DEFAULT_MAX_MINT_AMOUNT = 100

INTERFACE_VERSION = 2

ENTRYPOINTS_BY_VERSION = {
    1: frozenset({
        "mint",
        "batch_mint",
        "mint_with_currency",
        "batch_mint_with_currency",
    }),
    2: frozenset({
        "mint",
        "batch_mint",
        "mint_with_currency",
        "batch_mint_with_currency",
        "batch_mint_with_currency_referral",
        "mint_with_currency_strict",
    }),
}


@dataclass(frozen=True)
class PricedItem:
    """One validated line of a mint call."""

    token_id: int
    amount: int
    required: int
    is_free_mint: bool
    fee_config: FeeConfig


# =============================================================================
# Collection
# =============================================================================


class DropCollection(Contract):
    """
    Drop-based multi-token collection.

    Args:
        ledger: Host ledger
        name: Human-readable collection name (also seeds the address)
        authorizer: Capability gating every configuration write
        default_fee_config: Collection-wide fee configuration
        protocol_fees: Flat fees charged for free mints
        max_mint_amount: Upper bound on units per item in one call
    """

    _state_fields = ("drops", "_balances", "_token_supply", "collection_supply")

    def __init__(
        self,
        ledger: Ledger,
        name: str,
        authorizer: Authorizer,
        default_fee_config: FeeConfig,
        protocol_fees: ProtocolFeeTable | None = None,
        max_mint_amount: int = DEFAULT_MAX_MINT_AMOUNT,
    ):
        super().__init__(ledger, f"collection:{name}")
        if max_mint_amount < 1:
            raise ValueError("max_mint_amount must be at least 1")
        self.name = name
        self.authorizer = authorizer
        self.max_mint_amount = max_mint_amount
        self.drops = DropRegistry(self.address, default_fee_config, protocol_fees)
        self._balances: dict[tuple[str, int], int] = {}
        self._token_supply: dict[int, int] = {}
        self.collection_supply = 0

    # =========================================================================
    # Views
    # =========================================================================

    def interface_version(self) -> int:
        return INTERFACE_VERSION

    def supports_entrypoint(self, name: str) -> bool:
        return name in ENTRYPOINTS_BY_VERSION[self.interface_version()]

    def get_drop(self, token_id: int) -> Drop:
        return self.drops.get(token_id)

    @property
    def next_token_id(self) -> int:
        return self.drops.next_token_id

    def get_fee_config(self, token_id: int) -> FeeConfig:
        return self.drops.fee_config_for(token_id)

    def has_custom_fee_config(self, token_id: int) -> bool:
        return self.drops.has_custom_fee_config(token_id)

    def free_mint_fee(self, currency: str = NATIVE_CURRENCY) -> int:
        return self.drops.protocol_fees.fee_for(currency)

    def balance_of(self, owner: str, token_id: int) -> int:
        return self._balances.get((owner, token_id), 0)

    def get_token_total_supply(self, token_id: int) -> int:
        return self._token_supply.get(token_id, 0)

    def get_collection_total_supply(self) -> int:
        return self.collection_supply

    def is_currency_enabled(self, token_id: int, currency: str) -> bool:
        return self.drops.is_currency_enabled(token_id, currency)

    def quote(self, token_id: int, amount: int, currency: str = NATIVE_CURRENCY) -> tuple[int, bool]:
        """(required, is_free_mint) for `amount` units paid in `currency`."""
        return self.drops.currency_quote(token_id, amount, currency)

    def preview_split(self, token_id: int, amount: int, currency: str = NATIVE_CURRENCY) -> FeeSplit:
        required, is_free = self.quote(token_id, amount, currency)
        return fees.split(required, self.get_fee_config(token_id), is_free)

    def validate_mint(self, token_id: int, amount: int, now: int | None = None) -> Drop:
        """
        Check that `amount` units of `token_id` could be minted right now.

        Raises:
            InvalidAmountError, DropNotFoundError, DropNotActiveError,
            DropNotStartedError, DropEndedError
        """
        self._check_amount(amount)
        return self.drops.check_mintable(token_id, self.ledger.now() if now is None else now)

    # =========================================================================
    # Native mint entrypoints
    # =========================================================================

    @entrypoint(payable=True)
    def mint(self, sender: str, to: str, token_id: int, amount: int, *, value: int,
             referrer: str = ZERO_ADDRESS) -> int:
        """
        Mint `amount` units of `token_id` to `to`, paid in native value.

        Returns:
            The amount of value consumed (excess is refunded to `sender`)
        """
        items = self._price_items(to, [token_id], [amount], NATIVE_CURRENCY)
        return self._settle_native(sender, to, items, value, referrer, batch=False)

    @entrypoint(payable=True)
    def batch_mint(self, sender: str, to: str, token_ids: list[int], amounts: list[int], *,
                   value: int, referrer: str = ZERO_ADDRESS) -> int:
        """Mint several token ids in one call with a single native refund."""
        items = self._price_items(to, token_ids, amounts, NATIVE_CURRENCY)
        return self._settle_native(sender, to, items, value, referrer, batch=True)

    # =========================================================================
    # Fungible mint entrypoints
    # =========================================================================

    @entrypoint
    def mint_with_currency(self, sender: str, to: str, token_id: int, amount: int, currency: str,
                           referrer: str = ZERO_ADDRESS) -> int:
        """Mint paid in an enabled fungible currency, pulled from `sender`."""
        currency = normalize_address(currency)
        items = self._price_items(to, [token_id], [amount], currency)
        return self._settle_fungible(sender, to, items, currency, referrer, PlainTransfer(), batch=False)

    @entrypoint
    def batch_mint_with_currency(self, sender: str, to: str, token_ids: list[int], amounts: list[int],
                                 currency: str, referrer: str = ZERO_ADDRESS) -> int:
        currency = normalize_address(currency)
        items = self._price_items(to, token_ids, amounts, currency)
        return self._settle_fungible(sender, to, items, currency, referrer, PlainTransfer(), batch=True)

    @entrypoint
    def mint_with_currency_strict(self, sender: str, to: str, token_id: int, amount: int, currency: str,
                                  strict_transfer: bool, referrer: str = ZERO_ADDRESS) -> int:
        """
        Fungible mint that, when `strict_transfer` is set, verifies every
        leg arrived in full and rejects fee-on-transfer currencies.
        """
        currency = normalize_address(currency)
        items = self._price_items(to, [token_id], [amount], currency)
        return self._settle_fungible(
            sender, to, items, currency, referrer, strategy_for(strict_transfer), batch=False,
        )

    # =========================================================================
    # Settlement
    # =========================================================================

    def _check_amount(self, amount: int) -> None:
        if amount < 1 or amount > self.max_mint_amount:
            raise InvalidAmountError(amount, self.max_mint_amount)

    def _price_items(self, to: str, token_ids: list[int], amounts: list[int], currency: str) -> list[PricedItem]:
        if is_zero_address(to):
            raise InvalidRecipientError()
        if len(token_ids) != len(amounts):
            raise ArrayLengthMismatchError(len(token_ids), len(amounts))
        if not token_ids:
            raise EmptyBatchError()

        now = self.ledger.now()
        items = []
        for token_id, amount in zip(token_ids, amounts):
            self.validate_mint(token_id, amount, now)
            required, is_free = self.drops.currency_quote(token_id, amount, currency)
            items.append(PricedItem(
                token_id=token_id,
                amount=amount,
                required=required,
                is_free_mint=is_free,
                fee_config=self.drops.fee_config_for(token_id),
            ))
        return items

    def _mint_units(self, to: str, token_id: int, amount: int) -> None:
        key = (to, token_id)
        self._balances[key] = self._balances.get(key, 0) + amount
        self._token_supply[token_id] = self.get_token_total_supply(token_id) + amount
        self.collection_supply += amount

    def _settle_native(self, sender: str, to: str, items: list[PricedItem], value: int,
                       referrer: str, batch: bool) -> int:
        total = sum(item.required for item in items)
        if value < total:
            raise InsufficientPaymentError(total, value, NATIVE_CURRENCY)

        for item in items:
            self._mint_units(to, item.token_id, item.amount)
        self._emit_mint(to, items, NATIVE_CURRENCY, total, referrer, batch)

        for item in items:
            split = fees.split(item.required, item.fee_config, item.is_free_mint)
            self._distribute_native(item, split)

        excess = value - total
        if excess:
            self._refund(sender, excess)

        self._record_mint(items, NATIVE_CURRENCY, total, "batch_mint" if batch else "mint")
        return total

    def _settle_fungible(self, sender: str, to: str, items: list[PricedItem], currency: str,
                         referrer: str, strategy: TransferStrategy, batch: bool) -> int:
        token = self._fungible(currency)
        total = sum(item.required for item in items)

        balance = token.balance_of(sender)
        if balance < total:
            raise InsufficientBalanceError(total, balance, currency)
        allowance = token.allowance(sender, self.address)
        if allowance < total:
            raise InsufficientAllowanceError(total, allowance, currency)

        for item in items:
            self._mint_units(to, item.token_id, item.amount)
        self._emit_mint(to, items, currency, total, referrer, batch)

        for item in items:
            split = fees.split(item.required, item.fee_config, item.is_free_mint)
            self._distribute_fungible(token, sender, item, split, strategy)

        self._record_mint(items, currency, total, "batch_mint_with_currency" if batch else "mint_with_currency")
        return total

    def _fee_legs(self, config: FeeConfig, split: FeeSplit) -> list[tuple[str, str, int]]:
        """(leg, recipient, amount) for every leg that must move."""
        legs = [
            ("platform", config.platform_recipient, split.platform),
            ("creator", config.creator_recipient, split.creator),
        ]
        if split.reward_pool_paid:
            legs.append(("reward_pool", config.reward_pool_recipient, split.reward_pool))
        if split.treasury:
            # No treasury configured: the collection keeps the residual
            treasury = self.address if is_zero_address(config.treasury) else config.treasury
            legs.append(("treasury", treasury, split.treasury))
        return legs

    def _distribute_native(self, item: PricedItem, split: FeeSplit) -> None:
        for _leg, recipient, amount in self._fee_legs(item.fee_config, split):
            if recipient == self.address:
                continue
            self._send_native(recipient, amount)
        self._emit_fees(item, split, NATIVE_CURRENCY)

    def _distribute_fungible(self, token: FungibleToken, payer: str, item: PricedItem, split: FeeSplit,
                             strategy: TransferStrategy) -> None:
        for _leg, recipient, amount in self._fee_legs(item.fee_config, split):
            strategy.pull(token, self.address, payer, recipient, amount)
        self._emit_fees(item, split, token.address)

    def _send_native(self, recipient: str, amount: int) -> None:
        try:
            self.ledger.transfer(self.address, recipient, amount)
        except PaymentError as e:
            raise TransferFailedError(recipient, amount, NATIVE_CURRENCY, e.message) from e

    def _refund(self, recipient: str, amount: int) -> None:
        try:
            self.ledger.transfer(self.address, recipient, amount)
        except (PaymentError, SettlementError) as e:
            raise RefundFailedError(recipient, amount) from e

    def _fungible(self, currency: str) -> FungibleToken:
        token = self.ledger.contract_at(currency)
        if not isinstance(token, FungibleToken):
            raise InvalidCurrencyError(currency)
        return token

    # =========================================================================
    # Events & metrics
    # =========================================================================

    def _emit_mint(self, to: str, items: list[PricedItem], currency: str, total: int,
                   referrer: str, batch: bool) -> None:
        timestamp = self.ledger.now()
        if batch:
            data = {
                "to": to,
                "token_ids": [i.token_id for i in items],
                "amounts": [i.amount for i in items],
                "currency": currency,
                "amount_paid": total,
                "timestamp": timestamp,
            }
            name = "BatchTokensMinted"
        else:
            item = items[0]
            data = {
                "to": to,
                "token_id": item.token_id,
                "amount": item.amount,
                "currency": currency,
                "amount_paid": total,
                "timestamp": timestamp,
            }
            name = "TokensMinted"
        self.emit(name, **data)
        if not is_zero_address(referrer):
            self.emit(f"{name}WithReferral", referrer=referrer, **data)

    def _emit_fees(self, item: PricedItem, split: FeeSplit, currency: str) -> None:
        self.emit(
            "FeesDistributed",
            token_id=item.token_id,
            currency=currency,
            platform=split.platform,
            creator=split.creator,
            reward_pool=split.reward_pool,
            treasury=split.treasury,
            is_free_mint=split.is_free_mint,
        )

    def _record_mint(self, items: list[PricedItem], currency: str, total: int, entrypoint_name: str) -> None:
        """Count and log the mint once the enclosing call has committed."""
        label = "native" if currency == NATIVE_CURRENCY else currency
        units = sum(i.amount for i in items)

        def record():
            metrics.increment("mints_total", labels={"currency": label, "entrypoint": entrypoint_name})
            metrics.increment("tokens_minted_total", units)
            metrics.increment("payments_total", total, labels={"currency": label})
            logger.info(
                "Minted %d unit(s) across %d token id(s) on %s",
                units, len(items), self.name,
                extra={"collection": self.address, "currency": currency, "amount_paid": total},
            )

        self.ledger.on_commit(record)

    # =========================================================================
    # Drop administration
    # =========================================================================

    @entrypoint
    def create_drop(self, sender: str, price: int, start_time: int, end_time: int = 0,
                    active: bool = True) -> int:
        """Create a drop for the next token id and return that id."""
        self.authorizer.require(Role.CREATOR, sender)
        drop = self.drops.create(price, start_time, end_time, active)
        self.emit("DropCreated", token_id=drop.token_id, price=price, start_time=start_time,
                  end_time=end_time, active=active)
        logger.info("Created drop %d on %s", drop.token_id, self.name)
        return drop.token_id

    @entrypoint
    def update_drop_price(self, sender: str, token_id: int, price: int) -> None:
        self.authorizer.require(Role.CREATOR, sender)
        self.drops.update_price(token_id, price)
        self.emit("DropUpdated", token_id=token_id, field="native_price", value=price)

    @entrypoint
    def update_drop_start_time(self, sender: str, token_id: int, start_time: int) -> None:
        self.authorizer.require(Role.CREATOR, sender)
        self.drops.update_start_time(token_id, start_time)
        self.emit("DropUpdated", token_id=token_id, field="start_time", value=start_time)

    @entrypoint
    def update_drop_end_time(self, sender: str, token_id: int, end_time: int) -> None:
        self.authorizer.require(Role.CREATOR, sender)
        self.drops.update_end_time(token_id, end_time)
        self.emit("DropUpdated", token_id=token_id, field="end_time", value=end_time)

    @entrypoint
    def set_drop_active(self, sender: str, token_id: int, active: bool) -> None:
        self.authorizer.require(Role.CREATOR, sender)
        self.drops.set_active(token_id, active)
        self.emit("DropUpdated", token_id=token_id, field="active", value=active)

    @entrypoint
    def set_currency_price(self, sender: str, token_id: int, currency: str, price: int,
                           enabled: bool = True) -> None:
        """Price a token in a fungible currency; `enabled` gates its use."""
        self.authorizer.require(Role.CREATOR, sender)
        currency = normalize_address(currency)
        if is_zero_address(currency):
            raise InvalidCurrencyError(currency)
        self._fungible(currency)
        self.drops.set_currency_price(token_id, currency, price, enabled)
        self.emit("DropUpdated", token_id=token_id, field="currency_price",
                  value={"currency": currency, "price": price, "enabled": enabled})

    # =========================================================================
    # Fee administration
    # =========================================================================

    @entrypoint
    def set_default_fee_config(self, sender: str, fee_config: FeeConfig) -> None:
        self.authorizer.require(Role.ADMIN, sender)
        self.drops.set_default_fee_config(fee_config)
        self.emit("FeeConfigUpdated", token_id=None, fee_config=fee_config.to_dict())

    @entrypoint
    def update_token_fee_config(self, sender: str, token_id: int, fee_config: FeeConfig) -> None:
        self.authorizer.require(Role.ADMIN, sender)
        self.drops.set_token_fee_config(token_id, fee_config)
        self.emit("TokenFeeConfigUpdated", token_id=token_id, fee_config=fee_config.to_dict())

    @entrypoint
    def remove_token_fee_config(self, sender: str, token_id: int) -> bool:
        self.authorizer.require(Role.ADMIN, sender)
        removed = self.drops.remove_token_fee_config(token_id)
        if removed:
            self.emit("TokenFeeConfigRemoved", token_id=token_id)
        return removed

    @entrypoint
    def update_creator_recipient(self, sender: str, recipient: str) -> None:
        self.authorizer.require(Role.CREATOR, sender)
        if is_zero_address(recipient):
            raise ZeroAddressError("creator_recipient")
        config = self.drops.default_fee_config.with_changes(creator_recipient=recipient)
        self.drops.set_default_fee_config(config)
        self.emit("FeeConfigUpdated", token_id=None, fee_config=config.to_dict())

    @entrypoint
    def update_reward_pool_recipient(self, sender: str, recipient: str) -> None:
        """Set (or clear, with the zero address) the default reward pool recipient."""
        self.authorizer.require(Role.ADMIN, sender)
        config = self.drops.default_fee_config.with_changes(reward_pool_recipient=recipient)
        self.drops.set_default_fee_config(config)
        self.emit("FeeConfigUpdated", token_id=None, fee_config=config.to_dict())

    @entrypoint
    def set_free_mint_fee(self, sender: str, fee: int) -> None:
        self.authorizer.require(Role.ADMIN, sender)
        if fee < 0:
            raise ValueError("fee must be non-negative")
        self.drops.protocol_fees.native_fee = fee
        self.emit("ProtocolFeeUpdated", currency=NATIVE_CURRENCY, fee=fee)

    @entrypoint
    def set_currency_free_mint_fee(self, sender: str, currency: str, fee: int) -> None:
        self.authorizer.require(Role.ADMIN, sender)
        currency = normalize_address(currency)
        if is_zero_address(currency):
            raise InvalidCurrencyError(currency)
        if fee < 0:
            raise ValueError("fee must be non-negative")
        self._fungible(currency)
        self.drops.protocol_fees.currency_fees[currency] = fee
        self.emit("ProtocolFeeUpdated", currency=currency, fee=fee)

    # =========================================================================
    # Privileged operations
    # =========================================================================

    @entrypoint
    def admin_mint(self, sender: str, to: str, token_id: int, amount: int) -> None:
        """Mint without payment or drop-state checks."""
        self.authorizer.require(Role.MINTER, sender)
        if is_zero_address(to):
            raise InvalidRecipientError()
        self._check_amount(amount)
        self.drops.get(token_id)
        self._mint_units(to, token_id, amount)
        self.emit("AdminMinted", to=to, token_id=token_id, amount=amount, operator=sender)

    @entrypoint
    def withdraw(self, sender: str, to: str, currency: str = NATIVE_CURRENCY) -> int:
        """Sweep value the collection retained (no treasury configured)."""
        self.authorizer.require(Role.ADMIN, sender)
        currency = normalize_address(currency)
        if is_zero_address(to):
            raise ZeroAddressError("to")
        if currency == NATIVE_CURRENCY:
            amount = self.ledger.balance_of(self.address)
            if amount:
                self._send_native(to, amount)
        else:
            token = self._fungible(currency)
            amount = token.balance_of(self.address)
            if amount:
                token.transfer(self.address, to, amount)
        self.emit("Withdrawn", to=to, currency=currency, amount=amount)
        return amount

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "address": self.address,
            "name": self.name,
            "interface_version": self.interface_version(),
            "next_token_id": self.next_token_id,
            "total_supply": self.collection_supply,
            "max_mint_amount": self.max_mint_amount,
            "default_fee_config": self.drops.default_fee_config.to_dict(),
            "protocol_fees": self.drops.protocol_fees.to_dict(),
        }
