"""
DropMint - Cross-Collection Batch Resolver

Mints an arbitrary list of (collection, token id, amount) items in one
all-or-nothing call:

1. Validate every item (registered collection, amount bounds, drop live)
2. Work out which payment currencies each item is eligible for
3. Choose one currency per item
4. Group items by (collection, currency) and total each group
5. Execute each group through the PaymentExecutor
6. Refund native value beyond the aggregate requirement

Steps 1-4 are pure and shared with the estimators, so an estimate taken
beforehand equals what execution consumes.

Currency choice per item:
- Fungible candidates are the caller's currencies explicitly enabled for
  the token; the lowest address wins, whatever order they were given in.
- Native is eligible when paying natively costs more than zero.
- Both eligible: a native price of exactly zero means the native side is
  only the protocol fee, so the fungible currency is used; otherwise the
  caller's preference decides (prefer native when value was attached).
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from collection import DropCollection
from errors import (
    EmptyBatchError,
    InsufficientPaymentError,
    InvalidRecipientError,
    NoEligibleCurrencyError,
    PaymentError,
    RefundFailedError,
    SettlementError,
)
from executor import PaymentExecutor
from ledger import (
    NATIVE_CURRENCY,
    ZERO_ADDRESS,
    Contract,
    Ledger,
    address_key,
    entrypoint,
    is_zero_address,
    normalize_address,
)
from monitoring.metrics import metrics
from registry import CollectionRegistry

logger = logging.getLogger(__name__)


# =============================================================================
# Data Classes
# =============================================================================


@dataclass(frozen=True)
class BatchMintItem:
    """One requested line of a cross-collection batch."""

    collection: str
    token_id: int
    amount: int

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BatchMintItem":
        """Create from dictionary."""
        return cls(
            collection=normalize_address(data["collection"]),
            token_id=int(data["token_id"]),
            amount=int(data["amount"]),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"collection": self.collection, "token_id": self.token_id, "amount": self.amount}


@dataclass
class ExecutionGroup:
    """All items sharing one collection and one payment currency."""

    collection: str
    currency: str
    token_ids: list[int] = field(default_factory=list)
    amounts: list[int] = field(default_factory=list)
    total_payment: int = 0

    @property
    def is_native(self) -> bool:
        return self.currency == NATIVE_CURRENCY

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "collection": self.collection,
            "currency": self.currency,
            "token_ids": list(self.token_ids),
            "amounts": list(self.amounts),
            "total_payment": self.total_payment,
        }


@dataclass
class PaymentEstimate:
    """Totals per currency plus the execution plan that produces them."""

    native_total: int
    currency_totals: dict[str, int]
    groups: list[ExecutionGroup]

    @classmethod
    def from_groups(cls, groups: list[ExecutionGroup]) -> "PaymentEstimate":
        native_total = 0
        currency_totals: dict[str, int] = {}
        for group in groups:
            if group.is_native:
                native_total += group.total_payment
            else:
                currency_totals[group.currency] = currency_totals.get(group.currency, 0) + group.total_payment
        return cls(native_total=native_total, currency_totals=currency_totals, groups=groups)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "native_total": self.native_total,
            "currency_totals": dict(self.currency_totals),
            "groups": [g.to_dict() for g in self.groups],
        }


# =============================================================================
# Resolver
# =============================================================================


class CrossCollectionResolver(Contract):
    """
    Cross-collection batch minting over registered collections.

    The resolver is itself a contract: it receives the caller's native value
    and fungible payments, pays each collection, and refunds the remainder.
    """

    def __init__(self, ledger: Ledger, registry: CollectionRegistry, label: str = "resolver"):
        super().__init__(ledger, label)
        self.registry = registry
        self.executor = PaymentExecutor(ledger, self.address)

    # =========================================================================
    # Resolution (pure)
    # =========================================================================

    def resolve(
        self,
        items: list[BatchMintItem],
        currencies: list[str] | None = None,
        prefer_native: bool = True,
        native_only: bool = False,
    ) -> list[ExecutionGroup]:
        """
        Validate items and build the execution plan without changing state.

        Args:
            items: Requested lines, in caller order
            currencies: Acceptable fungible currencies (order is irrelevant)
            prefer_native: Tie-break toward native when both sides qualify
            native_only: Pay every item natively, even at zero cost

        Returns:
            Execution groups in order of first appearance

        Raises:
            EmptyBatchError, UnknownCollectionError, InvalidAmountError,
            DropStateError subclasses, NoEligibleCurrencyError
        """
        if not items:
            raise EmptyBatchError()

        now = self.ledger.now()
        collections = []
        for item in items:
            collection = self.registry.get(item.collection)
            collection.validate_mint(item.token_id, item.amount, now)
            collections.append(collection)

        accepted = sorted(
            {normalize_address(c) for c in (currencies or []) if not is_zero_address(c)},
            key=address_key,
        )

        groups: dict[tuple[str, str], ExecutionGroup] = {}
        for item, collection in zip(items, collections):
            currency = NATIVE_CURRENCY if native_only else self._choose_currency(
                collection, item, accepted, prefer_native,
            )
            required, _ = collection.quote(item.token_id, item.amount, currency)

            key = (collection.address, currency)
            group = groups.get(key)
            if group is None:
                group = groups[key] = ExecutionGroup(collection=collection.address, currency=currency)
            group.token_ids.append(item.token_id)
            group.amounts.append(item.amount)
            group.total_payment += required

        return list(groups.values())

    def _choose_currency(self, collection: DropCollection, item: BatchMintItem,
                         accepted: list[str], prefer_native: bool) -> str:
        native_required, _ = collection.quote(item.token_id, item.amount, NATIVE_CURRENCY)
        native_ok = native_required > 0

        fungible = next(
            (c for c in accepted if collection.is_currency_enabled(item.token_id, c)),
            None,
        )

        if fungible is None and not native_ok:
            raise NoEligibleCurrencyError(collection.address, item.token_id)
        if fungible is None:
            return NATIVE_CURRENCY
        if not native_ok:
            return fungible
        if collection.get_drop(item.token_id).native_price == 0:
            return fungible
        return NATIVE_CURRENCY if prefer_native else fungible

    # =========================================================================
    # Estimators
    # =========================================================================

    def get_payment_estimate(self, items: list[BatchMintItem]) -> int:
        """Native value needed by batch_mint_across_collections."""
        return PaymentEstimate.from_groups(self.resolve(items, native_only=True)).native_total

    def get_mixed_payment_estimate(self, items: list[BatchMintItem], currencies: list[str],
                                   prefer_native: bool) -> PaymentEstimate:
        """Totals batch_mint_across_collections_mixed consumes for the same inputs."""
        return PaymentEstimate.from_groups(self.resolve(items, currencies, prefer_native))

    # =========================================================================
    # Entrypoints
    # =========================================================================

    @entrypoint(payable=True)
    def batch_mint_across_collections(self, sender: str, to: str, items: list[BatchMintItem],
                                      referrer: str = ZERO_ADDRESS, *, value: int) -> PaymentEstimate:
        """Mint across collections paying every item in native value."""
        if is_zero_address(to):
            raise InvalidRecipientError()
        groups = self.resolve(items, native_only=True)
        return self._execute(sender, to, groups, referrer, value, mixed=False)

    @entrypoint(payable=True)
    def batch_mint_across_collections_mixed(self, sender: str, to: str, items: list[BatchMintItem],
                                            currencies: list[str], referrer: str = ZERO_ADDRESS, *,
                                            value: int) -> PaymentEstimate:
        """
        Mint across collections, choosing native or fungible payment per item.

        Attaching any native value expresses a preference for native payment.
        Fungible totals are pulled from `sender`, who must have approved the
        resolver for each currency used.
        """
        if is_zero_address(to):
            raise InvalidRecipientError()
        groups = self.resolve(items, currencies, prefer_native=value > 0)
        return self._execute(sender, to, groups, referrer, value, mixed=True)

    def _execute(self, sender: str, to: str, groups: list[ExecutionGroup], referrer: str,
                 value: int, mixed: bool) -> PaymentEstimate:
        plan = PaymentEstimate.from_groups(groups)
        if value < plan.native_total:
            raise InsufficientPaymentError(plan.native_total, value, NATIVE_CURRENCY)

        with metrics.timer("cross_collection_execution_ms", labels={"mixed": str(mixed).lower()}):
            for group in groups:
                collection = self.registry.get(group.collection)
                if group.is_native:
                    self.executor.execute_native(
                        collection, to, group.token_ids, group.amounts, group.total_payment, referrer,
                    )
                else:
                    self.executor.execute_fungible(
                        collection, group.currency, sender, to,
                        group.token_ids, group.amounts, group.total_payment, referrer,
                    )

        excess = value - plan.native_total
        if excess:
            try:
                self.ledger.transfer(self.address, sender, excess)
            except (PaymentError, SettlementError) as e:
                raise RefundFailedError(sender, excess) from e

        self.emit(
            "CrossCollectionBatchMinted",
            to=to,
            groups=[g.to_dict() for g in groups],
            native_paid=plan.native_total,
            currency_paid=dict(plan.currency_totals),
            referrer=referrer,
        )

        def record():
            metrics.increment("cross_collection_batches_total", labels={"mixed": str(mixed).lower()})
            metrics.increment("execution_groups_total", len(groups))
            logger.info(
                "Cross-collection batch: %d group(s), native paid %d",
                len(groups), plan.native_total,
                extra={"to": to, "currency_totals": plan.currency_totals},
            )

        self.ledger.on_commit(record)
        return plan
