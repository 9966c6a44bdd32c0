"""
DropMint - In-Process Ledger

Models the host execution environment the minting contracts run on:
native balances, a ledger-time source, an event log, an address book of
deployed contracts, and all-or-nothing call semantics.

Core Properties:
- Serialized: one outermost call at a time (re-entrant lock)
- Atomic: every participant is snapshotted on entry and restored on failure
- Savepoints: nested atomic blocks roll back only their own effects
- Observable: every state change worth auditing is emitted as an event
"""

import copy
import hashlib
import logging
import threading
import time
from collections.abc import Callable
from contextlib import contextmanager
from dataclasses import dataclass, field
from functools import wraps
from typing import Any

from errors import DropMintError, InsufficientBalanceError, TransferFailedError
from guards import ReentrancyGuard
from monitoring.metrics import metrics

logger = logging.getLogger(__name__)

ZERO_ADDRESS = "0x" + "0" * 40

# The native value unit is identified by the zero address wherever a
# currency identifier is expected.
NATIVE_CURRENCY = ZERO_ADDRESS


def address_key(address: str) -> int:
    """Numeric ordering key for an address."""
    return int(address, 16)


def normalize_address(address: str) -> str:
    """Canonical lowercase form; checksummed and plain addresses compare equal."""
    return address.lower()


def is_zero_address(address: str | None) -> bool:
    return not address or address_key(address) == 0


def derive_address(label: str, nonce: int = 0) -> str:
    """Deterministic 20-byte hex address for a label."""
    digest = hashlib.sha256(f"{label}:{nonce}".encode()).hexdigest()
    return "0x" + digest[:40]


# =============================================================================
# Time
# =============================================================================


class SystemClock:
    """Wall-clock ledger time in whole seconds."""

    def __call__(self) -> int:
        return int(time.time())


class ManualClock:
    """Settable clock for tests and simulations."""

    def __init__(self, start: int = 1_700_000_000):
        self.current = start

    def __call__(self) -> int:
        return self.current

    def set(self, timestamp: int) -> None:
        self.current = timestamp

    def advance(self, seconds: int) -> int:
        self.current += seconds
        return self.current


# =============================================================================
# Events
# =============================================================================


@dataclass
class LedgerEvent:
    """An event emitted by a contract."""

    index: int
    name: str
    emitter: str
    timestamp: int
    data: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "index": self.index,
            "name": self.name,
            "emitter": self.emitter,
            "timestamp": self.timestamp,
            "data": self.data,
        }


# =============================================================================
# Ledger
# =============================================================================


class Ledger:
    """
    Host ledger shared by every contract in a deployment.

    Stateful participants (the ledger itself plus every deployed contract)
    expose snapshot()/restore(); atomic() uses them to undo a failed call.
    """

    def __init__(self, clock: Callable[[], int] | None = None):
        self._clock = clock or SystemClock()
        self._lock = threading.RLock()
        self._depth = 0
        self._balances: dict[str, int] = {}
        self._contracts: dict[str, "Contract"] = {}
        self._participants: list[Any] = [self]
        self._receive_hooks: dict[str, Callable[[str, int], None]] = {}
        self._after_commit: list[Callable[[], None]] = []
        self.events: list[LedgerEvent] = []

    # =========================================================================
    # Time & call depth
    # =========================================================================

    def now(self) -> int:
        return int(self._clock())

    @property
    def in_call(self) -> bool:
        return self._depth > 0

    # =========================================================================
    # Atomicity
    # =========================================================================

    def snapshot(self) -> dict[str, Any]:
        return {
            "_balances": dict(self._balances),
            "_contracts": dict(self._contracts),
            "_participants": list(self._participants),
        }

    def restore(self, state: dict[str, Any]) -> None:
        self._balances = state["_balances"]
        self._contracts = state["_contracts"]
        self._participants = state["_participants"]

    def track(self, participant: Any) -> None:
        """Include a non-contract object exposing snapshot()/restore() in rollbacks."""
        if participant not in self._participants:
            self._participants.append(participant)

    @contextmanager
    def atomic(self):
        """
        Run a block with all-or-nothing semantics.

        On any exception every participant is restored to its state at entry,
        events and after-commit callbacks registered inside the block are
        discarded, and the exception is re-raised unchanged. Callbacks run
        once the outermost block exits cleanly.
        """
        with self._lock:
            saved = [(p, p.snapshot()) for p in self._participants]
            event_mark = len(self.events)
            commit_mark = len(self._after_commit)
            self._depth += 1
            try:
                yield self
            except BaseException:
                for participant, state in saved:
                    participant.restore(state)
                del self.events[event_mark:]
                del self._after_commit[commit_mark:]
                raise
            finally:
                self._depth -= 1
            if self._depth == 0:
                callbacks, self._after_commit = self._after_commit, []
                for callback in callbacks:
                    callback()

    def on_commit(self, callback: Callable[[], None]) -> None:
        """Run `callback` after the outermost atomic block commits (now, outside one)."""
        if self._depth == 0:
            callback()
        else:
            self._after_commit.append(callback)

    # =========================================================================
    # Contracts
    # =========================================================================

    def deploy(self, contract: "Contract", label: str) -> str:
        """Assign an address to a contract and start tracking its state."""
        nonce = 0
        address = derive_address(label, nonce)
        while address in self._contracts:
            nonce += 1
            address = derive_address(label, nonce)
        self._contracts[address] = contract
        self._participants.append(contract)
        logger.debug("Deployed %s at %s", type(contract).__name__, address)
        return address

    def contract_at(self, address: str) -> "Contract | None":
        return self._contracts.get(normalize_address(address))

    def is_contract(self, address: str) -> bool:
        return normalize_address(address) in self._contracts

    # =========================================================================
    # Native value
    # =========================================================================

    def balance_of(self, address: str) -> int:
        return self._balances.get(address, 0)

    def credit(self, address: str, amount: int) -> None:
        """Create native value out of thin air (genesis/faucet)."""
        if amount < 0:
            raise ValueError("amount must be non-negative")
        self._balances[address] = self._balances.get(address, 0) + amount

    def set_receive_hook(self, address: str, hook: Callable[[str, int], None] | None) -> None:
        """Register a callable run as hook(sender, amount) when `address` receives value."""
        if hook is None:
            self._receive_hooks.pop(address, None)
        else:
            self._receive_hooks[address] = hook

    def transfer(self, sender: str, recipient: str, amount: int) -> None:
        """
        Move native value between addresses.

        Raises:
            InsufficientBalanceError: sender cannot cover amount
            TransferFailedError: the recipient's receive hook raised
        """
        if amount < 0:
            raise ValueError("amount must be non-negative")
        with self.atomic():
            available = self.balance_of(sender)
            if available < amount:
                raise InsufficientBalanceError(amount, available, NATIVE_CURRENCY)
            self._balances[sender] = available - amount
            self._balances[recipient] = self.balance_of(recipient) + amount
            hook = self._receive_hooks.get(recipient)
            if hook is not None:
                try:
                    hook(sender, amount)
                except Exception as e:
                    raise TransferFailedError(recipient, amount, NATIVE_CURRENCY, str(e)) from e

    # =========================================================================
    # Events
    # =========================================================================

    def emit(self, emitter: str, name: str, **data: Any) -> LedgerEvent:
        event = LedgerEvent(
            index=len(self.events),
            name=name,
            emitter=emitter,
            timestamp=self.now(),
            data=data,
        )
        self.events.append(event)
        return event

    def events_named(self, name: str, emitter: str | None = None) -> list[LedgerEvent]:
        return [
            e for e in self.events
            if e.name == name and (emitter is None or e.emitter == emitter)
        ]


# =============================================================================
# Contract base & entrypoints
# =============================================================================


class Contract:
    """
    Base class for anything deployed on a Ledger.

    Subclasses list the attributes that make up their persistent state in
    `_state_fields`; those are deep-copied on every atomic entry.
    """

    _state_fields: tuple[str, ...] = ()

    def __init__(self, ledger: Ledger, label: str):
        self.ledger = ledger
        self.label = label
        self.address = ledger.deploy(self, label)
        self.guard = ReentrancyGuard(self.address)

    def snapshot(self) -> dict[str, Any]:
        return {name: copy.deepcopy(getattr(self, name)) for name in self._state_fields}

    def restore(self, state: dict[str, Any]) -> None:
        for name, value in state.items():
            setattr(self, name, value)

    def emit(self, name: str, **data: Any) -> LedgerEvent:
        return self.ledger.emit(self.address, name, **data)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.label!r}, {self.address})"


def entrypoint(method: Callable | None = None, *, payable: bool = False):
    """
    Decorator for public mutating contract methods.

    The decorated method takes the calling address as its first argument.
    Payable entrypoints accept a `value=` keyword; that value is moved from
    the sender into the contract before the body runs and is passed on to it.

    Usage:
        @entrypoint(payable=True)
        def mint(self, sender, to, token_id, amount, *, value, referrer=ZERO_ADDRESS):
            ...
    """

    def decorator(fn: Callable) -> Callable:
        @wraps(fn)
        def wrapper(self: Contract, sender: str, *args, **kwargs):
            value = kwargs.pop("value", 0) if payable else 0
            if value < 0:
                raise ValueError("value must be non-negative")
            outermost = not self.ledger.in_call
            try:
                with self.ledger.atomic(), self.guard:
                    if value:
                        self.ledger.transfer(sender, self.address, value)
                    if payable:
                        return fn(self, sender, *args, value=value, **kwargs)
                    return fn(self, sender, *args, **kwargs)
            except DropMintError as e:
                if outermost:
                    metrics.increment(
                        "rejected_calls_total",
                        labels={"entrypoint": fn.__name__, "error": type(e).__name__},
                    )
                    logger.warning(
                        "%s.%s rejected: %s", type(self).__name__, fn.__name__, e.message,
                        extra={"error": e.to_dict(), "sender": sender},
                    )
                raise

        wrapper.is_entrypoint = True
        wrapper.payable = payable
        return wrapper

    if method is not None:
        return decorator(method)
    return decorator
