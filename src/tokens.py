"""
DropMint - Fungible Token Capability

A minimal ERC20-style token deployed on the in-process ledger. Collections
and the cross-collection resolver consume it only through balance_of,
allowance, approve, transfer and transfer_from.

A token may be configured with a transfer fee (in basis points) that is
burned on every transfer, so the recipient receives less than was sent.
Such "fee-on-transfer" currencies are what strict transfer mode rejects.
"""

import logging

from errors import (
    InsufficientAllowanceError,
    InsufficientBalanceError,
    InvalidBasisPointsError,
    UnauthorizedError,
)
from ledger import Contract, Ledger, entrypoint, is_zero_address

logger = logging.getLogger(__name__)

BPS_DENOMINATOR = 10_000


class FungibleToken(Contract):
    """ERC20-style fungible token."""

    _state_fields = ("_balances", "_allowances", "total_supply")

    def __init__(
        self,
        ledger: Ledger,
        symbol: str,
        owner: str,
        decimals: int = 18,
        transfer_fee_bps: int = 0,
    ):
        super().__init__(ledger, f"token:{symbol}")
        if not 0 <= transfer_fee_bps <= BPS_DENOMINATOR:
            raise InvalidBasisPointsError(transfer_fee_bps)
        self.symbol = symbol
        self.owner = owner
        self.decimals = decimals
        self.transfer_fee_bps = transfer_fee_bps
        self._balances: dict[str, int] = {}
        self._allowances: dict[tuple[str, str], int] = {}
        self.total_supply = 0

    # Views

    def balance_of(self, account: str) -> int:
        return self._balances.get(account, 0)

    def allowance(self, owner: str, spender: str) -> int:
        return self._allowances.get((owner, spender), 0)

    def received_amount(self, amount: int) -> int:
        """Amount a recipient ends up with when `amount` is sent."""
        return amount - amount * self.transfer_fee_bps // BPS_DENOMINATOR

    # Entrypoints

    @entrypoint
    def mint(self, sender: str, to: str, amount: int) -> None:
        if sender != self.owner:
            raise UnauthorizedError(sender, "TOKEN_OWNER")
        self._balances[to] = self.balance_of(to) + amount
        self.total_supply += amount
        self.emit("Transfer", sender=None, to=to, amount=amount)

    @entrypoint
    def approve(self, sender: str, spender: str, amount: int) -> bool:
        if amount < 0:
            raise ValueError("amount must be non-negative")
        self._allowances[(sender, spender)] = amount
        self.emit("Approval", owner=sender, spender=spender, amount=amount)
        return True

    @entrypoint
    def transfer(self, sender: str, to: str, amount: int) -> bool:
        self._move(sender, to, amount)
        return True

    @entrypoint
    def transfer_from(self, sender: str, owner: str, to: str, amount: int) -> bool:
        allowed = self.allowance(owner, sender)
        if allowed < amount:
            raise InsufficientAllowanceError(amount, allowed, self.address)
        self._allowances[(owner, sender)] = allowed - amount
        self._move(owner, to, amount)
        return True

    def _move(self, source: str, to: str, amount: int) -> None:
        if amount < 0:
            raise ValueError("amount must be non-negative")
        if is_zero_address(to):
            raise ValueError("cannot transfer to the zero address")
        available = self.balance_of(source)
        if available < amount:
            raise InsufficientBalanceError(amount, available, self.address)
        received = self.received_amount(amount)
        self._balances[source] = available - amount
        self._balances[to] = self.balance_of(to) + received
        # The transfer fee is burned
        self.total_supply -= amount - received
        self.emit("Transfer", sender=source, to=to, amount=received)
