"""
DropMint - Fungible Transfer Strategies

Collections pull fungible payments from the payer straight to each fee
recipient. How a leg is moved is pluggable:

- PlainTransfer: trust the token's transfer_from
- VerifiedTransfer: additionally check the recipient's balance grew by
  exactly the amount sent, rejecting fee-on-transfer currencies
"""

from abc import ABC, abstractmethod

from errors import FeeOnTransferError, PaymentError, TransferFailedError
from tokens import FungibleToken


class TransferStrategy(ABC):
    """Moves one fee leg from payer to recipient."""

    name = "base"

    @abstractmethod
    def pull(self, token: FungibleToken, spender: str, payer: str, recipient: str, amount: int) -> None:
        """
        Transfer `amount` of `token` from `payer` to `recipient`.

        Args:
            token: Currency being moved
            spender: Address holding the payer's allowance (the collection)
            payer: Account paying for the mint
            recipient: Fee leg recipient
            amount: Exact amount the leg is worth

        Raises:
            TransferFailedError: the token refused the transfer
        """
        pass

    @staticmethod
    def _transfer_from(token: FungibleToken, spender: str, payer: str, recipient: str, amount: int) -> None:
        try:
            token.transfer_from(spender, payer, recipient, amount)
        except PaymentError as e:
            raise TransferFailedError(recipient, amount, token.address, e.message) from e


class PlainTransfer(TransferStrategy):
    name = "plain"

    def pull(self, token: FungibleToken, spender: str, payer: str, recipient: str, amount: int) -> None:
        self._transfer_from(token, spender, payer, recipient, amount)


class VerifiedTransfer(TransferStrategy):
    name = "verified"

    def pull(self, token: FungibleToken, spender: str, payer: str, recipient: str, amount: int) -> None:
        before = token.balance_of(recipient)
        self._transfer_from(token, spender, payer, recipient, amount)
        received = token.balance_of(recipient) - before
        expected = 0 if payer == recipient else amount
        if received != expected:
            raise FeeOnTransferError(recipient, amount, received, token.address)


def strategy_for(strict: bool) -> TransferStrategy:
    return VerifiedTransfer() if strict else PlainTransfer()
