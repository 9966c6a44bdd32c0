"""
DropMint - Payment Executor

Runs one execution group against its collection on behalf of an operator
(the cross-collection resolver):

- Native groups call batch_mint, forwarding the group total as value.
- Fungible groups pull the group total from the payer into the operator,
  approve exactly that amount to the collection, call
  batch_mint_with_currency, then reset the allowance to zero.

Which batch_mint_with_currency signature a collection accepts is decided by
an explicit version negotiation, done once per collection address and
recorded. Errors raised by the call itself are never reinterpreted as a
signature mismatch.
"""

import logging

from collection import DropCollection
from errors import InvalidCurrencyError, UnsupportedEntrypointError
from ledger import ZERO_ADDRESS, Ledger
from tokens import FungibleToken

logger = logging.getLogger(__name__)

REFERRAL_ENTRYPOINT = "batch_mint_with_currency_referral"


class PaymentExecutor:
    """
    Executes grouped mint calls for an operator address.

    Args:
        ledger: Host ledger
        operator: Address that pays the collections and holds allowances
    """

    def __init__(self, ledger: Ledger, operator: str):
        self.ledger = ledger
        self.operator = operator
        self._versions: dict[str, int] = {}

    def negotiate(self, collection: DropCollection) -> int:
        """
        Interface version of `collection`, negotiated on first use.

        Collections that do not advertise a version are treated as version 1.
        """
        version = self._versions.get(collection.address)
        if version is None:
            supports = getattr(collection, "supports_entrypoint", None)
            if supports is None:
                version = 1
            else:
                if not supports("batch_mint_with_currency"):
                    raise UnsupportedEntrypointError(collection.address, "batch_mint_with_currency")
                version = 2 if supports(REFERRAL_ENTRYPOINT) else 1
            self._versions[collection.address] = version
            logger.debug("Negotiated interface v%d with %s", version, collection.address)
        return version

    def negotiated_versions(self) -> dict[str, int]:
        return dict(self._versions)

    def forget(self, collection: str) -> None:
        """Drop a recorded negotiation (e.g. after the collection was upgraded)."""
        self._versions.pop(collection, None)

    # =========================================================================
    # Execution
    # =========================================================================

    def execute_native(self, collection: DropCollection, to: str, token_ids: list[int],
                       amounts: list[int], total: int, referrer: str = ZERO_ADDRESS) -> int:
        return collection.batch_mint(
            self.operator, to, list(token_ids), list(amounts), value=total, referrer=referrer,
        )

    def execute_fungible(self, collection: DropCollection, currency: str, payer: str, to: str,
                         token_ids: list[int], amounts: list[int], total: int,
                         referrer: str = ZERO_ADDRESS) -> int:
        """
        Pull, approve, mint, and reset the allowance.

        Raises:
            InvalidCurrencyError: `currency` is not a deployed fungible token
            PaymentError: the payer cannot cover `total`
        """
        token = self.ledger.contract_at(currency)
        if not isinstance(token, FungibleToken):
            raise InvalidCurrencyError(currency)

        version = self.negotiate(collection)

        token.transfer_from(self.operator, payer, self.operator, total)
        token.approve(self.operator, collection.address, total)
        if version >= 2:
            paid = collection.batch_mint_with_currency(
                self.operator, to, list(token_ids), list(amounts), currency, referrer=referrer,
            )
        else:
            paid = collection.batch_mint_with_currency(
                self.operator, to, list(token_ids), list(amounts), currency,
            )
        token.approve(self.operator, collection.address, 0)
        return paid
