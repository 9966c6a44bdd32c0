"""
DropMint - Collection Registry

Allow-list of collections the cross-collection resolver may route mints to.
Only registered addresses that resolve to a deployed DropCollection are
accepted.
"""

import logging

from collection import DropCollection
from errors import UnknownCollectionError, ZeroAddressError
from ledger import Contract, Ledger, entrypoint, is_zero_address, normalize_address
from permissions import Authorizer, Role

logger = logging.getLogger(__name__)


class CollectionRegistry(Contract):
    """Registered collection addresses, in registration order."""

    _state_fields = ("_registered",)

    def __init__(self, ledger: Ledger, authorizer: Authorizer, label: str = "registry"):
        super().__init__(ledger, label)
        self.authorizer = authorizer
        self._registered: list[str] = []

    @entrypoint
    def register(self, sender: str, collection: str) -> None:
        self.authorizer.require(Role.ADMIN, sender)
        collection = normalize_address(collection)
        if is_zero_address(collection):
            raise ZeroAddressError("collection")
        if not isinstance(self.ledger.contract_at(collection), DropCollection):
            raise UnknownCollectionError(collection)
        if collection not in self._registered:
            self._registered.append(collection)
            self.emit("CollectionRegistered", collection=collection)
            logger.info("Registered collection %s", collection)

    @entrypoint
    def unregister(self, sender: str, collection: str) -> bool:
        self.authorizer.require(Role.ADMIN, sender)
        collection = normalize_address(collection)
        if collection not in self._registered:
            return False
        self._registered.remove(collection)
        self.emit("CollectionUnregistered", collection=collection)
        logger.info("Unregistered collection %s", collection)
        return True

    def is_registered(self, collection: str) -> bool:
        return normalize_address(collection) in self._registered

    def get(self, collection: str) -> DropCollection:
        """
        Resolve a registered collection.

        Raises:
            UnknownCollectionError: not registered
        """
        collection = normalize_address(collection)
        if collection not in self._registered:
            raise UnknownCollectionError(collection)
        return self.ledger.contract_at(collection)

    def all(self) -> list[DropCollection]:
        return [self.ledger.contract_at(address) for address in self._registered]

    def __len__(self) -> int:
        return len(self._registered)
