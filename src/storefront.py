"""
DropMint - Storefront

Wires one deployment together: a ledger, the role registry, the collection
registry and the cross-collection resolver. The HTTP API and the CLI are
both built on a Storefront.

Usage:
    store = Storefront.create(Settings.from_env(), admin=ADMIN)
    drops = store.deploy_collection(ADMIN, "genesis", creator=CREATOR, creator_bps=1000)
    token_id = drops.create_drop(CREATOR, price=10**15, start_time=store.ledger.now())
"""

import logging
from collections.abc import Callable

from collection import DropCollection
from config import Settings
from errors import UnknownCollectionError
from fees import FeeConfig, ProtocolFeeTable
from ledger import ZERO_ADDRESS, Ledger
from permissions import Role, RoleRegistry
from registry import CollectionRegistry
from resolver import CrossCollectionResolver
from tokens import FungibleToken

logger = logging.getLogger(__name__)


class Storefront:
    """A ledger plus every contract a drop storefront needs."""

    def __init__(self, ledger: Ledger, roles: RoleRegistry, settings: Settings):
        self.ledger = ledger
        self.roles = roles
        self.settings = settings
        ledger.track(roles)
        self.registry = CollectionRegistry(ledger, roles)
        self.resolver = CrossCollectionResolver(ledger, self.registry)
        self.tokens: dict[str, FungibleToken] = {}

    @classmethod
    def create(cls, settings: Settings, admin: str, clock: Callable[[], int] | None = None) -> "Storefront":
        return cls(Ledger(clock), RoleRegistry(admin), settings)

    @property
    def executor(self):
        return self.resolver.executor

    def default_fee_config(self, creator: str, creator_bps: int = 0,
                           reward_pool: str = ZERO_ADDRESS, reward_pool_bps: int = 0) -> FeeConfig:
        """Fee config using the configured platform recipient, share and treasury."""
        return FeeConfig(
            platform_recipient=self.settings.platform_recipient,
            platform_bps=self.settings.platform_bps,
            creator_recipient=creator,
            creator_bps=creator_bps,
            reward_pool_recipient=reward_pool,
            reward_pool_bps=reward_pool_bps,
            treasury=self.settings.treasury,
        ).validate()

    def deploy_collection(
        self,
        caller: str,
        name: str,
        creator: str | None = None,
        creator_bps: int = 0,
        fee_config: FeeConfig | None = None,
    ) -> DropCollection:
        """
        Deploy a collection and register it with the resolver.

        Either pass a full `fee_config` or a `creator` to combine with the
        configured platform defaults. The creator is granted Role.CREATOR.
        """
        self.roles.require(Role.ADMIN, caller)
        if fee_config is None:
            if creator is None:
                raise ValueError("Either fee_config or creator is required")
            fee_config = self.default_fee_config(creator, creator_bps)
        with self.ledger.atomic():
            collection = DropCollection(
                self.ledger,
                name,
                authorizer=self.roles,
                default_fee_config=fee_config,
                protocol_fees=ProtocolFeeTable(native_fee=self.settings.free_mint_fee),
                max_mint_amount=self.settings.max_mint_amount,
            )
            if creator is not None and not self.roles.has_role(Role.CREATOR, creator):
                self.roles.grant_role(caller, Role.CREATOR, creator)
            self.registry.register(caller, collection.address)
        logger.info("Deployed collection %s at %s", name, collection.address)
        return collection

    def deploy_token(self, symbol: str, owner: str, decimals: int = 18,
                     transfer_fee_bps: int = 0) -> FungibleToken:
        token = FungibleToken(self.ledger, symbol, owner, decimals, transfer_fee_bps)
        self.tokens[token.address] = token
        return token

    def collection(self, address: str) -> DropCollection:
        """
        Look up a registered collection.

        Raises:
            UnknownCollectionError: unknown or unregistered address
        """
        if not self.registry.is_registered(address):
            raise UnknownCollectionError(address)
        return self.registry.get(address)

    def collections(self) -> list[DropCollection]:
        return self.registry.all()
