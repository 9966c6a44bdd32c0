"""
Pytest configuration and shared fixtures for DropMint tests.

This module provides shared fixtures and test configuration including:
- A ledger driven by a manual clock
- Named accounts (admin, creator, fee recipients, buyers), funded natively
- Factories for collections and fungible tokens
- A storefront-style wiring of registry and cross-collection resolver
- Metrics reset between tests
"""

import os
import sys
from dataclasses import dataclass

import pytest

# Add src to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from collection import DropCollection  # noqa: E402
from fees import DEFAULT_FREE_MINT_FEE, FeeConfig, ProtocolFeeTable  # noqa: E402
from ledger import Ledger, ManualClock, derive_address  # noqa: E402
from monitoring import metrics  # noqa: E402
from permissions import Role, RoleRegistry  # noqa: E402
from registry import CollectionRegistry  # noqa: E402
from resolver import CrossCollectionResolver  # noqa: E402
from tokens import FungibleToken  # noqa: E402

START_TIME = 1_700_000_000
ONE_ETHER = 10**18


@dataclass(frozen=True)
class Accounts:
    admin: str
    creator: str
    minter: str
    platform: str
    reward_pool: str
    treasury: str
    buyer: str
    other: str
    referrer: str


@pytest.fixture(autouse=True)
def reset_metrics():
    """Each test starts with empty metrics."""
    metrics.reset()
    yield


@pytest.fixture
def accounts():
    return Accounts(*(derive_address(f"account:{name}") for name in Accounts.__dataclass_fields__))


@pytest.fixture
def clock():
    return ManualClock(START_TIME)


@pytest.fixture
def ledger(clock, accounts):
    """Ledger with native value credited to the buyers."""
    ledger = Ledger(clock)
    ledger.credit(accounts.buyer, 100 * ONE_ETHER)
    ledger.credit(accounts.other, 100 * ONE_ETHER)
    return ledger


@pytest.fixture
def roles(accounts):
    roles = RoleRegistry(accounts.admin)
    roles.grant_role(accounts.admin, Role.CREATOR, accounts.creator)
    roles.grant_role(accounts.admin, Role.MINTER, accounts.minter)
    return roles


@pytest.fixture
def fee_config(accounts):
    """5% platform, 10% creator, 3% reward pool, treasury takes the rest."""
    return FeeConfig(
        platform_recipient=accounts.platform,
        platform_bps=500,
        creator_recipient=accounts.creator,
        creator_bps=1000,
        reward_pool_recipient=accounts.reward_pool,
        reward_pool_bps=300,
        treasury=accounts.treasury,
    )


@pytest.fixture
def make_collection(ledger, roles, fee_config):
    """Factory for collections sharing the test ledger and roles."""
    counter = {"n": 0}

    def _make(name=None, fee_config_override=None, free_mint_fee=DEFAULT_FREE_MINT_FEE,
              max_mint_amount=100, cls=DropCollection):
        counter["n"] += 1
        return cls(
            ledger,
            name or f"collection-{counter['n']}",
            authorizer=roles,
            default_fee_config=fee_config_override or fee_config,
            protocol_fees=ProtocolFeeTable(native_fee=free_mint_fee),
            max_mint_amount=max_mint_amount,
        )

    return _make


@pytest.fixture
def collection(make_collection):
    return make_collection("genesis")


@pytest.fixture
def make_token(ledger, accounts):
    """Factory for fungible tokens owned by the admin, with buyers funded."""

    def _make(symbol, transfer_fee_bps=0, fund=1_000_000 * ONE_ETHER):
        token = FungibleToken(ledger, symbol, accounts.admin, transfer_fee_bps=transfer_fee_bps)
        if fund:
            token.mint(accounts.admin, accounts.buyer, fund)
            token.mint(accounts.admin, accounts.other, fund)
        return token

    return _make


@pytest.fixture
def usdc(make_token):
    return make_token("USDC")


@pytest.fixture
def registry(ledger, roles):
    return CollectionRegistry(ledger, roles)


@pytest.fixture
def resolver(ledger, registry):
    return CrossCollectionResolver(ledger, registry)


@pytest.fixture
def live_drop(collection, accounts, clock):
    """Token id of a live native drop priced at 1000 per unit."""
    return collection.create_drop(accounts.creator, 1000, clock.current)
