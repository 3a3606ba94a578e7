"""Shared fixtures: an engine wired to in-memory collaborators."""

from __future__ import annotations

import pytest

from iplicensing import (
    InMemoryPermitLedger,
    LicensingEngine,
    Policy,
    StaticAccessControl,
    StaticApprovals,
    StaticRoyaltyGate,
)

OWNER = "alice"
LICENSEE = "bob"


@pytest.fixture
def ledger() -> InMemoryPermitLedger:
    return InMemoryPermitLedger()


@pytest.fixture
def royalty() -> StaticRoyaltyGate:
    return StaticRoyaltyGate()


@pytest.fixture
def access() -> StaticAccessControl:
    return StaticAccessControl({"ip-a": OWNER, "ip-b": OWNER, "ip-c": OWNER})


@pytest.fixture
def approvals() -> StaticApprovals:
    return StaticApprovals()


@pytest.fixture
def engine(ledger, royalty, access, approvals) -> LicensingEngine:
    engine = LicensingEngine.from_config(
        ledger=ledger,
        royalty=royalty,
        access=access,
        approvals=approvals,
    )
    for node_id in ("ip-a", "ip-b", "ip-c"):
        engine.register_node(node_id)
    return engine


@pytest.fixture
def comm_deriv() -> Policy:
    return Policy(commercial_use=True, derivatives_allowed=True, reciprocal=False, commercial_rev_share=100)


@pytest.fixture
def comm_non_deriv() -> Policy:
    return Policy(commercial_use=True, derivatives_allowed=False, reciprocal=False, commercial_rev_share=100)


@pytest.fixture
def comm_reciprocal() -> Policy:
    return Policy(commercial_use=True, derivatives_allowed=True, reciprocal=True, commercial_rev_share=100)


@pytest.fixture
def non_comm_social() -> Policy:
    return Policy(derivatives_allowed=True, reciprocal=True, attribution=True)
