"""Collaborators the engine calls into but does not own.

The balance ledger, royalty module, access control and licensor approvals
live outside the engine. These protocols are the whole contract; any
object with matching methods can be passed to ``LicensingEngine``.
"""

from __future__ import annotations

from typing import Protocol, Sequence, runtime_checkable

from .policies.models import PolicyId

PermitRef = str


@runtime_checkable
class RoyaltyGate(Protocol):
    """Royalty module, consulted for commercial policies."""

    def has_minimum_royalty(self, node_id: str) -> bool: ...

    def on_link_to_parents(
        self,
        child_id: str,
        parent_ids: Sequence[str],
        policy_ids: Sequence[PolicyId],
        context: bytes,
    ) -> None: ...


@runtime_checkable
class PermitLedger(Protocol):
    """Balance ledger holding minted permits.

    ``resolve`` must not change balances; the engine calls it while
    validating a link and only calls ``consume`` once validation passed.
    """

    def mint(self, node_id: str, policy_id: PolicyId, quantity: int, receiver: str) -> PermitRef: ...

    def resolve(self, permit_ref: PermitRef, holder: str) -> tuple[str, PolicyId]: ...

    def consume(self, permit_ref: PermitRef, holder: str) -> tuple[str, PolicyId]: ...


@runtime_checkable
class AccessControl(Protocol):
    """Decides who may attach policies to a node."""

    def can_attach_policy(self, caller: str, node_id: str) -> bool: ...


@runtime_checkable
class DerivativeApprovals(Protocol):
    """Licensor approvals for policies with ``derivatives_approval``."""

    def is_approved(self, parent_id: str, policy_id: PolicyId, child_id: str) -> bool: ...


__all__ = [
    "AccessControl",
    "DerivativeApprovals",
    "PermitLedger",
    "PermitRef",
    "RoyaltyGate",
]
