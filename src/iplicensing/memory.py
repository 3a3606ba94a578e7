"""In-memory collaborators for embedding the engine and for tests.

None of these persist anything; they hold state for the lifetime of the
process only.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Iterable, Sequence

from .exceptions import InvalidRequestError, PermitNotHeldError
from .interfaces import PermitRef
from .policies.models import PolicyId

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Permit:
    """A fungible permit class: every unit minted under one (node, policy) pair."""

    permit_ref: PermitRef
    node_id: str
    policy_id: PolicyId


def permit_ref_for(node_id: str, policy_id: str) -> PermitRef:
    return f"{node_id}/{policy_id}"


class InMemoryPermitLedger:
    """Fungible permit balances keyed by (permit_ref, holder).

    Minting twice under the same (node, policy) pair adds to the same
    permit class.
    """

    def __init__(self) -> None:
        self._permits: dict[PermitRef, Permit] = {}
        self._balances: dict[tuple[PermitRef, str], int] = defaultdict(int)

    def mint(self, node_id: str, policy_id: PolicyId, quantity: int, receiver: str) -> PermitRef:
        if quantity < 1:
            raise InvalidRequestError(f"Quantity must be positive, got {quantity}", quantity=quantity)
        ref = permit_ref_for(node_id, policy_id)
        self._permits.setdefault(ref, Permit(permit_ref=ref, node_id=node_id, policy_id=policy_id))
        self._balances[(ref, receiver)] += quantity
        logger.debug("Minted %d of %s to %s", quantity, ref, receiver)
        return ref

    def resolve(self, permit_ref: PermitRef, holder: str) -> tuple[str, PolicyId]:
        permit = self._permits.get(permit_ref)
        if permit is None or self._balances.get((permit_ref, holder), 0) < 1:
            raise PermitNotHeldError(
                f"{holder} holds no permit {permit_ref}",
                permit_ref=permit_ref,
                holder=holder,
            )
        return permit.node_id, permit.policy_id

    def consume(self, permit_ref: PermitRef, holder: str) -> tuple[str, PolicyId]:
        result = self.resolve(permit_ref, holder)
        self._balances[(permit_ref, holder)] -= 1
        logger.debug("Consumed one %s from %s", permit_ref, holder)
        return result

    def balance_of(self, holder: str, permit_ref: PermitRef) -> int:
        return self._balances.get((permit_ref, holder), 0)

    def total_supply(self, permit_ref: PermitRef) -> int:
        return sum(amount for (ref, _), amount in self._balances.items() if ref == permit_ref)


class StaticRoyaltyGate:
    """Royalty gate backed by a set of configured nodes.

    A derivative inherits the minimum royalty of its parents when it is
    linked to at least one configured parent. Every link notification is
    recorded in ``links``.
    """

    def __init__(self, configured: Iterable[str] = ()) -> None:
        self._configured: set[str] = set(configured)
        self.links: list[tuple[str, tuple[str, ...], tuple[PolicyId, ...], bytes]] = []

    def configure(self, node_id: str) -> None:
        self._configured.add(node_id)

    def has_minimum_royalty(self, node_id: str) -> bool:
        return node_id in self._configured

    def on_link_to_parents(
        self,
        child_id: str,
        parent_ids: Sequence[str],
        policy_ids: Sequence[PolicyId],
        context: bytes,
    ) -> None:
        self.links.append((child_id, tuple(parent_ids), tuple(policy_ids), context))
        if any(parent_id in self._configured for parent_id in parent_ids):
            self._configured.add(child_id)


class StaticAccessControl:
    """Owner table: a caller may attach policies to the nodes it owns.

    With ``allow_all=True`` every caller is allowed.
    """

    def __init__(self, owners: dict[str, str] | None = None, *, allow_all: bool = False) -> None:
        self._owners = dict(owners or {})
        self._allow_all = allow_all

    def set_owner(self, node_id: str, owner: str) -> None:
        self._owners[node_id] = owner

    def can_attach_policy(self, caller: str, node_id: str) -> bool:
        return self._allow_all or self._owners.get(node_id) == caller


class StaticApprovals:
    """Set of (parent, policy, child) triples a licensor has approved."""

    def __init__(self) -> None:
        self._approved: set[tuple[str, str, str]] = set()

    def approve(self, parent_id: str, policy_id: str, child_id: str, approved: bool = True) -> None:
        key = (parent_id, policy_id, child_id)
        if approved:
            self._approved.add(key)
        else:
            self._approved.discard(key)

    def is_approved(self, parent_id: str, policy_id: PolicyId, child_id: str) -> bool:
        return (parent_id, policy_id, child_id) in self._approved


__all__ = [
    "InMemoryPermitLedger",
    "Permit",
    "StaticAccessControl",
    "StaticApprovals",
    "StaticRoyaltyGate",
    "permit_ref_for",
]
