"""Node records for the IP derivation graph."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .policies.models import Policy, PolicyId


class NodeState(str, Enum):
    """Lifecycle state of an IP node.

    The only transition is ORIGINAL -> DERIVATIVE, and it happens once.
    """

    ORIGINAL = "original"
    DERIVATIVE = "derivative"


@dataclass(frozen=True)
class ParentLink:
    """One consumed permit: the parent node and the policy it was issued under."""

    parent_id: str
    policy_id: PolicyId


@dataclass(frozen=True)
class IPNode:
    """One IP asset in the graph.

    Records are immutable snapshots; the graph replaces a node's record on
    every change. ``attached_policies`` keeps insertion order so that the
    index returned on attach stays stable. For derivatives it holds the
    inherited set and is never extended.
    """

    node_id: str
    state: NodeState = NodeState.ORIGINAL
    attached_policies: tuple[PolicyId, ...] = ()
    parent_links: tuple[ParentLink, ...] = ()

    @property
    def is_original(self) -> bool:
        return self.state is NodeState.ORIGINAL

    @property
    def is_derivative(self) -> bool:
        return self.state is NodeState.DERIVATIVE

    @property
    def parent_ids(self) -> tuple[str, ...]:
        return tuple(link.parent_id for link in self.parent_links)

    def has_policy(self, policy_id: str) -> bool:
        return policy_id in self.attached_policies


@dataclass(frozen=True)
class LinkPlan:
    """Result of a validated, not yet applied, link.

    Produced by ``IPGraph.prepare_link`` and consumed by
    ``IPGraph.commit_link``; holding one never mutates the graph.
    """

    child_id: str
    parent_links: tuple[ParentLink, ...]
    derived_terms: tuple[Policy, ...]

    @property
    def derived_policies(self) -> tuple[PolicyId, ...]:
        return tuple(policy.policy_id for policy in self.derived_terms)

    @property
    def parent_ids(self) -> tuple[str, ...]:
        return tuple(link.parent_id for link in self.parent_links)

    @property
    def consumed_policies(self) -> tuple[PolicyId, ...]:
        return tuple(link.policy_id for link in self.parent_links)


__all__ = [
    "IPNode",
    "LinkPlan",
    "NodeState",
    "ParentLink",
]
