"""IP derivation graph: node state, attached policies and parent links.

Each node is a small state machine:

    ORIGINAL --(commit_link)--> DERIVATIVE

Original nodes collect policies freely. A node becomes Derivative exactly
once, when its parent links are recorded, and from then on its policy set
is the one derived from its parents and cannot grow.

Linking is split in two so callers can do external work (consuming
permits) between validation and mutation:

    plan = graph.prepare_link(child_id, links)   # all checks, no writes
    ...                                          # consume permits
    graph.commit_link(plan)                      # writes
"""

from __future__ import annotations

import logging
import threading
from dataclasses import replace
from typing import Iterable, Sequence

from .exceptions import (
    AlreadyDerivativeError,
    DerivativesCannotAddPolicyError,
    IncompatibleParentPoliciesError,
    InvalidLinkError,
    InvalidRequestError,
    IssuanceNotPermittedError,
    PolicyNotAttachedError,
    UnknownNodeError,
)
from .nodes import IPNode, LinkPlan, NodeState, ParentLink
from .policies import FrameworkRegistry, Policy, PolicyId, PolicyStore

logger = logging.getLogger(__name__)


class IPGraph:
    """Owns every node's state.

    Mutations on one node are serialized by a per-node lock, so the
    ORIGINAL -> DERIVATIVE transition happens at most once even with
    concurrent callers.

    Args:
        store: Policy store used to resolve policy ids to terms.
        frameworks: Registry that decides attach/link rules per family.
    """

    def __init__(self, store: PolicyStore, frameworks: FrameworkRegistry) -> None:
        self._store = store
        self._frameworks = frameworks
        self._nodes: dict[str, IPNode] = {}
        self._children: dict[str, list[str]] = {}
        self._locks: dict[str, threading.RLock] = {}
        self._guard = threading.Lock()

    # ── Nodes ───────────────────────────────────────────

    def register_node(self, node_id: str) -> IPNode:
        """Create an Original node, or return the existing one."""
        if not node_id:
            raise InvalidRequestError("Node id must be non-empty")
        with self._guard:
            node = self._nodes.get(node_id)
            if node is None:
                node = IPNode(node_id=node_id)
                self._nodes[node_id] = node
                self._locks[node_id] = threading.RLock()
                logger.debug("Registered node %s", node_id)
            return node

    def get(self, node_id: str) -> IPNode:
        try:
            return self._nodes[node_id]
        except KeyError:
            raise UnknownNodeError(f"Unknown node {node_id}", node_id=node_id) from None

    def locked(self, node_id: str) -> threading.RLock:
        """Per-node lock; hold it to keep a prepared link valid until commit."""
        self.get(node_id)
        return self._locks[node_id]

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    # ── Policies ────────────────────────────────────────

    def attach_policy(self, node_id: str, policy_id: str) -> int:
        """Attach a registered policy to an Original node.

        Attaching a policy that is already present is a no-op.

        Returns:
            Index of the policy in the node's policy list.

        Raises:
            UnknownNodeError: Node is not registered.
            UnknownPolicyError: Policy is not registered.
            DerivativesCannotAddPolicyError: Node is a derivative.
        """
        self.get(node_id)
        policy = self._store.resolve(policy_id)
        framework = self._frameworks.for_policy(policy)

        with self._locks[node_id]:
            node = self._nodes[node_id]
            if not framework.can_attach(node):
                raise DerivativesCannotAddPolicyError(
                    f"Node {node_id} is a derivative and cannot add policy {policy_id}",
                    node_id=node_id,
                    policy_id=policy_id,
                )
            if node.has_policy(policy_id):
                return node.attached_policies.index(PolicyId(policy_id))
            index = len(node.attached_policies)
            self._nodes[node_id] = replace(node, attached_policies=node.attached_policies + (PolicyId(policy_id),))

        logger.info("Attached policy %s to node %s at index %d", policy_id, node_id, index)
        return index

    def policies_for(self, node_id: str) -> tuple[PolicyId, ...]:
        return tuple(self.get(node_id).attached_policies)

    def is_policy_inherited(self, node_id: str, policy_id: str) -> bool:
        """True when the node holds ``policy_id`` because it was derived."""
        node = self.get(node_id)
        return node.is_derivative and node.has_policy(policy_id)

    # ── Links ───────────────────────────────────────────

    def prepare_link(self, child_id: str, parent_links: Sequence[ParentLink]) -> LinkPlan:
        """Validate a link and compute the child's policy set, without writing.

        Raises:
            UnknownNodeError: Child or a parent is not registered.
            AlreadyDerivativeError: Child already has parents.
            InvalidLinkError: No parents, self-link, duplicate parent
                or a parent descending from the child.
            UnknownPolicyError: A consumed policy is not registered.
            PolicyNotAttachedError: A parent does not hold the consumed policy.
            IssuanceNotPermittedError: A derivative parent may not license its
                policy downstream.
            IncompatibleParentPoliciesError: Consumed policies cannot be merged.
        """
        child = self.get(child_id)
        if child.is_derivative:
            raise AlreadyDerivativeError(f"Node {child_id} is already a derivative", node_id=child_id)

        links = tuple(parent_links)
        if not links:
            raise InvalidLinkError(f"Node {child_id} must be linked to at least one parent", node_id=child_id)

        seen: set[str] = set()
        parent_policies: list[Policy] = []
        for link in links:
            if link.parent_id == child_id:
                raise InvalidLinkError(f"Node {child_id} cannot be its own parent", node_id=child_id)
            if link.parent_id in seen:
                raise InvalidLinkError(
                    f"Parent {link.parent_id} appears more than once",
                    node_id=child_id,
                    parent_id=link.parent_id,
                )
            seen.add(link.parent_id)

            parent = self.get(link.parent_id)
            policy = self._store.resolve(link.policy_id)
            if not parent.has_policy(link.policy_id):
                raise PolicyNotAttachedError(
                    f"Policy {link.policy_id} is not set for parent {link.parent_id}",
                    node_id=link.parent_id,
                    policy_id=link.policy_id,
                )
            if parent.is_derivative and not self._frameworks.for_policy(policy).can_issue_permit(parent, policy):
                raise IssuanceNotPermittedError(
                    f"Derivative {link.parent_id} cannot license {link.policy_id} downstream",
                    node_id=link.parent_id,
                    policy_id=link.policy_id,
                )
            if self._is_ancestor(child_id, link.parent_id):
                raise InvalidLinkError(
                    f"Node {child_id} is an ancestor of {link.parent_id}",
                    node_id=child_id,
                    parent_id=link.parent_id,
                )
            parent_policies.append(policy)

        tags = {policy.framework for policy in parent_policies}
        if len(tags) > 1:
            raise IncompatibleParentPoliciesError(
                f"Parent policies span frameworks {sorted(tags)}",
                node_id=child_id,
            )
        framework = self._frameworks.for_policy(parent_policies[0])
        if not framework.check_compatible_for_link(parent_policies):
            raise IncompatibleParentPoliciesError(
                f"Parent policies of {child_id} are incompatible",
                node_id=child_id,
                policy_ids=[link.policy_id for link in links],
            )

        derived = framework.derive_child_policies(parent_policies)
        for policy in derived:
            if policy.policy_id not in self._store:
                self._frameworks.for_policy(policy).validate_terms(policy)
        return LinkPlan(child_id=child_id, parent_links=links, derived_terms=tuple(derived))

    def commit_link(self, plan: LinkPlan) -> IPNode:
        """Apply a prepared link: the child becomes a Derivative.

        Raises:
            AlreadyDerivativeError: The child was linked after ``plan`` was prepared.
        """
        self.get(plan.child_id)
        with self._locks[plan.child_id]:
            child = self._nodes[plan.child_id]
            if child.is_derivative:
                raise AlreadyDerivativeError(f"Node {plan.child_id} is already a derivative", node_id=plan.child_id)
            derived_ids = [self._store.register(policy) for policy in plan.derived_terms]
            child = replace(
                child,
                state=NodeState.DERIVATIVE,
                attached_policies=tuple(dict.fromkeys(derived_ids)),
                parent_links=plan.parent_links,
            )
            self._nodes[plan.child_id] = child

        with self._guard:
            for parent_id in plan.parent_ids:
                self._children.setdefault(parent_id, []).append(plan.child_id)

        logger.info(
            "Linked node %s to parents %s",
            plan.child_id,
            ", ".join(plan.parent_ids),
        )
        return child

    def record_link(self, child_id: str, parent_links: Iterable[ParentLink]) -> IPNode:
        """Validate and apply a link in one step."""
        with self.locked(child_id):
            return self.commit_link(self.prepare_link(child_id, tuple(parent_links)))

    def _is_ancestor(self, ancestor_id: str, node_id: str) -> bool:
        pending = list(self._nodes[node_id].parent_ids)
        visited: set[str] = set()
        while pending:
            current = pending.pop()
            if current == ancestor_id:
                return True
            if current not in visited:
                visited.add(current)
                pending.extend(self._nodes[current].parent_ids)
        return False

    def parents_of(self, node_id: str) -> tuple[str, ...]:
        return self.get(node_id).parent_ids

    def children_of(self, node_id: str) -> tuple[str, ...]:
        self.get(node_id)
        return tuple(self._children.get(node_id, ()))

    def is_parent(self, parent_id: str, child_id: str) -> bool:
        return parent_id in self.get(child_id).parent_ids


__all__ = ["IPGraph"]
