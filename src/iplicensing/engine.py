"""Licensing engine: attach policies, issue permits, link derivatives.

The engine owns no data. It orchestrates the policy store, the graph,
the framework registry and the external collaborators, and performs
every check before the first write:

    add_policy_to_node:  access control → graph attach
    issue_permit:        policy set on node → framework → royalty gate → ledger mint
    link_to_parents:     ledger resolve → graph prepare → approvals
                         → ledger consume → graph commit → royalty notify
"""

from __future__ import annotations

from typing import Sequence

from .config import LicensingConfig
from .exceptions import (
    AccessDeniedError,
    DerivativeNotApprovedError,
    DerivativesCannotAddPolicyError,
    InvalidLinkError,
    InvalidRequestError,
    IssuanceNotPermittedError,
    LicensingError,
    PolicyNotAttachedError,
    RoyaltyNotConfiguredError,
)
from .graph import IPGraph
from .interfaces import AccessControl, DerivativeApprovals, PermitLedger, PermitRef, RoyaltyGate
from .logging import get_licensing_logger
from .nodes import IPNode, LinkPlan, ParentLink
from .policies import FrameworkRegistry, Policy, PolicyId, PolicyStore, default_registry

logger = get_licensing_logger(__name__)


class LicensingEngine:
    """Orchestrates policy attachment, permit issuance and derivative linking.

    Args:
        store: Policy store shared with ``graph``.
        graph: IP node graph.
        frameworks: Framework registry shared with ``store`` and ``graph``.
        ledger: Permit balance ledger (mint/resolve/consume).
        royalty: Royalty gate for commercial policies.
        access: Access control for policy attachment.
        approvals: Licensor approvals; required only when a consumed
            policy demands derivative approval.

    Example::

        engine = LicensingEngine.from_config(
            ledger=InMemoryPermitLedger(),
            royalty=StaticRoyaltyGate(),
            access=StaticAccessControl(allow_all=True),
        )
        engine.register_node("ip-a")
        pid = engine.register_policy(Policy(reciprocal=True))
        engine.add_policy_to_node("alice", "ip-a", pid)
        ref = engine.issue_permit(pid, "ip-a", 1, "bob")
        engine.register_node("ip-b")
        engine.link_to_parents([ref], "ip-b", holder="bob")
    """

    def __init__(
        self,
        *,
        store: PolicyStore,
        graph: IPGraph,
        frameworks: FrameworkRegistry,
        ledger: PermitLedger,
        royalty: RoyaltyGate,
        access: AccessControl,
        approvals: DerivativeApprovals | None = None,
    ) -> None:
        self.store = store
        self.graph = graph
        self.frameworks = frameworks
        self._ledger = ledger
        self._royalty = royalty
        self._access = access
        self._approvals = approvals

    @classmethod
    def from_config(
        cls,
        config: LicensingConfig | None = None,
        *,
        ledger: PermitLedger,
        royalty: RoyaltyGate,
        access: AccessControl,
        approvals: DerivativeApprovals | None = None,
    ) -> LicensingEngine:
        """Build an engine with a fresh store and graph over the default registry."""
        frameworks = default_registry(config)
        store = PolicyStore(frameworks)
        return cls(
            store=store,
            graph=IPGraph(store, frameworks),
            frameworks=frameworks,
            ledger=ledger,
            royalty=royalty,
            access=access,
            approvals=approvals,
        )

    # ── Registration ────────────────────────────────────

    def register_policy(self, policy: Policy) -> PolicyId:
        return self.store.register(policy)

    def register_node(self, node_id: str) -> IPNode:
        return self.graph.register_node(node_id)

    # ── Attach ──────────────────────────────────────────

    def add_policy_to_node(self, caller: str, node_id: str, policy_id: str) -> int:
        """Attach a registered policy to a node on behalf of ``caller``.

        Returns:
            Index of the policy on the node.

        Raises:
            UnknownNodeError: Node is not registered.
            AccessDeniedError: ``caller`` has no attach authority over the node.
            UnknownPolicyError: Policy is not registered.
            DerivativesCannotAddPolicyError: Node is a derivative.
        """
        self.graph.get(node_id)
        self._check_attach_access(caller, node_id, policy_id)
        return self.graph.attach_policy(node_id, policy_id)

    def register_and_attach(self, caller: str, node_id: str, policy: Policy) -> tuple[PolicyId, int]:
        """Register ``policy`` (idempotently) and attach it to ``node_id``.

        Nothing is registered when the attach would be rejected.
        """
        node = self.graph.get(node_id)
        self._check_attach_access(caller, node_id, policy.policy_id)
        framework = self.frameworks.for_policy(policy)
        if not framework.can_attach(node):
            raise DerivativesCannotAddPolicyError(
                f"Node {node_id} is a derivative and cannot add policies",
                node_id=node_id,
                policy_id=policy.policy_id,
            )
        framework.validate_terms(policy)
        policy_id = self.store.register(policy)
        return policy_id, self.graph.attach_policy(node_id, policy_id)

    def _check_attach_access(self, caller: str, node_id: str, policy_id: str) -> None:
        if not self._access.can_attach_policy(caller, node_id):
            logger.debug("Attach denied for caller %s", caller, node_id=node_id, policy_id=policy_id)
            raise AccessDeniedError(
                f"{caller} may not add policies to {node_id}",
                caller=caller,
                node_id=node_id,
            )

    # ── Issue ───────────────────────────────────────────

    def issue_permit(self, policy_id: str, node_id: str, quantity: int, receiver: str) -> PermitRef:
        """Mint ``quantity`` permits of (node, policy) to ``receiver``.

        Returns:
            The ledger's reference for the minted permit class.

        Raises:
            InvalidRequestError: ``quantity`` is not positive.
            UnknownNodeError: Node is not registered.
            UnknownPolicyError: Policy is not registered.
            PolicyNotAttachedError: Policy is not set on the node.
            IssuanceNotPermittedError: Derivative node under a non-reciprocal policy.
            RoyaltyNotConfiguredError: Commercial policy, no minimum royalty for node.
        """
        if quantity < 1:
            raise InvalidRequestError(f"Quantity must be positive, got {quantity}", quantity=quantity)

        node = self.graph.get(node_id)
        policy = self.store.resolve(policy_id)
        try:
            self._check_issuable(node, PolicyId(policy_id), policy)
        except LicensingError as e:
            logger.debug("Issuance rejected: [%s] %s", e.code, e.message, node_id=node_id, policy_id=policy_id)
            raise

        permit_ref = self._ledger.mint(node_id, PolicyId(policy_id), quantity, receiver)
        logger.info("Issued %d permit(s) to %s", quantity, receiver, node_id=node_id, policy_id=policy_id)
        return permit_ref

    def can_issue_permit(self, policy_id: str, node_id: str) -> bool:
        """Dry run of :meth:`issue_permit` checks; never mints."""
        try:
            node = self.graph.get(node_id)
            self._check_issuable(node, PolicyId(policy_id), self.store.resolve(policy_id))
        except LicensingError:
            return False
        return True

    def _check_issuable(self, node: IPNode, policy_id: PolicyId, policy: Policy) -> None:
        if not node.has_policy(policy_id):
            raise PolicyNotAttachedError(
                f"Policy {policy_id} is not set for node {node.node_id}",
                node_id=node.node_id,
                policy_id=policy_id,
            )
        if not self.frameworks.for_policy(policy).can_issue_permit(node, policy):
            raise IssuanceNotPermittedError(
                f"Node {node.node_id} cannot issue permits under policy {policy_id}",
                node_id=node.node_id,
                policy_id=policy_id,
            )
        if policy.commercial_use and not self._royalty.has_minimum_royalty(node.node_id):
            raise RoyaltyNotConfiguredError(
                f"Node {node.node_id} has no minimum royalty for commercial policy {policy_id}",
                node_id=node.node_id,
                policy_id=policy_id,
            )

    # ── Link ────────────────────────────────────────────

    def link_to_parents(
        self,
        permits: Sequence[PermitRef],
        child_id: str,
        holder: str,
        royalty_context: bytes = b"",
    ) -> IPNode:
        """Consume one unit of each permit to make ``child_id`` a derivative.

        Permits are consumed only after the link has been fully validated,
        and the child's lock is held from validation to commit.

        Raises:
            InvalidLinkError: No permits, self-link or duplicate parent.
            PermitNotHeldError: ``holder`` does not own one of the permits.
            AlreadyDerivativeError: Child already has parents.
            PolicyNotAttachedError: A parent does not hold the consumed policy.
            IssuanceNotPermittedError: A derivative parent cannot license its policy downstream.
            IncompatibleParentPoliciesError: Consumed policies cannot be merged.
            DerivativeNotApprovedError: A policy requires licensor approval.
        """
        if not permits:
            raise InvalidLinkError(f"Node {child_id} must consume at least one permit", node_id=child_id)

        with self.graph.locked(child_id):
            links = [ParentLink(*self._ledger.resolve(ref, holder)) for ref in permits]
            plan = self.graph.prepare_link(child_id, links)
            self._check_approvals(plan)

            for ref in permits:
                self._ledger.consume(ref, holder)
            child = self.graph.commit_link(plan)

        self._royalty.on_link_to_parents(child_id, plan.parent_ids, plan.consumed_policies, royalty_context)
        logger.info(
            "Node became derivative of %s consuming %d permit(s) held by %s",
            ", ".join(plan.parent_ids),
            len(permits),
            holder,
            node_id=child_id,
        )
        return child

    def _check_approvals(self, plan: LinkPlan) -> None:
        for link in plan.parent_links:
            policy = self.store.resolve(link.policy_id)
            if not self.frameworks.for_policy(policy).requires_licensor_approval(policy):
                continue
            if self._approvals is None or not self._approvals.is_approved(
                link.parent_id, link.policy_id, plan.child_id
            ):
                raise DerivativeNotApprovedError(
                    f"Parent {link.parent_id} has not approved {plan.child_id} under {link.policy_id}",
                    node_id=link.parent_id,
                    policy_id=link.policy_id,
                    child_id=plan.child_id,
                )


__all__ = ["LicensingEngine"]
