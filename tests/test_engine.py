"""Tests for the licensing engine: attach, issue and link flows."""

from __future__ import annotations

import logging

import pytest

from iplicensing import (
    AccessDeniedError,
    AlreadyDerivativeError,
    DerivativeNotApprovedError,
    DerivativesCannotAddPolicyError,
    IncompatibleParentPoliciesError,
    InMemoryPermitLedger,
    InvalidLinkError,
    InvalidPolicyTermsError,
    InvalidRequestError,
    IssuanceNotPermittedError,
    LicensingEngine,
    NodeState,
    PermitNotHeldError,
    Policy,
    PolicyNotAttachedError,
    RoyaltyNotConfiguredError,
    StaticApprovals,
    StaticRoyaltyGate,
    UnknownNodeError,
    UnknownPolicyError,
)

from conftest import LICENSEE, OWNER


def _attach(engine: LicensingEngine, node_id: str, policy: Policy) -> str:
    pid = engine.register_policy(policy)
    engine.add_policy_to_node(OWNER, node_id, pid)
    return pid


class TestAddPolicyToNode:
    """Tests for policy attachment through the engine."""

    def test_two_policy_original(self, engine, comm_deriv, comm_non_deriv) -> None:
        """Both commercial policies attach to the same Original node."""
        p1 = _attach(engine, "ip-a", comm_deriv)
        p2 = _attach(engine, "ip-a", comm_non_deriv)
        assert engine.graph.policies_for("ip-a") == (p1, p2)

    def test_access_denied(self, engine, comm_deriv) -> None:
        pid = engine.register_policy(comm_deriv)
        with pytest.raises(AccessDeniedError):
            engine.add_policy_to_node("mallory", "ip-a", pid)
        assert engine.graph.policies_for("ip-a") == ()

    def test_register_and_attach_access_denied(self, engine, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.DEBUG, logger="iplicensing"):
            with pytest.raises(AccessDeniedError):
                engine.register_and_attach("mallory", "ip-a", Policy(reciprocal=True))
        assert len(engine.store) == 0
        assert any(r.getMessage() == "Attach denied for caller mallory" for r in caplog.records)

    def test_unknown_policy(self, engine) -> None:
        with pytest.raises(UnknownPolicyError):
            engine.add_policy_to_node(OWNER, "ip-a", "0" * 64)

    def test_unknown_node(self, engine, comm_deriv) -> None:
        pid = engine.register_policy(comm_deriv)
        with pytest.raises(UnknownNodeError):
            engine.add_policy_to_node(OWNER, "ip-zzz", pid)

    def test_register_and_attach(self, engine, comm_reciprocal) -> None:
        pid, index = engine.register_and_attach(OWNER, "ip-a", comm_reciprocal)
        assert index == 0
        assert pid in engine.store
        assert engine.graph.policies_for("ip-a") == (pid,)

    def test_register_and_attach_invalid_terms(self, engine) -> None:
        with pytest.raises(InvalidPolicyTermsError):
            engine.register_and_attach(OWNER, "ip-a", Policy(commercial_rev_share=10_001))
        assert len(engine.store) == 0


class TestIssuePermit:
    """Tests for permit issuance."""

    @pytest.mark.parametrize("quantity", [1, 2, 100])
    def test_non_commercial_needs_no_royalty(self, engine, ledger, non_comm_social, quantity: int) -> None:
        pid = _attach(engine, "ip-a", non_comm_social)
        ref = engine.issue_permit(pid, "ip-a", quantity, LICENSEE)
        assert ledger.balance_of(LICENSEE, ref) == quantity

    def test_commercial_requires_royalty(self, engine, royalty, ledger, comm_deriv) -> None:
        pid = _attach(engine, "ip-a", comm_deriv)
        with pytest.raises(RoyaltyNotConfiguredError):
            engine.issue_permit(pid, "ip-a", 1, LICENSEE)
        assert not engine.can_issue_permit(pid, "ip-a")

        royalty.configure("ip-a")
        ref = engine.issue_permit(pid, "ip-a", 1, LICENSEE)
        assert ledger.balance_of(LICENSEE, ref) == 1
        assert engine.can_issue_permit(pid, "ip-a")

    def test_two_policies_issue_independently(self, engine, royalty, ledger, comm_deriv, comm_non_deriv) -> None:
        p1 = _attach(engine, "ip-a", comm_deriv)
        p2 = _attach(engine, "ip-a", comm_non_deriv)
        royalty.configure("ip-a")
        r1 = engine.issue_permit(p1, "ip-a", 2, LICENSEE)
        r2 = engine.issue_permit(p2, "ip-a", 3, LICENSEE)
        assert r1 != r2
        assert ledger.balance_of(LICENSEE, r1) == 2
        assert ledger.balance_of(LICENSEE, r2) == 3

    def test_repeat_issue_accumulates(self, engine, ledger, non_comm_social) -> None:
        pid = _attach(engine, "ip-a", non_comm_social)
        engine.issue_permit(pid, "ip-a", 1, LICENSEE)
        ref = engine.issue_permit(pid, "ip-a", 4, LICENSEE)
        assert ledger.balance_of(LICENSEE, ref) == 5
        assert ledger.total_supply(ref) == 5

    @pytest.mark.parametrize("quantity", [0, -1])
    def test_non_positive_quantity(self, engine, non_comm_social, quantity: int) -> None:
        pid = _attach(engine, "ip-a", non_comm_social)
        with pytest.raises(InvalidRequestError):
            engine.issue_permit(pid, "ip-a", quantity, LICENSEE)

    def test_policy_not_attached(self, engine, non_comm_social) -> None:
        pid = engine.register_policy(non_comm_social)
        with pytest.raises(PolicyNotAttachedError):
            engine.issue_permit(pid, "ip-a", 1, LICENSEE)

    def test_unknown_policy(self, engine) -> None:
        with pytest.raises(UnknownPolicyError):
            engine.issue_permit("1" * 64, "ip-a", 1, LICENSEE)

    def test_failure_mints_nothing(self, engine, ledger, comm_deriv) -> None:
        pid = _attach(engine, "ip-a", comm_deriv)
        with pytest.raises(RoyaltyNotConfiguredError):
            engine.issue_permit(pid, "ip-a", 5, LICENSEE)
        assert ledger.total_supply(f"ip-a/{pid}") == 0


class TestLinkToParents:
    """Tests for derivative creation and downstream issuance."""

    def test_link_consumes_permit(self, engine, ledger, royalty, non_comm_social) -> None:
        pid = _attach(engine, "ip-a", non_comm_social)
        ref = engine.issue_permit(pid, "ip-a", 2, LICENSEE)

        child = engine.link_to_parents([ref], "ip-b", holder=LICENSEE, royalty_context=b"ctx")

        assert child.state is NodeState.DERIVATIVE
        assert engine.graph.policies_for("ip-b") == (pid,)
        assert ledger.balance_of(LICENSEE, ref) == 1
        assert royalty.links == [("ip-b", ("ip-a",), (pid,), b"ctx")]

    def test_derivative_of_derivative_blocked(self, engine, royalty, comm_non_deriv) -> None:
        """Non-reciprocal policy allows one generation only."""
        pid = _attach(engine, "ip-a", comm_non_deriv)
        royalty.configure("ip-a")
        ref = engine.issue_permit(pid, "ip-a", 1, LICENSEE)
        engine.link_to_parents([ref], "ip-b", holder=LICENSEE)
        assert engine.graph.get("ip-b").is_derivative

        for receiver in (LICENSEE, OWNER, "carol"):
            with pytest.raises(IssuanceNotPermittedError):
                engine.issue_permit(pid, "ip-b", 1, receiver)
        assert not engine.can_issue_permit(pid, "ip-b")

    def test_stale_permit_from_derivative_rejected(self, engine, ledger) -> None:
        """A permit minted while the parent was Original cannot open a second generation."""
        pid = _attach(engine, "ip-a", Policy(derivatives_allowed=True))
        engine.add_policy_to_node(OWNER, "ip-b", pid)
        stale = engine.issue_permit(pid, "ip-b", 2, LICENSEE)
        ref_a = engine.issue_permit(pid, "ip-a", 1, LICENSEE)
        engine.link_to_parents([ref_a], "ip-b", holder=LICENSEE)
        assert not engine.can_issue_permit(pid, "ip-b")

        with pytest.raises(IssuanceNotPermittedError):
            engine.link_to_parents([stale], "ip-c", holder=LICENSEE)
        assert ledger.balance_of(LICENSEE, stale) == 2
        assert engine.graph.get("ip-c").is_original
        assert engine.graph.children_of("ip-b") == ()

    def test_link_back_to_descendant_rejected(self, engine, ledger, non_comm_social) -> None:
        pid = _attach(engine, "ip-a", non_comm_social)
        ref_a = engine.issue_permit(pid, "ip-a", 1, LICENSEE)
        engine.link_to_parents([ref_a], "ip-b", holder=LICENSEE)
        ref_b = engine.issue_permit(pid, "ip-b", 1, LICENSEE)

        with pytest.raises(InvalidLinkError):
            engine.link_to_parents([ref_b], "ip-a", holder=LICENSEE)
        assert ledger.balance_of(LICENSEE, ref_b) == 1
        assert engine.graph.get("ip-a").is_original
        assert not engine.graph.is_parent("ip-b", "ip-a")

    def test_non_reciprocal_derivatives_allowed_still_blocked(self, engine, royalty, comm_deriv) -> None:
        """derivatives_allowed alone does not open a second generation."""
        pid = _attach(engine, "ip-a", comm_deriv)
        royalty.configure("ip-a")
        ref = engine.issue_permit(pid, "ip-a", 1, LICENSEE)
        engine.link_to_parents([ref], "ip-b", holder=LICENSEE)
        with pytest.raises(IssuanceNotPermittedError):
            engine.issue_permit(pid, "ip-b", 1, LICENSEE)

    @pytest.mark.parametrize("receiver", [LICENSEE, OWNER, "carol"])
    @pytest.mark.parametrize("quantity", [1, 7])
    def test_reciprocal_chain(self, engine, royalty, ledger, comm_reciprocal, receiver: str, quantity: int) -> None:
        pid = _attach(engine, "ip-a", comm_reciprocal)
        royalty.configure("ip-a")
        ref = engine.issue_permit(pid, "ip-a", 1, LICENSEE)
        engine.link_to_parents([ref], "ip-b", holder=LICENSEE)

        ref_b = engine.issue_permit(pid, "ip-b", quantity, receiver)
        assert ledger.balance_of(receiver, ref_b) == quantity

    def test_reciprocal_chain_three_generations(self, engine, non_comm_social) -> None:
        pid = _attach(engine, "ip-a", non_comm_social)
        ref_a = engine.issue_permit(pid, "ip-a", 1, LICENSEE)
        engine.link_to_parents([ref_a], "ip-b", holder=LICENSEE)
        ref_b = engine.issue_permit(pid, "ip-b", 1, LICENSEE)
        engine.link_to_parents([ref_b], "ip-c", holder=LICENSEE)

        assert engine.graph.policies_for("ip-c") == (pid,)
        assert engine.graph.parents_of("ip-c") == ("ip-b",)
        assert engine.can_issue_permit(pid, "ip-c")

    def test_derivative_inherits_royalty_setup(self, engine, royalty, comm_reciprocal) -> None:
        """The child inherits royalty setup only through a configured parent."""
        pid = _attach(engine, "ip-a", comm_reciprocal)
        royalty.configure("ip-a")
        ref = engine.issue_permit(pid, "ip-a", 1, LICENSEE)
        engine.link_to_parents([ref], "ip-b", holder=LICENSEE)
        assert royalty.has_minimum_royalty("ip-b")

    @pytest.mark.parametrize("fixture_name", ["comm_deriv", "comm_non_deriv", "comm_reciprocal", "non_comm_social"])
    def test_derivative_cannot_attach(self, engine, royalty, request, fixture_name: str) -> None:
        policy = request.getfixturevalue(fixture_name)
        pid = _attach(engine, "ip-a", policy)
        royalty.configure("ip-a")
        ref = engine.issue_permit(pid, "ip-a", 1, LICENSEE)
        engine.link_to_parents([ref], "ip-b", holder=LICENSEE)

        fresh = engine.register_policy(Policy(attribution=True, territories=("BR",)))
        for candidate in (fresh, pid):
            with pytest.raises(DerivativesCannotAddPolicyError):
                engine.add_policy_to_node(OWNER, "ip-b", candidate)
        with pytest.raises(DerivativesCannotAddPolicyError):
            engine.register_and_attach(OWNER, "ip-b", Policy(content_restrictions=("no-ai",)))
        assert engine.graph.policies_for("ip-b") == (pid,)

    def test_relink_rejected_and_permit_kept(self, engine, ledger, non_comm_social) -> None:
        pid = _attach(engine, "ip-a", non_comm_social)
        engine.add_policy_to_node(OWNER, "ip-c", pid)
        ref_a = engine.issue_permit(pid, "ip-a", 1, LICENSEE)
        ref_c = engine.issue_permit(pid, "ip-c", 1, LICENSEE)
        engine.link_to_parents([ref_a], "ip-b", holder=LICENSEE)

        with pytest.raises(AlreadyDerivativeError):
            engine.link_to_parents([ref_c], "ip-b", holder=LICENSEE)
        assert ledger.balance_of(LICENSEE, ref_c) == 1

    def test_permit_not_held(self, engine, non_comm_social) -> None:
        pid = _attach(engine, "ip-a", non_comm_social)
        ref = engine.issue_permit(pid, "ip-a", 1, LICENSEE)
        with pytest.raises(PermitNotHeldError):
            engine.link_to_parents([ref], "ip-b", holder="mallory")
        assert engine.graph.get("ip-b").is_original

    def test_no_permits(self, engine) -> None:
        with pytest.raises(InvalidLinkError):
            engine.link_to_parents([], "ip-b", holder=LICENSEE)

    def test_self_link_keeps_permit(self, engine, ledger, non_comm_social) -> None:
        pid = _attach(engine, "ip-a", non_comm_social)
        ref = engine.issue_permit(pid, "ip-a", 1, LICENSEE)
        with pytest.raises(InvalidLinkError):
            engine.link_to_parents([ref], "ip-a", holder=LICENSEE)
        assert ledger.balance_of(LICENSEE, ref) == 1

    def test_multi_parent_incompatible_consumes_nothing(self, engine, ledger, royalty) -> None:
        p1 = _attach(engine, "ip-a", Policy(reciprocal=True))
        p2 = _attach(engine, "ip-c", Policy(reciprocal=False))
        r1 = engine.issue_permit(p1, "ip-a", 1, LICENSEE)
        r2 = engine.issue_permit(p2, "ip-c", 1, LICENSEE)

        with pytest.raises(IncompatibleParentPoliciesError):
            engine.link_to_parents([r1, r2], "ip-b", holder=LICENSEE)
        assert ledger.balance_of(LICENSEE, r1) == 1
        assert ledger.balance_of(LICENSEE, r2) == 1
        assert engine.graph.get("ip-b").is_original
        assert royalty.links == []

    def test_multi_parent_identical(self, engine, ledger) -> None:
        policy = Policy(reciprocal=True, attribution=True)
        pid = _attach(engine, "ip-a", policy)
        engine.add_policy_to_node(OWNER, "ip-c", pid)
        r1 = engine.issue_permit(pid, "ip-a", 1, LICENSEE)
        r2 = engine.issue_permit(pid, "ip-c", 1, LICENSEE)

        child = engine.link_to_parents([r1, r2], "ip-b", holder=LICENSEE)
        assert child.parent_ids == ("ip-a", "ip-c")
        assert child.attached_policies == (pid,)
        assert ledger.balance_of(LICENSEE, r1) == 0
        assert ledger.balance_of(LICENSEE, r2) == 0


class TestDerivativeApproval:
    """Tests for policies that require licensor approval."""

    def test_unapproved_link_rejected(self, engine, ledger) -> None:
        pid = _attach(engine, "ip-a", Policy(reciprocal=True, derivatives_approval=True))
        ref = engine.issue_permit(pid, "ip-a", 1, LICENSEE)
        with pytest.raises(DerivativeNotApprovedError):
            engine.link_to_parents([ref], "ip-b", holder=LICENSEE)
        assert ledger.balance_of(LICENSEE, ref) == 1

    def test_approved_link(self, engine, approvals: StaticApprovals) -> None:
        pid = _attach(engine, "ip-a", Policy(reciprocal=True, derivatives_approval=True))
        ref = engine.issue_permit(pid, "ip-a", 1, LICENSEE)
        approvals.approve("ip-a", pid, "ip-b")
        engine.link_to_parents([ref], "ip-b", holder=LICENSEE)
        assert engine.graph.get("ip-b").is_derivative

    def test_revoked_approval(self, engine, approvals: StaticApprovals) -> None:
        pid = _attach(engine, "ip-a", Policy(derivatives_approval=True))
        ref = engine.issue_permit(pid, "ip-a", 1, LICENSEE)
        approvals.approve("ip-a", pid, "ip-b")
        approvals.approve("ip-a", pid, "ip-b", approved=False)
        with pytest.raises(DerivativeNotApprovedError):
            engine.link_to_parents([ref], "ip-b", holder=LICENSEE)

    def test_no_approvals_collaborator(self, access) -> None:
        engine = LicensingEngine.from_config(
            ledger=InMemoryPermitLedger(),
            royalty=StaticRoyaltyGate(),
            access=access,
        )
        engine.register_node("ip-a")
        engine.register_node("ip-b")
        pid = _attach(engine, "ip-a", Policy(derivatives_approval=True))
        ref = engine.issue_permit(pid, "ip-a", 1, LICENSEE)
        with pytest.raises(DerivativeNotApprovedError):
            engine.link_to_parents([ref], "ip-b", holder=LICENSEE)
