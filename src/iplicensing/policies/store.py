"""Content-addressed policy store.

Policies are write-once: registering the same terms twice returns the
first id, and stored terms never change.
"""

from __future__ import annotations

import logging

from ..exceptions import UnknownPolicyError
from .framework import FrameworkRegistry
from .models import Policy, PolicyId, compute_policy_id

logger = logging.getLogger(__name__)


class PolicyStore:
    """Registry of every policy known to the engine.

    Args:
        frameworks: Registry used to validate terms on registration.

    Example::

        store = PolicyStore(default_registry())
        pid = store.register(Policy(commercial_use=True))
        store.register(Policy(commercial_use=True)) == pid  # True
        store.resolve(pid).commercial_use                   # True
    """

    def __init__(self, frameworks: FrameworkRegistry) -> None:
        self._frameworks = frameworks
        self._policies: dict[PolicyId, Policy] = {}

    def register(self, policy: Policy) -> PolicyId:
        """Register ``policy`` and return its id.

        Raises:
            UnknownFrameworkError: ``policy.framework`` is not registered.
            InvalidPolicyTermsError: The framework rejects the terms.
        """
        policy_id = compute_policy_id(policy)
        if policy_id in self._policies:
            return policy_id

        self._frameworks.for_policy(policy).validate_terms(policy)
        self._policies[policy_id] = policy
        logger.info("Registered policy %s (framework=%s)", policy_id, policy.framework)
        return policy_id

    def resolve(self, policy_id: str) -> Policy:
        """Return the terms registered under ``policy_id``.

        Raises:
            UnknownPolicyError: Nothing was registered under that id.
        """
        try:
            return self._policies[PolicyId(policy_id)]
        except KeyError:
            raise UnknownPolicyError(f"Unknown policy {policy_id}", policy_id=policy_id) from None

    def ids(self) -> tuple[PolicyId, ...]:
        return tuple(self._policies)

    def __contains__(self, policy_id: object) -> bool:
        return policy_id in self._policies

    def __len__(self) -> int:
        return len(self._policies)


__all__ = ["PolicyStore"]
