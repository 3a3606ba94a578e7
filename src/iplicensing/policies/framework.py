"""Policy framework families and their registry.

Provides:
- ``PolicyFramework``: capability protocol every family implements.
- ``ReferenceFramework``: the reference family (reciprocal-gated chains).
- ``FrameworkRegistry``: tag → framework dispatch.

A policy names its family in ``Policy.framework``; the registry resolves
that tag to an implementation. Families are not subclasses of each other.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol, Sequence, runtime_checkable

from ..config import DEFAULT_MAX_REV_SHARE, REFERENCE_FRAMEWORK, LicensingConfig
from ..exceptions import InvalidPolicyTermsError, UnknownFrameworkError
from .models import Policy

if TYPE_CHECKING:
    from ..nodes import IPNode

logger = logging.getLogger(__name__)


@runtime_checkable
class PolicyFramework(Protocol):
    """Decisions a policy family makes about its own policies.

    Methods returning ``bool`` answer a question; the caller raises the
    matching error. ``validate_terms`` raises itself because the reason
    matters to whoever is registering the policy.
    """

    name: str

    def validate_terms(self, policy: Policy) -> None: ...

    def can_attach(self, node: IPNode) -> bool: ...

    def can_issue_permit(self, node: IPNode, policy: Policy) -> bool: ...

    def check_compatible_for_link(self, parent_policies: Sequence[Policy]) -> bool: ...

    def derive_child_policies(self, parent_policies: Sequence[Policy]) -> tuple[Policy, ...]: ...

    def requires_licensor_approval(self, policy: Policy) -> bool: ...


class ReferenceFramework:
    """Reference policy family.

    Rules:
    1. Terms are valid when both rev shares are within ``0..max_rev_share``.
       Cross-field combinations (e.g. non-commercial with a commercial
       share) are accepted here and only matter at link/issue time.
    2. Policies attach to Original nodes only.
    3. Original nodes may issue permits under any attached policy.
       Derivative nodes may issue only under a reciprocal policy, so a
       non-reciprocal policy allows exactly one generation of derivation.
    4. Parents consumed together must carry identical policies; the child
       inherits that policy unchanged.

    ``derivatives_allowed`` does not gate issuance from a derivative;
    ``reciprocal`` is the authoritative term.
    """

    name = REFERENCE_FRAMEWORK

    def __init__(self, *, max_rev_share: int = DEFAULT_MAX_REV_SHARE) -> None:
        self.max_rev_share = max_rev_share

    def validate_terms(self, policy: Policy) -> None:
        for term in ("commercial_rev_share", "derivative_rev_share"):
            value = getattr(policy, term)
            if not 0 <= value <= self.max_rev_share:
                raise InvalidPolicyTermsError(
                    f"{term}={value} outside 0..{self.max_rev_share}",
                    term=term,
                    value=value,
                )

    def can_attach(self, node: IPNode) -> bool:
        return node.is_original

    def can_issue_permit(self, node: IPNode, policy: Policy) -> bool:
        if node.is_original:
            return True
        return policy.reciprocal

    def check_compatible_for_link(self, parent_policies: Sequence[Policy]) -> bool:
        if not parent_policies:
            return False
        first = parent_policies[0]
        return all(p == first for p in parent_policies[1:])

    def derive_child_policies(self, parent_policies: Sequence[Policy]) -> tuple[Policy, ...]:
        # Compatible parents are identical, so the merge is the first one.
        return (parent_policies[0],)

    def requires_licensor_approval(self, policy: Policy) -> bool:
        return policy.derivatives_approval

    def __repr__(self) -> str:
        return f"ReferenceFramework(max_rev_share={self.max_rev_share!r})"


class FrameworkRegistry:
    """Maps framework tags to their implementations."""

    def __init__(self) -> None:
        self._frameworks: dict[str, PolicyFramework] = {}

    def register(self, framework: PolicyFramework) -> None:
        if framework.name in self._frameworks:
            logger.warning("Replacing policy framework '%s'", framework.name)
        self._frameworks[framework.name] = framework

    def get(self, name: str) -> PolicyFramework:
        try:
            return self._frameworks[name]
        except KeyError:
            raise UnknownFrameworkError(f"No framework registered for '{name}'", framework=name) from None

    def for_policy(self, policy: Policy) -> PolicyFramework:
        return self.get(policy.framework)

    def names(self) -> tuple[str, ...]:
        return tuple(sorted(self._frameworks))

    def __contains__(self, name: object) -> bool:
        return name in self._frameworks


def default_registry(config: LicensingConfig | None = None) -> FrameworkRegistry:
    """Build a registry holding the reference family, bounded by ``config``."""
    config = config or LicensingConfig()
    registry = FrameworkRegistry()
    registry.register(ReferenceFramework(max_rev_share=config.max_rev_share))
    return registry


__all__ = [
    "FrameworkRegistry",
    "PolicyFramework",
    "ReferenceFramework",
    "default_registry",
]
