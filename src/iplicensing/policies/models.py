"""Policy term sets and their content-addressed identifiers.

Provides:
- ``Policy``: immutable usage-terms model (pydantic, frozen).
- ``PolicyId``: hex digest identifying a policy by its terms.
- ``compute_policy_id()``: canonical encoding + SHA-256.
"""

from __future__ import annotations

import hashlib
import json
from typing import NewType

from pydantic import BaseModel, Field, field_validator

from ..config import REFERENCE_FRAMEWORK

PolicyId = NewType("PolicyId", str)


class Policy(BaseModel):
    """Immutable set of usage terms attached to IP nodes.

    Two policies with the same terms are the same policy: identity comes
    from :func:`compute_policy_id`, never from object identity.

    Rev shares are basis points. Their bounds are checked by the policy's
    framework at registration, not here, so an out-of-range policy can be
    built and then rejected with a framework error.

    ``reciprocal`` means every derivative created under this policy carries
    it forward unchanged and may keep issuing permits under it.

    Example::

        comm_remix = Policy(
            commercial_use=True,
            derivatives_allowed=True,
            reciprocal=True,
            commercial_rev_share=500,  # 5%
        )
    """

    model_config = {"frozen": True, "extra": "forbid"}

    framework: str = Field(default=REFERENCE_FRAMEWORK, min_length=1)

    # Core terms
    commercial_use: bool = False
    derivatives_allowed: bool = False
    reciprocal: bool = False
    attribution: bool = False
    commercial_rev_share: int = 0
    derivative_rev_share: int = 0

    # Extension terms
    commercial_attribution: bool = False
    derivatives_attribution: bool = False
    derivatives_approval: bool = False
    territories: tuple[str, ...] = ()
    distribution_channels: tuple[str, ...] = ()
    content_restrictions: tuple[str, ...] = ()

    @field_validator("territories", "distribution_channels", "content_restrictions")
    @classmethod
    def normalize_labels(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        """Sort and deduplicate so input order never changes identity."""
        return tuple(sorted({label.strip() for label in v if label.strip()}))

    def canonical_bytes(self) -> bytes:
        """Canonical encoding used for hashing: sorted keys, compact JSON."""
        data = self.model_dump(mode="json")
        return json.dumps(data, sort_keys=True, separators=(",", ":")).encode()

    @property
    def policy_id(self) -> PolicyId:
        return compute_policy_id(self)


def compute_policy_id(policy: Policy) -> PolicyId:
    """Return the content-addressed identifier of ``policy``.

    Pure function of the terms: equal terms always give equal ids.
    """
    return PolicyId(hashlib.sha256(policy.canonical_bytes()).hexdigest())


__all__ = [
    "Policy",
    "PolicyId",
    "compute_policy_id",
]
