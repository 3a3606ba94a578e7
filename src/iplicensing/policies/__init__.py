"""Policy terms, framework families and the policy store.

Defines:
- Policy: Immutable usage-terms model
- PolicyId / compute_policy_id(): Content-addressed identity
- PolicyFramework: Capability protocol for framework families
- ReferenceFramework: The reference family
- FrameworkRegistry / default_registry(): Tag → framework dispatch
- PolicyStore: Write-once, idempotent policy registry
"""

from .framework import (
    FrameworkRegistry,
    PolicyFramework,
    ReferenceFramework,
    default_registry,
)
from .models import Policy, PolicyId, compute_policy_id
from .store import PolicyStore

__all__ = [
    "FrameworkRegistry",
    "Policy",
    "PolicyFramework",
    "PolicyId",
    "PolicyStore",
    "ReferenceFramework",
    "compute_policy_id",
    "default_registry",
]
