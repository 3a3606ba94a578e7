from .config import LicensingConfig, LogLevel, load_config_from_env
from .engine import LicensingEngine
from .exceptions import (
    AccessDeniedError,
    AlreadyDerivativeError,
    DerivativeNotApprovedError,
    DerivativesCannotAddPolicyError,
    IncompatibleParentPoliciesError,
    InvalidLinkError,
    InvalidPolicyTermsError,
    InvalidRequestError,
    IssuanceNotPermittedError,
    LicensingError,
    PermitNotHeldError,
    PolicyNotAttachedError,
    RoyaltyNotConfiguredError,
    UnknownFrameworkError,
    UnknownNodeError,
    UnknownPolicyError,
)
from .graph import IPGraph
from .interfaces import AccessControl, DerivativeApprovals, PermitLedger, PermitRef, RoyaltyGate
from .logging import (
    LicensingFormatter,
    LicensingLoggerAdapter,
    get_licensing_logger,
    safe_preview,
    setup_logging,
)
from .memory import (
    InMemoryPermitLedger,
    StaticAccessControl,
    StaticApprovals,
    StaticRoyaltyGate,
)
from .nodes import IPNode, LinkPlan, NodeState, ParentLink
from .policies import (
    FrameworkRegistry,
    Policy,
    PolicyFramework,
    PolicyId,
    PolicyStore,
    ReferenceFramework,
    compute_policy_id,
    default_registry,
)

__all__ = [
    'AccessControl',
    'AccessDeniedError',
    'AlreadyDerivativeError',
    'DerivativeApprovals',
    'DerivativeNotApprovedError',
    'DerivativesCannotAddPolicyError',
    'FrameworkRegistry',
    'IPGraph',
    'IPNode',
    'InMemoryPermitLedger',
    'IncompatibleParentPoliciesError',
    'InvalidLinkError',
    'InvalidPolicyTermsError',
    'InvalidRequestError',
    'IssuanceNotPermittedError',
    'LicensingConfig',
    'LicensingEngine',
    'LicensingError',
    'LicensingFormatter',
    'LicensingLoggerAdapter',
    'LinkPlan',
    'LogLevel',
    'NodeState',
    'ParentLink',
    'PermitLedger',
    'PermitNotHeldError',
    'PermitRef',
    'Policy',
    'PolicyFramework',
    'PolicyId',
    'PolicyNotAttachedError',
    'PolicyStore',
    'ReferenceFramework',
    'RoyaltyGate',
    'RoyaltyNotConfiguredError',
    'StaticAccessControl',
    'StaticApprovals',
    'StaticRoyaltyGate',
    'UnknownFrameworkError',
    'UnknownNodeError',
    'UnknownPolicyError',
    'compute_policy_id',
    'default_registry',
    'get_licensing_logger',
    'load_config_from_env',
    'safe_preview',
    'setup_logging',
]
