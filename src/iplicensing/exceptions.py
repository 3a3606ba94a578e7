"""Unified exception hierarchy for the licensing engine.

Every rejection the engine can produce is a subclass of LicensingError.
This module provides:
- Base exception hierarchy with stable error codes
- ErrorRegistry for protocol mapping
- gRPC status mapping for wrappers that expose the engine over RPC

Usage:
    from iplicensing.exceptions import (
        LicensingError,
        DerivativesCannotAddPolicyError,
        IssuanceNotPermittedError,
    )

All errors are raised before any state is mutated, so catching one never
requires cleanup on the caller's side.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, TypeVar, cast

__all__ = [
    # Base hierarchy
    "LicensingError",
    "UnknownPolicyError",
    "UnknownNodeError",
    "UnknownFrameworkError",
    "InvalidPolicyTermsError",
    "InvalidRequestError",
    "AccessDeniedError",
    "DerivativesCannotAddPolicyError",
    "PolicyNotAttachedError",
    "IssuanceNotPermittedError",
    "RoyaltyNotConfiguredError",
    "IncompatibleParentPoliciesError",
    "DerivativeNotApprovedError",
    "AlreadyDerivativeError",
    "InvalidLinkError",
    "PermitNotHeldError",
    # Registry
    "ErrorRegistry",
    "error_registry",
    "register_error",
    # gRPC helpers
    "get_grpc_status_code",
]

logger = logging.getLogger(__name__)


# ---- Exception Hierarchy ----------------------------------------------------


class LicensingError(Exception):
    """Base exception for the licensing engine.

    Attributes:
        code: Stable error code string for protocol mapping (e.g. "UNKNOWN_POLICY").
        message: Human-readable error description.
        details: Additional context as keyword arguments (node_id, policy_id, ...).
    """

    code: str = "LICENSING_ERROR"
    message: str = "Licensing operation failed"

    def __init__(self, message: str | None = None, code: str | None = None, **kwargs: Any) -> None:
        self.message = message or self.message
        self.code = code or self.code
        self.details = kwargs
        super().__init__(self.message)


class UnknownPolicyError(LicensingError):
    """Policy id was never registered."""

    code: str = "UNKNOWN_POLICY"
    message: str = "Policy is not registered"


class UnknownNodeError(LicensingError):
    """Node id was never registered in the graph."""

    code: str = "UNKNOWN_NODE"
    message: str = "Node is not registered"


class UnknownFrameworkError(LicensingError):
    """Policy names a framework family with no registered implementation."""

    code: str = "UNKNOWN_FRAMEWORK"
    message: str = "Policy framework is not registered"


class InvalidPolicyTermsError(LicensingError):
    """Framework rejected the term combination at registration."""

    code: str = "INVALID_POLICY_TERMS"
    message: str = "Policy terms are invalid"


class InvalidRequestError(LicensingError):
    """Malformed request arguments (e.g. non-positive quantity)."""

    code: str = "INVALID_REQUEST"
    message: str = "Invalid request"


class AccessDeniedError(LicensingError):
    """Caller lacks authority over the target node."""

    code: str = "ACCESS_DENIED"
    message: str = "Caller is not allowed to modify this node"


class DerivativesCannotAddPolicyError(LicensingError):
    """Attach attempted on a derivative node."""

    code: str = "DERIVATIVES_CANNOT_ADD_POLICY"
    message: str = "Derivative nodes cannot add policies"


class PolicyNotAttachedError(LicensingError):
    """Policy is neither attached to nor inherited by the node."""

    code: str = "POLICY_NOT_ATTACHED"
    message: str = "Policy is not set for this node"


class IssuanceNotPermittedError(LicensingError):
    """Node/policy combination forbids issuing a further permit."""

    code: str = "ISSUANCE_NOT_PERMITTED"
    message: str = "Permit issuance is not permitted for this node and policy"


class RoyaltyNotConfiguredError(LicensingError):
    """Commercial policy used on a node without minimum royalty setup."""

    code: str = "ROYALTY_NOT_CONFIGURED"
    message: str = "Commercial policy requires a minimum royalty for this node"


class IncompatibleParentPoliciesError(LicensingError):
    """Parent policies consumed in one link cannot be merged."""

    code: str = "INCOMPATIBLE_PARENT_POLICIES"
    message: str = "Parent policies are incompatible"


class DerivativeNotApprovedError(LicensingError):
    """Policy requires licensor approval that was not given."""

    code: str = "DERIVATIVE_NOT_APPROVED"
    message: str = "Licensor has not approved this derivative"


class AlreadyDerivativeError(LicensingError):
    """Re-link attempted on a node that already has parents."""

    code: str = "ALREADY_DERIVATIVE"
    message: str = "Node is already a derivative"


class InvalidLinkError(LicensingError):
    """Structurally invalid parent set (empty, self-link, duplicate parent)."""

    code: str = "INVALID_LINK"
    message: str = "Invalid parent link"


class PermitNotHeldError(LicensingError):
    """Holder has no balance of the permit being consumed."""

    code: str = "PERMIT_NOT_HELD"
    message: str = "Holder does not own this permit"


# ---- Error Registry for Protocol Mapping ------------------------------------

_E = TypeVar("_E", bound=type[LicensingError])


class ErrorRegistry:
    """Registry for mapping internal errors to external protocol codes."""

    def __init__(self) -> None:
        self._errors: dict[str, type[LicensingError]] = {}

    def register(self, code: str, error_cls: type[LicensingError]) -> None:
        self._errors[code] = error_cls

    def get(self, code: str) -> type[LicensingError] | None:
        return self._errors.get(code)

    def all(self) -> dict[str, type[LicensingError]]:
        return dict(self._errors)


error_registry = ErrorRegistry()


def register_error(code: str) -> Callable[[_E], _E]:
    """Decorator to register a custom error type.

    Framework families outside the reference one use this for their own
    rejection kinds.

    Usage:
        @register_error("TERRITORY_MISMATCH")
        class TerritoryMismatchError(LicensingError):
            code = "TERRITORY_MISMATCH"
    """

    def decorator(cls: _E) -> _E:
        error_registry.register(code, cls)
        return cls

    return cast(Callable[[_E], _E], decorator)


for _cls in (
    LicensingError,
    UnknownPolicyError,
    UnknownNodeError,
    UnknownFrameworkError,
    InvalidPolicyTermsError,
    InvalidRequestError,
    AccessDeniedError,
    DerivativesCannotAddPolicyError,
    PolicyNotAttachedError,
    IssuanceNotPermittedError,
    RoyaltyNotConfiguredError,
    IncompatibleParentPoliciesError,
    DerivativeNotApprovedError,
    AlreadyDerivativeError,
    InvalidLinkError,
    PermitNotHeldError,
):
    error_registry.register(_cls.code, _cls)
del _cls


# ---- gRPC Status Mapping ----------------------------------------------------


def get_grpc_status_code(error: LicensingError) -> Any:
    """Map LicensingError to gRPC status code.

    Returns grpc.StatusCode value for the given error type.
    Import grpc locally to avoid hard dependency at module level.
    """
    import grpc

    error_to_status = {
        "UNKNOWN_POLICY": grpc.StatusCode.NOT_FOUND,
        "UNKNOWN_NODE": grpc.StatusCode.NOT_FOUND,
        "UNKNOWN_FRAMEWORK": grpc.StatusCode.NOT_FOUND,
        "INVALID_POLICY_TERMS": grpc.StatusCode.INVALID_ARGUMENT,
        "INVALID_REQUEST": grpc.StatusCode.INVALID_ARGUMENT,
        "INVALID_LINK": grpc.StatusCode.INVALID_ARGUMENT,
        "ACCESS_DENIED": grpc.StatusCode.PERMISSION_DENIED,
        "DERIVATIVE_NOT_APPROVED": grpc.StatusCode.PERMISSION_DENIED,
        "DERIVATIVES_CANNOT_ADD_POLICY": grpc.StatusCode.FAILED_PRECONDITION,
        "POLICY_NOT_ATTACHED": grpc.StatusCode.FAILED_PRECONDITION,
        "ISSUANCE_NOT_PERMITTED": grpc.StatusCode.FAILED_PRECONDITION,
        "ROYALTY_NOT_CONFIGURED": grpc.StatusCode.FAILED_PRECONDITION,
        "INCOMPATIBLE_PARENT_POLICIES": grpc.StatusCode.FAILED_PRECONDITION,
        "ALREADY_DERIVATIVE": grpc.StatusCode.ALREADY_EXISTS,
        "PERMIT_NOT_HELD": grpc.StatusCode.PERMISSION_DENIED,
    }
    status = error_to_status.get(error.code)
    if status is None:
        logger.warning("No gRPC status mapping for error code %s", error.code)
        return grpc.StatusCode.INTERNAL
    return status
