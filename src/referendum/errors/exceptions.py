"""Exception hierarchy for the referendum voting core.

This module defines the structured exceptions raised by the voting state
machine. Every voting failure carries a stable numeric code that callers
can rely on as a wire contract.
"""

import time
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, Dict, Optional


class ErrorSeverity(Enum):
    """Error severity levels."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCategory(Enum):
    """Error categories."""

    AUTHORIZATION = "authorization"
    TIMING = "timing"
    STATE_CONFLICT = "state_conflict"
    VALIDATION = "validation"
    GRAPH = "graph"
    SYSTEM = "system"
    CONFIGURATION = "configuration"


class ErrorCode(IntEnum):
    """Stable numeric result codes returned to callers."""

    NOT_AUTHORIZED = 401
    PROPOSAL_NOT_FOUND = 404
    VOTING_NOT_OPEN = 405
    ALREADY_VOTED = 406
    NOT_ELIGIBLE = 407
    INVALID_CHOICE = 408
    INVALID_WEIGHT = 409
    TALLY_NOT_ALLOWED = 410
    DELEGATION_NOT_FOUND = 412
    INVALID_REVEAL_PROOF = 416
    PROPOSAL_EXPIRED = 417
    INVALID_QUORUM = 419
    VOTE_NOT_COMMITTED = 420
    SELF_DELEGATION = 422
    CYCLE_DETECTED = 423


@dataclass
class ErrorContext:
    """Context information for an error."""

    timestamp: float = field(default_factory=time.time)
    component: Optional[str] = None
    operation: Optional[str] = None
    proposal_id: Optional[Any] = None
    principal: Optional[str] = None
    height: Optional[int] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert context to dictionary."""
        return {
            "timestamp": self.timestamp,
            "component": self.component,
            "operation": self.operation,
            "proposal_id": self.proposal_id,
            "principal": self.principal,
            "height": self.height,
            "metadata": self.metadata,
        }


class ReferendumError(Exception):
    """Base exception for all referendum errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        category: ErrorCategory = ErrorCategory.SYSTEM,
        context: Optional[ErrorContext] = None,
        cause: Optional[Exception] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.severity = severity
        self.category = category
        self.context = context or ErrorContext()
        self.cause = cause
        self.metadata = metadata or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary."""
        return {
            "type": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "severity": self.severity.value,
            "category": self.category.value,
            "context": self.context.to_dict(),
            "cause": str(self.cause) if self.cause else None,
            "metadata": self.metadata,
        }

    def __str__(self) -> str:
        """String representation of the error."""
        parts = [f"{self.__class__.__name__}: {self.message}"]

        if self.error_code:
            parts.append(f"Code: {self.error_code}")

        if self.severity != ErrorSeverity.MEDIUM:
            parts.append(f"Severity: {self.severity.value}")

        if self.category != ErrorCategory.SYSTEM:
            parts.append(f"Category: {self.category.value}")

        return " | ".join(parts)


class ValidationError(ReferendumError):
    """Validation error for malformed data model values."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        expected: Optional[Any] = None,
        **kwargs,
    ):
        super().__init__(message, category=ErrorCategory.VALIDATION, **kwargs)
        self.field = field
        self.value = value
        self.expected = expected

    def to_dict(self) -> Dict[str, Any]:
        """Convert validation error to dictionary."""
        data = super().to_dict()
        data.update(
            {
                "field": self.field,
                "value": str(self.value) if self.value is not None else None,
                "expected": str(self.expected) if self.expected is not None else None,
            }
        )
        return data


class ConfigurationError(ReferendumError):
    """Configuration error."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        config_value: Optional[Any] = None,
        **kwargs,
    ):
        super().__init__(message, category=ErrorCategory.CONFIGURATION, **kwargs)
        self.config_key = config_key
        self.config_value = config_value

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration error to dictionary."""
        data = super().to_dict()
        data.update(
            {
                "config_key": self.config_key,
                "config_value": str(self.config_value)
                if self.config_value is not None
                else None,
            }
        )
        return data


class VotingError(ReferendumError):
    """A rejected voting operation.

    Subclasses pin ``code`` to a member of :class:`ErrorCode` and pick the
    taxonomy category. The code is what crosses the wire; the class is what
    Python callers catch.
    """

    code: ErrorCode = ErrorCode.NOT_AUTHORIZED
    default_message: str = "Voting operation rejected"
    default_category: ErrorCategory = ErrorCategory.SYSTEM
    default_severity: ErrorSeverity = ErrorSeverity.MEDIUM

    def __init__(
        self,
        message: Optional[str] = None,
        proposal_id: Optional[Any] = None,
        principal: Optional[str] = None,
        height: Optional[int] = None,
        **kwargs,
    ):
        kwargs.setdefault("category", self.default_category)
        kwargs.setdefault("severity", self.default_severity)
        kwargs.setdefault("error_code", self.code.name)
        kwargs.setdefault(
            "context",
            ErrorContext(proposal_id=proposal_id, principal=principal, height=height),
        )
        super().__init__(message or self.default_message, **kwargs)
        self.proposal_id = proposal_id
        self.principal = principal
        self.height = height

    def to_dict(self) -> Dict[str, Any]:
        """Convert voting error to dictionary."""
        data = super().to_dict()
        data["code"] = int(self.code)
        return data


# Authorization


class NotAuthorized(VotingError):
    code = ErrorCode.NOT_AUTHORIZED
    default_message = "Caller is not authorized"
    default_category = ErrorCategory.AUTHORIZATION
    default_severity = ErrorSeverity.HIGH


class NotEligible(VotingError):
    code = ErrorCode.NOT_ELIGIBLE
    default_message = "Eligibility oracle rejected the claimed weight"
    default_category = ErrorCategory.AUTHORIZATION


# System


class Halted(VotingError):
    """Raised by every mutating operation while the emergency gate is closed."""

    code = ErrorCode.NOT_AUTHORIZED
    default_message = "Voting is halted by emergency stop"
    default_category = ErrorCategory.SYSTEM
    default_severity = ErrorSeverity.HIGH


# Timing


class VotingNotOpen(VotingError):
    code = ErrorCode.VOTING_NOT_OPEN
    default_message = "Voting window is not open"
    default_category = ErrorCategory.TIMING


class TallyNotAllowed(VotingError):
    code = ErrorCode.TALLY_NOT_ALLOWED
    default_message = "Tally is not allowed before the voting window ends"
    default_category = ErrorCategory.TIMING


class ProposalExpired(VotingError):
    code = ErrorCode.PROPOSAL_EXPIRED
    default_message = "Reveal window has closed"
    default_category = ErrorCategory.TIMING


# State conflict


class ProposalNotFound(VotingError):
    code = ErrorCode.PROPOSAL_NOT_FOUND
    default_message = "Proposal not found"
    default_category = ErrorCategory.STATE_CONFLICT


class AlreadyVoted(VotingError):
    code = ErrorCode.ALREADY_VOTED
    default_message = "Principal has already voted"
    default_category = ErrorCategory.STATE_CONFLICT


class AlreadyCommitted(AlreadyVoted):
    default_message = "Principal has already committed a vote"


class AlreadyDelegated(AlreadyVoted):
    default_message = "Principal has already delegated its vote"


class TallyAlreadyComputed(VotingError):
    """A second tally of a finalized proposal.

    Reports the same 410 code as TallyNotAllowed, so wire clients see
    "tally refused" for both; Python callers can catch the two apart.
    """

    code = ErrorCode.TALLY_NOT_ALLOWED
    default_message = "Tally has already been computed"
    default_category = ErrorCategory.STATE_CONFLICT


class DelegationNotFound(VotingError):
    code = ErrorCode.DELEGATION_NOT_FOUND
    default_message = "Delegation not found"
    default_category = ErrorCategory.STATE_CONFLICT


class VoteNotCommitted(VotingError):
    code = ErrorCode.VOTE_NOT_COMMITTED
    default_message = "No commitment recorded for this voter"
    default_category = ErrorCategory.STATE_CONFLICT


# Validation


class InvalidChoice(VotingError):
    code = ErrorCode.INVALID_CHOICE
    default_message = "Choice must be a boolean"
    default_category = ErrorCategory.VALIDATION


class InvalidWeight(VotingError):
    code = ErrorCode.INVALID_WEIGHT
    default_message = "Weight must be a positive integer"
    default_category = ErrorCategory.VALIDATION


class InvalidRevealProof(VotingError):
    code = ErrorCode.INVALID_REVEAL_PROOF
    default_message = "Reveal does not match the stored commitment"
    default_category = ErrorCategory.VALIDATION
    default_severity = ErrorSeverity.HIGH


class QuorumNotMet(VotingError):
    code = ErrorCode.INVALID_QUORUM
    default_message = "Quorum not met"
    default_category = ErrorCategory.VALIDATION


# Graph


class SelfDelegation(VotingError):
    code = ErrorCode.SELF_DELEGATION
    default_message = "Cannot delegate to self"
    default_category = ErrorCategory.GRAPH


class CycleDetected(VotingError):
    code = ErrorCode.CYCLE_DETECTED
    default_message = "Delegation would create a cycle"
    default_category = ErrorCategory.GRAPH
    default_severity = ErrorSeverity.HIGH


def error_for_code(code: int) -> type:
    """Return the primary exception class for a numeric code."""
    for error_class in _PRIMARY_ERRORS:
        if error_class.code == code:
            return error_class
    raise KeyError(code)


_PRIMARY_ERRORS = (
    NotAuthorized,
    ProposalNotFound,
    VotingNotOpen,
    AlreadyVoted,
    NotEligible,
    InvalidChoice,
    InvalidWeight,
    TallyNotAllowed,
    DelegationNotFound,
    InvalidRevealProof,
    ProposalExpired,
    QuorumNotMet,
    VoteNotCommitted,
    SelfDelegation,
    CycleDetected,
)
