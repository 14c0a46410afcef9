"""Referendum error handling.

This module exposes the exception hierarchy and the stable numeric error
codes used by the voting core.
"""

from .exceptions import (
    AlreadyCommitted,
    AlreadyDelegated,
    AlreadyVoted,
    ConfigurationError,
    CycleDetected,
    DelegationNotFound,
    ErrorCategory,
    ErrorCode,
    ErrorContext,
    ErrorSeverity,
    Halted,
    InvalidChoice,
    InvalidRevealProof,
    InvalidWeight,
    NotAuthorized,
    NotEligible,
    ProposalExpired,
    ProposalNotFound,
    QuorumNotMet,
    ReferendumError,
    SelfDelegation,
    TallyAlreadyComputed,
    TallyNotAllowed,
    ValidationError,
    VoteNotCommitted,
    VotingError,
    VotingNotOpen,
    error_for_code,
)

__all__ = [
    # Base
    "ReferendumError",
    "ValidationError",
    "ConfigurationError",
    "VotingError",
    "ErrorCategory",
    "ErrorCode",
    "ErrorContext",
    "ErrorSeverity",
    "error_for_code",
    # Voting failures
    "NotAuthorized",
    "Halted",
    "ProposalNotFound",
    "VotingNotOpen",
    "AlreadyVoted",
    "AlreadyCommitted",
    "AlreadyDelegated",
    "NotEligible",
    "InvalidChoice",
    "InvalidWeight",
    "TallyNotAllowed",
    "TallyAlreadyComputed",
    "DelegationNotFound",
    "InvalidRevealProof",
    "ProposalExpired",
    "QuorumNotMet",
    "VoteNotCommitted",
    "SelfDelegation",
    "CycleDetected",
]
