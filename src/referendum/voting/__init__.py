"""
Commit-reveal referendum voting core.

This package provides the voting state machine:
- Commitment storage for hidden votes
- Reveal validation against the commitment digest and eligibility oracle
- Vote delegation with self-delegation and cycle rejection
- Weighted tallying against a quorum threshold
- Owner-controlled emergency halt
- Hash-chained audit trail of voting events
"""

from .collaborators import (
    EligibilityOracle,
    InMemoryProposalRegistry,
    ProposalRegistry,
    RecordingReferendumTracker,
    RecordingResultsAggregator,
    ReferendumTracker,
    ResultsAggregator,
    StaticEligibilityOracle,
)
from .commitments import CommitStore
from .core import (
    Commitment,
    ProposalWindow,
    TallyResult,
    VotingConfig,
    VotingState,
    VotingStatus,
)
from .delegation import CircularDelegationDetector, DelegationGraph
from .emergency import EmergencyGate, GateState
from .mechanism import OperationResult, VotingMechanism
from .observability import AuditTrail, EventType, VotingEvent, VotingEvents
from .reveal import RevealEngine, RevealReceipt
from .tally import TallyEngine

__all__ = [
    # Core
    "Commitment",
    "ProposalWindow",
    "TallyResult",
    "VotingConfig",
    "VotingState",
    "VotingStatus",

    # Components
    "CommitStore",
    "RevealEngine",
    "RevealReceipt",
    "DelegationGraph",
    "CircularDelegationDetector",
    "TallyEngine",
    "EmergencyGate",
    "GateState",

    # Coordinator
    "VotingMechanism",
    "OperationResult",

    # Collaborators
    "ProposalRegistry",
    "EligibilityOracle",
    "ResultsAggregator",
    "ReferendumTracker",
    "InMemoryProposalRegistry",
    "StaticEligibilityOracle",
    "RecordingResultsAggregator",
    "RecordingReferendumTracker",

    # Observability
    "AuditTrail",
    "EventType",
    "VotingEvent",
    "VotingEvents",
]
