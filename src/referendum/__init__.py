"""
Referendum: tamper-resistant commit-reveal voting.

Voters commit a hidden choice, reveal it inside a bounded window, optionally
route their weight through delegation, and a one-time tally finalizes the
result against a quorum.
"""

__version__ = "0.1.0"

from .crypto import Hash, commitment_digest
from .errors import ErrorCode, VotingError
from .voting import (
    InMemoryProposalRegistry,
    ProposalWindow,
    StaticEligibilityOracle,
    VotingConfig,
    VotingMechanism,
    VotingStatus,
)

__all__ = [
    "__version__",
    "Hash",
    "commitment_digest",
    "ErrorCode",
    "VotingError",
    "InMemoryProposalRegistry",
    "ProposalWindow",
    "StaticEligibilityOracle",
    "VotingConfig",
    "VotingMechanism",
    "VotingStatus",
]
