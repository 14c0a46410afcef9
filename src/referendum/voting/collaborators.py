"""
External collaborator interfaces.

The voting core never owns proposal metadata, identity, or result
presentation. It reaches them through the narrow interfaces below, which are
injected into the coordinator. In-memory implementations are provided for
tests and embedding.
"""

import logging

logger = logging.getLogger(__name__)
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Tuple

from ..errors.exceptions import ProposalNotFound
from .core import ProposalId, ProposalWindow, TallyResult, VotingStatus


class ProposalRegistry(ABC):
    """Source of immutable per-proposal timing and quorum parameters."""

    @abstractmethod
    def get_window(self, proposal_id: ProposalId) -> ProposalWindow:
        """Return the window of a proposal or raise ProposalNotFound."""
        pass


class EligibilityOracle(ABC):
    """Confirms a principal's voting weight."""

    @abstractmethod
    def authorize_weight(self, voter: str, claimed_weight: int) -> bool:
        """Check that a voter may cast the claimed weight."""
        pass

    @abstractmethod
    def get_weight(self, voter: str) -> int:
        """Return the eligible weight of a principal, 0 if not eligible."""
        pass


class ResultsAggregator(ABC):
    """Consumer of tally totals."""

    @abstractmethod
    def on_tally(self, proposal_id: ProposalId, result: TallyResult) -> None:
        pass


class ReferendumTracker(ABC):
    """Consumer of voting status changes."""

    @abstractmethod
    def on_status_change(self, proposal_id: ProposalId, status: VotingStatus) -> None:
        pass


class InMemoryProposalRegistry(ProposalRegistry):
    """Proposal registry backed by a dictionary."""

    def __init__(self, windows: Optional[Dict[ProposalId, ProposalWindow]] = None):
        """Initialize registry."""
        self.windows: Dict[ProposalId, ProposalWindow] = dict(windows or {})

    def register(self, proposal_id: ProposalId, window: ProposalWindow) -> None:
        """Register a proposal window. Windows are immutable once set."""
        if proposal_id in self.windows and self.windows[proposal_id] != window:
            raise ValueError(f"Proposal {proposal_id} already has a different window")
        self.windows[proposal_id] = window

    def get_window(self, proposal_id: ProposalId) -> ProposalWindow:
        """Get the window of a proposal."""
        window = self.windows.get(proposal_id)
        if window is None:
            raise ProposalNotFound(f"Proposal {proposal_id} not found", proposal_id=proposal_id)
        return window


class StaticEligibilityOracle(EligibilityOracle):
    """Eligibility oracle backed by a table of principal weights.

    A claim is authorized when it equals the recorded weight, or, with
    ``allow_partial``, when it is positive and does not exceed it.
    """

    def __init__(self, weights: Optional[Dict[str, int]] = None, allow_partial: bool = False):
        """Initialize oracle."""
        self.weights: Dict[str, int] = dict(weights or {})
        self.allow_partial = allow_partial

    def set_weight(self, voter: str, weight: int) -> None:
        if weight < 0:
            raise ValueError("Weight cannot be negative")
        self.weights[voter] = weight

    def get_weight(self, voter: str) -> int:
        return self.weights.get(voter, 0)

    def authorize_weight(self, voter: str, claimed_weight: int) -> bool:
        eligible = self.get_weight(voter)
        if eligible <= 0:
            return False
        if self.allow_partial:
            return 0 < claimed_weight <= eligible
        return claimed_weight == eligible


class RecordingResultsAggregator(ResultsAggregator):
    """Aggregator that keeps every tally it is given."""

    def __init__(self):
        self.results: List[Tuple[ProposalId, TallyResult]] = []

    def on_tally(self, proposal_id: ProposalId, result: TallyResult) -> None:
        self.results.append((proposal_id, result))

    def latest(self, proposal_id: ProposalId) -> Optional[TallyResult]:
        for pid, result in reversed(self.results):
            if pid == proposal_id:
                return result
        return None


class RecordingReferendumTracker(ReferendumTracker):
    """Tracker that keeps every status change it is given."""

    def __init__(self):
        self.changes: List[Tuple[ProposalId, VotingStatus]] = []

    def on_status_change(self, proposal_id: ProposalId, status: VotingStatus) -> None:
        self.changes.append((proposal_id, status))

    def statuses(self) -> Dict[Any, VotingStatus]:
        return {pid: status for pid, status in self.changes}
