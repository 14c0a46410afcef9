"""
Tallying of revealed votes.

A tally is a one-time finalization: it sums revealed weight by choice,
enforces the quorum, and writes an immutable VotingStatus. A tally that
misses quorum writes nothing, so the proposal stays un-finalized and the
tally can be attempted again later.
"""

import logging

logger = logging.getLogger(__name__)
from typing import Tuple

from ..errors.exceptions import QuorumNotMet, TallyAlreadyComputed, TallyNotAllowed
from .collaborators import ProposalRegistry
from .core import ProposalId, TallyResult, VotingState, VotingStatus
from .emergency import EmergencyGate


class TallyEngine:
    """Aggregates revealed weights into final totals."""

    def __init__(self, state: VotingState, registry: ProposalRegistry, gate: EmergencyGate):
        """Initialize tally engine."""
        self.state = state
        self.registry = registry
        self.gate = gate

    def count(self, proposal_id: ProposalId) -> Tuple[int, int]:
        """Sum revealed weights as (yes, no) without finalizing."""
        yes_votes = 0
        no_votes = 0
        for _, commitment in self.state.commitments_for(proposal_id):
            if not commitment.revealed:
                continue
            if commitment.choice:
                yes_votes += commitment.weight
            else:
                no_votes += commitment.weight
        return yes_votes, no_votes

    def tally(self, proposal_id: ProposalId, height: int) -> Tuple[TallyResult, VotingStatus]:
        """Finalize a proposal after its end height."""
        self.gate.ensure_active("tally", proposal_id, height=height)

        window = self.registry.get_window(proposal_id)
        if height <= window.end_height:
            raise TallyNotAllowed(
                f"Tally allowed after height {window.end_height}",
                proposal_id=proposal_id,
                height=height,
            )

        if proposal_id in self.state.voting_status:
            raise TallyAlreadyComputed(proposal_id=proposal_id, height=height)

        yes_votes, no_votes = self.count(proposal_id)
        total_votes = yes_votes + no_votes
        if total_votes < window.quorum:
            raise QuorumNotMet(
                f"{total_votes} revealed weight is below quorum {window.quorum}",
                proposal_id=proposal_id,
                height=height,
                metadata={"total_votes": total_votes, "quorum": window.quorum},
            )

        status = VotingStatus.finalized(window, yes_votes, no_votes)
        self.state.put_status(proposal_id, status)

        result = TallyResult(
            proposal_id=proposal_id,
            total_votes=total_votes,
            yes_votes=yes_votes,
            no_votes=no_votes,
            quorum=window.quorum,
            height=height,
        )
        return result, status
