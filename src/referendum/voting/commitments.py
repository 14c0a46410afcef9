"""
Commitment storage for the commit phase.

Holds exactly one hidden commitment per (proposal, voter).
"""

import logging

logger = logging.getLogger(__name__)
from typing import Optional, Union

from ..crypto.hashing import Hash
from ..errors.exceptions import (
    AlreadyCommitted,
    AlreadyDelegated,
    InvalidRevealProof,
    ProposalExpired,
    VotingNotOpen,
)
from .collaborators import ProposalRegistry
from .core import Commitment, ProposalId, VotingState
from .emergency import EmergencyGate


class CommitStore:
    """Accepts commitments while the voting window is open."""

    def __init__(self, state: VotingState, registry: ProposalRegistry, gate: EmergencyGate):
        """Initialize commit store."""
        self.state = state
        self.registry = registry
        self.gate = gate

    def commit(
        self,
        proposal_id: ProposalId,
        voter: str,
        commitment_hash: Union[Hash, bytes, str],
        height: int,
    ) -> bool:
        """Record a hidden commitment for a voter."""
        self.gate.ensure_active("commit", proposal_id, voter, height)

        window = self.registry.get_window(proposal_id)
        if not window.is_voting_open(height):
            raise VotingNotOpen(
                f"Voting for proposal {proposal_id} is open between heights "
                f"{window.start_height} and {window.end_height}",
                proposal_id=proposal_id,
                principal=voter,
                height=height,
            )

        if proposal_id in self.state.voting_status:
            raise ProposalExpired(
                f"Proposal {proposal_id} has already been tallied",
                proposal_id=proposal_id,
                principal=voter,
                height=height,
            )

        try:
            digest = Hash.coerce(commitment_hash)
        except (TypeError, ValueError) as e:
            raise InvalidRevealProof(
                f"Malformed commitment hash: {e}",
                proposal_id=proposal_id,
                principal=voter,
                height=height,
                cause=e,
            )

        key = (proposal_id, voter)
        if key in self.state.commitments:
            raise AlreadyCommitted(proposal_id=proposal_id, principal=voter, height=height)

        if key in self.state.delegations:
            raise AlreadyDelegated(
                f"{voter} delegated to {self.state.delegations[key]} and cannot commit",
                proposal_id=proposal_id,
                principal=voter,
                height=height,
            )

        self.state.put_commitment(key, Commitment(commitment_hash=digest, committed_at=height))
        logger.debug(f"Stored commitment of {voter} on proposal {proposal_id}")
        return True

    def get(self, proposal_id: ProposalId, voter: str) -> Optional[Commitment]:
        """Get a stored commitment."""
        return self.state.get_commitment(proposal_id, voter)

    def has_committed(self, proposal_id: ProposalId, voter: str) -> bool:
        return (proposal_id, voter) in self.state.commitments
