"""
Reveal phase of the commit-reveal protocol.

Opens a stored commitment into a concrete (choice, weight) vote. Weight is
never taken on the caller's word: the eligibility oracle must authorize it.

Delegated weight policy: when a principal reveals, it absorbs the weight of
every principal transitively delegating to it that has not been counted
yet. Each absorbed principal's weight comes from the eligibility oracle and
is marked as voted, so it is resolved exactly once. Delegators whose
delegate never reveals are not counted.
"""

import logging

logger = logging.getLogger(__name__)
from dataclasses import dataclass, field
from typing import Dict, List

from ..crypto.commitment import Salt, commitment_digest, salt_length
from ..errors.exceptions import (
    AlreadyVoted,
    InvalidChoice,
    InvalidRevealProof,
    InvalidWeight,
    NotEligible,
    ProposalExpired,
    VoteNotCommitted,
)
from .collaborators import EligibilityOracle, ProposalRegistry
from .core import Commitment, ProposalId, VotingConfig, VotingState
from .delegation import DelegationGraph
from .emergency import EmergencyGate


@dataclass(frozen=True)
class RevealReceipt:
    """What a successful reveal counted."""

    proposal_id: ProposalId
    voter: str
    choice: bool
    own_weight: int
    delegated_weight: int
    absorbed: Dict[str, int] = field(default_factory=dict)

    @property
    def weight(self) -> int:
        return self.own_weight + self.delegated_weight


class RevealEngine:
    """Validates reveals and resolves delegated weight."""

    def __init__(
        self,
        state: VotingState,
        config: VotingConfig,
        registry: ProposalRegistry,
        oracle: EligibilityOracle,
        graph: DelegationGraph,
        gate: EmergencyGate,
    ):
        """Initialize reveal engine."""
        self.state = state
        self.config = config
        self.registry = registry
        self.oracle = oracle
        self.graph = graph
        self.gate = gate

    def reveal(
        self,
        proposal_id: ProposalId,
        voter: str,
        choice: bool,
        salt: Salt,
        weight: int,
        height: int,
    ) -> RevealReceipt:
        """Open a commitment and count its weight."""
        self.gate.ensure_active("reveal", proposal_id, voter, height)

        window = self.registry.get_window(proposal_id)
        key = (proposal_id, voter)
        commitment = self.state.commitments.get(key)
        if commitment is None:
            raise VoteNotCommitted(proposal_id=proposal_id, principal=voter, height=height)

        if not isinstance(choice, bool):
            raise InvalidChoice(proposal_id=proposal_id, principal=voter, height=height)

        self._verify_proof(commitment, proposal_id, voter, choice, salt, height)

        if height < window.reveal_start:
            raise InvalidRevealProof(
                f"Reveal window opens at height {window.reveal_start}",
                proposal_id=proposal_id,
                principal=voter,
                height=height,
            )

        if height > window.reveal_end:
            raise ProposalExpired(
                f"Reveal window closed at height {window.reveal_end}",
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

        if isinstance(weight, bool) or not isinstance(weight, int) or weight <= 0:
            raise InvalidWeight(proposal_id=proposal_id, principal=voter, height=height)

        if not self.oracle.authorize_weight(voter, weight):
            raise NotEligible(
                f"Weight {weight} not authorized for {voter}",
                proposal_id=proposal_id,
                principal=voter,
                height=height,
            )

        if key in self.state.voted:
            raise AlreadyVoted(proposal_id=proposal_id, principal=voter, height=height)

        absorbed = self._resolve_delegated_weight(proposal_id, voter)
        delegated_weight = sum(absorbed.values())

        # All checks passed; apply writes.
        self.state.update_commitment(
            commitment,
            revealed=True,
            choice=choice,
            own_weight=weight,
            delegated_weight=delegated_weight,
            weight=weight + delegated_weight,
            revealed_at=height,
        )
        self.state.mark_voted(key)
        for delegator in absorbed:
            self.state.absorb((proposal_id, delegator), voter)

        logger.debug(
            f"{voter} revealed on proposal {proposal_id}: own={weight} "
            f"delegated={delegated_weight} from {len(absorbed)} delegators"
        )
        return RevealReceipt(
            proposal_id=proposal_id,
            voter=voter,
            choice=choice,
            own_weight=weight,
            delegated_weight=delegated_weight,
            absorbed=absorbed,
        )

    def _verify_proof(
        self,
        commitment: Commitment,
        proposal_id: ProposalId,
        voter: str,
        choice: bool,
        salt: Salt,
        height: int,
    ) -> None:
        try:
            if salt_length(salt) > self.config.max_salt_length:
                raise InvalidRevealProof(
                    f"Salt longer than {self.config.max_salt_length} bytes",
                    proposal_id=proposal_id,
                    principal=voter,
                    height=height,
                )
            expected = commitment_digest(choice, salt, voter)
        except TypeError as e:
            raise InvalidRevealProof(
                f"Malformed reveal: {e}",
                proposal_id=proposal_id,
                principal=voter,
                height=height,
                cause=e,
            )

        if expected != commitment.commitment_hash:
            raise InvalidRevealProof(
                "Digest of (choice, salt, voter) does not match the commitment",
                proposal_id=proposal_id,
                principal=voter,
                height=height,
            )

        if commitment.revealed:
            raise InvalidRevealProof(
                "Commitment has already been revealed",
                proposal_id=proposal_id,
                principal=voter,
                height=height,
            )

    def _resolve_delegated_weight(self, proposal_id: ProposalId, delegate: str) -> Dict[str, int]:
        """Read the weights of not-yet-counted delegators without writing."""
        absorbed: Dict[str, int] = {}
        for delegator in self.graph.reachable_delegators(proposal_id, delegate):
            if (proposal_id, delegator) in self.state.voted:
                continue
            absorbed[delegator] = max(0, int(self.oracle.get_weight(delegator)))
        return absorbed

    def pending_delegators(self, proposal_id: ProposalId, delegate: str) -> List[str]:
        """Delegators whose weight the delegate would absorb on reveal."""
        return list(self._resolve_delegated_weight(proposal_id, delegate))
