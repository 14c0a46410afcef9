"""
Vote delegation graph.

This module records per-proposal delegation edges, rejects self-delegation
and cycles, and resolves the set of principals whose weight flows to a
delegate. Each principal has at most one outgoing edge, so following edges
from any principal walks a single path; the graph is a forest of in-trees
rooted at principals that vote directly.
"""

import logging

logger = logging.getLogger(__name__)
from collections import deque
from typing import List, Optional, Set

from ..errors.exceptions import (
    AlreadyCommitted,
    AlreadyDelegated,
    AlreadyVoted,
    CycleDetected,
    ProposalExpired,
    SelfDelegation,
    VotingNotOpen,
)
from .collaborators import ProposalRegistry
from .core import ProposalId, VotingState
from .emergency import EmergencyGate


class CircularDelegationDetector:
    """Detects delegations that would close a cycle."""

    def would_create_cycle(
        self,
        state: VotingState,
        proposal_id: ProposalId,
        delegator: str,
        delegate: str,
    ) -> bool:
        """Check if adding ``delegator -> delegate`` would create a cycle.

        Walks outgoing edges starting at ``delegate``. The walk can visit at
        most one node per recorded edge plus the start, which bounds the
        visited set.
        """
        if delegator == delegate:
            return True

        bound = len(state.delegations) + 1
        visited: Set[str] = set()
        current: Optional[str] = delegate

        while current is not None:
            if current == delegator:
                return True
            if current in visited or len(visited) >= bound:
                # Existing graph already loops; never extend it.
                return True
            visited.add(current)
            current = state.delegations.get((proposal_id, current))

        return False


class DelegationGraph:
    """Manages vote delegations and delegation chains per proposal."""

    def __init__(self, state: VotingState, registry: ProposalRegistry, gate: EmergencyGate):
        """Initialize delegation graph."""
        self.state = state
        self.registry = registry
        self.gate = gate
        self.cycle_detector = CircularDelegationDetector()

    def delegate(
        self,
        proposal_id: ProposalId,
        delegator: str,
        delegate: str,
        height: int,
    ) -> bool:
        """Route the delegator's weight to the delegate."""
        self.gate.ensure_active("delegate", proposal_id, delegator, height)

        if delegator == delegate:
            raise SelfDelegation(proposal_id=proposal_id, principal=delegator, height=height)

        key = (proposal_id, delegator)
        if key in self.state.voted:
            raise AlreadyVoted(
                f"{delegator} has already voted on proposal {proposal_id}",
                proposal_id=proposal_id,
                principal=delegator,
                height=height,
            )

        if self.cycle_detector.would_create_cycle(self.state, proposal_id, delegator, delegate):
            raise CycleDetected(
                f"{delegator} is reachable from {delegate}",
                proposal_id=proposal_id,
                principal=delegator,
                height=height,
            )

        window = self.registry.get_window(proposal_id)
        if not window.is_voting_open(height):
            raise VotingNotOpen(
                "Delegation is only accepted while voting is open",
                proposal_id=proposal_id,
                principal=delegator,
                height=height,
            )

        if proposal_id in self.state.voting_status:
            raise ProposalExpired(
                f"Proposal {proposal_id} has already been tallied",
                proposal_id=proposal_id,
                principal=delegator,
                height=height,
            )

        if key in self.state.delegations:
            raise AlreadyDelegated(
                f"{delegator} already delegated to {self.state.delegations[key]}",
                proposal_id=proposal_id,
                principal=delegator,
                height=height,
            )

        if key in self.state.commitments:
            raise AlreadyCommitted(
                f"{delegator} committed a direct vote and cannot delegate",
                proposal_id=proposal_id,
                principal=delegator,
                height=height,
            )

        counted = self.counted_on_path(proposal_id, delegate)
        if counted is not None:
            raise AlreadyVoted(
                f"Weight routed to {delegate} would reach {counted}, which has already been counted",
                proposal_id=proposal_id,
                principal=delegator,
                height=height,
            )

        self.state.add_delegation(proposal_id, delegator, delegate)
        logger.debug(f"Delegation {delegator} -> {delegate} on proposal {proposal_id}")
        return True

    def delegate_of(self, proposal_id: ProposalId, delegator: str) -> Optional[str]:
        """Get the principal a delegator routes its weight to."""
        return self.state.delegations.get((proposal_id, delegator))

    def chain_of(self, proposal_id: ProposalId, delegate: str) -> List[str]:
        """Get the direct delegators of a delegate, in delegation order."""
        return list(self.state.delegation_chains.get((proposal_id, delegate), []))

    def reachable_delegators(self, proposal_id: ProposalId, delegate: str) -> List[str]:
        """Get every principal whose weight flows to ``delegate``.

        Breadth-first over the chains; each principal is returned once, in
        discovery order, and the delegate itself is never included.
        """
        found: List[str] = []
        visited: Set[str] = {delegate}
        queue = deque([delegate])

        while queue:
            current = queue.popleft()
            for delegator in self.state.delegation_chains.get((proposal_id, current), []):
                if delegator in visited:
                    continue
                visited.add(delegator)
                found.append(delegator)
                queue.append(delegator)

        return found

    def counted_on_path(self, proposal_id: ProposalId, delegate: str) -> Optional[str]:
        """First principal from ``delegate`` onward whose weight is already counted.

        A delegation into such a path could never be absorbed.
        """
        current: Optional[str] = delegate
        visited: Set[str] = set()
        while current is not None and current not in visited:
            if (proposal_id, current) in self.state.voted:
                return current
            visited.add(current)
            current = self.state.delegations.get((proposal_id, current))
        return None

    def final_delegate(self, proposal_id: ProposalId, delegator: str) -> str:
        """Follow outgoing edges to the principal that ends the path."""
        current = delegator
        visited = {current}
        while True:
            nxt = self.state.delegations.get((proposal_id, current))
            if nxt is None or nxt in visited:
                return current
            visited.add(nxt)
            current = nxt

    def delegation_depth(self, proposal_id: ProposalId, delegator: str) -> int:
        """Number of edges between a principal and its final delegate."""
        depth = 0
        current = delegator
        visited = {current}
        while True:
            nxt = self.state.delegations.get((proposal_id, current))
            if nxt is None or nxt in visited:
                return depth
            visited.add(nxt)
            depth += 1
            current = nxt
