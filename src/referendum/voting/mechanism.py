"""
Voting mechanism coordinator.

Owns the shared VotingState and wires the commit store, delegation graph,
reveal engine, tally engine and emergency gate to the injected external
collaborators. Every mutating operation runs as one transaction: writers are
serialized, and the writes of a failing operation are undone in place.
"""

import logging

logger = logging.getLogger(__name__)
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, Optional, Union

from ..crypto.commitment import Salt
from ..crypto.hashing import Hash
from ..errors.exceptions import DelegationNotFound, VotingError
from .collaborators import (
    EligibilityOracle,
    ProposalRegistry,
    ReferendumTracker,
    ResultsAggregator,
)
from .commitments import CommitStore
from .core import (
    Commitment,
    ProposalId,
    TallyResult,
    VotingConfig,
    VotingState,
    VotingStatus,
)
from .delegation import DelegationGraph
from .emergency import EmergencyGate
from .observability import EventType, VotingEvents
from .reveal import RevealEngine, RevealReceipt
from .tally import TallyEngine


@dataclass
class OperationResult:
    """Outcome of an operation in wire form: ok flag plus value or error code."""

    ok: bool
    value: Any
    error: Optional[VotingError] = None

    @property
    def error_code(self) -> Optional[int]:
        return int(self.error.code) if self.error is not None else None

    def to_dict(self) -> Dict[str, Any]:
        """Convert result to dictionary."""
        value = self.value
        if hasattr(value, "to_dict"):
            value = value.to_dict()
        return {
            "ok": self.ok,
            "value": value,
            "error": self.error.to_dict() if self.error is not None else None,
        }


class VotingMechanism:
    """Commit-reveal referendum voting with delegation and emergency halt."""

    def __init__(
        self,
        config: VotingConfig,
        registry: ProposalRegistry,
        oracle: EligibilityOracle,
        aggregator: Optional[ResultsAggregator] = None,
        tracker: Optional[ReferendumTracker] = None,
        state: Optional[VotingState] = None,
    ):
        """Initialize voting mechanism."""
        config.validate()
        self.config = config
        self.registry = registry
        self.oracle = oracle
        self.aggregator = aggregator
        self.tracker = tracker
        self.state = state or VotingState()

        self.gate = EmergencyGate(self.state, config.owner)
        self.commit_store = CommitStore(self.state, registry, self.gate)
        self.delegation_graph = DelegationGraph(self.state, registry, self.gate)
        self.reveal_engine = RevealEngine(
            self.state, config, registry, oracle, self.delegation_graph, self.gate
        )
        self.tally_engine = TallyEngine(self.state, registry, self.gate)
        self.events = VotingEvents() if config.enable_audit_trail else None

        self._lock = threading.RLock()
        self._operations: Dict[str, Callable[..., Any]] = {
            "commit": self.commit,
            "commit_vote": self.commit,
            "reveal": self.reveal,
            "reveal_vote": self.reveal,
            "delegate": self.delegate,
            "delegate_vote": self.delegate,
            "tally": self.tally,
            "tally_votes": self.tally,
            "set_emergency_stop": self.set_emergency_stop,
        }

    @contextmanager
    def _transaction(self, operation: str) -> Iterator[None]:
        """Serialize a write and roll it back if it raises."""
        with self._lock:
            self.state.begin()
            try:
                yield
            except VotingError as e:
                self.state.rollback()
                logger.warning(f"{operation} rejected with {int(e.code)}: {e.message}")
                raise
            except Exception:
                self.state.rollback()
                logger.exception(f"{operation} failed unexpectedly; writes undone")
                raise
            else:
                self.state.end()

    # Mutating operations

    def commit(
        self,
        proposal_id: ProposalId,
        voter: str,
        commitment_hash: Union[Hash, bytes, str],
        height: int,
    ) -> bool:
        """Commit a hidden vote."""
        with self._transaction("commit"):
            result = self.commit_store.commit(proposal_id, voter, commitment_hash, height)

        logger.info(f"Vote committed by {voter} on proposal {proposal_id} at height {height}")
        self._emit(EventType.VOTE_COMMITTED, proposal_id, voter, block_height=height)
        return result

    def reveal(
        self,
        proposal_id: ProposalId,
        voter: str,
        choice: bool,
        salt: Salt,
        weight: int,
        height: int,
    ) -> RevealReceipt:
        """Reveal a committed vote and count its weight."""
        with self._transaction("reveal"):
            receipt = self.reveal_engine.reveal(proposal_id, voter, choice, salt, weight, height)

        logger.info(
            f"Vote revealed by {voter} on proposal {proposal_id}: "
            f"choice={choice} weight={receipt.weight}"
        )
        self._emit(
            EventType.VOTE_REVEALED,
            proposal_id,
            voter,
            block_height=height,
            metadata={
                "choice": choice,
                "own_weight": receipt.own_weight,
                "delegated_weight": receipt.delegated_weight,
            },
        )
        for delegator, absorbed_weight in receipt.absorbed.items():
            self._emit(
                EventType.WEIGHT_ABSORBED,
                proposal_id,
                delegator,
                counterparty=voter,
                block_height=height,
                metadata={"weight": absorbed_weight},
            )
        return receipt

    def delegate(self, proposal_id: ProposalId, delegator: str, delegate: str, height: int) -> bool:
        """Delegate the delegator's vote to another principal."""
        with self._transaction("delegate"):
            result = self.delegation_graph.delegate(proposal_id, delegator, delegate, height)

        logger.info(f"{delegator} delegated to {delegate} on proposal {proposal_id}")
        self._emit(
            EventType.DELEGATION_CREATED,
            proposal_id,
            delegator,
            counterparty=delegate,
            block_height=height,
        )
        return result

    def tally(self, proposal_id: ProposalId, height: int) -> TallyResult:
        """Finalize a proposal and notify results consumers."""
        with self._transaction("tally"):
            result, status = self.tally_engine.tally(proposal_id, height)

        logger.info(
            f"Proposal {proposal_id} tallied: yes={result.yes_votes} "
            f"no={result.no_votes} total={result.total_votes}"
        )
        self._emit(EventType.TALLY_COMPUTED, proposal_id, block_height=height, metadata=result.to_dict())
        self._notify(proposal_id, result, status)
        return result

    def set_emergency_stop(
        self,
        caller: str,
        stop: bool,
        height: Optional[int] = None,
        reason: Optional[str] = None,
    ) -> bool:
        """Set or clear the emergency halt. Owner only."""
        with self._transaction("set_emergency_stop"):
            result = self.gate.set_emergency_stop(caller, stop, height, reason)

        self._emit(
            EventType.EMERGENCY_HALT if stop else EventType.EMERGENCY_RESUME,
            principal=caller,
            block_height=height,
            metadata={"reason": reason} if reason else None,
        )
        return result

    def execute(self, operation: str, **kwargs: Any) -> OperationResult:
        """Run an operation by name and report it as an OperationResult.

        Voting failures become ``ok=False`` with the numeric error code as
        value. Any other exception propagates.
        """
        handler = self._operations.get(operation)
        if handler is None:
            raise ValueError(f"Unknown operation: {operation}")

        try:
            value = handler(**kwargs)
        except VotingError as e:
            return OperationResult(ok=False, value=int(e.code), error=e)
        return OperationResult(ok=True, value=value)

    # Queries

    def get_voting_status(self, proposal_id: ProposalId) -> Optional[VotingStatus]:
        """Get the final status of a proposal, None until tallied."""
        return self.state.voting_status.get(proposal_id)

    def has_voted(self, proposal_id: ProposalId, voter: str) -> bool:
        """Check whether a principal's weight has been counted."""
        return self.state.has_voted(proposal_id, voter)

    def get_commitment(self, proposal_id: ProposalId, voter: str) -> Optional[Commitment]:
        return self.commit_store.get(proposal_id, voter)

    def get_delegation(self, proposal_id: ProposalId, delegator: str) -> str:
        """Get the delegate of a delegator, raising DelegationNotFound if none."""
        delegate = self.delegation_graph.delegate_of(proposal_id, delegator)
        if delegate is None:
            raise DelegationNotFound(
                f"{delegator} has not delegated on proposal {proposal_id}",
                proposal_id=proposal_id,
                principal=delegator,
            )
        return delegate

    def is_halted(self) -> bool:
        return self.gate.is_halted()

    # Internal

    def _emit(self, event_type: EventType, proposal_id: Optional[ProposalId] = None,
              principal: Optional[str] = None, **kwargs: Any) -> None:
        if self.events is None:
            return
        self.events.emit_event(event_type, proposal_id=proposal_id, principal=principal, **kwargs)

    def _notify(self, proposal_id: ProposalId, result: TallyResult, status: VotingStatus) -> None:
        """Fire-and-forget notifications; failures never undo the tally."""
        if not self.config.notify_collaborators:
            return

        if self.aggregator is not None:
            try:
                self.aggregator.on_tally(proposal_id, result)
            except Exception as e:
                logger.error(f"Results aggregator failed for proposal {proposal_id}: {e}")

        if self.tracker is not None:
            try:
                self.tracker.on_status_change(proposal_id, status)
            except Exception as e:
                logger.error(f"Referendum tracker failed for proposal {proposal_id}: {e}")
