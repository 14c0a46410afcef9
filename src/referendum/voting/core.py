"""
Core voting types and data structures.

This module defines the data model of the commit-reveal referendum: proposal
windows, commitments, finalized voting status, configuration, and the single
state container every voting operation reads and writes.
"""

import logging

logger = logging.getLogger(__name__)
import copy
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Hashable, List, Optional, Set, Tuple

from ..crypto.hashing import Hash
from ..errors.exceptions import ConfigurationError, ValidationError

ProposalId = Hashable
VoterKey = Tuple[ProposalId, str]

_MISSING = object()


@dataclass(frozen=True)
class ProposalWindow:
    """Timing and quorum parameters of one proposal, owned by the registry."""

    start_height: int
    end_height: int
    reveal_start: int
    reveal_end: int
    quorum: int

    def __post_init__(self):
        """Validate window ordering after initialization."""
        for name in ("start_height", "end_height", "reveal_start", "reveal_end", "quorum"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise ValidationError(
                    f"{name} must be a non-negative integer",
                    field=name,
                    value=value,
                )

        if not (self.start_height < self.end_height < self.reveal_start < self.reveal_end):
            raise ValidationError(
                "Window must satisfy start < end < reveal_start < reveal_end",
                value=(self.start_height, self.end_height, self.reveal_start, self.reveal_end),
            )

    def is_voting_open(self, height: int) -> bool:
        """Check if commits and delegations are accepted at this height."""
        return self.start_height <= height <= self.end_height

    def is_reveal_open(self, height: int) -> bool:
        """Check if reveals are accepted at this height."""
        return self.reveal_start <= height <= self.reveal_end

    def to_dict(self) -> Dict[str, int]:
        """Convert window to dictionary."""
        return {
            "start_height": self.start_height,
            "end_height": self.end_height,
            "reveal_start": self.reveal_start,
            "reveal_end": self.reveal_end,
            "quorum": self.quorum,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProposalWindow":
        """Create window from dictionary."""
        return cls(
            start_height=data["start_height"],
            end_height=data["end_height"],
            reveal_start=data["reveal_start"],
            reveal_end=data["reveal_end"],
            quorum=data["quorum"],
        )


@dataclass
class Commitment:
    """A hidden vote, opened at most once."""

    commitment_hash: Hash
    revealed: bool = False
    choice: Optional[bool] = None
    weight: int = 0
    own_weight: int = 0
    delegated_weight: int = 0
    committed_at: Optional[int] = None
    revealed_at: Optional[int] = None

    def __post_init__(self):
        if self.weight < 0:
            raise ValidationError("Commitment weight cannot be negative", field="weight")

    def to_dict(self) -> Dict[str, Any]:
        """Convert commitment to dictionary."""
        return {
            "commitment_hash": self.commitment_hash.to_hex(),
            "revealed": self.revealed,
            "choice": self.choice,
            "weight": self.weight,
            "own_weight": self.own_weight,
            "delegated_weight": self.delegated_weight,
            "committed_at": self.committed_at,
            "revealed_at": self.revealed_at,
        }


@dataclass(frozen=True)
class VotingStatus:
    """Final, immutable result of a tallied proposal."""

    is_open: bool
    start_height: int
    end_height: int
    reveal_start: int
    reveal_end: int
    quorum: int
    total_votes: int
    yes_votes: int
    no_votes: int

    @classmethod
    def finalized(cls, window: ProposalWindow, yes_votes: int, no_votes: int) -> "VotingStatus":
        return cls(
            is_open=False,
            start_height=window.start_height,
            end_height=window.end_height,
            reveal_start=window.reveal_start,
            reveal_end=window.reveal_end,
            quorum=window.quorum,
            total_votes=yes_votes + no_votes,
            yes_votes=yes_votes,
            no_votes=no_votes,
        )

    @property
    def approved(self) -> bool:
        return self.yes_votes > self.no_votes

    def to_dict(self) -> Dict[str, Any]:
        """Convert status to dictionary."""
        return {
            "is_open": self.is_open,
            "start_height": self.start_height,
            "end_height": self.end_height,
            "reveal_start": self.reveal_start,
            "reveal_end": self.reveal_end,
            "quorum": self.quorum,
            "total_votes": self.total_votes,
            "yes_votes": self.yes_votes,
            "no_votes": self.no_votes,
        }


@dataclass(frozen=True)
class TallyResult:
    """Totals handed to results consumers after a successful tally."""

    proposal_id: Any
    total_votes: int
    yes_votes: int
    no_votes: int
    quorum: int
    height: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "proposal_id": self.proposal_id,
            "total_votes": self.total_votes,
            "yes_votes": self.yes_votes,
            "no_votes": self.no_votes,
            "quorum": self.quorum,
            "height": self.height,
        }


@dataclass
class VotingConfig:
    """Configuration for the voting mechanism."""

    owner: str = ""
    max_salt_length: int = 1024
    enable_audit_trail: bool = True
    notify_collaborators: bool = True

    def __post_init__(self):
        """Validate configuration after initialization."""
        self.validate()

    def validate(self) -> None:
        """Validate configuration."""
        if not isinstance(self.owner, str) or not self.owner:
            raise ConfigurationError(
                "Voting owner must be a non-empty principal",
                config_key="owner",
                config_value=self.owner,
            )

        if self.max_salt_length <= 0:
            raise ConfigurationError(
                "Max salt length must be positive",
                config_key="max_salt_length",
                config_value=self.max_salt_length,
            )

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return {
            "owner": self.owner,
            "max_salt_length": self.max_salt_length,
            "enable_audit_trail": self.enable_audit_trail,
            "notify_collaborators": self.notify_collaborators,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VotingConfig":
        """Create configuration from dictionary, ignoring unknown keys."""
        known = {key: data[key] for key in cls.__dataclass_fields__ if key in data}
        unknown = set(data) - set(known)
        if unknown:
            logger.warning(f"Ignoring unknown voting config keys: {sorted(unknown)}")
        return cls(**known)


@dataclass
class VotingState:
    """All mutable voting state, keyed by proposal and principal.

    Owned by a single coordinator and handed to each component by
    reference. Components only write through the methods below; between
    begin() and end() each write is journaled so a failed operation can be
    undone in place without copying the state.
    """

    commitments: Dict[VoterKey, Commitment] = field(default_factory=dict)
    voted: Set[VoterKey] = field(default_factory=set)
    delegations: Dict[VoterKey, str] = field(default_factory=dict)  # (pid, delegator) -> delegate
    delegation_chains: Dict[VoterKey, List[str]] = field(default_factory=dict)  # (pid, delegate) -> delegators
    absorbed_by: Dict[VoterKey, str] = field(default_factory=dict)  # (pid, delegator) -> absorbing delegate
    voting_status: Dict[ProposalId, VotingStatus] = field(default_factory=dict)

    # Emergency state
    emergency_stop: bool = False
    emergency_reason: Optional[str] = None
    emergency_height: Optional[int] = None
    emergency_initiator: Optional[str] = None

    _journal: Optional[List[Callable[[], Any]]] = field(
        default=None, init=False, repr=False, compare=False
    )

    def get_commitment(self, proposal_id: ProposalId, voter: str) -> Optional[Commitment]:
        """Get the commitment of a voter."""
        return self.commitments.get((proposal_id, voter))

    def has_voted(self, proposal_id: ProposalId, voter: str) -> bool:
        """Check whether a principal's weight has been counted."""
        return (proposal_id, voter) in self.voted

    def commitments_for(self, proposal_id: ProposalId) -> List[Tuple[str, Commitment]]:
        """List (voter, commitment) pairs of a proposal in insertion order."""
        return [
            (voter, commitment)
            for (pid, voter), commitment in self.commitments.items()
            if pid == proposal_id
        ]

    # Writes. Every mutation goes through these methods so that an open
    # journal can undo it in place.

    def begin(self) -> None:
        """Start recording undo entries for one operation."""
        self._journal = []

    def end(self) -> None:
        """Keep the writes recorded since begin()."""
        self._journal = None

    def rollback(self) -> None:
        """Undo the writes recorded since begin(), newest first."""
        journal, self._journal = self._journal or [], None
        for undo in reversed(journal):
            undo()

    def put_commitment(self, key: VoterKey, commitment: Commitment) -> None:
        self._put(self.commitments, key, commitment)

    def update_commitment(self, commitment: Commitment, **changes: Any) -> None:
        """Set fields of a stored commitment without replacing the object."""
        for name, value in changes.items():
            self._set_attr(commitment, name, value)

    def mark_voted(self, key: VoterKey) -> None:
        if key in self.voted:
            return
        self.voted.add(key)
        self._record(lambda: self.voted.discard(key))

    def absorb(self, key: VoterKey, delegate: str) -> None:
        """Count a delegator's weight through the delegate that revealed."""
        self.mark_voted(key)
        self._put(self.absorbed_by, key, delegate)

    def add_delegation(self, proposal_id: ProposalId, delegator: str, delegate: str) -> None:
        """Record the edge delegator -> delegate and extend the delegate's chain."""
        self._put(self.delegations, (proposal_id, delegator), delegate)
        chain_key = (proposal_id, delegate)
        if chain_key not in self.delegation_chains:
            self._put(self.delegation_chains, chain_key, [])
        chain = self.delegation_chains[chain_key]
        chain.append(delegator)
        self._record(chain.pop)

    def put_status(self, proposal_id: ProposalId, status: VotingStatus) -> None:
        self._put(self.voting_status, proposal_id, status)

    def set_emergency(
        self,
        stop: bool,
        reason: Optional[str] = None,
        height: Optional[int] = None,
        initiator: Optional[str] = None,
    ) -> None:
        self._set_attr(self, "emergency_stop", stop)
        self._set_attr(self, "emergency_reason", reason)
        self._set_attr(self, "emergency_height", height)
        self._set_attr(self, "emergency_initiator", initiator)

    def snapshot(self) -> "VotingState":
        """Detached deep copy for inspection and comparison."""
        return copy.deepcopy(self)

    def _record(self, undo: Callable[[], Any]) -> None:
        if self._journal is not None:
            self._journal.append(undo)

    def _put(self, mapping: Dict[Any, Any], key: Any, value: Any) -> None:
        previous = mapping.get(key, _MISSING)
        mapping[key] = value

        def undo() -> None:
            if previous is _MISSING:
                mapping.pop(key, None)
            else:
                mapping[key] = previous

        self._record(undo)

    def _set_attr(self, target: Any, name: str, value: Any) -> None:
        previous = getattr(target, name)
        setattr(target, name, value)
        self._record(lambda: setattr(target, name, previous))
