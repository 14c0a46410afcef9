"""
Observability and audit trail for the voting core.

Every successful state change is recorded as an event in a hash-chained
audit trail. Listeners are notified after the event is appended; a failing
listener is logged and never affects voting state.
"""

import logging

logger = logging.getLogger(__name__)
import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from ..crypto.hashing import SHA256Hasher


class EventType(Enum):
    """Types of voting events."""

    VOTE_COMMITTED = "vote_committed"
    VOTE_REVEALED = "vote_revealed"
    DELEGATION_CREATED = "delegation_created"
    WEIGHT_ABSORBED = "weight_absorbed"
    TALLY_COMPUTED = "tally_computed"
    EMERGENCY_HALT = "emergency_halt"
    EMERGENCY_RESUME = "emergency_resume"


@dataclass
class VotingEvent:
    """A voting event for the audit trail."""

    event_id: str
    event_type: EventType
    sequence: int
    block_height: Optional[int] = None
    proposal_id: Optional[Any] = None
    principal: Optional[str] = None
    counterparty: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    event_hash: Optional[str] = None
    previous_event_hash: Optional[str] = None

    def __post_init__(self):
        """Calculate event hash after initialization."""
        self.event_hash = self._calculate_hash()

    def _calculate_hash(self) -> str:
        """Calculate hash of this event."""
        event_data = {
            "event_id": self.event_id,
            "event_type": self.event_type.value,
            "sequence": self.sequence,
            "block_height": self.block_height,
            "proposal_id": self.proposal_id,
            "principal": self.principal,
            "counterparty": self.counterparty,
            "metadata": self.metadata,
            "previous_event_hash": self.previous_event_hash,
        }

        event_json = json.dumps(event_data, sort_keys=True, default=str)
        return str(SHA256Hasher.hash(event_json))

    def to_dict(self) -> Dict[str, Any]:
        """Convert event to dictionary."""
        return {
            "event_id": self.event_id,
            "event_type": self.event_type.value,
            "sequence": self.sequence,
            "block_height": self.block_height,
            "proposal_id": self.proposal_id,
            "principal": self.principal,
            "counterparty": self.counterparty,
            "metadata": self.metadata,
            "event_hash": self.event_hash,
            "previous_event_hash": self.previous_event_hash,
        }


class AuditTrail:
    """Maintains an append-only, hash-chained trail of voting events."""

    def __init__(self):
        """Initialize audit trail."""
        self.events: List[VotingEvent] = []
        self.proposal_events: Dict[Any, List[VotingEvent]] = {}
        self.principal_events: Dict[str, List[VotingEvent]] = {}

    def add_event(self, event: VotingEvent) -> None:
        """Add an event to the audit trail."""
        if self.events:
            event.previous_event_hash = self.events[-1].event_hash

        # Recalculate hash with previous event hash
        event.event_hash = event._calculate_hash()

        self.events.append(event)

        if event.proposal_id is not None:
            self.proposal_events.setdefault(event.proposal_id, []).append(event)

        if event.principal:
            self.principal_events.setdefault(event.principal, []).append(event)

    def get_proposal_events(self, proposal_id: Any) -> List[VotingEvent]:
        """Get all events for a proposal."""
        return self.proposal_events.get(proposal_id, [])

    def get_principal_events(self, principal: str) -> List[VotingEvent]:
        """Get all events for a principal."""
        return self.principal_events.get(principal, [])

    def verify_integrity(self) -> bool:
        """Verify the integrity of the audit trail."""
        for i, event in enumerate(self.events):
            if event.event_hash != event._calculate_hash():
                return False

            if i > 0 and event.previous_event_hash != self.events[i - 1].event_hash:
                return False

        return True

    def get_audit_summary(self) -> Dict[str, Any]:
        """Get audit trail summary."""
        event_counts: Dict[str, int] = {}
        for event in self.events:
            event_type = event.event_type.value
            event_counts[event_type] = event_counts.get(event_type, 0) + 1

        return {
            "total_events": len(self.events),
            "event_counts": event_counts,
            "unique_proposals": len(self.proposal_events),
            "unique_principals": len(self.principal_events),
            "integrity_verified": self.verify_integrity(),
        }


class VotingEvents:
    """Event system for voting observability."""

    def __init__(self):
        """Initialize voting events system."""
        self.audit_trail = AuditTrail()
        self.event_listeners: Dict[EventType, List[Callable[[VotingEvent], None]]] = {}

    def add_event_listener(
        self, event_type: EventType, listener: Callable[[VotingEvent], None]
    ) -> None:
        """Add an event listener."""
        self.event_listeners.setdefault(event_type, []).append(listener)

    def emit_event(
        self,
        event_type: EventType,
        proposal_id: Optional[Any] = None,
        principal: Optional[str] = None,
        counterparty: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        block_height: Optional[int] = None,
    ) -> VotingEvent:
        """Emit a voting event."""
        sequence = len(self.audit_trail.events)
        event = VotingEvent(
            event_id=f"{event_type.value}_{sequence}",
            event_type=event_type,
            sequence=sequence,
            block_height=block_height,
            proposal_id=proposal_id,
            principal=principal,
            counterparty=counterparty,
            metadata=metadata or {},
        )

        self.audit_trail.add_event(event)

        for listener in self.event_listeners.get(event_type, []):
            try:
                listener(event)
            except Exception as e:
                logger.error(f"Error in event listener for {event_type.value}: {e}")

        return event

    def verify_audit_integrity(self) -> bool:
        """Verify the integrity of the audit trail."""
        return self.audit_trail.verify_integrity()
