"""
Emergency halt for the voting core.

A single owner-controlled flag, stored in the shared VotingState, that every
mutating operation consults first through ``ensure_active``.
"""

import logging

logger = logging.getLogger(__name__)
from enum import Enum
from typing import Optional

from ..errors.exceptions import Halted, NotAuthorized
from .core import ProposalId, VotingState


class GateState(Enum):
    """State of the emergency gate."""

    ACTIVE = "active"
    HALTED = "halted"


class EmergencyGate:
    """Owner-controlled kill switch.

    Transitions only happen through ``set_emergency_stop`` called by the
    owner; there is no automatic recovery.
    """

    def __init__(self, state: VotingState, owner: str):
        """Initialize emergency gate."""
        self.state = state
        self.owner = owner

    @property
    def gate_state(self) -> GateState:
        return GateState.HALTED if self.state.emergency_stop else GateState.ACTIVE

    def is_halted(self) -> bool:
        """Check if voting is halted."""
        return self.state.emergency_stop

    def set_emergency_stop(
        self,
        caller: str,
        stop: bool,
        height: Optional[int] = None,
        reason: Optional[str] = None,
    ) -> bool:
        """Set or clear the halt flag. Only the owner may call this."""
        if caller != self.owner:
            raise NotAuthorized(
                "Only the owner can change the emergency stop",
                principal=caller,
                height=height,
            )

        stop = bool(stop)
        if stop:
            self.state.set_emergency(True, reason, height, caller)
            logger.warning(f"Voting halted by {caller} at height {height}: {reason}")
        else:
            self.state.set_emergency(False)
            logger.info(f"Voting resumed by {caller} at height {height}")
        return True

    def ensure_active(
        self,
        operation: str,
        proposal_id: Optional[ProposalId] = None,
        principal: Optional[str] = None,
        height: Optional[int] = None,
    ) -> None:
        """Raise Halted if the gate is closed."""
        if self.state.emergency_stop:
            raise Halted(
                f"Cannot {operation}: voting is halted",
                proposal_id=proposal_id,
                principal=principal,
                height=height,
            )
