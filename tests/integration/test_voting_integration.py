"""
Integration tests for the voting mechanism.

This module tests the coordinator end to end: the commit-reveal lifecycle,
delegation, tallying, the emergency halt, transactional rollback, the
numeric error contract and notifications to external collaborators.
"""

import logging

logger = logging.getLogger(__name__)
import pytest
from unittest.mock import Mock, patch

from referendum.crypto.commitment import commitment_digest
from referendum.errors.exceptions import (
    DelegationNotFound,
    NotAuthorized,
    QuorumNotMet,
    TallyNotAllowed,
)
from referendum.voting.collaborators import (
    InMemoryProposalRegistry,
    RecordingReferendumTracker,
    RecordingResultsAggregator,
    StaticEligibilityOracle,
)
from referendum.voting.core import ProposalWindow, VotingConfig
from referendum.voting.mechanism import VotingMechanism
from referendum.voting.observability import EventType

pytestmark = pytest.mark.integration

OWNER = "ST1OWNER"
PROPOSAL = 1
SALT = "integration-salt"


@pytest.fixture
def window():
    """Create the standard proposal window."""
    return ProposalWindow(
        start_height=50, end_height=150, reveal_start=151, reveal_end=200, quorum=100
    )


@pytest.fixture
def registry(window):
    return InMemoryProposalRegistry({PROPOSAL: window})


@pytest.fixture
def oracle():
    return StaticEligibilityOracle({"V1": 10, "V2": 20, "V3": 30, "V4": 40, "V5": 50})


@pytest.fixture
def aggregator():
    return RecordingResultsAggregator()


@pytest.fixture
def tracker():
    return RecordingReferendumTracker()


@pytest.fixture
def mechanism(registry, oracle, aggregator, tracker):
    """Create voting mechanism with all collaborators."""
    return VotingMechanism(
        VotingConfig(owner=OWNER),
        registry,
        oracle,
        aggregator=aggregator,
        tracker=tracker,
    )


def commit(mechanism, voter, choice, height=100):
    digest = commitment_digest(choice, SALT, voter)
    return mechanism.commit(PROPOSAL, voter, digest, height)


def reveal(mechanism, voter, choice, weight, height=160):
    return mechanism.reveal(PROPOSAL, voter, choice, SALT, weight, height)


class TestVotingLifecycle:
    """Test the full commit, reveal and tally lifecycle."""

    def test_reveal_below_quorum(self, mechanism):
        """Test a counted reveal whose tally misses quorum."""
        assert commit(mechanism, "V1", True, height=100) is True
        reveal(mechanism, "V1", True, 10, height=160)
        assert mechanism.has_voted(PROPOSAL, "V1")

        with pytest.raises(TallyNotAllowed):
            mechanism.tally(PROPOSAL, 99)

        with pytest.raises(QuorumNotMet) as exc_info:
            mechanism.tally(PROPOSAL, 160)
        assert exc_info.value.metadata["total_votes"] == 10
        assert mechanism.get_voting_status(PROPOSAL) is None

    def test_cycle_rejected(self, registry, oracle):
        """Test that closing a two-party delegation loop is rejected."""
        mechanism = VotingMechanism(VotingConfig(owner=OWNER), registry, oracle)

        assert mechanism.execute(
            "delegate", proposal_id=PROPOSAL, delegator="V2", delegate="V1", height=100
        ).ok
        result = mechanism.execute(
            "delegate", proposal_id=PROPOSAL, delegator="V1", delegate="V2", height=100
        )

        assert result.ok is False
        assert result.value == 423
        assert mechanism.get_delegation(PROPOSAL, "V2") == "V1"
        with pytest.raises(DelegationNotFound):
            mechanism.get_delegation(PROPOSAL, "V1")

    def test_successful_tally(self, mechanism, aggregator, tracker):
        """Test that a tally meeting quorum finalizes and notifies."""
        commit(mechanism, "V5", True)
        commit(mechanism, "V4", False)
        commit(mechanism, "V1", True)
        reveal(mechanism, "V5", True, 50)
        reveal(mechanism, "V4", False, 40)
        reveal(mechanism, "V1", True, 10)

        result = mechanism.tally(PROPOSAL, 201)

        assert result.total_votes == 100
        assert result.yes_votes == 60
        assert result.no_votes == 40

        status = mechanism.get_voting_status(PROPOSAL)
        assert status.is_open is False
        assert status.approved is True
        assert status.quorum == 100
        assert status.total_votes == status.yes_votes + status.no_votes

        assert aggregator.latest(PROPOSAL) == result
        assert tracker.statuses()[PROPOSAL] == status

    def test_tally_is_one_time(self, mechanism):
        """Test that a finalized proposal cannot be tallied again."""
        commit(mechanism, "V5", True)
        commit(mechanism, "V4", True)
        commit(mechanism, "V1", True)
        reveal(mechanism, "V5", True, 50)
        reveal(mechanism, "V4", True, 40)
        reveal(mechanism, "V1", True, 10)
        mechanism.tally(PROPOSAL, 160)

        again = mechanism.execute("tally", proposal_id=PROPOSAL, height=161)
        assert again.ok is False
        assert again.value == 410

    def test_tally_retry_after_quorum_failure(self, mechanism):
        """Test that a failed quorum leaves the proposal tallyable."""
        commit(mechanism, "V5", True)
        commit(mechanism, "V4", False)
        commit(mechanism, "V1", True)
        reveal(mechanism, "V5", True, 50)
        reveal(mechanism, "V4", False, 40)

        assert mechanism.execute("tally", proposal_id=PROPOSAL, height=170).value == 419

        reveal(mechanism, "V1", True, 10, height=180)
        result = mechanism.execute("tally", proposal_id=PROPOSAL, height=181)

        assert result.ok is True
        assert result.value.total_votes == 100

    def test_unrevealed_commitments_not_counted(self, mechanism):
        """Test that committed but unrevealed votes add no weight."""
        commit(mechanism, "V5", True)
        commit(mechanism, "V4", True)
        commit(mechanism, "V1", True)
        reveal(mechanism, "V5", True, 50)

        assert mechanism.tally_engine.count(PROPOSAL) == (50, 0)
        assert not mechanism.has_voted(PROPOSAL, "V4")

    def test_reveal_after_tally_rejected(self, mechanism):
        """Test that reveals stop once the proposal is finalized."""
        commit(mechanism, "V5", True)
        commit(mechanism, "V4", True)
        commit(mechanism, "V2", True)
        commit(mechanism, "V1", False)
        reveal(mechanism, "V5", True, 50)
        reveal(mechanism, "V4", True, 40)
        reveal(mechanism, "V2", True, 20)
        mechanism.tally(PROPOSAL, 170)

        late = mechanism.execute(
            "reveal",
            proposal_id=PROPOSAL,
            voter="V1",
            choice=False,
            salt=SALT,
            weight=10,
            height=171,
        )
        assert late.value == 417
        assert mechanism.get_voting_status(PROPOSAL).no_votes == 0


class TestContinuousScenario:
    """Test the reference scenario as one run against a single mechanism."""

    def test_scenario_on_one_mechanism(self, mechanism):
        """Test commit, delegation loop, reveal and both tally refusals in sequence."""
        assert commit(mechanism, "V1", True, height=100) is True
        assert mechanism.execute(
            "delegate", proposal_id=PROPOSAL, delegator="V2", delegate="V1", height=100
        ).ok

        loop = mechanism.execute(
            "delegate", proposal_id=PROPOSAL, delegator="V1", delegate="V2", height=100
        )
        assert loop.value == 423

        receipt = reveal(mechanism, "V1", True, 10, height=160)
        assert receipt.weight == 30
        assert mechanism.has_voted(PROPOSAL, "V1")

        assert mechanism.execute("tally", proposal_id=PROPOSAL, height=99).value == 410

        below = mechanism.execute("tally", proposal_id=PROPOSAL, height=160)
        assert below.value == 419
        assert below.error.metadata["total_votes"] == 30
        assert mechanism.get_voting_status(PROPOSAL) is None


class TestFinalizedProposal:
    """Test that a tallied proposal accepts no further writes."""

    @pytest.fixture
    def finalized(self, mechanism):
        commit(mechanism, "V5", True)
        commit(mechanism, "V4", True)
        commit(mechanism, "V1", True)
        reveal(mechanism, "V5", True, 50)
        reveal(mechanism, "V4", True, 40)
        reveal(mechanism, "V1", True, 10)
        mechanism.tally(PROPOSAL, 170)
        return mechanism

    def test_commit_after_tally(self, finalized):
        """Test that a commitment at an earlier height is refused."""
        result = finalized.execute(
            "commit",
            proposal_id=PROPOSAL,
            voter="V3",
            commitment_hash=commitment_digest(True, SALT, "V3"),
            height=100,
        )

        assert result.value == 417
        assert finalized.get_commitment(PROPOSAL, "V3") is None

    def test_delegate_after_tally(self, finalized):
        """Test that a delegation at an earlier height is refused."""
        result = finalized.execute(
            "delegate", proposal_id=PROPOSAL, delegator="V2", delegate="V3", height=100
        )

        assert result.value == 417
        with pytest.raises(DelegationNotFound):
            finalized.get_delegation(PROPOSAL, "V2")


class TestDelegationIntegration:
    """Test delegation flowing into tallies."""

    def test_transitive_weight_counted_once(self, mechanism):
        """Test that delegated weight is absorbed exactly once."""
        mechanism.delegate(PROPOSAL, "V2", "V1", 90)
        mechanism.delegate(PROPOSAL, "V3", "V2", 95)
        commit(mechanism, "V1", True)
        commit(mechanism, "V4", False)

        receipt = reveal(mechanism, "V1", True, 10)
        reveal(mechanism, "V4", False, 40)

        assert receipt.own_weight == 10
        assert receipt.delegated_weight == 50
        assert receipt.absorbed == {"V2": 20, "V3": 30}
        assert mechanism.has_voted(PROPOSAL, "V2")
        assert mechanism.has_voted(PROPOSAL, "V3")
        assert mechanism.state.absorbed_by[(PROPOSAL, "V3")] == "V1"

        result = mechanism.tally(PROPOSAL, 201)
        assert result.yes_votes == 60
        assert result.no_votes == 40
        assert result.total_votes == 100

    def test_delegator_cannot_commit(self, mechanism):
        """Test that a delegator cannot also vote directly."""
        mechanism.delegate(PROPOSAL, "V2", "V1", 90)

        result = mechanism.execute(
            "commit",
            proposal_id=PROPOSAL,
            voter="V2",
            commitment_hash=commitment_digest(True, SALT, "V2"),
            height=100,
        )
        assert result.value == 406

    def test_absorbed_delegator_cannot_delegate(self, mechanism):
        """Test that an absorbed delegator is treated as voted."""
        mechanism.delegate(PROPOSAL, "V2", "V1", 90)
        commit(mechanism, "V1", True)
        reveal(mechanism, "V1", True, 10)

        result = mechanism.execute(
            "delegate", proposal_id=PROPOSAL, delegator="V2", delegate="V3", height=100
        )
        assert result.value == 406

    def test_delegation_to_revealed_delegate_refused(self, mechanism):
        """Test that weight is never routed to a delegate already counted."""
        commit(mechanism, "V1", True)
        reveal(mechanism, "V1", True, 10)

        refused = mechanism.execute(
            "delegate", proposal_id=PROPOSAL, delegator="V2", delegate="V1", height=100
        )
        assert refused.value == 406

        # V2 keeps its own vote
        assert commit(mechanism, "V2", False) is True
        reveal(mechanism, "V2", False, 20, height=170)
        assert mechanism.tally_engine.count(PROPOSAL) == (10, 20)

    def test_delegation_to_silent_delegate_not_counted(self, mechanism):
        """Test that weight routed to a delegate that never reveals is lost."""
        mechanism.delegate(PROPOSAL, "V2", "V3", 90)
        commit(mechanism, "V3", True)
        commit(mechanism, "V1", True)
        reveal(mechanism, "V1", True, 10)

        assert mechanism.tally_engine.count(PROPOSAL) == (10, 0)
        assert not mechanism.has_voted(PROPOSAL, "V2")


class TestOperationResults:
    """Test the numeric error contract exposed by execute()."""

    def test_success_value(self, mechanism):
        """Test that success carries the operation's value."""
        result = mechanism.execute(
            "commit_vote",
            proposal_id=PROPOSAL,
            voter="V1",
            commitment_hash=commitment_digest(True, SALT, "V1"),
            height=100,
        )

        assert result.ok is True
        assert result.value is True
        assert result.error_code is None
        assert result.to_dict()["error"] is None

    @pytest.mark.parametrize(
        "operation, kwargs, code",
        [
            ("commit", dict(proposal_id=99, voter="V1", commitment_hash=b"\x00" * 32, height=100), 404),
            ("commit", dict(proposal_id=PROPOSAL, voter="V1", commitment_hash=b"\x00" * 32, height=10), 405),
            ("commit", dict(proposal_id=PROPOSAL, voter="V1", commitment_hash=b"\x00" * 3, height=100), 416),
            ("reveal", dict(proposal_id=PROPOSAL, voter="V9", choice=True, salt=SALT, weight=1, height=160), 420),
            ("delegate", dict(proposal_id=PROPOSAL, delegator="V1", delegate="V1", height=100), 422),
            ("tally", dict(proposal_id=PROPOSAL, height=150), 410),
            ("set_emergency_stop", dict(caller="intruder", stop=True), 401),
        ],
    )
    def test_failure_codes(self, mechanism, operation, kwargs, code):
        """Test that voting failures map to stable codes."""
        result = mechanism.execute(operation, **kwargs)

        assert result.ok is False
        assert result.value == code
        assert result.error_code == code
        assert result.to_dict()["error"]["code"] == code

    def test_reveal_failure_codes(self, mechanism):
        """Test reveal failure codes after a valid commit."""
        commit(mechanism, "V1", True)

        def attempt(**overrides):
            kwargs = dict(
                proposal_id=PROPOSAL, voter="V1", choice=True, salt=SALT, weight=10, height=160
            )
            kwargs.update(overrides)
            return mechanism.execute("reveal", **kwargs).value

        assert attempt(choice=1) == 408
        assert attempt(salt="wrong") == 416
        assert attempt(choice=False) == 416
        assert attempt(height=151 - 1) == 416
        assert attempt(height=201) == 417
        assert attempt(weight=0) == 409
        assert attempt(weight=15) == 407

        assert attempt() is not None
        assert mechanism.has_voted(PROPOSAL, "V1")
        assert attempt() == 416

    def test_unknown_operation(self, mechanism):
        """Test that an unknown operation name is a programming error."""
        with pytest.raises(ValueError):
            mechanism.execute("vote_twice")


class TestEmergencyHalt:
    """Test the emergency halt across all operations."""

    def test_halt_blocks_everything(self, mechanism):
        """Test that every mutating operation fails with 401 while halted."""
        commit(mechanism, "V1", True)
        assert mechanism.set_emergency_stop(OWNER, True, height=120, reason="incident")
        assert mechanism.is_halted()

        before = mechanism.state.snapshot()
        results = [
            mechanism.execute(
                "commit",
                proposal_id=PROPOSAL,
                voter="V4",
                commitment_hash=commitment_digest(True, SALT, "V4"),
                height=120,
            ),
            mechanism.execute(
                "reveal",
                proposal_id=PROPOSAL,
                voter="V1",
                choice=True,
                salt=SALT,
                weight=10,
                height=160,
            ),
            mechanism.execute(
                "delegate", proposal_id=PROPOSAL, delegator="V2", delegate="V1", height=120
            ),
            mechanism.execute("tally", proposal_id=PROPOSAL, height=201),
        ]

        assert [r.value for r in results] == [401, 401, 401, 401]
        assert mechanism.state == before

    def test_resume_restores_operation(self, mechanism):
        """Test that only the owner can resume and operations then succeed."""
        mechanism.set_emergency_stop(OWNER, True, reason="incident")

        with pytest.raises(NotAuthorized):
            mechanism.set_emergency_stop("V1", False)
        assert mechanism.is_halted()

        mechanism.set_emergency_stop(OWNER, False)
        assert not mechanism.is_halted()
        assert mechanism.state.emergency_reason is None
        assert commit(mechanism, "V1", True) is True


class TestTransactions:
    """Test rollback and isolation of collaborator failures."""

    def test_failed_operation_rolls_back(self, mechanism):
        """Test that a write followed by an error is undone."""
        original_commit = mechanism.commit_store.commit

        def commit_then_fail(*args, **kwargs):
            original_commit(*args, **kwargs)
            raise RuntimeError("storage unavailable")

        mechanism.commit_store.commit = commit_then_fail

        with pytest.raises(RuntimeError):
            commit(mechanism, "V1", True)

        assert mechanism.get_commitment(PROPOSAL, "V1") is None
        assert mechanism.events.audit_trail.events == []

    def test_oracle_failure_propagates_without_writes(self, mechanism, oracle):
        """Test that a failing oracle leaves the reveal unapplied."""
        mechanism.delegate(PROPOSAL, "V2", "V1", 90)
        commit(mechanism, "V1", True)
        oracle.get_weight = Mock(side_effect=RuntimeError("oracle offline"))

        with pytest.raises(RuntimeError):
            mechanism.execute(
                "reveal",
                proposal_id=PROPOSAL,
                voter="V1",
                choice=True,
                salt=SALT,
                weight=10,
                height=160,
            )

        assert not mechanism.has_voted(PROPOSAL, "V1")
        assert not mechanism.has_voted(PROPOSAL, "V2")
        assert mechanism.get_commitment(PROPOSAL, "V1").revealed is False

    def test_failing_aggregator_does_not_undo_tally(self, registry, oracle, tracker):
        """Test that notification failures are logged and ignored."""
        aggregator = Mock()
        aggregator.on_tally.side_effect = RuntimeError("aggregator down")
        mechanism = VotingMechanism(
            VotingConfig(owner=OWNER), registry, oracle, aggregator=aggregator, tracker=tracker
        )
        commit(mechanism, "V5", True)
        commit(mechanism, "V4", True)
        commit(mechanism, "V1", True)
        reveal(mechanism, "V5", True, 50)
        reveal(mechanism, "V4", True, 40)
        reveal(mechanism, "V1", True, 10)

        result = mechanism.tally(PROPOSAL, 201)

        assert result.total_votes == 100
        assert mechanism.get_voting_status(PROPOSAL) is not None
        aggregator.on_tally.assert_called_once_with(PROPOSAL, result)
        assert len(tracker.changes) == 1

    def test_notifications_disabled(self, registry, oracle, aggregator, tracker):
        """Test that notifications can be switched off by configuration."""
        mechanism = VotingMechanism(
            VotingConfig(owner=OWNER, notify_collaborators=False),
            registry,
            oracle,
            aggregator=aggregator,
            tracker=tracker,
        )
        commit(mechanism, "V5", True)
        commit(mechanism, "V4", True)
        commit(mechanism, "V1", True)
        reveal(mechanism, "V5", True, 50)
        reveal(mechanism, "V4", True, 40)
        reveal(mechanism, "V1", True, 10)
        mechanism.tally(PROPOSAL, 201)

        assert aggregator.results == []
        assert tracker.changes == []


    def test_held_commitment_follows_live_state(self, mechanism):
        """Test that a commitment reference survives a rejected call."""
        commit(mechanism, "V1", True)
        held = mechanism.get_commitment(PROPOSAL, "V1")

        duplicate = mechanism.execute(
            "commit",
            proposal_id=PROPOSAL,
            voter="V1",
            commitment_hash=commitment_digest(True, SALT, "V1"),
            height=101,
        )
        assert duplicate.value == 406

        reveal(mechanism, "V1", True, 10)

        assert mechanism.get_commitment(PROPOSAL, "V1") is held
        assert held.revealed is True
        assert held.weight == 10

    def test_operations_do_not_copy_state(self, mechanism):
        """Test that successful and rejected operations never deep copy the state."""
        with patch("referendum.voting.core.copy.deepcopy", side_effect=AssertionError):
            mechanism.delegate(PROPOSAL, "V2", "V1", 90)
            commit(mechanism, "V1", True)
            commit(mechanism, "V5", True)
            commit(mechanism, "V4", True)
            assert mechanism.execute("commit", proposal_id=PROPOSAL, voter="V1",
                                     commitment_hash=b"\x00" * 32, height=100).value == 406
            reveal(mechanism, "V1", True, 10)
            reveal(mechanism, "V5", True, 50)
            reveal(mechanism, "V4", True, 40)
            assert mechanism.tally(PROPOSAL, 201).total_votes == 120


class TestAuditTrail:
    """Test events recorded by the coordinator."""

    def test_events_for_lifecycle(self, mechanism):
        """Test that each successful operation is recorded in order."""
        mechanism.delegate(PROPOSAL, "V2", "V1", 90)
        commit(mechanism, "V1", True)
        reveal(mechanism, "V1", True, 10)
        mechanism.execute("tally", proposal_id=PROPOSAL, height=201)

        trail = mechanism.events.audit_trail
        types = [event.event_type for event in trail.events]

        assert types == [
            EventType.DELEGATION_CREATED,
            EventType.VOTE_COMMITTED,
            EventType.VOTE_REVEALED,
            EventType.WEIGHT_ABSORBED,
        ]
        absorbed = trail.events[-1]
        assert absorbed.principal == "V2"
        assert absorbed.counterparty == "V1"
        assert absorbed.metadata == {"weight": 20}
        assert mechanism.events.verify_audit_integrity()

    def test_emergency_events(self, mechanism):
        """Test that halt and resume are recorded."""
        mechanism.set_emergency_stop(OWNER, True, height=5, reason="incident")
        mechanism.set_emergency_stop(OWNER, False, height=6)

        events = mechanism.events.audit_trail.get_principal_events(OWNER)
        assert [e.event_type for e in events] == [
            EventType.EMERGENCY_HALT,
            EventType.EMERGENCY_RESUME,
        ]
        assert events[0].metadata == {"reason": "incident"}

    def test_listener_failure_is_isolated(self, mechanism):
        """Test that a failing listener does not fail the operation."""
        mechanism.events.add_event_listener(
            EventType.VOTE_COMMITTED, Mock(side_effect=RuntimeError("listener"))
        )

        assert commit(mechanism, "V1", True) is True
        assert mechanism.get_commitment(PROPOSAL, "V1") is not None

    def test_audit_trail_disabled(self, registry, oracle):
        """Test that the audit trail can be switched off."""
        mechanism = VotingMechanism(
            VotingConfig(owner=OWNER, enable_audit_trail=False), registry, oracle
        )

        assert commit(mechanism, "V1", True) is True
        assert mechanism.events is None
