"""Tests for DepletionService and the depletion event bus."""

import logging
from unittest.mock import MagicMock

import pytest

from models import AwardContext, DepletionTrigger, InventoryBatch, TriggerStatus
from services.depletion_events import BatchDepleted, DepletionBus
from services.depletion_service import DepletionService, make_depletion_handler
from services.exceptions import (
    InvalidRequestError,
    NotFoundError,
    PermissionDeniedError,
    StateConflictError,
)
from tests.fixtures import ISSUER, OTHER_ISSUER, award_next_token, create_batch


@pytest.fixture
def trigger(db, award_context, bound_batch) -> DepletionTrigger:
    """An open trigger for a context whose only batch just ran out."""
    award_next_token(db, bound_batch)
    trigger = DepletionService.on_batch_depleted(
        db, BatchDepleted(context_id=award_context.id, batch_id=bound_batch.id, issuer=ISSUER)
    )
    db.commit()
    return trigger


class TestOnBatchDepleted:
    """Tests for DepletionService.on_batch_depleted."""

    def test_opens_trigger(self, trigger, award_context, bound_batch):
        assert trigger.status == TriggerStatus.OPEN
        assert trigger.context_id == award_context.id
        assert trigger.batch_id == bound_batch.id

    def test_repeat_event_reuses_open_trigger(self, db, trigger, award_context, bound_batch):
        again = DepletionService.on_batch_depleted(
            db, BatchDepleted(context_id=award_context.id, batch_id=bound_batch.id, issuer=ISSUER)
        )
        assert again.id == trigger.id
        assert db.query(DepletionTrigger).count() == 1

    def test_closed_context_ignored(self, db, trigger, award_context, bound_batch):
        DepletionService.finalize(db, trigger.id, ISSUER, confirm=True)
        db.commit()

        result = DepletionService.on_batch_depleted(
            db, BatchDepleted(context_id=award_context.id, batch_id=bound_batch.id, issuer=ISSUER)
        )
        assert result is None


class TestGetOptions:
    """Tests for DepletionService.get_options."""

    def test_only_finalize_without_spare_batches(self, db, trigger):
        options = DepletionService.get_options(db, trigger.id)

        assert options.can_finalize is True
        assert options.can_reassign is False
        assert options.candidate_batches == []

    def test_reassign_offered_with_unassigned_stock(self, db, trigger):
        spare = create_batch(db, quantity=2)
        create_batch(db, quantity=2, issuer=OTHER_ISSUER)

        options = DepletionService.get_options(db, trigger.id)

        assert options.can_reassign is True
        assert [b.id for b in options.candidate_batches] == [spare.id]

    def test_resolved_trigger_offers_nothing(self, db, trigger):
        DepletionService.finalize(db, trigger.id, ISSUER, confirm=True)
        db.commit()

        options = DepletionService.get_options(db, trigger.id)
        assert options.can_finalize is False
        assert options.can_reassign is False

    def test_unknown_trigger(self, db):
        with pytest.raises(NotFoundError):
            DepletionService.get_options(db, "missing")


class TestReassign:
    """Tests for DepletionService.reassign."""

    def test_binds_replacement_batch(self, db, trigger, award_context):
        spare = create_batch(db, quantity=2)

        resolved = DepletionService.reassign(db, trigger.id, spare.id, ISSUER)
        db.commit()

        assert resolved.status == TriggerStatus.REASSIGNED
        assert resolved.replacement_batch_id == spare.id
        assert resolved.resolved_at is not None
        assert db.get(InventoryBatch, spare.id).context_id == award_context.id
        assert db.get(AwardContext, award_context.id).is_closed is False

    def test_cannot_resolve_twice(self, db, trigger):
        spare = create_batch(db, quantity=2)
        DepletionService.reassign(db, trigger.id, spare.id, ISSUER)
        db.commit()

        with pytest.raises(StateConflictError) as exc_info:
            DepletionService.finalize(db, trigger.id, ISSUER, confirm=True)
        assert exc_info.value.code == "trigger_resolved"

    def test_assigned_batch_rejected_and_trigger_stays_open(self, db, trigger, bound_batch):
        with pytest.raises(StateConflictError):
            DepletionService.reassign(db, trigger.id, bound_batch.id, ISSUER)
        db.rollback()

        db.refresh(trigger)
        assert trigger.status == TriggerStatus.OPEN

    def test_other_issuer_denied(self, db, trigger):
        spare = create_batch(db, quantity=2, issuer=OTHER_ISSUER)
        with pytest.raises(PermissionDeniedError):
            DepletionService.reassign(db, trigger.id, spare.id, OTHER_ISSUER)


class TestFinalize:
    """Tests for DepletionService.finalize."""

    def test_requires_confirmation(self, db, trigger, award_context):
        with pytest.raises(InvalidRequestError) as exc_info:
            DepletionService.finalize(db, trigger.id, ISSUER)
        assert exc_info.value.code == "confirmation_required"
        assert db.get(AwardContext, award_context.id).is_closed is False

    def test_closes_context(self, db, trigger, award_context):
        resolved = DepletionService.finalize(db, trigger.id, ISSUER, confirm=True)
        db.commit()

        assert resolved.status == TriggerStatus.FINALIZED
        context = db.get(AwardContext, award_context.id)
        db.refresh(context)
        assert context.is_closed is True
        assert context.closed_at is not None

    def test_list_open_triggers(self, db, trigger):
        assert [t.id for t in DepletionService.list_open_triggers(db, issuer=ISSUER)] == [trigger.id]
        DepletionService.finalize(db, trigger.id, ISSUER, confirm=True)
        db.commit()
        assert DepletionService.list_open_triggers(db) == []


class TestDepletionBus:
    """Tests for DepletionBus and the session-backed handler."""

    def test_publish_reaches_subscribers(self):
        bus = DepletionBus()
        received = []
        bus.subscribe(received.append)
        event = BatchDepleted(context_id="ctx", batch_id="batch", issuer=ISSUER)

        bus.publish(event)

        assert received == [event]

    def test_unsubscribe(self):
        bus = DepletionBus()
        received = []
        bus.subscribe(received.append)
        bus.unsubscribe(received.append)

        bus.publish(BatchDepleted(context_id="ctx", batch_id="batch", issuer=ISSUER))
        assert received == []

    def test_failing_handler_is_logged_not_raised(self, caplog):
        bus = DepletionBus()
        received = []
        bus.subscribe(MagicMock(side_effect=RuntimeError("boom")))
        bus.subscribe(received.append)

        with caplog.at_level(logging.ERROR, logger="services.depletion_events"):
            bus.publish(BatchDepleted(context_id="ctx", batch_id="batch", issuer=ISSUER))

        assert len(received) == 1
        assert "Depletion handler failed" in caplog.text

    def test_handler_commits_and_closes_session(self):
        session = MagicMock()
        handler = make_depletion_handler(lambda: session)

        with pytest.MonkeyPatch.context() as mp:
            mp.setattr(DepletionService, "on_batch_depleted", MagicMock())
            handler(BatchDepleted(context_id="ctx", batch_id="batch", issuer=ISSUER))

        session.commit.assert_called_once()
        session.close.assert_called_once()

    def test_handler_rolls_back_on_error(self):
        session = MagicMock()
        handler = make_depletion_handler(lambda: session)

        with pytest.MonkeyPatch.context() as mp:
            mp.setattr(DepletionService, "on_batch_depleted", MagicMock(side_effect=RuntimeError("db down")))
            with pytest.raises(RuntimeError):
                handler(BatchDepleted(context_id="ctx", batch_id="batch", issuer=ISSUER))

        session.rollback.assert_called_once()
        session.close.assert_called_once()
