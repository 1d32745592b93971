"""Tests for InventoryService."""

from datetime import timedelta

import pytest

from models import InventoryBatch, TokenRecord, TokenStatus
from models.utils import utcnow
from schemas.inventory import BatchRegister
from services.exceptions import (
    ChainFailedError,
    InvalidRequestError,
    NotFoundError,
    PermissionDeniedError,
    StateConflictError,
    TokenConflictError,
)
from services.inventory_service import Exhausted, InventoryService, TokenReservation
from tests.fixtures import ISSUER, OTHER_ISSUER, RECIPIENT, create_batch, next_ref
from tests.fixtures.mocks import MockChainExecutor


def _register(**overrides) -> BatchRegister:
    data = {
        "issuer": ISSUER,
        "transaction_reference": "mint-abc",
        "quantity": 2,
        "minted_object_ids": ["0xobj1", "0xobj2"],
        "template_ref": "template-gold",
    }
    data.update(overrides)
    return BatchRegister(**data)


class TestRegisterBatch:
    """Tests for InventoryService.register_batch."""

    def test_creates_available_tokens(self, db):
        """Every minted object becomes an available token stamped with the tx."""
        batch = InventoryService.register_batch(db, _register())

        assert batch.quantity == 2
        assert batch.awarded_count == 0
        assert batch.available_count == 2
        assert [t.object_id for t in batch.tokens] == ["0xobj1", "0xobj2"]
        assert all(t.status == TokenStatus.AVAILABLE for t in batch.tokens)
        assert all(t.minted_transaction_reference == "mint-abc" for t in batch.tokens)

    def test_custom_mint_without_template(self, db):
        """A batch without a template is flagged as custom-minted."""
        batch = InventoryService.register_batch(
            db, _register(template_ref=None, custom_name="Hackathon Winner")
        )
        assert batch.is_custom_minted is True
        assert batch.custom_name == "Hackathon Winner"

    def test_extra_object_ids_ignored(self, db):
        """Only the first ``quantity`` object ids are tracked."""
        batch = InventoryService.register_batch(
            db, _register(quantity=1, minted_object_ids=["0xobj1", "0xobj2"])
        )
        assert [t.object_id for t in batch.tokens] == ["0xobj1"]

    def test_too_few_object_ids_rejected(self, db):
        """Fewer minted ids than the quantity is a validation error."""
        with pytest.raises(InvalidRequestError):
            InventoryService.register_batch(db, _register(quantity=3))
        assert db.query(InventoryBatch).count() == 0

    def test_duplicate_object_ids_rejected(self, db):
        """The same object cannot appear twice in one batch."""
        with pytest.raises(InvalidRequestError):
            InventoryService.register_batch(
                db, _register(minted_object_ids=["0xobj1", "0xobj1"])
            )

    def test_same_transaction_returns_existing_batch(self, db):
        """Re-registering the same purchase is idempotent."""
        first = InventoryService.register_batch(db, _register())
        db.commit()
        second = InventoryService.register_batch(db, _register())

        assert second.id == first.id
        assert db.query(InventoryBatch).count() == 1

    def test_transaction_reused_by_other_issuer_rejected(self, db):
        """A purchase reference belongs to exactly one issuer."""
        InventoryService.register_batch(db, _register())
        db.commit()

        with pytest.raises(StateConflictError) as exc_info:
            InventoryService.register_batch(db, _register(issuer=OTHER_ISSUER))
        assert exc_info.value.code == "transaction_reference_reused"

    def test_object_tracked_by_another_batch_rejected(self, db):
        """An object id can only be tracked by one batch."""
        InventoryService.register_batch(db, _register())
        db.commit()

        with pytest.raises(StateConflictError) as exc_info:
            InventoryService.register_batch(
                db, _register(transaction_reference="mint-other", minted_object_ids=["0xobj2", "0xobj3"])
            )
        assert exc_info.value.code == "object_already_tracked"

    def test_verifies_transaction_when_chain_given(self, db):
        """The purchase transaction is re-queried before registration."""
        chain = MockChainExecutor()
        chain.record_transfer("mint-abc", "0xobj1", ISSUER)

        batch = InventoryService.register_batch(db, _register(), chain=chain)

        assert chain.lookups == ["mint-abc"]
        assert batch.id is not None

    def test_unknown_transaction_rejected(self, db):
        """A reference the chain does not know fails before anything is written."""
        chain = MockChainExecutor()
        with pytest.raises(ChainFailedError) as exc_info:
            InventoryService.register_batch(db, _register(), chain=chain)
        assert exc_info.value.kind == "rejected"
        assert db.query(InventoryBatch).count() == 0


class TestReserveAvailableToken:
    """Tests for InventoryService.reserve_available_token."""

    def test_leases_lowest_position(self, db, batch):
        """The first available token is leased, and its status is unchanged."""
        reservation = InventoryService.reserve_available_token(db, batch.id)

        assert isinstance(reservation, TokenReservation)
        token = db.get(TokenRecord, reservation.token_id)
        db.refresh(token)
        assert token.position == 0
        assert token.status == TokenStatus.AVAILABLE
        assert token.lock_id == reservation.lock_id

    def test_skips_leased_tokens(self, db, batch):
        """A second reservation takes the next token."""
        first = InventoryService.reserve_available_token(db, batch.id)
        second = InventoryService.reserve_available_token(db, batch.id)
        assert first.token_id != second.token_id

    def test_exhausted_batch_returns_exhausted(self, db, single_batch):
        """A fully awarded batch yields Exhausted, not an error or a token."""
        token = single_batch.tokens[0]
        InventoryService.commit_award(db, single_batch.id, token.id, RECIPIENT, "award-1")
        db.commit()

        result = InventoryService.reserve_available_token(db, single_batch.id)

        assert result == Exhausted(batch_id=single_batch.id)

    def test_all_leased_is_conflict(self, db, single_batch):
        """Tokens remain but every one is held by an in-flight attempt."""
        InventoryService.reserve_available_token(db, single_batch.id)
        with pytest.raises(TokenConflictError):
            InventoryService.reserve_available_token(db, single_batch.id)

    def test_expired_lease_is_reclaimed(self, db, single_batch):
        """A lease older than the TTL no longer blocks the token."""
        old = InventoryService.reserve_available_token(
            db, single_batch.id, now=utcnow() - timedelta(hours=2)
        )
        fresh = InventoryService.reserve_available_token(db, single_batch.id)

        assert fresh.token_id == old.token_id
        assert fresh.lock_id != old.lock_id

    def test_unknown_batch(self, db):
        with pytest.raises(NotFoundError):
            InventoryService.reserve_available_token(db, "missing")


class TestReleaseToken:
    """Tests for InventoryService.release_token."""

    def test_release_returns_token_to_pool(self, db, single_batch):
        """A released lease lets the next caller reserve the token."""
        reservation = InventoryService.reserve_available_token(db, single_batch.id)
        assert InventoryService.release_token(db, reservation.token_id, reservation.lock_id)

        again = InventoryService.reserve_available_token(db, single_batch.id)
        assert again.token_id == reservation.token_id

    def test_release_with_wrong_lock_is_noop(self, db, single_batch):
        reservation = InventoryService.reserve_available_token(db, single_batch.id)
        assert InventoryService.release_token(db, reservation.token_id, "other-lock") is False


class TestCommitAward:
    """Tests for InventoryService.commit_award."""

    def test_round_trip(self, db, single_batch):
        """Reserve then commit marks the token awarded and bumps the count."""
        reservation = InventoryService.reserve_available_token(db, single_batch.id)
        token = InventoryService.commit_award(
            db, single_batch.id, reservation.token_id, RECIPIENT, "award-1",
            lock_id=reservation.lock_id,
        )
        db.commit()
        db.refresh(single_batch)

        assert token.status == TokenStatus.AWARDED
        assert token.recipient == RECIPIENT
        assert token.award_transaction_reference == "award-1"
        assert token.lock_id is None
        assert single_batch.awarded_count == 1
        assert InventoryService.check_invariants(db, single_batch) == []

    def test_awarded_token_cannot_be_awarded_again(self, db, single_batch):
        """Status never moves back from awarded, and a second commit conflicts."""
        token_id = single_batch.tokens[0].id
        InventoryService.commit_award(db, single_batch.id, token_id, RECIPIENT, "award-1")
        db.commit()

        with pytest.raises(TokenConflictError):
            InventoryService.commit_award(db, single_batch.id, token_id, RECIPIENT, "award-2")
        db.rollback()
        db.refresh(single_batch)
        assert single_batch.awarded_count == 1

    def test_stale_lease_rejected(self, db, single_batch):
        """A commit holding a superseded lease loses."""
        old = InventoryService.reserve_available_token(
            db, single_batch.id, now=utcnow() - timedelta(hours=2)
        )
        InventoryService.reserve_available_token(db, single_batch.id)

        with pytest.raises(TokenConflictError):
            InventoryService.commit_award(
                db, single_batch.id, old.token_id, RECIPIENT, "award-1", lock_id=old.lock_id
            )


class TestConcurrentCommit:
    """Two writers racing on the last token of a batch."""

    def test_exactly_one_commit_wins(self, file_session_factory):
        """The loser gets a conflict and awarded_count rises by exactly one."""
        setup = file_session_factory()
        batch = create_batch(setup, quantity=1)
        batch_id, token_id = batch.id, batch.tokens[0].id
        setup.close()

        first = file_session_factory()
        second = file_session_factory()
        try:
            # Both callers observed the token as available
            assert first.get(TokenRecord, token_id).status == TokenStatus.AVAILABLE
            assert second.get(TokenRecord, token_id).status == TokenStatus.AVAILABLE

            InventoryService.commit_award(first, batch_id, token_id, RECIPIENT, next_ref())
            first.commit()

            with pytest.raises(TokenConflictError):
                InventoryService.commit_award(second, batch_id, token_id, "0xeve", next_ref())
            second.rollback()
        finally:
            first.close()
            second.close()

        check = file_session_factory()
        try:
            batch = check.get(InventoryBatch, batch_id)
            assert batch.awarded_count == 1
            assert check.get(TokenRecord, token_id).recipient == RECIPIENT
            assert InventoryService.check_invariants(check, batch) == []
        finally:
            check.close()


class TestQueries:
    """Tests for list_batches, available_count and check_invariants."""

    def test_list_batches_filters(self, db, award_context):
        bound = create_batch(db, quantity=1, context=award_context)
        free = create_batch(db, quantity=2)
        create_batch(db, quantity=1, issuer=OTHER_ISSUER)

        all_mine = InventoryService.list_batches(db, ISSUER)
        assert {b.id for b in all_mine} == {bound.id, free.id}

        unassigned = InventoryService.list_batches(db, ISSUER, unassigned_only=True)
        assert [b.id for b in unassigned] == [free.id]

        in_context = InventoryService.list_batches(db, ISSUER, context_id=award_context.id)
        assert [b.id for b in in_context] == [bound.id]

    def test_available_only_excludes_exhausted(self, db, single_batch, batch):
        token_id = single_batch.tokens[0].id
        InventoryService.commit_award(db, single_batch.id, token_id, RECIPIENT, "award-1")
        db.commit()

        available = InventoryService.list_batches(db, ISSUER, available_only=True)
        assert [b.id for b in available] == [batch.id]
        assert InventoryService.available_count(db, single_batch.id) == 0

    def test_check_invariants_reports_drift(self, db, batch):
        """A count that disagrees with the token ledger is reported."""
        batch.awarded_count = 1
        db.flush()
        violations = InventoryService.check_invariants(db, batch)
        assert violations == ["awarded_count=1 but 0 tokens are awarded"]


class TestAssignBatch:
    """Tests for InventoryService.assign_batch."""

    def test_binds_unassigned_batch(self, db, batch, award_context):
        result = InventoryService.assign_batch(db, batch.id, award_context.id, ISSUER)
        assert result.context_id == award_context.id

    def test_already_assigned(self, db, bound_batch, award_context):
        with pytest.raises(StateConflictError) as exc_info:
            InventoryService.assign_batch(db, bound_batch.id, award_context.id, ISSUER)
        assert exc_info.value.code == "batch_assigned"

    def test_other_issuer_denied(self, db, batch, award_context):
        with pytest.raises(PermissionDeniedError):
            InventoryService.assign_batch(db, batch.id, award_context.id, OTHER_ISSUER)

    def test_exhausted_batch_rejected(self, db, single_batch, award_context):
        token_id = single_batch.tokens[0].id
        InventoryService.commit_award(db, single_batch.id, token_id, RECIPIENT, "award-1")
        db.commit()
        db.refresh(single_batch)

        with pytest.raises(StateConflictError) as exc_info:
            InventoryService.assign_batch(db, single_batch.id, award_context.id, ISSUER)
        assert exc_info.value.code == "batch_exhausted"
