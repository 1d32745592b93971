"""create badge inventory, award and listing tables

Revision ID: 3c1d9a7e5b20
Revises:
Create Date: 2026-10-18 10:12:44.318201

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3c1d9a7e5b20'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

OPEN_LISTING_WHERE = "status IN ('active', 'payment_pending', 'awaiting_transfer')"


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table('award_contexts',
    sa.Column('id', sa.String(length=36), nullable=False),
    sa.Column('issuer', sa.String(), nullable=False),
    sa.Column('name', sa.String(), nullable=False),
    sa.Column('kind', sa.String(), nullable=False),
    sa.Column('status', sa.String(), nullable=False),
    sa.Column('closed_at', sa.DateTime(), nullable=True),
    sa.Column('created_at', sa.DateTime(), nullable=True),
    sa.CheckConstraint("status IN ('open', 'closed')", name='ck_award_context_status'),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_award_contexts_issuer'), 'award_contexts', ['issuer'], unique=False)

    op.create_table('inventory_batches',
    sa.Column('id', sa.String(length=36), nullable=False),
    sa.Column('issuer', sa.String(), nullable=False),
    sa.Column('template_ref', sa.String(), nullable=True),
    sa.Column('is_custom_minted', sa.Boolean(), nullable=False),
    sa.Column('custom_name', sa.String(), nullable=True),
    sa.Column('custom_description', sa.String(), nullable=True),
    sa.Column('custom_image_url', sa.String(), nullable=True),
    sa.Column('quantity', sa.Integer(), nullable=False),
    sa.Column('awarded_count', sa.Integer(), nullable=False),
    sa.Column('context_id', sa.String(length=36), nullable=True),
    sa.Column('chain_status', sa.String(), nullable=False),
    sa.Column('transaction_reference', sa.String(), nullable=True),
    sa.Column('mint_cost', sa.Numeric(precision=24, scale=9), nullable=True),
    sa.Column('created_at', sa.DateTime(), nullable=True),
    sa.Column('updated_at', sa.DateTime(), nullable=True),
    sa.CheckConstraint('quantity >= 1', name='ck_inventory_batch_quantity_positive'),
    sa.CheckConstraint('awarded_count >= 0', name='ck_inventory_batch_awarded_non_negative'),
    sa.CheckConstraint('awarded_count <= quantity', name='ck_inventory_batch_awarded_within_quantity'),
    sa.ForeignKeyConstraint(['context_id'], ['award_contexts.id'], ),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('transaction_reference')
    )
    op.create_index(op.f('ix_inventory_batches_issuer'), 'inventory_batches', ['issuer'], unique=False)
    op.create_index(op.f('ix_inventory_batches_context_id'), 'inventory_batches', ['context_id'], unique=False)

    op.create_table('token_records',
    sa.Column('id', sa.String(length=36), nullable=False),
    sa.Column('batch_id', sa.String(length=36), nullable=False),
    sa.Column('position', sa.Integer(), nullable=False),
    sa.Column('object_id', sa.String(), nullable=False),
    sa.Column('status', sa.String(), nullable=False),
    sa.Column('minted_transaction_reference', sa.String(), nullable=True),
    sa.Column('minted_at', sa.DateTime(), nullable=True),
    sa.Column('award_transaction_reference', sa.String(), nullable=True),
    sa.Column('awarded_at', sa.DateTime(), nullable=True),
    sa.Column('recipient', sa.String(), nullable=True),
    sa.Column('lock_id', sa.String(length=36), nullable=True),
    sa.Column('locked_at', sa.DateTime(), nullable=True),
    sa.CheckConstraint("status IN ('available', 'awarded')", name='ck_token_record_status'),
    sa.ForeignKeyConstraint(['batch_id'], ['inventory_batches.id'], ),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('batch_id', 'position', name='uix_token_record_batch_position'),
    sa.UniqueConstraint('object_id'),
    sa.UniqueConstraint('award_transaction_reference')
    )
    op.create_index(op.f('ix_token_records_batch_id'), 'token_records', ['batch_id'], unique=False)
    op.create_index(op.f('ix_token_records_status'), 'token_records', ['status'], unique=False)

    op.create_table('awards',
    sa.Column('id', sa.String(length=36), nullable=False),
    sa.Column('recipient', sa.String(), nullable=False),
    sa.Column('issuer', sa.String(), nullable=False),
    sa.Column('batch_id', sa.String(length=36), nullable=False),
    sa.Column('context_id', sa.String(length=36), nullable=True),
    sa.Column('token_id', sa.String(length=36), nullable=False),
    sa.Column('object_id', sa.String(), nullable=False),
    sa.Column('transaction_reference', sa.String(), nullable=False),
    sa.Column('note', sa.String(), nullable=True),
    sa.Column('awarded_at', sa.DateTime(), nullable=True),
    sa.ForeignKeyConstraint(['batch_id'], ['inventory_batches.id'], ),
    sa.ForeignKeyConstraint(['context_id'], ['award_contexts.id'], ),
    sa.ForeignKeyConstraint(['token_id'], ['token_records.id'], ),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('token_id'),
    sa.UniqueConstraint('transaction_reference')
    )
    op.create_index(op.f('ix_awards_recipient'), 'awards', ['recipient'], unique=False)
    op.create_index(op.f('ix_awards_issuer'), 'awards', ['issuer'], unique=False)
    op.create_index(op.f('ix_awards_batch_id'), 'awards', ['batch_id'], unique=False)
    op.create_index(op.f('ix_awards_context_id'), 'awards', ['context_id'], unique=False)

    op.create_table('ownership_holdings',
    sa.Column('id', sa.String(length=36), nullable=False),
    sa.Column('object_id', sa.String(), nullable=False),
    sa.Column('owner', sa.String(), nullable=False),
    sa.Column('acquired_at', sa.DateTime(), nullable=True),
    sa.Column('last_transfer_at', sa.DateTime(), nullable=True),
    sa.Column('award_id', sa.String(length=36), nullable=False),
    sa.Column('updated_at', sa.DateTime(), nullable=True),
    sa.ForeignKeyConstraint(['award_id'], ['awards.id'], ),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('award_id'),
    sa.UniqueConstraint('object_id')
    )
    op.create_index(op.f('ix_ownership_holdings_owner'), 'ownership_holdings', ['owner'], unique=False)

    op.create_table('listings',
    sa.Column('id', sa.String(length=36), nullable=False),
    sa.Column('holding_id', sa.String(length=36), nullable=False),
    sa.Column('seller', sa.String(), nullable=False),
    sa.Column('price', sa.Numeric(precision=24, scale=9), nullable=False),
    sa.Column('status', sa.String(), nullable=False),
    sa.Column('buyer', sa.String(), nullable=True),
    sa.Column('payment_transaction_reference', sa.String(), nullable=True),
    sa.Column('transfer_transaction_reference', sa.String(), nullable=True),
    sa.Column('reserved_at', sa.DateTime(), nullable=True),
    sa.Column('payment_submitted_at', sa.DateTime(), nullable=True),
    sa.Column('transfer_completed_at', sa.DateTime(), nullable=True),
    sa.Column('cancelled_at', sa.DateTime(), nullable=True),
    sa.Column('created_at', sa.DateTime(), nullable=True),
    sa.Column('updated_at', sa.DateTime(), nullable=True),
    sa.CheckConstraint('price > 0', name='ck_listing_price_positive'),
    sa.CheckConstraint(
        "status IN ('active', 'payment_pending', 'awaiting_transfer', 'completed', 'cancelled')",
        name='ck_listing_status',
    ),
    sa.ForeignKeyConstraint(['holding_id'], ['ownership_holdings.id'], ),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_listings_holding_id'), 'listings', ['holding_id'], unique=False)
    op.create_index(op.f('ix_listings_seller'), 'listings', ['seller'], unique=False)
    op.create_index(op.f('ix_listings_status'), 'listings', ['status'], unique=False)
    op.create_index(op.f('ix_listings_buyer'), 'listings', ['buyer'], unique=False)
    op.create_index(
        'uix_listing_open_per_holding', 'listings', ['holding_id'], unique=True,
        sqlite_where=sa.text(OPEN_LISTING_WHERE),
        postgresql_where=sa.text(OPEN_LISTING_WHERE),
    )

    op.create_table('depletion_triggers',
    sa.Column('id', sa.String(length=36), nullable=False),
    sa.Column('context_id', sa.String(length=36), nullable=False),
    sa.Column('batch_id', sa.String(length=36), nullable=False),
    sa.Column('issuer', sa.String(), nullable=False),
    sa.Column('status', sa.String(), nullable=False),
    sa.Column('replacement_batch_id', sa.String(length=36), nullable=True),
    sa.Column('created_at', sa.DateTime(), nullable=True),
    sa.Column('resolved_at', sa.DateTime(), nullable=True),
    sa.CheckConstraint(
        "status IN ('open', 'reassigned', 'finalized')", name='ck_depletion_trigger_status'
    ),
    sa.ForeignKeyConstraint(['context_id'], ['award_contexts.id'], ),
    sa.ForeignKeyConstraint(['batch_id'], ['inventory_batches.id'], ),
    sa.ForeignKeyConstraint(['replacement_batch_id'], ['inventory_batches.id'], ),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_depletion_triggers_context_id'), 'depletion_triggers', ['context_id'], unique=False)


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index(op.f('ix_depletion_triggers_context_id'), table_name='depletion_triggers')
    op.drop_table('depletion_triggers')
    op.drop_index('uix_listing_open_per_holding', table_name='listings')
    op.drop_index(op.f('ix_listings_buyer'), table_name='listings')
    op.drop_index(op.f('ix_listings_status'), table_name='listings')
    op.drop_index(op.f('ix_listings_seller'), table_name='listings')
    op.drop_index(op.f('ix_listings_holding_id'), table_name='listings')
    op.drop_table('listings')
    op.drop_index(op.f('ix_ownership_holdings_owner'), table_name='ownership_holdings')
    op.drop_table('ownership_holdings')
    op.drop_index(op.f('ix_awards_context_id'), table_name='awards')
    op.drop_index(op.f('ix_awards_batch_id'), table_name='awards')
    op.drop_index(op.f('ix_awards_issuer'), table_name='awards')
    op.drop_index(op.f('ix_awards_recipient'), table_name='awards')
    op.drop_table('awards')
    op.drop_index(op.f('ix_token_records_status'), table_name='token_records')
    op.drop_index(op.f('ix_token_records_batch_id'), table_name='token_records')
    op.drop_table('token_records')
    op.drop_index(op.f('ix_inventory_batches_context_id'), table_name='inventory_batches')
    op.drop_index(op.f('ix_inventory_batches_issuer'), table_name='inventory_batches')
    op.drop_table('inventory_batches')
    op.drop_index(op.f('ix_award_contexts_issuer'), table_name='award_contexts')
    op.drop_table('award_contexts')
