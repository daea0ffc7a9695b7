"""Add IRL gathering push config, candidate and notification tables

Revision ID: add_irl_gathering_push
Revises:
Create Date: 2026-10-19

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'add_irl_gathering_push'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'irl_gathering_push_configs',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('enabled', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('min_attendees_per_event', sa.Integer(), nullable=False, server_default='5'),
        sa.Column('upcoming_window_days', sa.Integer(), nullable=False, server_default='7'),
        sa.Column('reminder_days_before', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('total_events_threshold', sa.Integer(), nullable=False, server_default='5'),
        sa.Column('qualified_events_threshold', sa.Integer(), nullable=False, server_default='2'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('updated_by', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(
        'uq_irl_gathering_push_configs_single_active',
        'irl_gathering_push_configs',
        ['is_active'],
        unique=True,
        postgresql_where=sa.text('is_active'),
    )

    op.create_table(
        'irl_gathering_push_candidates',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('rule_kind', sa.Enum('UPCOMING', 'REMINDER', name='irlgatheringpushrulekind'), nullable=False),
        sa.Column('gathering_uid', sa.String(), nullable=False),
        sa.Column('event_uid', sa.String(), nullable=False),
        sa.Column('event_start_date', sa.DateTime(), nullable=False),
        sa.Column('event_end_date', sa.DateTime(), nullable=False),
        sa.Column('attendee_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('processed_at', sa.DateTime(), nullable=True),
        sa.Column('is_suppressed', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('rule_kind', 'event_uid', name='uq_irl_push_candidates_rule_kind_event')
    )
    op.create_index('ix_irl_gathering_push_candidates_event_uid', 'irl_gathering_push_candidates', ['event_uid'])
    op.create_index('ix_irl_push_candidates_pending', 'irl_gathering_push_candidates', ['processed_at', 'is_suppressed'])
    op.create_index('ix_irl_push_candidates_group', 'irl_gathering_push_candidates', ['rule_kind', 'gathering_uid'])

    op.create_table(
        'push_notifications',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('category', sa.String(), nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('metadata', sa.JSON(), nullable=True),
        sa.Column('recipient_uid', sa.String(), nullable=True),
        sa.Column('is_public', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_read', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_sent', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('sent_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_push_notifications_category', 'push_notifications', ['category'])
    op.create_index('ix_push_notifications_recipient_uid', 'push_notifications', ['recipient_uid'])

    op.create_table(
        'push_notification_read_statuses',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('notification_id', sa.String(), nullable=False),
        sa.Column('member_uid', sa.String(), nullable=False),
        sa.Column('read_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['notification_id'], ['push_notifications.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('notification_id', 'member_uid', name='uq_push_read_status_notification_member')
    )
    op.create_index(
        'ix_push_notification_read_statuses_notification_id',
        'push_notification_read_statuses',
        ['notification_id'],
    )


def downgrade() -> None:
    op.drop_index('ix_push_notification_read_statuses_notification_id', table_name='push_notification_read_statuses')
    op.drop_table('push_notification_read_statuses')
    op.drop_index('ix_push_notifications_recipient_uid', table_name='push_notifications')
    op.drop_index('ix_push_notifications_category', table_name='push_notifications')
    op.drop_table('push_notifications')
    op.drop_index('ix_irl_push_candidates_group', table_name='irl_gathering_push_candidates')
    op.drop_index('ix_irl_push_candidates_pending', table_name='irl_gathering_push_candidates')
    op.drop_index('ix_irl_gathering_push_candidates_event_uid', table_name='irl_gathering_push_candidates')
    op.drop_table('irl_gathering_push_candidates')
    op.drop_index('uq_irl_gathering_push_configs_single_active', table_name='irl_gathering_push_configs')
    op.drop_table('irl_gathering_push_configs')
    # Drop the enum type
    op.execute('DROP TYPE IF EXISTS irlgatheringpushrulekind')
