"""initial workforce schema

Revision ID: 3f1a9c2e7b10
Revises:
Create Date: 2026-10-16 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f1a9c2e7b10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _stamps():
    return [
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    ]


def _org_fk():
    return sa.Column('organization_id', sa.Integer(),
                     sa.ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False)


def _profile_fk(name, nullable=True, ondelete='SET NULL'):
    return sa.Column(name, sa.Integer(), sa.ForeignKey('profiles.id', ondelete=ondelete), nullable=nullable)


def upgrade() -> None:
    op.create_table(
        'organizations',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('slug', sa.String(120), nullable=False, unique=True),
        sa.Column('timezone', sa.String(64), nullable=False, server_default='UTC'),
        sa.Column('settings', sa.JSON(), nullable=False),
        *_stamps(),
    )

    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('password_hash', sa.String(255), nullable=False),
        sa.Column('full_name', sa.String(255), nullable=False),
        sa.Column('status', sa.String(20), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'locations',
        sa.Column('id', sa.Integer(), primary_key=True),
        _org_fk(),
        sa.Column('name', sa.String(120), nullable=False),
        sa.Column('address', sa.String(255)),
        sa.Column('latitude', sa.Float()),
        sa.Column('longitude', sa.Float()),
        sa.Column('radius_meters', sa.Integer()),
        sa.Column('geofence_enabled', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('allow_clock_outside', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_stamps(),
        sa.UniqueConstraint('organization_id', 'name', name='uq_location_org_name'),
    )
    op.create_index('ix_locations_organization_id', 'locations', ['organization_id'])

    op.create_table(
        'profiles',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        _org_fk(),
        sa.Column('role', sa.String(20), nullable=False, server_default='employee'),
        sa.Column('status', sa.String(20), nullable=False, server_default='active'),
        sa.Column('first_name', sa.String(120)),
        sa.Column('last_name', sa.String(120)),
        sa.Column('display_name', sa.String(255)),
        sa.Column('department', sa.String(120)),
        sa.Column('hourly_rate', sa.Numeric(10, 2)),
        sa.Column('auto_clock_out_enabled', sa.Boolean()),
        sa.Column('auto_clock_out_time', sa.String(5)),
        *_stamps(),
        sa.UniqueConstraint('user_id', 'organization_id', name='uq_profile_user_org'),
    )
    op.create_index('ix_profiles_user_id', 'profiles', ['user_id'])
    op.create_index('ix_profiles_organization_id', 'profiles', ['organization_id'])

    op.create_table(
        'shifts',
        sa.Column('id', sa.Integer(), primary_key=True),
        _org_fk(),
        _profile_fk('user_id'),
        sa.Column('location_id', sa.Integer(), sa.ForeignKey('locations.id', ondelete='SET NULL')),
        sa.Column('department', sa.String(120)),
        sa.Column('position', sa.String(120)),
        sa.Column('start_time', sa.DateTime(), nullable=False),
        sa.Column('end_time', sa.DateTime(), nullable=False),
        sa.Column('break_minutes', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('notes', sa.Text()),
        sa.Column('color', sa.String(20)),
        sa.Column('status', sa.String(20), nullable=False, server_default='scheduled'),
        sa.Column('is_published', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('published_at', sa.DateTime()),
        sa.Column('repeat_parent_id', sa.Integer(), sa.ForeignKey('shifts.id', ondelete='SET NULL')),
        _profile_fk('created_by'),
        *_stamps(),
    )
    op.create_index('ix_shifts_organization_id', 'shifts', ['organization_id'])
    op.create_index('ix_shifts_user_id', 'shifts', ['user_id'])
    op.create_index('ix_shifts_start_time', 'shifts', ['start_time'])
    op.create_index('ix_shifts_repeat_parent_id', 'shifts', ['repeat_parent_id'])

    op.create_table(
        'time_entries',
        sa.Column('id', sa.Integer(), primary_key=True),
        _org_fk(),
        _profile_fk('user_id', nullable=False, ondelete='CASCADE'),
        sa.Column('shift_id', sa.Integer(), sa.ForeignKey('shifts.id', ondelete='SET NULL')),
        sa.Column('location_id', sa.Integer(), sa.ForeignKey('locations.id', ondelete='SET NULL')),
        sa.Column('entry_type', sa.String(20), nullable=False),
        sa.Column('timestamp', sa.DateTime(), nullable=False),
        sa.Column('latitude', sa.Float()),
        sa.Column('longitude', sa.Float()),
        sa.Column('is_inside_geofence', sa.Boolean()),
        sa.Column('notes', sa.Text()),
        sa.Column('is_manual', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_auto', sa.Boolean(), nullable=False, server_default=sa.false()),
        _profile_fk('created_by'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_time_entries_organization_id', 'time_entries', ['organization_id'])
    op.create_index('ix_time_entries_user_id', 'time_entries', ['user_id'])
    op.create_index('ix_time_entries_shift_id', 'time_entries', ['shift_id'])
    op.create_index('ix_time_entries_timestamp', 'time_entries', ['timestamp'])
    op.create_index('ix_time_entries_user_ts', 'time_entries', ['user_id', 'timestamp'])

    op.create_table(
        'shift_swaps',
        sa.Column('id', sa.Integer(), primary_key=True),
        _org_fk(),
        _profile_fk('requester_id', nullable=False, ondelete='CASCADE'),
        sa.Column('requester_shift_id', sa.Integer(), sa.ForeignKey('shifts.id', ondelete='CASCADE'), nullable=False),
        _profile_fk('target_id'),
        sa.Column('target_shift_id', sa.Integer(), sa.ForeignKey('shifts.id', ondelete='SET NULL')),
        sa.Column('reason', sa.Text()),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        _profile_fk('reviewed_by'),
        sa.Column('reviewed_at', sa.DateTime()),
        sa.Column('review_comment', sa.Text()),
        sa.Column('applied_at', sa.DateTime()),
        *_stamps(),
    )
    op.create_index('ix_shift_swaps_organization_id', 'shift_swaps', ['organization_id'])
    op.create_index('ix_shift_swaps_requester_id', 'shift_swaps', ['requester_id'])
    op.create_index('ix_shift_swaps_target_id', 'shift_swaps', ['target_id'])

    op.create_table(
        'timesheets',
        sa.Column('id', sa.Integer(), primary_key=True),
        _org_fk(),
        _profile_fk('user_id', nullable=False, ondelete='CASCADE'),
        sa.Column('period_start', sa.Date(), nullable=False),
        sa.Column('period_end', sa.Date(), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='draft'),
        sa.Column('total_hours', sa.Float()),
        sa.Column('break_hours', sa.Float()),
        sa.Column('overtime_hours', sa.Float()),
        sa.Column('notes', sa.Text()),
        sa.Column('submitted_at', sa.DateTime()),
        _profile_fk('reviewed_by'),
        sa.Column('reviewed_at', sa.DateTime()),
        sa.Column('review_comment', sa.Text()),
        *_stamps(),
        sa.UniqueConstraint('user_id', 'period_start', 'period_end', name='uq_timesheet_user_period'),
    )
    op.create_index('ix_timesheets_organization_id', 'timesheets', ['organization_id'])
    op.create_index('ix_timesheets_user_id', 'timesheets', ['user_id'])

    op.create_table(
        'pto_policies',
        sa.Column('id', sa.Integer(), primary_key=True),
        _org_fk(),
        sa.Column('name', sa.String(120), nullable=False),
        sa.Column('pto_type', sa.String(40), nullable=False),
        sa.Column('annual_allowance', sa.Float(), nullable=False, server_default='0'),
        sa.Column('accrual_rate', sa.Float()),
        sa.Column('max_carryover', sa.Float(), nullable=False, server_default='0'),
        sa.Column('min_notice_days', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('requires_approval', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_stamps(),
    )
    op.create_index('ix_pto_policies_organization_id', 'pto_policies', ['organization_id'])

    op.create_table(
        'pto_balances',
        sa.Column('id', sa.Integer(), primary_key=True),
        _org_fk(),
        _profile_fk('user_id', nullable=False, ondelete='CASCADE'),
        sa.Column('policy_id', sa.Integer(), sa.ForeignKey('pto_policies.id', ondelete='SET NULL')),
        sa.Column('pto_type', sa.String(40), nullable=False),
        sa.Column('year', sa.Integer(), nullable=False),
        sa.Column('entitled_days', sa.Float(), nullable=False, server_default='0'),
        sa.Column('used_days', sa.Float(), nullable=False, server_default='0'),
        sa.Column('pending_days', sa.Float(), nullable=False, server_default='0'),
        sa.Column('carryover_days', sa.Float(), nullable=False, server_default='0'),
        sa.Column('adjustment_days', sa.Float(), nullable=False, server_default='0'),
        *_stamps(),
        sa.UniqueConstraint('user_id', 'pto_type', 'policy_id', 'year', name='uq_pto_balance_user_type_policy_year'),
    )
    op.create_index('ix_pto_balances_organization_id', 'pto_balances', ['organization_id'])
    op.create_index('ix_pto_balances_user_id', 'pto_balances', ['user_id'])

    op.create_table(
        'pto_requests',
        sa.Column('id', sa.Integer(), primary_key=True),
        _org_fk(),
        _profile_fk('user_id', nullable=False, ondelete='CASCADE'),
        sa.Column('pto_type', sa.String(40), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('total_days', sa.Float(), nullable=False),
        sa.Column('reason', sa.Text()),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        _profile_fk('reviewed_by'),
        sa.Column('reviewed_at', sa.DateTime()),
        sa.Column('review_comment', sa.Text()),
        *_stamps(),
    )
    op.create_index('ix_pto_requests_organization_id', 'pto_requests', ['organization_id'])
    op.create_index('ix_pto_requests_user_id', 'pto_requests', ['user_id'])

    op.create_table(
        'notifications',
        sa.Column('id', sa.Integer(), primary_key=True),
        _org_fk(),
        _profile_fk('user_id', nullable=False, ondelete='CASCADE'),
        sa.Column('type', sa.String(40), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('body', sa.Text()),
        sa.Column('data', sa.JSON()),
        sa.Column('is_read', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('read_at', sa.DateTime()),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_notifications_organization_id', 'notifications', ['organization_id'])
    op.create_index('ix_notifications_user_id', 'notifications', ['user_id'])
    op.create_index('ix_notifications_created_at', 'notifications', ['created_at'])

    op.create_table(
        'chat_rooms',
        sa.Column('id', sa.Integer(), primary_key=True),
        _org_fk(),
        sa.Column('type', sa.String(20), nullable=False),
        sa.Column('name', sa.String(255)),
        sa.Column('description', sa.Text()),
        sa.Column('is_private', sa.Boolean(), nullable=False, server_default=sa.false()),
        _profile_fk('created_by'),
        *_stamps(),
    )
    op.create_index('ix_chat_rooms_organization_id', 'chat_rooms', ['organization_id'])

    op.create_table(
        'chat_participants',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('room_id', sa.Integer(), sa.ForeignKey('chat_rooms.id', ondelete='CASCADE'), nullable=False),
        _profile_fk('user_id', nullable=False, ondelete='CASCADE'),
        sa.Column('role', sa.String(20), nullable=False, server_default='member'),
        sa.Column('joined_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('last_read_at', sa.DateTime()),
        sa.Column('is_muted', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.UniqueConstraint('room_id', 'user_id', name='uq_chat_participant_room_user'),
    )
    op.create_index('ix_chat_participants_room_id', 'chat_participants', ['room_id'])
    op.create_index('ix_chat_participants_user_id', 'chat_participants', ['user_id'])

    op.create_table(
        'chat_messages',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('room_id', sa.Integer(), sa.ForeignKey('chat_rooms.id', ondelete='CASCADE'), nullable=False),
        _profile_fk('sender_id'),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('type', sa.String(20), nullable=False, server_default='text'),
        sa.Column('reply_to_id', sa.Integer(), sa.ForeignKey('chat_messages.id', ondelete='SET NULL')),
        sa.Column('metadata', sa.JSON()),
        sa.Column('is_deleted', sa.Boolean(), nullable=False, server_default=sa.false()),
        *_stamps(),
    )
    op.create_index('ix_chat_messages_room_id', 'chat_messages', ['room_id'])
    op.create_index('ix_chat_messages_created_at', 'chat_messages', ['created_at'])

    op.create_table(
        'checklists',
        sa.Column('id', sa.Integer(), primary_key=True),
        _org_fk(),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('items', sa.JSON(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        _profile_fk('created_by'),
        *_stamps(),
    )
    op.create_index('ix_checklists_organization_id', 'checklists', ['organization_id'])

    op.create_table(
        'checklist_assignments',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('checklist_id', sa.Integer(), sa.ForeignKey('checklists.id', ondelete='CASCADE'), nullable=False),
        _profile_fk('user_id', nullable=False, ondelete='CASCADE'),
        sa.Column('due_date', sa.Date()),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('completed_items', sa.JSON(), nullable=False),
        sa.Column('completed_at', sa.DateTime()),
        _profile_fk('assigned_by'),
        *_stamps(),
    )
    op.create_index('ix_checklist_assignments_checklist_id', 'checklist_assignments', ['checklist_id'])
    op.create_index('ix_checklist_assignments_user_id', 'checklist_assignments', ['user_id'])

    op.create_table(
        'form_templates',
        sa.Column('id', sa.Integer(), primary_key=True),
        _org_fk(),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('fields', sa.JSON(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        _profile_fk('created_by'),
        *_stamps(),
    )
    op.create_index('ix_form_templates_organization_id', 'form_templates', ['organization_id'])

    op.create_table(
        'form_submissions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('template_id', sa.Integer(), sa.ForeignKey('form_templates.id', ondelete='CASCADE'), nullable=False),
        _profile_fk('user_id', nullable=False, ondelete='CASCADE'),
        sa.Column('data', sa.JSON(), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='submitted'),
        _profile_fk('reviewed_by'),
        sa.Column('reviewed_at', sa.DateTime()),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_form_submissions_template_id', 'form_submissions', ['template_id'])
    op.create_index('ix_form_submissions_user_id', 'form_submissions', ['user_id'])

    op.create_table(
        'audit_logs',
        sa.Column('id', sa.Integer(), primary_key=True),
        _org_fk(),
        _profile_fk('user_id'),
        sa.Column('action', sa.String(80), nullable=False),
        sa.Column('table_name', sa.String(80), nullable=False),
        sa.Column('record_id', sa.Integer()),
        sa.Column('old_data', sa.JSON()),
        sa.Column('new_data', sa.JSON()),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_audit_logs_organization_id', 'audit_logs', ['organization_id'])
    op.create_index('ix_audit_logs_created_at', 'audit_logs', ['created_at'])


def downgrade() -> None:
    for table in (
        'audit_logs', 'form_submissions', 'form_templates', 'checklist_assignments', 'checklists',
        'chat_messages', 'chat_participants', 'chat_rooms', 'notifications', 'pto_requests',
        'pto_balances', 'pto_policies', 'timesheets', 'shift_swaps', 'time_entries', 'shifts',
        'profiles', 'locations', 'users', 'organizations',
    ):
        op.drop_table(table)
