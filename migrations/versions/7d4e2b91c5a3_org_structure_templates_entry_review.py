"""departments, positions, shift templates, member assignments, time entry review

Revision ID: 7d4e2b91c5a3
Revises: 3f1a9c2e7b10
Create Date: 2026-10-16 12:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '7d4e2b91c5a3'
down_revision: Union[str, Sequence[str], None] = '3f1a9c2e7b10'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _org_fk():
    return sa.Column('organization_id', sa.Integer(),
                     sa.ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False)


def upgrade() -> None:
    op.create_table(
        'departments',
        sa.Column('id', sa.Integer(), primary_key=True),
        _org_fk(),
        sa.Column('name', sa.String(120), nullable=False),
        sa.Column('code', sa.String(40)),
        sa.Column('description', sa.Text()),
        sa.Column('parent_id', sa.Integer(), sa.ForeignKey('departments.id', ondelete='SET NULL')),
        sa.Column('manager_id', sa.Integer(),
                  sa.ForeignKey('profiles.id', ondelete='SET NULL', name='fk_departments_manager_id')),
        sa.Column('sort_order', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('organization_id', 'name', name='uq_department_org_name'),
    )
    op.create_index('ix_departments_organization_id', 'departments', ['organization_id'])

    op.create_table(
        'positions',
        sa.Column('id', sa.Integer(), primary_key=True),
        _org_fk(),
        sa.Column('name', sa.String(120), nullable=False),
        sa.Column('color', sa.String(20), nullable=False, server_default='blue'),
        sa.Column('description', sa.Text()),
        sa.Column('sort_order', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('organization_id', 'name', name='uq_position_org_name'),
    )
    op.create_index('ix_positions_organization_id', 'positions', ['organization_id'])

    with op.batch_alter_table('profiles') as batch:
        batch.drop_column('department')
        batch.add_column(sa.Column('department_id', sa.Integer(), nullable=True))
        batch.add_column(sa.Column('phone', sa.String(40), nullable=True))
        batch.add_column(sa.Column('preferences', sa.JSON(), nullable=False, server_default='{}'))
        batch.add_column(sa.Column('notification_settings', sa.JSON(), nullable=False, server_default='{}'))
        batch.add_column(sa.Column('allow_time_edit', sa.Boolean(), nullable=False, server_default=sa.true()))
        batch.create_foreign_key('fk_profiles_department_id', 'departments', ['department_id'], ['id'],
                                 ondelete='SET NULL')
        batch.create_index('ix_profiles_department_id', ['department_id'])

    with op.batch_alter_table('shifts') as batch:
        batch.drop_column('department')
        batch.drop_column('position')
        batch.add_column(sa.Column('department_id', sa.Integer(), nullable=True))
        batch.add_column(sa.Column('position_id', sa.Integer(), nullable=True))
        batch.create_foreign_key('fk_shifts_department_id', 'departments', ['department_id'], ['id'],
                                 ondelete='SET NULL')
        batch.create_foreign_key('fk_shifts_position_id', 'positions', ['position_id'], ['id'],
                                 ondelete='SET NULL')
        batch.create_index('ix_shifts_department_id', ['department_id'])

    with op.batch_alter_table('time_entries') as batch:
        batch.add_column(sa.Column('status', sa.String(20), nullable=False, server_default='pending'))
        batch.add_column(sa.Column('approved_by', sa.Integer(), nullable=True))
        batch.add_column(sa.Column('approved_at', sa.DateTime(), nullable=True))
        batch.add_column(sa.Column('updated_at', sa.DateTime(), nullable=True))
        batch.create_foreign_key('fk_time_entries_approved_by', 'profiles', ['approved_by'], ['id'],
                                 ondelete='SET NULL')

    op.create_table(
        'user_positions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('profiles.id', ondelete='CASCADE'), nullable=False),
        sa.Column('position_id', sa.Integer(), sa.ForeignKey('positions.id', ondelete='CASCADE'), nullable=False),
        sa.Column('is_primary', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('wage_rate', sa.Numeric(10, 2)),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint('user_id', 'position_id', name='uq_user_position'),
    )
    op.create_index('ix_user_positions_user_id', 'user_positions', ['user_id'])

    op.create_table(
        'user_locations',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('profiles.id', ondelete='CASCADE'), nullable=False),
        sa.Column('location_id', sa.Integer(), sa.ForeignKey('locations.id', ondelete='CASCADE'), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint('user_id', 'location_id', name='uq_user_location'),
    )
    op.create_index('ix_user_locations_user_id', 'user_locations', ['user_id'])

    op.create_table(
        'shift_templates',
        sa.Column('id', sa.Integer(), primary_key=True),
        _org_fk(),
        sa.Column('name', sa.String(120), nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('start_time', sa.String(5), nullable=False),
        sa.Column('end_time', sa.String(5), nullable=False),
        sa.Column('break_minutes', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('position_id', sa.Integer(), sa.ForeignKey('positions.id', ondelete='SET NULL')),
        sa.Column('color', sa.String(20), nullable=False, server_default='blue'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_shift_templates_organization_id', 'shift_templates', ['organization_id'])


def downgrade() -> None:
    op.drop_table('shift_templates')
    op.drop_table('user_locations')
    op.drop_table('user_positions')

    with op.batch_alter_table('time_entries') as batch:
        batch.drop_constraint('fk_time_entries_approved_by', type_='foreignkey')
        for col in ('updated_at', 'approved_at', 'approved_by', 'status'):
            batch.drop_column(col)

    with op.batch_alter_table('shifts') as batch:
        batch.drop_index('ix_shifts_department_id')
        batch.drop_constraint('fk_shifts_position_id', type_='foreignkey')
        batch.drop_constraint('fk_shifts_department_id', type_='foreignkey')
        batch.drop_column('position_id')
        batch.drop_column('department_id')
        batch.add_column(sa.Column('department', sa.String(120), nullable=True))
        batch.add_column(sa.Column('position', sa.String(120), nullable=True))

    with op.batch_alter_table('profiles') as batch:
        batch.drop_index('ix_profiles_department_id')
        batch.drop_constraint('fk_profiles_department_id', type_='foreignkey')
        for col in ('allow_time_edit', 'notification_settings', 'preferences', 'phone', 'department_id'):
            batch.drop_column(col)
        batch.add_column(sa.Column('department', sa.String(120), nullable=True))

    op.drop_table('positions')
    op.drop_table('departments')
