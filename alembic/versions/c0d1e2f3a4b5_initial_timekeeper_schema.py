"""initial_timekeeper_schema

Revision ID: c0d1e2f3a4b5
Revises:
Create Date: 2026-10-19 09:00:00.000000

근태/정정/휴가 스키마 생성.
Create the organization, user, attendance, correction and leave tables.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID


# revision identifiers, used by Alembic.
revision: str = 'c0d1e2f3a4b5'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # organizations: 조직 및 근태 정책 (null 정책 필드는 서버 기본값 사용)
    # Organizations with their attendance policy; null policy fields use server defaults
    op.create_table(
        'organizations',
        sa.Column('id', UUID(as_uuid=True), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default=sa.text('true'), nullable=False),
        sa.Column('timezone', sa.String(50), nullable=True),
        sa.Column('workday_start_minutes', sa.Integer(), nullable=True),
        sa.Column('workday_end_minutes', sa.Integer(), nullable=True),
        sa.Column('required_daily_minutes', sa.Integer(), nullable=True),
        sa.Column('half_day_threshold_minutes', sa.Integer(), nullable=True),
        sa.Column('paid_lunch_minutes', sa.Integer(), nullable=True),
        sa.Column('lunch_window_start_minutes', sa.Integer(), nullable=True),
        sa.Column('lunch_window_end_minutes', sa.Integer(), nullable=True),
        sa.Column('allow_external_breaks', sa.Boolean(), server_default=sa.text('true'), nullable=False),
        sa.Column('grace_late_minutes', sa.Integer(), nullable=True),
        sa.Column('grace_early_minutes', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        'roles',
        sa.Column('id', UUID(as_uuid=True), primary_key=True),
        sa.Column('organization_id', UUID(as_uuid=True), sa.ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('level', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint('organization_id', 'name', name='uq_role_org_name'),
        sa.UniqueConstraint('organization_id', 'level', name='uq_role_org_level'),
    )

    # users: 담당 매니저(manager_id)는 자기 참조
    op.create_table(
        'users',
        sa.Column('id', UUID(as_uuid=True), primary_key=True),
        sa.Column('organization_id', UUID(as_uuid=True), sa.ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False),
        sa.Column('role_id', UUID(as_uuid=True), sa.ForeignKey('roles.id'), nullable=False),
        sa.Column('manager_id', UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('full_name', sa.String(255), nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default=sa.text('true'), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint('organization_id', 'email', name='uq_user_org_email'),
    )

    op.create_table(
        'teams',
        sa.Column('id', UUID(as_uuid=True), primary_key=True),
        sa.Column('organization_id', UUID(as_uuid=True), sa.ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('manager_id', UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint('organization_id', 'name', name='uq_team_org_name'),
    )
    op.create_table(
        'team_members',
        sa.Column('id', UUID(as_uuid=True), primary_key=True),
        sa.Column('team_id', UUID(as_uuid=True), sa.ForeignKey('teams.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.UniqueConstraint('team_id', 'user_id', name='uq_team_member'),
    )

    op.create_table(
        'holidays',
        sa.Column('id', UUID(as_uuid=True), primary_key=True),
        sa.Column('organization_id', UUID(as_uuid=True), sa.ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False),
        sa.Column('holiday_date', sa.Date(), nullable=False),
        sa.Column('label', sa.String(255), nullable=False),
        sa.Column('is_full_day', sa.Boolean(), server_default=sa.text('true'), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint('organization_id', 'holiday_date', name='uq_holiday_org_date'),
    )

    # attendances: 사용자별 UTC 근무일당 1건, version은 낙관적 잠금
    # One row per user per UTC work date; version backs optimistic locking
    op.create_table(
        'attendances',
        sa.Column('id', UUID(as_uuid=True), primary_key=True),
        sa.Column('organization_id', UUID(as_uuid=True), sa.ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('work_date', sa.Date(), nullable=False),
        sa.Column('clock_in', sa.DateTime(timezone=True), nullable=True),
        sa.Column('clock_out', sa.DateTime(timezone=True), nullable=True),
        sa.Column('net_minutes', sa.Integer(), server_default='0', nullable=False),
        sa.Column('late_minutes', sa.Integer(), server_default='0', nullable=False),
        sa.Column('early_leave_minutes', sa.Integer(), server_default='0', nullable=False),
        sa.Column('external_break_minutes', sa.Integer(), server_default='0', nullable=False),
        sa.Column('overtime_minutes', sa.Integer(), server_default='0', nullable=False),
        sa.Column('status', sa.String(20), nullable=True),
        sa.Column('version', sa.Integer(), server_default='1', nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint('organization_id', 'user_id', 'work_date', name='uq_attendance_org_user_date'),
    )

    op.create_table(
        'attendance_breaks',
        sa.Column('id', UUID(as_uuid=True), primary_key=True),
        sa.Column('attendance_id', UUID(as_uuid=True), sa.ForeignKey('attendances.id', ondelete='CASCADE'), nullable=False),
        sa.Column('type', sa.String(20), nullable=False),
        sa.Column('start_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('end_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    # 유형별 열린 휴게는 최대 1개: At most one open break per type per day
    op.create_index(
        'uq_attendance_break_open_per_type',
        'attendance_breaks',
        ['attendance_id', 'type'],
        unique=True,
        postgresql_where=sa.text('end_at IS NULL'),
    )

    op.create_table(
        'correction_requests',
        sa.Column('id', UUID(as_uuid=True), primary_key=True),
        sa.Column('organization_id', UUID(as_uuid=True), sa.ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('work_date', sa.Date(), nullable=False),
        sa.Column('kind', sa.String(20), nullable=False),
        sa.Column('proposed_clock_in', sa.DateTime(timezone=True), nullable=True),
        sa.Column('proposed_clock_out', sa.DateTime(timezone=True), nullable=True),
        sa.Column('proposed_break_start', sa.DateTime(timezone=True), nullable=True),
        sa.Column('proposed_break_end', sa.DateTime(timezone=True), nullable=True),
        sa.Column('note', sa.Text(), nullable=True),
        sa.Column('status', sa.String(20), server_default='PENDING', nullable=False),
        sa.Column('manager_id', UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('admin_id', UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('decision_note', sa.Text(), nullable=True),
        sa.Column('decided_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('applied_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('applied_break_id', UUID(as_uuid=True), sa.ForeignKey('attendance_breaks.id', ondelete='SET NULL'), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_correction_org_status', 'correction_requests', ['organization_id', 'status'])
    op.create_index('ix_correction_user_date', 'correction_requests', ['user_id', 'work_date'])

    op.create_table(
        'leave_types',
        sa.Column('id', UUID(as_uuid=True), primary_key=True),
        sa.Column('organization_id', UUID(as_uuid=True), sa.ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False),
        sa.Column('code', sa.String(50), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('is_paid', sa.Boolean(), server_default=sa.text('true'), nullable=False),
        sa.Column('default_annual_quota', sa.Float(), nullable=True),
        sa.Column('is_active', sa.Boolean(), server_default=sa.text('true'), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint('organization_id', 'code', name='uq_leave_type_org_code'),
    )

    op.create_table(
        'leave_requests',
        sa.Column('id', UUID(as_uuid=True), primary_key=True),
        sa.Column('organization_id', UUID(as_uuid=True), sa.ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('leave_type_id', UUID(as_uuid=True), sa.ForeignKey('leave_types.id', ondelete='CASCADE'), nullable=False),
        sa.Column('start_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('end_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('is_half_day', sa.Boolean(), server_default=sa.text('false'), nullable=False),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('status', sa.String(20), server_default='PENDING', nullable=False),
        sa.Column('decided_by', UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('decision_note', sa.Text(), nullable=True),
        sa.Column('decided_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_leave_request_user_type', 'leave_requests', ['user_id', 'leave_type_id'])
    op.create_index('ix_leave_request_org_status', 'leave_requests', ['organization_id', 'status'])

    # leave_balances: used는 승인 시마다 재계산 (recomputed on every approval)
    op.create_table(
        'leave_balances',
        sa.Column('id', UUID(as_uuid=True), primary_key=True),
        sa.Column('organization_id', UUID(as_uuid=True), sa.ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('leave_type_id', UUID(as_uuid=True), sa.ForeignKey('leave_types.id', ondelete='CASCADE'), nullable=False),
        sa.Column('year', sa.Integer(), nullable=False),
        sa.Column('balance', sa.Float(), nullable=True),
        sa.Column('used', sa.Float(), server_default='0', nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint('organization_id', 'user_id', 'leave_type_id', 'year', name='uq_leave_balance_key'),
    )


def downgrade() -> None:
    op.drop_table('leave_balances')
    op.drop_index('ix_leave_request_org_status', table_name='leave_requests')
    op.drop_index('ix_leave_request_user_type', table_name='leave_requests')
    op.drop_table('leave_requests')
    op.drop_table('leave_types')
    op.drop_index('ix_correction_user_date', table_name='correction_requests')
    op.drop_index('ix_correction_org_status', table_name='correction_requests')
    op.drop_table('correction_requests')
    op.drop_index('uq_attendance_break_open_per_type', table_name='attendance_breaks')
    op.drop_table('attendance_breaks')
    op.drop_table('attendances')
    op.drop_table('holidays')
    op.drop_table('team_members')
    op.drop_table('teams')
    op.drop_table('users')
    op.drop_table('roles')
    op.drop_table('organizations')
