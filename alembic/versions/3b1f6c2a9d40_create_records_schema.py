"""Create users, profiles, appointments, medical records and audit tables

Revision ID: 3b1f6c2a9d40
Revises:
Create Date: 2024-06-14 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '3b1f6c2a9d40'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# Enum columns store member names
user_role = sa.Enum('PATIENT', 'DOCTOR', 'ADMIN', name='user_role')
appointment_status = sa.Enum('SCHEDULED', 'COMPLETED', 'CANCELLED', name='appointment_status')
prescription_status = sa.Enum('ACTIVE', 'COMPLETED', 'CANCELLED', name='prescription_status')
test_result_status = sa.Enum('PENDING', 'COMPLETED', 'CANCELLED', name='test_result_status')
test_type = sa.Enum('BLOOD_TEST', 'URINE_TEST', 'X_RAY', 'MRI', 'CT_SCAN', 'ECG', 'ULTRASOUND', 'OTHER',
                    name='test_type')
test_priority = sa.Enum('ROUTINE', 'URGENT', 'EMERGENCY', name='test_priority')


def _record_identity_columns():
    return [
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('record_id', sa.String(length=32), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    ]


def _index_record_identity(table: str) -> None:
    op.create_index(op.f(f'ix_{table}_id'), table, ['id'], unique=False)
    op.create_index(op.f(f'ix_{table}_record_id'), table, ['record_id'], unique=True)
    op.create_index(op.f(f'ix_{table}_created_at'), table, ['created_at'], unique=False)
    op.create_index(op.f(f'ix_{table}_patient_id'), table, ['patient_id'], unique=False)
    op.create_index(op.f(f'ix_{table}_doctor_id'), table, ['doctor_id'], unique=False)


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('full_name', sa.String(), nullable=False),
        sa.Column('password_hash', sa.String(), nullable=False),
        sa.Column('role', user_role, nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_users_id'), 'users', ['id'], unique=False)
    op.create_index(op.f('ix_users_email'), 'users', ['email'], unique=True)

    op.create_table(
        'patients',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('date_of_birth', sa.Date(), nullable=True),
        sa.Column('gender', sa.String(), nullable=True),
        sa.Column('phone', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id')
    )
    op.create_index(op.f('ix_patients_id'), 'patients', ['id'], unique=False)

    op.create_table(
        'doctors',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('specialization', sa.String(), nullable=False),
        sa.Column('phone', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id')
    )
    op.create_index(op.f('ix_doctors_id'), 'doctors', ['id'], unique=False)

    op.create_table(
        'appointments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('doctor_id', sa.Integer(), nullable=False),
        sa.Column('patient_id', sa.Integer(), nullable=False),
        sa.Column('slot_date', sa.Date(), nullable=False),
        sa.Column('slot_time', sa.String(), nullable=False),
        sa.Column('status', appointment_status, nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=True),
        sa.ForeignKeyConstraint(['doctor_id'], ['doctors.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['patient_id'], ['patients.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_appointments_id'), 'appointments', ['id'], unique=False)

    op.create_table(
        'prescriptions',
        *_record_identity_columns(),
        sa.Column('patient_id', sa.Integer(), nullable=False),
        sa.Column('patient_name', sa.String(), nullable=False),
        sa.Column('patient_age', sa.Integer(), nullable=True),
        sa.Column('patient_gender', sa.String(), nullable=True),
        sa.Column('doctor_id', sa.Integer(), nullable=False),
        sa.Column('doctor_name', sa.String(), nullable=False),
        sa.Column('doctor_specialization', sa.String(), nullable=False),
        sa.Column('appointment_id', sa.Integer(), nullable=True),
        sa.Column('diagnosis', sa.Text(), nullable=False),
        sa.Column('symptoms', sa.JSON(), nullable=False),
        sa.Column('medications', sa.JSON(), nullable=False),
        sa.Column('tests_recommended', sa.JSON(), nullable=False),
        sa.Column('instructions', sa.Text(), nullable=True),
        sa.Column('follow_up_date', sa.Date(), nullable=True),
        sa.Column('status', prescription_status, nullable=False),
        sa.ForeignKeyConstraint(['patient_id'], ['patients.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['doctor_id'], ['doctors.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['appointment_id'], ['appointments.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    _index_record_identity('prescriptions')

    op.create_table(
        'test_results',
        *_record_identity_columns(),
        sa.Column('patient_id', sa.Integer(), nullable=False),
        sa.Column('patient_name', sa.String(), nullable=False),
        sa.Column('doctor_id', sa.Integer(), nullable=True),
        sa.Column('doctor_name', sa.String(), nullable=True),
        sa.Column('test_name', sa.String(), nullable=False),
        sa.Column('test_type', test_type, nullable=False),
        sa.Column('test_date', sa.Date(), nullable=False),
        sa.Column('result_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('results', sa.JSON(), nullable=False),
        sa.Column('laboratory_name', sa.String(), nullable=True),
        sa.Column('laboratory_address', sa.String(), nullable=True),
        sa.Column('report_file', sa.String(), nullable=True),
        sa.Column('images', sa.JSON(), nullable=False),
        sa.Column('analysis', sa.Text(), nullable=True),
        sa.Column('comments', sa.Text(), nullable=True),
        sa.Column('recommendations', sa.Text(), nullable=True),
        sa.Column('priority', test_priority, nullable=False),
        sa.Column('status', test_result_status, nullable=False),
        sa.ForeignKeyConstraint(['patient_id'], ['patients.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['doctor_id'], ['doctors.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    _index_record_identity('test_results')

    op.create_table(
        'record_sequences',
        sa.Column('prefix', sa.String(length=8), nullable=False),
        sa.Column('day', sa.Date(), nullable=False),
        sa.Column('last_value', sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint('prefix', 'day')
    )

    op.create_table(
        'audit_logs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('action', sa.String(), nullable=False),
        sa.Column('details', sa.JSON(), nullable=True),
        sa.Column('ip_address', sa.String(), nullable=True),
        sa.Column('timestamp', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_audit_logs_id'), 'audit_logs', ['id'], unique=False)
    op.create_index(op.f('ix_audit_logs_action'), 'audit_logs', ['action'], unique=False)
    op.create_index(op.f('ix_audit_logs_timestamp'), 'audit_logs', ['timestamp'], unique=False)


def downgrade() -> None:
    op.drop_table('audit_logs')
    op.drop_table('record_sequences')
    op.drop_table('test_results')
    op.drop_table('prescriptions')
    op.drop_table('appointments')
    op.drop_table('doctors')
    op.drop_table('patients')
    op.drop_table('users')

    bind = op.get_bind()
    for enum_type in (test_priority, test_type, test_result_status, prescription_status,
                      appointment_status, user_role):
        enum_type.drop(bind, checkfirst=True)
