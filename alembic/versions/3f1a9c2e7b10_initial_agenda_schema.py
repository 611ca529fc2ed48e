"""initial_agenda_schema

Revision ID: 3f1a9c2e7b10
Revises:
Create Date: 2026-10-18 09:12:40.511203

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f1a9c2e7b10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # 1. Usuarios referenciados por la agenda (doctores y pacientes)
    op.create_table('users',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('role', sa.Enum('ADMIN', 'DOCTOR', 'PATIENT', name='userrole'), nullable=False),
        sa.Column('first_name', sa.String(length=100), nullable=False),
        sa.Column('last_name', sa.String(length=100), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_users_email'), 'users', ['email'], unique=True)

    # 2. Ventanas de disponibilidad
    op.create_table('availability_windows',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('doctor_id', sa.UUID(), nullable=False),
        sa.Column('kind', sa.Enum('RECURRING', 'SPECIFIC_DATE', name='windowkind'), nullable=False),
        sa.Column('day_of_week', sa.SmallInteger(), nullable=True, comment='0=Lunes, 1=Martes, 2=Miércoles, 3=Jueves, 4=Viernes, 5=Sábado, 6=Domingo'),
        sa.Column('specific_date', sa.Date(), nullable=True),
        sa.Column('start_time', sa.Time(), nullable=False),
        sa.Column('end_time', sa.Time(), nullable=False),
        sa.Column('slot_duration_minutes', sa.Integer(), nullable=False, comment='Duración de cada slot de cita en minutos'),
        sa.Column('is_available', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.CheckConstraint(
            "(kind = 'RECURRING' AND day_of_week IS NOT NULL AND specific_date IS NULL)"
            " OR (kind = 'SPECIFIC_DATE' AND specific_date IS NOT NULL AND day_of_week IS NULL)",
            name='ck_availability_kind_fields',
        ),
        sa.CheckConstraint('start_time < end_time', name='ck_availability_time_range'),
        sa.CheckConstraint('slot_duration_minutes > 0', name='ck_availability_slot_positive'),
        sa.ForeignKeyConstraint(['doctor_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_availability_doctor_day', 'availability_windows', ['doctor_id', 'day_of_week'], unique=False)
    op.create_index('idx_availability_doctor_date', 'availability_windows', ['doctor_id', 'specific_date'], unique=False)

    # 3. Citas
    op.create_table('appointments',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('patient_id', sa.UUID(), nullable=False),
        sa.Column('doctor_id', sa.UUID(), nullable=False),
        sa.Column('appointment_datetime', sa.DateTime(timezone=True), nullable=False),
        sa.Column('duration_minutes', sa.Integer(), nullable=False),
        sa.Column('end_time', sa.DateTime(timezone=True), nullable=False, comment='appointment_datetime + duration_minutes'),
        sa.Column('status', sa.Enum('RESERVED', 'CONFIRMED', 'COMPLETED', 'CANCELLED', 'RESCHEDULED', 'NO_SHOW', name='appointmentstatus'), nullable=False),
        sa.Column('reservation_expires_at', sa.DateTime(timezone=True), nullable=True, comment='Solo mientras status = reserved'),
        sa.Column('reason', sa.String(length=500), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('cancellation_reason', sa.String(length=500), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['doctor_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['patient_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_appointment_doctor_date', 'appointments', ['doctor_id', 'appointment_datetime'], unique=False)
    op.create_index('idx_appointment_patient', 'appointments', ['patient_id', 'appointment_datetime'], unique=False)
    op.create_index('idx_appointment_status_expiry', 'appointments', ['status', 'reservation_expires_at'], unique=False)
    # Un solo inicio activo por doctor
    op.create_index(
        'uq_appointment_doctor_active_start',
        'appointments',
        ['doctor_id', 'appointment_datetime'],
        unique=True,
        postgresql_where=sa.text("status IN ('RESERVED', 'CONFIRMED', 'RESCHEDULED')"),
        sqlite_where=sa.text("status IN ('RESERVED', 'CONFIRMED', 'RESCHEDULED')"),
    )

    # 4. Historial de notificaciones (sin FK: sobrevive a reservas eliminadas)
    op.create_table('notification_logs',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('appointment_id', sa.UUID(), nullable=True),
        sa.Column('notification_type', sa.Enum('CONFIRMATION', 'CANCELLATION', 'RESCHEDULE', name='notificationtype'), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('status', sa.Enum('PENDING', 'SENT', 'FAILED', name='notificationstatus'), nullable=False),
        sa.Column('error_message', sa.String(length=500), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_notification_appointment', 'notification_logs', ['appointment_id'], unique=False)


def downgrade() -> None:
    op.drop_index('idx_notification_appointment', table_name='notification_logs')
    op.drop_table('notification_logs')
    op.drop_index('uq_appointment_doctor_active_start', table_name='appointments')
    op.drop_index('idx_appointment_status_expiry', table_name='appointments')
    op.drop_index('idx_appointment_patient', table_name='appointments')
    op.drop_index('idx_appointment_doctor_date', table_name='appointments')
    op.drop_table('appointments')
    op.drop_index('idx_availability_doctor_date', table_name='availability_windows')
    op.drop_index('idx_availability_doctor_day', table_name='availability_windows')
    op.drop_table('availability_windows')
    op.drop_index(op.f('ix_users_email'), table_name='users')
    op.drop_table('users')
    sa.Enum(name='notificationstatus').drop(op.get_bind(), checkfirst=True)
    sa.Enum(name='notificationtype').drop(op.get_bind(), checkfirst=True)
    sa.Enum(name='appointmentstatus').drop(op.get_bind(), checkfirst=True)
    sa.Enum(name='windowkind').drop(op.get_bind(), checkfirst=True)
    sa.Enum(name='userrole').drop(op.get_bind(), checkfirst=True)
