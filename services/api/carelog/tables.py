from __future__ import annotations

import sqlalchemy as sa

metadata = sa.MetaData()

users = sa.Table(
    "users",
    metadata,
    sa.Column("id", sa.String(64), primary_key=True),
    sa.Column("email", sa.String(255), nullable=False, unique=True),
    sa.Column("display_name", sa.String(255), nullable=False),
    sa.Column("password_hash", sa.String(255), nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
)

revoked_tokens = sa.Table(
    "revoked_tokens",
    metadata,
    sa.Column("jti", sa.String(64), primary_key=True),
    sa.Column("user_id", sa.String(64), nullable=False),
    sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
)

beds = sa.Table(
    "beds",
    metadata,
    sa.Column("id", sa.Integer(), primary_key=True),
    sa.Column("bed_number", sa.String(32), nullable=False, unique=True),
    sa.Column("qr_code_id", sa.String(128), nullable=True, unique=True),
)

residents = sa.Table(
    "residents",
    metadata,
    sa.Column("id", sa.Integer(), primary_key=True),
    sa.Column("bed_code", sa.String(32), nullable=False, index=True),
    sa.Column("display_name", sa.String(255), nullable=False),
    sa.Column("sex", sa.String(4), nullable=True),
    sa.Column("birth_date", sa.Date(), nullable=True),
    sa.Column("residency_status", sa.String(16), nullable=False),
    sa.Column("care_level", sa.String(64), nullable=True),
    sa.Column("infection_control", sa.JSON(), nullable=True),
    sa.Column("photo_url", sa.Text(), nullable=True),
    sa.Column("bed_id", sa.Integer(), sa.ForeignKey("beds.id"), nullable=True),
)

patrol_rounds = sa.Table(
    "patrol_rounds",
    metadata,
    sa.Column("id", sa.String(36), primary_key=True),
    sa.Column("patient_id", sa.Integer(), sa.ForeignKey("residents.id"), nullable=False),
    sa.Column("patrol_date", sa.Date(), nullable=False),
    sa.Column("scheduled_time", sa.String(5), nullable=False),
    sa.Column("patrol_time", sa.String(5), nullable=False),
    sa.Column("recorder", sa.String(255), nullable=False),
    sa.Column("notes", sa.Text(), nullable=True),
    sa.UniqueConstraint("patient_id", "patrol_date", "scheduled_time", name="uq_patrol_slot"),
)

diaper_change_records = sa.Table(
    "diaper_change_records",
    metadata,
    sa.Column("id", sa.String(36), primary_key=True),
    sa.Column("patient_id", sa.Integer(), sa.ForeignKey("residents.id"), nullable=False),
    sa.Column("change_date", sa.Date(), nullable=False),
    sa.Column("time_slot", sa.String(16), nullable=False),
    sa.Column("has_urine", sa.Boolean(), nullable=False, server_default=sa.false()),
    sa.Column("has_stool", sa.Boolean(), nullable=False, server_default=sa.false()),
    sa.Column("has_none", sa.Boolean(), nullable=False, server_default=sa.false()),
    sa.Column("urine_amount", sa.String(4), nullable=True),
    sa.Column("stool_color", sa.String(4), nullable=True),
    sa.Column("stool_texture", sa.String(4), nullable=True),
    sa.Column("stool_amount", sa.String(4), nullable=True),
    sa.Column("recorder", sa.String(255), nullable=False),
    sa.UniqueConstraint("patient_id", "change_date", "time_slot", name="uq_diaper_slot"),
    sa.CheckConstraint(
        "NOT (has_none AND (has_urine OR has_stool))", name="ck_diaper_none_exclusive"
    ),
)

position_change_records = sa.Table(
    "position_change_records",
    metadata,
    sa.Column("id", sa.String(36), primary_key=True),
    sa.Column("patient_id", sa.Integer(), sa.ForeignKey("residents.id"), nullable=False),
    sa.Column("change_date", sa.Date(), nullable=False),
    sa.Column("scheduled_time", sa.String(5), nullable=False),
    sa.Column("position", sa.String(4), nullable=False),
    sa.Column("recorder", sa.String(255), nullable=False),
    sa.UniqueConstraint("patient_id", "change_date", "scheduled_time", name="uq_position_slot"),
)

restraint_observation_records = sa.Table(
    "restraint_observation_records",
    metadata,
    sa.Column("id", sa.String(36), primary_key=True),
    sa.Column("patient_id", sa.Integer(), sa.ForeignKey("residents.id"), nullable=False),
    sa.Column("observation_date", sa.Date(), nullable=False),
    sa.Column("scheduled_time", sa.String(5), nullable=False),
    sa.Column("observation_time", sa.String(5), nullable=False),
    sa.Column("observation_status", sa.String(1), nullable=False),
    sa.Column("recorder", sa.String(255), nullable=False),
    sa.Column("notes", sa.Text(), nullable=True),
    sa.UniqueConstraint("patient_id", "observation_date", "scheduled_time", name="uq_restraint_slot"),
)

audit_log = sa.Table(
    "audit_log",
    metadata,
    sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
    sa.Column("time", sa.DateTime(timezone=True), nullable=False, index=True),
    sa.Column("actor_user_id", sa.String(64), nullable=True),
    sa.Column("action", sa.String(128), nullable=False),
    sa.Column("resource", sa.String(128), nullable=False),
    sa.Column("resource_id", sa.String(128), nullable=True),
    sa.Column("detail", sa.Text(), nullable=True),
)
