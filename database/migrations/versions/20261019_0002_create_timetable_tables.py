"""create timetable, substitution, publish, template and absence tables

Revision ID: 20261019_0002
Revises: 20261019_0001
Create Date: 2026-10-19 00:10:00.000000

"""
from alembic import op
import sqlalchemy as sa

revision = "20261019_0002"
down_revision = "20261019_0001"
branch_labels = None
depends_on = None


substitution_type_enum = sa.Enum("Vertretung", "Raumänderung", "Entfall", "Sonderevent", name="substitution_type")
publish_target_group_enum = sa.Enum("student", "teacher", name="publish_target_group")


def upgrade() -> None:
    op.create_table(
        "timetable_entries",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("calendar_week", sa.Integer(), nullable=False),
        sa.Column("day_of_week", sa.Integer(), nullable=False),
        sa.Column("period_number", sa.Integer(), nullable=False),
        sa.Column("class_id", sa.Integer(), nullable=False),
        sa.Column("teacher_id", sa.Integer(), nullable=True),
        sa.Column("subject_id", sa.Integer(), nullable=True),
        sa.Column("room_id", sa.Integer(), nullable=True),
        sa.Column("block_id", sa.String(length=64), nullable=True),
        sa.Column("comment", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint(
            "teacher_id",
            "year",
            "calendar_week",
            "day_of_week",
            "period_number",
            name="uq_timetable_entries_teacher_slot",
        ),
        sa.UniqueConstraint(
            "room_id",
            "year",
            "calendar_week",
            "day_of_week",
            "period_number",
            name="uq_timetable_entries_room_slot",
        ),
    )
    op.create_index("ix_timetable_entries_week", "timetable_entries", ["year", "calendar_week", "day_of_week"])
    op.create_index("ix_timetable_entries_class_id", "timetable_entries", ["class_id"])
    op.create_index("ix_timetable_entries_teacher_id", "timetable_entries", ["teacher_id"])
    op.create_index("ix_timetable_entries_block_id", "timetable_entries", ["block_id"])

    op.create_table(
        "substitutions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("period_number", sa.Integer(), nullable=False),
        sa.Column("class_id", sa.Integer(), nullable=False),
        sa.Column("substitution_type", substitution_type_enum, nullable=False),
        sa.Column("original_subject_id", sa.Integer(), nullable=True),
        sa.Column("new_teacher_id", sa.Integer(), nullable=True),
        sa.Column("new_subject_id", sa.Integer(), nullable=True),
        sa.Column("new_room_id", sa.Integer(), nullable=True),
        sa.Column("comment", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_substitutions_date", "substitutions", ["date"])
    op.create_index("ix_substitutions_class_id", "substitutions", ["class_id"])
    op.create_index("ix_substitutions_new_teacher_id", "substitutions", ["new_teacher_id"])

    op.create_table(
        "timetable_publish_status",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("calendar_week", sa.Integer(), nullable=False),
        sa.Column("target_group", publish_target_group_enum, nullable=False),
        sa.Column("publisher_user_id", sa.String(length=36), nullable=True),
        sa.Column("published_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("year", "calendar_week", "target_group", name="uq_publish_status_week_group"),
    )

    op.create_table(
        "timetable_templates",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(length=200), nullable=False, unique=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_table(
        "timetable_template_entries",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "template_id",
            sa.Integer(),
            sa.ForeignKey("timetable_templates.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("day_of_week", sa.Integer(), nullable=False),
        sa.Column("period_number", sa.Integer(), nullable=False),
        sa.Column("class_id", sa.Integer(), nullable=True),
        sa.Column("teacher_id", sa.Integer(), nullable=True),
        sa.Column("subject_id", sa.Integer(), nullable=True),
        sa.Column("room_id", sa.Integer(), nullable=True),
        sa.Column("block_ref", sa.String(length=64), nullable=True),
        sa.Column("comment", sa.Text(), nullable=True),
    )
    op.create_index(
        "ix_timetable_template_entries_template_id",
        "timetable_template_entries",
        ["template_id"],
    )

    op.create_table(
        "teacher_absences",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("teacher_id", sa.Integer(), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("reason", sa.String(length=50), nullable=False),
        sa.Column("comment", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_teacher_absences_teacher_id", "teacher_absences", ["teacher_id"])


def downgrade() -> None:
    op.drop_index("ix_teacher_absences_teacher_id", table_name="teacher_absences")
    op.drop_table("teacher_absences")
    op.drop_index("ix_timetable_template_entries_template_id", table_name="timetable_template_entries")
    op.drop_table("timetable_template_entries")
    op.drop_table("timetable_templates")
    op.drop_table("timetable_publish_status")
    op.drop_index("ix_substitutions_new_teacher_id", table_name="substitutions")
    op.drop_index("ix_substitutions_class_id", table_name="substitutions")
    op.drop_index("ix_substitutions_date", table_name="substitutions")
    op.drop_table("substitutions")
    op.drop_index("ix_timetable_entries_block_id", table_name="timetable_entries")
    op.drop_index("ix_timetable_entries_teacher_id", table_name="timetable_entries")
    op.drop_index("ix_timetable_entries_class_id", table_name="timetable_entries")
    op.drop_index("ix_timetable_entries_week", table_name="timetable_entries")
    op.drop_table("timetable_entries")
    bind = op.get_bind()
    publish_target_group_enum.drop(bind, checkfirst=True)
    substitution_type_enum.drop(bind, checkfirst=True)
