"""Progress and ranklist schema.

Creates users, the course catalog (courses, problems, course_problems),
the durable progress facts (attempts, solves), ballots (problem_votes,
content_likes), enrollments and the course_user_stats rollup.

Revision ID: 001_progress_schema
Revises: None
Create Date: 2026-10-19
"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

revision: str = "001_progress_schema"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _user_fk() -> sa.Column:
    return sa.Column("user_id", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)


def _problem_fk(primary_key: bool = True) -> sa.Column:
    return sa.Column(
        "problem_id",
        sa.BigInteger(),
        sa.ForeignKey("problems.id", ondelete="CASCADE"),
        primary_key=primary_key,
        nullable=False,
    )


def upgrade() -> None:
    """Create all progress tables."""
    # --- Profiles ---
    op.create_table(
        "users",
        sa.Column("id", sa.BigInteger().with_variant(sa.Integer(), "sqlite"), primary_key=True, autoincrement=True),
        sa.Column("username", sa.String(64), nullable=False, unique=True),
        sa.Column("display_name", sa.String(128), nullable=True),
        sa.Column("full_name", sa.String(128), nullable=True),
        sa.Column("institution", sa.String(256), nullable=True),
        sa.Column("country", sa.String(64), nullable=True),
        sa.Column("avatar_url", sa.Text(), nullable=True),
        sa.Column("role", sa.String(16), server_default="user", nullable=False),
        sa.Column("is_banned", sa.Boolean(), server_default="false", nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
    )

    # --- Catalog ---
    op.create_table(
        "courses",
        sa.Column("id", sa.BigInteger().with_variant(sa.Integer(), "sqlite"), primary_key=True, autoincrement=True),
        sa.Column("slug", sa.String(128), nullable=False, unique=True),
        sa.Column("title", sa.String(256), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
    )
    op.create_table(
        "problems",
        sa.Column("id", sa.BigInteger().with_variant(sa.Integer(), "sqlite"), primary_key=True, autoincrement=True),
        sa.Column("title", sa.String(256), nullable=False),
        sa.Column("platform", sa.String(64), nullable=True),
        sa.Column("link", sa.Text(), nullable=True),
        sa.Column("solution_url", sa.Text(), nullable=True),
        sa.Column("difficulty", sa.String(16), nullable=True),
    )
    op.create_table(
        "course_problems",
        sa.Column("id", sa.BigInteger().with_variant(sa.Integer(), "sqlite"), primary_key=True, autoincrement=True),
        sa.Column("course_id", sa.BigInteger(), sa.ForeignKey("courses.id", ondelete="CASCADE"), nullable=False),
        _problem_fk(primary_key=False),
        sa.Column("ordinal", sa.Integer(), server_default="0", nullable=False),
        sa.UniqueConstraint("course_id", "problem_id", name="uq_course_problems_course_problem"),
    )
    op.create_index("ix_course_problems_problem_id", "course_problems", ["problem_id"])

    # --- Enrollments ---
    op.create_table(
        "enrollments",
        _user_fk(),
        sa.Column("course_id", sa.BigInteger(), sa.ForeignKey("courses.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("enrolled_at", sa.DateTime(timezone=True), nullable=False),
    )

    # --- Progress facts: one row per (user, problem), ever ---
    op.create_table(
        "attempts",
        _user_fk(),
        _problem_fk(),
        sa.Column("attempted_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("unlocked_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_table(
        "solves",
        _user_fk(),
        _problem_fk(),
        sa.Column("solved_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_solves_solved_at", "solves", ["solved_at"])

    # --- Ballots ---
    op.create_table(
        "problem_votes",
        _problem_fk(),
        _user_fk(),
        sa.Column("vote", sa.String(8), nullable=False),
        sa.Column("cast_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("vote IN ('up', 'down')", name="ck_problem_votes_vote"),
    )
    op.create_table(
        "content_likes",
        sa.Column("target_id", sa.String(128), primary_key=True),
        _user_fk(),
        sa.Column("cast_at", sa.DateTime(timezone=True), nullable=False),
    )

    # --- Ranklist rollup ---
    op.create_table(
        "course_user_stats",
        sa.Column("course_id", sa.BigInteger(), sa.ForeignKey("courses.id", ondelete="CASCADE"), primary_key=True),
        _user_fk(),
        sa.Column("total_solves", sa.Integer(), server_default="0", nullable=False),
        sa.Column("first_solved_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index(
        "ix_course_user_stats_rank",
        "course_user_stats",
        ["course_id", sa.text("total_solves DESC"), "first_solved_at"],
    )


def downgrade() -> None:
    """Drop all progress tables."""
    op.drop_index("ix_course_user_stats_rank", table_name="course_user_stats")
    op.drop_table("course_user_stats")
    op.drop_table("content_likes")
    op.drop_table("problem_votes")
    op.drop_index("ix_solves_solved_at", table_name="solves")
    op.drop_table("solves")
    op.drop_table("attempts")
    op.drop_table("enrollments")
    op.drop_index("ix_course_problems_problem_id", table_name="course_problems")
    op.drop_table("course_problems")
    op.drop_table("problems")
    op.drop_table("courses")
    op.drop_table("users")
