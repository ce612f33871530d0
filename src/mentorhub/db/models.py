"""ORM models for profiles, courses, progress facts, ballots and aggregates.

Attempt, Solve and ballot tables are keyed by their owning (user, target) pair,
so the primary key doubles as the idempotency constraint.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    BigInteger,
    Boolean,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from mentorhub.db.base import Base, BigIntId, UTCDateTime


# ---------------------------------------------------------------------------
# Users (profile collaborator)
# ---------------------------------------------------------------------------


class User(Base):
    """Maps to the 'users' table. Holds the public profile fields."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    display_name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    full_name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    institution: Mapped[str | None] = mapped_column(String(256), nullable=True)
    country: Mapped[str | None] = mapped_column(String(64), nullable=True)
    avatar_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    role: Mapped[str] = mapped_column(String(16), nullable=False, default="user", server_default="user")
    is_banned: Mapped[bool] = mapped_column(Boolean, default=False, server_default="false")
    created_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)


# ---------------------------------------------------------------------------
# Courses & problems
# ---------------------------------------------------------------------------


class Course(Base):
    """A named, ordered problem set."""

    __tablename__ = "courses"

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    slug: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)
    title: Mapped[str] = mapped_column(String(256), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    problems: Mapped[list[CourseProblem]] = relationship("CourseProblem", back_populates="course")


class Problem(Base):
    """An external problem with a gated worked solution."""

    __tablename__ = "problems"

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(256), nullable=False)
    platform: Mapped[str | None] = mapped_column(String(64), nullable=True)
    link: Mapped[str | None] = mapped_column(Text, nullable=True)
    solution_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    difficulty: Mapped[str | None] = mapped_column(String(16), nullable=True)


class CourseProblem(Base):
    """Membership of a problem in a course, with its display ordinal."""

    __tablename__ = "course_problems"
    __table_args__ = (
        UniqueConstraint("course_id", "problem_id", name="uq_course_problems_course_problem"),
    )

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    course_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False)
    problem_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("problems.id", ondelete="CASCADE"), nullable=False)
    ordinal: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")

    course: Mapped[Course] = relationship("Course", back_populates="problems")
    problem: Mapped[Problem] = relationship("Problem")


class Enrollment(Base):
    """A user's enrollment in a course. One per (user, course)."""

    __tablename__ = "enrollments"

    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    course_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("courses.id", ondelete="CASCADE"), primary_key=True)
    enrolled_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)


# ---------------------------------------------------------------------------
# Progress facts
# ---------------------------------------------------------------------------


class Attempt(Base):
    """First time a user acted on a problem. Never updated except unlocked_at."""

    __tablename__ = "attempts"

    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    problem_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("problems.id", ondelete="CASCADE"), primary_key=True)
    attempted_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    unlocked_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)


class Solve(Base):
    """Immutable, user-asserted completion of a problem."""

    __tablename__ = "solves"

    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    problem_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("problems.id", ondelete="CASCADE"), primary_key=True)
    solved_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, index=True)


# ---------------------------------------------------------------------------
# Ballots
# ---------------------------------------------------------------------------


class ProblemVote(Base):
    """One up/down vote per (problem, user), forever."""

    __tablename__ = "problem_votes"

    problem_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("problems.id", ondelete="CASCADE"), primary_key=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    vote: Mapped[str] = mapped_column(String(8), nullable=False)
    cast_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)


class ContentLike(Base):
    """One like per (content target, user), forever."""

    __tablename__ = "content_likes"

    target_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    cast_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)


# ---------------------------------------------------------------------------
# Aggregates
# ---------------------------------------------------------------------------


class CourseUserStat(Base):
    """Materialized per-(course, user) solve rollup. Written only by the solve path and reconcile."""

    __tablename__ = "course_user_stats"

    course_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("courses.id", ondelete="CASCADE"), primary_key=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    total_solves: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    first_solved_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
