"""Database models for classrooms and their rosters."""

from __future__ import annotations

from datetime import datetime, timezone
import json
from typing import TYPE_CHECKING, Any, Optional

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    select,
)
from sqlalchemy.orm import Mapped, Session, mapped_column, relationship, validates

from ..db.utils import dt_iso, ensure_utc
from ..selection.types import Candidate, CandidateStatus, Gender
from .base import Base

if TYPE_CHECKING:
    from .selection_record import SelectionRecord


class Classroom(Base):
    """A class whose students are drawn and grouped."""

    __tablename__ = "classrooms"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    """Primary key."""

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    """Display name, unique across classrooms."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    students: Mapped[list["Student"]] = relationship(
        back_populates="classroom",
        cascade="all, delete-orphan",
        order_by="Student.id",
    )
    """Roster in insertion order."""

    selection_records: Mapped[list["SelectionRecord"]] = relationship(
        back_populates="classroom",
        cascade="all, delete-orphan",
    )
    """History of draws and groupings for this classroom."""

    __table_args__ = (UniqueConstraint("name"),)

    def __init__(
        self,
        *,
        name: str,
        students: Optional[list["Student"]] = None,
        created_at: Optional[datetime] = None,
        updated_at: Optional[datetime] = None,
    ) -> None:
        self.name = name
        if students is not None:
            self.students = students
        if created_at is not None:
            self.created_at = created_at
        if updated_at is not None:
            self.updated_at = updated_at

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return "<Classroom(id={id}, name={name})>".format(id=self.id, name=self.name)

    @property
    def class_key(self) -> str:
        """Identifier the selection engine uses for this classroom."""
        if self.id is None:
            raise ValueError("Classroom must be persisted before it can be drawn from")
        return str(self.id)

    def roster(self) -> list[Candidate]:
        """Return the students as engine candidates, in roster order."""
        return [student.to_candidate() for student in self.students]

    @classmethod
    def get_by_name(cls, session: Session, name: str) -> Optional["Classroom"]:
        """Return the classroom called ``name`` if it exists."""
        return session.scalar(select(cls).where(cls.name == name))


class Student(Base):
    """A roster member; the persisted form of :class:`Candidate`."""

    __tablename__ = "students"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    classroom_id: Mapped[int] = mapped_column(
        ForeignKey("classrooms.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False)

    student_number: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    """School-issued identifier, if any."""

    gender: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)

    display_weight: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    """Base draw weight set for the student."""

    pick_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=CandidateStatus.ACTIVE.value
    )

    last_picked_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    classroom: Mapped["Classroom"] = relationship(back_populates="students")

    __table_args__ = (
        CheckConstraint("display_weight >= 1", name="display_weight_positive"),
        CheckConstraint("pick_count >= 0", name="pick_count_non_negative"),
    )

    def __init__(
        self,
        *,
        name: str,
        classroom: Optional["Classroom"] = None,
        classroom_id: Optional[int] = None,
        student_number: Optional[str] = None,
        gender: Optional[str] = None,
        display_weight: int = 1,
        pick_count: int = 0,
        score: int = 0,
        status: str = CandidateStatus.ACTIVE.value,
        last_picked_at: Optional[datetime] = None,
    ) -> None:
        if classroom is not None:
            self.classroom = classroom
        if classroom_id is not None:
            self.classroom_id = classroom_id
        self.name = name
        self.student_number = student_number
        self.gender = gender
        self.display_weight = display_weight
        self.pick_count = pick_count
        self.score = score
        self.status = status
        self.last_picked_at = last_picked_at

    @validates("status")
    def _validate_status(self, _key: str, value: str) -> str:
        return CandidateStatus(value).value

    @validates("gender")
    def _validate_gender(self, _key: str, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return Gender(value).value

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return "<Student(id={id}, name={name}, status={status})>".format(
            id=self.id, name=self.name, status=self.status
        )

    @property
    def candidate_id(self) -> str:
        if self.id is None:
            raise ValueError("Student must be persisted before it can be drawn")
        return str(self.id)

    def to_candidate(self) -> Candidate:
        """Return an immutable snapshot for the selection engine."""
        return Candidate(
            id=self.candidate_id,
            display_weight=self.display_weight,
            pick_count=self.pick_count,
            score=self.score,
            last_picked_at=ensure_utc(self.last_picked_at),
            status=CandidateStatus(self.status),
            gender=Gender(self.gender) if self.gender else None,
            name=self.name,
        )

    def to_json(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "classroom_id": self.classroom_id,
            "name": self.name,
            "student_number": self.student_number,
            "gender": self.gender,
            "display_weight": self.display_weight,
            "pick_count": self.pick_count,
            "score": self.score,
            "status": self.status,
            "last_picked_at": dt_iso(self.last_picked_at),
        }

    def to_json_str(self) -> str:
        return json.dumps(self.to_json(), ensure_ascii=False)


__all__ = ["Classroom", "Student"]
