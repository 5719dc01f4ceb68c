"""Persisted draw and grouping history."""

from __future__ import annotations

from datetime import datetime, timezone
import json
from typing import TYPE_CHECKING, Any, Optional, Union

from sqlalchemy import JSON, DateTime, ForeignKey, Index, Integer, String, select
from sqlalchemy.orm import Mapped, Session, mapped_column, relationship

from ..db.utils import dt_iso
from ..selection.types import (
    EventKind,
    FairnessPolicy,
    GroupResult,
    HistoryEvent,
    PickResult,
)
from .base import Base

if TYPE_CHECKING:
    from .classroom import Classroom


class SelectionRecord(Base):
    """One stored pick or grouping, replayed as a :class:`HistoryEvent`."""

    __tablename__ = "selection_records"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    """Primary key."""

    classroom_id: Mapped[int] = mapped_column(
        ForeignKey("classrooms.id", ondelete="CASCADE"),
        nullable=False,
    )
    """Foreign key referencing :class:`Classroom`."""

    kind: Mapped[str] = mapped_column(String(10), nullable=False)
    """Either ``pick`` or ``group``."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    """When the draw happened; history is ordered on this column."""

    picked_ids: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    """Winner ids in draw order. Empty for groupings."""

    groups: Mapped[list[list[str]]] = mapped_column(JSON, nullable=False, default=list)
    """Member ids per group. Empty for picks."""

    cooldown_excluded_ids: Mapped[list[str]] = mapped_column(
        JSON, nullable=False, default=list
    )

    policy_snapshot: Mapped[Optional[dict[str, Any]]] = mapped_column(
        JSON, nullable=True
    )
    """:meth:`FairnessPolicy.to_json` of the policy in effect."""

    meta: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    """Result metadata (engine version, strategy, fallback notes...)."""

    classroom: Mapped["Classroom"] = relationship(back_populates="selection_records")

    __table_args__ = (
        Index(
            "ix_selection_records_classroom_kind_created",
            "classroom_id",
            "kind",
            "created_at",
        ),
    )

    def __init__(
        self,
        *,
        kind: str,
        classroom: Optional["Classroom"] = None,
        classroom_id: Optional[int] = None,
        picked_ids: Optional[list[str]] = None,
        groups: Optional[list[list[str]]] = None,
        cooldown_excluded_ids: Optional[list[str]] = None,
        policy_snapshot: Optional[dict[str, Any]] = None,
        meta: Optional[dict[str, Any]] = None,
        created_at: Optional[datetime] = None,
    ) -> None:
        self.kind = EventKind(kind).value
        if classroom is not None:
            self.classroom = classroom
        if classroom_id is not None:
            self.classroom_id = classroom_id
        self.picked_ids = list(picked_ids or [])
        self.groups = [list(group) for group in groups or []]
        self.cooldown_excluded_ids = list(cooldown_excluded_ids or [])
        self.policy_snapshot = policy_snapshot
        self.meta = meta
        if created_at is not None:
            self.created_at = created_at

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return "<SelectionRecord(id={id}, classroom_id={cid}, kind={kind})>".format(
            id=self.id, cid=self.classroom_id, kind=self.kind
        )

    @classmethod
    def from_result(
        cls,
        classroom: "Classroom",
        result: Union[PickResult, GroupResult],
    ) -> "SelectionRecord":
        """Build a record capturing ``result`` for ``classroom``."""
        meta = result.meta
        if isinstance(result, PickResult):
            return cls(
                kind=EventKind.PICK.value,
                classroom=classroom,
                picked_ids=list(result.winners),
                cooldown_excluded_ids=sorted(result.cooldown_excluded_ids),
                policy_snapshot=meta.policy_snapshot.to_json(),
                meta=meta.to_json(),
                created_at=meta.generated_at,
            )
        if isinstance(result, GroupResult):
            return cls(
                kind=EventKind.GROUP.value,
                classroom=classroom,
                groups=[list(group) for group in result.groups],
                policy_snapshot=meta.policy_snapshot.to_json(),
                meta=meta.to_json(),
                created_at=meta.generated_at,
            )
        raise TypeError(
            f"Expected PickResult or GroupResult, got {type(result).__name__}"
        )

    def to_history_event(self) -> HistoryEvent:
        policy = (
            FairnessPolicy.from_json(self.policy_snapshot)
            if self.policy_snapshot
            else None
        )
        return HistoryEvent(
            timestamp=self.created_at,
            class_id=str(self.classroom_id),
            kind=EventKind(self.kind),
            picked_ids=tuple(self.picked_ids or ()),
            groups=tuple(tuple(group) for group in self.groups or ()),
            policy_snapshot=policy,
            id=str(self.id) if self.id is not None else None,
            cooldown_excluded_ids=frozenset(self.cooldown_excluded_ids or ()),
        )

    @classmethod
    def for_classroom(
        cls,
        session: Session,
        classroom_id: int,
        kind: Optional[str] = None,
    ) -> list["SelectionRecord"]:
        """Return the classroom's records, oldest first."""
        stmt = select(cls).where(cls.classroom_id == classroom_id)
        if kind is not None:
            stmt = stmt.where(cls.kind == EventKind(kind).value)
        stmt = stmt.order_by(cls.created_at.asc(), cls.id.asc())
        return list(session.scalars(stmt))

    def to_json(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "classroom_id": self.classroom_id,
            "kind": self.kind,
            "created_at": dt_iso(self.created_at),
            "picked_ids": list(self.picked_ids or []),
            "groups": [list(group) for group in self.groups or []],
            "cooldown_excluded_ids": list(self.cooldown_excluded_ids or []),
            "policy_snapshot": self.policy_snapshot,
            "meta": self.meta,
        }

    def to_json_str(self) -> str:
        return json.dumps(self.to_json(), ensure_ascii=False)


__all__ = ["SelectionRecord"]
