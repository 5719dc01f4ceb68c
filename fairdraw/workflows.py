import json
import logging
from pathlib import Path
import random
from typing import Iterable, Optional, Union

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from .config import get_settings
from .models import Classroom, SelectionRecord, Student
from .selection.engine import (
    GroupRequest,
    PickRequest,
    SelectionEngine,
    selection_engine,
)
from .selection.stats import FairnessReport, fairness_report
from .selection.strategies import DEFAULT_STRATEGY_REGISTRY, LoadReport, StrategyRegistry
from .selection.types import (
    FairnessPolicy,
    Gender,
    GroupResult,
    HistoryEvent,
    PickResult,
)

logger = logging.getLogger(__name__)


def _require_persisted(classroom: Classroom) -> None:
    if classroom.id is None:
        raise ValueError("Classroom must be persisted before running a selection")


def classroom_history(session: Session, classroom: Classroom) -> list[HistoryEvent]:
    """Return the classroom's stored history as engine events, oldest first."""
    _require_persisted(classroom)
    return [
        record.to_history_event()
        for record in SelectionRecord.for_classroom(session, classroom.id)
    ]


def prune_history(
    session: Session, classroom: Classroom, max_records: Optional[int] = None
) -> int:
    """Delete the classroom's oldest records beyond ``max_records``.

    Returns the number of records removed.
    """
    _require_persisted(classroom)
    if max_records is None:
        max_records = get_settings().max_history_records
    if max_records < 1:
        raise ValueError("max_records must be at least 1")

    stmt = (
        select(SelectionRecord.id)
        .where(SelectionRecord.classroom_id == classroom.id)
        .order_by(SelectionRecord.created_at.desc(), SelectionRecord.id.desc())
        .offset(max_records)
    )
    stale_ids = list(session.scalars(stmt))
    if not stale_ids:
        return 0

    session.execute(delete(SelectionRecord).where(SelectionRecord.id.in_(stale_ids)))
    session.expire(classroom, ["selection_records"])
    logger.info(
        f"Pruned {len(stale_ids)} selection records from classroom {classroom.id}"
    )
    return len(stale_ids)


def _persist_result(
    session: Session,
    classroom: Classroom,
    result: Union[PickResult, GroupResult],
    max_history_records: Optional[int],
) -> SelectionRecord:
    record = SelectionRecord.from_result(classroom, result)
    session.add(record)
    session.flush()
    prune_history(session, classroom, max_history_records)
    return record


def run_pick(
    session: Session,
    classroom: Classroom,
    policy: FairnessPolicy,
    count: int,
    *,
    gender_scope: Optional[Gender] = None,
    manual_excluded_ids: Optional[Iterable[str]] = None,
    engine: Optional[SelectionEngine] = None,
    rng: Optional[random.Random] = None,
    max_history_records: Optional[int] = None,
) -> tuple[PickResult, SelectionRecord]:
    """Draw ``count`` students from ``classroom`` and record the draw.

    Winners get their ``pick_count`` incremented and ``last_picked_at``
    stamped with the draw time. The draw is stored as a
    :class:`SelectionRecord` and older records beyond the retention limit are
    pruned.

    Parameters
    ----------
    session : Session
        Active SQLAlchemy session.
    classroom : Classroom
        Persisted classroom to draw from.
    policy : FairnessPolicy
        Fairness policy for this draw.
    count : int
        Number of winners requested.
    gender_scope : Optional[Gender], default: None
        Restrict the draw to one gender.
    manual_excluded_ids : Optional[Iterable[str]], default: None
        Student ids (as strings) left out of this draw only.
    engine : Optional[SelectionEngine], default: None
        Engine to use. Defaults to the shared engine.
    rng : Optional[random.Random], default: None
        Random source for reproducible draws.
    max_history_records : Optional[int], default: None
        Retention limit. Defaults to ``FAIRDRAW_MAX_HISTORY_RECORDS``.

    Returns
    -------
    tuple[PickResult, SelectionRecord]
        The engine result and the stored record.

    Raises
    ------
    ValueError
        If the classroom is not persisted or the request is invalid.
    """
    _require_persisted(classroom)
    engine = engine or selection_engine

    request = PickRequest(
        class_id=classroom.class_key,
        roster=classroom.roster(),
        history=classroom_history(session, classroom),
        policy=policy,
        requested_count=count,
        gender_scope=gender_scope,
        manual_excluded_ids=frozenset(manual_excluded_ids or ()),
    )
    result = engine.pick(request, rng)

    students = {student.candidate_id: student for student in classroom.students}
    for winner_id in result.winners:
        student: Student = students[winner_id]
        student.pick_count += 1
        student.last_picked_at = result.meta.generated_at

    record = _persist_result(session, classroom, result, max_history_records)
    logger.info(
        f"Picked {len(result.winners)}/{count} students in classroom {classroom.id} "
        f"using '{result.meta.strategy_id}'"
    )
    return result, record


def run_grouping(
    session: Session,
    classroom: Classroom,
    policy: FairnessPolicy,
    group_count: int,
    *,
    manual_excluded_ids: Optional[Iterable[str]] = None,
    engine: Optional[SelectionEngine] = None,
    rng: Optional[random.Random] = None,
    max_history_records: Optional[int] = None,
) -> tuple[GroupResult, SelectionRecord]:
    """Split ``classroom`` into ``group_count`` groups and record the grouping.

    Student counters are not touched. See :func:`run_pick` for parameters.
    """
    _require_persisted(classroom)
    engine = engine or selection_engine

    request = GroupRequest(
        class_id=classroom.class_key,
        roster=classroom.roster(),
        history=classroom_history(session, classroom),
        policy=policy,
        group_count=group_count,
        manual_excluded_ids=frozenset(manual_excluded_ids or ()),
    )
    result = engine.group(request, rng)
    record = _persist_result(session, classroom, result, max_history_records)
    if result.has_unresolved_conflicts:
        logger.info(
            f"Grouping for classroom {classroom.id} kept "
            f"{len(result.unresolved_pairs)} recent pairs together"
        )
    logger.info(
        f"Formed {len(result.groups)} groups in classroom {classroom.id}"
    )
    return result, record


def load_strategy_plugins(
    path: Optional[Union[str, Path]] = None,
    registry: Optional[StrategyRegistry] = None,
) -> LoadReport:
    """Replace the registry's plugins with those defined in a JSON file.

    The file holds either a list of plugin configs or an object with a
    ``plugins`` list. Individual bad items are reported in the returned
    :class:`LoadReport`; a missing file, invalid JSON or an unexpected top
    level shape raises.
    """
    if path is None:
        path = get_settings().plugin_file
        if path is None:
            raise ValueError("No plugin file given and FAIRDRAW_PLUGIN_FILE is not set")
    registry = registry or DEFAULT_STRATEGY_REGISTRY

    with open(path, "r", encoding="utf-8") as fh:
        payload = json.load(fh)

    if isinstance(payload, dict):
        payload = payload.get("plugins")
    if not isinstance(payload, list):
        raise ValueError(
            f"Plugin file '{path}' must contain a list or an object with a 'plugins' list"
        )

    report = registry.reload(payload)
    logger.info(
        f"Loaded strategy plugins from {path}: "
        f"{report.loaded} loaded, {report.skipped} skipped, {len(report.errors)} errors"
    )
    return report


def classroom_fairness_report(
    session: Session,
    classroom: Classroom,
    *,
    registry: Optional[StrategyRegistry] = None,
) -> FairnessReport:
    """Summarize how evenly the classroom's stored picks are spread."""
    return fairness_report(
        classroom.roster(),
        classroom_history(session, classroom),
        class_id=classroom.class_key,
        registry=registry,
    )
