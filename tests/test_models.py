from __future__ import annotations

import unittest
from datetime import datetime, timezone

from sqlalchemy import create_engine, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from fairdraw.models import Base, Classroom, SelectionRecord, Student
from fairdraw.selection import (
    CandidateStatus,
    EventKind,
    FairnessPolicy,
    Gender,
    GroupStrategy,
)


class ModelTests(unittest.TestCase):
    def setUp(self) -> None:
        self.engine = create_engine("sqlite+pysqlite:///:memory:", future=True)
        Base.metadata.create_all(self.engine)
        self.Session = sessionmaker(
            bind=self.engine, future=True, expire_on_commit=False
        )

    def tearDown(self) -> None:
        self.engine.dispose()

    def test_student_to_candidate(self) -> None:
        with self.Session.begin() as session:
            classroom = Classroom(name="1-A")
            student = Student(
                name="Hanako",
                classroom=classroom,
                gender="female",
                display_weight=2,
                pick_count=3,
                score=-4,
                status="absent",
                last_picked_at=datetime(2024, 1, 10, 9, 0),
            )
            session.add(classroom)
            session.flush()

            candidate = student.to_candidate()
            self.assertEqual(candidate.id, str(student.id))
            self.assertEqual(candidate.display_weight, 2)
            self.assertEqual(candidate.pick_count, 3)
            self.assertEqual(candidate.score, -4)
            self.assertEqual(candidate.status, CandidateStatus.ABSENT)
            self.assertEqual(candidate.gender, Gender.FEMALE)
            self.assertEqual(candidate.name, "Hanako")
            self.assertEqual(candidate.last_picked_at.tzinfo, timezone.utc)

            payload = student.to_json()
            self.assertEqual(payload["last_picked_at"], "2024-01-10T09:00:00+00:00")
            self.assertIn('"name": "Hanako"', student.to_json_str())

    def test_unpersisted_student_cannot_become_candidate(self) -> None:
        with self.assertRaises(ValueError):
            Student(name="Draft").to_candidate()
        with self.assertRaises(ValueError):
            Classroom(name="Draft").class_key

    def test_invalid_status_and_gender_rejected(self) -> None:
        with self.assertRaises(ValueError):
            Student(name="X", status="sleeping")
        with self.assertRaises(ValueError):
            Student(name="X", gender="robot")

    def test_roster_order_and_lookup(self) -> None:
        with self.Session.begin() as session:
            classroom = Classroom(name="2-B")
            session.add(classroom)
            for name in ("Aoi", "Ren", "Yui"):
                session.add(Student(name=name, classroom=classroom))
            session.flush()

            found = Classroom.get_by_name(session, "2-B")
            self.assertIs(found, classroom)
            self.assertIsNone(Classroom.get_by_name(session, "missing"))
            self.assertEqual([c.name for c in classroom.roster()], ["Aoi", "Ren", "Yui"])

    def test_classroom_name_is_unique(self) -> None:
        with self.assertRaises(IntegrityError):
            with self.Session.begin() as session:
                session.add_all([Classroom(name="dup"), Classroom(name="dup")])
                session.flush()

    def test_selection_record_round_trip_to_history_event(self) -> None:
        with self.Session.begin() as session:
            classroom = Classroom(name="3-C")
            session.add(classroom)
            session.flush()
            policy = FairnessPolicy(
                prevent_repeat=True,
                cooldown_rounds=2,
                group_strategy=GroupStrategy.BALANCED_SCORE,
            )
            record = SelectionRecord(
                kind="pick",
                classroom=classroom,
                picked_ids=["3", "1"],
                cooldown_excluded_ids=["2"],
                policy_snapshot=policy.to_json(),
                created_at=datetime(2024, 2, 1, 12, 0, tzinfo=timezone.utc),
            )
            session.add(record)
            session.flush()
            record_id = record.id

        with self.Session() as session:
            stored = session.scalar(select(SelectionRecord).where(SelectionRecord.id == record_id))
            event = stored.to_history_event()
            self.assertEqual(event.kind, EventKind.PICK)
            self.assertEqual(event.class_id, str(stored.classroom_id))
            self.assertEqual(event.picked_ids, ("3", "1"))
            self.assertEqual(event.cooldown_excluded_ids, frozenset({"2"}))
            self.assertEqual(event.policy_snapshot, policy)
            self.assertEqual(event.timestamp.tzinfo, timezone.utc)
            self.assertEqual(event.id, str(record_id))
            self.assertEqual(stored.to_json()["created_at"], "2024-02-01T12:00:00+00:00")

    def test_records_cascade_with_classroom(self) -> None:
        with self.Session.begin() as session:
            classroom = Classroom(name="4-D")
            session.add(classroom)
            session.add(Student(name="Sora", classroom=classroom))
            session.add(SelectionRecord(kind="group", classroom=classroom, groups=[["1"]]))
            session.flush()
            session.delete(classroom)
            session.flush()
            self.assertEqual(session.scalars(select(Student)).all(), [])
            self.assertEqual(session.scalars(select(SelectionRecord)).all(), [])


if __name__ == "__main__":
    unittest.main()
