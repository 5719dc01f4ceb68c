import random

from sqlalchemy.orm import Session, sessionmaker

from fairdraw.db.engine import make_engine
from fairdraw.models import Base, Classroom, Student
from fairdraw.selection import FairnessPolicy, GroupStrategy
from fairdraw.workflows import classroom_fairness_report, run_grouping, run_pick

DEMO_STUDENTS = (
    # name, gender, display_weight, score, status
    ("Aoi", "female", 1, 12, "active"),
    ("Haruto", "male", 1, 7, "active"),
    ("Yui", "female", 2, 3, "active"),
    ("Sota", "male", 1, 9, "active"),
    ("Mei", "female", 1, 0, "absent"),
    ("Ren", "male", 3, 5, "active"),
    ("Hina", "female", 1, 15, "active"),
    ("Riku", "male", 1, 1, "excluded"),
)


def seed_demo_classroom(session: Session, name: str = "Demo 1-A", seed: int = 7) -> Classroom:
    """Create a demo classroom and give it a short draw history."""
    classroom = Classroom(name=name)
    session.add(classroom)
    for student_name, gender, weight, score, status in DEMO_STUDENTS:
        session.add(
            Student(
                name=student_name,
                classroom=classroom,
                gender=gender,
                display_weight=weight,
                score=score,
                status=status,
            )
        )
    session.flush()

    rng = random.Random(seed)
    cycle = FairnessPolicy(prevent_repeat=True, cooldown_rounds=0, weighted_random=True)
    for _ in range(3):
        run_pick(session, classroom, cycle, 1, rng=rng)
    run_pick(
        session,
        classroom,
        FairnessPolicy(weighted_random=True, strategy_preset="balanced"),
        2,
        rng=rng,
    )
    run_grouping(
        session,
        classroom,
        FairnessPolicy(group_strategy=GroupStrategy.BALANCED_SCORE, pair_avoid_rounds=1),
        2,
        rng=rng,
    )
    return classroom


def main() -> None:
    """Seed the development database with sample data."""
    engine = make_engine()

    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)
    Session = sessionmaker(bind=engine)

    with Session.begin() as session:
        classroom = seed_demo_classroom(session)
        report = classroom_fairness_report(session, classroom)
        print(f"Seeded classroom '{classroom.name}' with {len(classroom.students)} students")
        print(
            f"{report.total_events} picks, {report.unique_picked} students picked, "
            f"balance index {report.balance_index}"
        )


if __name__ == "__main__":
    main()
