from __future__ import annotations

from sqlalchemy import inspect

from fairdraw.config import get_settings
from fairdraw.db.engine import make_engine
from fairdraw.db.migrations import upgrade_db
from fairdraw.workflows import load_strategy_plugins


def print_tables() -> None:
    """Inspect the configured database and print all table names."""
    engine = make_engine()
    insp = inspect(engine)
    print("Current tables:", ", ".join(sorted(insp.get_table_names())))
    engine.dispose()


def main() -> None:
    """Apply migrations, report the schema and validate the plugin file."""
    upgrade_db()
    print_tables()

    if get_settings().plugin_file is not None:
        report = load_strategy_plugins()
        print(
            f"Strategy plugins: {report.loaded} loaded, {report.skipped} skipped, "
            f"{len(report.errors)} errors"
        )
        for error in report.errors:
            print(f"  - {error}")


if __name__ == "__main__":
    main()
