import tempfile
import unittest
from pathlib import Path

from sqlalchemy import inspect

from fairdraw.db.engine import make_engine
from fairdraw.db.migrations import downgrade_db, schema_drift, upgrade_db


class MigrationTests(unittest.TestCase):
    def setUp(self) -> None:
        self.tmpdir = tempfile.TemporaryDirectory()
        self.url = f"sqlite:///{Path(self.tmpdir.name) / 'migrate.db'}"

    def tearDown(self) -> None:
        self.tmpdir.cleanup()

    def test_upgrade_matches_models_and_downgrade_drops_tables(self) -> None:
        upgrade_db(self.url)
        engine = make_engine(self.url)
        try:
            tables = set(inspect(engine).get_table_names())
            self.assertTrue({"classrooms", "students", "selection_records"} <= tables)
            self.assertEqual(schema_drift(engine), [])
        finally:
            engine.dispose()

        downgrade_db(self.url)
        engine = make_engine(self.url)
        try:
            tables = set(inspect(engine).get_table_names())
            self.assertNotIn("students", tables)
            self.assertNotIn("selection_records", tables)
        finally:
            engine.dispose()


if __name__ == "__main__":
    unittest.main()
