from __future__ import annotations

import unittest

from fairdraw.selection import Candidate, ExclusionReason, Gender, filter_candidates


class EligibilityFilterTests(unittest.TestCase):
    def setUp(self) -> None:
        self.roster = [
            Candidate(id="a", gender="female"),
            Candidate(id="b", gender="male"),
            Candidate(id="c", status="absent", gender="female"),
            Candidate(id="d", gender="female"),
            Candidate(id="e"),
        ]

    def test_only_active_candidates_enter_the_pool(self) -> None:
        outcome = filter_candidates(self.roster)
        self.assertEqual([c.id for c in outcome.pool], ["a", "b", "d", "e"])
        self.assertEqual(outcome.stubs, {"c": ExclusionReason.STATUS_INACTIVE})

    def test_gender_scope_keeps_roster_order(self) -> None:
        outcome = filter_candidates(self.roster, gender_scope=Gender.FEMALE)
        self.assertEqual([c.id for c in outcome.pool], ["a", "d"])
        self.assertEqual(outcome.stubs["b"], ExclusionReason.GENDER_SCOPE_MISMATCH)
        self.assertEqual(outcome.stubs["e"], ExclusionReason.GENDER_SCOPE_MISMATCH)

    def test_first_reason_wins(self) -> None:
        outcome = filter_candidates(
            self.roster, gender_scope="male", manual_excluded_ids={"a", "c"}
        )
        self.assertEqual(outcome.stubs["c"], ExclusionReason.STATUS_INACTIVE)
        self.assertEqual(outcome.stubs["a"], ExclusionReason.MANUALLY_EXCLUDED)
        self.assertEqual(outcome.stubs["d"], ExclusionReason.GENDER_SCOPE_MISMATCH)
        self.assertEqual([c.id for c in outcome.pool], ["b"])

    def test_empty_roster(self) -> None:
        outcome = filter_candidates([])
        self.assertEqual(outcome.pool, ())
        self.assertEqual(dict(outcome.stubs), {})


class CandidateValidationTests(unittest.TestCase):
    def test_invalid_candidates_raise(self) -> None:
        with self.assertRaises(ValueError):
            Candidate(id="")
        with self.assertRaises(ValueError):
            Candidate(id="a", display_weight=0)
        with self.assertRaises(ValueError):
            Candidate(id="a", pick_count=-1)
        with self.assertRaises(ValueError):
            Candidate(id="a", status="sleeping")


if __name__ == "__main__":
    unittest.main()
