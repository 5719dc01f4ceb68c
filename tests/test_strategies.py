from __future__ import annotations

import threading
import unittest

from fairdraw.selection import (
    Candidate,
    PluginConfig,
    StrategyDescriptor,
    StrategyRegistry,
    WeightContext,
)
from fairdraw.selection.strategies import BUILTIN_STRATEGY_IDS, DEFAULT_STRATEGY_ID


class BuiltinStrategyTests(unittest.TestCase):
    def setUp(self) -> None:
        self.registry = StrategyRegistry()

    def test_list_starts_with_builtins(self) -> None:
        ids = [info.id for info in self.registry.list()]
        self.assertEqual(ids, ["classic", "balanced", "momentum"])
        self.assertEqual(set(ids), BUILTIN_STRATEGY_IDS)

    def test_classic_uses_display_weight(self) -> None:
        classic = self.registry.resolve("classic")
        self.assertEqual(classic.weight(Candidate(id="a", display_weight=4)), 4.0)

    def test_balanced_decays_with_pick_count(self) -> None:
        balanced = self.registry.resolve("balanced")
        fresh = Candidate(id="a", display_weight=3, pick_count=0)
        veteran = Candidate(id="b", display_weight=3, pick_count=2)
        self.assertEqual(balanced.weight(fresh), 3.0)
        self.assertEqual(balanced.weight(veteran), 1.0)

    def test_momentum_rewards_positive_scores_only(self) -> None:
        momentum = self.registry.resolve("momentum")
        self.assertAlmostEqual(
            momentum.weight(Candidate(id="a", display_weight=2, score=5)), 3.0
        )
        self.assertEqual(
            momentum.weight(Candidate(id="b", display_weight=2, score=-30)), 2.0
        )

    def test_unknown_id_resolves_to_classic(self) -> None:
        self.assertEqual(self.registry.resolve("does-not-exist").id, DEFAULT_STRATEGY_ID)
        self.assertEqual(self.registry.resolve(None).id, DEFAULT_STRATEGY_ID)
        self.assertIsNone(self.registry.get("does-not-exist"))

    def test_registry_requires_classic(self) -> None:
        other = StrategyDescriptor(
            id="other", name="Other", weight_transform=lambda c, ctx: 1.0, builtin=True
        )
        with self.assertRaises(ValueError):
            StrategyRegistry(builtins=[other])

    def test_descriptor_clamps_negative_and_non_finite_weights(self) -> None:
        negative = StrategyDescriptor(
            id="neg", name="Neg", weight_transform=lambda c, ctx: -3.0
        )
        infinite = StrategyDescriptor(
            id="inf", name="Inf", weight_transform=lambda c, ctx: float("inf")
        )
        candidate = Candidate(id="a")
        self.assertEqual(negative.weight(candidate, WeightContext()), 0.0)
        self.assertEqual(infinite.weight(candidate, WeightContext()), 0.0)


class PluginRegistrationTests(unittest.TestCase):
    def setUp(self) -> None:
        self.registry = StrategyRegistry()

    def test_valid_and_builtin_duplicate(self) -> None:
        report = self.registry.register(
            [
                {"id": "fresh-first", "name": "Fresh first", "weight_expression": "display_weight / (1 + pick_count * 2)"},
                {"id": "classic", "name": "Fake classic", "weight_expression": "1"},
            ]
        )
        self.assertEqual(report.loaded, 1)
        self.assertEqual(report.skipped, 1)
        self.assertEqual(report.errors, ())
        ids = [info.id for info in self.registry.list()]
        self.assertEqual(ids, ["classic", "balanced", "momentum", "fresh-first"])
        self.assertEqual(self.registry.resolve("classic").name, "Classic")

    def test_duplicate_within_batch_is_skipped(self) -> None:
        report = self.registry.register(
            [
                {"id": "twice", "name": "First", "weight_expression": "1"},
                {"id": "twice", "name": "Second", "weight_expression": "2"},
            ]
        )
        self.assertEqual(report.loaded, 1)
        self.assertEqual(report.skipped, 1)
        self.assertEqual(self.registry.resolve("twice").name, "First")

    def test_malformed_items_become_errors(self) -> None:
        report = self.registry.register(
            [
                "not an object",
                {"id": "", "name": "No id", "weight_expression": "1"},
                {"id": "Bad Id!", "name": "Bad id", "weight_expression": "1"},
                {"id": "no-name", "name": "", "weight_expression": "1"},
                {"id": "evil", "name": "Evil", "weight_expression": "__import__('os')"},
                {"id": "negative", "name": "Negative", "weight_expression": "display_weight - 10"},
                {"id": "good", "name": "Good", "weight_expression": "display_weight"},
            ]
        )
        self.assertEqual(report.loaded, 1)
        self.assertEqual(report.skipped, 0)
        self.assertEqual(len(report.errors), 6)
        statuses = [detail.status for detail in report.details]
        self.assertEqual(statuses, ["error"] * 6 + ["loaded"])
        self.assertIsNotNone(self.registry.get("good"))
        self.assertIsNone(self.registry.get("evil"))

    def test_oversized_numbers_do_not_abort_the_batch(self) -> None:
        report = self.registry.register(
            [
                {"id": "huge-literal", "name": "Huge", "weight_expression": "1" * 400},
                {"id": "huge-param", "name": "Huge param", "base_multiplier": 10**400},
                {"id": "ok-one", "name": "OK", "weight_expression": "display_weight"},
            ]
        )
        self.assertEqual(report.loaded, 1)
        self.assertEqual(len(report.errors), 2)
        statuses = [detail.status for detail in report.details]
        self.assertEqual(statuses, ["error", "error", "loaded"])
        self.assertIsNone(self.registry.get("huge-literal"))
        self.assertIsNotNone(self.registry.get("ok-one"))

    def test_parametric_plugin_at_top_level(self) -> None:
        report = self.registry.register(
            [{"id": "legacy", "name": "Legacy", "baseMultiplier": 2, "pickDecayFactor": 1}]
        )
        self.assertEqual(report.loaded, 1)
        legacy = self.registry.resolve("legacy")
        self.assertEqual(legacy.weight(Candidate(id="a", display_weight=3, pick_count=1)), 3.0)

    def test_register_accepts_plugin_config_objects(self) -> None:
        config = PluginConfig(id="cfg", name="Config", weight_expression="max(1, score)")
        report = self.registry.register([config])
        self.assertEqual(report.loaded, 1)
        self.assertEqual(self.registry.resolve("cfg").weight(Candidate(id="a", score=7)), 7.0)

    def test_reset_then_empty_register_leaves_builtins(self) -> None:
        self.registry.register([{"id": "extra", "name": "Extra", "weight_expression": "1"}])
        self.registry.reset()
        report = self.registry.register([])
        self.assertEqual(report.loaded, 0)
        self.assertEqual(len(self.registry.list()), 3)
        self.assertEqual(self.registry.resolve("extra").id, "classic")

    def test_register_is_additive_and_reload_replaces(self) -> None:
        self.registry.register([{"id": "one", "name": "One", "weight_expression": "1"}])
        self.registry.register([{"id": "two", "name": "Two", "weight_expression": "2"}])
        self.assertIsNotNone(self.registry.get("one"))
        self.assertIsNotNone(self.registry.get("two"))

        self.registry.reload([{"id": "three", "name": "Three", "weight_expression": "3"}])
        self.assertIsNone(self.registry.get("one"))
        self.assertIsNone(self.registry.get("two"))
        self.assertIsNotNone(self.registry.get("three"))

    def test_concurrent_reads_during_reload(self) -> None:
        errors: list[Exception] = []
        stop = threading.Event()

        def reader() -> None:
            try:
                while not stop.is_set():
                    ids = [info.id for info in self.registry.list()]
                    if ids[:3] != ["classic", "balanced", "momentum"]:
                        raise AssertionError(ids)
                    self.registry.resolve("plugin-a")
            except Exception as exc:  # pragma: no cover - only on failure
                errors.append(exc)

        threads = [threading.Thread(target=reader) for _ in range(4)]
        for thread in threads:
            thread.start()
        for i in range(50):
            self.registry.reload(
                [{"id": "plugin-a", "name": f"A{i}", "weight_expression": "1"}]
            )
        stop.set()
        for thread in threads:
            thread.join()
        self.assertEqual(errors, [])


if __name__ == "__main__":
    unittest.main()
