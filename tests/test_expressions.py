from __future__ import annotations

import unittest

from fairdraw.selection import Candidate, WeightContext
from fairdraw.selection.expressions import (
    MAX_EXPRESSION_LENGTH,
    WeightExpressionError,
    compile_expression,
    compile_parameters,
    compile_weight_spec,
)


class ExpressionCompileTests(unittest.TestCase):
    def setUp(self) -> None:
        self.candidate = Candidate(id="a", display_weight=4, pick_count=3, score=9)
        self.context = WeightContext(pool_size=10, mean_pick_count=1.5, max_score=20)

    def test_arithmetic_over_variables(self) -> None:
        transform = compile_expression("display_weight * (1 + score / max_score)")
        self.assertAlmostEqual(transform(self.candidate, self.context), 4 * 1.45)

    def test_functions(self) -> None:
        transform = compile_expression("max(0.5, sqrt(display_weight) - abs(-1))")
        self.assertAlmostEqual(transform(self.candidate, self.context), 1.0)
        transform = compile_expression("log1p(pick_count) + min(pool_size, 2, 3)")
        self.assertGreater(transform(self.candidate, self.context), 2.0)

    def test_division_by_zero_is_zero(self) -> None:
        transform = compile_expression("display_weight / max_score")
        self.assertEqual(transform(self.candidate, WeightContext()), 0.0)

    def test_rejects_code(self) -> None:
        for source in (
            "__import__('os').system('true')",
            "candidate.score",
            "[x for x in range(3)]",
            "lambda: 1",
            "display_weight ** 2",
            "score if score else 1",
            "'text'",
            "True",
            "unknown_var + 1",
            "max(1)",
            "sqrt(1, 2)",
            "min(a=1, b=2)",
        ):
            with self.subTest(source=source):
                with self.assertRaises(WeightExpressionError):
                    compile_expression(source)

    def test_rejects_empty_long_and_invalid(self) -> None:
        with self.assertRaises(WeightExpressionError):
            compile_expression("   ")
        with self.assertRaises(WeightExpressionError):
            compile_expression("1 + " * MAX_EXPRESSION_LENGTH + "1")
        with self.assertRaises(WeightExpressionError):
            compile_expression("display_weight +")

    def test_rejects_literal_too_large_for_float(self) -> None:
        with self.assertRaises(WeightExpressionError):
            compile_expression("1" * 400)

    def test_error_is_a_value_error(self) -> None:
        self.assertTrue(issubclass(WeightExpressionError, ValueError))


class ParameterCompileTests(unittest.TestCase):
    def test_defaults_apply_minimum_weight(self) -> None:
        transform = compile_parameters({"base_multiplier": 0})
        self.assertEqual(transform(Candidate(id="a"), WeightContext()), 0.1)

    def test_camel_case_aliases_and_clamp(self) -> None:
        transform = compile_parameters(
            {"baseMultiplier": 1, "scoreFactor": 0.5, "maxWeight": 5}
        )
        self.assertEqual(
            transform(Candidate(id="a", display_weight=2, score=10), WeightContext()), 5.0
        )

    def test_unknown_or_non_numeric_parameters(self) -> None:
        with self.assertRaises(WeightExpressionError):
            compile_parameters({"bonus": 1})
        with self.assertRaises(WeightExpressionError):
            compile_parameters({"score_factor": "high"})
        with self.assertRaises(WeightExpressionError):
            compile_parameters({"min_weight": 3, "max_weight": 1})
        with self.assertRaises(WeightExpressionError):
            compile_parameters({"base_multiplier": 10**400})

    def test_compile_weight_spec_dispatch(self) -> None:
        candidate = Candidate(id="a", display_weight=3)
        self.assertEqual(compile_weight_spec("display_weight")(candidate, WeightContext()), 3.0)
        self.assertEqual(compile_weight_spec({})(candidate, WeightContext()), 3.0)
        with self.assertRaises(WeightExpressionError):
            compile_weight_spec(42)  # type: ignore[arg-type]


if __name__ == "__main__":
    unittest.main()
