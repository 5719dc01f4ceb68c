"""Closed declarative weight expressions used by strategy plugins.

Plugin weight logic is never executed as code. A plugin supplies either an
arithmetic expression string or a parametric mapping; both compile into a
pure function of ``(Candidate, WeightContext)`` that is interpreted here.
"""

from __future__ import annotations

import ast
import math
from typing import Any, Callable, Mapping, Optional, Union

from .types import Candidate, WeightContext

WeightTransform = Callable[[Candidate, WeightContext], float]
_Node = Callable[[Mapping[str, float]], float]

VARIABLES = frozenset(
    {
        "display_weight",
        "pick_count",
        "score",
        "pool_size",
        "mean_pick_count",
        "max_score",
    }
)

MAX_EXPRESSION_LENGTH = 500


class WeightExpressionError(ValueError):
    """Raised when a weight expression does not fit the accepted grammar."""


def _finite_float(value: int | float, label: str) -> float:
    """Convert ``value`` to a finite float or raise :class:`WeightExpressionError`."""
    try:
        converted = float(value)
    except OverflowError as exc:
        raise WeightExpressionError(f"{label} is too large") from exc
    if not math.isfinite(converted):
        raise WeightExpressionError(f"{label} must be finite")
    return converted


def _safe_div(left: float, right: float) -> float:
    if right == 0:
        return 0.0
    return left / right


def _safe_sqrt(value: float) -> float:
    return math.sqrt(value) if value >= 0 else 0.0


def _safe_log1p(value: float) -> float:
    return math.log1p(value) if value > -1 else 0.0


_BINARY_OPS: dict[type, Callable[[float, float], float]] = {
    ast.Add: lambda a, b: a + b,
    ast.Sub: lambda a, b: a - b,
    ast.Mult: lambda a, b: a * b,
    ast.Div: _safe_div,
}

_UNARY_OPS: dict[type, Callable[[float], float]] = {
    ast.UAdd: lambda a: a,
    ast.USub: lambda a: -a,
}

# name -> (callable, minimum arity, maximum arity or None for variadic)
_FUNCTIONS: dict[str, tuple[Callable[..., float], int, Optional[int]]] = {
    "min": (min, 2, None),
    "max": (max, 2, None),
    "abs": (abs, 1, 1),
    "sqrt": (_safe_sqrt, 1, 1),
    "log1p": (_safe_log1p, 1, 1),
}


def _compile_node(node: ast.AST) -> _Node:
    if isinstance(node, ast.Expression):
        return _compile_node(node.body)

    if isinstance(node, ast.Constant):
        value = node.value
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise WeightExpressionError(f"unsupported literal {value!r}")
        constant = _finite_float(value, "literal")
        return lambda env: constant

    if isinstance(node, ast.Name):
        if node.id not in VARIABLES:
            raise WeightExpressionError(f"unknown variable '{node.id}'")
        name = node.id
        return lambda env: env[name]

    if isinstance(node, ast.UnaryOp):
        unary = _UNARY_OPS.get(type(node.op))
        if unary is None:
            raise WeightExpressionError(
                f"unsupported unary operator {type(node.op).__name__}"
            )
        operand = _compile_node(node.operand)
        return lambda env: unary(operand(env))

    if isinstance(node, ast.BinOp):
        binary = _BINARY_OPS.get(type(node.op))
        if binary is None:
            raise WeightExpressionError(
                f"unsupported operator {type(node.op).__name__}"
            )
        left = _compile_node(node.left)
        right = _compile_node(node.right)
        return lambda env: binary(left(env), right(env))

    if isinstance(node, ast.Call):
        if not isinstance(node.func, ast.Name) or node.func.id not in _FUNCTIONS:
            raise WeightExpressionError("only min, max, abs, sqrt and log1p may be called")
        if node.keywords:
            raise WeightExpressionError("keyword arguments are not supported")
        func, min_arity, max_arity = _FUNCTIONS[node.func.id]
        arity = len(node.args)
        if arity < min_arity or (max_arity is not None and arity > max_arity):
            raise WeightExpressionError(
                f"{node.func.id}() takes an invalid number of arguments ({arity})"
            )
        args = [_compile_node(arg) for arg in node.args]
        return lambda env: float(func(*(arg(env) for arg in args)))

    raise WeightExpressionError(f"unsupported syntax: {type(node).__name__}")


def _environment(candidate: Candidate, context: WeightContext) -> dict[str, float]:
    return {
        "display_weight": float(candidate.display_weight),
        "pick_count": float(candidate.pick_count),
        "score": float(candidate.score),
        "pool_size": float(context.pool_size),
        "mean_pick_count": float(context.mean_pick_count),
        "max_score": float(context.max_score),
    }


def compile_expression(source: str) -> WeightTransform:
    """Compile an arithmetic weight expression into a weight transform.

    Parameters
    ----------
    source : str
        Expression over ``display_weight``, ``pick_count``, ``score``,
        ``pool_size``, ``mean_pick_count`` and ``max_score`` using ``+ - * /``,
        parentheses and the functions ``min``, ``max``, ``abs``, ``sqrt`` and
        ``log1p``.

    Returns
    -------
    WeightTransform
        Pure function of a candidate and its pool context. Division by zero
        evaluates to ``0`` so the function is total.

    Raises
    ------
    WeightExpressionError
        If the expression is empty, too long, not valid Python syntax, or uses
        anything outside the grammar.
    """
    if not isinstance(source, str):
        raise WeightExpressionError("expression must be a string")
    text = source.strip()
    if not text:
        raise WeightExpressionError("expression must not be empty")
    if len(text) > MAX_EXPRESSION_LENGTH:
        raise WeightExpressionError(
            f"expression exceeds {MAX_EXPRESSION_LENGTH} characters"
        )
    try:
        tree = ast.parse(text, mode="eval")
    except SyntaxError as exc:
        raise WeightExpressionError(f"invalid expression syntax: {exc.msg}") from exc

    root = _compile_node(tree)

    def transform(candidate: Candidate, context: WeightContext) -> float:
        try:
            return root(_environment(candidate, context))
        except OverflowError:
            return math.inf

    return transform


_PARAMETER_ALIASES = {
    "base_multiplier": "base_multiplier",
    "baseMultiplier": "base_multiplier",
    "score_factor": "score_factor",
    "scoreFactor": "score_factor",
    "pick_decay_factor": "pick_decay_factor",
    "pickDecayFactor": "pick_decay_factor",
    "min_weight": "min_weight",
    "minWeight": "min_weight",
    "max_weight": "max_weight",
    "maxWeight": "max_weight",
}


def compile_parameters(parameters: Mapping[str, Any]) -> WeightTransform:
    """Compile the parametric plugin format into a weight transform.

    The weight is ``display_weight * base_multiplier * (1 + max(0, score) *
    score_factor) / (1 + max(0, pick_count) * pick_decay_factor)`` clamped to
    ``[min_weight, max_weight]``. Missing parameters default to
    ``base_multiplier=1``, ``score_factor=0``, ``pick_decay_factor=0``,
    ``min_weight=0.1`` and no upper bound.
    """
    values: dict[str, Optional[float]] = {
        "base_multiplier": 1.0,
        "score_factor": 0.0,
        "pick_decay_factor": 0.0,
        "min_weight": 0.1,
        "max_weight": None,
    }
    for key, raw in parameters.items():
        canonical = _PARAMETER_ALIASES.get(key)
        if canonical is None:
            raise WeightExpressionError(f"unknown weight parameter '{key}'")
        if raw is None and canonical == "max_weight":
            continue
        if isinstance(raw, bool) or not isinstance(raw, (int, float)):
            raise WeightExpressionError(f"weight parameter '{key}' must be a number")
        values[canonical] = _finite_float(raw, f"weight parameter '{key}'")

    base_multiplier = values["base_multiplier"] or 0.0
    score_factor = values["score_factor"] or 0.0
    pick_decay_factor = values["pick_decay_factor"] or 0.0
    min_weight = values["min_weight"]
    max_weight = values["max_weight"]
    if min_weight is not None and max_weight is not None and min_weight > max_weight:
        raise WeightExpressionError("min_weight must not exceed max_weight")

    def transform(candidate: Candidate, context: WeightContext) -> float:
        score_boost = 1 + max(0, candidate.score) * score_factor
        pick_decay = 1 + max(0, candidate.pick_count) * pick_decay_factor
        raw = _safe_div(
            candidate.display_weight * base_multiplier * score_boost, pick_decay
        )
        if min_weight is not None:
            raw = max(min_weight, raw)
        if max_weight is not None:
            raw = min(max_weight, raw)
        return raw

    return transform


def compile_weight_spec(spec: Union[str, Mapping[str, Any]]) -> WeightTransform:
    """Compile either supported declarative format."""
    if isinstance(spec, str):
        return compile_expression(spec)
    if isinstance(spec, Mapping):
        return compile_parameters(spec)
    raise WeightExpressionError(
        "weight expression must be a string or a mapping of parameters"
    )


__all__ = [
    "MAX_EXPRESSION_LENGTH",
    "VARIABLES",
    "WeightExpressionError",
    "WeightTransform",
    "compile_expression",
    "compile_parameters",
    "compile_weight_spec",
]
