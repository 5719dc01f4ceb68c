"""Fairness-aware selection engine."""

from .cooldown import CooldownOutcome, HistoryIndex, apply_cooldown
from .eligibility import EligibilityOutcome, filter_candidates
from .engine import GroupRequest, PickRequest, SelectionEngine, selection_engine
from .expressions import WeightExpressionError, compile_weight_spec
from .grouping import PartitionOutcome, partition
from .results import ENGINE_VERSION, WinnerExplanation, explain_winners, explanation_summary
from .sampler import compute_weights, draw
from .stats import FairnessReport, fairness_report
from .strategies import (
    DEFAULT_STRATEGY_REGISTRY,
    LoadDetail,
    LoadReport,
    PluginConfig,
    StrategyDescriptor,
    StrategyInfo,
    StrategyRegistry,
)
from .types import (
    Candidate,
    CandidateStatus,
    CandidateTrace,
    EventKind,
    ExclusionReason,
    FairnessPolicy,
    Gender,
    GroupMeta,
    GroupResult,
    GroupStrategy,
    HistoryEvent,
    PickResult,
    SelectionMeta,
    WeightContext,
)

__all__ = [
    "Candidate",
    "CandidateStatus",
    "CandidateTrace",
    "CooldownOutcome",
    "DEFAULT_STRATEGY_REGISTRY",
    "ENGINE_VERSION",
    "EligibilityOutcome",
    "EventKind",
    "ExclusionReason",
    "FairnessPolicy",
    "FairnessReport",
    "Gender",
    "GroupMeta",
    "GroupRequest",
    "GroupResult",
    "GroupStrategy",
    "HistoryEvent",
    "HistoryIndex",
    "LoadDetail",
    "LoadReport",
    "PartitionOutcome",
    "PickRequest",
    "PickResult",
    "PluginConfig",
    "SelectionEngine",
    "SelectionMeta",
    "StrategyDescriptor",
    "StrategyInfo",
    "StrategyRegistry",
    "WeightContext",
    "WeightExpressionError",
    "WinnerExplanation",
    "apply_cooldown",
    "compile_weight_spec",
    "compute_weights",
    "draw",
    "explain_winners",
    "explanation_summary",
    "fairness_report",
    "filter_candidates",
    "partition",
    "selection_engine",
]
