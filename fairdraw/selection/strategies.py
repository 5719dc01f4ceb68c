"""Weight strategy presets and the registry that resolves them."""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
import math
import re
import threading
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Union

from .expressions import WeightExpressionError, compile_weight_spec
from .types import Candidate, WeightContext

logger = logging.getLogger(__name__)

DEFAULT_STRATEGY_ID = "classic"
PLUGIN_ID_PATTERN = re.compile(r"^[a-z0-9-]{2,40}$")

STATUS_LOADED = "loaded"
STATUS_SKIPPED = "skipped"
STATUS_ERROR = "error"


@dataclass(frozen=True)
class StrategyDescriptor:
    """Definition of a weight strategy.

    Attributes
    ----------
    id : str
        Registry key used to identify the strategy. This is the value stored
        in :attr:`FairnessPolicy.strategy_preset`.
    name : str
        Display label.
    weight_transform : Callable[[Candidate, WeightContext], float]
        Pure function returning the non-negative draw weight of a candidate.
    description : Optional[str]
        Human-readable summary of the strategy's behaviour.
    builtin : bool
        Built-in strategies are permanent and cannot be replaced or removed.
    """

    id: str
    name: str
    weight_transform: Callable[[Candidate, WeightContext], float]
    description: Optional[str] = None
    builtin: bool = False

    def weight(
        self, candidate: Candidate, context: Optional[WeightContext] = None
    ) -> float:
        """Return the clamped weight of ``candidate``.

        Negative and non-finite outputs are mapped to ``0.0`` so that a
        misbehaving transform can never stall or break a draw.
        """
        value = float(self.weight_transform(candidate, context or WeightContext()))
        if not math.isfinite(value) or value < 0:
            return 0.0
        return value


@dataclass(frozen=True)
class StrategyInfo:
    id: str
    name: str


@dataclass(frozen=True)
class PluginConfig:
    """Serialized plugin definition supplied by the host application.

    ``weight_expression`` is either an arithmetic expression string or a
    parametric mapping (see :mod:`fairdraw.selection.expressions`).
    """

    id: str
    name: str
    weight_expression: Union[str, Mapping[str, Any]]
    description: Optional[str] = None

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> "PluginConfig":
        """Build a config from JSON-like data.

        The expression is read from ``weight_expression`` (or ``expression``).
        When neither key is present the parametric keys found at the top
        level are used, which is the layout older plugin files have.
        """
        if "weight_expression" in raw:
            expression = raw["weight_expression"]
        elif "expression" in raw:
            expression = raw["expression"]
        else:
            expression = {
                key: value
                for key, value in raw.items()
                if key not in ("id", "name", "description")
            }
        return cls(
            id=str(raw.get("id") or "").strip(),
            name=str(raw.get("name") or "").strip(),
            weight_expression=expression,
            description=raw.get("description"),
        )


@dataclass(frozen=True)
class LoadDetail:
    id: str
    status: str
    reason: Optional[str] = None


@dataclass(frozen=True)
class LoadReport:
    """Per-batch summary returned by :meth:`StrategyRegistry.register`."""

    loaded: int = 0
    skipped: int = 0
    errors: tuple[str, ...] = ()
    details: tuple[LoadDetail, ...] = field(default=())


# Candidates every plugin transform is exercised against before it is accepted.
_TRIAL_CANDIDATES = (
    Candidate(id="trial-default"),
    Candidate(id="trial-veteran", display_weight=5, pick_count=40, score=120),
    Candidate(id="trial-negative", display_weight=1, pick_count=3, score=-50),
    Candidate(id="trial-heavy", display_weight=100, pick_count=0, score=0),
)
_TRIAL_CONTEXTS = (
    WeightContext(),
    WeightContext(pool_size=30, mean_pick_count=4.5, max_score=120),
)


def _validate_transform(transform: Callable[[Candidate, WeightContext], float]) -> None:
    for candidate in _TRIAL_CANDIDATES:
        for context in _TRIAL_CONTEXTS:
            value = transform(candidate, context)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise WeightExpressionError("weight must be numeric")
            if not math.isfinite(value):
                raise WeightExpressionError(
                    f"weight for trial candidate '{candidate.id}' is not finite"
                )
            if value < 0:
                raise WeightExpressionError(
                    f"weight for trial candidate '{candidate.id}' is negative"
                )


class StrategyRegistry:
    """Registry mapping strategy ids to descriptors.

    Built-in descriptors are fixed at construction. Plugin descriptors are
    stored in a separate table that writers replace wholesale under a lock,
    so :meth:`resolve` and :meth:`list` can read without blocking.
    """

    def __init__(self, builtins: Optional[Iterable[StrategyDescriptor]] = None) -> None:
        self._builtins: Dict[str, StrategyDescriptor] = {}
        for descriptor in BUILTIN_STRATEGIES if builtins is None else builtins:
            if descriptor.id in self._builtins:
                raise ValueError(f"Strategy '{descriptor.id}' is already registered")
            self._builtins[descriptor.id] = descriptor
        if DEFAULT_STRATEGY_ID not in self._builtins:
            raise ValueError(
                f"Built-in strategies must include '{DEFAULT_STRATEGY_ID}'"
            )
        self._plugins: Mapping[str, StrategyDescriptor] = MappingProxyType({})
        self._write_lock = threading.Lock()

    def register(
        self, configs: Iterable[Union[PluginConfig, Mapping[str, Any]]]
    ) -> LoadReport:
        """Validate and load a batch of plugin configs.

        Parameters
        ----------
        configs : Iterable[PluginConfig | Mapping]
            Plugin configs, either as :class:`PluginConfig` objects or as raw
            mappings accepted by :meth:`PluginConfig.from_mapping`.

        Returns
        -------
        LoadReport
            Counts of loaded and skipped items plus one detail per item. A
            malformed item is reported with status ``"error"`` and never
            prevents the remaining items from loading.
        """
        with self._write_lock:
            plugins = dict(self._plugins)
            report = self._register_into(plugins, configs)
            self._plugins = MappingProxyType(plugins)
        return report

    def reset(self) -> None:
        """Remove every plugin descriptor, keeping the built-ins."""
        with self._write_lock:
            self._plugins = MappingProxyType({})

    def reload(
        self, configs: Iterable[Union[PluginConfig, Mapping[str, Any]]]
    ) -> LoadReport:
        """Replace the plugin set with ``configs`` in one step."""
        with self._write_lock:
            plugins: Dict[str, StrategyDescriptor] = {}
            report = self._register_into(plugins, configs)
            self._plugins = MappingProxyType(plugins)
        return report

    def resolve(self, strategy_id: Optional[str]) -> StrategyDescriptor:
        """Return the descriptor for ``strategy_id``, or ``classic`` if unknown."""
        descriptor = self.get(strategy_id)
        if descriptor is None:
            logger.debug(
                f"Unknown strategy '{strategy_id}', falling back to '{DEFAULT_STRATEGY_ID}'"
            )
            return self._builtins[DEFAULT_STRATEGY_ID]
        return descriptor

    def get(self, strategy_id: Optional[str]) -> Optional[StrategyDescriptor]:
        """Return the descriptor registered under ``strategy_id``, if any."""
        if strategy_id is None:
            return None
        descriptor = self._builtins.get(strategy_id)
        if descriptor is not None:
            return descriptor
        return self._plugins.get(strategy_id)

    def list(self) -> list[StrategyInfo]:
        """Return built-ins followed by plugins, each in registration order."""
        plugins = self._plugins
        return [
            StrategyInfo(id=d.id, name=d.name)
            for d in (*self._builtins.values(), *plugins.values())
        ]

    def available_strategies(self) -> Dict[str, StrategyDescriptor]:
        """Return a copy of all registered descriptors keyed by identifier."""
        return {**self._builtins, **self._plugins}

    def _register_into(
        self,
        plugins: Dict[str, StrategyDescriptor],
        configs: Iterable[Union[PluginConfig, Mapping[str, Any]]],
    ) -> LoadReport:
        loaded = 0
        skipped = 0
        errors: list[str] = []
        details: list[LoadDetail] = []
        seen_in_batch: set[str] = set()

        for index, raw in enumerate(configs):
            if isinstance(raw, PluginConfig):
                config = raw
            elif isinstance(raw, Mapping):
                config = PluginConfig.from_mapping(raw)
            else:
                message = f"plugins[{index}] is not an object"
                errors.append(message)
                details.append(LoadDetail(id="", status=STATUS_ERROR, reason=message))
                logger.warning(message)
                continue

            reason = self._skip_reason(config.id, seen_in_batch)
            if reason is not None:
                skipped += 1
                details.append(LoadDetail(id=config.id, status=STATUS_SKIPPED, reason=reason))
                logger.warning(f"plugins[{index}] skipped: {reason}")
                continue

            try:
                descriptor = self._build_descriptor(config)
            except (WeightExpressionError, ValueError) as exc:
                message = f"plugins[{index}] ('{config.id}'): {exc}"
                errors.append(message)
                details.append(LoadDetail(id=config.id, status=STATUS_ERROR, reason=str(exc)))
                logger.warning(message)
                continue

            seen_in_batch.add(config.id)
            plugins[config.id] = descriptor
            loaded += 1
            details.append(LoadDetail(id=config.id, status=STATUS_LOADED))

        logger.info(
            f"Strategy plugins processed: {loaded} loaded, {skipped} skipped, "
            f"{len(errors)} errors"
        )
        return LoadReport(
            loaded=loaded,
            skipped=skipped,
            errors=tuple(errors),
            details=tuple(details),
        )

    def _skip_reason(self, plugin_id: str, seen_in_batch: set[str]) -> Optional[str]:
        if plugin_id in self._builtins:
            return f"'{plugin_id}' collides with a built-in strategy"
        if plugin_id in seen_in_batch:
            return f"'{plugin_id}' is duplicated within the batch"
        return None

    @staticmethod
    def _build_descriptor(config: PluginConfig) -> StrategyDescriptor:
        if not config.id:
            raise ValueError("plugin id must not be empty")
        if not PLUGIN_ID_PATTERN.match(config.id):
            raise ValueError(
                "plugin id must be 2-40 characters of lowercase letters, digits or '-'"
            )
        if not config.name:
            raise ValueError("plugin name must not be empty")
        transform = compile_weight_spec(config.weight_expression)
        _validate_transform(transform)
        return StrategyDescriptor(
            id=config.id,
            name=config.name,
            weight_transform=transform,
            description=config.description or "Provided by a strategy plugin",
        )


def _classic_weight(candidate: Candidate, context: WeightContext) -> float:
    return float(candidate.display_weight)


def _balanced_weight(candidate: Candidate, context: WeightContext) -> float:
    return candidate.display_weight / (1 + candidate.pick_count)


def _momentum_weight(candidate: Candidate, context: WeightContext) -> float:
    return candidate.display_weight * (1 + max(0, candidate.score) / 10)


BUILTIN_STRATEGIES = (
    StrategyDescriptor(
        id="classic",
        name="Classic",
        weight_transform=_classic_weight,
        description="Draw strictly by the assigned weight.",
        builtin=True,
    ),
    StrategyDescriptor(
        id="balanced",
        name="Balanced",
        weight_transform=_balanced_weight,
        description="The more often a candidate was picked, the lower its weight.",
        builtin=True,
    ),
    StrategyDescriptor(
        id="momentum",
        name="Momentum",
        weight_transform=_momentum_weight,
        description="Higher scores earn a proportional weight bonus.",
        builtin=True,
    ),
)

BUILTIN_STRATEGY_IDS = frozenset(d.id for d in BUILTIN_STRATEGIES)

DEFAULT_STRATEGY_REGISTRY = StrategyRegistry()

__all__ = [
    "BUILTIN_STRATEGIES",
    "BUILTIN_STRATEGY_IDS",
    "DEFAULT_STRATEGY_ID",
    "DEFAULT_STRATEGY_REGISTRY",
    "LoadDetail",
    "LoadReport",
    "PluginConfig",
    "StrategyDescriptor",
    "StrategyInfo",
    "StrategyRegistry",
]
