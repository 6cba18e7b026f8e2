"""
Adaptive test engine: session lifecycle for Computerized Adaptive Testing.

The engine is stateless between calls. Every operation takes a
``SessionState`` and returns a new one (or a value derived from it); the host
owns storage and lifetime of the state. Any number of sessions can be scored
concurrently because no mutable data is shared between them.

Typical loop:

    state = initialize_session(settings)
    while not should_terminate(state, settings):
        item_id = select_next_item(pool, state.administered_item_ids,
                                   state.theta, settings)
        if item_id is None:
            state = mark_pool_exhausted(state)
            continue
        is_correct = deliver(item_id)          # host side
        state = process_response(state, items[item_id], is_correct, settings)
    result = finalize(state, settings)

``CATSessionManager`` wraps the same calls for hosts that prefer to bind the
pool and settings once.
"""
import logging
import math
import random
from dataclasses import asdict, dataclass, field, replace
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from adaptive_cat.ability_estimation import (
    estimate_ability_eap,
    estimate_ability_mle,
    standard_error,
)
from adaptive_cat.content_balancing import ContentPolicy, track_category_coverage
from adaptive_cat.exceptions import ConfigurationError
from adaptive_cat.exposure_control import ExposureMonitor
from adaptive_cat.item_pool import load_item_pool
from adaptive_cat.item_selection import select_next_item
from adaptive_cat.models import (
    Estimator,
    Item,
    ItemId,
    ResponseRecord,
    SessionState,
)
from adaptive_cat.score_conversion import (
    confidence_interval,
    final_score,
    performance_level,
    theta_to_percentile,
)
from adaptive_cat.settings import CATSettings, load_settings
from adaptive_cat.stopping_rules import evaluate_session, should_terminate

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ItemReport:
    """Per-item line of the final report."""

    item_id: ItemId
    is_correct: bool
    difficulty: float
    discrimination: float
    content_category: Optional[str]
    theta_after: float
    standard_error_after: float


@dataclass(frozen=True)
class CATReport:
    """Audit summary of a finished (or abandoned) session."""

    items: List[ItemReport]
    theta_trajectory: List[float]
    correct_count: int
    accuracy: float
    stop_reason: Optional[str]
    confidence_interval: Tuple[float, float]
    percentile: float
    final_score: float
    scoring_method: str
    performance_level: str
    category_breakdown: Dict[str, Dict[str, Any]] = field(default_factory=dict)


@dataclass(frozen=True)
class CATResult:
    """Final ability estimate and report."""

    final_theta: float
    final_standard_error: float
    items_administered: int
    report: CATReport

    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready mapping. Infinite standard errors become None."""
        return _finite_or_none(asdict(self))


def _finite_or_none(value: Any) -> Any:
    if isinstance(value, float) and math.isinf(value):
        return None
    if isinstance(value, dict):
        return {k: _finite_or_none(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_finite_or_none(v) for v in value]
    return value


def initialize_session(
    settings: Union[CATSettings, Mapping[str, Any]],
) -> SessionState:
    """
    Create a fresh session state.

    Args:
        settings: Validated ``CATSettings`` or a raw mapping of options.

    Returns:
        SessionState at ``theta_start`` with infinite standard error and no
        history.

    Raises:
        ConfigurationError: If the settings are invalid.
    """
    settings = load_settings(settings)
    logger.info(
        f"Session initialized: model={settings.model.value}, "
        f"theta_start={settings.theta_start}, estimator={settings.estimator.value}"
    )
    return SessionState(
        theta=settings.theta_start,
        standard_error=math.inf,
        theta_start=settings.theta_start,
    )


def process_response(
    state: SessionState,
    item: Item,
    is_correct: bool,
    settings: Union[CATSettings, Mapping[str, Any]],
) -> SessionState:
    """
    Score a response and return the next session state.

    Appends the item to the history, re-estimates theta from the full
    history, and recomputes the standard error at the new theta. The input
    state is left untouched.

    Args:
        state: Current session state.
        item: The item that was administered.
        is_correct: Whether the response was correct.
        settings: Session settings, or a raw mapping of options.

    Returns:
        Updated SessionState.

    Raises:
        ValueError: If the item was already administered in this session, or
            the session already holds ``max_items`` responses.
        ConfigurationError: If the settings are invalid.
    """
    settings = load_settings(settings)
    if state.item_count >= settings.max_items:
        raise ValueError(
            f"Session already administered max_items ({settings.max_items}) items"
        )
    if item.id in state.administered_item_ids:
        raise ValueError(f"Item {item.id} was already administered in this session")

    responses = [(r.irt_parameters, r.is_correct) for r in state.response_history]
    responses.append((item.irt_parameters, is_correct))

    if settings.estimator == Estimator.EAP:
        theta, _ = estimate_ability_eap(
            responses,
            model=settings.model,
            theta_min=settings.theta_min,
            theta_max=settings.theta_max,
            prior_mean=settings.prior_mean,
            prior_sd=settings.prior_sd,
        )
    else:
        theta = estimate_ability_mle(
            responses,
            model=settings.model,
            theta_min=settings.theta_min,
            theta_max=settings.theta_max,
            theta_start=state.theta,
        )

    se = standard_error(theta, [params for params, _ in responses], settings.model)

    record = ResponseRecord(
        item_id=item.id,
        is_correct=is_correct,
        irt_parameters=item.irt_parameters,
        content_category=item.content_category,
        theta_after=theta,
        standard_error_after=se,
    )

    logger.debug(
        f"Response #{state.item_count + 1} "
        f"(item {item.id}, correct={is_correct}) -> "
        f"theta={theta:.3f}, SE={se:.3f}",
        extra={
            "item_id": item.id,
            "theta": theta,
            "standard_error": se,
            "item_count": state.item_count + 1,
        },
    )

    return replace(
        state,
        theta=theta,
        standard_error=se,
        administered_item_ids=state.administered_item_ids + (item.id,),
        response_history=state.response_history + (record,),
        pool_exhausted=False,
    )


def mark_pool_exhausted(state: SessionState) -> SessionState:
    """Record that the last selection found no eligible item."""
    return replace(state, pool_exhausted=True)


def finalize(
    state: SessionState, settings: Union[CATSettings, Mapping[str, Any]]
) -> CATResult:
    """
    Build the final result from a session state.

    Pure read; the state is not modified.

    Args:
        state: Final session state.
        settings: Session settings, or a raw mapping of options.

    Returns:
        CATResult with final estimates and the audit report.

    Raises:
        ConfigurationError: If the settings are invalid.
    """
    settings = load_settings(settings)
    items = [
        ItemReport(
            item_id=r.item_id,
            is_correct=r.is_correct,
            difficulty=r.irt_parameters.difficulty,
            discrimination=r.irt_parameters.discrimination,
            content_category=r.content_category,
            theta_after=r.theta_after,
            standard_error_after=r.standard_error_after,
        )
        for r in state.response_history
    ]

    correct_count = state.correct_count
    accuracy = correct_count / state.item_count if state.item_count else 0.0

    category_breakdown: Dict[str, Dict[str, Any]] = {}
    for category, count in track_category_coverage(state.response_history).items():
        category_correct = sum(
            1
            for r in state.response_history
            if r.content_category == category and r.is_correct
        )
        category_breakdown[category] = {
            "items_administered": count,
            "correct_count": category_correct,
            "accuracy": round(category_correct / count, 3),
        }

    decision = evaluate_session(state, settings)

    report = CATReport(
        items=items,
        theta_trajectory=state.theta_history,
        correct_count=correct_count,
        accuracy=round(accuracy, 3),
        stop_reason=decision.reason,
        confidence_interval=confidence_interval(
            state.theta, state.standard_error, settings.theta_min, settings.theta_max
        ),
        percentile=round(theta_to_percentile(state.theta), 1),
        final_score=final_score(state.theta, settings),
        scoring_method=settings.scoring_method.value,
        performance_level=performance_level(state.theta),
        category_breakdown=category_breakdown,
    )

    logger.info(
        f"Session finalized: theta={state.theta:.3f}, SE={state.standard_error:.3f}, "
        f"items={state.item_count}, correct={correct_count}, "
        f"stop_reason={decision.reason}",
        extra={
            "theta": state.theta,
            "standard_error": state.standard_error,
            "item_count": state.item_count,
        },
    )

    return CATResult(
        final_theta=state.theta,
        final_standard_error=state.standard_error,
        items_administered=state.item_count,
        report=report,
    )


class CATSessionManager:
    """
    Convenience orchestrator binding an item pool and settings.

    Holds no session state: every method takes the current ``SessionState``
    and returns the next one, exactly like the module-level functions. One
    manager can serve any number of concurrent sessions over the same pool;
    only the optional random source and exposure monitor are shared.
    """

    def __init__(
        self,
        pool: Sequence[Union[Item, Mapping[str, Any]]],
        settings: Union[CATSettings, Mapping[str, Any]],
        content_policy: Optional[ContentPolicy] = None,
        rng: Optional[random.Random] = None,
        monitor: Optional[ExposureMonitor] = None,
    ):
        """
        Raises:
            ConfigurationError: If the settings are invalid, or content
                balancing is enabled without a policy.
            ItemPoolError: If the pool records are invalid.
        """
        self.settings = load_settings(settings)
        if self.settings.content_balancing and content_policy is None:
            raise ConfigurationError(
                "content_balancing is enabled but no content policy was supplied"
            )
        self.pool = load_item_pool(pool)
        self.content_policy = content_policy
        self.rng = rng
        self.monitor = monitor
        self._items: Dict[ItemId, Item] = {item.id: item for item in self.pool}

        logger.info(
            f"CATSessionManager initialized: model={self.settings.model.value}, "
            f"pool={len(self.pool)} items, "
            f"items=[{self.settings.min_items}, {self.settings.max_items}], "
            f"SE target={self.settings.standard_error_target}"
        )

    def initialize(self) -> SessionState:
        return initialize_session(self.settings)

    def next_item(self, state: SessionState) -> Tuple[SessionState, Optional[ItemId]]:
        """
        Select the next item.

        Returns:
            (state, item_id). When nothing is eligible the item id is None
            and the returned state is marked as pool-exhausted.
        """
        item_id = select_next_item(
            self.pool,
            state.administered_item_ids,
            state.theta,
            self.settings,
            content_policy=self.content_policy,
            rng=self.rng,
            monitor=self.monitor,
        )
        if item_id is None:
            return mark_pool_exhausted(state), None
        return state, item_id

    def record_response(
        self, state: SessionState, item_id: ItemId, is_correct: bool
    ) -> SessionState:
        """
        Score a response to a pool item.

        Raises:
            ValueError: If the id is not in the pool or was already administered.
        """
        item = self._items.get(item_id)
        if item is None:
            raise ValueError(f"Item {item_id} is not in the item pool")
        return process_response(state, item, is_correct, self.settings)

    def should_terminate(self, state: SessionState) -> bool:
        return should_terminate(state, self.settings)

    def finalize(self, state: SessionState) -> CATResult:
        return finalize(state, self.settings)
