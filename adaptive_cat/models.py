"""
Value types for adaptive test sessions.

All types are immutable. Engine operations take a ``SessionState`` and return a
new one; nothing here is ever mutated after construction.
"""

import enum
import math
from dataclasses import dataclass, field
from typing import Hashable, List, Optional, Tuple

ItemId = Hashable


class IRTModel(str, enum.Enum):
    """Response models understood by the engine."""

    RASCH = "rasch"
    TWO_PL = "twoPL"
    THREE_PL = "threePL"
    # Single-boundary dichotomization of a graded item; scored as 2PL.
    GRADED = "graded"


class Estimator(str, enum.Enum):
    """Ability estimation methods."""

    MLE = "mle"
    EAP = "eap"


class ScoringMethod(str, enum.Enum):
    """How the final score in a report is expressed."""

    THETA = "theta"
    SCALED = "scaled"
    PERCENT = "percent"


@dataclass(frozen=True)
class IRTParameters:
    """Calibrated item parameters.

    Attributes:
        difficulty: Location parameter (b).
        discrimination: Slope parameter (a). Must be > 0.
        guessing: Lower asymptote (c), used by the 3PL model only.
        slipping: Carried for the host; none of the supported models use it.
    """

    difficulty: float = 0.0
    discrimination: float = 1.0
    guessing: float = 0.0
    slipping: float = 0.0


@dataclass(frozen=True)
class Item:
    """One item from the pool."""

    id: ItemId
    irt_parameters: IRTParameters = field(default_factory=IRTParameters)
    content_category: Optional[str] = None


@dataclass(frozen=True)
class ResponseRecord:
    """A scored response, as stored in the session history."""

    item_id: ItemId
    is_correct: bool
    irt_parameters: IRTParameters
    content_category: Optional[str] = None
    theta_after: float = 0.0
    standard_error_after: float = math.inf


@dataclass(frozen=True)
class SessionState:
    """State of one examinee's test attempt.

    ``administered_item_ids`` and ``response_history`` always have the same
    length and order. ``standard_error`` is ``math.inf`` until the
    administered items carry some information.
    """

    theta: float
    standard_error: float = math.inf
    administered_item_ids: Tuple[ItemId, ...] = ()
    response_history: Tuple[ResponseRecord, ...] = ()
    pool_exhausted: bool = False
    theta_start: float = 0.0

    @property
    def item_count(self) -> int:
        return len(self.administered_item_ids)

    @property
    def correct_count(self) -> int:
        return sum(1 for r in self.response_history if r.is_correct)

    @property
    def theta_history(self) -> List[float]:
        """Theta trajectory: the starting value, then one estimate per response."""
        return [self.theta_start] + [r.theta_after for r in self.response_history]
