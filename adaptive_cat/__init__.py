"""
Computerized Adaptive Testing (CAT) engine.

Item Response Theory based item selection, ability estimation, stopping rules
and final scoring. Pure, synchronous functions over immutable session state.
"""

from .ability_estimation import (
    estimate_ability_eap,
    estimate_ability_mle,
    standard_error,
)
from .content_balancing import (
    CategoryQuota,
    CategoryQuotaPolicy,
    ContentPolicy,
    track_category_coverage,
)
from .engine import (
    CATReport,
    CATResult,
    CATSessionManager,
    ItemReport,
    finalize,
    initialize_session,
    mark_pool_exhausted,
    process_response,
)
from .exceptions import CATError, ConfigurationError, ItemPoolError
from .exposure_control import ExposureMonitor, apply_randomesque
from .item_pool import load_item_pool
from .item_selection import select_next_item
from .models import (
    Estimator,
    IRTModel,
    IRTParameters,
    Item,
    ResponseRecord,
    ScoringMethod,
    SessionState,
)
from .response_models import information, probability
from .settings import CATSettings, load_settings
from .stopping_rules import StoppingDecision, check_stopping_criteria, should_terminate

__all__ = [
    "CATSettings",
    "load_settings",
    "IRTModel",
    "Estimator",
    "ScoringMethod",
    "IRTParameters",
    "Item",
    "ResponseRecord",
    "SessionState",
    "load_item_pool",
    "probability",
    "information",
    "estimate_ability_mle",
    "estimate_ability_eap",
    "standard_error",
    "select_next_item",
    "apply_randomesque",
    "ExposureMonitor",
    "ContentPolicy",
    "CategoryQuota",
    "CategoryQuotaPolicy",
    "track_category_coverage",
    "check_stopping_criteria",
    "should_terminate",
    "StoppingDecision",
    "initialize_session",
    "process_response",
    "mark_pool_exhausted",
    "finalize",
    "CATSessionManager",
    "CATResult",
    "CATReport",
    "ItemReport",
    "CATError",
    "ConfigurationError",
    "ItemPoolError",
]
