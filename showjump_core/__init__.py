from .errors import (
    ConfigurationError,
    ErrorDetail,
    InvalidRuleParameters,
    NotFound,
    ShowjumpError,
    StoreFailure,
    ValidationError,
)
from .types import EntityStatus, ScoreStatus, ShowType
from .rules import CATALOG, VALID_CLASS_RULES, ClassRule, RuleSpec, Timing, get_rule
from .models import CompetitionClass, Score, Show, StartlistEntry
from .validation import (
    ClassInput,
    ClassUpdate,
    InputSanitizer,
    ScoreSubmission,
    ShowInput,
    ShowUpdate,
    StartlistEntryInput,
)
from .lifecycle import derive_class_status, derive_show_status, derive_status
from .scoring import ScoreResult, score_submission
from .ranking import (
    RankingEntry,
    RankingResult,
    RankingRow,
    TeamStanding,
    build_scope_entries,
    classify_two_phase,
    rank_scope,
    team_standings,
)
from .reconciler import ReconcileReport, StatusChange, reconcile_classes, reconcile_shows, reconcile_statuses
from .config import Settings, configure_logging, load_settings
from .store import StoreInterface, create_store

__all__ = [
    "ConfigurationError",
    "ErrorDetail",
    "InvalidRuleParameters",
    "NotFound",
    "ShowjumpError",
    "StoreFailure",
    "ValidationError",
    "EntityStatus",
    "ScoreStatus",
    "ShowType",
    "CATALOG",
    "VALID_CLASS_RULES",
    "ClassRule",
    "RuleSpec",
    "Timing",
    "get_rule",
    "CompetitionClass",
    "Score",
    "Show",
    "StartlistEntry",
    "ClassInput",
    "ClassUpdate",
    "InputSanitizer",
    "ScoreSubmission",
    "ShowInput",
    "ShowUpdate",
    "StartlistEntryInput",
    "derive_class_status",
    "derive_show_status",
    "derive_status",
    "ScoreResult",
    "score_submission",
    "RankingEntry",
    "RankingResult",
    "RankingRow",
    "TeamStanding",
    "build_scope_entries",
    "classify_two_phase",
    "rank_scope",
    "team_standings",
    "ReconcileReport",
    "StatusChange",
    "reconcile_classes",
    "reconcile_shows",
    "reconcile_statuses",
    "Settings",
    "configure_logging",
    "load_settings",
    "StoreInterface",
    "create_store",
]
