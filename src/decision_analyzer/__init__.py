"""Decision Analyzer - AI-scored weighted multi-criteria decision analysis.

Pipeline: validate -> build prompt -> model call with failover -> normalize.
What-if: rescore a stored result locally when criterion weights change.
"""

from .exceptions import (
    AnalysisFailed,
    ConfigurationError,
    DecisionAnalyzerError,
    InvalidJson,
    NoJsonFound,
    ProviderUnavailable,
    ValidationFailed,
)
from .normalizer import normalize, parse_response
from .orchestrator import AnalysisOrchestrator, analyze_decision
from .prompt_builder import build_prompt
from .schema import (
    AnalysisResult,
    AnalysisStage,
    Constraint,
    Criterion,
    Decision,
    Option,
)
from .validation import validate_decision
from .whatif import rank_scores, rescore, what_if

__version__ = "1.0.0"

__all__ = [
    "AnalysisFailed",
    "AnalysisOrchestrator",
    "AnalysisResult",
    "AnalysisStage",
    "ConfigurationError",
    "Constraint",
    "Criterion",
    "Decision",
    "DecisionAnalyzerError",
    "InvalidJson",
    "NoJsonFound",
    "Option",
    "ProviderUnavailable",
    "ValidationFailed",
    "analyze_decision",
    "build_prompt",
    "normalize",
    "parse_response",
    "rank_scores",
    "rescore",
    "validate_decision",
    "what_if",
]
