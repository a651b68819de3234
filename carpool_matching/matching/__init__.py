"""Route matching pipeline: retrieval, scoring, ranking and orchestration."""

from .orchestrator import MatchingConfig, MatchingOrchestrator
from .ranking import rank
from .retriever import CandidateRetriever, RetrievalConfig
from .scoring import OverlapScorer, ScoringConfig, ScoringWeights

__all__ = [
    "CandidateRetriever",
    "MatchingConfig",
    "MatchingOrchestrator",
    "OverlapScorer",
    "RetrievalConfig",
    "ScoringConfig",
    "ScoringWeights",
    "rank",
]
