"""Content processing modules for the monitoring pipeline."""

from .dedupe import DedupResult, DeduplicationGate
from .matching import KeywordMatcher, MatchOutcome, MatchResult
from .sentiment import (
    ExternalSentimentClassifier,
    LexiconSentimentClassifier,
    SentimentClassifier,
    analyze_batch,
    analyze_text,
)

__all__ = [
    "DedupResult",
    "DeduplicationGate",
    "KeywordMatcher",
    "MatchOutcome",
    "MatchResult",
    "ExternalSentimentClassifier",
    "LexiconSentimentClassifier",
    "SentimentClassifier",
    "analyze_batch",
    "analyze_text",
]
