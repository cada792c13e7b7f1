"""
Keyword and hashtag matching for extracted content.

Matching is case-insensitive substring containment, not word matching:
"cat" matches "category". Stored matches depend on this behaviour.
"""

from dataclasses import dataclass, field
from enum import Enum

from ..logging import get_logger
from .text_utils import extract_hashtags

logger = get_logger(__name__)


class MatchOutcome(Enum):
    """Why a candidate was accepted or rejected."""
    ACCEPTED = "accepted"
    ACCEPTED_NO_FILTER = "accepted_no_filter"
    EXCLUDED = "excluded"
    NO_KEYWORD = "no_keyword"


@dataclass
class MatchResult:
    """Keyword matching result."""
    accepted: bool
    outcome: MatchOutcome
    matched_keywords: list[str] = field(default_factory=list)
    matched_hashtags: list[str] = field(default_factory=list)
    excluded_by: str | None = None


class KeywordMatcher:
    """Applies a source's required and excluded keyword lists."""

    def match(
        self,
        text: str,
        keywords: list[str],
        exclude_keywords: list[str],
        hashtags: list[str] | None = None,
    ) -> MatchResult:
        """Match text against keyword rules.

        Exclusions are checked first and win over any required match. An empty
        required list accepts everything that is not excluded.

        Args:
            text: Candidate body text
            keywords: Required keywords, any one must appear
            exclude_keywords: Keywords that reject the candidate
            hashtags: Hashtags to record when present in the text

        Returns:
            MatchResult
        """
        text_lower = text.lower()

        for keyword in exclude_keywords:
            term = keyword.lower()
            if term and term in text_lower:
                return MatchResult(
                    accepted=False,
                    outcome=MatchOutcome.EXCLUDED,
                    excluded_by=keyword,
                )

        matched_keywords = [
            keyword for keyword in keywords
            if keyword and keyword.lower() in text_lower
        ]
        matched_hashtags = self.match_hashtags(text, hashtags or [])

        if keywords:
            if not matched_keywords:
                return MatchResult(accepted=False, outcome=MatchOutcome.NO_KEYWORD)
            outcome = MatchOutcome.ACCEPTED
        else:
            outcome = MatchOutcome.ACCEPTED_NO_FILTER

        return MatchResult(
            accepted=True,
            outcome=outcome,
            matched_keywords=matched_keywords,
            matched_hashtags=matched_hashtags,
        )

    @staticmethod
    def match_hashtags(text: str, hashtags: list[str]) -> list[str]:
        """Configured hashtags that appear as #tag tokens in text."""
        if not hashtags:
            return []

        wanted = {tag.lower().lstrip('#') for tag in hashtags}
        return [tag for tag in extract_hashtags(text) if tag in wanted]
