"""Text processing utilities for extracted content."""

import re
from collections import Counter
from unicodedata import normalize

_TAG_WORD = re.compile(r'\b\w{4,}\b')
_HASHTAG = re.compile(r'#(\w+)')

# Portuguese function words that dominate raw frequency counts
STOP_WORDS = frozenset({
    'que', 'de', 'do', 'da', 'em', 'um', 'uma', 'com', 'não', 'para',
    'por', 'mais', 'como', 'mas', 'foi', 'ao', 'ele', 'das', 'tem',
    'à', 'seu', 'sua', 'ou', 'ser', 'quando', 'muito', 'há', 'nos',
    'já', 'está', 'eu', 'também', 'só', 'pelo', 'pela', 'até', 'isso',
    'ela', 'entre', 'era', 'depois', 'sem', 'mesmo', 'aos', 'ter',
    'seus', 'suas', 'numa', 'pelos', 'pelas', 'esse', 'essa', 'num',
    'nem', 'meu', 'às', 'minha', 'têm', 'dele', 'dela', 'outros',
    'outras', 'este', 'esta', 'isto', 'aquele', 'aquela', 'sobre',
    'ainda', 'onde', 'qual', 'quem', 'porque', 'pode', 'podem', 'foram',
    'mais', 'muitos', 'muitas', 'cada', 'todo', 'toda', 'todos', 'todas',
})


def extract_tags(content: str, limit: int = 10) -> list[str]:
    """Most frequent words of four or more characters.

    Args:
        content: Body text
        limit: Maximum number of tags

    Returns:
        Tags ordered by frequency, ties in first-seen order
    """
    if not content:
        return []

    words = _TAG_WORD.findall(content.lower())
    counts = Counter(word for word in words if word not in STOP_WORDS)
    return [word for word, _ in counts.most_common(limit)]


def extract_hashtags(text: str) -> list[str]:
    """Hashtags found in text, lowercased, without '#', in first-seen order."""
    if not text:
        return []

    text = normalize('NFC', text)
    return list(dict.fromkeys(tag.lower() for tag in _HASHTAG.findall(text)))


def truncate(text: str, max_length: int) -> str:
    """Hard cut at max_length characters."""
    return text[:max_length] if len(text) > max_length else text
