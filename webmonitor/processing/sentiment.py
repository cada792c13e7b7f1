"""
Sentiment classification for extracted content.

The lexicon classifier is the default and needs no network access. External
classifiers (see models.sentiment_client) fall back to it on any failure, so
classification never fails a crawl.
"""

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable

from ..logging import get_logger, log_error
from ..schemas import SentimentLabel, SentimentResult
from ..utils import chunk_list

logger = get_logger(__name__)

POSITIVE_THRESHOLD = 0.1
NEGATIVE_THRESHOLD = -0.1

_TOKEN_PUNCTUATION = ".,;:!?¡¿()[]{}<>\"'“”‘’«»…-–—*/\\|"


def label_for_score(score: float) -> SentimentLabel:
    """Map a signed score to a label."""
    if score > POSITIVE_THRESHOLD:
        return SentimentLabel.POSITIVE
    if score < NEGATIVE_THRESHOLD:
        return SentimentLabel.NEGATIVE
    return SentimentLabel.NEUTRAL


class SentimentClassifier(ABC):
    """Strategy interface for sentiment classification."""

    name: str = "base"

    @abstractmethod
    async def analyze(self, text: str) -> SentimentResult:
        """Classify text.

        Args:
            text: Arbitrary text

        Returns:
            SentimentResult with label, score in [-1, 1] and confidence in [0, 1]
        """
        pass


class LexiconSentimentClassifier(SentimentClassifier):
    """Rule-based Portuguese sentiment with negation and intensifiers."""

    name = "lexicon"

    POSITIVE_WORDS = frozenset({
        'bom', 'boa', 'excelente', 'ótimo', 'ótima', 'maravilhoso', 'maravilhosa',
        'fantástico', 'fantástica', 'incrível', 'perfeito', 'perfeita', 'amor',
        'amei', 'adorei', 'gostei', 'gostou', 'feliz', 'alegre', 'satisfeito',
        'satisfeita', 'contente', 'positivo', 'positiva', 'sucesso', 'vitória',
        'conquista', 'realização', 'sonho', 'esperança', 'gratidão', 'obrigado',
        'obrigada', 'parabéns', 'legal', 'bacana', 'show', 'top', 'demais',
        'massa', 'sensacional', 'espetacular', 'lindo', 'linda', 'bonito',
        'bonita', 'gostoso', 'gostosa', 'delicioso', 'deliciosa', 'recomendo',
        'aprovado', 'aprovada', 'curtir', 'curti', 'like',
        '❤️', '😍', '😊', '😃', '👏', '🎉', '✨', '💖', '🥰', '😘',
    })

    NEGATIVE_WORDS = frozenset({
        'ruim', 'péssimo', 'péssima', 'horrível', 'terrível', 'odioso', 'odeio',
        'detesto', 'nojo', 'triste', 'chateado', 'chateada', 'irritado',
        'irritada', 'nervoso', 'nervosa', 'bravo', 'brava', 'furioso', 'furiosa',
        'decepção', 'decepcionado', 'decepcionada', 'frustrado', 'frustrada',
        'problema', 'erro', 'falha', 'defeito', 'lixo', 'porcaria', 'vergonha',
        'ridículo', 'ridícula', 'absurdo', 'absurda', 'inaceitável',
        'inadmissível', 'desastre', 'catástrofe', 'fracasso', 'falência',
        'prejuízo', 'perda', 'mentira', 'enganação', 'traição', 'injustiça',
        'injusto', 'injusta', 'cruel', 'maldade', 'violência', 'agressão',
        'bullying', 'preconceito',
        '😡', '😠', '😢', '😭', '💔', '😞', '😔', '🤬', '👎', '😤',
    })

    INTENSIFIERS = {
        'muito': 1.5,
        'super': 1.7,
        'extremamente': 2.0,
        'totalmente': 1.8,
        'completamente': 1.8,
        'bastante': 1.3,
        'bem': 1.2,
        'meio': 0.7,
        'pouco': 0.6,
    }

    NEGATORS = frozenset({'não', 'nunca', 'jamais', 'nem', 'nada', 'nenhum', 'nenhuma'})

    WINDOW = 2

    @staticmethod
    def tokenize(text: str) -> list[str]:
        """Lowercase whitespace tokens with surrounding punctuation removed."""
        tokens = []
        for raw in text.lower().split():
            token = raw.strip(_TOKEN_PUNCTUATION)
            if token:
                tokens.append(token)
        return tokens

    def score_tokens(self, tokens: list[str]) -> tuple[float, float, int]:
        """Accumulate positive and negative weight over tokens.

        Returns:
            (positive score, negative score, sentiment-bearing token count)
        """
        positive = 0.0
        negative = 0.0
        hits = 0

        for i, token in enumerate(tokens):
            is_positive = token in self.POSITIVE_WORDS
            if not is_positive and token not in self.NEGATIVE_WORDS:
                continue

            window = tokens[max(0, i - self.WINDOW):i]
            negated = any(prev in self.NEGATORS for prev in window)
            intensity = next(
                (self.INTENSIFIERS[prev] for prev in window if prev in self.INTENSIFIERS),
                1.0,
            )

            if is_positive != negated:
                positive += intensity
            else:
                negative += intensity
            hits += 1

        return positive, negative, hits

    async def analyze(self, text: str) -> SentimentResult:
        return self.analyze_sync(text)

    def analyze_sync(self, text: str) -> SentimentResult:
        """Synchronous classification, usable outside an event loop."""
        normalized = (text or "").strip()
        if len(normalized) < 3:
            return SentimentResult.neutral()

        tokens = self.tokenize(normalized)
        if not tokens:
            return SentimentResult.neutral()

        positive, negative, hits = self.score_tokens(tokens)

        score = (positive - negative) / max(positive + negative, 1.0)
        score = max(-1.0, min(1.0, score))
        confidence = min(0.9, max(0.1, hits / max(len(tokens) * 0.1, 1.0)))

        return SentimentResult(label=label_for_score(score), score=score, confidence=confidence)


class ExternalSentimentClassifier(SentimentClassifier):
    """Base for network classifiers; any failure degrades to the fallback."""

    name = "external"

    def __init__(self, fallback: SentimentClassifier | None = None):
        self.fallback = fallback or LexiconSentimentClassifier()

    @abstractmethod
    async def _classify(self, text: str) -> SentimentResult:
        """Call the external service."""
        pass

    async def analyze(self, text: str) -> SentimentResult:
        try:
            return await self._classify(text)
        except Exception as e:
            logger.warning(
                **log_error(e, context="external sentiment failed, using fallback", classifier=self.name)
            )
            return await self.fallback.analyze(text)


async def analyze_text(
    classifier: SentimentClassifier,
    text: str,
    max_length: int = 5000,
) -> SentimentResult:
    """Classify text with the given strategy, never raising.

    Args:
        classifier: Strategy chosen at wiring time
        text: Text to classify
        max_length: Characters passed on to the classifier

    Returns:
        SentimentResult, neutral for empty text
    """
    if not text or not text.strip():
        return SentimentResult.neutral()

    truncated = text[:max_length] + "..." if len(text) > max_length else text

    try:
        return await classifier.analyze(truncated)
    except Exception as e:
        logger.error(**log_error(e, context="sentiment analysis failed", classifier=classifier.name))
        return LexiconSentimentClassifier().analyze_sync(truncated)


async def analyze_batch(
    classifier: SentimentClassifier,
    texts: list[str],
    chunk_size: int = 10,
    pause: float = 1.0,
    max_length: int = 5000,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> list[SentimentResult]:
    """Classify texts in fixed-size chunks with a pause between chunks.

    A chunk that fails as a whole yields neutral results for each of its items.

    Args:
        classifier: Strategy chosen at wiring time
        texts: Texts to classify
        chunk_size: Texts per chunk
        pause: Seconds to wait between chunks
        max_length: Characters passed on to the classifier
        sleep: Awaitable sleep, replaceable in tests

    Returns:
        One result per input text, in input order
    """
    results: list[SentimentResult] = []
    chunks = chunk_list(texts, chunk_size)

    for index, chunk in enumerate(chunks):
        try:
            chunk_results = await asyncio.gather(
                *(analyze_text(classifier, text, max_length) for text in chunk)
            )
            results.extend(chunk_results)
        except Exception as e:
            logger.error(**log_error(e, context="sentiment batch chunk failed", chunk=index, size=len(chunk)))
            results.extend(SentimentResult.neutral() for _ in chunk)

        if index < len(chunks) - 1:
            await sleep(pause)

    return results
