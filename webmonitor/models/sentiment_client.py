"""External sentiment classifiers and classifier selection."""

import time
from typing import Any

import httpx
import orjson
from openai import AsyncOpenAI

from ..config import Settings, get_settings
from ..errors import ClassifierError
from ..logging import get_logger, log_api_request
from ..processing.sentiment import (
    ExternalSentimentClassifier,
    LexiconSentimentClassifier,
    SentimentClassifier,
    label_for_score,
)
from ..schemas import SentimentLabel, SentimentResult
from ..utils import retry_async

logger = get_logger(__name__)

HUGGINGFACE_BASE_URL = "https://api-inference.huggingface.co/models"

# Index labels used by models published without id2label names
_INDEX_LABELS = {
    "label_0": SentimentLabel.NEGATIVE,
    "label_1": SentimentLabel.NEUTRAL,
    "label_2": SentimentLabel.POSITIVE,
}

SENTIMENT_SYSTEM_PROMPT = (
    "You classify the sentiment of Brazilian Portuguese news and social media text. "
    "Reply with a JSON object with keys: label (positive, negative or neutral), "
    "score (number from -1 to 1, negative values for negative sentiment) and "
    "confidence (number from 0 to 1)."
)


class OpenAISentimentClassifier(ExternalSentimentClassifier):
    """Sentiment via an OpenAI chat model returning JSON."""

    name = "openai"

    def __init__(
        self,
        api_key: str | None = None,
        model: str = "gpt-4o-mini",
        timeout: float = 15.0,
        client: AsyncOpenAI | None = None,
        fallback: SentimentClassifier | None = None,
    ):
        super().__init__(fallback)
        if client is None and not api_key:
            raise ClassifierError("OpenAI API key is required")
        self.model = model
        self.timeout = timeout
        self._client = client or AsyncOpenAI(api_key=api_key, timeout=timeout)

    async def _classify(self, text: str) -> SentimentResult:
        start_time = time.monotonic()
        try:
            response = await self._client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SENTIMENT_SYSTEM_PROMPT},
                    {"role": "user", "content": text},
                ],
                temperature=0,
                max_tokens=60,
                response_format={"type": "json_object"},
            )
        except Exception as e:
            raise ClassifierError(f"OpenAI API error for model {self.model}: {e}") from e

        logger.debug(**log_api_request(
            "POST", "chat.completions", response_time=time.monotonic() - start_time, model=self.model
        ))

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise ClassifierError("Empty response content from OpenAI")

        return parse_sentiment_json(content)


def parse_sentiment_json(content: str) -> SentimentResult:
    """Parse a model's JSON reply into a SentimentResult.

    A missing or unknown label is derived from the score.
    """
    try:
        payload = orjson.loads(content)
    except orjson.JSONDecodeError as e:
        raise ClassifierError(f"Classifier returned invalid JSON: {content[:100]!r}") from e

    if not isinstance(payload, dict):
        raise ClassifierError("Classifier JSON is not an object")

    try:
        score = max(-1.0, min(1.0, float(payload.get("score", 0.0))))
        confidence = max(0.0, min(1.0, float(payload.get("confidence", 0.5))))
    except (TypeError, ValueError) as e:
        raise ClassifierError(f"Classifier returned non-numeric values: {payload}") from e

    try:
        label = SentimentLabel(str(payload.get("label", "")).lower())
    except ValueError:
        label = label_for_score(score)

    return SentimentResult(label=label, score=score, confidence=confidence)


class HuggingFaceSentimentClassifier(ExternalSentimentClassifier):
    """Sentiment via the Hugging Face inference API."""

    name = "huggingface"

    def __init__(
        self,
        api_key: str,
        model: str = "cardiffnlp/twitter-xlm-roberta-base-sentiment",
        timeout: float = 15.0,
        base_url: str = HUGGINGFACE_BASE_URL,
        max_retries: int = 1,
        transport: httpx.AsyncBaseTransport | None = None,
        fallback: SentimentClassifier | None = None,
    ):
        super().__init__(fallback)
        if not api_key:
            raise ClassifierError("Hugging Face API key is required")
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.url = f"{base_url.rstrip('/')}/{model}"
        self.max_retries = max_retries
        self._transport = transport

    async def _classify(self, text: str) -> SentimentResult:
        start_time = time.monotonic()
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            response = await retry_async(
                lambda: client.post(
                    self.url,
                    json={"inputs": text},
                    headers={"Authorization": f"Bearer {self.api_key}"},
                ),
                max_retries=self.max_retries,
                backoff_factor=1.0,
                exceptions=(httpx.TransportError,),
            )

        logger.debug(**log_api_request(
            "POST", self.url, status_code=response.status_code,
            response_time=time.monotonic() - start_time,
        ))
        response.raise_for_status()

        return self.parse_scores(response.json())

    @staticmethod
    def parse_scores(payload: Any) -> SentimentResult:
        """Turn [[{label, score}, ...]] into a SentimentResult using the top label."""
        if not isinstance(payload, list):
            raise ClassifierError(f"Unexpected Hugging Face response: {payload}")
        results = payload[0] if payload and isinstance(payload[0], list) else payload
        if not results:
            raise ClassifierError("Empty response from Hugging Face")

        try:
            best = max(results, key=lambda item: item["score"])
            raw_label = str(best["label"]).lower()
            probability = float(best["score"])
        except (KeyError, TypeError, ValueError) as e:
            raise ClassifierError(f"Unexpected Hugging Face response: {payload}") from e

        if raw_label in _INDEX_LABELS:
            label = _INDEX_LABELS[raw_label]
        elif "pos" in raw_label:
            label = SentimentLabel.POSITIVE
        elif "neg" in raw_label:
            label = SentimentLabel.NEGATIVE
        else:
            label = SentimentLabel.NEUTRAL

        probability = max(0.0, min(1.0, probability))
        if label == SentimentLabel.POSITIVE:
            score = probability
        elif label == SentimentLabel.NEGATIVE:
            score = -probability
        else:
            score = 0.0

        return SentimentResult(label=label, score=score, confidence=probability)


def create_sentiment_classifier(settings: Settings | None = None) -> SentimentClassifier:
    """Pick the classifier for this process from configured credentials.

    OpenAI is preferred, then Hugging Face, then the lexicon classifier.
    """
    settings = settings or get_settings()

    if settings.openai_api_key:
        logger.info("Using OpenAI for sentiment analysis", model=settings.openai_model)
        return OpenAISentimentClassifier(
            api_key=settings.openai_api_key,
            model=settings.openai_model,
            timeout=settings.classifier_timeout_seconds,
        )

    if settings.huggingface_api_key:
        logger.info("Using Hugging Face for sentiment analysis", model=settings.huggingface_model)
        return HuggingFaceSentimentClassifier(
            api_key=settings.huggingface_api_key,
            model=settings.huggingface_model,
            timeout=settings.classifier_timeout_seconds,
        )

    logger.info("Using lexicon sentiment analysis (no API keys configured)")
    return LexiconSentimentClassifier()
