"""Tests for sentiment classification."""

import httpx
import pytest

from webmonitor.errors import ClassifierError
from webmonitor.models.sentiment_client import (
    HuggingFaceSentimentClassifier,
    OpenAISentimentClassifier,
    create_sentiment_classifier,
    parse_sentiment_json,
)
from webmonitor.processing.sentiment import (
    LexiconSentimentClassifier,
    SentimentClassifier,
    analyze_batch,
    analyze_text,
)
from webmonitor.schemas import SentimentLabel, SentimentResult


class FailingClassifier(SentimentClassifier):
    name = "failing"

    async def analyze(self, text: str) -> SentimentResult:
        raise RuntimeError("service down")


class RecordingClassifier(SentimentClassifier):
    name = "recording"

    def __init__(self):
        self.seen: list[str] = []

    async def analyze(self, text: str) -> SentimentResult:
        self.seen.append(text)
        return SentimentResult(label=SentimentLabel.POSITIVE, score=0.5, confidence=0.8)


class TestLexiconClassifier:
    """Lexicon classifier behaviour."""

    @pytest.mark.asyncio
    async def test_positive_sentence(self):
        result = await LexiconSentimentClassifier().analyze("Isso é ótimo, adorei!")

        assert result.label == SentimentLabel.POSITIVE
        assert result.score > 0.1

    @pytest.mark.asyncio
    async def test_empty_text_is_neutral(self):
        result = await LexiconSentimentClassifier().analyze("")

        assert result.label == SentimentLabel.NEUTRAL
        assert result.score == 0
        assert result.confidence <= 0.1

    @pytest.mark.asyncio
    async def test_negation_flips_positive_word(self):
        result = await LexiconSentimentClassifier().analyze("não gostei nada")

        assert result.label == SentimentLabel.NEGATIVE

    @pytest.mark.asyncio
    async def test_negated_negative_becomes_positive(self):
        result = await LexiconSentimentClassifier().analyze("o serviço não é ruim")

        assert result.label == SentimentLabel.POSITIVE

    def test_intensifier_scales_weight(self):
        classifier = LexiconSentimentClassifier()

        positive, negative, hits = classifier.score_tokens(["muito", "bom"])
        assert positive == pytest.approx(1.5)
        assert negative == 0
        assert hits == 1

        positive, negative, _ = classifier.score_tokens(["pouco", "ruim"])
        assert negative == pytest.approx(0.6)

    def test_short_text_is_neutral(self):
        assert LexiconSentimentClassifier().analyze_sync("ok") == SentimentResult.neutral()

    def test_text_without_sentiment_words_is_neutral(self):
        result = LexiconSentimentClassifier().analyze_sync("A reunião acontece na terça-feira")

        assert result.label == SentimentLabel.NEUTRAL
        assert result.score == 0
        assert result.confidence == pytest.approx(0.1)

    def test_confidence_is_capped(self):
        result = LexiconSentimentClassifier().analyze_sync("ótimo excelente perfeito")

        assert result.confidence == pytest.approx(0.9)

    def test_tokenize_strips_punctuation(self):
        assert LexiconSentimentClassifier.tokenize("Ótimo, adorei! (sério)") == ["ótimo", "adorei", "sério"]


class TestAnalyzeHelpers:
    """analyze_text and analyze_batch."""

    @pytest.mark.asyncio
    async def test_analyze_text_empty_is_neutral(self):
        classifier = RecordingClassifier()

        result = await analyze_text(classifier, "   ")

        assert result == SentimentResult.neutral()
        assert classifier.seen == []

    @pytest.mark.asyncio
    async def test_analyze_text_truncates(self):
        classifier = RecordingClassifier()

        await analyze_text(classifier, "a" * 6000, max_length=5000)

        assert classifier.seen[0] == "a" * 5000 + "..."

    @pytest.mark.asyncio
    async def test_analyze_text_falls_back_to_lexicon(self):
        result = await analyze_text(FailingClassifier(), "Isso é ótimo, adorei!")

        assert result.label == SentimentLabel.POSITIVE

    @pytest.mark.asyncio
    async def test_batch_chunks_with_pause(self, recorded_sleep):
        classifier = RecordingClassifier()
        texts = [f"texto {i}" for i in range(25)]

        results = await analyze_batch(classifier, texts, chunk_size=10, pause=1.0, sleep=recorded_sleep)

        assert len(results) == 25
        assert recorded_sleep.delays == [1.0, 1.0]
        assert sorted(classifier.seen) == sorted(texts)

    @pytest.mark.asyncio
    async def test_batch_failing_chunk_is_neutral(self, recorded_sleep):
        # A non-string item breaks its whole chunk
        texts = ["Isso é ótimo", 123, "Isso é péssimo"]

        results = await analyze_batch(LexiconSentimentClassifier(), texts, chunk_size=2, sleep=recorded_sleep)

        assert results[:2] == [SentimentResult.neutral()] * 2
        assert results[2].label == SentimentLabel.NEGATIVE


class TestExternalClassifiers:
    """OpenAI and Hugging Face classifiers."""

    def test_parse_sentiment_json(self):
        result = parse_sentiment_json('{"label": "negative", "score": -0.7, "confidence": 0.9}')

        assert result.label == SentimentLabel.NEGATIVE
        assert result.score == pytest.approx(-0.7)

    def test_parse_sentiment_json_derives_label_from_score(self):
        result = parse_sentiment_json('{"label": "mixed", "score": 0.4}')

        assert result.label == SentimentLabel.POSITIVE

    def test_parse_sentiment_json_rejects_garbage(self):
        with pytest.raises(ClassifierError):
            parse_sentiment_json("not json")

    def test_parse_huggingface_scores(self):
        payload = [[
            {"label": "negative", "score": 0.1},
            {"label": "neutral", "score": 0.2},
            {"label": "positive", "score": 0.7},
        ]]

        result = HuggingFaceSentimentClassifier.parse_scores(payload)

        assert result.label == SentimentLabel.POSITIVE
        assert result.score == pytest.approx(0.7)
        assert result.confidence == pytest.approx(0.7)

    def test_parse_huggingface_index_labels(self):
        result = HuggingFaceSentimentClassifier.parse_scores([[{"label": "LABEL_0", "score": 0.8}]])

        assert result.label == SentimentLabel.NEGATIVE
        assert result.score == pytest.approx(-0.8)

    @pytest.mark.asyncio
    async def test_huggingface_request(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.headers["Authorization"] == "Bearer hf-test"
            return httpx.Response(200, json=[[{"label": "positive", "score": 0.95}]])

        classifier = HuggingFaceSentimentClassifier(
            api_key="hf-test",
            transport=httpx.MockTransport(handler),
        )

        result = await classifier.analyze("Adorei o novo parque")

        assert result.label == SentimentLabel.POSITIVE
        assert result.confidence == pytest.approx(0.95)

    @pytest.mark.asyncio
    async def test_huggingface_error_falls_back_to_lexicon(self):
        classifier = HuggingFaceSentimentClassifier(
            api_key="hf-test",
            transport=httpx.MockTransport(lambda request: httpx.Response(503, json={"error": "loading"})),
        )

        result = await classifier.analyze("Isso é péssimo, odeio")

        assert result.label == SentimentLabel.NEGATIVE

    @pytest.mark.asyncio
    async def test_openai_failure_falls_back_to_lexicon(self):
        class BrokenCompletions:
            async def create(self, **kwargs):
                raise RuntimeError("rate limited")

        class BrokenChat:
            completions = BrokenCompletions()

        class BrokenClient:
            chat = BrokenChat()

        classifier = OpenAISentimentClassifier(client=BrokenClient())

        result = await classifier.analyze("Isso é ótimo, adorei!")

        assert result.label == SentimentLabel.POSITIVE

    def test_factory_prefers_openai_then_huggingface(self, settings):
        assert isinstance(create_sentiment_classifier(settings), LexiconSentimentClassifier)

        hf = settings.model_copy(update={"huggingface_api_key": "hf"})
        assert isinstance(create_sentiment_classifier(hf), HuggingFaceSentimentClassifier)

        both = settings.model_copy(update={"huggingface_api_key": "hf", "openai_api_key": "sk-test"})
        assert isinstance(create_sentiment_classifier(both), OpenAISentimentClassifier)
