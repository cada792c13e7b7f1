"""Tests for utility helpers."""

from datetime import UTC, datetime, timedelta

import pytest

from webmonitor.processing.text_utils import extract_hashtags, extract_tags
from webmonitor.utils import (
    chunk_list,
    clean_text,
    extract_domain,
    generate_content_hash,
    parse_date_string,
    resolve_url,
    retry_async,
)

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=UTC)


class TestDates:
    """parse_date_string formats."""

    def test_iso_with_z(self):
        assert parse_date_string("2026-03-10T09:30:00Z") == datetime(2026, 3, 10, 9, 30, tzinfo=UTC)

    def test_naive_iso_is_utc(self):
        assert parse_date_string("2026-03-10 09:30:00").tzinfo is not None

    def test_rfc_2822(self):
        parsed = parse_date_string("Tue, 10 Mar 2026 09:30:00 GMT")

        assert parsed == datetime(2026, 3, 10, 9, 30, tzinfo=UTC)

    def test_brazilian_day_first(self):
        assert parse_date_string("Publicado em 10/03/2026") == datetime(2026, 3, 10, tzinfo=UTC)

    def test_relative_portuguese(self):
        assert parse_date_string("há 3 horas", now=NOW) == NOW - timedelta(hours=3)

    def test_relative_english(self):
        assert parse_date_string("2 days ago", now=NOW) == NOW - timedelta(days=2)

    @pytest.mark.parametrize("value", ["", "   ", "ontem à tarde", "31/02/2026"])
    def test_unparseable(self, value):
        assert parse_date_string(value) is None


class TestUrls:
    """URL helpers."""

    def test_resolve_relative(self):
        assert resolve_url("/noticias/1", "https://site.example.com/cidades") == "https://site.example.com/noticias/1"

    @pytest.mark.parametrize("href", ["", "#topo", "javascript:void(0)", "mailto:a@b.com"])
    def test_resolve_rejects_non_links(self, href):
        assert resolve_url(href, "https://site.example.com/") is None

    def test_extract_domain(self):
        assert extract_domain("https://WWW.Example.com:8080/a") == "www.example.com"
        assert extract_domain("not a url") == ""


class TestText:
    """Text helpers."""

    def test_clean_text(self):
        assert clean_text("  Metrô  &amp;\n ônibus&nbsp;hoje ") == "Metrô & ônibus hoje"

    def test_chunk_list(self):
        assert chunk_list([1, 2, 3, 4, 5], 2) == [[1, 2], [3, 4], [5]]

    def test_hash_uses_body_as_is(self):
        assert generate_content_hash("abc") != generate_content_hash("abc ")

    def test_extract_tags_by_frequency(self):
        content = "linha metrô linha cidade metrô linha para para para"

        assert extract_tags(content, limit=2) == ["linha", "metrô"]

    def test_extract_hashtags(self):
        assert extract_hashtags("Veja #Mobilidade e #SP, de novo #mobilidade") == ["mobilidade", "sp"]
        assert extract_hashtags("") == []


class TestRetry:
    """retry_async backoff."""

    @pytest.mark.asyncio
    async def test_retries_then_succeeds(self, recorded_sleep):
        calls = {"n": 0}

        async def flaky():
            calls["n"] += 1
            if calls["n"] < 3:
                raise ConnectionError("reset")
            return "ok"

        assert await retry_async(flaky, max_retries=3, sleep=recorded_sleep) == "ok"
        assert recorded_sleep.delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_reraises_after_last_attempt(self, recorded_sleep):
        async def always_fails():
            raise ConnectionError("down")

        with pytest.raises(ConnectionError):
            await retry_async(always_fails, max_retries=1, sleep=recorded_sleep)
        assert recorded_sleep.delays == [1.0]

    @pytest.mark.asyncio
    async def test_unlisted_exception_is_not_retried(self, recorded_sleep):
        async def bad_value():
            raise ValueError("bad")

        with pytest.raises(ValueError):
            await retry_async(bad_value, exceptions=(ConnectionError,), sleep=recorded_sleep)
        assert recorded_sleep.delays == []
