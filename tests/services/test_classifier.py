"""Tests for bookmark classification."""
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import openai
import pytest

from core.config import Settings
from services.classifier import (
    CATEGORIES,
    ENTERTAINMENT_LEISURE,
    LEARNING_TECH,
    MAX_TAGS,
    OTHER,
    TOOLS_RESOURCES,
    Classification,
    classify_bookmark,
    fallback_classification,
    get_llm_client,
    parse_llm_response,
)


def _llm_client(content: str | None = None, error: Exception | None = None) -> MagicMock:
    client = MagicMock()
    if error is not None:
        client.chat.completions.create = AsyncMock(side_effect=error)
    else:
        completion = SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content=content))],
        )
        client.chat.completions.create = AsyncMock(return_value=completion)
    return client


class TestFallbackClassification:
    """Tests for the keyword classifier."""

    def test__fallback__tutorial_title(self) -> None:
        result = fallback_classification('https://example.com', 'Learn React Tutorial', '')
        assert result == Classification(LEARNING_TECH, ['tutorial', 'learning'])

    def test__fallback__chinese_keywords(self) -> None:
        result = fallback_classification(None, '好用的工具推荐', None)
        assert result.category == TOOLS_RESOURCES

    def test__fallback__ai_matches_whole_word_only(self) -> None:
        assert fallback_classification(None, 'New AI assistant', None).category == TOOLS_RESOURCES
        assert fallback_classification(None, 'Rain in Spain', None).category == OTHER

    def test__fallback__first_matching_rule_wins(self) -> None:
        """A YouTube music video matches the learning rule before entertainment."""
        result = fallback_classification('https://youtube.com/watch?v=1', 'Music video', None)
        assert result.category == LEARNING_TECH

    def test__fallback__short_video_hosts_are_entertainment(self) -> None:
        result = fallback_classification('https://www.douyin.com/share/1', '', '')
        assert result.category == ENTERTAINMENT_LEISURE

    def test__fallback__no_match(self) -> None:
        assert fallback_classification(None, None, None) == Classification(OTHER, [])

    @pytest.mark.parametrize(
        'title',
        ['Workout plan', 'Best recipe ever', 'Weekend fun', 'Random words', 'Software list', ''],
    )
    def test__fallback__always_in_taxonomy(self, title: str) -> None:
        result = fallback_classification('https://example.com', title, 'something')
        assert result.category in CATEGORIES
        assert len(result.tags) <= MAX_TAGS


class TestParseLlmResponse:
    """Tests for parse_llm_response."""

    def test__parse__valid_response(self) -> None:
        result = parse_llm_response('{"category": "learning/tech", "tags": ["react", "web"]}')
        assert result == Classification(LEARNING_TECH, ['react', 'web'])

    def test__parse__unknown_category_becomes_other(self) -> None:
        result = parse_llm_response('{"category": "Cooking", "tags": []}')
        assert result.category == OTHER

    def test__parse__tags_truncated(self) -> None:
        result = parse_llm_response(
            '{"category": "Other", "tags": ["a", "b", "c", "d", "e", "f", "g"]}',
        )
        assert result.tags == ['a', 'b', 'c', 'd', 'e']

    @pytest.mark.parametrize('raw', [None, '', 'not json', '["a list"]'])
    def test__parse__rejects_unusable_output(self, raw: str | None) -> None:
        with pytest.raises(ValueError):  # noqa: PT011
            parse_llm_response(raw)


class TestClassifyBookmark:
    """Tests for classify_bookmark."""

    async def test__classify__without_client_uses_fallback(self) -> None:
        result = await classify_bookmark(None, 'https://example.com', 'Learn React Tutorial', None)
        assert result.category == LEARNING_TECH

    async def test__classify__uses_llm_answer(self) -> None:
        client = _llm_client('{"category": "Food/Travel", "tags": ["ramen", "tokyo"]}')

        result = await classify_bookmark(client, 'https://example.com', 'Ramen guide', None)

        assert result == Classification('Food/Travel', ['ramen', 'tokyo'])
        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs['model'] == 'gpt-4o-mini'
        assert kwargs['response_format'] == {'type': 'json_object'}
        assert 'Ramen guide' in kwargs['messages'][1]['content']

    async def test__classify__api_error_falls_back_once(self) -> None:
        request = httpx.Request('POST', 'https://api.openai.com/v1/chat/completions')
        client = _llm_client(error=openai.APIConnectionError(request=request))

        result = await classify_bookmark(client, None, 'Learn React Tutorial', None)

        assert result.category == LEARNING_TECH
        assert client.chat.completions.create.await_count == 1

    async def test__classify__malformed_answer_falls_back(self) -> None:
        client = _llm_client('Sure! Here is the category: Tech')
        result = await classify_bookmark(client, None, 'Gym workout', None)
        assert result.category == 'Health/Fitness'


class TestGetLlmClient:
    """Tests for get_llm_client."""

    def test__get_llm_client__disabled_without_key(self) -> None:
        settings = Settings(database_url='sqlite+aiosqlite://', openai_api_key='')
        assert get_llm_client(settings) is None

    def test__get_llm_client__cached_per_key(self) -> None:
        settings = Settings(database_url='sqlite+aiosqlite://', openai_api_key='sk-test')
        assert get_llm_client(settings) is get_llm_client(settings)
