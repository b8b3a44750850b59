"""
Bookmark classification into a fixed category taxonomy.

The primary path asks an LLM for a category and a few tags. Whenever that is
not possible (no credentials, request failure, unusable response) a
deterministic keyword classifier produces the same output shape. Each call
tries the LLM at most once and falls back at most once.
"""
import json
import logging
import re
from dataclasses import dataclass, field

from openai import AsyncOpenAI, OpenAIError

from core.config import Settings

logger = logging.getLogger(__name__)

LEARNING_TECH = "Learning/Tech"
TOOLS_RESOURCES = "Tools/Resources"
HEALTH_FITNESS = "Health/Fitness"
ENTERTAINMENT_LEISURE = "Entertainment/Leisure"
FOOD_TRAVEL = "Food/Travel"
OTHER = "Other"

CATEGORIES = (
    LEARNING_TECH,
    TOOLS_RESOURCES,
    HEALTH_FITNESS,
    ENTERTAINMENT_LEISURE,
    FOOD_TRAVEL,
    OTHER,
)

MAX_TAGS = 5

SYSTEM_PROMPT = f"""You are a bookmark classification assistant. Analyze the content and classify it into ONE of these categories:
{chr(10).join(f"- {category}" for category in CATEGORIES)}

Also generate 2-5 relevant tags (in English or the content's language).

Return ONLY a JSON object with this exact format:
{{"category": "Learning/Tech", "tags": ["tutorial", "react", "web-development"]}}"""  # noqa: E501


@dataclass
class Classification:
    """A category from the taxonomy and up to five tags."""

    category: str
    tags: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class KeywordRule:
    """Fallback rule: if ``pattern`` matches, assign ``category`` and ``tags``."""

    pattern: re.Pattern[str]
    category: str
    tags: tuple[str, ...]


# Checked in order; the first match wins
KEYWORD_RULES = (
    KeywordRule(
        re.compile(
            r"youtube|video|tutorial|learn|course|react|javascript|coding|programming|tech"
            r"|教程|学习",
        ),
        LEARNING_TECH,
        ("tutorial", "learning"),
    ),
    KeywordRule(
        re.compile(r"tool|\bai\b|software|\bapps?\b|resource|utility|工具|软件"),
        TOOLS_RESOURCES,
        ("tool", "productivity"),
    ),
    KeywordRule(
        re.compile(r"health|fitness|workout|exercise|\bgym\b|wellness|健康|运动"),
        HEALTH_FITNESS,
        ("health", "fitness"),
    ),
    KeywordRule(
        re.compile(r"food|recipe|restaurant|travel|vacation|hotel|美食|旅游"),
        FOOD_TRAVEL,
        ("food", "lifestyle"),
    ),
    KeywordRule(
        re.compile(r"tiktok|douyin|entertainment|music|game|movie|\bfun\b|娱乐"),
        ENTERTAINMENT_LEISURE,
        ("entertainment", "fun"),
    ),
)

# One client per API key, reused across requests
_llm_clients: dict[str, AsyncOpenAI] = {}


def get_llm_client(settings: Settings) -> AsyncOpenAI | None:
    """
    Return an LLM client, or None when no credentials are configured.

    Callers check for None explicitly and go straight to the keyword fallback.
    """
    if not settings.llm_enabled:
        return None
    key = settings.openai_api_key.strip()
    if key not in _llm_clients:
        _llm_clients[key] = AsyncOpenAI(
            api_key=key,
            timeout=settings.classifier_timeout,
            max_retries=0,
        )
    return _llm_clients[key]


async def close_llm_clients() -> None:
    """Close cached LLM clients and their connection pools."""
    while _llm_clients:
        _, client = _llm_clients.popitem()
        await client.close()


def normalize_category(value: object) -> str:
    """Map a raw category to its taxonomy spelling; anything unrecognized becomes Other."""
    if not isinstance(value, str):
        return OTHER
    lookup = {category.casefold(): category for category in CATEGORIES}
    return lookup.get(value.strip().casefold(), OTHER)


def coerce_tags(value: object) -> list[str]:
    """Coerce a raw tags value into at most five non-empty strings."""
    if isinstance(value, str):
        value = value.split(",")
    if not isinstance(value, list):
        return []
    tags = [str(tag).strip() for tag in value if isinstance(tag, str | int | float)]
    return [tag for tag in tags if tag][:MAX_TAGS]


def fallback_classification(
    url: str | None,
    title: str | None,
    description: str | None,
) -> Classification:
    """Classify with ordered keyword rules over the lowercased url, title and description."""
    content = f"{url or ''} {title or ''} {description or ''}".lower()
    for rule in KEYWORD_RULES:
        if rule.pattern.search(content):
            return Classification(category=rule.category, tags=list(rule.tags))
    return Classification(category=OTHER, tags=[])


def parse_llm_response(raw: str | None) -> Classification:
    """
    Parse and validate the LLM's JSON answer.

    Raises:
        ValueError: If the response is empty or not a JSON object.
    """
    if not raw or not raw.strip():
        raise ValueError("Empty response from classifier")
    data = json.loads(raw)
    if not isinstance(data, dict):
        raise ValueError(f"Expected a JSON object, got {type(data).__name__}")
    return Classification(
        category=normalize_category(data.get("category")),
        tags=coerce_tags(data.get("tags")),
    )


async def classify_bookmark(
    client: AsyncOpenAI | None,
    url: str | None,
    title: str | None,
    description: str | None,
    model: str = "gpt-4o-mini",
) -> Classification:
    """
    Classify a bookmark into the category taxonomy with tags.

    Args:
        client: LLM client, or None to use the keyword fallback directly.
        url: Bookmark URL.
        title: Bookmark title.
        description: Bookmark description.
        model: Chat completion model name.

    Returns:
        Classification whose category is always one of CATEGORIES.
    """
    if client is None:
        logger.info("LLM classifier not configured, using keyword classification")
        return fallback_classification(url, title, description)

    try:
        completion = await client.chat.completions.create(
            model=model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {
                    "role": "user",
                    "content": (
                        f"URL: {url or ''}\nTitle: {title or ''}\n"
                        f"Description: {description or 'N/A'}"
                    ),
                },
            ],
            temperature=0.3,
            max_tokens=150,
            response_format={"type": "json_object"},
        )
        return parse_llm_response(completion.choices[0].message.content)
    except (OpenAIError, ValueError, IndexError, AttributeError) as e:
        logger.warning("LLM classification failed for %s, using keyword fallback: %s", url, e)
        return fallback_classification(url, title, description)
