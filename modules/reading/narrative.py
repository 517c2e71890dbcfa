"""
Narrative interpretation of a three-card spread via the Gemini
``generateContent`` REST endpoint.

The client never raises for service problems. Missing credentials, network
failures, HTTP errors and malformed bodies all come back as a degraded
ReadingResult carrying placeholder text, so the reading flow can always
leave its analyzing state.
"""

import os
import logging
from typing import Iterable, List, Optional, Sequence, Tuple

import requests

from core.types import (
    Card, CardOrientation, DrawnCardRecord, EnergyFlow, ReadingResult,
    CHALLENGING_CARDS,
)
from modules.utils.logger import log_timing

logger = logging.getLogger(__name__)

DEFAULT_ENDPOINT = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"
DEFAULT_MODEL = "gemini-2.5-flash-lite"
DEFAULT_API_KEY_ENV = "GEMINI_API_KEY"

MISSING_KEY_TEXT = "The stars are cloudy... (Missing API Key)"
SILENT_TEXT = "The cosmos remains silent."
FAILURE_TEXT = "The stars are cloudy... ({reason})"

SPREAD_SIZE = 3
SUPPORTED_LANGUAGES = ("en", "zh")

_POSITIONS = {
    "en": ("Past", "Present", "Future"),
    "zh": ("过去", "现在", "未来"),
}
_ORIENTATION_LABELS = {
    "en": {CardOrientation.UPRIGHT: "Upright", CardOrientation.REVERSED: "Reversed"},
    "zh": {CardOrientation.UPRIGHT: "正位", CardOrientation.REVERSED: "逆位"},
}

_PROMPT_EN = """You are a mystical and insightful Tarot Reader. Interpret the following three-card spread for the seeker.

[The Spread]
{spread}

[Reading Guidelines]
1. Card Synergy: Don't interpret each card in isolation. Analyze the energy flow, resonance, or tensions between the three cards.
2. Past -> Present -> Future: Connect the cards as a timeline, revealing cause-and-effect and developmental trajectory.
3. Core Insight: Identify the central message or warning this spread conveys.
4. Actionable Advice: Provide one specific, actionable suggestion based on the spread.

[Format Requirements]
- Use a mystical yet peaceful tone
- Keep it under 150 words
- Do not use markdown formatting (bold, headers, etc.)
- You may use paragraph breaks
"""

_PROMPT_ZH = """你是一位神秘且富有洞察力的塔罗占卜师。请为求问者解读以下三张牌阵。

【牌阵】
{spread}

【解读要求】
1. 牌组化学反应：不要孤立解读每张牌，请分析三张牌之间的能量流动、呼应或矛盾关系。
2. 过去→现在→未来：以时间线串联三张牌，揭示因果关系和发展轨迹。
3. 核心洞见：找出这个牌阵想要传达的核心信息或警示。
4. 行动建议：基于牌阵给出一条具体、可执行的建议。

【格式要求】
- 使用神秘、平和的语言风格
- 控制在200字以内
- 用中文回答
- 不要使用 markdown 格式（如粗体、标题等）
- 可以使用换行分段
"""

Spread = Sequence[Tuple[Card, CardOrientation]]


def normalize_spread(cards: Iterable) -> List[Tuple[Card, CardOrientation]]:
    """Accept DrawnCardRecords or (card, orientation) pairs."""
    spread = []
    for item in cards:
        if isinstance(item, DrawnCardRecord):
            spread.append((item.card, item.orientation))
        else:
            card, orientation = item
            spread.append((card, orientation))
    return spread


def find_challenge_cards(spread: Spread) -> List[str]:
    """Labels of the cards that carry difficult energy.

    A card counts when it is one of the challenging arcana or drawn reversed.
    """
    return [
        f"{card.name} ({orientation.value})"
        for card, orientation in spread
        if card.name in CHALLENGING_CARDS or orientation is CardOrientation.REVERSED
    ]


def energy_flow_for(challenge_count: int) -> EnergyFlow:
    if challenge_count >= 2:
        return EnergyFlow.CONFLICTING
    if challenge_count == 1:
        return EnergyFlow.TRANSFORMATIVE
    return EnergyFlow.HARMONIOUS


def build_prompt(spread: Spread, language: str = "en") -> str:
    positions = _POSITIONS[language]
    labels = _ORIENTATION_LABELS[language]
    lines = [
        f"{positions[i]}: {card.name} ({labels[orientation]}) - {card.meaning(orientation)}"
        for i, (card, orientation) in enumerate(spread)
    ]
    template = _PROMPT_ZH if language == "zh" else _PROMPT_EN
    return template.format(spread="\n".join(lines))


def extract_text(body: dict) -> str:
    """Concatenate the text parts of the first candidate.

    Raises:
        KeyError, IndexError, TypeError, AttributeError: on an unexpected body shape
    """
    parts = body["candidates"][0]["content"]["parts"]
    return "".join(part.get("text", "") for part in parts).strip()


class NarrativeClient:
    """Requests a reading from the text-generation service."""

    def __init__(self, config: Optional[dict] = None, session: Optional[requests.Session] = None):
        config = config or {}
        self._model = config.get("model", DEFAULT_MODEL)
        self._endpoint = config.get("endpoint", DEFAULT_ENDPOINT)
        self._timeout = config.get("timeout_sec", 20)
        self._language = config.get("language", "en")
        self._api_key_env = config.get("api_key_env", DEFAULT_API_KEY_ENV)
        self._api_key = config.get("api_key")
        self._temperature = config.get("temperature", 0.9)
        self._session = session

    @property
    def api_key(self) -> Optional[str]:
        return self._api_key or os.environ.get(self._api_key_env) or None

    @property
    def default_language(self) -> str:
        return self._language

    @log_timing
    def interpret(self, cards: Iterable, language: Optional[str] = None) -> ReadingResult:
        """Interpret an ordered past/present/future spread.

        Args:
            cards: Exactly three DrawnCardRecords or (Card, CardOrientation) pairs
            language: "en" or "zh"; unknown tags fall back to English

        Raises:
            ValueError: if the spread is not exactly three cards
        """
        spread = normalize_spread(cards)
        if len(spread) != SPREAD_SIZE:
            raise ValueError(f"a reading needs exactly {SPREAD_SIZE} cards, got {len(spread)}")

        language = language or self._language
        if language not in SUPPORTED_LANGUAGES:
            logger.warning("Unsupported language %r, using English", language)
            language = "en"

        challenge_cards = find_challenge_cards(spread)
        has_challenge = bool(challenge_cards)

        api_key = self.api_key
        if not api_key:
            logger.error("Narrative API key is missing (set %s)", self._api_key_env)
            return self._degraded(MISSING_KEY_TEXT, challenge_cards)

        try:
            text = self._generate(build_prompt(spread, language), api_key)
        except requests.exceptions.ConnectionError:
            logger.error("Narrative service not reachable")
            return self._degraded(FAILURE_TEXT.format(reason="service unreachable"), challenge_cards)
        except requests.exceptions.Timeout:
            logger.error("Narrative request timed out after %ss", self._timeout)
            return self._degraded(FAILURE_TEXT.format(reason="request timed out"), challenge_cards)
        except requests.exceptions.RequestException as e:
            logger.error("Narrative request failed: %s", e)
            return self._degraded(FAILURE_TEXT.format(reason="network error"), challenge_cards)
        except (ValueError, KeyError, IndexError, TypeError, AttributeError) as e:
            logger.error("Unexpected narrative response: %s", e)
            return self._degraded(FAILURE_TEXT.format(reason="unreadable reply"), challenge_cards)

        return ReadingResult(
            interpretation=text or SILENT_TEXT,
            has_challenge_card=has_challenge,
            challenge_cards=challenge_cards,
            energy_flow=energy_flow_for(len(challenge_cards)),
        )

    def _generate(self, prompt: str, api_key: str) -> str:
        url = self._endpoint.format(model=self._model)
        payload = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {"temperature": self._temperature},
        }
        post = self._session.post if self._session is not None else requests.post
        response = post(url, params={"key": api_key}, json=payload, timeout=self._timeout)
        response.raise_for_status()
        return extract_text(response.json())

    @staticmethod
    def _degraded(text: str, challenge_cards: List[str]) -> ReadingResult:
        return ReadingResult(
            interpretation=text,
            has_challenge_card=bool(challenge_cards),
            challenge_cards=challenge_cards,
            energy_flow=EnergyFlow.HARMONIOUS,
            degraded=True,
        )
