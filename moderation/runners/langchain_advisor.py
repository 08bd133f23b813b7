"""Advisor implementations: stub and LangChain-backed chat."""

from __future__ import annotations

import json
import logging
import os
from typing import Any, Dict, List, Optional, Tuple

from dotenv import load_dotenv
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI

from moderation.config import (
    get_advisor_prompt,
    get_advisor_system_prompt,
    get_advisor_temperature,
    get_fallback_texts,
    get_phase_texts,
)
from moderation.domain.models import MONITORING, EngineContext, Phase

logger = logging.getLogger(__name__)

_DEFAULT_FALLBACKS = {
    "waiting": "Waiting for participants to join the conversation...",
    "generic": "A fruitful conversation to everyone!",
    "rate_limited": "Let's keep listening and talking respectfully.",
}


def _normalize_base_url(base_url: str) -> str:
    # Most OpenAI-compatible gateways expect a /v1 suffix.
    base = base_url.rstrip("/")
    if base.endswith("/v1"):
        return base
    return f"{base}/v1"


def _response_text(response: Any) -> str:
    # Normalize chat model output into plain text.
    if isinstance(response, AIMessage):
        content = response.content
        if isinstance(content, list):
            return "".join(str(item) for item in content)
        return str(content)
    if hasattr(response, "content"):
        return str(response.content)
    return str(response)


def _is_rate_limited(exc: BaseException) -> bool:
    for attr in ("status_code", "status", "code"):
        if getattr(exc, attr, None) == 429:
            return True
    return "429" in str(exc)


class PhaseTextAdvisor:
    """Fixed text for intervention phases; subclasses produce the monitoring tip."""

    def __init__(
        self,
        phase_texts: Optional[Dict[str, str]] = None,
        fallback_texts: Optional[Dict[str, str]] = None,
    ) -> None:
        self.phase_texts = phase_texts if phase_texts is not None else get_phase_texts()
        self.fallback_texts = dict(_DEFAULT_FALLBACKS)
        self.fallback_texts.update(fallback_texts if fallback_texts is not None else get_fallback_texts())

    async def advise(self, phase: Phase, context: EngineContext) -> str:
        if phase != MONITORING:
            return self.phase_texts.get(phase) or self.fallback_texts["generic"]
        if not context.speakers:
            return self.fallback_texts["waiting"]
        return await self._monitoring_tip(context)

    async def _monitoring_tip(self, context: EngineContext) -> str:
        raise NotImplementedError


class StubAdvisor(PhaseTextAdvisor):
    async def _monitoring_tip(self, context: EngineContext) -> str:
        # Deterministic placeholder for local/dev.
        return f"Keep it up: {len(context.speakers)} voices in the conversation."


class LangChainAdvisor(PhaseTextAdvisor):
    def __init__(
        self,
        model: Any = None,
        phase_texts: Optional[Dict[str, str]] = None,
        fallback_texts: Optional[Dict[str, str]] = None,
    ) -> None:
        super().__init__(phase_texts, fallback_texts)
        # Built on first use so a missing key degrades to fallback text.
        self._model = model
        self._cache: Dict[Tuple[str, int], str] = {}

    @staticmethod
    def _build_model() -> ChatOpenAI:
        # Allow local .env without explicit export.
        load_dotenv()

        api_key = os.getenv("OPENAI_API_KEY") or os.getenv("MODERATION_OPENAI_API_KEY")
        base_url = (
            os.getenv("OPENAI_BASE_URL")
            or os.getenv("OPENAI_API_BASE")
            or os.getenv("MODERATION_OPENAI_BASE_URL")
        )
        model_id = (
            os.getenv("OPENAI_CHAT_MODEL_ID")
            or os.getenv("OPENAI_MODEL_ID")
            or os.getenv("MODERATION_OPENAI_MODEL_ID")
            or "gpt-4o-mini"
        )
        if not api_key:
            raise RuntimeError("OPENAI_API_KEY is not set")

        kwargs: dict[str, Any] = {
            "model": model_id,
            "api_key": api_key,
            "temperature": get_advisor_temperature(),
        }
        if base_url:
            kwargs["base_url"] = _normalize_base_url(base_url)
        return ChatOpenAI(**kwargs)

    def _build_prompt(self, context: EngineContext) -> List[BaseMessage]:
        template = get_advisor_prompt() or "Give the group one short moderation tip."
        user_text = template.format(
            phase=MONITORING,
            talk_time=json.dumps(context.talk_time, ensure_ascii=False),
            total_seconds=context.total_seconds,
            dominance_score=context.dominance_score,
        ).strip()
        system_text = get_advisor_system_prompt() or "You are a concise group discussion moderator."
        return [SystemMessage(content=system_text), HumanMessage(content=user_text)]

    async def _monitoring_tip(self, context: EngineContext) -> str:
        key = (MONITORING, len(context.speakers))
        cached = self._cache.get(key)
        if cached:
            return cached
        try:
            if self._model is None:
                self._model = self._build_model()
            response = await self._model.ainvoke(self._build_prompt(context))
        except Exception as exc:
            # Upstream failures never reach the caller; nothing is cached.
            logger.warning("advisor call failed: %s", exc)
            if _is_rate_limited(exc):
                return self.fallback_texts["rate_limited"]
            return self.fallback_texts["generic"]
        text = _response_text(response).strip() or self.fallback_texts["generic"]
        self._cache[key] = text
        return text


# create_advisor: select stub vs. langchain advisor.
def create_advisor() -> PhaseTextAdvisor:
    mode = os.getenv("MODERATION_ADVISOR", "langchain").lower()
    if mode in {"stub", "fake"}:
        return StubAdvisor()
    return LangChainAdvisor()
