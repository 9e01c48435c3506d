from __future__ import annotations

from typing import Any, Optional

from openai import AsyncOpenAI

from ..config import Settings, get_settings
from .client import AGENT_PROFILES, AgentRole


class OpenAILLM:
    """Direct-SDK alternative to LangChainLLM (LLM_BACKEND=openai)."""

    def __init__(self, settings: Optional[Settings] = None, client: Optional[Any] = None):
        self.settings = settings or get_settings()
        if client is None:
            kwargs = {}
            if self.settings.llm_base_url:
                kwargs["base_url"] = self.settings.llm_base_url
            if self.settings.llm_api_key:
                kwargs["api_key"] = self.settings.llm_api_key
            client = AsyncOpenAI(**kwargs)
        self.client = client

    async def complete(self, prompt: str, agent: AgentRole) -> str:
        profile = AGENT_PROFILES[agent]
        chat = await self.client.chat.completions.create(
            model=self.settings.openai_sql_model if profile.large_model else self.settings.openai_model,
            temperature=profile.temperature,
            max_tokens=profile.max_tokens,
            messages=[
                {"role": "system", "content": profile.system_prompt},
                {"role": "user", "content": prompt},
            ],
        )
        if not chat.choices:
            return ""
        choice = chat.choices[0]
        # pydantic models expose .message.content
        if getattr(choice, "message", None) is not None and getattr(choice.message, "content", None):
            return choice.message.content
        return ""
