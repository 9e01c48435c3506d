from __future__ import annotations

from typing import Dict, Optional

from langchain_core.messages import HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI

from ..config import Settings, get_settings
from .client import AGENT_PROFILES, AgentRole


class LangChainLLM:
    """LangChain-backed completion capability used by every agent.

    complete(prompt, agent) -> raw text. Output cleaning (reasoning tags,
    fences) is left to the agents so they can apply their own rules.

    Configuration:
      - OPENAI_MODEL / OPENAI_SQL_MODEL
      - LLM_BASE_URL + LLM_API_KEY for any OpenAI-compatible endpoint
      - OPENAI_API_KEY is read by the OpenAI SDK underneath otherwise
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self._chats: Dict[str, ChatOpenAI] = {}

    def _chat(self, agent: AgentRole) -> ChatOpenAI:
        chat = self._chats.get(agent)
        if chat is None:
            profile = AGENT_PROFILES[agent]
            kwargs = {
                "model": self.settings.openai_sql_model if profile.large_model else self.settings.openai_model,
                "temperature": profile.temperature,
                "max_tokens": profile.max_tokens,
            }
            if self.settings.llm_base_url:
                kwargs["base_url"] = self.settings.llm_base_url
            if self.settings.llm_api_key:
                kwargs["api_key"] = self.settings.llm_api_key
            chat = ChatOpenAI(**kwargs)
            self._chats[agent] = chat
        return chat

    async def complete(self, prompt: str, agent: AgentRole) -> str:
        msg = await self._chat(agent).ainvoke(
            [
                SystemMessage(content=AGENT_PROFILES[agent].system_prompt),
                HumanMessage(content=prompt),
            ]
        )
        content = getattr(msg, "content", "") or ""
        return content if isinstance(content, str) else str(content)
