"""LLM providers.

Project standard:
- Use LangChain as the primary integration.
- Keep `openai_client.py` for direct-SDK usage (LLM_BACKEND=openai).
"""

from typing import Optional

from ..config import Settings, get_settings
from .client import AGENT_PROFILES, AgentProfile, AgentRole, TextCompletion  # noqa: F401
from .langchain_client import LangChainLLM  # noqa: F401
from .openai_client import OpenAILLM  # noqa: F401


def build_llm(settings: Optional[Settings] = None) -> TextCompletion:
    settings = settings or get_settings()
    if settings.llm_backend == "openai":
        return OpenAILLM(settings)
    return LangChainLLM(settings)
