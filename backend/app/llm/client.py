from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Literal, Protocol


AgentRole = Literal["schema", "sql", "summary", "chart"]


@dataclass(frozen=True)
class AgentProfile:
    system_prompt: str
    temperature: float
    max_tokens: int
    large_model: bool = False


# Small fast model for structured/short output; the large model writes SQL.
AGENT_PROFILES: Dict[str, AgentProfile] = {
    "schema": AgentProfile(
        system_prompt=(
            "You are a data schema analyst. "
            "You return valid JSON only, with no markdown and no explanation."
        ),
        temperature=0.0,
        max_tokens=2048,
    ),
    "sql": AgentProfile(
        system_prompt=(
            "You generate Postgres SQL only. "
            "Never include explanations, markdown, or code fences."
        ),
        temperature=0.0,
        max_tokens=4096,
        large_model=True,
    ),
    "summary": AgentProfile(
        system_prompt=(
            "You are a careful data analyst. "
            "You must only use the provided data and must not make up facts."
        ),
        temperature=0.3,
        max_tokens=512,
    ),
    "chart": AgentProfile(
        system_prompt=(
            "You are a data visualization expert. "
            "You return valid JSON only, with no markdown and no explanation."
        ),
        temperature=0.0,
        max_tokens=1024,
    ),
}


class TextCompletion(Protocol):
    """Anything that turns a prompt into raw model text for a given agent role."""

    async def complete(self, prompt: str, agent: AgentRole) -> str:
        ...
