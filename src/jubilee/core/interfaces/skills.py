"""
Skill Source Protocol

Read-only lookup of skill instructions by name, used for an angel's
``skill_focus`` and for the skills section of system prompts.
"""

from typing import Optional, Protocol


class SkillProtocol(Protocol):
    name: str
    description: str
    instructions: str


class SkillSourceProtocol(Protocol):
    def get(self, name: str) -> Optional[SkillProtocol]:
        ...

    def names(self) -> list[str]:
        ...

    def build_prompt_section(self) -> str:
        ...
