"""Skill tool: hands a skill's instructions to the model on request."""

from typing import Any, Dict

from jubilee.core.interfaces.skills import SkillSourceProtocol
from jubilee.core.tools.base import Tool


class SkillTool(Tool):
    def __init__(self, skills: SkillSourceProtocol):
        self.skills = skills

    @property
    def name(self) -> str:
        return "skill"

    @property
    def description(self) -> str:
        available = ", ".join(self.skills.names()) or "none"
        return (
            "Load the step-by-step instructions of a specialized skill workflow and "
            f"follow them. Available skills: {available}."
        )

    async def execute(self, name: str, **kwargs) -> Dict[str, Any]:
        skill = self.skills.get(name)
        if skill is None:
            return {
                "success": False,
                "error": f"Unknown skill '{name}'. Available: {', '.join(self.skills.names()) or 'none'}",
            }
        return {"success": True, "output": f"# Skill: {skill.name}\n\n{skill.instructions}"}
