"""
Skill Catalog

Skills are ``SKILL.md`` files: YAML front matter (``name`` and
``description`` required) followed by markdown instructions. The catalog
discovers them under the configured directories; a later directory overrides
an earlier one when names collide.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional

import structlog
import yaml

from jubilee.core.domain.errors import ConfigurationError

SKILL_FILENAME = "SKILL.md"
FRONT_MATTER_DELIMITER = "---"


@dataclass(frozen=True)
class Skill:
    name: str
    description: str
    instructions: str
    path: str
    source: str = "user"


def parse_skill_file(content: str, path: str, source: str = "user") -> Skill:
    """
    Parse SKILL.md content.

    Raises:
        ConfigurationError: Missing front matter or required fields
    """
    text = content.lstrip("﻿")
    if not text.startswith(FRONT_MATTER_DELIMITER):
        raise ConfigurationError(f"Skill at {path} has no front matter")

    parts = text.split(FRONT_MATTER_DELIMITER, 2)
    if len(parts) < 3:
        raise ConfigurationError(f"Skill at {path} has unterminated front matter")

    try:
        data = yaml.safe_load(parts[1]) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Skill at {path} has invalid front matter: {e}") from e

    for key in ("name", "description"):
        if not isinstance(data.get(key), str) or not data[key].strip():
            raise ConfigurationError(f"Skill at {path} is missing required '{key}' field in front matter")

    return Skill(
        name=data["name"].strip(),
        description=data["description"].strip(),
        instructions=parts[2].strip(),
        path=path,
        source=source,
    )


class SkillCatalog:
    """Skills discovered on disk, keyed by name."""

    def __init__(self, skills: Optional[Iterable[Skill]] = None):
        self._skills: dict[str, Skill] = {s.name: s for s in skills or []}
        self.logger = structlog.get_logger().bind(component="skill_catalog")

    @classmethod
    def discover(cls, directories: Iterable[str | Path]) -> "SkillCatalog":
        """Scan each directory for ``*/SKILL.md``; invalid files are skipped."""
        catalog = cls()
        for directory in directories:
            root = Path(directory).expanduser()
            if not root.is_dir():
                continue
            for skill_file in sorted(root.glob(f"*/{SKILL_FILENAME}")):
                try:
                    skill = parse_skill_file(
                        skill_file.read_text(encoding="utf-8"),
                        str(skill_file),
                        source=str(root),
                    )
                except (OSError, ConfigurationError) as e:
                    catalog.logger.warning("skill_invalid", path=str(skill_file), error=str(e))
                    continue
                catalog.add(skill)
        catalog.logger.info("skills_discovered", count=len(catalog))
        return catalog

    def add(self, skill: Skill) -> None:
        self._skills[skill.name] = skill

    def get(self, name: str) -> Optional[Skill]:
        return self._skills.get(name)

    def names(self) -> list[str]:
        return sorted(self._skills)

    def __len__(self) -> int:
        return len(self._skills)

    def build_metadata_section(self) -> str:
        """One bullet per skill: ``- **name**: description``."""
        return "\n".join(f"- **{s.name}**: {s.description}" for s in sorted(self._skills.values(), key=lambda s: s.name))

    def build_prompt_section(self) -> str:
        """Skills section for system prompts; empty when there are no skills."""
        if not self._skills:
            return ""
        return (
            "## Available Skills\n\n"
            f"{self.build_metadata_section()}\n\n"
            "## Skill Usage Policy\n\n"
            "- Check whether an available skill fits the task\n"
            "- When a skill is relevant, invoke it as your first action\n"
            "- Do not invoke a skill that was already invoked for the current query"
        )
