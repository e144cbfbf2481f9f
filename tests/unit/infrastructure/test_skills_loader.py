import pytest

from jubilee.core.domain.errors import ConfigurationError
from jubilee.infrastructure.skills.loader import SkillCatalog, parse_skill_file

SKILL_MD = """---
name: audit
description: Review a contract for common vulnerabilities
---

# Audit

Check every external call.
"""


def write_skill(root, folder, content):
    skill_dir = root / folder
    skill_dir.mkdir(parents=True)
    (skill_dir / "SKILL.md").write_text(content, encoding="utf-8")


class TestParseSkillFile:
    def test_parses_front_matter_and_body(self):
        skill = parse_skill_file(SKILL_MD, "skills/audit/SKILL.md")
        assert skill.name == "audit"
        assert skill.description == "Review a contract for common vulnerabilities"
        assert skill.instructions.startswith("# Audit")

    def test_missing_front_matter(self):
        with pytest.raises(ConfigurationError, match="no front matter"):
            parse_skill_file("# just markdown", "x")

    def test_missing_description(self):
        with pytest.raises(ConfigurationError, match="'description'"):
            parse_skill_file("---\nname: audit\n---\nbody", "x")


class TestSkillCatalog:
    def test_discover_skips_invalid_and_missing_dirs(self, tmp_path):
        write_skill(tmp_path, "audit", SKILL_MD)
        write_skill(tmp_path, "broken", "no front matter here")

        catalog = SkillCatalog.discover([tmp_path, tmp_path / "does-not-exist"])

        assert catalog.names() == ["audit"]
        assert catalog.get("audit").source == str(tmp_path)

    def test_later_directory_overrides(self, tmp_path):
        write_skill(tmp_path / "builtin", "audit", SKILL_MD)
        write_skill(tmp_path / "user", "audit", SKILL_MD.replace("common vulnerabilities", "everything"))

        catalog = SkillCatalog.discover([tmp_path / "builtin", tmp_path / "user"])

        assert len(catalog) == 1
        assert catalog.get("audit").description == "Review a contract for everything"

    def test_prompt_section(self, tmp_path):
        assert SkillCatalog().build_prompt_section() == ""

        write_skill(tmp_path, "audit", SKILL_MD)
        section = SkillCatalog.discover([tmp_path]).build_prompt_section()

        assert section.startswith("## Available Skills")
        assert "- **audit**: Review a contract for common vulnerabilities" in section
