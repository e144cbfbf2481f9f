import pytest
import yaml

from jubilee.core.domain.errors import ConfigurationError
from jubilee.core.domain.models import FeatureMode
from jubilee.core.domain.roles import DEFAULT_ROLES, load_role_catalog


def test_eight_default_roles():
    assert len(DEFAULT_ROLES) == 8
    assert DEFAULT_ROLES["ContractAngel"].required_mode is FeatureMode.BUILDER
    assert DEFAULT_ROLES["DocsAngel"].required_mode is FeatureMode.ANY


def test_missing_override_file_gives_defaults(tmp_path):
    catalog = load_role_catalog(tmp_path / "roles.yaml")
    assert catalog.names() == list(DEFAULT_ROLES)


def test_override_merges_and_adds(tmp_path):
    path = tmp_path / "roles.yaml"
    path.write_text(yaml.safe_dump({
        "angel_archetypes": {
            "ResearchAngel": {"iterations": 20},
            "PastoralAngel": {
                "emoji": "🕊️",
                "domain": "Member care",
                "tools": ["recall_memories"],
                "mission_framing": "Support pastoral staff.",
                "required_mode": "stewardship",
            },
        }
    }), encoding="utf-8")

    catalog = load_role_catalog(path)

    research = catalog.get("ResearchAngel")
    assert research.default_iterations == 20
    assert research.default_capabilities == DEFAULT_ROLES["ResearchAngel"].default_capabilities
    assert research.prompt_fragment == DEFAULT_ROLES["ResearchAngel"].prompt_fragment

    pastoral = catalog.get("PastoralAngel")
    assert pastoral.name == "🕊️ Pastoral Angel"
    assert pastoral.default_capabilities == ("recall_memories",)
    assert pastoral.required_mode is FeatureMode.STEWARDSHIP
    assert len(catalog) == 9


def test_invalid_mode_is_configuration_error(tmp_path):
    path = tmp_path / "roles.yaml"
    path.write_text(yaml.safe_dump({"angel_archetypes": {"X": {"required_mode": "chaos"}}}), encoding="utf-8")

    with pytest.raises(ConfigurationError, match="invalid required_mode"):
        load_role_catalog(path)


def test_unreadable_yaml_falls_back(tmp_path):
    path = tmp_path / "roles.yaml"
    path.write_text("angel_archetypes: [unclosed", encoding="utf-8")

    assert len(load_role_catalog(path)) == 8
