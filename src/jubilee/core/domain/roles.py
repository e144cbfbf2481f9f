"""
Angel Role Templates

Named archetypes for recurring angel missions. Eight generic defaults ship
with the runtime; a YAML file with an ``angel_archetypes`` mapping can add
roles or override fields of existing ones. The catalog is built once at
startup and read-only afterwards.

Override file example::

    angel_archetypes:
      TreasuryAngel:
        emoji: "💰"
        domain: Vault rebalancing for the protocol treasury
        tools: [financial_search, query_protocol_state]
        mission_framing: You manage the protocol treasury.
        required_mode: stewardship
"""

from pathlib import Path
from typing import Any, Iterator, Mapping, Optional

import structlog
import yaml

from jubilee.core.domain.errors import ConfigurationError
from jubilee.core.domain.models import FeatureMode, RoleTemplate

logger = structlog.get_logger()

DEFAULT_ROLE_ITERATIONS = 12

DEFAULT_ROLES: dict[str, RoleTemplate] = {
    "ContractAngel": RoleTemplate(
        key="ContractAngel",
        name="Contract Angel",
        emoji="🔨",
        domain="Smart contract analysis, testing, and auditing",
        default_capabilities=("skill", "search_codebase", "web_search", "recall_memories", "code_exec"),
        default_iterations=15,
        prompt_fragment=(
            "You are a smart contract engineer. Your work must be audit-ready. Flag any "
            "reentrancy, oracle manipulation, or access control vulnerabilities. Run the "
            "test suite with code_exec and iterate on failures, at most 3 attempts."
        ),
        required_mode=FeatureMode.BUILDER,
    ),
    "ResearchAngel": RoleTemplate(
        key="ResearchAngel",
        name="Research Angel",
        emoji="🔭",
        domain="DeFi protocols, market analysis, competitive landscape",
        default_capabilities=("web_search", "browser", "financial_search", "financial_metrics"),
        default_iterations=12,
        prompt_fragment=(
            "You are a DeFi research analyst. Focus on sustainable yield sources. "
            "Evaluate through institutional fiduciary standards."
        ),
        required_mode=FeatureMode.STEWARDSHIP,
    ),
    "DocsAngel": RoleTemplate(
        key="DocsAngel",
        name="Docs Angel",
        emoji="📜",
        domain="Technical documentation, whitepaper, governance proposals",
        default_capabilities=("web_search", "browser", "recall_memories", "remember_fact"),
        default_iterations=10,
        prompt_fragment=(
            "You are a technical writer. All writing must be precise, institutional-grade, "
            "and internally consistent."
        ),
        required_mode=FeatureMode.ANY,
    ),
    "ComplianceAngel": RoleTemplate(
        key="ComplianceAngel",
        name="Compliance Angel",
        emoji="⚖️",
        domain="Regulatory compliance, accounting standards, legal review",
        default_capabilities=("web_search", "browser", "read_filings", "recall_memories"),
        default_iterations=12,
        prompt_fragment=(
            "You are a compliance specialist. Focus on applicable regulatory frameworks "
            "and reporting requirements."
        ),
        required_mode=FeatureMode.STEWARDSHIP,
    ),
    "GrowthAngel": RoleTemplate(
        key="GrowthAngel",
        name="Growth Angel",
        emoji="📣",
        domain="Community, social media, investor outreach, partnerships",
        default_capabilities=("web_search", "browser", "draft_email", "recall_memories"),
        default_iterations=10,
        prompt_fragment=(
            "You are a growth strategist. Tone: mission-aligned, technically credible, "
            "never hype-driven."
        ),
        required_mode=FeatureMode.STEWARDSHIP,
    ),
    "BuilderAngel": RoleTemplate(
        key="BuilderAngel",
        name="Builder Angel",
        emoji="🏗️",
        domain="Full-stack development, API integrations, MCP servers",
        default_capabilities=("skill", "search_codebase", "web_search", "recall_memories", "code_exec"),
        default_iterations=15,
        prompt_fragment=(
            "You are a software engineer. Respect the existing architecture and keep code "
            "clean and typed. Run tests and type checks with code_exec and iterate on failures."
        ),
        required_mode=FeatureMode.BUILDER,
    ),
    "TreasuryAngel": RoleTemplate(
        key="TreasuryAngel",
        name="Treasury Angel",
        emoji="💰",
        domain="Yield optimization, vault rebalancing, treasury health analysis",
        default_capabilities=("skill", "financial_search", "financial_metrics", "web_search", "recall_memories"),
        default_iterations=12,
        prompt_fragment=(
            "You are a treasury operations specialist. Monitor vault health and runway "
            "projections. Never recommend withdrawing principal; optimize for long-term "
            "sustainability."
        ),
        required_mode=FeatureMode.STEWARDSHIP,
    ),
    "GovernanceAngel": RoleTemplate(
        key="GovernanceAngel",
        name="Governance Angel",
        emoji="🏛️",
        domain="Multi-sig governance, Safe/Squads proposals, timelock management, council voting",
        default_capabilities=(
            "propose_safe_tx",
            "query_safe_status",
            "propose_squads_tx",
            "query_squads_status",
            "query_protocol_state",
            "web_search",
        ),
        default_iterations=10,
        prompt_fragment=(
            "You are a governance operations specialist. Manage multi-sig proposals and "
            "track signer confirmations, timelock countdowns, and council voting. All "
            "governance actions require architect confirmation before execution."
        ),
        required_mode=FeatureMode.BUILDER,
    ),
}


class RoleCatalog:
    """Read-only mapping of role key → RoleTemplate."""

    def __init__(self, roles: Optional[Mapping[str, RoleTemplate]] = None):
        self._roles = dict(DEFAULT_ROLES if roles is None else roles)

    def get(self, key: str) -> Optional[RoleTemplate]:
        return self._roles.get(key)

    def names(self) -> list[str]:
        return list(self._roles.keys())

    def __contains__(self, key: object) -> bool:
        return key in self._roles

    def __iter__(self) -> Iterator[RoleTemplate]:
        return iter(self._roles.values())

    def __len__(self) -> int:
        return len(self._roles)


def _display_name(key: str, emoji: Optional[str]) -> str:
    base = key.replace("Angel", " Angel").strip() if key.endswith("Angel") else key
    return f"{emoji} {base}" if emoji else base


def merge_archetype(key: str, data: Mapping[str, Any], existing: Optional[RoleTemplate]) -> RoleTemplate:
    """
    Build a role from an ``angel_archetypes`` entry, taking missing fields
    from ``existing``.

    Raises:
        ConfigurationError: Unknown ``required_mode`` value
    """
    try:
        mode = FeatureMode(data.get("required_mode", FeatureMode.ANY.value))
    except ValueError as e:
        raise ConfigurationError(f"Role {key}: invalid required_mode {data.get('required_mode')!r}") from e

    tools = data.get("tools")
    capabilities = tuple(tools) if tools else (existing.default_capabilities if existing else ())
    iterations = data.get("iterations") or (existing.default_iterations if existing else DEFAULT_ROLE_ITERATIONS)

    return RoleTemplate(
        key=key,
        name=_display_name(key, data.get("emoji")),
        emoji=data.get("emoji") or "👼",
        domain=data.get("domain") or (existing.domain if existing else ""),
        default_capabilities=capabilities,
        default_iterations=int(iterations),
        prompt_fragment=data.get("mission_framing") or (existing.prompt_fragment if existing else ""),
        required_mode=mode,
    )


def load_role_catalog(override_path: Optional[str | Path] = None) -> RoleCatalog:
    """
    Merge the default roles with ``angel_archetypes`` from ``override_path``.

    A missing file yields the defaults. An unreadable file is logged and
    ignored; invalid entries raise ConfigurationError.
    """
    roles = dict(DEFAULT_ROLES)
    if not override_path:
        return RoleCatalog(roles)

    path = Path(override_path).expanduser()
    if not path.exists():
        return RoleCatalog(roles)

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.warning("role_overrides_unreadable", path=str(path), error=str(e))
        return RoleCatalog(roles)

    archetypes = data.get("angel_archetypes") if isinstance(data, dict) else None
    for key, entry in (archetypes or {}).items():
        if not isinstance(entry, dict):
            raise ConfigurationError(f"Role {key}: archetype must be a mapping")
        roles[key] = merge_archetype(key, entry, roles.get(key))

    logger.info("roles_loaded", path=str(path), count=len(roles), overrides=len(archetypes or {}))
    return RoleCatalog(roles)
