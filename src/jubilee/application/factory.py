"""
Application Layer - Runtime Factory

Dependency injection for the whole runtime. Everything that would otherwise
be a process-wide singleton (tool registry, role catalog, guard, task store,
LLM provider) is built once here and passed explicitly into the dispatcher
and the Triune orchestrator.

Key Responsibilities:
- Instantiate the LLM provider from the LiteLLM config
- Load the tool profile (``tools.yaml``) and instantiate tools by module/type
- Attach pre-execution policies (allowlist, confirmation) per tool
- Load role overrides, guard policy and skills
- Wire the AngelDispatcher and the ``dispatch_angel`` tool into the registry
"""

import importlib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

import structlog
import yaml

from jubilee.application.settings import JubileeSettings
from jubilee.core.domain.dispatcher import AngelDispatcher
from jubilee.core.domain.errors import ConfigurationError
from jubilee.core.domain.guard import SafetyGuard
from jubilee.core.domain.roles import RoleCatalog, load_role_catalog
from jubilee.core.domain.triune import TriuneOrchestrator
from jubilee.core.interfaces.llm import LLMProviderProtocol
from jubilee.core.interfaces.tasks import TaskStoreProtocol
from jubilee.core.interfaces.tools import ToolProtocol
from jubilee.core.prompts.guard_policy import load_guard_policy
from jubilee.core.tools.policies import (
    DEFAULT_ADDRESS_ALIASES,
    AllowlistPolicy,
    ConfirmationPolicy,
    FileAllowlist,
    StaticAllowlist,
    ToolPolicy,
)
from jubilee.core.tools.registry import ToolRegistry
from jubilee.infrastructure.llm.litellm_provider import LiteLLMProvider
from jubilee.infrastructure.persistence.task_store import FileTaskStore
from jubilee.infrastructure.skills.loader import SkillCatalog

DEFAULT_TOOL_SPECS: list[dict[str, Any]] = [
    {"type": "WebSearchTool", "module": "jubilee.infrastructure.tools.web_tools"},
    {"type": "BrowserTool", "module": "jubilee.infrastructure.tools.web_tools"},
    {"type": "SkillTool", "module": "jubilee.infrastructure.tools.skill_tool"},
    {"type": "RememberFactTool", "module": "jubilee.infrastructure.tools.memory_tools"},
    {"type": "RecallMemoriesTool", "module": "jubilee.infrastructure.tools.memory_tools"},
    {"type": "DispatchAngelTool", "module": "jubilee.core.tools.dispatch_tool"},
]


@dataclass
class JubileeRuntime:
    """Fully wired services for one process."""

    settings: JubileeSettings
    llm_provider: LLMProviderProtocol
    registry: ToolRegistry
    roles: RoleCatalog
    skills: SkillCatalog
    guard: SafetyGuard
    task_store: TaskStoreProtocol
    dispatcher: AngelDispatcher
    triune: TriuneOrchestrator


class JubileeFactory:
    """
    Factory for the runtime with dependency injection.

    Args:
        settings: Runtime settings
        llm_provider: Optional provider override (tests, embedding)
        task_store: Optional task store override
    """

    def __init__(
        self,
        settings: Optional[JubileeSettings] = None,
        llm_provider: Optional[LLMProviderProtocol] = None,
        task_store: Optional[TaskStoreProtocol] = None,
    ):
        self.settings = settings or JubileeSettings()
        self._llm_provider = llm_provider
        self._task_store = task_store
        self.logger = structlog.get_logger().bind(component="jubilee_factory")

    def build(self) -> JubileeRuntime:
        settings = self.settings
        llm_provider = self._llm_provider or self._create_llm_provider()
        skills = SkillCatalog.discover(settings.skills_dirs)
        roles = load_role_catalog(settings.roles_path)
        guard = SafetyGuard(
            llm_provider,
            policy=load_guard_policy(settings.guard_policy_path),
            model=settings.guard_model,
            timeout=settings.guard_timeout,
        )
        task_store = self._task_store or FileTaskStore(settings.tasks_dir)
        registry = ToolRegistry(mind_tools=settings.mind_tools, prophet_tools=settings.prophet_tools)

        dispatcher = AngelDispatcher(
            llm_provider,
            registry,
            guard,
            roles=roles,
            mode_gate=settings.mode_enabled,
            task_store=task_store,
            skills=skills,
            model=settings.model,
            max_depth=settings.max_dispatch_depth,
            strict_capabilities=settings.strict_capabilities,
            default_iterations=settings.angel_iterations,
            model_timeout=settings.model_timeout,
            tool_timeout=settings.tool_timeout,
            run_timeout=settings.run_timeout,
        )

        injections = {"dispatcher": dispatcher, "skills": skills, "role_names": roles.names()}
        for spec in self._load_tool_specs():
            tool = self._instantiate_tool(spec, injections)
            if tool is None:
                continue
            registry.register(
                tool,
                description=spec.get("description"),
                policies=self._create_policies(spec.get("policies") or [], tool.name),
            )

        triune = TriuneOrchestrator(
            llm_provider,
            registry,
            model=settings.model,
            max_iterations=settings.max_iterations,
            skills_section=skills.build_prompt_section(),
            model_timeout=settings.model_timeout,
            tool_timeout=settings.tool_timeout,
            run_timeout=settings.run_timeout,
            parallel_tool_calls=settings.parallel_tool_calls,
        )

        self.logger.info(
            "runtime_built",
            tools=registry.names(),
            roles=len(roles),
            skills=len(skills),
        )
        return JubileeRuntime(
            settings=settings,
            llm_provider=llm_provider,
            registry=registry,
            roles=roles,
            skills=skills,
            guard=guard,
            task_store=task_store,
            dispatcher=dispatcher,
            triune=triune,
        )

    def _create_llm_provider(self) -> LLMProviderProtocol:
        config_path = self.settings.llm_config_path
        if config_path and Path(config_path).expanduser().exists():
            return LiteLLMProvider(config_path=config_path)
        self.logger.info("llm_config_default", path=config_path)
        return LiteLLMProvider()

    def _load_tool_specs(self) -> list[dict[str, Any]]:
        """
        Read ``tools`` from the tool profile, or use the default tool set.

        Raises:
            ConfigurationError: Profile exists but is malformed
        """
        path_setting = self.settings.tools_config_path
        if not path_setting:
            return list(DEFAULT_TOOL_SPECS)

        path = Path(path_setting).expanduser()
        if not path.exists():
            self.logger.info("tool_profile_missing", path=str(path))
            return list(DEFAULT_TOOL_SPECS)

        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        specs = data.get("tools") if isinstance(data, dict) else None
        if not isinstance(specs, list):
            raise ConfigurationError(f"Tool profile {path} must contain a 'tools' list")
        return specs

    def _instantiate_tool(self, tool_spec: dict, injections: dict[str, Any]) -> Optional[ToolProtocol]:
        """
        Instantiate a tool from a ``type`` / ``module`` / ``params`` spec.

        Returns:
            Tool instance or None if instantiation fails
        """
        tool_type = tool_spec.get("type")
        tool_module = tool_spec.get("module")
        tool_params = dict(tool_spec.get("params") or {})

        if not tool_type or not tool_module:
            self.logger.warning(
                "invalid_tool_spec",
                tool_type=tool_type,
                tool_module=tool_module,
                hint="Tool spec must include 'type' and 'module'",
            )
            return None

        if tool_type == "DispatchAngelTool":
            tool_params["dispatcher"] = injections["dispatcher"]
            tool_params.setdefault("role_names", injections["role_names"])
        elif tool_type == "SkillTool":
            tool_params["skills"] = injections["skills"]

        try:
            module = importlib.import_module(tool_module)
            tool_class = getattr(module, tool_type)
            tool_instance = tool_class(**tool_params)
        except Exception as e:
            self.logger.error(
                "tool_instantiation_failed",
                tool_type=tool_type,
                tool_module=tool_module,
                error=str(e),
                error_type=type(e).__name__,
            )
            return None

        self.logger.debug("tool_instantiated", tool_type=tool_type, tool_name=tool_instance.name)
        return tool_instance

    def _create_policies(self, specs: list[dict[str, Any]], tool_name: str) -> list[ToolPolicy]:
        """
        Raises:
            ConfigurationError: Unknown policy type
        """
        policies: list[ToolPolicy] = []
        for spec in specs:
            policy_type = spec.get("type")
            if policy_type == "allowlist":
                if "addresses" in spec:
                    source = StaticAllowlist(spec["addresses"])
                else:
                    source = FileAllowlist(spec.get("path") or self.settings.allowlist_path)
                policies.append(
                    AllowlistPolicy(source, address_aliases=spec.get("aliases") or DEFAULT_ADDRESS_ALIASES)
                )
            elif policy_type == "confirmation":
                policies.append(ConfirmationPolicy(token=spec.get("token") or self.settings.confirmation_token))
            else:
                raise ConfigurationError(f"Unknown policy type '{policy_type}' for tool {tool_name}")
        return policies
