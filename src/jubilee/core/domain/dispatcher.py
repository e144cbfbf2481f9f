"""
Angel Dispatcher

Builds a capability-scoped, policy-gated sub-agent ("Angel") for a mission and
returns its final report as text. Every refusal comes back as a string so the
calling model can read it; nothing here raises to the caller except
cancellation.

Order of checks, each short-circuiting:
1. recursion depth
2. role template resolution and feature-mode gate (no guard or model calls)
3. capability resolution against the registry
4. safety guard (REJECT → nothing is constructed)
5. task context load, layered prompt, agent run on a fresh history
6. task context append after a completed run
"""

from typing import Callable, Optional, Sequence

import structlog

from jubilee.core.domain.agent import Agent
from jubilee.core.domain.cancellation import CancellationToken
from jubilee.core.domain.errors import ConfigurationError, RecursionDepthExceeded
from jubilee.core.domain.events import AbortedEvent, DoneEvent, ErrorEvent, EventSink
from jubilee.core.domain.guard import SafetyGuard
from jubilee.core.domain.models import (
    AgentConfig,
    ChatHistory,
    FeatureMode,
    Mission,
    RoleTemplate,
    SessionSummary,
)
from jubilee.core.domain.roles import RoleCatalog
from jubilee.core.interfaces.llm import LLMProviderProtocol
from jubilee.core.interfaces.skills import SkillSourceProtocol
from jubilee.core.interfaces.tasks import TaskStoreProtocol
from jubilee.core.interfaces.tools import ToolProtocol
from jubilee.core.prompts.angel_prompts import build_angel_prompt
from jubilee.core.tools.dispatch_tool import bind_dispatch_tools
from jubilee.core.tools.registry import ToolRegistry

DEFAULT_MAX_DEPTH = 3
SUMMARY_MAX_CHARS = 1000

GUARD_BLOCK_MARKER = "⛔ MISSION BLOCKED BY THE GUARD"
ROLE_GATE_MARKER = "⛔ ROLE UNAVAILABLE"
DEPTH_MARKER = "⛔ DISPATCH REFUSED"

AgentFactory = Callable[[AgentConfig, str], Agent]
ModeGate = Callable[[FeatureMode], bool]


def allow_all_modes(mode: FeatureMode) -> bool:
    return True


class AngelDispatcher:
    """
    Dispatches angels for missions.

    Args:
        llm_provider: Chat model provider for the angels
        registry: Closed tool registry capabilities are resolved against
        guard: Safety guard consulted before any angel is built
        roles: Role template catalog
        mode_gate: Returns True when a feature mode is enabled
        task_store: Optional resumable task context store
        skills: Optional skill source for ``skill_focus``
        model: Model alias for angels (None uses the provider default)
        max_depth: Deepest allowed nesting of dispatches (top level is 1)
        strict_capabilities: Unknown requested capabilities are a configuration
            error instead of being dropped
        default_iterations: Iteration budget for ad-hoc angels
        agent_factory: Builds the Agent for a config and angel name
    """

    def __init__(
        self,
        llm_provider: LLMProviderProtocol,
        registry: ToolRegistry,
        guard: SafetyGuard,
        roles: Optional[RoleCatalog] = None,
        mode_gate: ModeGate = allow_all_modes,
        task_store: Optional[TaskStoreProtocol] = None,
        skills: Optional[SkillSourceProtocol] = None,
        model: Optional[str] = None,
        max_depth: int = DEFAULT_MAX_DEPTH,
        strict_capabilities: bool = True,
        default_iterations: int = 10,
        agent_factory: Optional[AgentFactory] = None,
        model_timeout: Optional[float] = None,
        tool_timeout: Optional[float] = None,
        run_timeout: Optional[float] = None,
    ):
        self.llm_provider = llm_provider
        self.registry = registry
        self.guard = guard
        self.roles = roles or RoleCatalog()
        self.mode_gate = mode_gate
        self.task_store = task_store
        self.skills = skills
        self.model = model
        self.max_depth = max_depth
        self.strict_capabilities = strict_capabilities
        self.default_iterations = default_iterations
        self.agent_factory = agent_factory or self._default_agent_factory
        self.model_timeout = model_timeout
        self.tool_timeout = tool_timeout
        self.run_timeout = run_timeout
        self.logger = structlog.get_logger().bind(component="angel_dispatcher")

    def _default_agent_factory(self, config: AgentConfig, name: str) -> Agent:
        return Agent(self.llm_provider, config, name=name)

    async def dispatch(
        self,
        mission: Mission,
        depth: int = 1,
        cancel_token: Optional[CancellationToken] = None,
        event_sink: Optional[EventSink] = None,
        user_message: str = "",
    ) -> str:
        """
        Run one mission and return the angel's report or a refusal string.

        ``user_message`` is what the originating user typed. The angel's tool
        policies check it; the mission text is written by a model and is
        never treated as a user utterance.

        Raises:
            CancellationError: ``cancel_token`` fired while the guard was waiting
        """
        log = self.logger.bind(depth=depth, role=mission.role, mission=mission.mission[:100])
        log.info("angel_dispatch_started")

        if depth > self.max_depth:
            error = RecursionDepthExceeded(depth, self.max_depth)
            log.warning("angel_dispatch_depth_exceeded", limit=self.max_depth)
            return f"{DEPTH_MARKER}: {error}. Complete the mission yourself instead."

        role: Optional[RoleTemplate] = None
        if mission.role:
            role = self.roles.get(mission.role)
            if role is None:
                log.warning("angel_role_unknown")
                return (
                    f"Error: Unknown angel role '{mission.role}'. "
                    f"Available roles: {', '.join(self.roles.names())}"
                )
            if role.required_mode is not FeatureMode.ANY and not self.mode_gate(role.required_mode):
                log.warning("angel_role_gated", required_mode=role.required_mode.value)
                mode = role.required_mode.value
                return (
                    f"{ROLE_GATE_MARKER}: {role.key} requires {mode} mode, which is disabled. "
                    f"Enable it with `jubilee config mode {mode} on`."
                )

        name = mission.name or (role.name if role else "Angel")
        iterations = mission.iterations or (role.default_iterations if role else self.default_iterations)

        try:
            tools = self._resolve_tools(mission, role, depth, user_message)
        except ConfigurationError as e:
            log.warning("angel_configuration_error", error=str(e))
            return f"Error: {e}"

        verdict = await self.guard.check(name, mission.mission, cancel_token=cancel_token)
        if not verdict.approved:
            log.warning("angel_dispatch_rejected", reason=verdict.reason)
            return f"{GUARD_BLOCK_MARKER}: {verdict.reason}"

        task_context: list[SessionSummary] = []
        if mission.task_id is not None and self.task_store is not None:
            task_context = await self.task_store.load(mission.task_id)

        skill_name, skill_instructions = self._resolve_skill(mission.skill_focus)
        tool_names = [t.name for t in tools]

        config = AgentConfig(
            system_prompt=build_angel_prompt(
                name=name,
                mission=mission.mission,
                capabilities=tool_names,
                role_domain=role.domain if role else None,
                role_fragment=role.prompt_fragment if role else None,
                skill_name=skill_name,
                skill_instructions=skill_instructions,
                task_id=mission.task_id,
                task_context=task_context,
            ),
            tools=tools,
            model=self.model,
            max_iterations=iterations,
            policies=self.registry.policies_for(tool_names),
            model_timeout=self.model_timeout,
            tool_timeout=self.tool_timeout,
            run_timeout=self.run_timeout,
        )
        agent = self.agent_factory(config, name)
        log.info("angel_configured", angel=name, tools=tool_names, iterations=iterations)

        answer: Optional[str] = None
        failure: Optional[str] = None
        async for event in agent.run(
            mission.mission,
            ChatHistory(),
            cancel_token=cancel_token,
            user_message=user_message,
        ):
            if event_sink is not None:
                event_sink(name, event)
            if isinstance(event, DoneEvent):
                answer = event.answer
            elif isinstance(event, ErrorEvent):
                failure = event.message
            elif isinstance(event, AbortedEvent):
                failure = f"aborted ({event.reason})"

        if answer is None:
            log.error("angel_dispatch_failed", angel=name, error=failure)
            return f"Angel {name} failed: {failure or 'no answer produced'}"

        if mission.task_id is not None and self.task_store is not None:
            summary = f"[{name}] {answer[:SUMMARY_MAX_CHARS]}"
            await self.task_store.append(mission.task_id, SessionSummary(summary=summary))

        log.info("angel_dispatch_completed", angel=name, answer_length=len(answer))
        return f"👼 [{name}] Report:\n{answer}"

    def _resolve_tools(
        self, mission: Mission, role: Optional[RoleTemplate], depth: int, user_message: str
    ) -> list[ToolProtocol]:
        """
        Resolve capabilities into tools bound for the next depth and the
        originating user message.

        Explicit mission capabilities are checked strictly; role defaults that
        are not registered in this process are dropped.

        Raises:
            ConfigurationError: Unknown explicit capabilities (strict mode), or
                nothing resolved although capabilities were requested
        """
        explicit = mission.capabilities is not None
        requested: Sequence[str] = (
            mission.capabilities if explicit else (role.default_capabilities if role else ())
        )
        resolution = self.registry.resolve(requested)

        if resolution.unknown:
            if explicit and self.strict_capabilities:
                raise ConfigurationError(
                    f"Unknown capabilities [{', '.join(resolution.unknown)}]. "
                    f"Available: {', '.join(self.registry.names())}"
                )
            self.logger.info("capabilities_dropped", unknown=resolution.unknown)

        if requested and not resolution.tools:
            raise ConfigurationError(
                f"Requested capabilities [{', '.join(requested)}] not found or unavailable."
            )

        return bind_dispatch_tools(resolution.tools, depth + 1, user_message)

    def _resolve_skill(self, skill_focus: Optional[str]) -> tuple[Optional[str], Optional[str]]:
        if not skill_focus or self.skills is None:
            return None, None
        skill = self.skills.get(skill_focus)
        if skill is None:
            self.logger.warning("skill_focus_unknown", skill=skill_focus)
            return None, None
        return skill.name, skill.instructions
