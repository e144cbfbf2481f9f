"""
Triune Orchestrator

Three-phase orchestration over ordinary Agents:

1. Fan-out: The Mind (research/analysis tools) and The Prophet
   (sentiment/ethics tools) run concurrently on the same query, each with a
   fresh, empty history. Their events are not forwarded; an optional
   ``event_sink`` receives them tagged by source.
2. Join: a barrier on both. If either fails, the orchestration fails with a
   terminal error, the sibling is cancelled and The Will is never built.
3. Synthesis: The Will (all tools) gets both reports in its system prompt and
   the caller's history. Its events are forwarded verbatim except ``done``,
   which carries the iterations of all three phases, the time since phase 1
   started, and a closing verse.
"""

import asyncio
import random
import time
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

import structlog

from jubilee.core.domain.agent import Agent
from jubilee.core.domain.cancellation import CancellationToken
from jubilee.core.domain.errors import CancellationError, TriunePhaseError
from jubilee.core.domain.events import (
    AbortedEvent,
    AgentEvent,
    DoneEvent,
    ErrorEvent,
    EventSink,
    ThinkingEvent,
    is_terminal,
)
from jubilee.core.domain.models import AgentConfig, ChatHistory
from jubilee.core.interfaces.llm import LLMProviderProtocol
from jubilee.core.prompts import triune_prompts
from jubilee.core.tools.dispatch_tool import bind_dispatch_tools
from jubilee.core.tools.registry import ToolRegistry, TriuneRole

CLOSING_VERSES = (
    "Trust in the LORD with all your heart, and do not lean on your own understanding. - Proverbs 3:5",
    "The blessing of the LORD makes rich, and He adds no sorrow with it. - Proverbs 10:22",
    "He who walks with wise men will be wise, but the companion of fools will be destroyed. - Proverbs 13:20",
    "Whatever you do, work heartily, as for the Lord and not for men. - Colossians 3:23",
    "For what does it profit a man to gain the whole world and forfeit his soul? - Mark 8:36",
)

AgentFactory = Callable[[AgentConfig, str], Agent]


@dataclass(frozen=True)
class CounselReport:
    """Final answer of a phase-1 agent."""

    source: str
    answer: str
    iterations: int


def decorate_answer(answer: str, verse: str) -> str:
    return f'{answer}\n\n> *"{verse}"*'


class TriuneOrchestrator:
    """
    Mind + Prophet in parallel, then Will.

    Prompt builders are injectable; the Will builder is only called after
    both counsel reports are in.
    """

    def __init__(
        self,
        llm_provider: LLMProviderProtocol,
        registry: ToolRegistry,
        model: Optional[str] = None,
        max_iterations: int = 10,
        skills_section: str = "",
        model_timeout: Optional[float] = None,
        tool_timeout: Optional[float] = None,
        run_timeout: Optional[float] = None,
        parallel_tool_calls: bool = False,
        agent_factory: Optional[AgentFactory] = None,
        mind_prompt_builder: Callable[..., str] = triune_prompts.build_mind_prompt,
        prophet_prompt_builder: Callable[..., str] = triune_prompts.build_prophet_prompt,
        will_prompt_builder: Callable[..., str] = triune_prompts.build_will_prompt,
        verses: Sequence[str] = CLOSING_VERSES,
    ):
        self.llm_provider = llm_provider
        self.registry = registry
        self.model = model
        self.max_iterations = max_iterations
        self.skills_section = skills_section
        self.model_timeout = model_timeout
        self.tool_timeout = tool_timeout
        self.run_timeout = run_timeout
        self.parallel_tool_calls = parallel_tool_calls
        self.agent_factory = agent_factory or self._default_agent_factory
        self.mind_prompt_builder = mind_prompt_builder
        self.prophet_prompt_builder = prophet_prompt_builder
        self.will_prompt_builder = will_prompt_builder
        self.verses = tuple(verses)
        self.logger = structlog.get_logger().bind(component="triune")

    def _default_agent_factory(self, config: AgentConfig, name: str) -> Agent:
        return Agent(self.llm_provider, config, name=name)

    def _build_config(self, role: TriuneRole, system_prompt: str, query: str) -> AgentConfig:
        # Angels dispatched from here act for the user who sent ``query``.
        tools = bind_dispatch_tools(self.registry.get_tools_for_role(role), 1, query)
        return AgentConfig(
            system_prompt=system_prompt,
            tools=tools,
            model=self.model,
            max_iterations=self.max_iterations,
            policies=self.registry.policies_for(t.name for t in tools),
            model_timeout=self.model_timeout,
            tool_timeout=self.tool_timeout,
            run_timeout=self.run_timeout,
            parallel_tool_calls=self.parallel_tool_calls,
        )

    def _describe(self, role: TriuneRole) -> str:
        return self.registry.build_tool_descriptions(t.name for t in self.registry.get_tools_for_role(role))

    async def run(
        self,
        query: str,
        history: ChatHistory,
        cancel_token: Optional[CancellationToken] = None,
        event_sink: Optional[EventSink] = None,
    ) -> AsyncIterator[AgentEvent]:
        """
        Orchestrate the three phases and yield The Will's event stream.

        Always ends with exactly one terminal event.
        """
        start = time.monotonic()
        self.logger.info("triune_start", query=query[:100])

        # Phase 1: fan-out
        yield ThinkingEvent(message="Summoning The Mind and The Prophet...")
        try:
            mind, prophet = await self._run_counsel(query, cancel_token, event_sink)
        except CancellationError as e:
            self.logger.warning("triune_aborted", phase="counsel", reason=e.reason)
            yield AbortedEvent(reason=e.reason)
            return
        except TriunePhaseError as e:
            self.logger.error("triune_failed", phase=e.phase, error=str(e))
            yield ErrorEvent(message=f"Triune orchestration failed: {e}")
            return

        # Phase 3: synthesis
        yield ThinkingEvent(message="The Will is synthesizing the reports...")
        will_prompt = self.will_prompt_builder(
            mind.answer,
            prophet.answer,
            tool_descriptions=self._describe(TriuneRole.WILL),
            skills_section=self.skills_section,
        )
        will = self.agent_factory(self._build_config(TriuneRole.WILL, will_prompt, query), "The Will")
        verse = random.choice(self.verses) if self.verses else ""

        async for event in will.run(query, history, cancel_token=cancel_token, record_history=False):
            if isinstance(event, DoneEvent):
                answer = decorate_answer(event.answer, verse) if verse else event.answer
                iterations = mind.iterations + prophet.iterations + event.iterations
                total_time_ms = int((time.monotonic() - start) * 1000)
                history.record_exchange(query, answer)
                self.logger.info("triune_complete", iterations=iterations, total_time_ms=total_time_ms)
                yield DoneEvent(
                    answer=answer,
                    iterations=iterations,
                    total_time_ms=total_time_ms,
                    forced=event.forced,
                )
            else:
                yield event

    async def _run_counsel(
        self,
        query: str,
        cancel_token: Optional[CancellationToken],
        event_sink: Optional[EventSink],
    ) -> tuple[CounselReport, CounselReport]:
        """
        Run Mind and Prophet concurrently behind a barrier.

        Raises:
            TriunePhaseError: Either counsel failed; the other was cancelled
            CancellationError: The run was cancelled
        """
        mind_agent = self.agent_factory(
            self._build_config(
                TriuneRole.MIND,
                self.mind_prompt_builder(
                    tool_descriptions=self._describe(TriuneRole.MIND),
                    skills_section=self.skills_section,
                ),
                query,
            ),
            "The Mind",
        )
        prophet_agent = self.agent_factory(
            self._build_config(
                TriuneRole.PROPHET,
                self.prophet_prompt_builder(
                    tool_descriptions=self._describe(TriuneRole.PROPHET),
                    skills_section=self.skills_section,
                ),
                query,
            ),
            "The Prophet",
        )

        tasks = [
            asyncio.create_task(self._collect("The Mind", mind_agent, query, cancel_token, event_sink)),
            asyncio.create_task(self._collect("The Prophet", prophet_agent, query, cancel_token, event_sink)),
        ]
        try:
            done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
        except asyncio.CancelledError:
            for task in tasks:
                task.cancel()
            raise

        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        failed = [t for t in tasks if t.done() and not t.cancelled() and t.exception() is not None]
        if failed:
            error = failed[0].exception()
            if isinstance(error, (CancellationError, TriunePhaseError)):
                raise error
            source = "The Mind" if failed[0] is tasks[0] else "The Prophet"
            raise TriunePhaseError(source, f"{type(error).__name__}: {error}") from error

        mind, prophet = tasks[0].result(), tasks[1].result()
        self.logger.info(
            "triune_counsel_joined",
            mind_iterations=mind.iterations,
            prophet_iterations=prophet.iterations,
        )
        return mind, prophet

    async def _collect(
        self,
        source: str,
        agent: Agent,
        query: str,
        cancel_token: Optional[CancellationToken],
        event_sink: Optional[EventSink],
    ) -> CounselReport:
        terminal: Optional[AgentEvent] = None
        async for event in agent.run(query, ChatHistory(), cancel_token=cancel_token):
            if event_sink is not None:
                event_sink(source, event)
            if is_terminal(event):
                terminal = event

        if isinstance(terminal, DoneEvent):
            return CounselReport(source=source, answer=terminal.answer, iterations=terminal.iterations)
        if isinstance(terminal, AbortedEvent):
            raise CancellationError(terminal.reason)
        if isinstance(terminal, ErrorEvent):
            raise TriunePhaseError(source, terminal.message)
        raise TriunePhaseError(source, "ended without a terminal event")
