"""
Agent - Reasoning/Acting Loop with Native Tool Calling

A single execution loop against a chat model:
1. Build the prompt from the query, accumulated tool results and a status line
2. Call the model with the bound tools
3. If the model returns tool_calls → execute them in request order, accumulate
   the results, loop
4. If the model returns content → that's the final answer

Every step is reported as an AgentEvent. A run ends with exactly one terminal
event (done, error or aborted), always last:
- tool failures never end a run; they become tool_error events and context
- chat model failures end the run with an error event
- cancellation and the total-run timeout end the run with an aborted event
- an exhausted iteration budget triggers one forced, tool-less answer pass
"""

import asyncio
import time
from collections.abc import AsyncIterator
from typing import Any, Optional

import structlog

from jubilee.core.domain.cancellation import CancellationToken, Deadline, run_guarded
from jubilee.core.domain.errors import CallTimeoutError, CancellationError, ModelError
from jubilee.core.domain.events import (
    AbortedEvent,
    AgentEvent,
    DoneEvent,
    ErrorEvent,
    ThinkingEvent,
    ToolEndEvent,
    ToolErrorEvent,
    ToolStartEvent,
)
from jubilee.core.domain.models import AgentConfig, ChatHistory, IterationState
from jubilee.core.interfaces.llm import LLMProviderProtocol
from jubilee.core.prompts.agent_prompts import (
    EMPTY_RESPONSE_NUDGE,
    build_final_answer_prompt,
    build_iteration_prompt,
    build_tool_usage_status,
)
from jubilee.core.tools.executor import ToolExecutor, ToolResult
from jubilee.core.tools.policies import PolicyContext
from jubilee.infrastructure.tools.tool_converter import (
    format_tool_result_block,
    parse_tool_call,
    tools_to_openai_format,
)

AUTH_ERROR_MARKERS = (
    "authentication",
    "401",
    "api_key",
    "api key",
    "unauthorized",
    "not found in environment",
)

AUTH_ERROR_MESSAGE = (
    "Authentication with the chat model failed. Reconfigure your API credentials "
    "(environment variables or `jubilee config set`) and try again."
)


def is_auth_error(message: str, error_type: Optional[str] = None) -> bool:
    """Return True for credential failures reported by the model provider."""
    if error_type and "auth" in error_type.lower():
        return True
    lowered = message.lower()
    return any(marker in lowered for marker in AUTH_ERROR_MARKERS)


class _PendingCall:
    """A tool call requested by the model, parsed (or not) in request order."""

    def __init__(self, name: str, args: dict[str, Any], parse_error: Optional[str] = None):
        self.name = name
        self.args = args
        self.parse_error = parse_error


class Agent:
    """
    One reasoning/acting loop bound to a model, a system prompt and a tool set.

    The agent only reads ``history`` while running. With ``record_history``
    the query and the final answer are appended once, right before ``done``.
    """

    def __init__(
        self,
        llm_provider: LLMProviderProtocol,
        config: AgentConfig,
        name: str = "agent",
        executor: Optional[ToolExecutor] = None,
    ):
        self.llm_provider = llm_provider
        self.config = config
        self.name = name
        self.executor = executor or ToolExecutor(
            config.tools,
            policies=config.policies,
            timeout=config.tool_timeout,
        )
        self._openai_tools = tools_to_openai_format(config.tools)
        self.logger = structlog.get_logger().bind(component="agent", agent=name)

    async def run(
        self,
        query: str,
        history: ChatHistory,
        cancel_token: Optional[CancellationToken] = None,
        record_history: bool = True,
        user_message: Optional[str] = None,
    ) -> AsyncIterator[AgentEvent]:
        """
        Run the loop for ``query`` and yield events as they happen.

        Args:
            query: The user's query
            history: Caller-owned conversation turns placed before the query
            cancel_token: Cooperative cancellation signal
            record_history: Append query and answer to ``history`` on success
            user_message: What the user actually typed, checked by tool
                policies. Defaults to ``query``; sub-agents whose query is
                model-written pass the originating user's message or ""
        """
        start = time.monotonic()
        deadline = Deadline(self.config.run_timeout)
        state = IterationState(max_iterations=self.config.max_iterations)
        policy_context = PolicyContext(
            latest_user_message=query if user_message is None else user_message,
            agent_name=self.name,
        )
        tool_calls_made = 0
        nudge: Optional[str] = None
        answer: Optional[str] = None
        forced = False

        self.logger.info(
            "run_start",
            query=query[:100],
            tools=len(self._openai_tools),
            max_iterations=state.max_iterations,
        )

        try:
            while not state.exhausted:
                status = build_tool_usage_status(state.iteration, state.max_iterations, tool_calls_made)
                prompt = build_iteration_prompt(query, state.context_text, status, nudge)
                nudge = None

                result = await self._call_model(
                    self._build_messages(history, prompt),
                    use_tools=True,
                    cancel_token=cancel_token,
                    deadline=deadline,
                )

                tool_calls = result.get("tool_calls")
                if tool_calls:
                    names = [(tc.get("function") or {}).get("name", "?") for tc in tool_calls]
                    self.logger.info("tool_calls_received", iteration=state.iteration + 1, tools=names)
                    thought = (result.get("content") or "").strip()
                    yield ThinkingEvent(message=thought or f"Calling {', '.join(names)}")

                    async for event in self._dispatch_tool_calls(
                        tool_calls, state, policy_context, cancel_token, deadline
                    ):
                        yield event
                    tool_calls_made += len(tool_calls)
                    state.advance()
                    continue

                content = (result.get("content") or "").strip()
                if content:
                    answer = content
                    break

                self.logger.warning("empty_response", iteration=state.iteration + 1)
                nudge = EMPTY_RESPONSE_NUDGE
                state.advance()

            if answer is None:
                self.logger.warning("iteration_budget_exhausted", max_iterations=state.max_iterations)
                yield ThinkingEvent(message="Iteration budget reached; composing the final answer")
                result = await self._call_model(
                    self._build_messages(history, build_final_answer_prompt(query, state.context_text)),
                    use_tools=False,
                    cancel_token=cancel_token,
                    deadline=deadline,
                )
                answer = (result.get("content") or "").strip() or (
                    "I could not complete the answer within the iteration budget."
                )
                forced = True

        except CancellationError as e:
            self.logger.warning("run_aborted", reason=e.reason, iterations=state.iteration)
            yield AbortedEvent(reason=e.reason)
            return
        except ModelError as e:
            self.logger.error("run_failed", error=str(e), is_auth=e.is_auth, iterations=state.iteration)
            if e.is_auth:
                yield ErrorEvent(message=AUTH_ERROR_MESSAGE, kind="auth")
            else:
                yield ErrorEvent(message=f"Chat model call failed: {e}")
            return

        if record_history:
            history.record_exchange(query, answer)

        total_time_ms = int((time.monotonic() - start) * 1000)
        self.logger.info(
            "run_complete",
            iterations=state.iteration,
            forced=forced,
            total_time_ms=total_time_ms,
        )
        yield DoneEvent(
            answer=answer,
            iterations=state.iteration,
            total_time_ms=total_time_ms,
            forced=forced,
        )

    def _build_messages(self, history: ChatHistory, prompt: str) -> list[dict[str, Any]]:
        messages: list[dict[str, Any]] = [{"role": "system", "content": self.config.system_prompt}]
        messages.extend(history.as_messages())
        messages.append({"role": "user", "content": prompt})
        return messages

    async def _call_model(
        self,
        messages: list[dict[str, Any]],
        use_tools: bool,
        cancel_token: Optional[CancellationToken],
        deadline: Deadline,
    ) -> dict[str, Any]:
        """
        Call the chat model once.

        Raises:
            ModelError: The provider reported a failure or the call timed out
            CancellationError: Cancelled, or the run deadline passed
        """
        kwargs: dict[str, Any] = {"temperature": self.config.temperature}
        if self.config.api_keys:
            kwargs["api_keys"] = self.config.api_keys
        if use_tools and self._openai_tools:
            kwargs["tools"] = self._openai_tools
            kwargs["tool_choice"] = "auto"

        try:
            result = await run_guarded(
                self.llm_provider.complete(messages=messages, model=self.config.model, **kwargs),
                label=f"model call ({self.name})",
                timeout=self.config.model_timeout,
                token=cancel_token,
                deadline=deadline,
            )
        except CancellationError:
            raise
        except CallTimeoutError as e:
            raise ModelError(str(e), error_type="timeout") from e
        except Exception as e:
            message = f"{type(e).__name__}: {e}"
            raise ModelError(message, is_auth=is_auth_error(message), error_type=type(e).__name__) from e

        if not result.get("success"):
            error = str(result.get("error") or "Unknown model error")
            error_type = result.get("error_type")
            raise ModelError(error, is_auth=is_auth_error(error, error_type), error_type=error_type)
        return result

    async def _dispatch_tool_calls(
        self,
        tool_calls: list[dict[str, Any]],
        state: IterationState,
        policy_context: PolicyContext,
        cancel_token: Optional[CancellationToken],
        deadline: Deadline,
    ) -> AsyncIterator[AgentEvent]:
        pending = []
        for tool_call in tool_calls:
            try:
                _, name, args = parse_tool_call(tool_call)
                pending.append(_PendingCall(name, args))
            except ValueError as e:
                name = (tool_call.get("function") or {}).get("name", "unknown")
                self.logger.warning("tool_args_parse_failed", tool=name, error=str(e))
                pending.append(_PendingCall(name, {}, parse_error=str(e)))

        if self.config.parallel_tool_calls and len(pending) > 1:
            for call in pending:
                yield ToolStartEvent(tool=call.name, input=call.args)
            results = await run_guarded(
                asyncio.gather(
                    *(self._execute(call, policy_context) for call in pending)
                ),
                label=f"tool calls ({self.name})",
                token=cancel_token,
                deadline=deadline,
            )
            for call, result in zip(pending, results):
                yield self._record_result(call, result, state)
            return

        for call in pending:
            yield ToolStartEvent(tool=call.name, input=call.args)
            result = await run_guarded(
                self._execute(call, policy_context),
                label=f"tool {call.name}",
                token=cancel_token,
                deadline=deadline,
            )
            yield self._record_result(call, result, state)

    async def _execute(self, call: _PendingCall, policy_context: PolicyContext) -> ToolResult:
        if call.parse_error:
            return ToolResult(tool=call.name, success=False, error=call.parse_error)
        return await self.executor.execute(call.name, call.args, policy_context)

    def _record_result(self, call: _PendingCall, result: ToolResult, state: IterationState) -> AgentEvent:
        state.add_result(format_tool_result_block(call.name, call.args, result.text))
        if result.success:
            return ToolEndEvent(tool=call.name, result=result.output)
        self.logger.warning("tool_failed", tool=call.name, error=result.error)
        return ToolErrorEvent(tool=call.name, error=result.error or "Tool failed")
