"""
Tool Executor

Invokes a single named tool for the agent loop. Policies run first; the tool
is called with a timeout once its required parameters are present. Every
outcome (denial, unknown tool, missing parameter, failure, timeout, success)
comes back as a ToolResult. Nothing is raised to the caller except task
cancellation.
"""

import asyncio
import json
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Sequence

import structlog

from jubilee.core.domain.errors import PolicyRejection, ToolExecutionError
from jubilee.core.interfaces.tools import ToolProtocol
from jubilee.core.tools.policies import (
    SECURITY_BLOCK_MARKER,
    PolicyContext,
    ToolPolicy,
    evaluate_policies,
)


@dataclass(frozen=True)
class ToolResult:
    """
    Outcome of one tool invocation.

    Attributes:
        tool: Tool name
        success: False when the tool failed (exception, timeout, error result)
        output: Text handed back to the model
        error: Failure description when success is False
        blocked: True when a policy refused the call (output holds the refusal)
    """

    tool: str
    success: bool
    output: str = ""
    error: Optional[str] = None
    blocked: bool = False

    @property
    def text(self) -> str:
        return self.output if self.success else f"Error: {self.error}"


class ToolExecutor:
    """Runs tools with pre-execution policies and failure capture."""

    def __init__(
        self,
        tools: Sequence[ToolProtocol],
        policies: Optional[Mapping[str, Sequence[ToolPolicy]]] = None,
        timeout: Optional[float] = None,
    ):
        self.tools: dict[str, ToolProtocol] = {tool.name: tool for tool in tools}
        self.policies: dict[str, list[ToolPolicy]] = {
            name: list(items) for name, items in (policies or {}).items()
        }
        self.timeout = timeout
        self.logger = structlog.get_logger().bind(component="tool_executor")

    async def execute(
        self,
        tool_name: str,
        args: dict[str, Any],
        context: Optional[PolicyContext] = None,
    ) -> ToolResult:
        """Execute ``tool_name`` with ``args``; never raises."""
        tool = self.tools.get(tool_name)
        if tool is None:
            self.logger.warning("tool_not_found", tool=tool_name)
            return ToolResult(tool=tool_name, success=False, error=f"Tool not found: {tool_name}")

        try:
            self._check_policies(tool_name, args, context or PolicyContext())
            self._check_params(tool, args)
            raw = await self._invoke(tool, args)
        except PolicyRejection as e:
            self.logger.warning("tool_blocked", tool=tool_name, policy=e.policy)
            return ToolResult(tool=tool_name, success=True, output=e.reason, blocked=True)
        except ToolExecutionError as e:
            return ToolResult(tool=tool_name, success=False, error=e.message)

        result = self._normalize(tool_name, raw)
        self.logger.info("tool_complete", tool=tool_name, success=result.success)
        return result

    def _check_policies(self, tool_name: str, args: dict[str, Any], context: PolicyContext) -> None:
        """
        A policy that fails to evaluate denies the call.

        Raises:
            PolicyRejection: A policy denied the call
        """
        try:
            decision = evaluate_policies(self.policies.get(tool_name, []), tool_name, args, context)
        except Exception as e:
            self.logger.error("policy_failed", tool=tool_name, error=str(e), error_type=type(e).__name__)
            raise PolicyRejection(
                f"{SECURITY_BLOCK_MARKER}: policy check for {tool_name} failed "
                f"({type(e).__name__}). {tool_name} aborted.",
                policy="error",
            ) from e
        if not decision.allowed:
            raise PolicyRejection(decision.reason, policy=decision.policy)

    def _check_params(self, tool: ToolProtocol, args: dict[str, Any]) -> None:
        """
        Raises:
            ToolExecutionError: A required parameter is missing
        """
        validate = getattr(tool, "validate_params", None)
        if validate is None:
            return
        error = validate(**args)
        if error:
            self.logger.warning("tool_params_invalid", tool=tool.name, error=error)
            raise ToolExecutionError(tool.name, error)

    async def _invoke(self, tool: ToolProtocol, args: dict[str, Any]) -> Any:
        """
        Raises:
            ToolExecutionError: The tool raised or exceeded its timeout
        """
        try:
            self.logger.info("tool_execute", tool=tool.name, args_keys=list(args.keys()))
            if self.timeout:
                return await asyncio.wait_for(tool.execute(**args), timeout=self.timeout)
            return await tool.execute(**args)
        except asyncio.TimeoutError as e:
            self.logger.error("tool_timeout", tool=tool.name, timeout=self.timeout)
            raise ToolExecutionError(tool.name, f"Tool timed out after {self.timeout}s") from e
        except Exception as e:
            self.logger.error("tool_exception", tool=tool.name, error=str(e), error_type=type(e).__name__)
            raise ToolExecutionError(tool.name, f"{type(e).__name__}: {e}") from e

    def _normalize(self, tool_name: str, raw: Any) -> ToolResult:
        if isinstance(raw, str):
            return ToolResult(tool=tool_name, success=True, output=raw)

        if isinstance(raw, dict):
            if raw.get("success", True) is False:
                return ToolResult(
                    tool=tool_name,
                    success=False,
                    error=str(raw.get("error") or "Tool reported failure"),
                )
            output = raw.get("output")
            if output is None:
                output = {k: v for k, v in raw.items() if k != "success"}
            if not isinstance(output, str):
                output = json.dumps(output, ensure_ascii=False, default=str)
            return ToolResult(tool=tool_name, success=True, output=output)

        return ToolResult(
            tool=tool_name,
            success=True,
            output=json.dumps(raw, ensure_ascii=False, default=str),
        )
