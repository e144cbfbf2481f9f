"""
Safety Guard

A single, tool-less model call that approves or rejects a mission before any
sub-agent exists. The mechanism is a pure function of (policy, mission) →
verdict; the policy wording lives in ``jubilee.core.prompts.guard_policy``.

A guard that cannot reach a verdict rejects: model failures, timeouts and
unparseable replies all produce REJECT.
"""

import re
from typing import Any, Optional

import structlog

from jubilee.core.domain.cancellation import CancellationToken, run_guarded
from jubilee.core.domain.errors import CallTimeoutError, CancellationError
from jubilee.core.domain.models import GuardVerdict
from jubilee.core.interfaces.llm import LLMProviderProtocol
from jubilee.core.prompts.guard_policy import DEFAULT_GUARD_POLICY, GuardPolicy

_REJECT_PATTERN = re.compile(r"^REJECT(?:ED)?\b\s*:?\s*(.*)$", re.IGNORECASE | re.DOTALL)


def parse_verdict(text: Optional[str]) -> GuardVerdict:
    """
    Parse a guard reply. Leading markdown emphasis and whitespace are ignored.

    >>> parse_verdict("APPROVE").approved
    True
    >>> parse_verdict("REJECT: moves funds").reason
    'moves funds'
    """
    cleaned = (text or "").strip().lstrip("*_`# ").strip()
    if not cleaned:
        return GuardVerdict.reject("Guard returned an empty verdict")

    if cleaned.upper().startswith("APPROVE"):
        return GuardVerdict.approve()

    match = _REJECT_PATTERN.match(cleaned)
    if match:
        reason = match.group(1).strip().strip("*_` ").strip()
        return GuardVerdict.reject(reason or "No reason given")

    return GuardVerdict.reject(f"Unrecognized guard verdict: {cleaned[:100]}")


def build_guard_messages(policy: GuardPolicy, name: str, text: str) -> list[dict[str, Any]]:
    return [
        {"role": "system", "content": policy.system_prompt},
        {"role": "user", "content": policy.render_user_message(name, text)},
    ]


class SafetyGuard:
    """Policy check invoked once per mission by the AngelDispatcher."""

    def __init__(
        self,
        llm_provider: LLMProviderProtocol,
        policy: GuardPolicy = DEFAULT_GUARD_POLICY,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.llm_provider = llm_provider
        self.policy = policy
        self.model = model
        self.timeout = timeout
        self.logger = structlog.get_logger().bind(component="safety_guard")

    async def check(
        self,
        name: str,
        text: str,
        cancel_token: Optional[CancellationToken] = None,
    ) -> GuardVerdict:
        """
        Approve or reject a mission.

        Raises:
            CancellationError: The caller cancelled while the guard was waiting
        """
        messages = build_guard_messages(self.policy, name, text)
        try:
            result = await run_guarded(
                self.llm_provider.complete(
                    messages=messages,
                    model=self.model,
                    tools=None,
                    temperature=0,
                ),
                label="guard",
                timeout=self.timeout,
                token=cancel_token,
            )
        except CancellationError:
            raise
        except CallTimeoutError as e:
            self.logger.error("guard_timeout", angel=name, error=str(e))
            return GuardVerdict.reject(f"Guard unavailable: {e}")
        except Exception as e:
            self.logger.error("guard_exception", angel=name, error=str(e), error_type=type(e).__name__)
            return GuardVerdict.reject(f"Guard unavailable: {e}")

        if not result.get("success"):
            self.logger.error("guard_call_failed", angel=name, error=result.get("error"))
            return GuardVerdict.reject(f"Guard unavailable: {result.get('error')}")

        verdict = parse_verdict(result.get("content"))
        self.logger.info(
            "guard_verdict",
            angel=name,
            approved=verdict.approved,
            reason=verdict.reason,
            policy_version=self.policy.version,
        )
        return verdict
