"""
Pre-execution Tool Policies

Declarative checks the ToolExecutor runs, in order, before invoking a tool.
A denial never raises: it carries a refusal string that is handed back to
the model as the tool's result, so the model can read and react to it.

- AllowlistPolicy: irreversible external effects (asset transfers). The
  destination must be in a reloadable allowlist.
- ConfirmationPolicy: sensitive local actions. The most recent user utterance
  must contain a literal confirmation token.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Optional, Protocol, Sequence

import structlog
import yaml

logger = structlog.get_logger()

SECURITY_BLOCK_MARKER = "⛔ SECURITY BLOCK"
CONFIRMATION_MARKER = "⛔ CONFIRMATION REQUIRED"

DEFAULT_ADDRESS_ALIASES = ("to", "destination", "recipient", "address")


@dataclass(frozen=True)
class PolicyContext:
    """What a policy may inspect besides the tool arguments."""

    latest_user_message: str = ""
    agent_name: str = "agent"


@dataclass(frozen=True)
class PolicyDecision:
    allowed: bool
    reason: str = ""
    policy: str = ""

    @classmethod
    def allow(cls, policy: str) -> "PolicyDecision":
        return cls(allowed=True, policy=policy)

    @classmethod
    def deny(cls, policy: str, reason: str) -> "PolicyDecision":
        return cls(allowed=False, reason=reason, policy=policy)


class ToolPolicy(Protocol):
    name: str

    def evaluate(
        self, tool_name: str, args: dict[str, Any], context: PolicyContext
    ) -> PolicyDecision:
        ...


class AllowlistSource(Protocol):
    def addresses(self) -> frozenset[str]:
        ...


class StaticAllowlist:
    """Fixed allowlist, normalized to lower case."""

    def __init__(self, addresses: Iterable[str]):
        self._addresses = frozenset(a.strip().lower() for a in addresses if a)

    def addresses(self) -> frozenset[str]:
        return self._addresses


class FileAllowlist:
    """
    Allowlist read from a YAML file and reloaded when the file changes.

    Accepted layouts: a plain list of addresses, or a mapping with an
    ``addresses`` list. A missing or unreadable file means an empty allowlist.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path).expanduser()
        self._mtime: Optional[float] = None
        self._addresses: frozenset[str] = frozenset()
        self.logger = logger.bind(component="file_allowlist")

    def addresses(self) -> frozenset[str]:
        self.reload_if_changed()
        return self._addresses

    def reload_if_changed(self) -> None:
        if not self.path.exists():
            if self._addresses:
                self.logger.warning("allowlist_missing", path=str(self.path))
            self._addresses = frozenset()
            self._mtime = None
            return

        mtime = self.path.stat().st_mtime
        if mtime == self._mtime:
            return

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or []
        except (yaml.YAMLError, OSError) as e:
            self.logger.error("allowlist_invalid", path=str(self.path), error=str(e))
            self._addresses = frozenset()
            self._mtime = mtime
            return

        if isinstance(data, dict):
            data = data.get("addresses", [])
        if not isinstance(data, list):
            self.logger.error("allowlist_invalid", path=str(self.path))
            data = []

        self._addresses = frozenset(str(a).strip().lower() for a in data if a)
        self._mtime = mtime
        self.logger.info("allowlist_loaded", path=str(self.path), count=len(self._addresses))


class AllowlistPolicy:
    """Block calls whose destination is not allow-listed."""

    name = "allowlist"

    def __init__(
        self,
        source: AllowlistSource,
        address_aliases: Sequence[str] = DEFAULT_ADDRESS_ALIASES,
    ):
        self.source = source
        self.address_aliases = tuple(address_aliases)

    def extract_destination(self, args: dict[str, Any]) -> str:
        for alias in self.address_aliases:
            value = args.get(alias)
            if value:
                return str(value).strip().lower()
        return ""

    def evaluate(
        self, tool_name: str, args: dict[str, Any], context: PolicyContext
    ) -> PolicyDecision:
        destination = self.extract_destination(args)
        if destination and destination in self.source.addresses():
            logger.info("allowlist_passed", tool=tool_name, destination=destination)
            return PolicyDecision.allow(self.name)

        logger.warning("allowlist_blocked", tool=tool_name, destination=destination)
        return PolicyDecision.deny(
            self.name,
            f"{SECURITY_BLOCK_MARKER}: The address '{destination}' is NOT in the "
            f"allowlist. {tool_name} aborted.",
        )


class ConfirmationPolicy:
    """Require an explicit confirmation token from the user."""

    name = "confirmation"

    def __init__(self, token: str = "CONFIRM"):
        self.token = token

    def evaluate(
        self, tool_name: str, args: dict[str, Any], context: PolicyContext
    ) -> PolicyDecision:
        if self.token in context.latest_user_message:
            return PolicyDecision.allow(self.name)

        logger.warning("confirmation_missing", tool=tool_name, token=self.token)
        return PolicyDecision.deny(
            self.name,
            f"{CONFIRMATION_MARKER}: {tool_name} is a sensitive action. Ask the user "
            f"to repeat the request including the word '{self.token}'.",
        )


def evaluate_policies(
    policies: Sequence[ToolPolicy],
    tool_name: str,
    args: dict[str, Any],
    context: PolicyContext,
) -> PolicyDecision:
    """Run policies in order; the first denial wins."""
    for policy in policies:
        decision = policy.evaluate(tool_name, args, context)
        if not decision.allowed:
            return decision
    return PolicyDecision.allow("all")
