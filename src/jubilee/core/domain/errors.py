"""
Domain Errors

Exception taxonomy for the agent runtime. Only some of these ever escape a
run: configuration and policy failures are rendered as result strings so the
calling model can read them, tool failures become ``tool_error`` events, and
model failures become a terminal ``error`` event.
"""


class JubileeError(Exception):
    """Base class for all runtime errors."""


class ConfigurationError(JubileeError):
    """Requested capability or role cannot be resolved."""


class PolicyRejection(JubileeError):
    """A guard, allowlist or confirmation policy denied the request."""

    def __init__(self, reason: str, policy: str | None = None):
        super().__init__(reason)
        self.reason = reason
        self.policy = policy


class ToolExecutionError(JubileeError):
    """An underlying tool call failed."""

    def __init__(self, tool_name: str, message: str):
        super().__init__(f"{tool_name}: {message}")
        self.tool_name = tool_name
        self.message = message


class ModelError(JubileeError):
    """The chat model call failed. Fatal for the current run."""

    def __init__(self, message: str, is_auth: bool = False, error_type: str | None = None):
        super().__init__(message)
        self.is_auth = is_auth
        self.error_type = error_type


class IterationBudgetExceeded(JubileeError):
    """The iteration counter reached the configured maximum."""

    def __init__(self, max_iterations: int):
        super().__init__(f"Iteration budget of {max_iterations} exhausted")
        self.max_iterations = max_iterations


class RecursionDepthExceeded(JubileeError):
    """Angel dispatch nested deeper than allowed."""

    def __init__(self, depth: int, limit: int):
        super().__init__(f"Dispatch depth {depth} exceeds the limit of {limit}")
        self.depth = depth
        self.limit = limit


class CancellationError(JubileeError):
    """A run was cancelled cooperatively."""

    def __init__(self, reason: str = "cancelled"):
        super().__init__(reason)
        self.reason = reason


class RunTimeoutError(CancellationError):
    """The total-run deadline passed."""

    def __init__(self, timeout_seconds: float | None = None):
        detail = f" after {timeout_seconds}s" if timeout_seconds else ""
        super().__init__(f"run timed out{detail}")
        self.timeout_seconds = timeout_seconds


class CallTimeoutError(JubileeError):
    """A single model or tool call exceeded its timeout."""

    def __init__(self, label: str, timeout_seconds: float):
        super().__init__(f"{label} timed out after {timeout_seconds}s")
        self.label = label
        self.timeout_seconds = timeout_seconds


class TriunePhaseError(JubileeError):
    """A phase-1 counsel agent failed, so the orchestration cannot proceed."""

    def __init__(self, phase: str, message: str):
        super().__init__(f"{phase} failed: {message}")
        self.phase = phase
