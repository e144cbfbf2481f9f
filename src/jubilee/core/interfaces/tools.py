"""
Tool Protocol

Every capability an agent can invoke satisfies this protocol. ``execute()``
returns either a result dict (``success``, ``output``, ``error``) or a plain
string; the ToolExecutor normalizes both.
"""

from typing import Any, Protocol


class ToolProtocol(Protocol):
    @property
    def name(self) -> str:
        ...

    @property
    def description(self) -> str:
        ...

    @property
    def parameters_schema(self) -> dict[str, Any]:
        ...

    async def execute(self, **kwargs: Any) -> dict[str, Any] | str:
        ...
