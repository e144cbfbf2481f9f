# ============================================
# BUILT-IN TOOL BASE
# ============================================

import inspect
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterator, Optional

_JSON_TYPES = {
    int: "integer",
    float: "number",
    bool: "boolean",
    dict: "object",
    list: "array",
}


class Tool(ABC):
    """
    Base class for built-in tools.

    Subclasses provide ``name``, ``description`` and ``execute``. The parameter
    schema is derived from the ``execute`` signature unless overridden.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        ...

    @property
    @abstractmethod
    def description(self) -> str:
        ...

    @abstractmethod
    async def execute(self, **kwargs) -> Dict[str, Any] | str:
        ...

    @property
    def parameters_schema(self) -> Dict[str, Any]:
        properties: Dict[str, Any] = {}
        required = []
        for param in self._declared_params():
            annotation = getattr(param.annotation, "__origin__", param.annotation)
            properties[param.name] = {
                "type": _JSON_TYPES.get(annotation, "string"),
                "description": f"Parameter {param.name}",
            }
            if param.default is inspect.Parameter.empty:
                required.append(param.name)
        return {"type": "object", "properties": properties, "required": required}

    def validate_params(self, **kwargs) -> Optional[str]:
        """Return an error message when a required argument is absent."""
        missing = [
            p.name
            for p in self._declared_params()
            if p.default is inspect.Parameter.empty and p.name not in kwargs
        ]
        if missing:
            return f"Missing required parameter(s): {', '.join(missing)}"
        return None

    def _declared_params(self) -> Iterator[inspect.Parameter]:
        for param in inspect.signature(self.execute).parameters.values():
            if param.kind in (inspect.Parameter.VAR_KEYWORD, inspect.Parameter.VAR_POSITIONAL):
                continue
            yield param
