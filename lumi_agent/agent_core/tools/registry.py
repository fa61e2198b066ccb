from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional

from ..schemas.messages import ToolSchema
from .base import RegisteredTool

logger = logging.getLogger(__name__)


class ToolRegistry:
    """
    Catalog of tools available to agents.

    The registry is populated at start-up and only read afterwards, so it can
    be shared by concurrently running sessions.
    """

    def __init__(self, tools: Optional[Iterable[RegisteredTool]] = None) -> None:
        self._tools: Dict[str, RegisteredTool] = {}
        for tool in tools or ():
            self.register(tool)

    def register(self, tool: RegisteredTool, *, replace: bool = False) -> None:
        if tool.name in self._tools and not replace:
            raise ValueError(f"tool already registered: {tool.name}")
        self._tools[tool.name] = tool
        logger.debug("Registered tool '%s' (category=%s, risk=%s)", tool.name, tool.category.value, tool.risk_level.value)

    def get(self, name: str) -> RegisteredTool:
        try:
            return self._tools[name]
        except KeyError:
            raise KeyError(f"unknown tool: {name}") from None

    def find(self, name: str) -> Optional[RegisteredTool]:
        return self._tools.get(name)

    def has(self, name: str) -> bool:
        return name in self._tools

    def all(self) -> List[RegisteredTool]:
        return list(self._tools.values())

    def names(self) -> List[str]:
        return list(self._tools.keys())

    def schemas_for(self, enabled: Optional[Iterable[str]] = None) -> List[ToolSchema]:
        """
        Return tool schemas for an agent's enabled-tool list.

        An empty or missing list enables every registered tool. Names that are
        not registered are skipped.
        """
        wanted = list(enabled or [])
        if not wanted:
            return [t.to_schema() for t in self._tools.values()]
        out: List[ToolSchema] = []
        for name in wanted:
            tool = self._tools.get(name)
            if tool is None:
                logger.warning("Enabled tool '%s' is not registered; skipping", name)
                continue
            out.append(tool.to_schema())
        return out

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools
