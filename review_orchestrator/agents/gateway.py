"""Agent gateway — name-keyed routing of payloads to agents.

The engine never knows agent internals.  It only asks whether an agent
exists (during validation) and asks the gateway to execute one with an
opaque payload.  :class:`AgentRegistry` is the in-process implementation:
a table from agent name to an async callable.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import (
    Any,
    Callable,
    Coroutine,
    Dict,
    List,
    Optional,
    Protocol,
    runtime_checkable,
)

from review_orchestrator.errors import AgentError, OrchestratorError

logger = logging.getLogger(__name__)

# An agent takes a payload and returns a payload.
AgentCallable = Callable[[Any], Coroutine[Any, Any, Any]]


@runtime_checkable
class AgentGateway(Protocol):
    """What the workflow engine needs from an agent provider."""

    def exists(self, name: str) -> bool:
        """Return ``True`` if an agent called *name* can be executed."""
        ...

    async def execute(self, name: str, payload: Any, timeout: Optional[float] = None) -> Any:
        """Run agent *name* on *payload*.

        Raises :class:`AgentError` on failure.  *timeout* is advisory;
        the engine enforces step timeouts itself.
        """
        ...


@dataclass(frozen=True)
class AgentEntry:
    name: str
    handler: AgentCallable
    description: str = ""


class AgentRegistry:
    """In-process :class:`AgentGateway` backed by a name → callable table.

    Agents can be registered directly::

        registry.register("lint", run_lint)

    or with the decorator form::

        @registry.agent("lint", description="Static analysis")
        async def run_lint(payload): ...
    """

    def __init__(self) -> None:
        self._agents: Dict[str, AgentEntry] = {}

    # ── Registration ─────────────────────────────────────────────────

    def register(self, name: str, handler: AgentCallable, *, description: str = "") -> None:
        """Register *handler* under *name*, replacing any previous agent."""
        if not name:
            raise ValueError("Agent name must be a non-empty string")
        if name in self._agents:
            logger.warning("Agent '%s' re-registered; previous handler replaced.", name)
        self._agents[name] = AgentEntry(name=name, handler=handler, description=description)
        logger.debug("Agent '%s' registered.", name)

    def agent(self, name: str, *, description: str = "") -> Callable[[AgentCallable], AgentCallable]:
        """Decorator form of :meth:`register`."""

        def _decorator(handler: AgentCallable) -> AgentCallable:
            self.register(name, handler, description=description)
            return handler

        return _decorator

    def unregister(self, name: str) -> bool:
        """Remove agent *name*.  Returns ``True`` if it was registered."""
        return self._agents.pop(name, None) is not None

    # ── Queries ──────────────────────────────────────────────────────

    def exists(self, name: str) -> bool:
        return name in self._agents

    def names(self) -> List[str]:
        return sorted(self._agents)

    def describe(self) -> Dict[str, str]:
        """Return ``{agent_name: description}`` for display."""
        return {name: self._agents[name].description for name in self.names()}

    def __len__(self) -> int:
        return len(self._agents)

    # ── Execution ────────────────────────────────────────────────────

    async def execute(self, name: str, payload: Any, timeout: Optional[float] = None) -> Any:
        entry = self._agents.get(name)
        if entry is None:
            raise AgentError("agent is not registered", agent_name=name)

        logger.debug("Executing agent '%s' (timeout=%s).", name, timeout)
        try:
            return await entry.handler(payload)
        except OrchestratorError:
            raise
        except Exception as exc:
            raise AgentError(str(exc) or type(exc).__name__, agent_name=name, orig_exc=exc) from exc
