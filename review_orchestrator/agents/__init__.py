"""Agents: the gateway the engine routes steps through, and the built-in agents."""

from review_orchestrator.agents.gateway import AgentCallable, AgentGateway, AgentRegistry
from review_orchestrator.agents.project_detector import (
    MarkerFileDetector,
    ProjectDetector,
    ProjectInfo,
    ProjectType,
)
from review_orchestrator.agents.builtin import default_registry

__all__ = [
    "AgentCallable",
    "AgentGateway",
    "AgentRegistry",
    "MarkerFileDetector",
    "ProjectDetector",
    "ProjectInfo",
    "ProjectType",
    "default_registry",
]
