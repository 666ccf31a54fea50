"""Workflow Orchestrator.

An in-process, asyncio-based engine that runs multi-step business processes
modelled as directed graphs of typed steps:
- configuration loaded from `.env`
- structured logging
- pluggable step kinds, lifecycle events and per-instance state tracking
"""

__version__ = "0.1.0"

from workflow_orchestrator.core.config import WorkflowSettings
from workflow_orchestrator.workflow.engine import WorkflowEngine

__all__ = ["__version__", "WorkflowEngine", "WorkflowSettings"]
