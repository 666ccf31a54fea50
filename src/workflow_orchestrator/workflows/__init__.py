"""Domain workflows built on the engine."""

from workflow_orchestrator.workflows.customer_support import CustomerSupportWorkflow, SupportAgent

__all__ = ["CustomerSupportWorkflow", "SupportAgent"]
