"""AI-assisted customer-support workflow.

Graph::

    initial-ai-analysis -> categorize-request -> check-priority
        check-priority -> automated-response ------------------------+
        check-priority -> assign-support-agent -> create-collaboration-room
                                                                     |
                          resolution-join <--------------------------+
                          resolution-join -> track-satisfaction

Both branches after `check-priority` always run; the priority check only
records `conditionResult` for downstream consumers.
"""

from __future__ import annotations

import dataclasses
import logging
import time
import uuid
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from workflow_orchestrator.core.config import SupportConfig
from workflow_orchestrator.llm.provider import AIService
from workflow_orchestrator.services.analytics import AnalyticsService
from workflow_orchestrator.services.security import SecurityService, UserRole
from workflow_orchestrator.workflow.engine import WorkflowEngine
from workflow_orchestrator.workflow.models import (
    StepType,
    Trigger,
    TriggerType,
    WorkflowDefinition,
    WorkflowStep,
)

logger = logging.getLogger(__name__)

TRIGGER_EVENT = "newSupportRequest"


def _str(data: dict[str, Any], key: str) -> str:
    value = data.get(key)
    return value if isinstance(value, str) else ""


def _list(data: dict[str, Any], key: str) -> list[Any]:
    value = data.get(key)
    return list(value) if isinstance(value, list) else []


def _dict(data: dict[str, Any], key: str) -> dict[str, Any]:
    value = data.get(key)
    return dict(value) if isinstance(value, dict) else {}


@dataclass(frozen=True, slots=True)
class SupportAgent:
    id: str
    name: str
    expertise: list[str] = field(default_factory=list)


class CustomerSupportWorkflow:
    """Builds the support workflow and the actions its steps call.

    Collaborators are injected; nothing is looked up from a global registry.
    `agents` is the roster that agent assignment picks from. Without one, the
    agent configured in `SupportConfig` takes every request.
    """

    def __init__(
        self,
        *,
        ai: AIService,
        security: SecurityService,
        analytics: AnalyticsService,
        config: SupportConfig | None = None,
        agents: Sequence[SupportAgent] | None = None,
    ) -> None:
        self.ai = ai
        self.security = security
        self.analytics = analytics
        self.config = config or SupportConfig()
        self.agents = list(
            agents or [SupportAgent(id=self.config.agent_id, name=self.config.agent_name)]
        )

    def register(self, engine: WorkflowEngine) -> str:
        """Register the actions with `engine` and create the workflow.

        Returns:
            The workflow id.
        """
        for name, action in self.actions().items():
            engine.actions.register(name, action, replace=True)
        workflow_id = engine.create_workflow(self.definition())
        logger.info("Customer support workflow registered", extra={"workflow_id": workflow_id})
        return workflow_id

    def actions(self) -> dict[str, Any]:
        return {
            "analyzeRequest": self.analyze_request,
            "categorizeRequest": self.categorize_request,
            "generateResponse": self.generate_response,
            "assignAgent": self.assign_agent,
            "createRoom": self.create_room,
            "trackMetrics": self.track_metrics,
        }

    def definition(self) -> WorkflowDefinition:
        return WorkflowDefinition(
            name="AI-Powered Customer Support",
            description=(
                "Automated customer support workflow with AI assistance and team collaboration"
            ),
            trigger=Trigger(type=TriggerType.EVENT, config={"eventType": TRIGGER_EVENT}),
            steps=[
                WorkflowStep(
                    id="initial-ai-analysis",
                    name="AI Analysis",
                    type=StepType.ACTION,
                    config={"action": "analyzeRequest"},
                    next_steps=["categorize-request"],
                ),
                WorkflowStep(
                    id="categorize-request",
                    name="Categorize Request",
                    type=StepType.ACTION,
                    config={"action": "categorizeRequest"},
                    next_steps=["check-priority"],
                ),
                WorkflowStep(
                    id="check-priority",
                    name="Check Priority",
                    type=StepType.CONDITION,
                    config={"condition": 'data.priority === "high"'},
                    next_steps=["assign-support-agent", "automated-response"],
                ),
                WorkflowStep(
                    id="automated-response",
                    name="Automated Response",
                    type=StepType.ACTION,
                    config={"action": "generateResponse"},
                    next_steps=["resolution-join"],
                ),
                WorkflowStep(
                    id="assign-support-agent",
                    name="Assign Support Agent",
                    type=StepType.ACTION,
                    config={"action": "assignAgent"},
                    next_steps=["create-collaboration-room"],
                ),
                WorkflowStep(
                    id="create-collaboration-room",
                    name="Create Collaboration Room",
                    type=StepType.ACTION,
                    config={"action": "createRoom"},
                    next_steps=["resolution-join"],
                ),
                WorkflowStep(
                    id="resolution-join",
                    name="Await Both Branches",
                    type=StepType.JOIN,
                    next_steps=["track-satisfaction"],
                ),
                WorkflowStep(
                    id="track-satisfaction",
                    name="Track Customer Satisfaction",
                    type=StepType.ACTION,
                    config={"action": "trackMetrics"},
                    next_steps=[],
                ),
            ],
        )

    async def analyze_request(self, data: dict[str, Any]) -> dict[str, Any]:
        if not self.security.has_permission(UserRole.SUPPORT, "read", "customer-data"):
            raise PermissionError("Permission denied")

        message = _str(data, "customerMessage")
        analysis = await self.ai.analyze_conversation([message])
        tags = await self.ai.generate_tags(message)

        return {
            **data,
            "analysis": analysis.model_dump(by_alias=True),
            "tags": tags,
            "priority": "high" if analysis.sentiment == "negative" else "normal",
        }

    async def categorize_request(self, data: dict[str, Any]) -> dict[str, Any]:
        self.analytics.track_event(
            "support_request_categorized",
            {
                "priority": _str(data, "priority"),
                "sentiment": _dict(data, "analysis").get("sentiment", ""),
                "tags": _list(data, "tags"),
            },
        )
        return data

    async def generate_response(self, data: dict[str, Any]) -> dict[str, Any]:
        if not self.config.encryption_key:
            raise ValueError("Support encryption key is not configured")

        message = _str(data, "customerMessage")
        response = await self.ai.generate_suggestions(
            f"Please provide a helpful response to this customer inquiry: {message}"
        )
        encrypted = await self.security.encrypt_message(response, self.config.encryption_key)

        return {
            **data,
            "automatedResponse": response,
            "encryptedResponse": encrypted.model_dump(by_alias=True),
        }

    async def assign_agent(self, data: dict[str, Any]) -> dict[str, Any]:
        tags = _list(data, "tags")
        agent = self.pick_agent(tags)

        self.analytics.track_event(
            "agent_assigned",
            {"agentId": agent.id, "requestPriority": _str(data, "priority"), "tags": tags},
        )
        return {**data, "assignedAgent": dataclasses.asdict(agent)}

    def pick_agent(self, tags: list[Any]) -> SupportAgent:
        """Return the agent whose expertise covers most tags; roster order breaks ties."""
        wanted = {str(tag) for tag in tags}
        return max(self.agents, key=lambda agent: len(wanted.intersection(agent.expertise)))

    async def create_room(self, data: dict[str, Any]) -> dict[str, Any]:
        agent_id = str(_dict(data, "assignedAgent").get("id", ""))
        room_id = f"support-{uuid.uuid4().hex[:12]}"

        self.security.log_audit(agent_id, "create", f"collaboration-room-{room_id}", True)
        return {**data, "collaborationRoomId": room_id}

    async def track_metrics(self, data: dict[str, Any]) -> dict[str, Any]:
        created_at = data.get("createdAt")
        now = time.time()
        started = created_at if isinstance(created_at, (int, float)) else now
        agent_id = _dict(data, "assignedAgent").get("id")

        self.analytics.track_event(
            "support_request_completed",
            {
                "requestId": _str(data, "requestId"),
                "duration": now - started,
                "priority": _str(data, "priority"),
                "agentId": agent_id,
                "automated": not agent_id,
                "tags": _list(data, "tags"),
            },
        )
        return data
