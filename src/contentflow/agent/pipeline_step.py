"""
Batch-style AI step of a content pipeline.

A job arrives with the data packets fetched by earlier steps; the agent turns them into an opening
conversation, lets the model work through the tools offered by the adjacent steps, and hands back
the data packets produced along the way.
"""

import json
import logging
from pathlib import Path
from typing import (
    Any,
    Dict,
    List,
    Optional,
)

from pydantic import (
    BaseModel,
    Field,
)

from contentflow.agent.conversation import ConversationLoop
from contentflow.agent.messages import build_message
from contentflow.agent.tool_executor import ToolExecutor
from contentflow.config import settings
from contentflow.core.schema import (
    AGENT_TYPE_PIPELINE,
    ConversationState,
    DataPacket,
    EngineParameters,
    InvocationContext,
    Message,
)

logger = logging.getLogger(__name__)


class StepConfig(BaseModel):
    """AI settings saved for one pipeline step."""

    pipeline_step_id: Optional[str] = None
    user_message: str = ""
    system_prompt: str = ""
    provider: Optional[str] = None
    model: Optional[str] = None
    enabled_tools: Optional[List[str]] = None
    adjacent_handlers: List[str] = Field(default_factory=list, description="Handler slugs of neighbouring steps")
    handler_directives: Dict[str, str] = Field(default_factory=dict)


class PipelineJob(BaseModel):
    """Everything one AI step execution needs."""

    job_id: Optional[str] = None
    flow_step_id: Optional[str] = None
    data: List[DataPacket] = Field(default_factory=list)
    step: StepConfig = Field(default_factory=StepConfig)
    file_path: Optional[str] = None
    mime_type: Optional[str] = None
    source_url: Optional[str] = None
    image_url: Optional[str] = None
    workflow: List[Dict[str, Any]] = Field(default_factory=list)
    site: Dict[str, Any] = Field(default_factory=dict)


def build_initial_messages(job: PipelineJob) -> List[Message]:
    """Opening conversation: attached file, original request, then the data packets as JSON."""
    messages: List[Message] = []
    if job.file_path and Path(job.file_path).is_file():
        messages.append(
            build_message("user", f"ATTACHED FILE: {job.file_path} ({job.mime_type or 'unknown type'})")
        )
    user_message = job.step.user_message.strip()
    if user_message:
        messages.append(build_message("user", f"ORIGINAL REQUEST (for context): {user_message}"))
    if job.data:
        packets = [packet.model_dump() for packet in job.data]
        messages.append(
            build_message("user", json.dumps({"data_packets": packets}, indent=2, ensure_ascii=False))
        )
    return messages


class PipelineAgent:
    """Runs the conversation loop for a pipeline AI step."""

    def __init__(
        self,
        loop: ConversationLoop,
        executor: ToolExecutor,
        provider: str | None = None,
        model: str | None = None,
        max_turns: int | None = None,
    ) -> None:
        self._loop = loop
        self._executor = executor
        self._provider = provider
        self._model = model
        self._max_turns = settings.MAX_TURNS if max_turns is None else max_turns

    def run(self, job: PipelineJob) -> ConversationState:
        """
        Execute the step and return the final conversation state.

        Raises:
            ValueError: If the step has no pipeline step id or no provider is selected.
        """
        if not job.step.pipeline_step_id:
            logger.error("AI step missing pipeline_step_id (flow_step_id=%s)", job.flow_step_id)
            raise ValueError("AI step requires a pipeline_step_id")
        provider = job.step.provider or self._provider
        if not provider:
            logger.error("AI step has no provider selected (flow_step_id=%s)", job.flow_step_id)
            raise ValueError("AI step not configured: No provider selected")

        context = InvocationContext(
            job_id=job.job_id,
            flow_step_id=job.flow_step_id,
            pipeline_step_id=job.step.pipeline_step_id,
            data=job.data,
            engine_parameters=EngineParameters(
                source_url=job.source_url,
                image_url=job.image_url,
                job_id=job.job_id,
                flow_step_id=job.flow_step_id,
            ),
            handler_slugs=job.step.adjacent_handlers,
            handler_directives=job.step.handler_directives,
            enabled_tools=job.step.enabled_tools,
            system_prompt=job.step.system_prompt,
            workflow=job.workflow,
            site=job.site,
        )
        tools = self._executor.get_available_tools(AGENT_TYPE_PIPELINE, context, job.step.enabled_tools)
        return self._loop.execute(
            build_initial_messages(job),
            tools,
            provider,
            job.step.model or self._model,
            AGENT_TYPE_PIPELINE,
            context,
            self._max_turns,
        )

    def execute(self, job: PipelineJob) -> List[DataPacket]:
        """Run the step; returns the updated data packets, or an empty list when the AI failed."""
        state = self.run(job)
        if state.error is not None:
            logger.error(
                "AI processing failed for job %s on turn %d: %s", job.job_id, state.turn_count, state.error
            )
            return []
        return state.data
