"""Interactive chat agent: one transcript, one loop execution per user message."""

import logging
import uuid
from typing import List

from contentflow.agent.conversation import ConversationLoop
from contentflow.agent.messages import build_message
from contentflow.agent.tool_executor import ToolExecutor
from contentflow.config import settings
from contentflow.core.schema import (
    AGENT_TYPE_CHAT,
    ConversationState,
    InvocationContext,
    Message,
)

logger = logging.getLogger(__name__)


class ChatSession:
    """Keeps the transcript between user messages."""

    def __init__(
        self,
        loop: ConversationLoop,
        executor: ToolExecutor,
        provider: str,
        model: str | None = None,
        max_turns: int | None = None,
        session_id: str | None = None,
        system_prompt: str = "",
    ) -> None:
        self._loop = loop
        self._executor = executor
        self.provider = provider
        self.model = model
        self.max_turns = settings.MAX_TURNS if max_turns is None else max_turns
        self.session_id = session_id or str(uuid.uuid4())
        self.system_prompt = system_prompt
        self.messages: List[Message] = []

    def send(self, text: str) -> ConversationState:
        """
        Append *text* as a user message and run the loop.

        On success the transcript becomes the loop's final conversation.  On failure only the user
        message is kept so the next attempt starts from the same place.
        """
        self.messages.append(build_message("user", text))
        context = InvocationContext(session_id=self.session_id, system_prompt=self.system_prompt)
        tools = self._executor.get_available_tools(AGENT_TYPE_CHAT, context, None)

        state = self._loop.execute(
            self.messages, tools, self.provider, self.model, AGENT_TYPE_CHAT, context, self.max_turns
        )
        if state.error is None:
            self.messages = list(state.messages)
        else:
            logger.error("Chat session %s: AI request failed: %s", self.session_id, state.error)
        return state
