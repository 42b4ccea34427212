"""
Pipeline AI step, chat session and engine assembly.

Run with:
$ pytest -q
"""

import json

import pytest
from conftest import (
    RecordingHandler,
    ScriptedGateway,
    make_loop,
)

from contentflow.agent.chat import ChatSession
from contentflow.agent.pipeline_step import (
    PipelineAgent,
    PipelineJob,
    build_initial_messages,
)
from contentflow.agent.tool_executor import ToolExecutor
from contentflow.client.cli import run_pipeline_job
from contentflow.config import Settings
from contentflow.engine import build_engine


def _job(**step) -> PipelineJob:
    return PipelineJob.model_validate(
        {
            "job_id": "job-7",
            "flow_step_id": "step-a_flow-1",
            "source_url": "https://reddit.com/r/python/1",
            "data": [{"type": "fetch", "title": "Reddit post", "body": "Python 3.13 is out."}],
            "step": {
                "pipeline_step_id": "step-a",
                "user_message": "Rewrite this as a blog post.",
                "provider": "stub",
                "adjacent_handlers": ["wordpress_publish"],
                **step,
            },
        }
    )


def test_initial_messages_carry_request_and_packets(tmp_path) -> None:
    """The opening conversation holds the attached file, the request and the packets."""

    attachment = tmp_path / "notes.txt"
    attachment.write_text("notes")
    job = _job()
    job.file_path = str(attachment)
    job.mime_type = "text/plain"

    messages = build_initial_messages(job)

    assert [m.role for m in messages] == ["user", "user", "user"]
    assert messages[0].content == f"ATTACHED FILE: {attachment} (text/plain)"
    assert messages[1].content == "ORIGINAL REQUEST (for context): Rewrite this as a blog post."
    assert json.loads(messages[2].content)["data_packets"][0]["title"] == "Reddit post"


def test_missing_attachment_is_skipped() -> None:
    job = _job()
    job.file_path = "/does/not/exist.pdf"

    assert not any(m.content.startswith("ATTACHED FILE") for m in build_initial_messages(job))


def test_pipeline_agent_publishes_through_handler_tool(
    executor: ToolExecutor, publish_handler: RecordingHandler
) -> None:
    """A full step: the model writes, publishes, then finishes."""

    gateway = ScriptedGateway(
        {
            "success": True,
            "content": "Python 3.13 released\nHere is what changed.",
            "tool_calls": [{"name": "wordpress_publish", "parameters": {}}],
        },
        {"success": True, "content": "Published the post."},
    )
    agent = PipelineAgent(make_loop(gateway, executor), executor)

    packets = agent.execute(_job())

    assert [p.type for p in packets] == ["ai_response", "handler_complete", "ai_response", "fetch"]
    params = publish_handler.calls[0]
    assert params["title"] == "Python 3.13 released"
    assert params["source_url"] == "https://reddit.com/r/python/1"
    assert params["job_id"] == "job-7"
    assert packets[1].metadata["tool_result"]["post_id"] == 42
    assert {t["name"] for t in gateway.requests[0].tools} == {"local_search", "wordpress_publish"}


def test_pipeline_agent_restricts_general_tools(executor: ToolExecutor) -> None:
    """The step's tool selection narrows general tools but keeps handler tools."""

    gateway = ScriptedGateway({"success": True, "content": "done"})
    agent = PipelineAgent(make_loop(gateway, executor), executor)

    agent.execute(_job(enabled_tools=[]))

    assert [t["name"] for t in gateway.requests[0].tools] == ["wordpress_publish"]


def test_pipeline_agent_failure_returns_no_packets(executor: ToolExecutor) -> None:
    gateway = ScriptedGateway({"success": False, "error": "quota exceeded"})
    agent = PipelineAgent(make_loop(gateway, executor), executor)

    assert agent.execute(_job()) == []


def test_pipeline_agent_requires_step_id_and_provider(executor: ToolExecutor) -> None:
    agent = PipelineAgent(make_loop(ScriptedGateway({"success": True}), executor), executor)

    with pytest.raises(ValueError, match="pipeline_step_id"):
        agent.run(_job(pipeline_step_id=None))
    with pytest.raises(ValueError, match="No provider selected"):
        agent.run(_job(provider=None))


def test_chat_session_keeps_transcript(executor: ToolExecutor) -> None:
    """Each message continues the previous conversation."""

    gateway = ScriptedGateway(
        {"success": True, "content": "Hi there."},
        {"success": True, "content": "You said hello."},
    )
    session = ChatSession(make_loop(gateway, executor), executor, "stub")

    session.send("hello")
    state = session.send("what did I say?")

    assert state.completed is True
    assert [m.content for m in session.messages] == ["hello", "Hi there.", "what did I say?", "You said hello."]
    assert len(gateway.requests[1].messages) == 3


def test_chat_session_failure_keeps_user_message(executor: ToolExecutor) -> None:
    gateway = ScriptedGateway({"success": False, "error": "offline"})
    session = ChatSession(make_loop(gateway, executor), executor, "stub")

    state = session.send("hello")

    assert state.error == "offline"
    assert [m.content for m in session.messages] == ["hello"]


def test_build_engine_registers_builtins_and_freezes_directives() -> None:
    """Google search only becomes available once it is configured."""

    gateway = ScriptedGateway({"success": True, "content": "ok"})
    bare = build_engine(Settings(GOOGLE_SEARCH_API_KEY=None, GOOGLE_SEARCH_ENGINE_ID=None), gateway)
    keyed = build_engine(Settings(GOOGLE_SEARCH_API_KEY="key", GOOGLE_SEARCH_ENGINE_ID="cx"), gateway)

    assert bare.directives.frozen
    assert [t.name for t in bare.executor.get_available_tools("chat")] == ["web_fetch"]
    assert [t.name for t in keyed.executor.get_available_tools("chat")] == ["web_fetch", "google_search"]


def test_run_pipeline_job_prints_packets(tmp_path, capsys) -> None:
    """The CLI runner prints the resulting packets as JSON and exits 0."""

    job_file = tmp_path / "job.json"
    job_file.write_text(_job().model_dump_json(), encoding="utf-8")
    engine = build_engine(Settings(), ScriptedGateway({"success": True, "content": "All done."}))

    assert run_pipeline_job(engine, job_file, None, None, 3) == 0
    packets = json.loads(capsys.readouterr().out)
    assert [p["type"] for p in packets] == ["ai_response", "fetch"]


def test_run_pipeline_job_reports_failure(tmp_path) -> None:
    job_file = tmp_path / "job.json"
    job_file.write_text(_job().model_dump_json(), encoding="utf-8")
    engine = build_engine(Settings(), ScriptedGateway({"success": False, "error": "boom"}))

    assert run_pipeline_job(engine, job_file, None, None, 3) == 1
