"""Tests for orchestrator components."""

import asyncio
import json
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from shared.config import LLMSettings
from shared.models import (
    CommitSummary,
    ConversationMessage,
    ErrorKind,
    LLMResponse,
    RepoRef,
    SessionState,
    TextBlock,
    ToolResultBlock,
    ToolUseBlock,
    TurnOutcome,
)
from integrations.github import GitHubAPIError


def _text_response(text: str) -> LLMResponse:
    return LLMResponse(content=[TextBlock(text=text)], stop_reason="end_turn")


def _tool_response(*calls: tuple[str, str, dict]) -> LLMResponse:
    return LLMResponse(
        content=[ToolUseBlock(id=call_id, name=name, input=params) for call_id, name, params in calls],
        stop_reason="tool_use",
    )


def _commits_call(call_id: str, username: str, repo: str = "api") -> tuple[str, str, dict]:
    return call_id, "fetch_commits", {"owner": "acme", "repo": repo, "username": username}


async def _lines(*items: str):
    for item in items:
        yield item


@pytest.fixture
def llm():
    from orchestrator.llm import MockLLMProvider

    return MockLLMProvider()


@pytest.fixture
def driver(llm, executor, registry):
    from orchestrator.conversation import ConversationDriver

    return ConversationDriver(llm, executor, registry)


class TestLLMProvider:
    """Tests for LLM providers."""

    @pytest.mark.asyncio
    async def test_mock_provider_default(self, llm, registry):
        messages = [ConversationMessage(role="user", content="Hello")]

        response = await llm.complete("system", registry.get_tools_for_llm(), messages)

        assert response.text == "This is a mock response."
        assert response.stop_reason == "end_turn"
        assert llm.call_history[0]["tools"] == [
            "fetch_commits",
            "fetch_pull_requests",
            "fetch_issues",
            "post_standup_to_slack",
        ]

    @pytest.mark.asyncio
    async def test_mock_provider_queue_and_error(self, llm):
        llm.queue_responses([_text_response("first"), _text_response("second")])
        llm.set_error(RuntimeError("boom"))

        with pytest.raises(RuntimeError):
            await llm.complete("system", [], [])
        first = await llm.complete("system", [], [])
        second = await llm.complete("system", [], [])

        assert (first.text, second.text) == ("first", "second")
        assert len(llm.call_history) == 3

    def test_create_provider(self):
        from orchestrator.llm import AnthropicProvider, MockLLMProvider, create_llm_provider

        assert isinstance(create_llm_provider(LLMSettings(provider="mock")), MockLLMProvider)
        assert isinstance(create_llm_provider(LLMSettings(provider="anthropic")), AnthropicProvider)

    def test_create_provider_rejects_unknown(self):
        from orchestrator.llm import create_llm_provider

        with pytest.raises(ValueError, match="Unsupported LLM provider"):
            create_llm_provider(LLMSettings(provider="bogus"))

    def test_anthropic_message_conversion(self):
        from llama_index.core.llms import MessageRole

        from orchestrator.llm import AnthropicProvider

        provider = AnthropicProvider(LLMSettings(api_key="test"))
        messages = [
            ConversationMessage(role="user", content="What did alice do?"),
            ConversationMessage(role="assistant", content=[
                TextBlock(text="Checking."),
                ToolUseBlock(id="toolu_1", name="fetch_commits", input={"owner": "acme"}),
            ]),
            ConversationMessage(role="user", content=[
                ToolResultBlock(tool_use_id="toolu_1", content="[]"),
            ]),
        ]

        converted = provider._convert_messages("be helpful", messages)

        assert [m.role for m in converted] == [
            MessageRole.SYSTEM,
            MessageRole.USER,
            MessageRole.ASSISTANT,
            MessageRole.TOOL,
        ]
        assert converted[2].additional_kwargs["tool_calls"] == [
            {"id": "toolu_1", "name": "fetch_commits", "input": {"owner": "acme"}, "type": "tool_use"}
        ]
        assert converted[3].additional_kwargs["tool_call_id"] == "toolu_1"

    def test_build_tools_sends_handwritten_schemas(self, registry):
        from orchestrator.llm import AnthropicProvider

        provider = AnthropicProvider(LLMSettings(api_key="test"))
        definitions = registry.list_tools()

        built = provider._build_tools(registry.get_tools_for_llm())

        assert [t.metadata.name for t in built] == [d.name for d in definitions]
        for tool, definition in zip(built, definitions):
            assert tool.metadata.description == definition.description
            assert tool.metadata.get_parameters_dict() == definition.input_schema

        post = built[3].metadata.get_parameters_dict()
        assert post["required"] == ["standup_notes"]
        entry = post["properties"]["standup_notes"]["items"]
        assert entry["required"] == ["username", "yesterday", "today", "blockers"]
        assert all("description" in field for field in entry["properties"].values())

        usernames = [t.metadata.get_parameters_dict()["properties"]["username"] for t in built[:3]]
        assert [u["description"] for u in usernames] == [
            "GitHub username to fetch commits for",
            "GitHub username to fetch PR activity for",
            "GitHub username to fetch issue activity for",
        ]

    def test_openai_tools_carry_handwritten_schemas(self, registry):
        from orchestrator.llm import OpenAIProvider

        provider = OpenAIProvider(LLMSettings(provider="openai", model="gpt-4o"))

        rendered = [t.metadata.to_openai_tool() for t in provider._build_tools(registry.get_tools_for_llm())]

        assert rendered[3]["function"]["name"] == "post_standup_to_slack"
        assert rendered[3]["function"]["parameters"] == registry.list_tools()[3].input_schema

    def test_tool_results_keep_tool_call_id_without_error_flag(self):
        from llama_index.core.llms import MessageRole

        from orchestrator.llm import AnthropicProvider

        provider = AnthropicProvider(LLMSettings(api_key="test"))
        messages = [ConversationMessage(role="user", content=[
            ToolResultBlock(tool_use_id="toolu_9", content='{"error": "boom"}', is_error=True),
        ])]

        converted = provider._convert_messages("system", messages)

        assert converted[1].role == MessageRole.TOOL
        assert converted[1].content == '{"error": "boom"}'
        assert converted[1].additional_kwargs == {"tool_call_id": "toolu_9"}

    def test_openai_tool_call_encoding(self):
        from orchestrator.llm import OpenAIProvider

        provider = OpenAIProvider(LLMSettings(provider="openai", model="gpt-4o"))
        block = ToolUseBlock(id="call_1", name="fetch_issues", input={"owner": "acme"})

        encoded = provider._encode_tool_call(block)

        assert encoded["type"] == "function"
        assert json.loads(encoded["function"]["arguments"]) == {"owner": "acme"}

    @pytest.mark.asyncio
    async def test_complete_maps_tool_selections(self, registry):
        from orchestrator.llm import AnthropicProvider

        provider = AnthropicProvider(LLMSettings(api_key="test"))
        fake_llm = MagicMock()
        fake_llm.achat_with_tools = AsyncMock(return_value=MagicMock(message=MagicMock(content="Looking now.")))
        fake_llm.get_tool_calls_from_response.return_value = [
            MagicMock(tool_id="toolu_1", tool_name="fetch_commits", tool_kwargs={"owner": "acme"}),
        ]
        provider._llm = fake_llm

        response = await provider.complete("system", registry.get_tools_for_llm(), [])

        assert response.text == "Looking now."
        assert response.stop_reason == "tool_use"
        assert response.tool_calls[0].id == "toolu_1"
        assert fake_llm.achat_with_tools.await_args.kwargs["allow_parallel_tool_calls"] is True
        sent = fake_llm.achat_with_tools.await_args.args[0]
        assert sent[3].metadata.get_parameters_dict()["required"] == ["standup_notes"]


class TestConversationDriver:
    """Tests for ConversationDriver."""

    @pytest.mark.asyncio
    async def test_text_only_response_finishes(self, driver, llm, tool_context):
        shown = []
        driver.on_text = shown.append
        llm.set_next_response(_text_response("All done."))
        driver.add_user_message("hi")

        outcome = await driver.run_turn("system", tool_context, iteration=1)

        assert outcome == TurnOutcome.FINISHED
        assert driver.messages[-1].role == "assistant"
        assert shown == ["All done."]
        assert llm.call_history[0]["tools"] == [t.name for t in driver.registry.list_tools()]

    @pytest.mark.asyncio
    async def test_tool_calls_continue_with_one_result_each(self, driver, llm, tool_context):
        llm.set_next_response(_tool_response(
            _commits_call("toolu_1", "alice"),
            ("toolu_2", "fetch_pull_requests", {"owner": "acme", "repo": "api", "username": "bob"}),
        ))
        driver.add_user_message("go")

        outcome = await driver.run_turn("system", tool_context)

        assert outcome == TurnOutcome.CONTINUE
        assert not outcome.is_terminal
        assert [m.role for m in driver.messages] == ["user", "assistant", "user"]
        results = driver.messages[-1].content
        assert [r.tool_use_id for r in results] == ["toolu_1", "toolu_2"]

    @pytest.mark.asyncio
    async def test_results_correlate_regardless_of_completion_order(self, driver, llm, tool_context, source):
        delays = {"alice": 0.05, "bob": 0.0, "ALICE": 0.02}

        async def list_commits(owner, repo, username, since):
            await asyncio.sleep(delays[username])
            return [CommitSummary(sha="0000000", message=f"work by {username}", url="", timestamp="")]

        source.list_commits.side_effect = list_commits
        llm.set_next_response(_tool_response(
            _commits_call("toolu_a", "alice"),
            _commits_call("toolu_b", "bob"),
            _commits_call("toolu_c", "ALICE"),
        ))

        await driver.run_turn("system", tool_context)

        results = {r.tool_use_id: json.loads(r.content)[0]["message"] for r in driver.messages[-1].content}
        assert results == {
            "toolu_a": "work by alice",
            "toolu_b": "work by bob",
            "toolu_c": "work by ALICE",
        }

    @pytest.mark.asyncio
    async def test_tool_failure_does_not_stop_turn(self, driver, llm, tool_context, source):
        source.list_commits.side_effect = GitHubAPIError("Bad credentials", 401)
        llm.set_next_response(_tool_response(
            _commits_call("toolu_1", "alice"),
            ("toolu_2", "drop_table", {}),
            _commits_call("toolu_3", "carol"),
        ))

        outcome = await driver.run_turn("system", tool_context)

        assert outcome == TurnOutcome.CONTINUE
        results = driver.messages[-1].content
        assert [r.tool_use_id for r in results] == ["toolu_1", "toolu_2", "toolu_3"]
        assert results[0].is_error is True
        assert "authentication failed" in json.loads(results[0].content)["error"]
        assert json.loads(results[1].content)["error"] == "Unknown tool: drop_table"
        assert "Access denied" in json.loads(results[2].content)["error"]

    @pytest.mark.asyncio
    async def test_inference_failure_is_terminal(self, driver, llm, tool_context):
        llm.set_error(Exception("Error code: 401 - authentication_error"))
        driver.add_user_message("go")

        outcome = await driver.run_turn("system", tool_context)

        assert outcome == TurnOutcome.FAILED
        assert outcome.is_terminal
        assert driver.last_error.kind == ErrorKind.AUTH_FAILURE
        assert len(driver.messages) == 1

    @pytest.mark.asyncio
    async def test_executor_exception_is_contained(self, llm, registry, tool_context):
        from orchestrator.conversation import ConversationDriver

        executor = MagicMock()
        executor.execute = AsyncMock(side_effect=RuntimeError("kaboom"))
        driver = ConversationDriver(llm, executor, registry)
        llm.set_next_response(_tool_response(_commits_call("toolu_1", "alice")))

        outcome = await driver.run_turn("system", tool_context)

        assert outcome == TurnOutcome.CONTINUE
        result = driver.messages[-1].content[0]
        assert result.tool_use_id == "toolu_1"
        assert result.is_error is True


class TestAutonomousSession:
    """Tests for AutonomousSession."""

    @pytest.mark.asyncio
    async def test_runs_to_done(self, driver, llm, tool_context, poster):
        from orchestrator.sessions import AutonomousSession

        llm.queue_responses([
            _tool_response(_commits_call("toolu_1", "alice")),
            _tool_response(("toolu_2", "post_standup_to_slack", {"standup_notes": [
                {"username": "alice", "yesterday": ["Fixed login redirect"], "today": [], "blockers": []},
            ]})),
            _text_response("Posted."),
        ])
        session = AutonomousSession(driver, tool_context, "Generate today's standup")

        report = await session.run()

        assert report.state == SessionState.DONE
        assert report.iterations == 3
        assert driver.messages[0].content == "Generate today's standup"
        poster.post_standup.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_exhausted_at_iteration_cap(self, driver, llm, tool_context):
        from orchestrator.sessions import MAX_ITERATIONS, AutonomousSession

        llm.queue_responses([
            _tool_response(_commits_call(f"toolu_{i}", "alice")) for i in range(MAX_ITERATIONS + 5)
        ])
        session = AutonomousSession(driver, tool_context, "task")

        report = await session.run()

        assert MAX_ITERATIONS == 20
        assert report.state == SessionState.EXHAUSTED
        assert report.iterations == MAX_ITERATIONS
        assert len(llm.call_history) == MAX_ITERATIONS

    @pytest.mark.asyncio
    async def test_inference_failure_ends_after_one_call(self, driver, llm, tool_context):
        from orchestrator.sessions import AutonomousSession

        llm.set_error(Exception("401 invalid x-api-key"))
        session = AutonomousSession(driver, tool_context, "task")

        report = await session.run()

        assert report.state == SessionState.FAILED
        assert report.iterations == 1
        assert report.error == "Inference API authentication failed. Check your LLM_API_KEY."
        assert len(llm.call_history) == 1

    @pytest.mark.asyncio
    async def test_double_post_is_not_blocked(self, driver, llm, tool_context, poster):
        from orchestrator.sessions import AutonomousSession

        post = ("post_standup_to_slack", {"standup_notes": [
            {"username": "alice", "yesterday": [], "today": [], "blockers": []},
        ]})
        llm.queue_responses([
            _tool_response(("toolu_1", *post)),
            _tool_response(("toolu_2", *post)),
            _text_response("Done."),
        ])

        await AutonomousSession(driver, tool_context, "task").run()

        assert poster.post_standup.await_count == 2


class TestInteractiveSession:
    """Tests for InteractiveSession."""

    @pytest.mark.asyncio
    async def test_exit_ends_without_turn(self, driver, llm, tool_context, source):
        from orchestrator.sessions import InteractiveSession

        session = InteractiveSession(driver, tool_context, "system")

        reports = await session.run(_lines("exit", "what did alice do?"))

        assert reports == []
        assert llm.call_history == []
        source.get_authenticated_user.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_quit_is_case_insensitive(self, driver, llm, tool_context):
        from orchestrator.sessions import InteractiveSession

        session = InteractiveSession(driver, tool_context, "system")

        reports = await session.run(_lines("hello", "  QUIT  ", "ignored"))

        assert len(reports) == 1
        assert len(llm.call_history) == 1

    @pytest.mark.asyncio
    async def test_history_accumulates_across_lines(self, driver, llm, tool_context):
        from orchestrator.sessions import InteractiveSession

        llm.queue_responses([
            _tool_response(_commits_call("toolu_1", "alice")),
            _text_response("Alice fixed the login redirect."),
            _text_response("Bob had no activity."),
        ])
        session = InteractiveSession(driver, tool_context, "system")

        reports = await session.run(_lines("what did alice do?", "", "   ", "and bob?"))

        assert [r.state for r in reports] == [SessionState.DONE, SessionState.DONE]
        assert [r.iterations for r in reports] == [2, 1]
        last_call_messages = llm.call_history[-1]["messages"]
        assert last_call_messages[0].content == "what did alice do?"
        assert last_call_messages[-1].content == "and bob?"
        assert len(last_call_messages) == 5

    @pytest.mark.asyncio
    async def test_identity_check_is_advisory(self, driver, llm, tool_context, source):
        from orchestrator.sessions import InteractiveSession

        source.get_authenticated_user.side_effect = GitHubAPIError("Bad credentials", 401)
        session = InteractiveSession(driver, tool_context, "system")

        assert await session.verify_identity() is None
        reports = await session.run(_lines("hello"))

        assert reports[0].state == SessionState.DONE

    @pytest.mark.asyncio
    async def test_failure_notifies_and_keeps_reading(self, driver, llm, tool_context):
        from orchestrator.sessions import InteractiveSession

        notes = []
        llm.set_error(Exception("529 overloaded_error"))
        session = InteractiveSession(driver, tool_context, "system", notify=notes.append)

        reports = await session.run(_lines("first", "second"))

        assert [r.state for r in reports] == [SessionState.FAILED, SessionState.DONE]
        assert notes == ["Error: Inference API is overloaded. Please try again in a few seconds."]


class TestPrompts:
    """Tests for prompt builders."""

    def test_task_prompt_lists_team_and_repos(self):
        from orchestrator.prompts import build_task_prompt

        prompt = build_task_prompt(
            ["alice", "bob"],
            [RepoRef(owner="acme", repo="api"), RepoRef(owner="acme", repo="web")],
            24,
            datetime(2026, 10, 18, 9, 0, tzinfo=timezone.utc),
            "Europe/Berlin",
        )

        assert "Team members: alice, bob" in prompt
        assert "  - acme/web" in prompt
        assert "since 2026-10-18T09:00:00Z" in prompt

    def test_interactive_prompt_states_access_rules(self):
        from orchestrator.prompts import build_interactive_system_prompt

        prompt = build_interactive_system_prompt(
            ["alice"],
            [RepoRef(owner="acme", repo="api")],
            48,
            datetime(2026, 10, 17, 9, 0, tzinfo=timezone.utc),
            "UTC",
        )

        assert "ONLY query the repositories listed above" in prompt
        assert "48 hours" in prompt
