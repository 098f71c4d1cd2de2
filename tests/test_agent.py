"""
tests/test_agent.py - ChatBot tool-calling loop against a scripted client.
"""

from __future__ import annotations

import json
from types import SimpleNamespace
from unittest import mock

import openai
import pytest

from aishell.agent import AgentError, ChatBot
from aishell.agent.chatbot import extract_tool_input, tool_specs
from aishell.agent.prompts import build_system_prompt
from aishell.config import AppConfig
from aishell.tools import CalculatorTool, FileReadTool, ToolRouter


def reply(content=None, calls=()):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(
        content=content,
        tool_calls=list(calls) or None,
    ))])


def call(name, tool_input, call_id="call_1"):
    return SimpleNamespace(
        id=call_id,
        function=SimpleNamespace(name=name, arguments=json.dumps({"input": tool_input})),
    )


class ScriptedClient:
    """Stands in for openai.OpenAI; returns queued responses."""

    def __init__(self, *responses):
        self._responses = list(responses)
        self.requests = []
        self.closed = False
        self.chat = SimpleNamespace(completions=SimpleNamespace(create=self._create))

    def _create(self, **kwargs):
        self.requests.append(kwargs)
        item = self._responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    def close(self):
        self.closed = True


@pytest.fixture
def config():
    return AppConfig(api_key="sk-test", max_iterations=3, conversation_buffer_size=2)


@pytest.fixture
def router():
    r = ToolRouter()
    r.register(CalculatorTool())
    r.register(FileReadTool())
    return r


class TestToolSpecs:
    def test_every_tool_exposed_with_single_input(self, router):
        specs = tool_specs(router)
        assert [s["function"]["name"] for s in specs] == ["calculator", "file_reader"]
        assert specs[0]["function"]["parameters"]["required"] == ["input"]

    @pytest.mark.parametrize("raw,expected", [
        ('{"input": "1 + 1"}', "1 + 1"),
        ('"main.go"', "main.go"),
        ("main.go,1,3", "main.go,1,3"),
        ("", ""),
        (None, ""),
        ('{"input": {"file_path": "a.txt"}}', '{"file_path": "a.txt"}'),
    ])
    def test_extract_tool_input(self, raw, expected):
        assert extract_tool_input(raw) == expected

    def test_system_prompt_lists_tools_and_environment(self, router):
        prompt = build_system_prompt(router.tools())
        assert "> calculator:" in prompt
        assert "> file_reader:" in prompt
        assert "Working directory:" in prompt


class TestChatBot:
    def test_direct_answer(self, config, router):
        client = ScriptedClient(reply("hello there"))
        bot = ChatBot(config, router, client=client)
        assert bot.process("hi") == "hello there"
        assert client.requests[0]["tool_choice"] == "auto"
        assert bot.history() == [("hi", "hello there")]

    def test_tool_round_trip(self, config, router):
        client = ScriptedClient(
            reply(calls=[call("calculator", "(15 + 25) * 2")]),
            reply("The answer is 80."),
        )
        bot = ChatBot(config, router, client=client)
        assert bot.process("compute (15+25)*2") == "The answer is 80."

        second = client.requests[1]["messages"]
        assert second[-2]["role"] == "assistant"
        assert second[-2]["tool_calls"][0]["function"]["name"] == "calculator"
        assert second[-1] == {"role": "tool", "tool_call_id": "call_1", "content": "80"}

    def test_unknown_tool_fed_back_to_model(self, config, router):
        client = ScriptedClient(
            reply(calls=[call("search", "weather")]),
            reply("I cannot search."),
        )
        bot = ChatBot(config, router, client=client)
        assert bot.process("weather?") == "I cannot search."
        assert "search is not a valid tool" in client.requests[1]["messages"][-1]["content"]

    def test_tool_error_aborts_turn(self, config, router, tmp_path):
        client = ScriptedClient(reply(calls=[call("file_reader", str(tmp_path / "missing.txt"))]))
        bot = ChatBot(config, router, client=client)
        with pytest.raises(AgentError, match="file_reader: file does not exist"):
            bot.process("read it")
        assert bot.history() == []

    def test_iteration_limit(self, config, router):
        client = ScriptedClient(*[reply(calls=[call("calculator", "1+1")]) for _ in range(3)])
        bot = ChatBot(config, router, client=client)
        with pytest.raises(AgentError, match="after 3 iterations"):
            bot.process("loop forever")

    def test_api_error_wrapped(self, config, router):
        client = ScriptedClient(openai.OpenAIError("quota exceeded"))
        bot = ChatBot(config, router, client=client)
        with pytest.raises(AgentError, match="quota exceeded"):
            bot.process("hi")

    def test_history_window(self, config, router):
        client = ScriptedClient(reply("a"), reply("b"), reply("c"), reply("d"))
        bot = ChatBot(config, router, client=client)
        for text in ("1", "2", "3"):
            bot.process(text)
        assert [t for t, _ in bot.history()] == ["2", "3"]

        bot.process("4")
        sent = [m["content"] for m in client.requests[-1]["messages"] if m["role"] == "user"]
        assert sent == ["2", "3", "4"]

    def test_close_closes_router_and_client(self, config, router):
        client = ScriptedClient()
        bot = ChatBot(config, router, client=client)
        bot.close()
        assert client.closed


class TestDebugTrace:
    def test_turn_observations_logged_when_debugging(self, router, monkeypatch):
        debug_config = AppConfig(api_key="sk-test", max_iterations=3, debug=True)
        client = ScriptedClient(
            reply(calls=[call("calculator", "2 * 3")]),
            reply("6"),
            reply(calls=[call("calculator", "7 - 1", call_id="call_2")]),
            reply("also 6"),
        )
        bot = ChatBot(debug_config, router, client=client)
        messages = []
        monkeypatch.setattr("aishell.agent.chatbot.log", mock.Mock(
            debug=lambda msg: messages.append(msg)))

        bot.process("first")
        bot.process("second")

        traced = [json.loads(m.split("observation: ", 1)[1])
                  for m in messages if m.startswith("observation: ")]
        assert [t["tool_input"] for t in traced] == ["2 * 3", "7 - 1"]
        assert traced[1]["output_summary"] == "6"

    def test_trace_covers_failed_turn(self, router, tmp_path, monkeypatch):
        debug_config = AppConfig(api_key="sk-test", max_iterations=3, debug=True)
        client = ScriptedClient(reply(calls=[call("file_reader", str(tmp_path / "nope"))]))
        bot = ChatBot(debug_config, router, client=client)
        log = mock.Mock()
        monkeypatch.setattr("aishell.agent.chatbot.log", log)

        with pytest.raises(AgentError):
            bot.process("read it")
        traced = [c.args[0] for c in log.debug.call_args_list if c.args[0].startswith("observation: ")]
        assert len(traced) == 1
        assert '"execution_status": "failure"' in traced[0]

    def test_no_trace_without_debug(self, config, router, monkeypatch):
        client = ScriptedClient(reply(calls=[call("calculator", "1+1")]), reply("2"))
        bot = ChatBot(config, router, client=client)
        log = mock.Mock()
        monkeypatch.setattr("aishell.agent.chatbot.log", log)
        bot.process("add")
        assert not any(c.args[0].startswith("observation: ") for c in log.debug.call_args_list)
