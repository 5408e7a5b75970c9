import pytest

from writing_core.api.service import CANCELLED_MARKER, ChatSession, collect, run_action
from writing_core.config.settings import Settings
from writing_core.domain.models import Role
from writing_core.prompts import (
    DEFAULT_ACTIONS,
    DEFAULT_CHAT_SYSTEM_PROMPT,
    INCOMPATIBLE_TEXT_MARKER,
    WritingAction,
    find_action,
    load_actions,
)


class ScriptedProvider:
    name = "Scripted"

    def __init__(self, chunks):
        self._chunks = list(chunks)
        self.calls = []
        self.closed = False

    def is_configured(self):
        return True

    def stream_completion(self, messages, system_prompt, cancel=None):
        self.calls.append((messages, system_prompt))
        for chunk in self._chunks:
            if cancel is not None and cancel.cancelled:
                return
            yield chunk

    def close(self):
        self.closed = True


def make_session(provider, max_messages=10):
    return ChatSession(provider_factory=lambda cfg: provider, max_messages=max_messages)


def test_ask_accumulates_and_stores_reply():
    provider = ScriptedProvider(["Hel", "lo"])
    session = make_session(provider)
    seen = []
    turn = session.ask("  hi  ", on_chunk=seen.append)

    assert turn.text == "Hello"
    assert not turn.cancelled
    assert seen == ["Hel", "Hello"]
    assert [(m.role, m.content) for m in session.conversation.messages] == [
        (Role.USER, "hi"),
        (Role.ASSISTANT, "Hello"),
    ]
    messages, system_prompt = provider.calls[0]
    assert system_prompt == DEFAULT_CHAT_SYSTEM_PROMPT
    assert [m.content for m in messages] == ["hi"]
    assert provider.closed


def test_history_is_sent_on_following_turns():
    provider = ScriptedProvider(["ok"])
    session = make_session(provider)
    session.ask("first")
    session.ask("second", system_prompt="custom")
    messages, system_prompt = provider.calls[1]
    assert [m.content for m in messages] == ["first", "ok", "second"]
    assert system_prompt == "custom"
    # system prompt 不进入历史
    assert all(m.role is not Role.SYSTEM for m in session.conversation.messages)


def test_cancelled_turn_is_annotated_and_not_stored():
    provider = ScriptedProvider(["Hel", "lo", " world"])
    session = make_session(provider)

    def on_chunk(text):
        if text == "Hel":
            session.cancel()

    turn = session.ask("hi", on_chunk=on_chunk)
    assert turn.cancelled
    assert turn.text == "Hel" + CANCELLED_MARKER
    assert [m.content for m in session.conversation.messages] == ["hi"]
    assert provider.closed


def test_blank_input_is_ignored():
    provider = ScriptedProvider(["x"])
    session = make_session(provider)
    assert session.ask("   ") is None
    assert provider.calls == []
    assert not session.conversation.has_messages


def test_new_conversation_clears_history():
    session = make_session(ScriptedProvider(["x"]))
    session.ask("hi")
    session.new_conversation()
    assert not session.conversation.has_messages


def test_session_history_is_bounded():
    session = make_session(ScriptedProvider(["r"]), max_messages=3)
    for q in ["a", "b", "c"]:
        session.ask(q)
    assert [m.content for m in session.conversation.messages] == ["r", "c", "r"]


def test_ask_action_uses_prefix_and_instruction():
    provider = ScriptedProvider(["Fixed."])
    session = make_session(provider)
    action = WritingAction(name="Proofread", prefix="Proofread this:\n\n", instruction="You proofread.")
    turn = session.ask_action(action, "teh text")
    assert turn.text == "Fixed."
    messages, system_prompt = provider.calls[0]
    assert messages[0].content == "Proofread this:\n\nteh text"
    assert system_prompt == "You proofread."


def test_run_action_returns_trimmed_reply():
    provider = ScriptedProvider(["  The ", "text.\n"])
    action = DEFAULT_ACTIONS[0]
    assert run_action(action, "teh text", provider=provider) == "The text."
    messages, system_prompt = provider.calls[0]
    assert len(messages) == 1
    assert messages[0].content == action.prefix + "teh text"
    assert system_prompt == action.instruction
    # 外部传入的 provider 由调用方关闭
    assert not provider.closed


def test_run_action_rejects_incompatible_text():
    provider = ScriptedProvider([INCOMPATIBLE_TEXT_MARKER])
    assert run_action(DEFAULT_ACTIONS[0], "1234", provider=provider) is None
    assert run_action(DEFAULT_ACTIONS[0], "   ", provider=provider) is None
    assert len(provider.calls) == 1


def test_collect_joins_in_order():
    assert collect(iter(["a", "b", "c"])) == "abc"


def test_load_actions():
    assert load_actions(None) == DEFAULT_ACTIONS
    actions = load_actions(
        [
            {"name": "Summarize", "prefix": "Summarize: ", "instruction": "Be brief.", "openInWindow": True},
            {"prefix": "nameless"},
        ]
    )
    assert len(actions) == 1
    assert actions[0].open_in_window
    assert find_action(actions, "summarize") is actions[0]
    assert find_action(actions, "missing") is None


def test_session_actions_come_from_settings():
    cfg = Settings(actions=[{"name": "Shorten", "prefix": "Shorten: ", "instruction": "Be short."}])
    session = ChatSession(settings=cfg, provider_factory=lambda c: ScriptedProvider([]))
    assert [a.name for a in session.actions] == ["Shorten"]
    assert session.conversation.max_messages == cfg.max_conversation_messages


def test_explicit_zero_history_limit_is_rejected():
    with pytest.raises(ValueError):
        ChatSession(provider_factory=lambda c: ScriptedProvider([]), max_messages=0)


def test_run_action_builds_provider_from_given_settings(monkeypatch):
    provider = ScriptedProvider(["Done."])
    seen = []

    def factory(cfg):
        seen.append(cfg)
        return provider

    monkeypatch.setattr("writing_core.api.service.create_provider_from_settings", factory)
    cfg = Settings(provider="ollama")
    assert run_action(DEFAULT_ACTIONS[0], "text", settings=cfg) == "Done."
    assert seen == [cfg]
    # 内部创建的 provider 由 run_action 关闭
    assert provider.closed
