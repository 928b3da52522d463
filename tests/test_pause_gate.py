from __future__ import annotations

from core.pause_gate import PauseGate

from fakes import FakeStorage, make_message


def test_paused_chat_blocks_regular_messages() -> None:
    gate = PauseGate(FakeStorage(paused=[-100123]), handlers="^[!]")

    assert gate.allows(make_message("do something")) is False


def test_resume_command_bypasses_pause() -> None:
    gate = PauseGate(FakeStorage(paused=[-100123]), handlers="^[!]")

    assert gate.allows(make_message("!resume")) is True
    assert gate.allows(make_message("! RESUME please")) is True


def test_other_chats_are_not_affected() -> None:
    gate = PauseGate(FakeStorage(paused=[-100999]), handlers="^[!]")

    assert gate.allows(make_message("do something")) is True


def test_registry_failure_fails_open(caplog) -> None:
    gate = PauseGate(FakeStorage(paused=[-100123], fail_paused=True), handlers="^[!]")

    assert gate.allows(make_message("do something")) is True
    assert "Paused chat lookup failed" in caplog.text


def test_messages_without_body_are_never_resume_commands() -> None:
    gate = PauseGate(FakeStorage(paused=[-100123]), handlers="^[!]")

    assert gate.is_resume(make_message(None)) is False
    assert gate.allows(make_message(None)) is False
