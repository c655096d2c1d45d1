import pytest

from llm_game_gen.backend import LiteLLMBackend
from llm_game_gen.config import Settings


class DummyResp:
    def __init__(self, content):
        self.choices = [type("c", (), {"message": type("m", (), {"content": content})()})]
        self.usage = type("u", (), {"prompt_tokens": 10, "completion_tokens": 20})()


def _fake_acompletion(calls, content="<html></html>"):
    async def acompletion(**kwargs):
        calls.append(kwargs)
        return DummyResp(content)
    return acompletion


@pytest.mark.asyncio
async def test_complete_sends_system_prompt(monkeypatch):
    calls = []
    monkeypatch.setattr("litellm.acompletion", _fake_acompletion(calls))
    backend = LiteLLMBackend(api_key="k", temperature=0.2)
    assert await backend.complete("gemini/gemini-2.5-pro", "make a game") == "<html></html>"
    [call] = calls
    assert call["model"] == "gemini/gemini-2.5-pro"
    assert call["messages"][0]["role"] == "system"
    assert call["messages"][1] == {"role": "user", "content": "make a game"}
    assert call["temperature"] == 0.2
    assert call["api_key"] == "k"


@pytest.mark.asyncio
async def test_probe_is_minimal(monkeypatch):
    calls = []
    monkeypatch.setattr("litellm.acompletion", _fake_acompletion(calls))
    await LiteLLMBackend(api_key="k").probe("gemini/gemini-pro")
    assert calls[0]["max_tokens"] == 1
    assert len(calls[0]["messages"]) == 1


@pytest.mark.asyncio
async def test_empty_completion_raises(monkeypatch):
    monkeypatch.setattr("litellm.acompletion", _fake_acompletion([], content=""))
    with pytest.raises(ValueError):
        await LiteLLMBackend(api_key="k").complete("m", "p")


def test_from_settings_requires_credential(monkeypatch):
    monkeypatch.delenv("GOOGLE_AI_API_KEY", raising=False)
    assert LiteLLMBackend.from_settings(Settings()) is None
    monkeypatch.setenv("GOOGLE_AI_API_KEY", "secret")
    backend = LiteLLMBackend.from_settings(Settings(temperature=0.5))
    assert backend.api_key == "secret"
    assert backend.temperature == 0.5
