"""
Unit tests for the text-generation client (no Ollama server needed).
Run: pytest tests/test_llm_client.py -v
"""

import asyncio
import urllib.error

import pytest

from support_engine.errors import UpstreamUnavailable
from support_engine.llm import client
from support_engine.llm.client import OllamaGenerator, generate_with_timeout
from tests.fakes import FakeGenerator


def _bounded(gen, timeout=None):
    return asyncio.run(generate_with_timeout(gen, "prompt", temperature=0.2, max_tokens=64, timeout=timeout))


class TestGenerateWithTimeout:
    def test_returns_text(self):
        assert _bounded(FakeGenerator(["hello"])) == "hello"

    def test_timeout(self):
        with pytest.raises(UpstreamUnavailable):
            _bounded(FakeGenerator(["late"], delay=1.0), timeout=0.01)

    def test_transport_error_wrapped(self):
        with pytest.raises(UpstreamUnavailable) as exc:
            _bounded(FakeGenerator(error=OSError("connection refused")))
        assert isinstance(exc.value.__cause__, OSError)

    def test_empty_output(self):
        with pytest.raises(UpstreamUnavailable):
            _bounded(FakeGenerator([""]))


class TestOllamaGenerator:
    def test_generate_payload(self, monkeypatch):
        calls = []

        def fake_post(url, payload, timeout):
            calls.append((url, payload, timeout))
            return {"response": "generated text", "done": True}

        monkeypatch.setattr(client, "_post_json", fake_post)
        gen = OllamaGenerator(host="http://ollama:11434/", model="llama3.1:8b", request_timeout=30)
        text = asyncio.run(gen.generate("Hi", temperature=0.7, max_tokens=100))
        assert text == "generated text"
        url, payload, timeout = calls[0]
        assert url == "http://ollama:11434/api/generate"
        assert payload == {
            "model": "llama3.1:8b",
            "prompt": "Hi",
            "stream": False,
            "options": {"temperature": 0.7, "num_predict": 100},
        }
        assert timeout == 30

    def test_health_ok(self, monkeypatch):
        monkeypatch.setattr(client, "_get_json", lambda url, timeout: {"models": [{"name": "llama3.1:8b"}]})
        health = asyncio.run(OllamaGenerator(model="llama3.1:8b").health())
        assert health["status"] == "ok"
        assert health["model_available"] is True

    def test_health_unreachable(self, monkeypatch):
        def refuse(url, timeout):
            raise urllib.error.URLError("connection refused")

        monkeypatch.setattr(client, "_get_json", refuse)
        health = asyncio.run(OllamaGenerator().health())
        assert health["status"] == "unreachable"
