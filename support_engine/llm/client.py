"""
Text-generation collaborator: a prompt goes in, free text comes out.

`OllamaGenerator` talks to an Ollama server over plain HTTP (urllib run in a
worker thread). Nothing about the returned text is trusted; callers parse it
defensively. `generate_with_timeout` bounds a single call and turns every
failure into UpstreamUnavailable. There are no retries.
"""

import asyncio
import json
import logging
import urllib.error
import urllib.request
from typing import Any, Optional, Protocol

from support_engine.config import GENERATION_TIMEOUT_SECONDS, OLLAMA_HOST, OLLAMA_MODEL
from support_engine.errors import UpstreamUnavailable

logger = logging.getLogger(__name__)


class TextGenerator(Protocol):
    async def generate(self, prompt: str, *, temperature: float, max_tokens: int) -> str:
        ...


def _post_json(url: str, payload: dict[str, Any], timeout: float) -> dict[str, Any]:
    """Synchronous POST (run in thread)."""
    data = json.dumps(payload).encode("utf-8")
    req = urllib.request.Request(
        url,
        data=data,
        headers={"Content-Type": "application/json"},
        method="POST",
    )
    with urllib.request.urlopen(req, timeout=timeout) as resp:
        return json.loads(resp.read().decode("utf-8"))


def _get_json(url: str, timeout: float) -> dict[str, Any]:
    with urllib.request.urlopen(url, timeout=timeout) as resp:
        return json.loads(resp.read().decode("utf-8"))


class OllamaGenerator:
    """Non-streaming client for `POST {host}/api/generate`."""

    def __init__(
        self,
        host: str = OLLAMA_HOST,
        model: str = OLLAMA_MODEL,
        request_timeout: float = GENERATION_TIMEOUT_SECONDS,
    ):
        self.host = host.rstrip("/")
        self.model = model
        self.request_timeout = request_timeout

    async def generate(self, prompt: str, *, temperature: float, max_tokens: int) -> str:
        payload = {
            "model": self.model,
            "prompt": prompt,
            "stream": False,
            "options": {"temperature": temperature, "num_predict": max_tokens},
        }
        body = await asyncio.to_thread(_post_json, f"{self.host}/api/generate", payload, self.request_timeout)
        return body.get("response", "")

    async def health(self) -> dict[str, Any]:
        """Reachability of the Ollama server and whether the configured model is pulled. Never raises."""
        try:
            body = await asyncio.to_thread(_get_json, f"{self.host}/api/tags", 5)
        except (urllib.error.URLError, OSError, ValueError) as e:
            logger.warning("Ollama health check failed (%s): %s", self.host, e)
            return {"status": "unreachable", "host": self.host, "model": self.model, "error": str(e)}
        names = [m.get("name", "") for m in body.get("models", [])]
        return {
            "status": "ok",
            "host": self.host,
            "model": self.model,
            "model_available": self.model in names,
            "models": names,
        }


async def generate_with_timeout(
    generator: TextGenerator,
    prompt: str,
    *,
    temperature: float,
    max_tokens: int,
    timeout: Optional[float] = None,
) -> str:
    """
    One bounded generation call. Timeouts, transport errors and empty output all
    raise UpstreamUnavailable; the caller decides whether a fallback exists.
    """
    limit = GENERATION_TIMEOUT_SECONDS if timeout is None else timeout
    try:
        text = await asyncio.wait_for(
            generator.generate(prompt, temperature=temperature, max_tokens=max_tokens),
            timeout=limit,
        )
    except asyncio.TimeoutError as e:
        logger.warning("Text generation timed out after %.0fs", limit)
        raise UpstreamUnavailable(f"Text generation timed out after {limit:.0f}s") from e
    except UpstreamUnavailable:
        raise
    except Exception as e:
        logger.warning("Text generation failed: %s", e)
        raise UpstreamUnavailable(f"Text generation failed: {e}") from e
    if not text or not text.strip():
        logger.warning("Text generation returned no content")
        raise UpstreamUnavailable("Text generation returned no content")
    logger.debug("Raw generation output: %s", text)
    return text
