"""A small client for the Ollama text-generation HTTP API."""

from __future__ import annotations

import codecs
import json
from collections.abc import Iterable, Iterator
from typing import Any

import requests

DEFAULT_URL = "http://localhost:11434"
DEFAULT_MODEL = "llama3.2"
DEFAULT_TIMEOUT = 60.0


class LLMError(RuntimeError):
    """Raised when the Ollama server cannot be reached or answers badly."""


def _drain(decoder: json.JSONDecoder, buffer: str) -> Iterator[Any]:
    """Yield every complete JSON value at the front of ``buffer``.

    The unconsumed rest of the buffer is the generator's return value.
    """
    while True:
        buffer = buffer.lstrip()
        if not buffer:
            return buffer
        try:
            value, end = decoder.raw_decode(buffer)
        except json.JSONDecodeError:
            return buffer
        buffer = buffer[end:]
        yield value


def _iter_json(chunks: Iterable[bytes]) -> Iterator[Any]:
    """Decode a byte stream of concatenated JSON values."""
    decoder = json.JSONDecoder()
    utf8 = codecs.getincrementaldecoder("utf-8")()
    buffer = ""
    try:
        for chunk in chunks:
            buffer += utf8.decode(chunk)
            buffer = yield from _drain(decoder, buffer)
        buffer += utf8.decode(b"", final=True)
    except UnicodeDecodeError as err:
        raise LLMError(f"failed to decode streaming response: {err}") from err
    except requests.RequestException as err:
        raise LLMError(f"failed to decode streaming response: {err}") from err

    buffer = yield from _drain(decoder, buffer)
    if buffer.strip():
        try:
            decoder.raw_decode(buffer)
        except json.JSONDecodeError as err:
            raise LLMError(f"failed to decode streaming response: {err}") from err
        raise LLMError("failed to decode streaming response: trailing data")


class OllamaClient:
    """Generates text with a model served by Ollama.

    The server is contacted once on construction to check that it is up.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_URL,
        model: str = DEFAULT_MODEL,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self.base_url = base_url.removesuffix("/")
        self.model = model
        self.timeout = timeout
        self._ping()

    def _url(self, path: str) -> str:
        return self.base_url + path

    def _ping(self) -> None:
        try:
            response = requests.get(self._url("/api/tags"), timeout=self.timeout)
        except requests.RequestException as err:
            raise LLMError(
                f"failed to connect to Ollama: failed to connect to Ollama server: {err}"
            ) from err
        with response:
            if response.status_code != 200:
                raise LLMError(
                    f"failed to connect to Ollama: Ollama server returned status "
                    f"{response.status_code}"
                )

    def _post(self, prompt: str, stream: bool) -> requests.Response:
        payload = {"model": self.model, "prompt": prompt, "stream": stream}
        try:
            response = requests.post(
                self._url("/api/generate"),
                json=payload,
                timeout=self.timeout,
                stream=stream,
            )
        except requests.RequestException as err:
            raise LLMError(f"failed to make request: {err}") from err
        if response.status_code != 200:
            body = response.text
            response.close()
            raise LLMError(
                f"API request failed with status {response.status_code}: {body}"
            )
        return response

    def generate(self, prompt: str) -> str:
        """Return the model's complete answer to ``prompt``."""
        with self._post(prompt, stream=False) as response:
            try:
                message = response.json()
            except ValueError as err:
                raise LLMError(f"failed to decode response: {err}") from err
        if not isinstance(message, dict):
            raise LLMError("failed to decode response: not a JSON object")
        text = message.get("response") or ""
        if not isinstance(text, str):
            raise LLMError("failed to decode response: response is not a string")
        return text

    def generate_stream(self, prompt: str) -> Iterator[str]:
        """Yield the model's answer to ``prompt`` piece by piece as it arrives."""
        with self._post(prompt, stream=True) as response:
            for message in _iter_json(response.iter_content(chunk_size=8192)):
                if not isinstance(message, dict):
                    raise LLMError(
                        "failed to decode streaming response: not a JSON object"
                    )
                text = message.get("response") or ""
                if text:
                    yield str(text)
                if message.get("done"):
                    break

    def list_models(self) -> list[str]:
        """Return the names of the models the server has available."""
        try:
            response = requests.get(self._url("/api/tags"), timeout=self.timeout)
        except requests.RequestException as err:
            raise LLMError(f"failed to get models: {err}") from err
        with response:
            if response.status_code != 200:
                raise LLMError(f"failed to get models, status: {response.status_code}")
            try:
                data = response.json()
            except ValueError as err:
                raise LLMError(f"failed to decode response: {err}") from err
        if not isinstance(data, dict):
            raise LLMError("failed to decode response: not a JSON object")
        models = data.get("models") or []
        if not isinstance(models, list):
            raise LLMError("failed to decode response: models is not a list")
        return [
            str(model.get("name") or "") if isinstance(model, dict) else ""
            for model in models
        ]