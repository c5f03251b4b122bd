"""Text embeddings from a long-running sentence-transformers helper process."""

from __future__ import annotations

import json
import os
import queue
import subprocess
import threading
from collections.abc import Iterable
from pathlib import Path
from typing import IO, Any

DEFAULT_MODEL = "paraphrase-MiniLM-L3-v2"
DEFAULT_SCRIPT_PATH = Path(__file__).resolve().parent.parent / "scripts" / "embeddings.py"
DEFAULT_TIMEOUT = 120.0

_CLOSE_GRACE = 5.0
_SELF_TEST_TEXT = "This is a test sentence for embedding generation."


class EmbeddingError(RuntimeError):
    """Raised when the embedding helper fails or misbehaves."""


def _pump(stream: IO[str], lines: queue.Queue[str | None]) -> None:
    try:
        for line in stream:
            lines.put(line)
    except (OSError, ValueError):
        pass
    finally:
        lines.put(None)


class EmbeddingService:
    """Talks JSON lines to a helper script that computes embeddings.

    The helper announces ``{"status": "ready"}``, then answers each
    ``{"text": ..., "model": ...}`` request with ``{"embedding": [...]}`` or
    ``{"error": ...}``, and stops on a ``QUIT`` line.
    """

    def __init__(
        self,
        model: str = DEFAULT_MODEL,
        script_path: str | os.PathLike[str] | None = None,
        python: str = "python3",
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self.model = model
        self.script_path = os.fspath(script_path) if script_path is not None else str(DEFAULT_SCRIPT_PATH)
        self.python = python
        self.timeout = timeout
        self._process: subprocess.Popen[str] | None = None
        self._lines: queue.Queue[str | None] = queue.Queue()

        try:
            self._start()
        except EmbeddingError as err:
            self.close()
            raise EmbeddingError(f"failed to start embedding service: {err}") from err

        try:
            self.get_embedding(_SELF_TEST_TEXT)
        except EmbeddingError as err:
            self.close()
            raise EmbeddingError(f"embedding service test failed: {err}") from err

    def _start(self) -> None:
        try:
            self._process = subprocess.Popen(
                [self.python, self.script_path],
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.DEVNULL,
                text=True,
                encoding="utf-8",
                bufsize=1,
            )
        except OSError as err:
            raise EmbeddingError(f"failed to start Python process: {err}") from err

        assert self._process.stdout is not None
        threading.Thread(
            target=_pump, args=(self._process.stdout, self._lines), daemon=True
        ).start()

        line = self._lines.get()
        if line is None:
            raise EmbeddingError("failed to read ready signal")
        try:
            ready = json.loads(line)
        except ValueError as err:
            raise EmbeddingError(f"failed to parse ready signal: {err}") from err
        status = ready.get("status", "") if isinstance(ready, dict) else ""
        if status != "ready":
            raise EmbeddingError(f"unexpected ready signal: {status}")

    def _send(self, line: str) -> None:
        if self._process is None or self._process.stdin is None:
            raise EmbeddingError("embedding service is closed")
        try:
            self._process.stdin.write(line + "\n")
            self._process.stdin.flush()
        except (OSError, ValueError) as err:
            raise EmbeddingError(f"failed to send request: {err}") from err

    def _receive(self) -> dict[str, Any]:
        try:
            line = self._lines.get(timeout=self.timeout)
        except queue.Empty:
            raise EmbeddingError(
                f"embedding generation timed out after {self.timeout:g} seconds"
            ) from None
        if line is None:
            raise EmbeddingError("failed to parse response: failed to read response")
        try:
            response = json.loads(line)
        except ValueError as err:
            raise EmbeddingError(f"failed to parse response: {err}") from err
        if not isinstance(response, dict):
            raise EmbeddingError("failed to parse response: not a JSON object")
        return response

    def get_embedding(self, text: str) -> list[float]:
        """Return the embedding of one text."""
        self._send(json.dumps({"text": text, "model": self.model}))
        response = self._receive()

        error = response.get("error")
        if error:
            raise EmbeddingError(f"embedding error: {error}")

        embedding = response.get("embedding") or []
        if not isinstance(embedding, list):
            raise EmbeddingError("failed to parse response: embedding is not a list")
        try:
            return [float(x) for x in embedding]
        except (TypeError, ValueError) as err:
            raise EmbeddingError(f"failed to parse response: {err}") from err

    def get_embeddings(self, texts: Iterable[str]) -> list[list[float]]:
        """Return the embeddings of several texts, in order."""
        embeddings = []
        for index, text in enumerate(texts):
            try:
                embeddings.append(self.get_embedding(text))
            except EmbeddingError as err:
                raise EmbeddingError(f"failed to get embedding for text {index}: {err}") from err
        return embeddings

    def dimension(self) -> int:
        """Return the length of the model's embeddings."""
        return len(self.get_embedding("test"))

    def close(self) -> None:
        """Ask the helper to quit, killing it if it does not exit in time."""
        process = self._process
        if process is None:
            return
        self._process = None

        if process.stdin is not None:
            try:
                process.stdin.write("QUIT\n")
                process.stdin.flush()
            except (OSError, ValueError):
                pass
            try:
                process.stdin.close()
            except (OSError, ValueError):
                pass

        try:
            process.wait(timeout=_CLOSE_GRACE)
        except subprocess.TimeoutExpired:
            process.kill()
            process.wait()

        if process.stdout is not None:
            try:
                process.stdout.close()
            except (OSError, ValueError):
                pass

    def __enter__(self) -> EmbeddingService:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()