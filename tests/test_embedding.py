import sys

import pytest

from edgerag.embedding import EmbeddingError, EmbeddingService

FAKE_HELPER = """\
import json
import sys
import time

print(json.dumps({"status": __READY__}), flush=True)
for line in sys.stdin:
    line = line.strip()
    if line == "QUIT":
        break
    request = json.loads(line)
    text = request["text"]
    if text == "slow":
        time.sleep(2)
    if text == "garbage":
        print("not json", flush=True)
    elif text == "fail":
        print(json.dumps({"error": "model " + request["model"] + " failed"}), flush=True)
    else:
        print(json.dumps({"embedding": [float(len(text)), 0.5, -1.0]}), flush=True)
"""


def _write_helper(tmp_path, ready="ready", body=None):
    script = tmp_path / "helper.py"
    script.write_text(body if body is not None else FAKE_HELPER.replace("__READY__", repr(ready)))
    return script


@pytest.fixture
def service(tmp_path):
    script = _write_helper(tmp_path)
    svc = EmbeddingService("demo-model", script, sys.executable, 10.0)
    yield svc
    svc.close()


def test_get_embedding_returns_helper_vector(service):
    assert service.get_embedding("hello") == [5.0, 0.5, -1.0]


def test_get_embedding_handles_unicode(service):
    assert service.get_embedding("héllo")[0] == float(len("héllo"))


def test_get_embeddings_keeps_order(service):
    result = service.get_embeddings(["a", "abc", "ab"])
    assert [vector[0] for vector in result] == [1.0, 3.0, 2.0]


def test_dimension(service):
    assert service.dimension() == 3


def test_helper_error_is_raised_with_model_name(service):
    with pytest.raises(EmbeddingError, match="embedding error: model demo-model failed"):
        service.get_embedding("fail")


def test_invalid_response_raises(service):
    with pytest.raises(EmbeddingError, match="failed to parse response"):
        service.get_embedding("garbage")


def test_get_embeddings_reports_failing_index(service):
    with pytest.raises(EmbeddingError, match="failed to get embedding for text 1"):
        service.get_embeddings(["ok", "fail"])


def test_timeout(tmp_path):
    script = _write_helper(tmp_path)
    svc = EmbeddingService("demo-model", script, sys.executable, 0.3)
    try:
        with pytest.raises(EmbeddingError, match="timed out"):
            svc.get_embedding("slow")
    finally:
        svc.close()


def test_closed_service_rejects_requests(tmp_path):
    script = _write_helper(tmp_path)
    with EmbeddingService("demo-model", script, sys.executable, 10.0) as svc:
        assert svc.get_embedding("xy")[0] == 2.0
    with pytest.raises(EmbeddingError, match="closed"):
        svc.get_embedding("xy")


def test_close_twice_is_harmless(tmp_path):
    script = _write_helper(tmp_path)
    svc = EmbeddingService("demo-model", script, sys.executable, 10.0)
    svc.close()
    svc.close()
    with pytest.raises(EmbeddingError):
        svc.dimension()


def test_unexpected_ready_signal(tmp_path):
    script = _write_helper(tmp_path, ready="loading")
    with pytest.raises(EmbeddingError, match="unexpected ready signal: loading"):
        EmbeddingService("demo-model", script, sys.executable, 10.0)


def test_helper_that_exits_immediately(tmp_path):
    script = _write_helper(tmp_path, body="import sys\nsys.exit(0)\n")
    with pytest.raises(EmbeddingError, match="failed to read ready signal"):
        EmbeddingService("demo-model", script, sys.executable, 10.0)


def test_unparseable_ready_signal(tmp_path):
    script = _write_helper(tmp_path, body="print('hello', flush=True)\n")
    with pytest.raises(EmbeddingError, match="failed to parse ready signal"):
        EmbeddingService("demo-model", script, sys.executable, 10.0)


def test_missing_interpreter(tmp_path):
    script = _write_helper(tmp_path)
    missing = str(tmp_path / "no-such-python")
    with pytest.raises(EmbeddingError, match="failed to start Python process"):
        EmbeddingService("demo-model", script, missing, 10.0)


def test_self_test_failure_is_reported(tmp_path):
    body = (
        "import json, sys\n"
        "print(json.dumps({'status': 'ready'}), flush=True)\n"
        "for line in sys.stdin:\n"
        "    if line.strip() == 'QUIT':\n"
        "        break\n"
        "    print(json.dumps({'error': 'no model'}), flush=True)\n"
    )
    script = _write_helper(tmp_path, body=body)
    with pytest.raises(EmbeddingError, match="embedding service test failed"):
        EmbeddingService("demo-model", script, sys.executable, 10.0)