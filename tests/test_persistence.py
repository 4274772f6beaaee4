import json

import httpx
import pytest

from growthcanvas.config import DEFAULT_SECTION_TITLES
from growthcanvas.exceptions import PersistenceError, UnauthorizedError
from growthcanvas.models import CanvasDocument, Section, TextWidget
from growthcanvas.persistence import (
    DuckDBCanvasRepository,
    HttpCanvasRepository,
    InMemoryCanvasRepository,
    JsonPayloadCodec,
)


@pytest.fixture
def duckdb_repository(tmp_path):
    repository = DuckDBCanvasRepository(str(tmp_path / "canvas.db"), ["Acq", "Ret"])
    with repository:
        yield repository


def make_http_repository(handler):
    return HttpCanvasRepository(
        base_url="http://canvas.test",
        user_id="user-1",
        timeout=1.0,
        transport=httpx.MockTransport(handler),
    )


def test_json_codec_round_trip():
    codec = JsonPayloadCodec()
    document = CanvasDocument(sections=[Section(id="s", title="S", widgets=[TextWidget(id="w")])])

    payload, integrity = codec.encode(document)

    assert integrity == {}
    assert codec.decode(payload, integrity) == document


def test_json_codec_rejects_garbage():
    codec = JsonPayloadCodec()
    with pytest.raises(PersistenceError):
        codec.decode("{not json", {})
    with pytest.raises(PersistenceError):
        codec.decode("[1, 2]", {})
    with pytest.raises(PersistenceError, match="canvas schema"):
        codec.decode('{"sections": [{"id": "s1", "widgets": [{"id": "w", "type": "video"}]}]}', {})


def test_in_memory_repository():
    repository = InMemoryCanvasRepository()
    assert repository.load() is None

    saved = repository.save(None, "{}", {"iv": "x"})
    assert repository.load().id == saved.id
    assert repository.load(saved.id).integrity == {"iv": "x"}

    with pytest.raises(PersistenceError):
        repository.load("missing")


def test_duckdb_seeds_sections(duckdb_repository):
    sections = duckdb_repository.fetch_sections()
    assert [(s.id, s.title) for s in sections] == [("section_1", "Acq"), ("section_2", "Ret")]

    # Re-initializing does not seed twice
    duckdb_repository.initialize_database()
    assert len(duckdb_repository.fetch_sections()) == 2


def test_duckdb_default_section_titles(tmp_path):
    with DuckDBCanvasRepository(str(tmp_path / "default.db")) as repository:
        titles = [s.title for s in repository.fetch_sections()]
    assert titles == DEFAULT_SECTION_TITLES


def test_duckdb_save_and_load(duckdb_repository):
    assert duckdb_repository.load() is None

    saved = duckdb_repository.save(None, '{"a": 1}', {"iv": "abc"})
    loaded = duckdb_repository.load()

    assert loaded.id == saved.id
    assert loaded.payload == '{"a": 1}'
    assert loaded.integrity == {"iv": "abc"}
    assert loaded.updated_at is not None


def test_duckdb_save_upserts(duckdb_repository):
    first = duckdb_repository.save("canvas-1", "one")
    second = duckdb_repository.save("canvas-1", "two")

    assert first.id == second.id == "canvas-1"
    assert duckdb_repository.load("canvas-1").payload == "two"
    count = duckdb_repository.connection.execute("SELECT COUNT(*) FROM canvases").fetchone()[0]
    assert count == 1


def test_duckdb_missing_canvas(duckdb_repository):
    with pytest.raises(PersistenceError):
        duckdb_repository.load("missing")


def test_duckdb_requires_connection(tmp_path):
    repository = DuckDBCanvasRepository(str(tmp_path / "closed.db"))
    with pytest.raises(RuntimeError):
        repository.fetch_sections()


def test_http_save_sends_payload_and_adopts_id():
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(200, json={"success": True, "canvas": {"id": "srv-1", "updatedAt": "2024-05-01"}})

    with make_http_repository(handler) as repository:
        saved = repository.save(None, "cipher", {"iv": "i", "salt": "s"})

    assert saved.id == "srv-1"
    assert saved.updated_at == "2024-05-01"
    request = requests[0]
    assert request.method == "POST"
    assert request.url.path == "/api/canvas/save"
    body = json.loads(request.content)
    assert body["data"] == "cipher"
    assert body["iv"] == "i" and body["salt"] == "s"
    assert body["userId"] == "user-1"
    assert body["canvasId"]


def test_http_load_unwraps_canvas():
    def handler(request):
        assert request.url.params["userId"] == "user-1"
        assert request.url.params["id"] == "srv-1"
        return httpx.Response(200, json={"canvas": {
            "id": "srv-1", "data": "{}", "iv": "i", "salt": "", "updatedAt": "2024-05-01"
        }})

    with make_http_repository(handler) as repository:
        loaded = repository.load("srv-1")

    assert loaded.id == "srv-1"
    assert loaded.payload == "{}"
    assert loaded.integrity == {"iv": "i"}


def test_http_load_empty_state():
    with make_http_repository(lambda request: httpx.Response(200, json={"canvas": None})) as repository:
        assert repository.load() is None


def test_http_fetch_sections():
    def handler(request):
        assert request.url.path == "/api/sections"
        return httpx.Response(200, json={"sections": [
            {"id": 1, "title": "Acq", "orderIndex": 0},
            {"id": 2, "title": "Ret", "orderIndex": 1},
        ]})

    with make_http_repository(handler) as repository:
        sections = repository.fetch_sections()

    assert [(s.id, s.title) for s in sections] == [("1", "Acq"), ("2", "Ret")]


def test_http_unauthorized():
    with make_http_repository(lambda request: httpx.Response(401)) as repository:
        with pytest.raises(UnauthorizedError):
            repository.save("c", "{}")


def test_http_server_error():
    with make_http_repository(lambda request: httpx.Response(500, text="boom")) as repository:
        with pytest.raises(PersistenceError) as excinfo:
            repository.load()
    assert not isinstance(excinfo.value, UnauthorizedError)


def test_http_unreachable():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with make_http_repository(handler) as repository:
        with pytest.raises(PersistenceError):
            repository.fetch_sections()


def test_http_invalid_json():
    with make_http_repository(lambda request: httpx.Response(200, text="<html>")) as repository:
        with pytest.raises(PersistenceError):
            repository.fetch_sections()
