"""Tests for the gist adapter."""

import json

import httpx
import pytest

from memosync.adapters import AdapterContext, GistAdapter
from memosync.config import parse_sync_config
from memosync.errors import ApiError, IntegrityError


def _config(gist_id=None):
    settings = {"gistToken": "ghp_token"}
    if gist_id:
        settings["gistId"] = gist_id
    return parse_sync_config({"provider": "gist", "settings": settings})


def _gist(rows, filename="memoai_sync.json", **file_fields):
    entry = {"content": json.dumps(rows), **file_fields}
    return {"id": "g1", "files": {filename: entry}}


@pytest.fixture
def adapter_for(http, state, clock):
    def _make(handler):
        client, recorder = http(handler)
        return GistAdapter(AdapterContext(client=client, state=state, clock=clock)), recorder

    return _make


class TestGistCreate:
    @pytest.mark.asyncio
    async def test_creates_private_gist_and_persists_id(self, adapter_for, state, make_memo):
        state.save_config(_config())

        def handle(request):
            assert request.method == "POST"
            return httpx.Response(201, json={"id": "new-gist-id"})

        adapter, recorder = adapter_for(handle)
        merged = await adapter.sync(_config(), [make_memo("a", 1)])

        assert [m.id for m in merged] == ["a"]
        body = recorder.json_body()
        assert body["public"] is False
        assert [row["id"] for row in json.loads(body["files"]["memoai_sync.json"]["content"])] == ["a"]
        assert recorder.requests[0].url.path == "/gists"
        assert state.load_config().settings.gist_id == "new-gist-id"
        assert state.load_config().settings.gist_token == "ghp_token"

    @pytest.mark.asyncio
    async def test_create_without_id_in_response(self, adapter_for, state):
        adapter, _ = adapter_for(lambda request: httpx.Response(201, json={}))
        with pytest.raises(IntegrityError):
            await adapter.sync(_config(), [])
        assert state.saved_configs == []


class TestGistSync:
    @pytest.mark.asyncio
    async def test_merges_and_patches(self, adapter_for, make_memo):
        remote = [make_memo("r", 300).to_dict()]

        def handle(request):
            if request.method == "GET":
                return httpx.Response(200, json=_gist(remote))
            return httpx.Response(200, json={"id": "g1"})

        adapter, recorder = adapter_for(handle)
        merged = await adapter.sync(_config("g1"), [make_memo("l", 100)])

        assert [m.id for m in merged] == ["r", "l"]
        assert recorder.methods() == ["GET", "PATCH"]
        assert recorder.requests[1].url.path == "/gists/g1"
        assert recorder.requests[0].headers["Authorization"] == "Bearer ghp_token"
        content = json.loads(recorder.json_body()["files"]["memoai_sync.json"]["content"])
        assert {row["id"] for row in content} == {"r", "l"}

    @pytest.mark.asyncio
    async def test_skips_patch_when_up_to_date(self, adapter_for, make_memo):
        remote = [make_memo("a", 100).to_dict()]
        adapter, recorder = adapter_for(lambda request: httpx.Response(200, json=_gist(remote)))

        await adapter.sync(_config("g1"), [make_memo("a", 100)])

        assert recorder.methods() == ["GET"]

    @pytest.mark.asyncio
    async def test_gist_without_file_is_empty(self, adapter_for, make_memo):
        def handle(request):
            if request.method == "GET":
                return httpx.Response(200, json={"id": "g1", "files": {"other.txt": {"content": "x"}}})
            return httpx.Response(200, json={"id": "g1"})

        adapter, recorder = adapter_for(handle)
        merged = await adapter.sync(_config("g1"), [make_memo("a", 1)])

        assert [m.id for m in merged] == ["a"]
        assert recorder.methods() == ["GET", "PATCH"]

    @pytest.mark.asyncio
    async def test_truncated_file_read_from_raw_url(self, adapter_for, make_memo):
        remote = [make_memo("big", 50).to_dict()]
        raw_url = "https://gist.githubusercontent.com/raw/g1/memoai_sync.json"

        def handle(request):
            if str(request.url) == raw_url:
                return httpx.Response(200, text=json.dumps(remote))
            if request.method == "GET":
                gist = {"id": "g1", "files": {"memoai_sync.json": {"content": "[{\"id\"", "truncated": True, "raw_url": raw_url}}}
                return httpx.Response(200, json=gist)
            return httpx.Response(200, json={"id": "g1"})

        adapter, recorder = adapter_for(handle)
        merged = await adapter.sync(_config("g1"), [])

        assert [m.id for m in merged] == ["big"]
        assert recorder.methods() == ["GET", "GET"]

    @pytest.mark.asyncio
    async def test_unknown_gist(self, adapter_for):
        adapter, _ = adapter_for(lambda request: httpx.Response(404, json={"message": "Not Found"}))
        with pytest.raises(ApiError) as exc_info:
            await adapter.sync(_config("missing"), [])
        assert exc_info.value.status_code == 404
        assert "Not Found" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_corrupt_file(self, adapter_for):
        gist = {"id": "g1", "files": {"memoai_sync.json": {"content": "{broken"}}}
        adapter, _ = adapter_for(lambda request: httpx.Response(200, json=gist))
        with pytest.raises(IntegrityError):
            await adapter.sync(_config("g1"), [])
