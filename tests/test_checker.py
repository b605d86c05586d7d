import asyncio
import json

import httpx
import pytest
import respx

from towerlink import checker

NODE_URL = "http://node.test/"
RPC_URL = "http://rpc.test/"


@pytest.fixture(autouse=True)
def _reset_switch():
    checker.switch_complete()
    yield
    checker.switch_complete()


def _slot(value):
    return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "result": value})


def _write_keypair(path, values):
    path.write_text(json.dumps(list(values)))
    return path


def test_switch_flag_toggles():
    assert checker.should_switch() is False
    checker.request_switch()
    assert checker.should_switch() is True
    checker.switch_complete()
    assert checker.should_switch() is False


@pytest.mark.asyncio
async def test_wait_for_switch_returns_after_request():
    async def trigger():
        await asyncio.sleep(0.02)
        checker.request_switch()

    task = asyncio.create_task(trigger())
    await asyncio.wait_for(checker.wait_for_switch(0.005), timeout=2)
    await task
    assert checker.should_switch() is True


@pytest.mark.asyncio
async def test_get_slot_sends_confirmed_request():
    with respx.mock() as router:
        route = router.post(NODE_URL).mock(return_value=_slot(1234))
        async with httpx.AsyncClient() as client:
            slot = await checker.get_slot(client, NODE_URL)
    assert slot == 1234
    sent = json.loads(route.calls.last.request.content)
    assert sent["method"] == "getSlot"
    assert sent["params"] == [{"commitment": "confirmed"}]


@pytest.mark.asyncio
async def test_get_slot_retries_then_succeeds():
    responses = iter([httpx.Response(500), httpx.Response(500), _slot(77)])
    with respx.mock() as router:
        route = router.post(NODE_URL).mock(side_effect=lambda request: next(responses))
        async with httpx.AsyncClient() as client:
            slot = await checker.get_slot(client, NODE_URL)
    assert slot == 77
    assert route.call_count == 3


@pytest.mark.asyncio
async def test_get_slot_gives_up_after_max_retries():
    with respx.mock() as router:
        route = router.post(NODE_URL).mock(return_value=httpx.Response(500))
        async with httpx.AsyncClient() as client:
            with pytest.raises(httpx.HTTPStatusError):
                await checker.get_slot(client, NODE_URL)
    assert route.call_count == checker.MAX_RETRIES + 1


@pytest.mark.asyncio
async def test_get_slot_rpc_error_raises():
    error = httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "error": {"code": -1}})
    with respx.mock() as router:
        router.post(NODE_URL).mock(return_value=error)
        async with httpx.AsyncClient() as client:
            with pytest.raises(RuntimeError):
                await checker.get_slot(client, NODE_URL)


def _sequence(first, then):
    state = {"first": True}

    def respond(request):
        if state["first"]:
            state["first"] = False
            return first
        return then

    return respond


@pytest.mark.parametrize(
    "node_slot, rpc_slot, expected",
    [(100, 200, True), (100, 130, False), (100, 131, True), (200, 100, False)],
)
@pytest.mark.asyncio
async def test_check_rpc_requests_switch_on_lag(node_slot, rpc_slot, expected):
    with respx.mock() as router:
        router.post(NODE_URL).mock(return_value=_slot(node_slot))
        router.post(RPC_URL).mock(
            side_effect=_sequence(_slot(rpc_slot), httpx.Response(503))
        )
        async with httpx.AsyncClient() as client:
            with pytest.raises(httpx.HTTPStatusError):
                await checker.check_rpc(NODE_URL, RPC_URL, client)
    assert checker.should_switch() is expected


def test_read_keypair_pubkey_takes_second_half(tmp_path):
    path = _write_keypair(tmp_path / "id.json", range(64))
    assert checker.read_keypair_pubkey(path) == bytes(range(32, 64))


@pytest.mark.parametrize("content", ["[1, 2, 3]", "not json", "{}", json.dumps([300] * 64)])
def test_read_keypair_pubkey_rejects_bad_files(tmp_path, content):
    path = tmp_path / "bad.json"
    path.write_text(content)
    with pytest.raises(ValueError):
        checker.read_keypair_pubkey(path)


def test_check_keys_same_pubkey(tmp_path, monkeypatch):
    ref = _write_keypair(tmp_path / "ref.json", [1] * 32 + [9] * 32)
    primary = _write_keypair(tmp_path / "primary.json", [2] * 32 + [9] * 32)
    monkeypatch.setenv("NODE_REFERNCE_KEY_PATH", str(ref))
    monkeypatch.setenv("NODE_PRIMARY_KEY_PATH", str(primary))
    assert checker.check_keys() is True


def test_check_keys_different_pubkey(tmp_path, monkeypatch):
    ref = _write_keypair(tmp_path / "ref.json", [1] * 32 + [9] * 32)
    primary = _write_keypair(tmp_path / "primary.json", [1] * 32 + [8] * 32)
    monkeypatch.setenv("NODE_REFERNCE_KEY_PATH", str(ref))
    monkeypatch.setenv("NODE_PRIMARY_KEY_PATH", str(primary))
    assert checker.check_keys() is False


def test_check_keys_missing_env(monkeypatch):
    monkeypatch.delenv("NODE_REFERNCE_KEY_PATH", raising=False)
    monkeypatch.delenv("NODE_PRIMARY_KEY_PATH", raising=False)
    with pytest.raises(KeyError):
        checker.check_keys()