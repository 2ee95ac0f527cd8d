"""Delivery guarantees: exactly one outcome, ordering, and cancellation."""

from __future__ import annotations

import asyncio
import threading

import httpx
import pytest
import respx

from cloudbox import (
    AuthenticationError,
    CloudboxError,
    Failure,
    KeySpace,
    Operation,
    OperationKind,
    RequestRegistry,
    RestClient,
    SignedRequest,
    StaticCredentialProvider,
    Success,
    TransportError,
)
from cloudbox._internal.http.transport import AsyncTransport
from cloudbox.dispatcher import CompletionDispatcher
from cloudbox.results import Outcome

API_HOST = "api.cloudbox.com"
CONTENT_HOST = "api-content.cloudbox.com"


async def _settle(rounds: int = 20) -> None:
    for _ in range(rounds):
        await asyncio.sleep(0)


def _ok_json(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, json={"path": request.url.path})


def _empty(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200)


def _ok_data(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, content=b"data")


@respx.mock
@pytest.mark.asyncio
async def test_delivery_follows_transport_order_not_parse_order(credentials) -> None:
    respx.get("https://api.cloudbox.com/1/first").mock(side_effect=_empty)
    respx.get("https://api.cloudbox.com/1/second").mock(side_effect=_empty)

    second_parsed = threading.Event()
    delivered: list[str] = []

    def slow_parser(response, op: Operation) -> str:
        # Waits until the later operation has been parsed.
        second_parsed.wait(timeout=5)
        return "first"

    def fast_parser(response, op: Operation) -> str:
        second_parsed.set()
        return "second"

    registry = RequestRegistry()
    async with httpx.AsyncClient() as http_client:
        dispatcher = CompletionDispatcher(AsyncTransport(http_client), registry, credentials)
        ops = [
            dispatcher.start(
                Operation(
                    kind=OperationKind.LOAD_METADATA,
                    request=SignedRequest("GET", f"https://api.cloudbox.com/1/{name}"),
                    parser=parser,
                    on_result=lambda outcome: delivered.append(outcome.value),
                )
            )
            for name, parser in (("first", slow_parser), ("second", fast_parser))
        ]
        outcomes = await asyncio.gather(*ops)

    assert [o.value for o in outcomes] == ["first", "second"]
    assert delivered == ["first", "second"]
    assert registry.count() == 0


@respx.mock
@pytest.mark.asyncio
async def test_cancel_all_suppresses_every_notification(config, credentials, tmp_path) -> None:
    respx.route(host=API_HOST).mock(side_effect=_ok_json)
    respx.route(host=CONTENT_HOST).mock(side_effect=_ok_data)
    source = tmp_path / "up.txt"
    source.write_bytes(b"hello")
    delivered: list[Outcome] = []

    async with RestClient(credentials, config=config) as client:
        ops = [
            client.load_metadata("/x", on_result=delivered.append),
            client.load_file("/x", tmp_path / "x", on_result=delivered.append),
            client.load_thumbnail("/x.jpg", "m", tmp_path / "t", on_result=delivered.append),
            client.upload_file("up.txt", "/", source, on_result=delivered.append),
        ]
        assert client.request_count == 4

        client.cancel_all_requests()
        assert client.request_count == 0
        await _settle()

        for op in ops:
            with pytest.raises(asyncio.CancelledError):
                await op

    assert delivered == []
    assert not (tmp_path / "x").exists()
    assert not (tmp_path / "x.part").exists()


@respx.mock
@pytest.mark.asyncio
async def test_cancelled_download_is_not_notified(config, credentials, tmp_path) -> None:
    respx.get(host=CONTENT_HOST, path="/1/files/dropbox/x").mock(
        return_value=httpx.Response(200, content=b"data")
    )
    delivered: list[Outcome] = []

    async with RestClient(credentials, config=config) as client:
        op = client.load_file("/x", tmp_path / "x", on_result=delivered.append)
        assert client.cancel_file_load("x")
        assert not client.cancel_file_load("/x")

        with pytest.raises(asyncio.CancelledError):
            await op
        assert client.request_count == 0

    assert delivered == []


@respx.mock
@pytest.mark.asyncio
async def test_double_download_overwrites_entry_but_both_deliver(
    config, credentials, tmp_path
) -> None:
    route = respx.get(host=CONTENT_HOST, path="/1/files/dropbox/x").mock(
        side_effect=_ok_data
    )
    delivered: list[Outcome] = []

    async with RestClient(credentials, config=config) as client:
        first = client.load_file("/x", tmp_path / "a", on_result=delivered.append)
        second = client.load_file("/x", tmp_path / "b", on_result=delivered.append)

        assert client.request_count == 1
        assert client.registry.get(KeySpace.DOWNLOAD, "/x") is second

        await asyncio.gather(first, second)
        assert client.request_count == 0

    assert route.call_count == 2
    assert len(delivered) == 2
    assert all(isinstance(outcome, Success) for outcome in delivered)
    assert (tmp_path / "a").read_bytes() == b"data"
    assert (tmp_path / "b").read_bytes() == b"data"


@respx.mock
@pytest.mark.asyncio
async def test_each_operation_notified_exactly_once(config, credentials) -> None:
    statuses = iter([200, 500, 200, 404, 200])

    def handler(request: httpx.Request) -> httpx.Response:
        status = next(statuses)
        if status == 200:
            return httpx.Response(200, json={"path": request.url.path})
        return httpx.Response(status, json={"error": "nope"})

    respx.get(host=API_HOST).mock(side_effect=handler)
    counts: dict[str, int] = {}

    def record(name: str):
        def on_result(outcome: Outcome) -> None:
            counts[name] = counts.get(name, 0) + 1

        return on_result

    async with RestClient(credentials, config=config) as client:
        ops = [client.load_metadata(f"/f{i}", on_result=record(f"f{i}")) for i in range(5)]
        outcomes = await asyncio.gather(*ops)
        await _settle()

    assert counts == {f"f{i}": 1 for i in range(5)}
    assert sum(isinstance(o, Failure) for o in outcomes) == 2


@respx.mock
@pytest.mark.asyncio
async def test_listener_exception_does_not_block_others(config, credentials, caplog) -> None:
    respx.get(host=API_HOST).mock(side_effect=_ok_json)
    delivered: list[Outcome] = []

    def broken(outcome: Outcome) -> None:
        raise RuntimeError("listener bug")

    async with RestClient(credentials, config=config) as client:
        first = client.load_metadata("/a", on_result=broken)
        second = client.load_metadata("/b", on_result=delivered.append)
        await asyncio.gather(first, second)

    assert len(delivered) == 1
    assert "listener for load_metadata raised" in caplog.text


@respx.mock
@pytest.mark.asyncio
async def test_async_listener_is_awaited(config, credentials) -> None:
    respx.get(host=API_HOST).mock(side_effect=_ok_json)
    done = asyncio.Event()

    async def on_result(outcome: Outcome) -> None:
        done.set()

    async with RestClient(credentials, config=config) as client:
        await client.load_metadata("/x", on_result=on_result)
        await asyncio.wait_for(done.wait(), timeout=1)


@respx.mock
@pytest.mark.asyncio
async def test_cancel_after_delivery_is_noop(config, credentials) -> None:
    respx.get(host=API_HOST).mock(side_effect=_ok_json)

    async with RestClient(credentials, config=config) as client:
        op = client.load_metadata("/x")
        outcome = await op
        op.cancel()

    assert isinstance(outcome, Success)
    assert not op.cancelled


@respx.mock
@pytest.mark.asyncio
async def test_raising_reauth_hook_still_fails_the_operation(config, caplog) -> None:
    def reauth(user_id: str | None) -> None:
        raise RuntimeError("keychain locked")

    credentials = StaticCredentialProvider("ck", "cs", "tok", "ts", on_authorization_failure=reauth)
    respx.get(host=API_HOST, path="/1/metadata/dropbox/a").mock(
        return_value=httpx.Response(401, json={"error": "token expired"})
    )
    respx.get(host=API_HOST, path="/1/metadata/dropbox/b").mock(side_effect=_ok_json)
    delivered: list[Outcome] = []

    async with RestClient(credentials, config=config) as client:
        first = client.load_metadata("/a", on_result=delivered.append)
        second = client.load_metadata("/b", on_result=delivered.append)
        outcomes = await asyncio.wait_for(asyncio.gather(first, second), timeout=2)
        assert client.request_count == 0

    assert isinstance(outcomes[0], Failure)
    assert isinstance(outcomes[0].error, AuthenticationError)
    assert isinstance(outcomes[1], Success)
    assert len(delivered) == 2
    assert "authorization failure hook raised" in caplog.text


@respx.mock
@pytest.mark.asyncio
async def test_raising_progress_listener_does_not_stall_download(
    config, credentials, tmp_path, caplog
) -> None:
    respx.get(host=CONTENT_HOST).mock(side_effect=_ok_data)
    respx.get(host=API_HOST).mock(side_effect=_ok_json)
    delivered: list[Outcome] = []

    def broken_progress(event) -> None:
        raise RuntimeError("progress bar bug")

    async with RestClient(credentials, config=config) as client:
        download = client.load_file(
            "/x", tmp_path / "x", on_result=delivered.append, on_progress=broken_progress
        )
        outcome = await asyncio.wait_for(download, timeout=2)
        later = await asyncio.wait_for(client.load_metadata("/y"), timeout=2)
        assert client.request_count == 0

    assert isinstance(outcome, Success)
    assert isinstance(later, Success)
    assert delivered == [outcome]
    assert (tmp_path / "x").read_bytes() == b"data"
    assert "progress listener for load_file raised" in caplog.text


@respx.mock
@pytest.mark.asyncio
async def test_non_network_httpx_error_becomes_transport_failure(config, credentials) -> None:
    respx.get(host=API_HOST, path="/1/metadata/dropbox/bad").mock(
        side_effect=httpx.DecodingError("bad gzip")
    )
    respx.get(host=API_HOST, path="/1/metadata/dropbox/good").mock(side_effect=_ok_json)
    delivered: list[Outcome] = []

    async with RestClient(credentials, config=config) as client:
        bad = await asyncio.wait_for(
            client.load_metadata("/bad", on_result=delivered.append), timeout=2
        )
        good = await asyncio.wait_for(client.load_metadata("/good"), timeout=2)
        assert client.request_count == 0

    assert isinstance(bad, Failure)
    assert isinstance(bad.error, TransportError)
    assert isinstance(bad.error.cause, httpx.DecodingError)
    assert bad.error.user_info["path"] == "/bad"
    assert delivered == [bad]
    assert isinstance(good, Success)


@respx.mock
@pytest.mark.asyncio
async def test_unexpected_parser_error_is_delivered_as_failure(credentials, caplog) -> None:
    respx.get("https://api.cloudbox.com/1/broken").mock(side_effect=_empty)
    respx.get("https://api.cloudbox.com/1/fine").mock(side_effect=_empty)

    def broken_parser(response, op: Operation) -> str:
        raise KeyError("contents")

    registry = RequestRegistry()
    delivered: list[Outcome] = []
    async with httpx.AsyncClient() as http_client:
        dispatcher = CompletionDispatcher(AsyncTransport(http_client), registry, credentials)
        ops = [
            dispatcher.start(
                Operation(
                    kind=OperationKind.SEARCH,
                    request=SignedRequest("GET", f"https://api.cloudbox.com/1/{name}"),
                    parser=parser,
                    user_info={"path": f"/{name}"},
                    on_result=delivered.append,
                )
            )
            for name, parser in (("broken", broken_parser), ("fine", lambda r, op: "ok"))
        ]
        outcomes = await asyncio.wait_for(asyncio.gather(*ops), timeout=2)

    assert isinstance(outcomes[0], Failure)
    assert type(outcomes[0].error) is CloudboxError
    assert isinstance(outcomes[0].error.__cause__, KeyError)
    assert outcomes[0].error.user_info["path"] == "/broken"
    assert outcomes[1] == Success("ok")
    assert delivered == outcomes
    assert registry.count() == 0
    assert "search failed unexpectedly" in caplog.text
