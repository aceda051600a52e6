"""Tests for the RwsClient facade."""

from __future__ import annotations

import asyncio

import pytest
from aiohttp.test_utils import TestServer

from rws_transport import ClientSettings, RwsClient, Status

from .conftest import SUBPROTOCOL, make_client


class TestExtractSubstring:
    """Tests for RwsClient.extract_substring()."""

    def test_extract_between_markers(self):
        assert RwsClient.extract_substring("<tag>VAL</tag>", "<tag>", "</tag>") == "VAL"

    def test_missing_start_marker(self):
        assert RwsClient.extract_substring("<tag>VAL</tag>", "<x>", "</tag>") == ""

    def test_missing_end_marker(self):
        assert RwsClient.extract_substring("<tag>VAL</tag>", "<tag>", "</x>") == ""

    def test_end_marker_before_start_is_ignored(self):
        whole = '</span><span class="code">1</span>'
        assert RwsClient.extract_substring(whole, '<span class="code">', "</span>") == "1"

    def test_first_occurrence_wins(self):
        whole = "<a>1</a><a>2</a>"
        assert RwsClient.extract_substring(whole, "<a>", "</a>") == "1"

    def test_empty_input(self):
        assert RwsClient.extract_substring("", "<a>", "</a>") == ""


class TestConstruction:
    """Tests for client construction."""

    def test_defaults(self):
        client = RwsClient("192.168.125.1")
        assert client.http.host == "192.168.125.1"
        assert client.http.port == 80
        assert client.http.timeout == 0.4
        assert client.http.authenticator.credentials.user == "Default User"
        assert client.http.authenticator.credentials.password == "robotics"
        assert not client.websocket_exists()

    def test_from_settings(self):
        settings = ClientSettings(
            host="10.0.0.5",
            port=8080,
            user="operator",
            password="secret",
            default_timeout=1.0,
            extended_timeout=20.0,
        )
        client = RwsClient.from_settings(settings)
        assert client.http.host == "10.0.0.5"
        assert client.http.port == 8080
        assert client.http.timeout == 1.0
        assert client.http.authenticator.credentials.user == "operator"

    @pytest.mark.asyncio
    async def test_context_manager_closes_session(
        self, controller: TestServer
    ) -> None:
        async with make_client(controller) as client:
            await client.http_get("/rw/open")
            session = client.http._session
            assert session is not None
        assert session.closed


class TestConcurrency:
    """HTTP and WebSocket calls use independent locks."""

    @pytest.mark.parametrize("app_options", [{"frame_delay": 0.3}])
    @pytest.mark.asyncio
    async def test_http_and_websocket_run_together(self, client: RwsClient) -> None:
        connected = await client.websocket_connect("/poll", SUBPROTOCOL)
        assert connected.status is Status.OK
        await client.use_extended_timeout()

        http_task = asyncio.create_task(client.http_get("/rw/slow?delay=0.3"))
        await asyncio.sleep(0.05)
        assert client.http.lock.locked()
        assert not client.websocket.lock.locked()

        http_result, frame_result = await asyncio.wait_for(
            asyncio.gather(http_task, client.websocket_receive_frame()), timeout=5
        )

        assert http_result.status is Status.OK
        assert http_result.response.body_text == "done"
        assert frame_result.status is Status.OK
        assert frame_result.opcode_text() == "TEXT"
        assert not client.http.lock.locked()
        assert not client.websocket.lock.locked()

    @pytest.mark.asyncio
    async def test_http_calls_serialize(self, client: RwsClient) -> None:
        await client.use_extended_timeout()
        loop = asyncio.get_running_loop()
        start = loop.time()

        results = await asyncio.gather(
            client.http_get("/rw/slow?delay=0.2"),
            client.http_get("/rw/slow?delay=0.2"),
        )

        assert all(result.status is Status.OK for result in results)
        assert loop.time() - start >= 0.4

    @pytest.mark.asyncio
    async def test_failed_receive_releases_lock(self, client: RwsClient) -> None:
        result = await client.websocket_receive_frame()
        assert result.status is Status.NO_SOCKET
        assert not client.websocket.lock.locked()

    @pytest.mark.parametrize("app_options", [{"frames": []}])
    @pytest.mark.asyncio
    async def test_reconnect_behind_pending_receive_leaves_http_free(
        self, controller: TestServer
    ) -> None:
        client = make_client(controller, receive_timeout=1.5)
        try:
            await client.websocket_connect("/poll", SUBPROTOCOL)
            receive_task = asyncio.create_task(client.websocket_receive_frame())
            await asyncio.sleep(0.05)
            assert client.websocket.lock.locked()

            connect_task = asyncio.create_task(
                client.websocket_connect("/poll", SUBPROTOCOL)
            )
            await asyncio.sleep(0.2)
            assert not connect_task.done()
            assert not client.http.lock.locked()

            loop = asyncio.get_running_loop()
            start = loop.time()
            http_result = await client.http_get("/rw/echo")
            elapsed = loop.time() - start

            received, connected = await asyncio.gather(receive_task, connect_task)
        finally:
            await client.close()

        assert http_result.status is Status.OK
        assert http_result.response.status == 200
        assert elapsed < 0.75
        assert received.status is Status.TIMEOUT_FAILURE
        assert connected.status is Status.OK
