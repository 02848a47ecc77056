"""Tests for Connection dispatch and the ownership tree.

These tests verify:
1. Objects are created, looked up and disposed per the driver's pushes
2. Disposed proxies fail fast without touching the wire
3. Bad input from the driver is logged and dropped, never fatal
4. The session ending fails every in-flight call
"""

import asyncio
import logging
from unittest.mock import AsyncMock

import pytest

import remoteapp
from remoteapp import (
    Connection,
    ConnectionClosedError,
    JSHandle,
    ObjectDisposedError,
    RemoteCallError,
    RemoteObject,
    SerializationError,
    Window,
)
from tests.harness.fake_target import RemoteFailure, settle


class TestSession:
    @pytest.mark.asyncio
    async def test_connect_returns_launcher(self, launcher, target):
        assert isinstance(launcher, remoteapp.Launcher)
        assert launcher.guid == target.launcher_guid
        assert launcher.parent is launcher._connection._root
        assert launcher._connection.get_object(target.launcher_guid) is launcher

    @pytest.mark.asyncio
    async def test_connect_failure_closes_connection(self, target):
        async def refuse(params):
            raise RemoteFailure("driver not ready")

        target.handle("", "initialize", refuse)

        with pytest.raises(RemoteCallError, match="driver not ready"):
            await remoteapp.connect(target.client_transport)

        assert await target.client_transport.recv() is None

    @pytest.mark.asyncio
    async def test_close_emits_once_and_disposes_everything(self, launcher, app):
        connection = launcher._connection
        closed = []
        connection.on("close", lambda: closed.append(True))

        await connection.close()
        await connection.close()

        assert closed == [True]
        assert connection.is_closed
        assert launcher.disposed
        assert app.disposed
        assert app.is_closed()
        assert connection.get_object(app.guid) is None

    @pytest.mark.asyncio
    async def test_calls_after_close_raise_connection_closed(self, launcher):
        await launcher._connection.close()

        with pytest.raises((ConnectionClosedError, ObjectDisposedError)):
            await launcher.launch("/opt/target/app")

    @pytest.mark.asyncio
    async def test_receive_failure_closes_transport(self):
        transport = AsyncMock()
        transport.recv.side_effect = ValueError("Message too large: 104857601 bytes")
        connection = Connection(transport)
        closed = []
        connection.on("close", lambda: closed.append(True))

        connection.start()
        await settle()

        assert connection.is_closed
        transport.close.assert_awaited_once()

        await connection.close()

        transport.close.assert_awaited_once()
        assert closed == [True]

    @pytest.mark.asyncio
    async def test_end_of_stream_closes_transport(self):
        transport = AsyncMock()
        transport.recv.return_value = None
        connection = Connection(transport)

        connection.start()
        await settle()

        assert connection.is_closed
        transport.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_failing_transport_close_is_tolerated(self):
        transport = AsyncMock()
        transport.recv.return_value = None
        transport.close.side_effect = OSError("already gone")
        connection = Connection(transport)

        connection.start()
        await settle()
        await connection.close()

        assert connection.is_closed
        transport.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_in_flight_call_fails_when_session_ends(self, app, target):
        async def hang(params):
            await asyncio.Event().wait()

        target.handle(target.app_guid, "evaluateExpression", hang)
        call = asyncio.create_task(app.evaluate("1 + 1"))
        await settle()

        await target.transport.close()

        with pytest.raises(ConnectionClosedError) as excinfo:
            await asyncio.wait_for(call, 1)
        assert excinfo.value.method == "evaluateExpression"
        assert excinfo.value.guid == target.app_guid
        assert app._connection._callbacks == {}


class TestOwnershipTree:
    @pytest.mark.asyncio
    async def test_created_objects_hang_off_their_parent(self, app, target):
        window_guid = await target.create_window()
        await settle()

        window = app._connection.get_object(window_guid)

        assert isinstance(window, Window)
        assert window.parent is app
        assert window.type == "Window"
        assert app._objects[window_guid] is window

    @pytest.mark.asyncio
    async def test_dispose_cascades_to_children(self, app, target):
        window_guid = await target.create_window()
        handle_guid = await target.create(window_guid, "JSHandle", {"preview": "1"})
        await settle()
        connection = app._connection
        window = connection.get_object(window_guid)
        handle = connection.get_object(handle_guid)
        closed = []
        window.on("close", closed.append)

        await target.dispose(window_guid)
        await settle()

        assert window.disposed and handle.disposed
        assert window.is_closed()
        assert closed == [window]
        assert connection.get_object(window_guid) is None
        assert connection.get_object(handle_guid) is None
        assert window_guid not in app._objects
        assert not app.disposed

    @pytest.mark.asyncio
    async def test_disposed_proxy_fails_fast(self, app, target):
        handle_guid = await target.create(target.app_guid, "JSHandle")
        await settle()
        handle = app._connection.get_object(handle_guid)
        await target.dispose(handle_guid)
        await settle()
        sent = len(target.calls)

        with pytest.raises(ObjectDisposedError) as excinfo:
            await handle.evaluate("x => x")

        assert excinfo.value.guid == handle_guid
        await settle()
        assert len(target.calls) == sent

    @pytest.mark.asyncio
    async def test_handle_dispose_sends_once(self, app, target):
        handle_guid = await target.create(target.app_guid, "JSHandle")
        await settle()
        handle = app._connection.get_object(handle_guid)

        async def dispose_handle(params):
            await target.dispose(handle_guid)
            return {}

        target.handle(handle_guid, "dispose", dispose_handle)

        await handle.dispose()
        await handle.dispose()

        assert handle.disposed
        assert len(target.calls_to("dispose")) == 1

    @pytest.mark.asyncio
    async def test_unknown_type_gets_plain_proxy(self, app, target, caplog):
        with caplog.at_level(logging.WARNING):
            guid = await target.create(target.app_guid, "Mystery", {"anything": 1})
            await settle()

        obj = app._connection.get_object(guid)
        assert type(obj) is RemoteObject
        assert obj.type == "Mystery"
        assert "Unknown remote object type Mystery" in caplog.text

    @pytest.mark.asyncio
    async def test_duplicate_guid_keeps_first_proxy(self, app, target, caplog):
        guid = await target.create_window("app://first")
        await settle()
        original = app._connection.get_object(guid)

        with caplog.at_level(logging.ERROR):
            await target.create(target.app_guid, "Window", {"url": "app://second"}, guid=guid)
            await settle()

        assert app._connection.get_object(guid) is original
        assert original.url == "app://first"
        assert "already registered" in caplog.text


class TestDispatch:
    @pytest.mark.asyncio
    async def test_push_for_unknown_object_is_dropped(self, app, target, caplog):
        with caplog.at_level(logging.WARNING):
            await target.push("Window@404", "close")
            await settle()

        assert "unknown object 'Window@404'" in caplog.text
        assert not app.is_closed()

    @pytest.mark.asyncio
    async def test_unknown_event_is_dropped(self, app, target, caplog):
        with caplog.at_level(logging.WARNING):
            await target.push(target.app_guid, "somethingNew", {"x": 1})
            await settle()

        assert "Dropping unknown event Application.somethingNew" in caplog.text

    @pytest.mark.asyncio
    async def test_listener_exception_keeps_session_alive(self, app, target, caplog):
        def boom(window):
            raise RuntimeError("listener blew up")

        app.on("window", boom)

        with caplog.at_level(logging.ERROR):
            first = await target.add_window()
            await settle()
        app.off("window", boom)
        second = await target.add_window()
        await settle()

        assert "listener blew up" in caplog.text
        assert [w.guid for w in app.windows()] == [first, second]

    @pytest.mark.asyncio
    async def test_navigated_updates_window_url(self, app, target):
        guid = await target.add_window("app://start")
        await settle()
        window = app._connection.get_object(guid)

        await target.push(guid, "navigated", {"url": "app://next", "extra": True})
        await settle()

        assert window.url == "app://next"

    @pytest.mark.asyncio
    async def test_preview_updated(self, app, target):
        guid = await target.create(target.app_guid, "JSHandle", {"preview": "Promise"})
        await settle()
        handle = app._connection.get_object(guid)

        await target.push(guid, "previewUpdated", {"preview": "42"})
        await settle()

        assert repr(handle) == "<JSHandle preview='42'>"

    @pytest.mark.asyncio
    async def test_remote_error_response(self, app, target):
        async def fail(params):
            raise RemoteFailure("ReferenceError: nope is not defined")

        target.handle(target.app_guid, "evaluateExpression", fail)

        with pytest.raises(RemoteCallError) as excinfo:
            await app.evaluate("nope")

        assert str(excinfo.value) == "evaluateExpression: ReferenceError: nope is not defined"
        assert excinfo.value.remote_name == "Error"

    @pytest.mark.asyncio
    async def test_malformed_result_is_a_call_error(self, app, target):
        guid = await target.create_window()
        await settle()
        window = app._connection.get_object(guid)

        async def title(params):
            return {"unexpected": "shape"}

        target.handle(guid, "title", title)

        with pytest.raises(RemoteCallError, match="Malformed result for Window.title"):
            await window.title()

    @pytest.mark.asyncio
    async def test_window_title(self, app, target):
        guid = await target.create_window()
        await settle()
        window = app._connection.get_object(guid)

        async def title(params):
            return {"value": "Main"}

        target.handle(guid, "title", title)

        assert await window.title() == "Main"


class TestOutgoingValidation:
    @pytest.mark.asyncio
    async def test_unknown_method_fails_before_sending(self, app, target):
        sent = len(target.calls)

        with pytest.raises(SerializationError, match="Application.reload is not part of the protocol"):
            await app.call("reload")

        await settle()
        assert len(target.calls) == sent

    @pytest.mark.asyncio
    async def test_unexpected_parameter_fails_before_sending(self, app, target):
        guid = await target.create_window()
        await settle()
        window = app._connection.get_object(guid)
        sent = len(target.calls)

        with pytest.raises(SerializationError, match="Invalid parameters for Window.title"):
            await window.call("title", {"verbose": True})

        await settle()
        assert len(target.calls) == sent

    @pytest.mark.asyncio
    async def test_negative_launch_timeout_is_rejected(self, launcher):
        with pytest.raises(SerializationError):
            await launcher.launch("/opt/target/app", timeout=-5)

    @pytest.mark.asyncio
    async def test_json_value(self, app, target):
        handle_guid = await target.create(target.app_guid, "JSHandle")
        await settle()
        handle = app._connection.get_object(handle_guid)
        assert isinstance(handle, JSHandle)

        async def json_value(params):
            return {"value": {"value": {"a": [{"n": 1}, {"s": "two"}]}, "handles": []}}

        target.handle(handle_guid, "jsonValue", json_value)

        assert await handle.json_value() == [1, "two"]
