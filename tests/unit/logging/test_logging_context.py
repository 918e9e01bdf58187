"""Tests for LoggingContext and session log binding."""

import asyncio

import pytest
import structlog

from stream_delivery.log_config import (
    SessionLogContext,
    clear_session_context,
    update_session_progress,
)
from stream_delivery.logging import LoggingContext, clear_context, get_current_context


class TestLoggingContext:
    """Test suite for LoggingContext class."""

    def teardown_method(self):
        """Clean up context after each test."""
        clear_context()

    def test_context_generates_ids(self):
        """Test that context generates request_id and span_id."""
        ctx = LoggingContext(operation="health_cycle")

        assert len(ctx.request_id) == 12
        assert len(ctx.span_id) == 12
        assert ctx.parent_id is None

    def test_context_manager(self):
        """Test context manager sets and clears contextvars."""
        with LoggingContext(operation="health_cycle") as ctx:
            current = get_current_context()
            assert current.request_id == ctx.request_id
            assert current.operation == "health_cycle"
            assert structlog.contextvars.get_contextvars()["request_id"] == ctx.request_id

        assert get_current_context() is None
        assert "request_id" not in structlog.contextvars.get_contextvars()

    @pytest.mark.asyncio
    async def test_async_context_manager(self):
        async with LoggingContext(operation="health_cycle") as ctx:
            assert get_current_context().request_id == ctx.request_id

        assert get_current_context() is None

    def test_nested_contexts(self):
        """Test nested contexts share request_id and chain span ids."""
        with LoggingContext(operation="health_cycle") as cycle:
            with LoggingContext(operation="check_item") as item:
                assert item.request_id == cycle.request_id
                assert item.parent_id == cycle.span_id
                assert item.span_id != cycle.span_id

            # Parent IDs are restored once the child exits
            bound = structlog.contextvars.get_contextvars()
            assert bound["span_id"] == cycle.span_id
            assert bound["operation"] == "health_cycle"

    @pytest.mark.asyncio
    async def test_batch_members_inherit_context(self):
        """Test tasks created inside a cycle carry its request_id."""

        async def member():
            with LoggingContext(operation="check_item") as item:
                return item.request_id, item.parent_id

        async with LoggingContext(operation="health_cycle") as cycle:
            results = await asyncio.gather(member(), member())

        assert all(request_id == cycle.request_id for request_id, _ in results)
        assert all(parent_id == cycle.span_id for _, parent_id in results)

    def test_namespaces(self):
        ctx = LoggingContext(operation="check_item", probe={"content": "channel:7"})
        ctx.set_namespace("result", online=3, offline=1)
        ctx.set_namespace("http", status_code=200)

        log_dict = ctx.to_log_dict()

        assert log_dict["probe"] == {"content": "channel:7"}
        assert log_dict["result"] == {"online": 3, "offline": 1}
        assert log_dict["http"] == {"status_code": 200}
        assert "session" not in log_dict
        assert ctx.get_namespace("missing") == {}

    def test_to_log_dict_without_namespaces(self):
        ctx = LoggingContext(operation="check_item", probe={"content": "channel:7"})

        log_dict = ctx.to_log_dict(include_namespaces=False)

        assert set(log_dict) == {"request_id", "span_id", "operation"}

    def test_get_duration(self):
        ctx = LoggingContext(operation="check_item")

        assert 0 <= ctx.get_duration() < 1.0


class TestSessionLogContext:
    """Test session field binding."""

    def teardown_method(self):
        clear_session_context()

    def test_binds_and_unbinds(self):
        with SessionLogContext(session_id="s-1", content_type="channel", content_id=7):
            update_session_progress(session_state="playing", source_index=1)
            bound = structlog.contextvars.get_contextvars()
            assert bound["session_id"] == "s-1"
            assert bound["session_state"] == "playing"

        bound = structlog.contextvars.get_contextvars()
        assert "session_id" not in bound
        assert "session_state" not in bound
