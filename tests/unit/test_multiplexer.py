from __future__ import annotations

from datetime import datetime, timezone

import pytest

from live_chat.domain.entities.conversation import ConversationSummary
from live_chat.domain.value_objects.enums import ConnectionState, SenderType
from live_chat.infrastructure.ws.manager import ConnectionManager
from live_chat.services.multiplexer import ConversationMultiplexer
from tests.conftest import message_frame, settle, typing_frame

ENDPOINT = "ws://chat.test/ws/chat"


@pytest.fixture
def manager(transport, scheduler) -> ConnectionManager:
    return ConnectionManager(transport, auto_reconnect=True, reconnect_delay=5.0, scheduler=scheduler)


@pytest.fixture
def multiplexer(manager, scheduler) -> ConversationMultiplexer:
    mux = ConversationMultiplexer(manager, scheduler=scheduler, typing_idle_seconds=2.0)
    mux.attach()
    return mux


def _summary(client_id: str, unread: int = 0) -> ConversationSummary:
    return ConversationSummary(
        client_id=client_id,
        client_name=f"Client {client_id}",
        client_email=None,
        client_phone=None,
        last_message_at=datetime(2026, 1, 5, tzinfo=timezone.utc),
        unread_count=unread,
    )


@pytest.mark.asyncio
async def test_customer_message_routes_to_its_store_and_counts_unread(transport, manager, multiplexer):
    await manager.open(ENDPOINT, "t")

    transport.current.feed(message_frame(message_id="1", text="Olá", client_id="42"))
    await settle()

    store = multiplexer.store("42")
    assert [m.text for m in store.messages] == ["Olá"]
    assert store.unread_count == 1

    store.mark_read()
    assert store.unread_count == 0
    await manager.close()


@pytest.mark.asyncio
async def test_frames_are_partitioned_by_client_id(transport, manager, multiplexer):
    await manager.open(ENDPOINT, "t")

    transport.current.feed(message_frame(message_id="1", client_id="42"))
    transport.current.feed(message_frame(message_id="2", client_id="43"))
    transport.current.feed(message_frame(message_id="3", client_id="42"))
    await settle()

    assert [m.id for m in multiplexer.store("42").messages] == ["1", "3"]
    assert [m.id for m in multiplexer.store("43").messages] == ["2"]
    await manager.close()


@pytest.mark.asyncio
async def test_recency_index_moves_active_conversation_first(transport, manager, multiplexer):
    await manager.open(ENDPOINT, "t")
    feed = transport.current.feed

    feed(message_frame(message_id="1", client_id="a"))
    feed(message_frame(message_id="2", client_id="b"))
    feed(message_frame(message_id="3", client_id="c"))
    await settle()
    assert [s.conversation_key for s in multiplexer.recent()] == ["c", "b", "a"]

    feed(message_frame(message_id="4", client_id="a"))
    await settle()
    assert [s.conversation_key for s in multiplexer.recent()] == ["a", "c", "b"]

    # a replayed message is not new activity
    feed(message_frame(message_id="2", client_id="b"))
    await settle()
    assert [s.conversation_key for s in multiplexer.recent()] == ["a", "c", "b"]
    await manager.close()


@pytest.mark.asyncio
async def test_typing_frames_set_remote_flag_until_next_message(transport, manager, multiplexer):
    await manager.open(ENDPOINT, "t")

    transport.current.feed(typing_frame(True, client_id="42"))
    await settle()
    assert multiplexer.store("42").remote_typing is True

    transport.current.feed(message_frame(message_id="1", client_id="42"))
    await settle()
    assert multiplexer.store("42").remote_typing is False
    await manager.close()


@pytest.mark.asyncio
async def test_frames_without_client_id_are_ignored(transport, manager, multiplexer):
    await manager.open(ENDPOINT, "t")

    transport.current.feed(message_frame(message_id="1", client_id=None))
    transport.current.feed(typing_frame(True, client_id=None))
    transport.current.feed('{"type": "connected", "userId": 1, "role": "admin"}')
    await settle()

    assert len(multiplexer) == 0
    assert manager.state is ConnectionState.OPEN
    await manager.close()


@pytest.mark.asyncio
async def test_send_wraps_text_with_conversation_key(transport, manager, multiplexer):
    await manager.open(ENDPOINT, "t")

    assert multiplexer.send("42", "  Bom dia  ") is True
    assert multiplexer.send("42", "   ") is False
    await settle()

    assert transport.current.sent_frames == [
        {"type": "chat_message", "clientId": "42", "text": "Bom dia"},
        {"type": "typing", "clientId": "42", "isTyping": False},
    ]
    await manager.close()


@pytest.mark.asyncio
async def test_send_while_disconnected_is_dropped(manager, multiplexer):
    assert multiplexer.send("42", "hello") is False


@pytest.mark.asyncio
async def test_operator_typing_goes_through_shared_connection(transport, manager, multiplexer, scheduler):
    await manager.open(ENDPOINT, "t")

    multiplexer.typing("42").on_input()
    scheduler.advance(2.0)
    await settle()

    assert transport.current.sent_frames == [
        {"type": "typing", "clientId": "42", "isTyping": True},
        {"type": "typing", "clientId": "42", "isTyping": False},
    ]
    await manager.close()


@pytest.mark.asyncio
async def test_close_view_keeps_shared_connection_open(transport, manager, multiplexer, scheduler):
    await manager.open(ENDPOINT, "t")
    multiplexer.focus("42")
    multiplexer.typing("42").on_input()

    multiplexer.close_view("42")
    scheduler.advance(5)
    await settle()

    assert manager.state is ConnectionState.OPEN
    assert multiplexer.focused_key is None
    assert multiplexer.store("42").focused is False
    assert [f["isTyping"] for f in transport.current.sent_frames] == [True]
    await manager.close()


@pytest.mark.asyncio
async def test_focused_conversation_does_not_accumulate_unread(transport, manager, multiplexer):
    await manager.open(ENDPOINT, "t")
    multiplexer.focus("42")
    multiplexer.focus("43")

    transport.current.feed(message_frame(message_id="1", client_id="42"))
    transport.current.feed(message_frame(message_id="2", client_id="43"))
    await settle()

    assert multiplexer.store("42").unread_count == 1
    assert multiplexer.store("43").unread_count == 0
    await manager.close()


@pytest.mark.asyncio
async def test_operator_echo_is_not_unread(transport, manager, multiplexer):
    await manager.open(ENDPOINT, "t")

    transport.current.feed(
        message_frame(message_id="9", client_id="42", sender_type=SenderType.OPERATOR, frame_type="message_sent"),
    )
    await settle()

    assert len(multiplexer.store("42")) == 1
    assert multiplexer.store("42").unread_count == 0
    await manager.close()


@pytest.mark.asyncio
async def test_no_duplicate_subscription_across_reconnects(transport, manager, multiplexer, scheduler):
    await manager.open(ENDPOINT, "t")
    transport.current.drop()
    await settle()
    multiplexer.attach()
    scheduler.advance(5)
    await settle()
    assert manager.state is ConnectionState.OPEN

    transport.current.feed(message_frame(message_id="1", client_id="42"))
    await settle()

    assert manager.listener_count == 1
    assert multiplexer.store("42").unread_count == 1
    await manager.close()


def test_seed_orders_by_listing_and_copies_unread(manager, multiplexer):
    multiplexer.seed([_summary("b", unread=2), _summary("a"), _summary("c", unread=1)])

    assert [s.conversation_key for s in multiplexer.recent()] == ["b", "a", "c"]
    assert multiplexer.store("b").unread_count == 2
    assert multiplexer.store("a").last_message_at is not None


def test_detach_unsubscribes(manager, multiplexer):
    multiplexer.detach()
    assert manager.listener_count == 0
