"""
Testes para app/activitypub/transport.py

Cobre:
- actor_descriptor: campos do actor apkit, shared inbox, fallback do username
- actor_descriptor: actor sem id ou inbox → InvalidAccount
- ApkitTransport.dereference_actor: sucesso, actor removido (404/410), erro do servidor e de rede
- ApkitTransport.send: enfileira uma única entrega sem inboxes repetidos
"""

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from app.activitypub.transport import ApkitTransport, actor_descriptor
from app.errors import InvalidAccount, TransportError
from app.services import queue as queue_module

REMOTE = "https://mastodon.social/users/fulano"


def _remote_actor(url: str = REMOTE, shared_inbox: str | None = "https://mastodon.social/inbox"):
    actor = MagicMock()
    actor.id = url
    actor.preferred_username = "fulano"
    actor.inbox = f"{url}/inbox"
    actor.outbox = f"{url}/outbox"
    actor.endpoints = SimpleNamespace(shared_inbox=shared_inbox) if shared_inbox else None
    actor.public_key = SimpleNamespace(public_key_pem="PEM")
    return actor


def _mock_fetch_client(status=200, result=None, get_side_effect=None):
    """Mock de ActivityPubClient cujo `get` é usado como `async with`."""
    mock_response = AsyncMock()
    mock_response.__aenter__ = AsyncMock(return_value=mock_response)
    mock_response.__aexit__ = AsyncMock(return_value=False)
    mock_response.status = status
    mock_response.ok = status < 400
    mock_response.parse = AsyncMock(return_value=result)

    mock_instance = MagicMock()
    mock_instance.get = MagicMock(return_value=mock_response, side_effect=get_side_effect)
    mock_client = AsyncMock()
    mock_client.__aenter__ = AsyncMock(return_value=mock_instance)
    mock_client.__aexit__ = AsyncMock(return_value=False)
    return mock_client


# ---------------------------------------------------------------------------
# actor_descriptor
# ---------------------------------------------------------------------------


def test_actor_descriptor_reads_apkit_fields():
    descriptor = actor_descriptor(_remote_actor())

    assert descriptor.uri == REMOTE
    assert descriptor.username == "fulano"
    assert descriptor.inbox == f"{REMOTE}/inbox"
    assert descriptor.outbox == f"{REMOTE}/outbox"
    assert descriptor.shared_inbox == "https://mastodon.social/inbox"
    assert descriptor.public_key == "PEM"
    assert descriptor.host == "mastodon.social"


def test_actor_descriptor_without_shared_inbox():
    assert actor_descriptor(_remote_actor(shared_inbox=None)).shared_inbox is None


def test_actor_descriptor_username_falls_back_to_url():
    actor = _remote_actor()
    actor.preferred_username = None

    assert actor_descriptor(actor).username == "fulano"


def test_actor_descriptor_without_inbox_is_invalid():
    actor = _remote_actor()
    actor.inbox = None

    with pytest.raises(InvalidAccount):
        actor_descriptor(actor)


# ---------------------------------------------------------------------------
# dereference_actor
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_dereference_actor_returns_descriptor():
    client = _mock_fetch_client(result=_remote_actor())

    with patch("app.activitypub.transport.ActivityPubClient", return_value=client):
        descriptor = await ApkitTransport().dereference_actor(REMOTE)

    assert descriptor.uri == REMOTE


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [404, 410])
async def test_dereference_gone_actor_returns_none(status):
    client = _mock_fetch_client(status=status)

    with patch("app.activitypub.transport.ActivityPubClient", return_value=client):
        assert await ApkitTransport().dereference_actor(REMOTE) is None


@pytest.mark.asyncio
async def test_dereference_server_error_raises_transport_error():
    client = _mock_fetch_client(status=503)

    with patch("app.activitypub.transport.ActivityPubClient", return_value=client):
        with pytest.raises(TransportError):
            await ApkitTransport().dereference_actor(REMOTE)


@pytest.mark.asyncio
async def test_dereference_network_error_raises_transport_error():
    client = _mock_fetch_client(get_side_effect=OSError("timeout"))

    with patch("app.activitypub.transport.ActivityPubClient", return_value=client):
        with pytest.raises(TransportError):
            await ApkitTransport().dereference_actor(REMOTE)


@pytest.mark.asyncio
async def test_dereference_actor_deleted_on_real_server():
    """Servidor HTTP local que responde 410 para a conta removida."""
    from aiohttp import web
    from aiohttp.test_utils import TestServer

    async def gone(request):
        return web.json_response({"error": "Gone"}, status=410)

    server_app = web.Application()
    server_app.router.add_get("/users/gone", gone)

    async with TestServer(server_app) as server:
        url = str(server.make_url("/users/gone"))
        assert await ApkitTransport().dereference_actor(url) is None


# ---------------------------------------------------------------------------
# send
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_send_enqueues_delivery_with_unique_inboxes():
    test_queue: asyncio.Queue = asyncio.Queue()
    activity = {"type": "Follow", "id": "https://bot.test/activity/1"}

    with patch.object(queue_module, "delivery_queue", test_queue):
        await ApkitTransport().send(
            activity,
            ["https://a.example/inbox", "https://b.example/inbox", "https://a.example/inbox"],
        )

    delivery = test_queue.get_nowait()
    assert delivery.activity is activity
    assert delivery.inboxes == ["https://a.example/inbox", "https://b.example/inbox"]
    assert test_queue.empty()
