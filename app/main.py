import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import Request, Response
from fastapi.responses import JSONResponse

from apkit.server.app import ActivityPubServer
from apkit.server.responses import ActivityResponse
from apkit.models import (
    Nodeinfo, NodeinfoSoftware,
    NodeinfoServices, NodeinfoUsage, NodeinfoUsageUsers,
)
from apkit.client import WebfingerResource, WebfingerResult, WebfingerLink

from app.config import settings
from app.database import async_session_factory
from app.activitypub.actor import build_actor, local_actor_url
from app.activitypub.dispatch import Dispatcher
from app.activitypub.handlers import register_handlers
from app.activitypub.transport import ApkitTransport
from app.storage.sql import SqlStorage

logging.basicConfig(level=logging.INFO)

storage = SqlStorage(async_session_factory)
dispatcher = Dispatcher(storage, ApkitTransport(), settings.domain, settings.tag)


@asynccontextmanager
async def lifespan(server):
    import app.database
    import app.services.bootstrap
    import workers.delivery_worker
    await app.database.init_db()
    await app.services.bootstrap.ensure_local_account(storage)
    worker_task = asyncio.create_task(workers.delivery_worker.run_worker())
    yield
    worker_task.cancel()


api = ActivityPubServer(lifespan=lifespan)
register_handlers(api, dispatcher)
api.inbox("/users/{identifier}/inbox")


@api.get("/users/{identifier}")
async def get_actor(identifier: str):
    if identifier == settings.username:
        return ActivityResponse(build_actor())
    return JSONResponse({"error": "Not found"}, status_code=404)


@api.webfinger()
async def webfinger(request: Request, acct: WebfingerResource) -> Response:
    if acct.username == settings.username and acct.host == settings.domain:
        link   = WebfingerLink(
            rel="self",
            type="application/activity+json",
            href=local_actor_url(),
        )
        result = WebfingerResult(subject=acct, links=[link])
        return JSONResponse(result.to_json(), media_type="application/jrd+json")
    return JSONResponse({"error": "Not found"}, status_code=404)


@api.nodeinfo("/nodeinfo/2.1", "2.1")
async def nodeinfo():
    return ActivityResponse(
        Nodeinfo(
            version="2.1",
            software=NodeinfoSoftware(name="fediscus", version="0.1.0"),
            protocols=["activitypub"],
            services=NodeinfoServices(inbound=[], outbound=[]),
            openRegistrations=False,
            usage=NodeinfoUsage(users=NodeinfoUsageUsers(total=1)),
            metadata={"tag": settings.tag},
        )
    )


@api.get("/health")
async def health():
    return {"status": "ok"}
