from votebot import settings  # load .env
from fastapi import FastAPI, Request, Header, HTTPException
from contextlib import asynccontextmanager
import asyncio

from votebot.commands.processor import CommandProcessor
from votebot.discussions.engine import ReconciliationEngine
from votebot.github.auth import get_credential_cache
from votebot.github.events import handle_event
from votebot.github.operations import RemoteOperations
from votebot.logger import get_logger
from votebot.releases.tracker import ReleaseTracker
from votebot.security.webhook_verify import verify_signature
from votebot.settings import QUEUE_CAPACITY, validate_github_settings
from votebot.store.associations import AssociationStore
from votebot.workers.dispatcher import Dispatcher
from votebot.workers.sync_scheduler import sync_loop
from votebot.workers.task_queue import TaskQueue, run_consumer


logger = get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Validate critical configuration early
    validate_github_settings()

    ops = RemoteOperations()
    engine = ReconciliationEngine(ops, AssociationStore())
    dispatcher = Dispatcher(
        engine=engine,
        commands=CommandProcessor(ops, engine),
        releases=ReleaseTracker(ops),
    )

    queue = TaskQueue(QUEUE_CAPACITY)
    stop = asyncio.Event()
    app.state.queue = queue

    await get_credential_cache().get_installation_token()

    consumer_task = asyncio.create_task(run_consumer(queue, dispatcher, stop))
    sync_task = asyncio.create_task(sync_loop(queue))
    logger.info("Work queue consumer and sync scheduler started")

    try:
        yield
    finally:
        # Stop producing sweeps first, then let the in-flight item finish
        sync_task.cancel()
        try:
            await sync_task
        except asyncio.CancelledError:
            pass

        stop.set()
        await consumer_task


app = FastAPI(lifespan=lifespan)


@app.post("/api/v1/github/webhook")
async def github_webhook(
    request: Request,
    x_hub_signature_256: str | None = Header(None),
    x_github_event: str | None = Header(None),
):
    body = await request.body()

    if not x_hub_signature_256:
        raise HTTPException(status_code=401, detail="Missing signature header")

    if not verify_signature(body, x_hub_signature_256):
        raise HTTPException(status_code=401, detail="Invalid signature")

    if not x_github_event:
        raise HTTPException(status_code=400, detail="Missing GitHub event header")

    payload = await request.json()
    logger.info("Received GitHub event: %s", x_github_event)

    queued = await handle_event(x_github_event, payload, request.app.state.queue)
    return {"status": "ok", "queued": queued}


# 👇 This makes `python -m votebot.main` work
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "votebot.main:app",
        host="0.0.0.0",
        port=8000,
        reload=False,
    )
