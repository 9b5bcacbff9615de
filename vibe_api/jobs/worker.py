# vibe_api/jobs/worker.py
# arq worker: background sandbox file snapshots
# run with: arq vibe_api.jobs.worker.WorkerSettings

from arq.connections import RedisSettings
from opentelemetry import trace

from vibe_api.clients.sandbox_client import SandboxClient
from vibe_api.config import get_settings
from vibe_api.db.mongo import close_mongo_client, create_mongo_client, get_database
from vibe_api.jobs.queue import SAVE_SESSION_FILES
from vibe_api.observability.logger import configure_logging
from vibe_api.observability.tracing import init_tracing
from vibe_api.repositories.session_files_repository import SessionFilesRepository
from vibe_api.services.file_collection_service import FileCollectionService

settings = get_settings()


async def save_session_files(ctx, session_id: str, sandbox_id: str) -> dict:
    """Snapshot the sandbox's files into the session's stored file set."""
    r = ctx["redis"]
    tracer = trace.get_tracer("worker")
    await r.incr("jobs:started")
    try:
        with tracer.start_as_current_span(SAVE_SESSION_FILES):
            saved = await ctx["file_collection"].save_session_files(session_id, sandbox_id)
        await r.incr("jobs:finished")
        return {"sessionId": session_id, "sandboxId": sandbox_id, "savedCount": saved}
    except Exception:
        await r.incr("jobs:failed")
        raise


save_session_files.job_keep_result = 3600  # keep result for 1 hour


async def startup(ctx):
    configure_logging(settings)
    if settings.TRACING_ENABLED:
        init_tracing(settings)
    mongo = create_mongo_client(settings.MONGODB_URI)
    ctx["mongo"] = mongo
    ctx["file_collection"] = FileCollectionService(
        SandboxClient(settings),
        SessionFilesRepository(get_database(mongo, settings.MONGODB_DB_NAME)),
    )


async def shutdown(ctx):
    close_mongo_client(ctx["mongo"])


class WorkerSettings:
    functions = [save_session_files]
    redis_settings = RedisSettings.from_dsn(settings.REDIS_URL)
    on_startup = startup
    on_shutdown = shutdown
    max_tries = 1
