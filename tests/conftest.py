# tests/conftest.py
# Shared fixtures: in-memory fakes for every external system and an app wired to them.
# Log files go to a temp dir; vibe_api.utils.logger creates them at import time.

import os
import tempfile

os.environ.setdefault("LOGS_PATH", tempfile.mkdtemp(prefix="vibe-api-logs-"))

import pytest  # noqa: E402
from redis.exceptions import WatchError  # noqa: E402


# ---------- Key-value store ----------

class FakePipeline:
    """Just enough of redis-py's transactional pipeline for WATCH/GET/MULTI/SET/EXEC."""

    def __init__(self, redis: "FakeRedis"):
        self._redis = redis
        self._queued: list[tuple[str, str]] = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        self._queued.clear()
        return False

    async def watch(self, *keys):
        return True

    async def unwatch(self):
        return True

    async def get(self, key):
        return self._redis.strings.get(key)

    def multi(self):
        self._queued.clear()

    def set(self, key, value):
        self._queued.append((key, value))
        return self

    async def execute(self):
        if self._redis.conflicts > 0:
            self._redis.conflicts -= 1
            self._redis.exec_attempts += 1
            raise WatchError("Watched variable changed.")
        self._redis.exec_attempts += 1
        for key, value in self._queued:
            self._redis.strings[key] = value
        return [True] * len(self._queued)


class FakeRedis:
    """In-memory stand-in for redis.asyncio.Redis with decode_responses=True."""

    def __init__(self):
        self.strings: dict[str, str] = {}
        self.sets: dict[str, set] = {}
        self.hashes: dict[str, dict] = {}
        self.ttls: dict[str, int] = {}
        # number of upcoming EXEC calls that abort as if a watched key changed
        self.conflicts = 0
        self.exec_attempts = 0
        self.counters: dict[str, int] = {}

    async def ping(self):
        return True

    async def incr(self, key):
        self.counters[key] = self.counters.get(key, 0) + 1
        return self.counters[key]

    async def get(self, key):
        return self.strings.get(key)

    async def set(self, key, value):
        self.strings[key] = value
        return True

    async def setex(self, key, ttl, value):
        self.strings[key] = value
        self.ttls[key] = ttl
        return True

    async def delete(self, *keys):
        removed = 0
        for key in keys:
            for store in (self.strings, self.sets, self.hashes):
                if key in store:
                    del store[key]
                    removed += 1
        return removed

    async def sismember(self, key, member):
        return member in self.sets.get(key, set())

    async def smembers(self, key):
        return set(self.sets.get(key, set()))

    async def sadd(self, key, *members):
        bucket = self.sets.setdefault(key, set())
        before = len(bucket)
        bucket.update(members)
        return len(bucket) - before

    async def srem(self, key, *members):
        bucket = self.sets.get(key, set())
        removed = len(bucket & set(members))
        bucket.difference_update(members)
        return removed

    async def hset(self, key, field, value):
        self.hashes.setdefault(key, {})[field] = value
        return 1

    async def hdel(self, key, *fields):
        bucket = self.hashes.get(key, {})
        return sum(1 for f in fields if bucket.pop(f, None) is not None)

    async def hgetall(self, key):
        return dict(self.hashes.get(key, {}))

    async def expire(self, key, ttl):
        self.ttls[key] = ttl
        return True

    def pipeline(self, transaction=True):
        return FakePipeline(self)


# ---------- Sandbox provider ----------

class FakeSandboxHandle:
    """Records commands; ``responder(cmd, args)`` decides each CommandResult."""

    def __init__(self, sandbox_id, files=None, responder=None):
        self.sandbox_id = sandbox_id
        self.files = dict(files or {})
        self.commands: list[tuple[str, list[str]]] = []
        self.detached: list[tuple[str, list[str]]] = []
        self.written: list[dict] = []
        self.responder = responder
        self.next_cmd_id = "cmd_123"

    async def run(self, cmd, args):
        from vibe_api.clients.sandbox_client import CommandResult

        self.commands.append((cmd, list(args)))
        if self.responder is not None:
            return self.responder(cmd, list(args))
        if cmd == "find":
            return CommandResult(0, "\n".join(f"./{p}" for p in self.files), "")
        return CommandResult(0, "", "")

    async def run_detached(self, cmd, args):
        from vibe_api.clients.sandbox_client import DetachedCommand

        self.detached.append((cmd, list(args)))
        return DetachedCommand(cmd_id=self.next_cmd_id)

    async def read_file(self, path):
        if path not in self.files:
            raise FileNotFoundError(path)
        return self.files[path]

    async def write_files(self, files):
        self.written.extend(files)


class FakeSandboxClient:

    def __init__(self):
        self.handles: dict[str, FakeSandboxHandle] = {}
        self.lookups: list[str] = []
        self.created: list[tuple[list[int], int]] = []
        self.fail_create = False

    def add(self, sandbox_id, **kwargs) -> FakeSandboxHandle:
        handle = FakeSandboxHandle(sandbox_id, **kwargs)
        self.handles[sandbox_id] = handle
        return handle

    async def get(self, sandbox_id):
        self.lookups.append(sandbox_id)
        if sandbox_id not in self.handles:
            raise LookupError(f"sandbox {sandbox_id} not found")
        return self.handles[sandbox_id]

    async def create(self, ports, timeout_ms):
        if self.fail_create:
            raise RuntimeError("provider quota exceeded")
        self.created.append((list(ports), timeout_ms))
        return self.add(f"sbx_new_{len(self.created)}")


# ---------- Billing ----------

class FakePayments:

    def __init__(self):
        from vibe_api.clients.payment_client import PurchaseResult

        self.customers: dict[str, str] = {}
        # emails that only become searchable on the second search
        self.late_customers: dict[str, str] = {}
        self.credits = 42.5
        self.payment_methods = True
        self.purchase_result = PurchaseResult(success=True)
        self.intent_status = "succeeded"
        self.setup_secret = "seti_secret_1"
        self.fail_create = False
        self.calls: list[tuple] = []

    async def search_customer(self, email):
        self.calls.append(("search_customer", email))
        if email in self.customers:
            return self.customers[email]
        if email in self.late_customers:
            self.customers[email] = self.late_customers.pop(email)
        return None

    async def create_customer(self, email):
        self.calls.append(("create_customer", email))
        if self.fail_create:
            raise RuntimeError("processor down")
        customer_id = f"cus_{len(self.customers) + 1}"
        self.customers[email] = customer_id
        return customer_id

    async def has_payment_methods(self, customer_id):
        self.calls.append(("has_payment_methods", customer_id))
        return self.payment_methods

    async def get_credits(self, customer_id):
        self.calls.append(("get_credits", customer_id))
        return self.credits

    async def purchase_credits(self, customer_id, amount):
        self.calls.append(("purchase_credits", customer_id, amount))
        return self.purchase_result

    async def payment_intent_succeeded(self, payment_intent_id):
        self.calls.append(("payment_intent_succeeded", payment_intent_id))
        return self.intent_status == "succeeded"

    async def create_setup_intent(self, customer_id):
        self.calls.append(("create_setup_intent", customer_id))
        return self.setup_secret


class FakeTelemetry:

    def __init__(self):
        self.events: list[tuple] = []

    async def track(self, tag, status=None, user_id=""):
        self.events.append((tag, status))


class FakeDns:
    """domain -> list of A records, or a DnsLookupError code."""

    def __init__(self, records=None):
        self.records = dict(records or {})

    async def resolve_a(self, domain):
        from vibe_api.clients.dns_client import DnsLookupError

        value = self.records.get(domain, "ENOTFOUND")
        if isinstance(value, str):
            raise DnsLookupError(value)
        return list(value)


# ---------- Document store ----------

class FakeGalleryRepository:

    def __init__(self):
        self.apps: list[dict] = []

    def _matching(self, query):
        return [a for a in self.apps if all(a.get(k) == v for k, v in query.items())]

    async def count(self, query):
        return len(self._matching(query))

    async def find_page(self, query, skip, limit):
        ordered = sorted(self._matching(query), key=lambda a: a["createdAt"], reverse=True)
        return ordered[skip:skip + limit]

    async def find_by_app_url(self, app_url):
        for app in self.apps:
            if app.get("appUrl") == app_url:
                return {k: app[k] for k in ("_id", "title", "description", "category", "createdAt", "updatedAt") if k in app}
        return None

    async def insert(self, app):
        app_id = f"app_{len(self.apps) + 1}"
        self.apps.append({**app, "_id": app_id})
        return app_id


class FakeSessionFilesRepository:

    def __init__(self):
        self.docs: dict[str, list] = {}
        self.upserts = 0

    async def upsert(self, session_id, files):
        self.upserts += 1
        self.docs[session_id] = list(files)

    async def get_files(self, session_id):
        return list(self.docs.get(session_id, []))


class FakeJobQueue:

    def __init__(self):
        self.enqueued: list[tuple[str, str]] = []
        self.fail = False

    async def enqueue_save(self, session_id, sandbox_id):
        if self.fail:
            raise ConnectionError("queue unavailable")
        self.enqueued.append((session_id, sandbox_id))
        return f"job_{len(self.enqueued)}"

    async def status(self, task_id):
        return {"task_id": task_id, "status": "complete", "result": {"savedCount": 3}}


class Fakes:
    """Every fake the services are built from, reachable from tests."""

    def __init__(self):
        self.redis = FakeRedis()
        self.billing_redis = FakeRedis()
        self.sandboxes = FakeSandboxClient()
        self.payments = FakePayments()
        self.telemetry = FakeTelemetry()
        self.dns = FakeDns()
        self.gallery = FakeGalleryRepository()
        self.session_files = FakeSessionFilesRepository()
        self.jobs = FakeJobQueue()


TEST_SECRET = "test-secret"
EXPECTED_IP = "76.76.21.21"


@pytest.fixture
def fakes() -> Fakes:
    return Fakes()


@pytest.fixture
def services(fakes):
    from vibe_api.container import AppServices
    from vibe_api.repositories.chat_session_repository import ChatSessionRepository
    from vibe_api.repositories.domain_repository import DomainRepository
    from vibe_api.services.auth_service import AuthService
    from vibe_api.services.chat_session_service import ChatSessionService
    from vibe_api.services.credits_service import CreditsService
    from vibe_api.services.domain_service import DomainService
    from vibe_api.services.file_collection_service import FileCollectionService
    from vibe_api.services.gallery_service import GalleryService
    from vibe_api.services.sandbox_service import SandboxService
    from vibe_api.services.terminal_service import TerminalService
    from vibe_api.utils.cache import CustomerIdCache

    chat_sessions = ChatSessionService(ChatSessionRepository(fakes.redis), snapshot_queue=fakes.jobs)
    files = FileCollectionService(fakes.sandboxes, fakes.session_files)

    return AppServices(
        auth=AuthService(TEST_SECRET, "session-token"),
        chat_sessions=chat_sessions,
        terminals=TerminalService(fakes.sandboxes),
        sandboxes=SandboxService(fakes.sandboxes, sessions=chat_sessions, files=files),
        files=files,
        domains=DomainService(fakes.dns, DomainRepository(fakes.billing_redis), EXPECTED_IP),
        credits=CreditsService(
            fakes.payments,
            CustomerIdCache(fakes.billing_redis),
            fakes.telemetry,
            recheck_delay_seconds=0,
        ),
        gallery=GalleryService(fakes.gallery),
        jobs=fakes.jobs,
        health_checks=[("redis", fakes.redis.ping)],
    )


@pytest.fixture
def settings():
    from vibe_api.config import Settings

    return Settings(
        AUTH_SECRET=TEST_SECRET,
        TRACING_ENABLED=False,
        API_RATE_LIMIT=10_000,
        BILLING_RATE_LIMIT=10_000,
        GENERAL_RATE_LIMIT=10_000,
    )


@pytest.fixture
def client(settings, services):
    from fastapi.testclient import TestClient

    from vibe_api.main_fastapi import create_app

    app = create_app(settings=settings, services=services)
    with TestClient(app) as c:
        yield c


@pytest.fixture
def auth_headers():
    from vibe_api.services.auth_service import mint_session_token

    def _headers(email="alice@example.com", name="Alice", picture=None):
        token = mint_session_token(secret=TEST_SECRET, email=email, name=name, picture=picture)
        return {"Authorization": f"Bearer {token}"}

    return _headers
