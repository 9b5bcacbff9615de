# tests/integration/conftest.py
# Pytest fixtures to start Redis & MongoDB via TestContainers.
# - Provides connection URLs via fixtures for the repositories under test.
# - Containers stop when the test session ends.
# - Without a Docker daemon the whole directory is skipped.

from typing import Iterator

import pytest  # type: ignore[import-not-found]
import pytest_asyncio  # type: ignore[import-not-found]
from testcontainers.mongodb import MongoDbContainer  # type: ignore
from testcontainers.redis import RedisContainer  # type: ignore


def _docker_available() -> bool:
    try:
        import docker  # type: ignore

        docker.from_env().ping()
        return True
    except Exception:
        return False


def pytest_collection_modifyitems(config, items):
    if _docker_available():
        return
    skip = pytest.mark.skip(reason="Docker is not available for testcontainers")
    for item in items:
        if "integration" in item.nodeid:
            item.add_marker(skip)


@pytest.fixture(scope="session")
def redis_url() -> Iterator[str]:
    with RedisContainer("redis:7-alpine") as rc:
        host = rc.get_container_host_ip()
        port = rc.get_exposed_port(6379)
        yield f"redis://{host}:{port}/0"


@pytest.fixture(scope="session")
def mongo_uri() -> Iterator[str]:
    with MongoDbContainer("mongo:7") as mc:
        yield mc.get_connection_url()


@pytest_asyncio.fixture
async def kv(redis_url):
    from vibe_api.db.kv import close_kv_client, create_kv_client

    client = create_kv_client(redis_url)
    yield client
    await client.flushdb()
    await close_kv_client(client)


@pytest_asyncio.fixture
async def database(mongo_uri):
    from vibe_api.db.mongo import close_mongo_client, create_mongo_client, get_database

    client = create_mongo_client(mongo_uri)
    db = get_database(client, "vibe-test")
    yield db
    await client.drop_database("vibe-test")
    close_mongo_client(client)
