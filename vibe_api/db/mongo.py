# vibe_api/db/mongo.py

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from vibe_api.utils.logger import log_info


def create_mongo_client(uri: str) -> AsyncIOMotorClient:
    """Create the document store client; motor connects on first operation."""
    client = AsyncIOMotorClient(uri)
    log_info("Document store client created")
    return client


def get_database(client: AsyncIOMotorClient, name: str) -> AsyncIOMotorDatabase:
    return client[name]


def close_mongo_client(client: AsyncIOMotorClient) -> None:
    client.close()
