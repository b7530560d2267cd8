from motor.motor_asyncio import AsyncIOMotorClient

from studio.config.settings import Settings


def connect(settings: Settings):
    client = AsyncIOMotorClient(settings.mongo_url)
    return client, client[settings.database_name]
