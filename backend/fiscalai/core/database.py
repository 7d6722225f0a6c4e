# fiscalai/core/database.py

from typing import Optional, cast

import motor.motor_asyncio
import redis.asyncio as redis
from loguru import logger
from motor.motor_asyncio import AsyncIOMotorDatabase

from fiscalai.core.config import Settings
from fiscalai.core.errors import UpstreamServerError

DEFAULT_DB_NAME = "fiscalai"


def parse_db_name(uri: str) -> str:
    """Extrai o nome do banco da URI, com fallback para o default."""
    db_name = uri.split("/")[-1].split("?")[0]
    if not db_name or "@" in db_name or ":" in db_name or len(db_name) > 63:
        return DEFAULT_DB_NAME
    return db_name


# --- MongoDB ---
class MongoManager:
    client: Optional[motor.motor_asyncio.AsyncIOMotorClient] = None
    db: Optional[AsyncIOMotorDatabase] = None

    async def connect(self, settings: Settings):
        """Conecta e valida com ping; falha de conexão impede o startup."""
        if self.client is not None and self.db is not None:
            logger.info("MongoDB connection already established.")
            return

        uri = settings.MONGODB_URI
        logger.info(f"Connecting to MongoDB at {uri.split('@')[-1].split('/')[0]}...")  # sem credenciais
        try:
            self.client = motor.motor_asyncio.AsyncIOMotorClient(
                uri, uuidRepresentation="standard", serverSelectionTimeoutMS=5000
            )
            await self.client.admin.command("ping")
        except Exception as e:
            logger.critical(f"FATAL: Failed to connect to MongoDB: {e}")
            self.client = None
            raise ConnectionError(f"MongoDB connection failed: {e}") from e
        self.db = self.client[parse_db_name(uri)]
        logger.success(f"MongoDB connection successful to database '{self.db.name}'.")

    async def disconnect(self):
        if self.client:
            self.client.close()
            logger.info("MongoDB connection closed.")
        self.client = None
        self.db = None

    def get_db(self) -> AsyncIOMotorDatabase:
        if self.db is None:
            raise RuntimeError("MongoDB database is not connected.")
        return cast(AsyncIOMotorDatabase, self.db)


mongo_manager = MongoManager()


# --- Redis (cache compartilhado de tokens, opcional) ---
class RedisManager:
    client: Optional[redis.Redis] = None

    async def connect(self, url: str):
        if self.client:
            return
        logger.info("Connecting to Redis...")
        try:
            client = redis.Redis.from_url(url, decode_responses=True, socket_connect_timeout=5)
            await client.ping()
        except (redis.RedisError, OSError) as e:
            logger.error(f"Could not connect to Redis: {e}. Falling back to in-process token cache.")
            return
        self.client = client
        logger.success("Redis connection successful.")

    async def disconnect(self):
        if self.client:
            await self.client.aclose()
            logger.info("Redis connection closed.")
        self.client = None

    def get_client(self) -> Optional[redis.Redis]:
        return self.client


redis_manager = RedisManager()


# --- Dependências FastAPI ---
async def get_database() -> AsyncIOMotorDatabase:
    try:
        return mongo_manager.get_db()
    except RuntimeError as e:
        logger.critical("Request needs MongoDB but it is not connected.")
        raise UpstreamServerError(
            "Banco de dados indisponível", code="DATABASE_UNAVAILABLE", http_status=503
        ) from e
