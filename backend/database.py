from motor.motor_asyncio import AsyncIOMotorClient
from dotenv import load_dotenv
import os
import logging
from pathlib import Path
from contextlib import asynccontextmanager

ROOT_DIR = Path(__file__).parent
load_dotenv(ROOT_DIR / '.env')

logger = logging.getLogger(__name__)

class Database:
    client: AsyncIOMotorClient = None
    db = None

    async def connect(self):
        try:
            mongo_url = os.environ['MONGO_URL']
            self.client = AsyncIOMotorClient(mongo_url)
            self.db = self.client[os.environ['DB_NAME']]
            # Verify connection
            await self.db.command("ping")
            logger.info(f"Connected to MongoDB: {os.environ['DB_NAME']}")

            await self._create_indexes()
        except Exception as e:
            logger.error(f"Failed to connect to MongoDB: {e}")
            raise

    async def close(self):
        if self.client:
            self.client.close()
            logger.info("MongoDB connection closed")

    def get_db(self):
        return self.db

    @asynccontextmanager
    async def transaction(self):
        """Multi-document transaction scope. Yields the session to pass to each write.

        Leaving the block normally commits; an exception aborts every write made
        with the session. Requires MongoDB running as a replica set.
        """
        async with await self.client.start_session() as session:
            async with session.start_transaction():
                yield session

    async def _create_indexes(self):
        """Create MongoDB indexes for ownership lookups and webhook reconciliation."""
        try:
            await self.db.users.create_index("user_id", unique=True)
            await self.db.users.create_index("email", unique=True)
            await self.db.users.create_index(
                "external_id", unique=True,
                partialFilterExpression={"external_id": {"$type": "string"}},
            )

            await self.db.project_forms.create_index("project_id", unique=True)
            await self.db.project_forms.create_index([("user_id", 1), ("created_at", -1)])
            await self.db.project_forms.create_index([("status", 1), ("created_at", -1)])

            await self.db.payments.create_index("payment_id", unique=True)
            await self.db.payments.create_index("project_form_id")
            await self.db.payments.create_index("payment_intent_id", sparse=True)
            await self.db.payments.create_index(
                "stripe_session_id", unique=True,
                partialFilterExpression={"stripe_session_id": {"$type": "string"}},
            )

            # Webhook redelivery - an event_id is processed at most once
            await self.db.payment_events.create_index("event_id", unique=True)

            await self.db.audit_logs.create_index([("resource_type", 1), ("resource_id", 1), ("timestamp", -1)])
            await self.db.audit_logs.create_index("action")
            logger.info("MongoDB indexes created/verified")
        except Exception as e:
            # Indexes may already exist, log but don't fail
            logger.warning(f"Index creation note: {e}")

# Global database instance
database = Database()

@asynccontextmanager
async def get_db_context():
    """Context manager for standalone scripts to access the database.

    Usage in scripts:
        async with get_db_context() as db:
            await db.users.find_one(...)
    """
    client = None
    try:
        mongo_url = os.environ['MONGO_URL']
        db_name = os.environ['DB_NAME']
        client = AsyncIOMotorClient(mongo_url)
        db = client[db_name]
        await db.command("ping")
        logger.info(f"Script connected to MongoDB: {db_name}")
        yield db
    finally:
        if client:
            client.close()
            logger.info("Script MongoDB connection closed")


def get_database():
    """FastAPI dependency: the connected database handle."""
    return database.get_db()


def get_transaction_factory():
    """FastAPI dependency: factory for transaction scopes (see Database.transaction)."""
    return database.transaction
