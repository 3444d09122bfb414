import motor.motor_asyncio
from pymongo import ASCENDING
from pymongo.errors import PyMongoError
import os
from dotenv import load_dotenv

from cvmatch.utils.exceptions import DatabaseError
from cvmatch.utils.logging_config import get_logger

logger = get_logger(__name__)

load_dotenv()

MONGO_DETAILS = os.getenv("MONGO_DETAILS", "mongodb://localhost:27017")
DB_NAME = os.getenv("DB_NAME", "cvmatch_db")

logger.info(f"Initializing MongoDB connection to database: {DB_NAME}")

# Motor connects lazily, so this does not touch the network at import time
client = motor.motor_asyncio.AsyncIOMotorClient(MONGO_DETAILS)
db = client[DB_NAME]

# Collections
users_coll = db["users"]
cvs_coll = db["cvs"]
projects_coll = db["projects"]
project_cvs_coll = db["project_cvs"]

INDEXES = [
    (users_coll, [("user_id", ASCENDING)], {"unique": True}),
    (users_coll, [("email", ASCENDING)], {"unique": True}),
    (users_coll, [("role", ASCENDING)], {}),
    (cvs_coll, [("cv_id", ASCENDING)], {"unique": True}),
    (cvs_coll, [("user_id", ASCENDING)], {}),
    (projects_coll, [("project_id", ASCENDING)], {"unique": True}),
    (projects_coll, [("created_by_user_id", ASCENDING)], {}),
    (project_cvs_coll, [("project_cv_id", ASCENDING)], {"unique": True}),
    (project_cvs_coll, [("project_id", ASCENDING), ("created_at", ASCENDING)], {}),
]


async def init_indexes():
    """Ensure the indexes the services query by; raises DatabaseError listing any that failed."""
    logger.info("Starting database index initialization")

    failed = []
    for coll, keys, options in INDEXES:
        label = f"{coll.name}.{'+'.join(k for k, _ in keys)}"
        try:
            await coll.create_index(keys, **options)
            logger.debug(f"Ensured index on {label}")
        except PyMongoError as e:
            if "already exists" in str(e).lower():
                logger.debug(f"Index on {label} already exists")
                continue
            logger.warning(f"Could not create index on {label}: {e}")
            failed.append(label)

    if failed:
        raise DatabaseError(
            f"Failed to create {len(failed)} of {len(INDEXES)} indexes",
            operation="create_index",
            details={"indexes": failed},
        )
    logger.info("Database index initialization completed")


def to_dict(doc):
    """Strip Mongo's ObjectId so the document can be fed to a pydantic model."""
    if not doc:
        return None
    doc = dict(doc)
    doc.pop("_id", None)
    return doc
