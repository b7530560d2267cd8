import copy
import logging
import uuid
from datetime import datetime
from typing import Dict

from bson import ObjectId
from bson.errors import InvalidId

from studio.utils.errors import TemplateNotFound

logger = logging.getLogger(__name__)

COLLECTION = "shared_templates"


# -----------------------------------------------------------
# Mongo document -> API record
# -----------------------------------------------------------
def serialize_record(doc: dict) -> dict:
    record = {k: v for k, v in doc.items() if k != "_id"}
    record["id"] = str(doc.get("_id", doc.get("id")))

    for key in ("created_at", "updated_at"):
        if isinstance(record.get(key), datetime):
            record[key] = record[key].isoformat()

    return record


def to_oid(value: str) -> ObjectId:
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        raise TemplateNotFound(value)


class TemplateStore:
    """
    Shared template records. Documents are opaque; updates replace the
    whole template_data (last writer wins).
    """

    async def create(self, template_data: dict) -> dict:
        raise NotImplementedError

    async def get(self, template_id: str) -> dict:
        raise NotImplementedError

    async def replace(self, template_id: str, template_data: dict) -> dict:
        raise NotImplementedError

    async def delete(self, template_id: str) -> None:
        raise NotImplementedError


class MongoTemplateStore(TemplateStore):
    def __init__(self, db):
        self.collection = db[COLLECTION]

    async def create(self, template_data: dict) -> dict:
        now = datetime.utcnow()
        doc = {
            "template_data": template_data,  # STORE AS IS
            "created_at": now,
            "updated_at": now,
        }
        result = await self.collection.insert_one(doc)
        doc["_id"] = result.inserted_id
        return serialize_record(doc)

    async def get(self, template_id: str) -> dict:
        doc = await self.collection.find_one({"_id": to_oid(template_id)})
        if not doc:
            raise TemplateNotFound(template_id)
        return serialize_record(doc)

    async def replace(self, template_id: str, template_data: dict) -> dict:
        oid = to_oid(template_id)
        result = await self.collection.update_one(
            {"_id": oid},
            {"$set": {"template_data": template_data, "updated_at": datetime.utcnow()}},
        )
        if result.matched_count == 0:
            raise TemplateNotFound(template_id)
        return await self.get(template_id)

    async def delete(self, template_id: str) -> None:
        await self.collection.delete_one({"_id": to_oid(template_id)})


class InMemoryTemplateStore(TemplateStore):
    """Process-local store for development and tests."""

    def __init__(self):
        self._docs: Dict[str, dict] = {}

    async def create(self, template_data: dict) -> dict:
        now = datetime.utcnow()
        template_id = uuid.uuid4().hex
        self._docs[template_id] = {
            "_id": template_id,
            "template_data": copy.deepcopy(template_data),
            "created_at": now,
            "updated_at": now,
        }
        return serialize_record(copy.deepcopy(self._docs[template_id]))

    async def get(self, template_id: str) -> dict:
        doc = self._docs.get(template_id)
        if doc is None:
            raise TemplateNotFound(template_id)
        return serialize_record(copy.deepcopy(doc))

    async def replace(self, template_id: str, template_data: dict) -> dict:
        doc = self._docs.get(template_id)
        if doc is None:
            raise TemplateNotFound(template_id)
        doc["template_data"] = copy.deepcopy(template_data)
        doc["updated_at"] = datetime.utcnow()
        return await self.get(template_id)

    async def delete(self, template_id: str) -> None:
        self._docs.pop(template_id, None)


def build_store(settings, db=None) -> TemplateStore:
    if settings.template_store == "memory":
        logger.info("Using in-memory template store")
        return InMemoryTemplateStore()
    if db is None:
        raise ValueError("Mongo template store needs a database handle")
    return MongoTemplateStore(db)
