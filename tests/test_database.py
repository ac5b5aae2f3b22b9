import pytest
from bson import ObjectId
from mongomock_motor import AsyncMongoMockClient

from mockinterview.database import DESCENDING, DocumentStore


@pytest.fixture
def document_store():
    return DocumentStore(AsyncMongoMockClient()["mock_interviews"])


async def test_create_and_get(document_store):
    doc_id = await document_store.create("interviews", {"role": "Dev", "userId": "u1"})
    assert ObjectId.is_valid(doc_id)
    doc = await document_store.get("interviews", doc_id)
    assert doc["role"] == "Dev"
    assert await document_store.get("interviews", str(ObjectId())) is None


async def test_set_creates_then_overwrites(document_store):
    doc_id = str(ObjectId())
    assert await document_store.set("feedback", doc_id, {"totalScore": 40}) == doc_id
    await document_store.set("feedback", doc_id, {"totalScore": 80})
    doc = await document_store.get("feedback", doc_id)
    assert doc["totalScore"] == 80
    assert len(await document_store.query("feedback", {})) == 1


async def test_query_filters_sort_and_limit(document_store):
    for n, user in enumerate(["a", "b", "b", "c"]):
        await document_store.create("interviews", {"userId": user, "finalized": True, "createdAt": n})
    docs = await document_store.query(
        "interviews",
        {"finalized": True, "userId": {"$ne": "a"}},
        order_by=("createdAt", DESCENDING),
        limit=2
    )
    assert [d["createdAt"] for d in docs] == [3, 2]


async def test_update(document_store):
    doc_id = await document_store.create("interviews", {"finalized": False})
    assert await document_store.update("interviews", doc_id, {"finalized": True}) is True
    assert (await document_store.get("interviews", doc_id))["finalized"] is True
    assert await document_store.update("interviews", str(ObjectId()), {"finalized": True}) is False
