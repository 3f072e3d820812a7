import pytest

from arena.errors import ConflictError, InvalidRequest, NotFound
from arena.services.store import CHALLENGES, USERS


@pytest.mark.anyio
async def test_create_assigns_id_and_first_version(store):
    doc_id = await store.create(CHALLENGES, {"title": "Warmup", "status": "pending"})

    doc = await store.get(CHALLENGES, doc_id)
    assert doc is not None
    assert doc.data == {"title": "Warmup", "status": "pending"}
    assert doc.version == 1
    assert doc.created_at.tzinfo is not None


@pytest.mark.anyio
async def test_reserved_fields_are_not_stored_in_the_document(store):
    doc_id = await store.create(CHALLENGES, {"id": "spoofed", "version": 99, "title": "x"})

    doc = await store.get(CHALLENGES, doc_id)
    assert doc.id == doc_id
    assert doc.version == 1
    assert "id" not in doc.data and "version" not in doc.data


@pytest.mark.anyio
async def test_set_overwrites_under_a_known_id(store):
    await store.set(USERS, "github:1", {"uid": "github:1", "email": "a@example.com"})
    await store.set(USERS, "github:1", {"uid": "github:1", "email": "b@example.com"})

    doc = await store.get(USERS, "github:1")
    assert doc.data["email"] == "b@example.com"
    assert doc.version == 2


@pytest.mark.anyio
async def test_update_merges_top_level_fields_and_bumps_version(store):
    doc_id = await store.create(CHALLENGES, {"title": "A", "status": "pending"})

    version = await store.update(CHALLENGES, doc_id, {"status": "active"})

    doc = await store.get(CHALLENGES, doc_id)
    assert version == 2
    assert doc.data == {"title": "A", "status": "active"}
    assert doc.updated_at >= doc.created_at


@pytest.mark.anyio
async def test_stale_version_is_rejected(store):
    doc_id = await store.create(CHALLENGES, {"participants": []})
    await store.update(CHALLENGES, doc_id, {"participants": ["u1"]}, expected_version=1)

    with pytest.raises(ConflictError):
        await store.update(CHALLENGES, doc_id, {"participants": ["u2"]}, expected_version=1)

    doc = await store.get(CHALLENGES, doc_id)
    assert doc.data["participants"] == ["u1"]


@pytest.mark.anyio
async def test_update_missing_document_raises_not_found(store):
    with pytest.raises(NotFound):
        await store.update(CHALLENGES, "missing", {"title": "x"})


@pytest.mark.anyio
async def test_delete_removes_the_document(store):
    doc_id = await store.create(CHALLENGES, {"title": "gone"})
    await store.delete(CHALLENGES, doc_id)
    assert await store.get(CHALLENGES, doc_id) is None


@pytest.mark.anyio
async def test_query_filters_by_equality_and_scopes_by_collection(store):
    await store.create(CHALLENGES, {"type": "duel", "difficulty": "easy"})
    await store.create(CHALLENGES, {"type": "bounty", "difficulty": "easy"})
    await store.create(CHALLENGES, {"type": "duel", "difficulty": "hard"})
    await store.create(USERS, {"type": "duel"})

    page = await store.query(CHALLENGES, filters={"type": "duel", "difficulty": "easy"})

    assert len(page.items) == 1
    assert page.items[0].data["difficulty"] == "easy"
    assert page.next_cursor is None


@pytest.mark.anyio
async def test_query_pages_with_cursor_newest_first(store):
    ids = [await store.create(CHALLENGES, {"n": n}) for n in range(5)]

    first = await store.query(CHALLENGES, limit=2)
    second = await store.query(CHALLENGES, limit=2, cursor=first.next_cursor)
    third = await store.query(CHALLENGES, limit=2, cursor=second.next_cursor)

    seen = [d.id for d in first.items + second.items + third.items]
    assert sorted(seen) == sorted(ids)
    assert len(set(seen)) == 5
    assert third.next_cursor is None


@pytest.mark.anyio
async def test_query_orders_by_nested_numeric_field(store):
    await store.set(USERS, "a", {"platform": {"rating": 1100}})
    await store.set(USERS, "b", {"platform": {"rating": 1500}})
    await store.set(USERS, "c", {"platform": {"rating": 1300}})

    page = await store.query(USERS, order_by="platform.rating")

    assert [d.id for d in page.items] == ["b", "c", "a"]


@pytest.mark.anyio
async def test_query_rejects_garbage_cursor(store):
    with pytest.raises(InvalidRequest):
        await store.query(CHALLENGES, cursor="not-a-cursor")


@pytest.mark.anyio
async def test_cursor_does_not_repeat_rows_after_an_insert(store):
    ids = [await store.create(CHALLENGES, {"n": n}) for n in range(4)]

    first = await store.query(CHALLENGES, limit=2)
    newcomer = await store.create(CHALLENGES, {"n": 4})
    second = await store.query(CHALLENGES, limit=2, cursor=first.next_cursor)

    first_ids = [d.id for d in first.items]
    second_ids = [d.id for d in second.items]
    assert not set(first_ids) & set(second_ids)
    assert newcomer not in second_ids
    assert sorted(first_ids + second_ids) == sorted(ids)


@pytest.mark.anyio
async def test_cursor_breaks_ties_on_equal_order_values(store):
    for doc_id in ("d", "b", "a", "c"):
        await store.set(USERS, doc_id, {"score": 10})

    first = await store.query(USERS, order_by="score", limit=2)
    second = await store.query(USERS, order_by="score", limit=2, cursor=first.next_cursor)

    assert [d.id for d in first.items + second.items] == ["a", "b", "c", "d"]
