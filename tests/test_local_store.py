"""
Local store: stamping, ordering, best-effort reads, history cleanup.
"""
import asyncio
import gc
import json
import logging
from datetime import timedelta

import pytest

from price_tag.errors import RecordNotFound, StorageFailure
from price_tag.models.design import LabelSize
from price_tag.models.settings import HistoryRecord, UserSettings
from price_tag.storage.local_store import JsonTable, LocalStore
from tests.conftest import T0, SteppingClock, make_design


def test_save_then_load_round_trips_except_updated_at(store):
    async def scenario():
        record = make_design(created_at=T0 - timedelta(days=3), updated_at=T0 - timedelta(days=1))
        await store.put(record)
        return record, await store.get(record.id)

    record, loaded = asyncio.run(scenario())
    assert loaded.model_dump(exclude={"updated_at"}) == record.model_dump(exclude={"updated_at"})
    assert loaded.updated_at > record.updated_at


def test_put_stamps_created_at_once(store):
    async def scenario():
        first = await store.put(make_design())
        second = await store.put(first.model_copy(update={"name": "Renamed"}))
        return first, second

    first, second = asyncio.run(scenario())
    assert first.created_at == T0
    assert second.created_at == first.created_at
    assert second.updated_at > first.updated_at


def test_updated_at_strictly_increases_with_a_frozen_clock(tmp_path):
    frozen = SteppingClock(step=timedelta(0))
    store = LocalStore(tmp_path, clock=frozen)

    async def scenario():
        first = await store.put(make_design())
        second = await store.put(first)
        return first, second

    first, second = asyncio.run(scenario())
    assert second.updated_at > first.updated_at


def test_put_without_id_assigns_one(store):
    saved = asyncio.run(store.put(make_design(label_id=None, product_name="Green tea")))
    assert saved.id.startswith("label_")


def test_put_without_id_reuses_id_of_same_product_name(store):
    async def scenario():
        first = await store.put(make_design(label_id="tea-1", product_name="Green tea"))
        again = await store.put(make_design(label_id=None, product_name="Green tea", name="v2"))
        return first, again, await store.list()

    first, again, listed = asyncio.run(scenario())
    assert again.id == first.id
    assert again.created_at == first.created_at
    assert [r.name for r in listed] == ["v2"]


def test_get_missing_returns_none(store):
    assert asyncio.run(store.get("nope")) is None


def test_list_orders_by_updated_at_desc(store):
    async def scenario():
        for label_id in ("a", "b", "c"):
            await store.put(make_design(label_id=label_id))
        await store.update("a", {"name": "touched"})
        return await store.list()

    assert [r.id for r in asyncio.run(scenario())] == ["a", "c", "b"]


def test_update_applies_partial_and_stamps(store):
    async def scenario():
        saved = await store.put(make_design())
        updated = await store.update(saved.id, {"labelSize": {"width": 100, "height": 70}})
        return saved, updated, await store.get(saved.id)

    saved, updated, loaded = asyncio.run(scenario())
    assert loaded.size == LabelSize(width=100, height=70)
    assert loaded.created_at == saved.created_at
    assert updated.updated_at > saved.updated_at


def test_update_missing_record(store):
    with pytest.raises(RecordNotFound):
        asyncio.run(store.update("missing", {"name": "x"}))


def test_delete(store):
    async def scenario():
        await store.put(make_design())
        return await store.delete("label-1"), await store.delete("label-1"), await store.get("label-1")

    assert asyncio.run(scenario()) == (True, False, None)


def test_list_skips_unreadable_rows(store, caplog):
    async def scenario():
        await store.put(make_design())
        store.designs.directory.joinpath("broken.json").write_text("{not json", encoding="utf-8")
        store.designs.directory.joinpath("invalid.json").write_text(
            json.dumps({"labelId": "invalid", "labelSize": {"width": -1, "height": 1}}), encoding="utf-8"
        )
        return await store.list()

    with caplog.at_level(logging.WARNING):
        records = asyncio.run(scenario())
    assert [r.id for r in records] == ["label-1"]
    assert "invalid" in caplog.text


def test_list_degrades_to_empty_on_storage_failure(store, monkeypatch, caplog):
    def broken_scan(self):
        raise StorageFailure("disk on fire")

    monkeypatch.setattr(JsonTable, "scan", broken_scan)
    with caplog.at_level(logging.WARNING):
        assert asyncio.run(store.list()) == []
    assert "disk on fire" in caplog.text


def test_write_failure_is_reported(tmp_path):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("x")
    store = LocalStore(blocker)
    with pytest.raises(StorageFailure):
        asyncio.run(store.put(make_design()))


def test_same_record_writes_are_serialized(store):
    async def scenario():
        await store.put(make_design())
        await asyncio.gather(*(store.update("label-1", {"name": f"n{i}"}) for i in range(10)))
        return await store.get("label-1")

    loaded = asyncio.run(scenario())
    assert loaded.name.startswith("n")
    assert loaded.updated_at == T0 + timedelta(seconds=10)


def test_legacy_saved_label_rows_load(store):
    store.designs.directory.mkdir(parents=True)
    store.designs.directory.joinpath("saved_1.json").write_text(json.dumps({
        "id": "saved_1",
        "name": "Old label",
        "thumbnail": "",
        "productData": {"name": "Tea", "price": 3},
        "labelSize": {"width": 40, "height": 30},
        "createdAt": "2024-01-01T00:00:00Z",
    }), encoding="utf-8")
    records = asyncio.run(store.list())
    assert [(r.id, r.name) for r in records] == [("saved_1", "Old label")]


def test_settings_default_and_saved(store):
    async def scenario():
        before = await store.get_settings()
        await store.save_settings(before.model_copy(update={"language": "en-US"}))
        return before, await store.get_settings()

    before, after = asyncio.run(scenario())
    assert before == UserSettings()
    assert after.language == "en-US"
    assert store.settings.directory.joinpath("default.json").exists()


def test_corrupt_settings_fall_back_to_defaults(store):
    store.settings.directory.mkdir(parents=True)
    store.settings.directory.joinpath("default.json").write_text("[[", encoding="utf-8")
    assert asyncio.run(store.get_settings()) == UserSettings()


def test_history_cleanup_keeps_newest_hundred(store):
    async def scenario():
        for i in range(150):
            await store.add_history(HistoryRecord(
                id=f"history_{i:03d}",
                product_name=f"p{i}",
                created_at=T0 + timedelta(minutes=i),
            ))
        removed = await store.cleanup_history()
        return removed, await store.list_history(limit=1000)

    removed, remaining = asyncio.run(scenario())
    assert removed == 50
    assert len(remaining) == 100
    assert {r.id for r in remaining} == {f"history_{i:03d}" for i in range(50, 150)}
    assert remaining[0].id == "history_149"


def test_history_list_limit_and_delete(store):
    async def scenario():
        for i in range(5):
            await store.add_history(HistoryRecord(id=f"h{i}", created_at=T0 + timedelta(minutes=i)))
        await store.delete_history("h4")
        return await store.list_history(limit=2)

    assert [r.id for r in asyncio.run(scenario())] == ["h3", "h2"]


def test_generic_tables(store):
    async def scenario():
        template_id = await store.templates.put({"name": "Two column", "type": "simple"})
        await store.products.put({"id": "p1", "name": "Tea", "price": 5})
        return template_id, await store.templates.list(), await store.products.get("p1")

    template_id, templates, product = asyncio.run(scenario())
    assert template_id.startswith("templates_")
    assert templates[0]["name"] == "Two column"
    assert product["price"] == 5


def test_concurrent_puts_without_id_share_one_id(store):
    async def scenario():
        saved = await asyncio.gather(*(
            store.put(make_design(label_id=None, product_name="Jasmine", name=f"v{i}"))
            for i in range(5)
        ))
        return saved, await store.list()

    saved, listed = asyncio.run(scenario())
    assert len({record.id for record in saved}) == 1
    assert len(listed) == 1
    assert listed[0].id == saved[0].id


def test_locks_are_released_after_use(store):
    async def scenario():
        await asyncio.gather(*(store.put(make_design(label_id=f"d{i}")) for i in range(5)))
        await store.put(make_design(label_id=None, product_name="Jasmine"))
        await store.update("d0", {"name": "x"})
        await store.delete("d1")

    asyncio.run(scenario())
    gc.collect()
    assert len(store._locks) == 0
