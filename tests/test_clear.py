import asyncio

import pytest

from conftest import FakePort
from cosmosops.core.cache import ResourceCache
from cosmosops.core.clear import ClearEngine, clear_selection
from cosmosops.core.gate import ConfirmationGate
from cosmosops.core.resources import NodeKind, NoResourcesFound, real_nodes
from cosmosops.core.session import SessionContext


async def _walk(cache: ResourceCache, *names: str):
    node = None
    for name in names:
        children = await cache.children_of(node)
        node = next(c for c in real_nodes(children) if c.display_name == name)
    return node


class _Prompter:
    def __init__(self, text=None, choice=None):
        self.text = text
        self.choice = choice

    async def prompt_text(self, message, expected):
        return self.text

    async def prompt_choice(self, message, options):
        return self.choice


@pytest.mark.asyncio
async def test_clear_database_deletes_every_item(cache: ResourceCache, port: FakePort):
    db = await _walk(cache, "Dev Sub", "acct-a", "Prod DB")
    c1_id = f"{db.id}/containers/C1"
    c2_id = f"{db.id}/containers/C2"

    report = await ClearEngine(cache).clear(db)

    assert port.count("delete_item") == 3
    assert port.count("delete_item", c2_id) == 0
    assert port.count("list_item_ids", c2_id) == 1
    assert port.items[c1_id] == []
    assert port.items[c2_id] == []
    assert report.deleted_count == 3
    assert report.ok is True
    assert sorted(c.display_name for c in report.containers) == ["C1", "C2"]


@pytest.mark.asyncio
async def test_clear_uses_cached_children(cache: ResourceCache, port: FakePort):
    db = await _walk(cache, "Dev Sub", "acct-a", "Prod DB")
    await cache.children_of(db)

    await ClearEngine(cache).clear(db)

    assert port.count("list_containers", db.id) == 1


@pytest.mark.asyncio
async def test_clear_empty_container_is_idempotent(cache: ResourceCache, port: FakePort):
    c2 = await _walk(cache, "Dev Sub", "acct-a", "Prod DB", "C2")

    report = await ClearEngine(cache).clear(c2)

    assert port.count("delete_item") == 0
    assert report.items == []
    cache.invalidate(c2)
    db = cache.invalidation_target(c2)
    assert db is not None and db.display_name == "Prod DB"
    refreshed = {c.display_name: c for c in await cache.children_of(db)}
    assert refreshed["C2"].is_empty is True


@pytest.mark.asyncio
async def test_clear_subscription_reaches_every_container(
    cache: ResourceCache, port: FakePort
):
    group = await _walk(cache, "Dev Sub")

    report = await ClearEngine(cache, max_parallel=1).clear(group)

    assert report.deleted_count == 4
    assert all(not items for items in port.items.values())
    assert sorted(c.display_name for c in report.containers) == ["C1", "C2", "C3"]
    # acct-b has no databases: a placeholder, not a failure
    assert report.skipped == []


@pytest.mark.asyncio
async def test_delete_failure_does_not_stop_siblings(cache: ResourceCache, port: FakePort):
    db = await _walk(cache, "Dev Sub", "acct-a", "Prod DB")
    port.delete_failures.add("i2")

    report = await ClearEngine(cache).clear(db)

    assert report.ok is False
    assert report.deleted_count == 2
    assert [r.item_id for r in report.failed_items] == ["i2"]
    assert "i2 failed" in (report.failed_items[0].error or "")
    assert [i.id for i in port.items[f"{db.id}/containers/C1"]] == ["i2"]


@pytest.mark.asyncio
async def test_enumeration_failure_is_reported_per_container(
    cache: ResourceCache, port: FakePort
):
    account = await _walk(cache, "Dev Sub", "acct-a")
    other = await _walk(cache, "Dev Sub", "acct-a", "Other DB")
    port.failures[("list_item_ids", f"{other.id}/containers/C3")] = RuntimeError("503")

    report = await ClearEngine(cache).clear(account)

    assert [c.display_name for c in report.failed_containers] == ["C3"]
    assert report.deleted_count == 3


@pytest.mark.asyncio
async def test_inaccessible_branch_is_skipped(cache: ResourceCache, port: FakePort):
    account = await _walk(cache, "Dev Sub", "acct-a")
    port.failures[("list_databases", account.id)] = PermissionError("403")

    report = await ClearEngine(cache).clear(account)

    assert report.skipped == [account.id]
    assert report.containers == []
    assert port.count("delete_item") == 0


@pytest.mark.asyncio
async def test_dry_run_lists_but_does_not_delete(cache: ResourceCache, port: FakePort):
    db = await _walk(cache, "Dev Sub", "acct-a", "Prod DB")

    report = await ClearEngine(cache).clear(db, dry_run=True)

    assert port.count("delete_item") == 0
    assert len(report.items) == 3
    assert report.deleted_count == 0
    assert report.dry_run is True


@pytest.mark.asyncio
async def test_placeholders_cannot_be_cleared(cache: ResourceCache):
    with pytest.raises(ValueError, match="cannot be cleared"):
        await ClearEngine(cache).clear(NoResourcesFound())


def test_max_parallel_must_be_positive(cache: ResourceCache):
    with pytest.raises(ValueError, match="max_parallel"):
        ClearEngine(cache, max_parallel=0)


def test_max_parallel_env_override(cache: ResourceCache, monkeypatch):
    monkeypatch.setenv("COSMOSOPS_MAX_PARALLEL", "12")
    assert ClearEngine(cache).max_parallel == 12

    monkeypatch.setenv("COSMOSOPS_MAX_PARALLEL", "lots")
    assert ClearEngine(cache).max_parallel == 5


@pytest.mark.asyncio
async def test_clear_selection_declined_does_nothing(cache: ResourceCache, port: FakePort):
    db = await _walk(cache, "Dev Sub", "acct-a", "Prod DB")
    gate = ConfirmationGate(_Prompter(text="prod db"))

    report = await clear_selection(db, gate=gate, engine=ClearEngine(cache))

    assert report is None
    assert port.count("list_item_ids") == 0


@pytest.mark.asyncio
async def test_clear_selection_confirmed_clears_and_invalidates(
    cache: ResourceCache, port: FakePort
):
    c1 = await _walk(cache, "Dev Sub", "acct-a", "Prod DB", "C1")
    gate = ConfirmationGate(_Prompter(choice="Yes"))
    changed = []
    cache.subscribe(changed.append)

    report = await clear_selection(c1, gate=gate, engine=ClearEngine(cache))

    assert report is not None and report.deleted_count == 3
    assert [n.kind for n in changed] == [NodeKind.DATABASE]
    assert cache.related(c1.owner_database_id, NodeKind.CONTAINER) is None


class _TaskCountingPort(FakePort):
    """FakePort recording the peak number of live tasks seen by delete_item."""

    def __init__(self, hierarchy):
        super().__init__(hierarchy)
        self.peak_tasks = 0

    async def delete_item(self, container, item):
        self.peak_tasks = max(self.peak_tasks, len(asyncio.all_tasks()))
        await asyncio.sleep(0)
        self.deleted.append((container.id, item.id))


@pytest.mark.asyncio
async def test_large_container_clear_keeps_task_count_bounded(session: SessionContext):
    item_ids = [f"doc-{n}" for n in range(5000)]
    port = _TaskCountingPort({"Sub": {"acct": {"DB": {"big": item_ids}}}})
    cache = ResourceCache(lambda _s: port, session)
    big = await _walk(cache, "Sub", "acct", "DB", "big")

    report = await ClearEngine(cache, max_parallel=5).clear(big)

    assert report.deleted_count == 5000
    assert [r.item_id for r in report.items] == item_ids
    assert len(port.deleted) == 5000
    assert port.peak_tasks < 20


@pytest.mark.asyncio
async def test_clear_reads_cached_lists_without_refetching(
    cache: ResourceCache, port: FakePort, monkeypatch
):
    db = await _walk(cache, "Dev Sub", "acct-a", "Prod DB")
    await cache.children_of(db)

    async def _unexpected(parent=None):
        raise AssertionError(f"children_of({parent!r}) called for a cached list")

    monkeypatch.setattr(cache, "children_of", _unexpected)

    report = await ClearEngine(cache).clear(db)

    assert report.deleted_count == 3
