import asyncio

import pytest
from kungfu import Ok, Error

from salesbridge.order import OrderKey
from salesbridge.ledger import (
    BeginCode,
    KeyedLock,
    LedgerPolicy,
    LedgerStatus,
    MemoryLedger,
    SQLAlchemyLedger,
)

from tests.conftest import ManualClock, unwrap


@pytest.fixture(params=["memory", "sqlalchemy"])
def backend(request) -> str:
    return request.param


@pytest.fixture
def make_ledger(backend, session_factory):
    """Builds a ledger on the parametrized backend."""

    def build(policy: LedgerPolicy | None = None, clock: ManualClock | None = None):
        clock = clock or ManualClock()
        if backend == "memory":
            return MemoryLedger(policy=policy, clock=clock)
        return SQLAlchemyLedger(session_factory, policy=policy, clock=clock)

    return build


@pytest.mark.asyncio
async def test_first_begin_starts_and_creates_processing_entry(make_ledger, key):
    ledger = make_ledger()

    started = unwrap(await ledger.begin(key, "h1"))
    assert started.code is BeginCode.STARTED

    entry = unwrap(await ledger.get(key))
    assert entry.status is LedgerStatus.PROCESSING
    assert entry.payload_hash == "h1"
    assert entry.external_doc_id is None
    assert entry.processing_at is not None


@pytest.mark.asyncio
async def test_created_then_resubmit_is_duplicate(make_ledger, key):
    ledger = make_ledger()
    unwrap(await ledger.begin(key, "h1"))
    unwrap(await ledger.finalize_created(key, "100", "1000"))

    entry = unwrap(await ledger.get(key))
    assert entry.status is LedgerStatus.CREATED
    assert (entry.external_doc_id, entry.external_doc_number) == ("100", "1000")
    assert entry.error_message is None

    again = unwrap(await ledger.begin(key, "h1"))
    assert again.code is BeginCode.DUPLICATE_CREATED
    assert (again.external_doc_id, again.external_doc_number) == ("100", "1000")


@pytest.mark.asyncio
async def test_second_begin_while_processing_is_in_progress(make_ledger, key):
    ledger = make_ledger()
    unwrap(await ledger.begin(key, "h1"))
    assert unwrap(await ledger.begin(key, "h1")).code is BeginCode.IN_PROGRESS


@pytest.mark.asyncio
async def test_conflict_does_not_mutate(make_ledger, key):
    ledger = make_ledger()
    unwrap(await ledger.begin(key, "h1"))
    unwrap(await ledger.finalize_created(key, "100", "1000"))
    before = unwrap(await ledger.get(key))

    conflict = unwrap(await ledger.begin(key, "h2"))
    assert conflict.code is BeginCode.CONFLICT_HASH

    after = unwrap(await ledger.get(key))
    assert after == before


@pytest.mark.asyncio
async def test_failed_retry_converges_to_created(make_ledger, key):
    clock = ManualClock()
    ledger = make_ledger(clock=clock)
    unwrap(await ledger.begin(key, "h1"))
    unwrap(await ledger.finalize_failed(key, "downstream said no"))

    failed = unwrap(await ledger.get(key))
    assert failed.status is LedgerStatus.FAILED
    assert failed.error_message == "downstream said no"

    clock.advance(minutes=1)
    retry = unwrap(await ledger.begin(key, "h1"))
    assert retry.code is BeginCode.STARTED

    restarted = unwrap(await ledger.get(key))
    assert restarted.status is LedgerStatus.PROCESSING
    assert restarted.error_message is None
    assert restarted.processing_at == clock.now
    assert restarted.created_at == failed.created_at

    unwrap(await ledger.finalize_created(key, "200", "2000"))
    done = unwrap(await ledger.get(key))
    assert done.status is LedgerStatus.CREATED
    assert (done.external_doc_id, done.external_doc_number) == ("200", "2000")


@pytest.mark.asyncio
async def test_failed_with_other_hash_conflicts(make_ledger, key):
    ledger = make_ledger()
    unwrap(await ledger.begin(key, "h1"))
    unwrap(await ledger.finalize_failed(key, "boom"))
    assert unwrap(await ledger.begin(key, "h2")).code is BeginCode.CONFLICT_HASH
    assert unwrap(await ledger.get(key)).status is LedgerStatus.FAILED


@pytest.mark.asyncio
async def test_stale_processing_is_reclaimed(make_ledger, key):
    clock = ManualClock()
    ledger = make_ledger(policy=LedgerPolicy().with_stale_after(minutes=30), clock=clock)
    unwrap(await ledger.begin(key, "h1"))

    clock.advance(minutes=10)
    assert unwrap(await ledger.begin(key, "h1")).code is BeginCode.IN_PROGRESS

    clock.advance(minutes=30)
    assert unwrap(await ledger.begin(key, "h1")).code is BeginCode.STARTED
    assert unwrap(await ledger.get(key)).processing_at == clock.now


@pytest.mark.asyncio
async def test_concurrent_begins_start_exactly_once(make_ledger, key):
    ledger = make_ledger()
    results = await asyncio.gather(
        *(ledger.begin(key, "h1") for _ in range(10)),
        *(ledger.begin(key, "h2") for _ in range(5)),
    )
    codes = [unwrap(r).code for r in results]

    assert codes.count(BeginCode.STARTED) == 1
    assert set(codes) <= {BeginCode.STARTED, BeginCode.IN_PROGRESS, BeginCode.CONFLICT_HASH}


@pytest.mark.asyncio
async def test_finalize_unknown_key_is_error(make_ledger):
    ledger = make_ledger()
    missing = OrderKey("nope", "nope")

    assert isinstance(await ledger.finalize_created(missing, "1", "2"), Error)
    assert isinstance(await ledger.finalize_failed(missing, "x"), Error)
    assert unwrap(await ledger.get(missing)) is None


@pytest.mark.asyncio
async def test_finalize_failed_clips_long_errors(make_ledger, key):
    ledger = make_ledger(policy=LedgerPolicy().with_max_error_length(32))
    unwrap(await ledger.begin(key, "h1"))
    unwrap(await ledger.finalize_failed(key, "e" * 500))

    entry = unwrap(await ledger.get(key))
    assert len(entry.error_message) == 32


@pytest.mark.asyncio
async def test_keys_are_independent(make_ledger):
    ledger = make_ledger()
    a = unwrap(await ledger.begin(OrderKey("O1", "I1"), "h1"))
    b = unwrap(await ledger.begin(OrderKey("O1", "I2"), "h1"))
    assert a.code is BeginCode.STARTED
    assert b.code is BeginCode.STARTED


@pytest.mark.asyncio
async def test_sqlalchemy_ledger_reports_storage_failure(tmp_path, key):
    from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

    # No schema created: every statement fails.
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'empty.db'}")
    try:
        ledger = SQLAlchemyLedger(async_sessionmaker(engine, expire_on_commit=False))
        match await ledger.begin(key, "h1"):
            case Error(err):
                assert "Failed to begin" in err.message
            case Ok(result):
                raise AssertionError(f"expected an error, got {result}")
        assert isinstance(await ledger.get(key), Error)
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_keyed_lock_serializes_same_key_and_cleans_up():
    locks = KeyedLock()
    order: list[str] = []

    async def worker(name: str, token: str) -> None:
        async with locks.hold(token):
            order.append(f"{name}:in")
            await asyncio.sleep(0.01)
            order.append(f"{name}:out")

    await asyncio.gather(worker("a", "k"), worker("b", "k"))
    assert order in (
        ["a:in", "a:out", "b:in", "b:out"],
        ["b:in", "b:out", "a:in", "a:out"],
    )
    assert len(locks) == 0


@pytest.mark.asyncio
async def test_late_finalize_after_stale_reclaim_keeps_created_entry(make_ledger, key):
    clock = ManualClock()
    ledger = make_ledger(policy=LedgerPolicy().with_stale_after(minutes=30), clock=clock)
    unwrap(await ledger.begin(key, "h1"))

    clock.advance(minutes=31)
    assert unwrap(await ledger.begin(key, "h1")).code is BeginCode.STARTED
    unwrap(await ledger.finalize_created(key, "200", "2000"))

    assert isinstance(await ledger.finalize_created(key, "100", "1000"), Error)
    assert isinstance(await ledger.finalize_failed(key, "late failure"), Error)

    entry = unwrap(await ledger.get(key))
    assert entry.status is LedgerStatus.CREATED
    assert (entry.external_doc_id, entry.external_doc_number) == ("200", "2000")
    assert entry.error_message is None


@pytest.mark.asyncio
async def test_begin_starts_once_across_ledger_instances(tmp_path, key):
    from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

    from salesbridge.ledger import create_ledger_schema

    url = f"sqlite+aiosqlite:///{tmp_path / 'shared.db'}"
    first_engine = create_async_engine(url)
    second_engine = create_async_engine(url)
    try:
        await create_ledger_schema(first_engine)
        ledgers = [
            SQLAlchemyLedger(async_sessionmaker(engine, expire_on_commit=False))
            for engine in (first_engine, second_engine)
        ]

        results = await asyncio.gather(*(ledgers[i % 2].begin(key, "h1") for i in range(10)))

        assert not [r for r in results if isinstance(r, Error)]
        codes = [unwrap(r).code for r in results]
        assert codes.count(BeginCode.STARTED) == 1
        assert codes.count(BeginCode.IN_PROGRESS) == 9

        entry = unwrap(await ledgers[1].get(key))
        assert entry.status is LedgerStatus.PROCESSING
    finally:
        await first_engine.dispose()
        await second_engine.dispose()


@pytest.mark.asyncio
async def test_lost_insert_race_is_decided_on_the_winning_row(session_factory, key, monkeypatch):
    from salesbridge.ledger import _sqlalchemy
    from salesbridge.ledger._decision import decide

    winner = SQLAlchemyLedger(session_factory)
    loser = SQLAlchemyLedger(session_factory)
    assert unwrap(await winner.begin(key, "h1")).code is BeginCode.STARTED

    reads: list[object] = []

    def stale_read_once(entry, payload_hash, now, policy):
        # First read behaves as if the winner had not committed yet.
        reads.append(entry)
        return decide(None if len(reads) == 1 else entry, payload_hash, now, policy)

    monkeypatch.setattr(_sqlalchemy, "decide", stale_read_once)

    result = await loser.begin(key, "h1")

    assert len(reads) == 2
    assert unwrap(result).code is BeginCode.IN_PROGRESS
    entry = unwrap(await loser.get(key))
    assert entry.status is LedgerStatus.PROCESSING
