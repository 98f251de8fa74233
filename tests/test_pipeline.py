import asyncio
import logging

import pytest
from kungfu import Error, Ok

from salesbridge.ledger import LedgerError, LedgerStatus, MemoryLedger, SQLAlchemyLedger
from salesbridge.prevalidation import MemoryMasterData, PreValidator
from salesbridge.gateway import DownstreamRejected, DownstreamTimeout
from salesbridge.pipeline import PREVALIDATION_PREFIX, ItemCode, pipeline

from tests.conftest import RecordingGateway, make_envelope, unwrap


@pytest.fixture(params=["memory", "sqlalchemy"])
def ledger(request, session_factory):
    if request.param == "memory":
        return MemoryLedger()
    return SQLAlchemyLedger(session_factory)


@pytest.fixture
def commits(ledger, masterdata, gateway, defaults):
    return (
        pipeline(gateway)
        .ledger(ledger)
        .prevalidator(PreValidator(masterdata))
        .defaults(defaults)
        .build()
    )


@pytest.mark.asyncio
async def test_create_then_duplicate_without_new_downstream_call(commits, gateway, ledger):
    envelope = make_envelope("O1", "I1", "A", "B")

    first = await commits.submit(envelope)
    assert first.code is ItemCode.CREATED
    assert first.ok
    assert (first.document.doc_id, first.document.doc_number) == ("100", "1000")

    entry = unwrap(await ledger.get(envelope.key))
    assert entry.status is LedgerStatus.CREATED
    assert entry.payload_hash == first.payload_hash
    assert (entry.external_doc_id, entry.external_doc_number) == ("100", "1000")

    again = await commits.submit(envelope)
    assert again.code is ItemCode.DUPLICATE
    assert again.ok
    assert (again.document.doc_id, again.document.doc_number) == ("100", "1000")
    assert len(gateway.calls) == 1


@pytest.mark.asyncio
async def test_concurrent_identical_submission_sees_in_progress(ledger, masterdata, defaults):
    slow = RecordingGateway(delay=0.1)
    commits = pipeline(slow).ledger(ledger).prevalidator(PreValidator(masterdata)).defaults(defaults).build()
    envelope = make_envelope("O1", "I1", "A")

    results = await asyncio.gather(commits.submit(envelope), commits.submit(envelope))
    codes = sorted(r.code.value for r in results)

    assert codes == ["CREATED", "IN_PROGRESS"]
    assert len(slow.calls) == 1
    in_progress = next(r for r in results if r.code is ItemCode.IN_PROGRESS)
    assert not in_progress.ok
    assert in_progress.message


@pytest.mark.asyncio
async def test_changed_content_is_conflict_and_entry_unchanged(commits, gateway, ledger):
    await commits.submit(make_envelope("O1", "I1", "A", "B"))
    before = unwrap(await ledger.get(make_envelope("O1", "I1").key))

    changed = await commits.submit(make_envelope("O1", "I1", "A", "C"))

    assert changed.code is ItemCode.CONFLICT_HASH
    assert not changed.ok
    assert unwrap(await ledger.get(before.key)) == before
    assert len(gateway.calls) == 1


@pytest.mark.asyncio
async def test_missing_master_data_fails_without_downstream_call(ledger, gateway, defaults):
    masterdata = MemoryMasterData(customers={"C0001"}, salespeople={7}, warehouses={"01"}, items={"A"})
    commits = pipeline(gateway).ledger(ledger).prevalidator(PreValidator(masterdata)).defaults(defaults).build()
    envelope = make_envelope("O1", "I1", "A", "B", "C")

    result = await commits.submit(envelope)

    assert result.code is ItemCode.PREVALIDATION_FAILED
    assert "B, C" in result.message
    assert gateway.calls == []

    entry = unwrap(await ledger.get(envelope.key))
    assert entry.status is LedgerStatus.FAILED
    assert entry.error_message == PREVALIDATION_PREFIX + result.message


@pytest.mark.asyncio
async def test_master_data_outage_has_its_own_code(ledger, gateway, defaults):
    class Down(MemoryMasterData):
        async def existing_items(self, codes):
            raise ConnectionError("timeout talking to master data")

    commits = pipeline(gateway).ledger(ledger).prevalidator(PreValidator(Down(
        customers={"C0001"}, salespeople={7}, warehouses={"01"},
    ))).defaults(defaults).build()
    envelope = make_envelope("O1", "I1", "A")

    result = await commits.submit(envelope)

    assert result.code is ItemCode.MASTERDATA_UNAVAILABLE
    assert "timeout talking" not in result.message
    assert unwrap(await ledger.get(envelope.key)).status is LedgerStatus.FAILED
    assert gateway.calls == []


@pytest.mark.asyncio
async def test_downstream_error_is_sanitized_recorded_and_retryable(ledger, masterdata, defaults, caplog):
    failing = RecordingGateway(error=DownstreamRejected("(-5002) internal: table OITM row 7 locked"))
    commits = pipeline(failing).ledger(ledger).prevalidator(PreValidator(masterdata)).defaults(defaults).build()
    envelope = make_envelope("O1", "I1", "A")

    with caplog.at_level(logging.ERROR, logger="salesbridge"):
        result = await commits.submit(envelope)

    assert result.code is ItemCode.COMMIT_ERROR
    assert result.message == DownstreamRejected.public_message
    assert "OITM" not in result.message
    assert any("OITM" in r.getMessage() for r in caplog.records)

    entry = unwrap(await ledger.get(envelope.key))
    assert entry.status is LedgerStatus.FAILED
    assert "OITM" in entry.error_message

    failing.error = None
    retried = await commits.submit(envelope)
    assert retried.code is ItemCode.CREATED
    assert unwrap(await ledger.get(envelope.key)).status is LedgerStatus.CREATED
    assert len(failing.calls) == 2


@pytest.mark.asyncio
async def test_timeout_is_recorded_as_failed(ledger, masterdata, defaults):
    commits = pipeline(RecordingGateway(error=DownstreamTimeout("no answer in 120s"))).ledger(
        ledger
    ).prevalidator(PreValidator(masterdata)).defaults(defaults).build()
    envelope = make_envelope("O1", "I1", "A")

    result = await commits.submit(envelope)

    assert result.code is ItemCode.COMMIT_ERROR
    assert "unknown" in result.message.lower()
    assert unwrap(await ledger.get(envelope.key)).status is LedgerStatus.FAILED


@pytest.mark.asyncio
async def test_unexpected_gateway_exception_is_commit_error(ledger, masterdata, defaults):
    commits = pipeline(RecordingGateway(error=ZeroDivisionError("oops"))).ledger(ledger).prevalidator(
        PreValidator(masterdata)
    ).defaults(defaults).build()

    result = await commits.submit(make_envelope("O1", "I1", "A"))

    assert result.code is ItemCode.COMMIT_ERROR
    assert "oops" not in result.message


@pytest.mark.asyncio
async def test_batch_continues_past_failures(commits, gateway):
    results = await commits.submit_batch([
        make_envelope("O1", "I1", "A"),
        make_envelope("O2", "I1", "NOPE"),
        make_envelope("O1", "I1", "A"),
        make_envelope("O3", "I1", "B"),
    ])

    assert [r.code for r in results] == [
        ItemCode.CREATED,
        ItemCode.PREVALIDATION_FAILED,
        ItemCode.DUPLICATE,
        ItemCode.CREATED,
    ]
    assert [r.key.external_order_id for r in results] == ["O1", "O2", "O1", "O3"]
    assert len(gateway.calls) == 2


# ═══════════════════════════════════════════════════════════════════════════════
# Ledger failures
# ═══════════════════════════════════════════════════════════════════════════════


class FlakyLedger(MemoryLedger):
    """MemoryLedger whose individual operations can be made to fail."""

    def __init__(self) -> None:
        super().__init__()
        self.fail_begin = False
        self.fail_created = False
        self.fail_failed = False
        self.raise_failed = False

    async def begin(self, key, payload_hash):
        if self.fail_begin:
            return Error(LedgerError("connection reset"))
        return await super().begin(key, payload_hash)

    async def finalize_created(self, key, external_doc_id, external_doc_number):
        if self.fail_created:
            return Error(LedgerError("deadlock victim"))
        return await super().finalize_created(key, external_doc_id, external_doc_number)

    async def finalize_failed(self, key, error_message):
        if self.raise_failed:
            raise RuntimeError("driver crashed")
        if self.fail_failed:
            return Error(LedgerError("disk full"))
        return await super().finalize_failed(key, error_message)


@pytest.fixture
def flaky() -> FlakyLedger:
    return FlakyLedger()


@pytest.fixture
def flaky_commits(flaky, masterdata, gateway, defaults):
    return pipeline(gateway).ledger(flaky).prevalidator(PreValidator(masterdata)).defaults(defaults).build()


@pytest.mark.asyncio
async def test_begin_failure_is_ledger_error_without_downstream_call(flaky, flaky_commits, gateway):
    flaky.fail_begin = True
    result = await flaky_commits.submit(make_envelope("O1", "I1", "A"))

    assert result.code is ItemCode.LEDGER_ERROR
    assert "connection reset" not in result.message
    assert gateway.calls == []


@pytest.mark.asyncio
async def test_finalize_created_failure_still_reports_created(flaky, flaky_commits, caplog):
    flaky.fail_created = True
    envelope = make_envelope("O1", "I1", "A")

    with caplog.at_level(logging.ERROR, logger="salesbridge"):
        result = await flaky_commits.submit(envelope)

    assert result.code is ItemCode.CREATED
    assert result.document.doc_id == "100"
    assert any("LEDGER_WRITE_ERROR" in r.getMessage() for r in caplog.records)
    # Left PROCESSING, never FAILED.
    assert unwrap(await flaky.get(envelope.key)).status is LedgerStatus.PROCESSING


@pytest.mark.asyncio
@pytest.mark.parametrize("mode", ["fail_failed", "raise_failed"])
async def test_failed_write_failure_is_swallowed(flaky, masterdata, defaults, caplog, mode):
    setattr(flaky, mode, True)
    failing = RecordingGateway(error=DownstreamRejected("nope"))
    commits = pipeline(failing).ledger(flaky).prevalidator(PreValidator(masterdata)).defaults(defaults).build()

    with caplog.at_level(logging.ERROR, logger="salesbridge"):
        results = await commits.submit_batch([
            make_envelope("O1", "I1", "A"),
            make_envelope("O2", "I1", "B"),
        ])

    assert [r.code for r in results] == [ItemCode.COMMIT_ERROR, ItemCode.COMMIT_ERROR]
    assert any("LEDGER_WRITE_ERROR" in r.getMessage() for r in caplog.records)


@pytest.mark.asyncio
async def test_unexpected_pipeline_error_is_internal_error_for_that_item(masterdata, gateway, defaults):
    class Exploding(MemoryLedger):
        async def begin(self, key, payload_hash):
            if key.external_order_id == "BOOM":
                raise RuntimeError("unexpected")
            return await super().begin(key, payload_hash)

    commits = pipeline(gateway).ledger(Exploding()).prevalidator(PreValidator(masterdata)).defaults(defaults).build()
    results = await commits.submit_batch([
        make_envelope("BOOM", "I1", "A"),
        make_envelope("O2", "I1", "A"),
    ])

    assert [r.code for r in results] == [ItemCode.INTERNAL_ERROR, ItemCode.CREATED]


@pytest.mark.asyncio
async def test_cancelled_submit_still_finalizes(masterdata, defaults):
    ledger = MemoryLedger()
    slow = RecordingGateway(delay=0.1)
    commits = pipeline(slow).ledger(ledger).prevalidator(PreValidator(masterdata)).defaults(defaults).build()
    envelope = make_envelope("O1", "I1", "A")

    task = asyncio.create_task(commits.submit(envelope))
    await asyncio.sleep(0.02)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    await asyncio.sleep(0.2)
    assert unwrap(await ledger.get(envelope.key)).status is LedgerStatus.CREATED


@pytest.mark.asyncio
async def test_status_reads_the_ledger(commits):
    envelope = make_envelope("O1", "I1", "A")
    assert isinstance(await commits.status(envelope.key), Ok)
    assert unwrap(await commits.status(envelope.key)) is None

    await commits.submit(envelope)
    assert unwrap(await commits.status(envelope.key)).status is LedgerStatus.CREATED


def test_builder_requires_prevalidator(gateway):
    with pytest.raises(ValueError):
        pipeline(gateway).build()
