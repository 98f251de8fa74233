"""
Idempotent Orders Example

Run: uv run python examples/idempotent_orders/main.py
"""

from combinators import batch, lift as L
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from salesbridge import ledger as LG, pipeline as P, prevalidation as V
from salesbridge.gateway import SessionGateway
from salesbridge.pipeline import ItemResult

from examples._infra import DEMO_DEFAULTS, FakeDownstream, banner, envelope, order, run


def show(label: str, result: ItemResult) -> None:
    doc = f" doc={result.document.doc_id}/{result.document.doc_number}" if result.document else ""
    msg = f" ({result.message})" if result.message else ""
    print(f"   {label}: {result.code.value}{doc}{msg}")


async def main() -> None:
    banner("Idempotent Orders")

    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    await LG.create_ledger_schema(engine)

    downstream = FakeDownstream()
    masterdata = V.MemoryMasterData(
        customers={"C0001"}, salespeople={7}, warehouses={"01"}, items={"A", "B", "C"}
    )
    commits = (
        P.pipeline(SessionGateway(downstream.session, DEMO_DEFAULTS))
        .ledger(LG.SQLAlchemyLedger(async_sessionmaker(engine, expire_on_commit=False)))
        .prevalidator(V.PreValidator(masterdata))
        .defaults(DEMO_DEFAULTS)
        .build()
    )

    try:
        # 1. First submission, then an identical resubmission
        print("1. Submit and resubmit O1/I1:")
        first = envelope("O1", "I1", order("A", "B"))
        show("first ", await commits.submit(first))
        show("replay", await commits.submit(first))
        print(f"   downstream calls: {downstream.calls}\n")

        # 2. Same key, changed content
        print("2. O1/I1 with different lines:")
        show("changed", await commits.submit(envelope("O1", "I1", order("A", "C"))))
        print()

        # 3. Concurrent duplicates (5 requests via combinators.batch)
        print("3. Five concurrent O2/I1 submissions:")
        racing = envelope("O2", "I1", order("C"))
        before = downstream.calls
        seen: list[ItemResult] = []

        async def submit_one() -> None:
            seen.append(await commits.submit(racing))

        await batch(
            range(5),
            handler=lambda _: L.catching_async(submit_one, on_error=str),
            concurrency=5,
        )
        for result in seen:
            show("racer", result)
        print(f"   downstream calls: {downstream.calls - before} (only 1!)\n")

        # 4. Unknown product codes
        print("4. O3/I1 referencing A, X, Y:")
        calls = downstream.calls
        show("prevalidated", await commits.submit(envelope("O3", "I1", order("A", "X", "Y"))))
        print(f"   downstream calls: {downstream.calls - calls} (none)\n")

        # 5. Downstream rejection, then retry with the same payload
        print("5. O4/I1 rejected downstream, then retried:")
        retried = envelope("O4", "I1", order("B"))
        downstream.reject = True
        show("rejected", await commits.submit(retried))
        downstream.reject = False
        show("retried ", await commits.submit(retried))

        print(f"\nSummary: {downstream.calls} downstream calls, {downstream.open_sessions} sessions left open")

    finally:
        await engine.dispose()


if __name__ == "__main__":
    run(main)
