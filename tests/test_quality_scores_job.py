import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

import app.cron.quality_scores as quality_scores
from app.core.database import Base
from app.core.exceptions import StoreUnavailable, VendorNotFound
from app.cron.quality_scores import calculate_quality_scores, recalculate_vendor_quality
from app.models.offer import Offer
from app.models.order import Order
from app.models.review import Review
from app.models.vendor import Vendor
from app.models.vendor_metrics import VendorMetrics
from tests.factories import add_orders, add_reviews, add_vendor

# 20 orders from 12 customers, 8 of them ordered twice
TOP_CUSTOMERS = [c for c in range(1, 9) for _ in range(2)] + [9, 10, 11, 12]


async def _top_vendor(db, name="Top bakery"):
    vendor = await add_vendor(db, name=name)
    await add_orders(db, vendor, TOP_CUSTOMERS, completed=19)
    await add_reviews(db, vendor, [5, 5, 5, 5, 4])
    return vendor


async def _metrics(session_maker, vendor_id):
    async with session_maker() as s:
        return await s.get(VendorMetrics, vendor_id)


async def test_full_run_scores_every_vendor(db, session_maker, settings, clock):
    top = await _top_vendor(db)
    small = await add_vendor(db, name="New cafe")
    await add_orders(db, small, [1, 2, 3], completed=3)
    await add_reviews(db, small, [5])
    idle = await add_vendor(db, name="Idle")

    summary = await calculate_quality_scores(session_maker, settings=settings, clock=clock)

    assert (summary.updated, summary.top_vendors, summary.errors) == (3, 1, 0)
    row = await _metrics(session_maker, top.id)
    assert (row.total_orders, row.completed_orders, row.unique_customers, row.repeat_customers) == (20, 19, 12, 8)
    assert row.avg_rating == 4.8
    assert row.quality_score == pytest.approx(82.39, abs=0.01)
    assert row.is_top is True
    assert row.computed_at == clock.now()

    # below MIN_ORDERS the score is floored to 0 no matter how good the rest is
    small_row = await _metrics(session_maker, small.id)
    assert (small_row.quality_score, small_row.is_top) == (0, False)
    idle_row = await _metrics(session_maker, idle.id)
    assert (idle_row.total_orders, idle_row.avg_rating, idle_row.quality_score) == (0, 0, 0)


async def test_rerun_overwrites_metrics(db, session_maker, settings, clock):
    vendor = await _top_vendor(db)
    await calculate_quality_scores(session_maker, settings=settings, clock=clock)

    # a wave of cancellations costs the badge
    await add_orders(db, vendor, list(range(100, 110)), completed=0)
    clock.advance(days=1)
    await calculate_quality_scores(session_maker, settings=settings, clock=clock)

    async with session_maker() as s:
        rows = (await s.execute(select(VendorMetrics))).scalars().all()
    assert len(rows) == 1
    assert rows[0].total_orders == 30
    assert rows[0].is_top is False
    assert rows[0].computed_at == clock.now()


async def test_one_failing_vendor_does_not_stop_the_run(db, session_maker, settings, clock, monkeypatch):
    good = await _top_vendor(db)
    bad = await add_vendor(db, name="Broken")
    original = quality_scores.collect_vendor_metrics

    async def flaky(session, vendor_id, sources):
        if vendor_id == bad.id:
            raise RuntimeError("query failed")
        return await original(session, vendor_id, sources)

    monkeypatch.setattr(quality_scores, "collect_vendor_metrics", flaky)
    summary = await calculate_quality_scores(session_maker, settings=settings, clock=clock)

    assert (summary.updated, summary.errors) == (1, 1)
    assert await _metrics(session_maker, good.id) is not None
    assert await _metrics(session_maker, bad.id) is None


async def test_inconsistent_metrics_are_counted_as_errors(db, session_maker, settings, clock, monkeypatch):
    await add_vendor(db)

    async def broken(session, vendor_id, sources):
        return quality_scores.VendorMetricsSnapshot(total_orders=1, completed_orders=5)

    monkeypatch.setattr(quality_scores, "collect_vendor_metrics", broken)
    summary = await calculate_quality_scores(session_maker, settings=settings, clock=clock)
    assert (summary.updated, summary.errors) == (0, 1)


async def _partial_store(tmp_path, *models):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'partial.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all, tables=[m.__table__ for m in models])
    return engine


async def test_missing_reviews_table_scores_rating_zero(tmp_path, settings, clock):
    engine = await _partial_store(tmp_path, Vendor, Offer, Order, VendorMetrics)
    session_maker = async_sessionmaker(engine, expire_on_commit=False)
    try:
        async with session_maker() as db:
            vendor = await add_vendor(db)
            await add_orders(db, vendor, TOP_CUSTOMERS, completed=19)

        summary = await calculate_quality_scores(session_maker, settings=settings, clock=clock)

        assert (summary.updated, summary.errors, summary.top_vendors) == (1, 0, 0)
        row = await _metrics(session_maker, vendor.id)
        assert row.avg_rating == 0
        assert row.total_orders == 20
        assert row.quality_score == pytest.approx(58.39, abs=0.01)
    finally:
        await engine.dispose()


async def test_missing_orders_table_scores_zero(tmp_path, settings, clock):
    engine = await _partial_store(tmp_path, Vendor, Review, VendorMetrics)
    session_maker = async_sessionmaker(engine, expire_on_commit=False)
    try:
        async with session_maker() as db:
            vendor = await add_vendor(db)
            await add_reviews(db, vendor, [5, 5])

        summary = await calculate_quality_scores(session_maker, settings=settings, clock=clock)

        assert (summary.updated, summary.errors) == (1, 0)
        row = await _metrics(session_maker, vendor.id)
        assert (row.total_orders, row.avg_rating, row.quality_score, row.is_top) == (0, 0, 0, False)
    finally:
        await engine.dispose()


async def test_missing_vendors_table_raises_store_unavailable(tmp_path, settings, clock):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'empty.db'}")
    try:
        with pytest.raises(StoreUnavailable):
            await calculate_quality_scores(async_sessionmaker(engine), settings=settings, clock=clock)
    finally:
        await engine.dispose()


async def test_recalculate_single_vendor(db, session_maker, settings, clock):
    vendor = await _top_vendor(db)
    other = await _top_vendor(db, name="Other")

    result = await recalculate_vendor_quality(session_maker, vendor.id, settings=settings, clock=clock)

    assert result.is_top is True
    assert result.quality_score == pytest.approx(82.39, abs=0.01)
    assert await _metrics(session_maker, vendor.id) is not None
    assert await _metrics(session_maker, other.id) is None
    assert result.to_dict()["vendorId"] == vendor.id
    assert result.to_dict()["isTop"] is True


async def test_recalculate_unknown_vendor(session_maker, settings, clock):
    with pytest.raises(VendorNotFound):
        await recalculate_vendor_quality(session_maker, 999, settings=settings, clock=clock)


async def test_summary_keys(session_maker, settings, clock):
    summary = await calculate_quality_scores(session_maker, settings=settings, clock=clock)
    assert set(summary.to_dict()) == {"updated", "topVendors", "errors", "durationMs"}
    assert summary.updated == 0


async def test_metrics_upsert_tolerates_concurrent_first_insert(db, session_maker, clock):
    from app.core.quality_score import VendorMetricsSnapshot
    from app.cron.quality_scores import upsert_vendor_metrics

    vendor = await add_vendor(db)
    nightly = VendorMetricsSnapshot(total_orders=10, completed_orders=9, repeat_customers=1, unique_customers=5, avg_rating=4.0)
    manual = VendorMetricsSnapshot(total_orders=12, completed_orders=12, repeat_customers=2, unique_customers=6, avg_rating=4.9)

    # both sides saw no vendor_metrics row; the second insert must update instead of failing
    async with session_maker() as first, session_maker() as second:
        await upsert_vendor_metrics(first, vendor.id, nightly, 40.0, False, clock.now())
        await first.commit()
        await upsert_vendor_metrics(second, vendor.id, manual, 80.0, True, clock.now())
        await second.commit()

    async with session_maker() as s:
        rows = (await s.execute(select(VendorMetrics))).scalars().all()
    assert len(rows) == 1
    assert (rows[0].total_orders, rows[0].avg_rating, rows[0].quality_score, rows[0].is_top) == (12, 4.9, 80.0, True)


async def test_manual_recompute_alongside_nightly_run(db, session_maker, settings, clock):
    import asyncio

    vendor = await _top_vendor(db)

    summary, single = await asyncio.gather(
        calculate_quality_scores(session_maker, settings=settings, clock=clock),
        recalculate_vendor_quality(session_maker, vendor.id, settings=settings, clock=clock),
    )

    assert (summary.updated, summary.errors) == (1, 0)
    assert single.is_top is True
    async with session_maker() as s:
        assert len((await s.execute(select(VendorMetrics))).scalars().all()) == 1
