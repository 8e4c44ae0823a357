from datetime import timedelta

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from app.core.exceptions import StoreUnavailable
from app.cron.offer_scheduler import OfferLive, notify_offer_subscribers, process_scheduled_offers
from app.models.enums import SubscriptionScope
from app.models.offer import Offer
from app.models.offer_notification_log import OfferNotificationLog
from app.models.push_endpoint import PushEndpoint
from tests.factories import add_endpoint, add_offer, add_vendor, endpoint_url, subscribe


async def _offer_state(session_maker, offer_id):
    async with session_maker() as s:
        return (await s.get(Offer, offer_id)).is_active


async def _ledger_rows(session_maker):
    async with session_maker() as s:
        return (await s.execute(select(OfferNotificationLog))).scalars().all()


async def test_activation_is_idempotent(db, session_maker, notifier, settings, clock):
    vendor = await add_vendor(db)
    now = clock.now()
    offer = await add_offer(db, vendor, publish_at=now - timedelta(minutes=5), unpublish_at=now + timedelta(hours=1))

    first = await process_scheduled_offers(session_maker, notifier, settings=settings, clock=clock)
    assert first.activated == 1
    assert await _offer_state(session_maker, offer.id) is True

    second = await process_scheduled_offers(session_maker, notifier, settings=settings, clock=clock)
    assert second.activated == 0
    assert second.deactivated == 0
    assert await _offer_state(session_maker, offer.id) is True


async def test_future_offer_stays_scheduled(db, session_maker, notifier, settings, clock):
    vendor = await add_vendor(db)
    offer = await add_offer(db, vendor, publish_at=clock.now() + timedelta(minutes=1))

    result = await process_scheduled_offers(session_maker, notifier, settings=settings, clock=clock)
    assert result.activated == 0
    assert await _offer_state(session_maker, offer.id) is False

    clock.advance(minutes=1)
    result = await process_scheduled_offers(session_maker, notifier, settings=settings, clock=clock)
    assert result.activated == 1


async def test_offer_deactivated_after_unpublish_and_never_reactivated(db, session_maker, notifier, settings, clock):
    vendor = await add_vendor(db)
    now = clock.now()
    offer = await add_offer(db, vendor, publish_at=now - timedelta(hours=2), unpublish_at=now + timedelta(minutes=30))
    await process_scheduled_offers(session_maker, notifier, settings=settings, clock=clock)

    clock.advance(minutes=30)
    result = await process_scheduled_offers(session_maker, notifier, settings=settings, clock=clock)
    assert result.deactivated == 1
    assert await _offer_state(session_maker, offer.id) is False

    clock.advance(minutes=1)
    result = await process_scheduled_offers(session_maker, notifier, settings=settings, clock=clock)
    assert (result.activated, result.deactivated) == (0, 0)
    assert await _offer_state(session_maker, offer.id) is False


async def test_elapsed_window_is_never_activated_or_notified(db, session_maker, notifier, settings, clock):
    vendor = await add_vendor(db)
    now = clock.now()
    offer = await add_offer(db, vendor, publish_at=now - timedelta(hours=3), unpublish_at=now - timedelta(hours=1))
    await add_endpoint(db, 1)
    await subscribe(db, 1, SubscriptionScope.offer, offer.id)

    result = await process_scheduled_offers(session_maker, notifier, settings=settings, clock=clock)
    assert result.activated == 0
    assert await _offer_state(session_maker, offer.id) is False
    assert notifier.sent == []


async def test_offer_without_unpublish_stays_active(db, session_maker, notifier, settings, clock):
    vendor = await add_vendor(db)
    offer = await add_offer(db, vendor, publish_at=clock.now() - timedelta(days=1))
    await process_scheduled_offers(session_maker, notifier, settings=settings, clock=clock)
    clock.advance(days=30)
    result = await process_scheduled_offers(session_maker, notifier, settings=settings, clock=clock)
    assert result.deactivated == 0
    assert await _offer_state(session_maker, offer.id) is True


async def test_activation_notifies_once(db, session_maker, notifier, settings, clock):
    vendor = await add_vendor(db)
    now = clock.now()
    offer = await add_offer(db, vendor, publish_at=now - timedelta(seconds=60), unpublish_at=now + timedelta(hours=1))
    await add_endpoint(db, 7)
    await subscribe(db, 7, SubscriptionScope.offer, offer.id)

    result = await process_scheduled_offers(session_maker, notifier, settings=settings, clock=clock)
    assert result.activated == 1
    assert result.notified == 1
    assert await _offer_state(session_maker, offer.id) is True
    assert notifier.sent_to(endpoint_url(7)) == 1
    rows = await _ledger_rows(session_maker)
    assert [(r.offer_id, r.subscriber_id, r.notification_type, r.sent_at) for r in rows] == [
        (offer.id, 7, "offer_live", now)
    ]

    clock.advance(seconds=60)
    await process_scheduled_offers(session_maker, notifier, settings=settings, clock=clock)
    assert len(notifier.sent) == 1


async def test_payload_matches_wire_contract(db, session_maker, notifier, settings, clock):
    vendor = await add_vendor(db)
    offer = await add_offer(db, vendor, publish_at=clock.now(), title="Bagels")
    await add_endpoint(db, 1)
    await subscribe(db, 1, SubscriptionScope.business, vendor.id)

    await process_scheduled_offers(session_maker, notifier, settings=settings, clock=clock)
    _, payload = notifier.sent[0]
    assert set(payload) == {"title", "body", "icon", "badge", "data"}
    assert "Bagels" in payload["body"]
    assert payload["icon"] == settings.PUSH_ICON_URL
    assert payload["data"] == {
        "type": "offer_live",
        "offerId": offer.id,
        "businessId": vendor.id,
        "url": f"/vendor/{vendor.id}",
    }


async def test_gone_endpoint_is_disabled_and_skipped_later(db, session_maker, notifier, settings, clock):
    vendor = await add_vendor(db)
    now = clock.now()
    await add_endpoint(db, 3)
    await subscribe(db, 3, SubscriptionScope.business, vendor.id)
    notifier.gone.add(endpoint_url(3))
    await add_offer(db, vendor, publish_at=now - timedelta(minutes=1))

    result = await process_scheduled_offers(session_maker, notifier, settings=settings, clock=clock)
    assert result.endpoints_disabled == 1
    assert result.notified == 0
    assert await _ledger_rows(session_maker) == []
    async with session_maker() as s:
        endpoint = (await s.execute(select(PushEndpoint).where(PushEndpoint.subscriber_id == 3))).scalar_one()
        assert endpoint.enabled is False
        assert endpoint.subscription is None

    # a second offer from the same vendor would match, but the endpoint is gone
    notifier.gone.clear()
    await add_offer(db, vendor, publish_at=clock.now(), title="Second")
    clock.advance(minutes=1)
    result = await process_scheduled_offers(session_maker, notifier, settings=settings, clock=clock)
    assert result.activated == 1
    assert notifier.sent == []


async def test_subscriber_matching_all_scopes(db, session_maker, notifier, settings, clock):
    vendor = await add_vendor(db, latitude=55.7558, longitude=37.6173)
    other_vendor = await add_vendor(db, name="Other")
    offer = await add_offer(db, vendor, publish_at=clock.now())
    for sid in range(1, 9):
        await add_endpoint(db, sid, enabled=sid != 6)

    await subscribe(db, 1, SubscriptionScope.offer, offer.id)
    await subscribe(db, 2, SubscriptionScope.business, vendor.id)
    await subscribe(db, 3, SubscriptionScope.area, latitude=55.76, longitude=37.62, radius_km=2)
    await subscribe(db, 4, SubscriptionScope.area, latitude=59.9343, longitude=30.3351)  # St Petersburg, default 5 km
    await subscribe(db, 5, SubscriptionScope.business, other_vendor.id)
    await subscribe(db, 6, SubscriptionScope.offer, offer.id)  # endpoint disabled
    await subscribe(db, 7, SubscriptionScope.offer, offer.id, is_active=False)
    # matched by two subscriptions, notified once
    await subscribe(db, 8, SubscriptionScope.offer, offer.id)
    await subscribe(db, 8, SubscriptionScope.business, vendor.id)

    result = await process_scheduled_offers(session_maker, notifier, settings=settings, clock=clock)
    assert result.notified == 4
    assert sorted(e for e, _ in notifier.sent) == sorted(endpoint_url(s) for s in (1, 2, 3, 8))


async def test_vendor_without_coordinates_skips_area_subscribers(db, session_maker, notifier, settings, clock):
    vendor = await add_vendor(db, latitude=None, longitude=None)
    await add_offer(db, vendor, publish_at=clock.now())
    await add_endpoint(db, 1)
    await subscribe(db, 1, SubscriptionScope.area, latitude=55.75, longitude=37.61, radius_km=100)

    result = await process_scheduled_offers(session_maker, notifier, settings=settings, clock=clock)
    assert result.activated == 1
    assert notifier.sent == []


async def test_antispam_window_suppresses_then_allows(db, session_maker, notifier, settings, clock):
    vendor = await add_vendor(db)
    offer = await add_offer(db, vendor, publish_at=clock.now(), is_active=True)
    await add_endpoint(db, 1)
    await subscribe(db, 1, SubscriptionScope.offer, offer.id)
    live = OfferLive(offer_id=offer.id, title=offer.title, vendor_id=vendor.id)

    first = await notify_offer_subscribers(session_maker, notifier, live, clock.now(), settings)
    assert first.sent == 1

    clock.advance(hours=23, minutes=59)
    second = await notify_offer_subscribers(session_maker, notifier, live, clock.now(), settings)
    assert second.total == 0

    clock.advance(minutes=2)
    third = await notify_offer_subscribers(session_maker, notifier, live, clock.now(), settings)
    assert third.sent == 1

    rows = await _ledger_rows(session_maker)
    assert len(rows) == 1
    assert rows[0].sent_at == clock.now()
    assert len(notifier.sent) == 2


async def test_antispam_window_is_configurable(db, session_maker, notifier, clock):
    from tests.fakes import make_settings

    settings = make_settings(ANTISPAM_HOURS=1)
    vendor = await add_vendor(db)
    offer = await add_offer(db, vendor, publish_at=clock.now(), is_active=True)
    await add_endpoint(db, 1)
    await subscribe(db, 1, SubscriptionScope.offer, offer.id)
    live = OfferLive(offer_id=offer.id, title=offer.title, vendor_id=vendor.id)

    await notify_offer_subscribers(session_maker, notifier, live, clock.now(), settings)
    clock.advance(hours=1, seconds=1)
    again = await notify_offer_subscribers(session_maker, notifier, live, clock.now(), settings)
    assert again.sent == 1


async def test_transient_failure_leaves_no_ledger_entry(db, session_maker, notifier, settings, clock):
    vendor = await add_vendor(db)
    await add_offer(db, vendor, publish_at=clock.now())
    await add_endpoint(db, 1)
    await add_endpoint(db, 2)
    await subscribe(db, 1, SubscriptionScope.business, vendor.id)
    await subscribe(db, 2, SubscriptionScope.business, vendor.id)
    notifier.failing.add(endpoint_url(1))

    result = await process_scheduled_offers(session_maker, notifier, settings=settings, clock=clock)
    assert (result.notified, result.failed_sends) == (1, 1)
    assert [r.subscriber_id for r in await _ledger_rows(session_maker)] == [2]
    async with session_maker() as s:
        enabled = (await s.execute(select(func.count()).select_from(PushEndpoint).where(PushEndpoint.enabled.is_(True)))).scalar()
    assert enabled == 2


async def test_store_failure_raises_store_unavailable(tmp_path, notifier, settings, clock):
    # no tables at all
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'empty.db'}")
    try:
        with pytest.raises(StoreUnavailable):
            await process_scheduled_offers(
                async_sessionmaker(engine, expire_on_commit=False), notifier, settings=settings, clock=clock
            )
    finally:
        await engine.dispose()
    assert notifier.sent == []


async def test_wide_area_subscription_widens_prefilter(db, session_maker, notifier, settings, clock):
    vendor = await add_vendor(db, latitude=55.7558, longitude=37.6173)  # Moscow
    await add_offer(db, vendor, publish_at=clock.now())
    for sid in (1, 2, 3):
        await add_endpoint(db, sid)
    # St Petersburg is ~634 km away
    await subscribe(db, 1, SubscriptionScope.area, latitude=59.9343, longitude=30.3351, radius_km=700)
    await subscribe(db, 2, SubscriptionScope.area, latitude=59.9343, longitude=30.3351, radius_km=600)
    await subscribe(db, 3, SubscriptionScope.area, latitude=55.77, longitude=37.63)

    result = await process_scheduled_offers(session_maker, notifier, settings=settings, clock=clock)

    assert result.notified == 2
    assert sorted(e for e, _ in notifier.sent) == [endpoint_url(1), endpoint_url(3)]
