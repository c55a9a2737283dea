import asyncio

import pytest

from enhance_gateway.admission import AdmissionController
from enhance_gateway.config import Config
from enhance_gateway.models import Accepted, QuotaExceeded, Throttled


def make_config(
    quota_limit: int = 50,
    quota_window_seconds: float = 3600.0,
    min_interval_seconds: float = 2.0,
) -> Config:
    return Config(
        api_keys=["k1"],
        quota_limit=quota_limit,
        quota_window_seconds=quota_window_seconds,
        min_interval_seconds=min_interval_seconds,
    )


@pytest.mark.asyncio
async def test_first_request_is_accepted_and_recorded():
    controller = AdmissionController(make_config())

    verdict = await controller.admit("1.2.3.4", now=10.0)

    assert verdict == Accepted()
    record = controller.get_record("1.2.3.4")
    assert record is not None
    assert record.request_count == 1
    assert record.last_request_at == 10.0


@pytest.mark.asyncio
async def test_quick_second_request_is_throttled_without_consuming_quota():
    controller = AdmissionController(make_config(min_interval_seconds=2.0))

    await controller.admit("1.2.3.4", now=10.0)
    verdict = await controller.admit("1.2.3.4", now=10.5)

    assert isinstance(verdict, Throttled)
    assert verdict.retry_after == 2
    record = controller.get_record("1.2.3.4")
    assert record.request_count == 1
    assert record.last_request_at == 10.0


@pytest.mark.asyncio
async def test_throttle_retry_after_rounds_up():
    controller = AdmissionController(make_config(min_interval_seconds=5.0))

    await controller.admit("1.2.3.4", now=0.0)
    verdict = await controller.admit("1.2.3.4", now=3.9)

    assert verdict == Throttled(retry_after=2)


@pytest.mark.asyncio
async def test_request_after_min_interval_is_accepted():
    controller = AdmissionController(make_config(min_interval_seconds=2.0))

    await controller.admit("1.2.3.4", now=0.0)
    verdict = await controller.admit("1.2.3.4", now=2.0)

    assert verdict == Accepted()
    assert controller.get_record("1.2.3.4").request_count == 2


@pytest.mark.asyncio
async def test_quota_limit_and_hourly_reset():
    controller = AdmissionController(
        make_config(quota_limit=50, quota_window_seconds=3600.0), started_at=0.0
    )

    for i in range(50):
        verdict = await controller.admit("1.2.3.4", now=i * 2.0)
        assert verdict == Accepted()

    verdict = await controller.admit("1.2.3.4", now=100.0)
    assert verdict == QuotaExceeded(retry_after=3500)
    assert controller.get_record("1.2.3.4").request_count == 50

    await controller.reset_quotas(now=3600.0)

    verdict = await controller.admit("1.2.3.4", now=3601.0)
    assert verdict == Accepted()
    assert controller.get_record("1.2.3.4").request_count == 1


@pytest.mark.asyncio
async def test_throttle_is_checked_before_quota():
    controller = AdmissionController(make_config(quota_limit=1, min_interval_seconds=2.0))

    await controller.admit("1.2.3.4", now=0.0)
    verdict = await controller.admit("1.2.3.4", now=1.0)

    assert isinstance(verdict, Throttled)


@pytest.mark.asyncio
async def test_identities_are_independent():
    controller = AdmissionController(make_config(quota_limit=1))

    assert await controller.admit("1.1.1.1", now=0.0) == Accepted()
    assert await controller.admit("2.2.2.2", now=0.0) == Accepted()
    assert isinstance(await controller.admit("1.1.1.1", now=10.0), QuotaExceeded)


@pytest.mark.asyncio
async def test_reset_quotas_keeps_throttle_state():
    controller = AdmissionController(make_config(quota_limit=1, min_interval_seconds=2.0))

    await controller.admit("1.2.3.4", now=0.0)
    reset = await controller.reset_quotas(now=0.5)
    verdict = await controller.admit("1.2.3.4", now=1.0)

    assert reset == 1
    assert isinstance(verdict, Throttled)
    assert controller.get_record("1.2.3.4").last_request_at == 0.0


@pytest.mark.asyncio
async def test_quota_retry_after_follows_latest_reset():
    controller = AdmissionController(
        make_config(quota_limit=1, quota_window_seconds=60.0), started_at=0.0
    )

    await controller.reset_quotas(now=120.0)
    await controller.admit("1.2.3.4", now=120.0)
    verdict = await controller.admit("1.2.3.4", now=150.0)

    assert verdict == QuotaExceeded(retry_after=30)


@pytest.mark.asyncio
async def test_quota_retry_after_is_at_least_one_second():
    controller = AdmissionController(
        make_config(quota_limit=1, quota_window_seconds=60.0), started_at=0.0
    )

    await controller.admit("1.2.3.4", now=0.0)
    verdict = await controller.admit("1.2.3.4", now=75.0)

    assert verdict == QuotaExceeded(retry_after=1)


@pytest.mark.asyncio
async def test_evict_idle_removes_stale_identities():
    controller = AdmissionController(make_config())

    await controller.admit("old", now=0.0)
    await controller.admit("fresh", now=950.0)
    await controller.reset_quotas(now=960.0)

    evicted = await controller.evict_idle(now=1000.0, cutoff=900.0)

    assert evicted == ["old"]
    assert controller.get_record("old") is None
    assert controller.get_record("fresh") is not None
    assert controller.tracked_identities() == 1


@pytest.mark.asyncio
async def test_concurrent_admissions_never_exceed_quota():
    controller = AdmissionController(make_config(quota_limit=10, min_interval_seconds=0.0))

    verdicts = await asyncio.gather(
        *[controller.admit("1.2.3.4", now=float(i)) for i in range(25)]
    )

    accepted = [v for v in verdicts if v == Accepted()]
    assert len(accepted) == 10
    assert controller.get_record("1.2.3.4").request_count == 10
