"""Tests for waiting until the target UI has settled."""

import pytest

from errors import StabilityTimeoutError
from stability import (
    FIELD, HEADER, ITEM, SAVE, FixedDelaySettler, PollingSettler, build_settler, tree_unchanged, wait_until_stable,
)
from fakes import FakeUIDriver


@pytest.mark.asyncio
async def test_returns_as_soon_as_predicate_holds():
    answers = iter([False, False, True])

    async def predicate(driver):
        return next(answers)

    polls = await wait_until_stable(FakeUIDriver(), predicate, timeout=1.0, poll_interval=0.001)
    assert polls == 3


@pytest.mark.asyncio
async def test_raises_timeout_error_when_budget_is_spent():
    async def never(driver):
        return False

    with pytest.raises(StabilityTimeoutError):
        await wait_until_stable(FakeUIDriver(), never, timeout=0.02, poll_interval=0.005)


@pytest.mark.asyncio
async def test_stability_timeout_is_a_timeout_error():
    async def never(driver):
        return False

    with pytest.raises(TimeoutError):
        await wait_until_stable(FakeUIDriver(), never, timeout=0.01, poll_interval=0.005)


@pytest.mark.asyncio
async def test_tree_unchanged_needs_two_identical_snapshots():
    driver = FakeUIDriver()
    predicate = tree_unchanged("w-erp")

    assert await predicate(driver) is False
    assert await predicate(driver) is True
    assert driver.reads == [("get_window_details", "w-erp")] * 2


@pytest.mark.asyncio
async def test_polling_settler_waits_for_unchanged_tree():
    driver = FakeUIDriver()
    await PollingSettler(driver, "w-erp", timeout=1.0, poll_interval=0.001).settle("item")
    assert len(driver.reads) == 2


def test_build_settler_follows_settle_mode(pipeline_settings):
    driver = FakeUIDriver()
    assert isinstance(build_settler(pipeline_settings, driver, "w-erp"), FixedDelaySettler)
    poll_settings = pipeline_settings.model_copy(update={"settle_mode": "poll"})
    assert isinstance(build_settler(poll_settings, driver, "w-erp"), PollingSettler)


@pytest.mark.asyncio
async def test_fixed_delay_settler_sleeps_the_configured_delay_per_moment(pipeline_settings, monkeypatch):
    slept = []

    async def fake_sleep(seconds):
        slept.append(seconds)

    monkeypatch.setattr("stability.asyncio.sleep", fake_sleep)
    settings = pipeline_settings.model_copy(update={
        "header_settle_delay": 0.5, "field_settle_delay": 0.2, "item_settle_delay": 1.0, "save_settle_delay": 0,
    })
    settler = build_settler(settings, FakeUIDriver(), "w-erp")

    for moment in (HEADER, FIELD, ITEM, SAVE):
        await settler.settle(moment)

    assert slept == [0.5, 0.2, 1.0]
