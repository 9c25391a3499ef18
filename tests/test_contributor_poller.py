"""Tests for the contributor statistics poller."""
import pytest
from org_metrics.application.contributor_poller import ContributorStatsPoller
from org_metrics.domain.models import ContributorStatsResponse, ContributorStatus


READY_5 = ContributorStatsResponse(status_code=200, contributors_count=5)
COMPUTING = ContributorStatsResponse(status_code=202)
SERVER_ERROR = ContributorStatsResponse(status_code=500)


def make_fetcher(responses):
    """Return a fetcher replaying per-repository responses, plus its call log."""
    queues = {name: list(items) for name, items in responses.items()}
    calls = []

    async def fetch(name):
        calls.append(name)
        return queues[name].pop(0)

    return fetch, calls


def make_sleeper():
    delays = []

    async def sleep(seconds):
        delays.append(seconds)

    return sleep, delays


@pytest.mark.asyncio
async def test_computing_then_ready_records_count():
    fetch, calls = make_fetcher({"x": [COMPUTING, READY_5]})
    sleep, delays = make_sleeper()
    poller = ContributorStatsPoller(fetch, retry_delay=60, sleep=sleep)

    states = await poller.poll(["x"])

    assert states["x"].status is ContributorStatus.DONE
    assert states["x"].contributors_count == 5
    assert states["x"].attempts == 2
    assert delays == [60]
    assert calls == ["x", "x"]


@pytest.mark.asyncio
async def test_other_status_fails_without_retry():
    fetch, calls = make_fetcher({"broken": [SERVER_ERROR], "ok": [READY_5]})
    sleep, delays = make_sleeper()
    poller = ContributorStatsPoller(fetch, sleep=sleep)

    states = await poller.poll(["broken", "ok"])

    assert states["broken"].status is ContributorStatus.FAILED
    assert states["broken"].contributors_count == 0
    assert states["broken"].last_status_code == 500
    assert states["ok"].status is ContributorStatus.DONE
    assert calls == ["broken", "ok"]
    assert delays == []


@pytest.mark.asyncio
async def test_waiting_repositories_are_retried_as_a_batch():
    fetch, calls = make_fetcher({
        "a": [COMPUTING, COMPUTING, READY_5],
        "b": [COMPUTING, ContributorStatsResponse(status_code=200, contributors_count=2)],
        "c": [READY_5],
    })
    sleep, delays = make_sleeper()
    poller = ContributorStatsPoller(fetch, retry_delay=1, sleep=sleep)

    states = await poller.poll(["a", "b", "c"])

    assert calls == ["a", "b", "c", "a", "b", "a"]
    assert len(delays) == 2
    assert states["a"].contributors_count == 5
    assert states["b"].contributors_count == 2


@pytest.mark.asyncio
async def test_retry_ceiling_marks_remaining_as_failed():
    fetch, calls = make_fetcher({"slow": [COMPUTING] * 4})
    sleep, delays = make_sleeper()
    poller = ContributorStatsPoller(fetch, retry_delay=1, max_retries=3, sleep=sleep)

    states = await poller.poll(["slow"])

    assert states["slow"].status is ContributorStatus.FAILED
    assert states["slow"].contributors_count == 0
    assert states["slow"].attempts == 4
    assert len(delays) == 3


@pytest.mark.asyncio
async def test_no_ceiling_keeps_polling_until_ready():
    fetch, calls = make_fetcher({"slow": [COMPUTING] * 25 + [READY_5]})
    sleep, delays = make_sleeper()
    poller = ContributorStatsPoller(fetch, retry_delay=1, max_retries=None, sleep=sleep)

    states = await poller.poll(["slow"])

    assert states["slow"].status is ContributorStatus.DONE
    assert len(delays) == 25
