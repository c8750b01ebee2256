"""Tests for the multi-destination fan-out."""

import asyncio
import pytest

from video_digest.delivery.base import MockDeliveryProvider
from video_digest.delivery.fanout import FanOut
from video_digest.errors import ConfigError, TransportError, ErrorCode


class RecordingSleep:
    def __init__(self):
        self.calls = []

    async def __call__(self, seconds):
        self.calls.append(seconds)


@pytest.fixture
def sleep():
    return RecordingSleep()


def test_outcomes_follow_destination_order(sleep):
    provider = MockDeliveryProvider()
    fan_out = FanOut(provider, sleep=sleep)

    report = asyncio.run(fan_out.deliver("Hi", "111, 222 ;333"))

    assert [o.destination for o in report.outcomes] == ["111", "222", "333"]
    assert report.success_count == 3
    assert report.interrupted is False
    assert [s["message"] for s in provider.sends] == ["Hi", "Hi", "Hi"]


def test_pacing_between_consecutive_sends(sleep):
    fan_out = FanOut(MockDeliveryProvider(), sleep=sleep)
    asyncio.run(fan_out.deliver("Hi", "1,2,3"))
    assert sleep.calls == [10, 10]


def test_no_pause_for_single_destination(sleep):
    fan_out = FanOut(MockDeliveryProvider(), sleep=sleep)
    asyncio.run(fan_out.deliver("Hi", "1"))
    assert sleep.calls == []


def test_zero_pacing_skips_sleep(sleep):
    fan_out = FanOut(MockDeliveryProvider(), pacing_seconds=0, sleep=sleep)
    asyncio.run(fan_out.deliver("Hi", "1,2"))
    assert sleep.calls == []


def test_failed_destinations_do_not_fail_the_call(sleep):
    provider = MockDeliveryProvider(reject=["1", "2"])
    report = asyncio.run(FanOut(provider, sleep=sleep).deliver("Hi", "1,2"))

    assert report.success_count == 0
    assert report.failure_count == 2
    assert report.failed_destinations == ["1", "2"]
    assert report.outcomes[0].error_detail == "HTTP 400: rejected"


def test_mixed_outcomes(sleep):
    provider = MockDeliveryProvider(reject=["2"])
    report = asyncio.run(FanOut(provider, sleep=sleep).deliver("Hi", "1,2,3"))

    assert [o.succeeded for o in report.outcomes] == [True, False, True]


def test_transport_error_aborts_with_partial_report(sleep):
    """Later destinations are not attempted; earlier outcomes are kept."""
    provider = MockDeliveryProvider(reject=["1"], raise_on=["2"])
    fan_out = FanOut(provider, sleep=sleep)

    with pytest.raises(TransportError) as exc:
        asyncio.run(fan_out.deliver("Hi", "1,2,3"))

    assert [s["destination"] for s in provider.sends] == ["1", "2"]
    report = exc.value.report
    assert [o.destination for o in report.outcomes] == ["1"]
    assert report.outcomes[0].succeeded is False


@pytest.mark.parametrize("raw", [None, "", " , ;; ,"])
def test_empty_destination_list_raises(raw, sleep):
    provider = MockDeliveryProvider()
    with pytest.raises(ConfigError) as exc:
        asyncio.run(FanOut(provider, sleep=sleep).deliver("Hi", raw))

    assert exc.value.code == ErrorCode.CONFIG_MISSING_REQUIRED_FIELD
    assert provider.sends == []


def test_stop_event_prevents_new_destinations():
    async def scenario():
        stop_event = asyncio.Event()

        class StopAfterFirst(MockDeliveryProvider):
            async def send(self, message, destination):
                outcome = await super().send(message, destination)
                stop_event.set()
                return outcome

        provider = StopAfterFirst()
        fan_out = FanOut(provider, pacing_seconds=10, stop_event=stop_event)
        report = await fan_out.deliver("Hi", "1,2,3")
        return provider, report

    provider, report = asyncio.run(scenario())

    assert [s["destination"] for s in provider.sends] == ["1"]
    assert report.interrupted is True
    assert len(report.outcomes) == 1


def test_unset_stop_event_waits_for_pacing():
    async def scenario():
        stop_event = asyncio.Event()
        provider = MockDeliveryProvider()
        fan_out = FanOut(provider, pacing_seconds=0.01, stop_event=stop_event)
        return await fan_out.deliver("Hi", "1,2")

    report = asyncio.run(scenario())
    assert report.success_count == 2
    assert report.interrupted is False
