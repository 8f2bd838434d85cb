import asyncio

from app.utils.realtime import Broker, ChangeEvent, ChangeType


def _event(record_id="e-1"):
    return ChangeEvent(table="exams", type=ChangeType.INSERT, record_id=record_id)


def test_each_subscriber_receives_every_event():
    broker = Broker("tests")
    sync_seen, async_seen = [], []

    async def async_callback(event):
        async_seen.append(event.record_id)

    broker.subscribe(lambda event: sync_seen.append(event.record_id))
    broker.subscribe(async_callback)

    asyncio.run(broker.publish(_event("e-1")))
    asyncio.run(broker.publish(_event("e-2")))

    assert sync_seen == ["e-1", "e-2"]
    assert async_seen == ["e-1", "e-2"]


def test_unsubscribe_stops_delivery():
    broker = Broker("tests")
    seen = []
    subscription = broker.subscribe(seen.append)

    subscription.unsubscribe()
    subscription.unsubscribe()
    asyncio.run(broker.publish(_event()))

    assert seen == []
    assert broker.subscriber_count == 0


def test_failing_subscriber_does_not_block_others():
    broker = Broker("tests")
    seen = []

    def broken(event):
        raise RuntimeError("falhou")

    broker.subscribe(broken)
    broker.subscribe(seen.append)

    asyncio.run(broker.publish(_event()))

    assert len(seen) == 1
