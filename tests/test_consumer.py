import pytest
import redis

from contentwatch.consumer import StreamConsumer
from contentwatch.events import ModerationEvent


class FakeRedis:
    def __init__(self):
        self.errors = {}
        self.group_calls = []
        self.acked = []
        self.pending = []
        self.claimable = {}
        self.claim_calls = []
        self.batches = []

    def _check(self, name):
        if name in self.errors:
            raise self.errors[name]

    def xgroup_create(self, name, groupname, id="$", mkstream=False):
        self.group_calls.append((name, groupname, id, mkstream))
        self._check("xgroup_create")

    def xack(self, name, groupname, *ids):
        self._check("xack")
        self.acked.extend(ids)
        return len(ids)

    def xpending_range(self, name, groupname, min, max, count):
        self._check("xpending_range")
        return [{"message_id": mid} for mid in self.pending[:count]]

    def xclaim(self, name, groupname, consumername, min_idle_time, message_ids):
        self.claim_calls.append((name, groupname, consumername, min_idle_time, message_ids))
        self._check("xclaim")
        return [(mid, self.claimable[mid]) for mid in message_ids if mid in self.claimable]

    def xreadgroup(self, groupname, consumername, streams, count=None, block=None):
        self._check("xreadgroup")
        batch = self.batches.pop(0)
        if isinstance(batch, BaseException):
            raise batch
        return batch


def event_fields(**kwargs):
    return {"event": ModerationEvent(**kwargs).to_json()}


@pytest.fixture
def client():
    return FakeRedis()


@pytest.fixture
def consumer(client):
    return StreamConsumer(client, "uploads", consumer_name="worker")


def test_default_consumer_name_and_group(client):
    made = StreamConsumer(client, "uploads")
    assert made.consumer_name.startswith("consumer-")
    assert made.group == "moderation_group"


def test_ensure_group_creates_stream(consumer, client):
    consumer.ensure_group()
    assert client.group_calls == [("uploads", "moderation_group", "$", True)]
    fields = event_fields(filename="text_1", type="text", content="hello")
    assert consumer.process_message("0-1", fields) is True
    assert client.acked == ["0-1"]


def test_ensure_group_tolerates_existing_group(consumer, client):
    client.errors["xgroup_create"] = redis.ResponseError(
        "BUSYGROUP Consumer Group name already exists"
    )
    consumer.ensure_group()
    assert len(client.group_calls) == 1
    client.pending = []
    assert consumer.claim_pending() == 0


def test_ensure_group_raises_other_errors(consumer, client):
    client.errors["xgroup_create"] = redis.ResponseError("WRONGTYPE not a stream")
    with pytest.raises(redis.ResponseError, match="WRONGTYPE"):
        consumer.ensure_group()


def test_clean_text_is_acknowledged(consumer, client):
    fields = event_fields(filename="text_1", type="text", content="a nice day")
    assert consumer.process_message("1-0", fields) is True
    assert client.acked == ["1-0"]


def test_banned_text_is_not_acknowledged(consumer, client):
    fields = event_fields(filename="text_1", type="text", content="pure hate")
    assert consumer.process_message("1-0", fields) is False
    assert client.acked == []


def test_image_is_moderated_by_filename(consumer, client):
    good = event_fields(filename="1_cat.png", path="uploads/1_cat.png", type="image")
    bad = event_fields(filename="1_cat.bmp", path="uploads/1_cat.bmp", type="image")
    assert consumer.process_message(b"2-0", good) is True
    assert consumer.process_message(b"3-0", bad) is False
    assert client.acked == [b"2-0"]


def test_bytes_fields_are_accepted(consumer, client):
    raw = ModerationEvent("c.mp4", "uploads/c.mp4", "video").to_json().encode()
    assert consumer.process_message(b"4-0", {b"event": raw}) is True
    assert client.acked == [b"4-0"]


@pytest.mark.parametrize(
    "fields",
    [
        {},
        None,
        {"other": "x"},
        {"event": "not json"},
        {"event": '{"type":"audio","filename":"a.mp3"}'},
    ],
)
def test_unusable_messages_are_skipped(consumer, client, fields):
    assert consumer.process_message("5-0", fields) is False
    assert client.acked == []


def test_ack_failure_reports_false(consumer, client):
    client.errors["xack"] = redis.ConnectionError("down")
    fields = event_fields(filename="text_1", type="text", content="fine")
    assert consumer.process_message("6-0", fields) is False


def test_claim_pending_processes_claimed_messages(consumer, client):
    client.pending = ["7-0", "8-0"]
    client.claimable = {
        "7-0": event_fields(filename="t", type="text", content="ok"),
        "8-0": event_fields(filename="t", type="text", content="spam"),
    }
    assert consumer.claim_pending() == 1
    assert client.acked == ["7-0"]
    assert client.claim_calls[0] == ("uploads", "moderation_group", "worker", 30000, ["7-0"])


def test_claim_pending_survives_errors(consumer, client):
    client.errors["xpending_range"] = redis.ConnectionError("down")
    assert consumer.claim_pending() == 0
    assert client.claim_calls == []


def test_claim_error_skips_message(consumer, client):
    client.pending = ["9-0"]
    client.errors["xclaim"] = redis.ResponseError("NOGROUP")
    assert consumer.claim_pending() == 0
    assert len(client.claim_calls) == 1


def test_poll_reads_and_acknowledges(consumer, client):
    client.batches = [
        [
            [
                "uploads",
                [
                    ("10-0", event_fields(filename="t", type="text", content="hello")),
                    ("11-0", event_fields(filename="x.gif", path="p", type="image")),
                    ("12-0", {"event": "{"}),
                ],
            ]
        ]
    ]
    assert consumer.poll() == 2
    assert client.acked == ["10-0", "11-0"]


def test_poll_read_error_returns_claimed_count(consumer, client):
    client.errors["xreadgroup"] = redis.ConnectionError("down")
    assert consumer.poll() == 0
    assert client.acked == []


def test_run_creates_group_and_keeps_polling(consumer, client):
    client.batches = [
        [["uploads", [("13-0", event_fields(filename="t", type="text", content="hi"))]]],
        KeyboardInterrupt(),
    ]
    with pytest.raises(KeyboardInterrupt):
        consumer.run()
    assert client.group_calls[0][0] == "uploads"
    assert client.acked == ["13-0"]