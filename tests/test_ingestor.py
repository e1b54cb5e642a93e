import asyncio
import json
import random

import pytest

from dashboard_client import ApiError
from ingestor.run import Bridge, parse_message
from sim_device import build_reading, topic_for


class FakeApi:
    def __init__(self, fail_first_with=None):
        self.created = []
        self.logins = []
        self.fail_first_with = fail_first_with

    def login(self, email, password):
        self.logins.append(email)
        return {"token": "t"}

    def create_reading(self, device_id, temperature, humidity):
        if self.fail_first_with is not None:
            err, self.fail_first_with = self.fail_first_with, None
            raise err
        self.created.append((device_id, temperature, humidity))
        return {"deviceId": device_id}


def test_parse_message():
    payload = json.dumps({"temperature": 22.5, "humidity": "41"}).encode()
    assert parse_message("devices/device001/telemetry", payload) == ("device001", 22.5, 41.0)


@pytest.mark.parametrize("topic,payload", [
    ("telemetry", b'{"temperature": 1, "humidity": 2}'),
    ("devices//telemetry", b'{"temperature": 1, "humidity": 2}'),
    ("devices/d1/telemetry", b"not json"),
    ("devices/d1/telemetry", b'{"temperature": 1}'),
    ("devices/d1/telemetry", b'{"temperature": "warm", "humidity": 2}'),
    ("devices/d1/telemetry", b'\xff\xfe'),
])
def test_parse_message_rejects_bad_input(topic, payload):
    assert parse_message(topic, payload) is None


def test_bridge_forwards_reading():
    api = FakeApi()
    bridge = Bridge(api, "bridge@example.com", "pw")
    ok = asyncio.run(bridge.handle_message("devices/d1/telemetry", b'{"temperature": 1, "humidity": 2}'))
    assert ok is True
    assert api.created == [("d1", 1.0, 2.0)]


def test_bridge_logs_in_again_on_401():
    api = FakeApi(fail_first_with=ApiError("Not authorized, token expired", 401))
    bridge = Bridge(api, "bridge@example.com", "pw")
    assert asyncio.run(bridge.handle_message("devices/d1/telemetry", b'{"temperature": 1, "humidity": 2}'))
    assert api.logins == ["bridge@example.com"]
    assert api.created == [("d1", 1.0, 2.0)]


def test_bridge_drops_rejected_reading():
    api = FakeApi(fail_first_with=ApiError("Not authorized to access this route", 403))
    bridge = Bridge(api, "viewer@example.com", "pw")
    assert asyncio.run(bridge.handle_message("devices/d1/telemetry", b'{"temperature": 1, "humidity": 2}')) is False
    assert api.logins == []
    assert api.created == []


def test_bridge_ignores_malformed_message():
    api = FakeApi()
    assert asyncio.run(Bridge(api, "e", "p").handle_message("devices/d1/telemetry", b"{}")) is False
    assert api.created == []


def test_simulated_device_speaks_bridge_format():
    reading = build_reading(random.Random(7))
    assert 15 <= reading["temperature"] <= 35
    assert 30 <= reading["humidity"] <= 90
    parsed = parse_message(topic_for("device042"), json.dumps(reading).encode())
    assert parsed == ("device042", reading["temperature"], reading["humidity"])
