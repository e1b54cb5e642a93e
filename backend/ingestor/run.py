"""MQTT -> dashboard bridge.

Devices publish ``{"temperature": 23.4, "humidity": 51.0}`` to
``devices/<deviceId>/telemetry``. Devices carry no credentials of their own:
the bridge logs in with an admin account and forwards every reading through
``POST /api/data``.

Usage:
    INGESTOR_EMAIL=admin@example.com INGESTOR_PASSWORD=... python -m ingestor.run
"""
import asyncio
import json
import logging
import os
from typing import Tuple

import aiomqtt

from dashboard_client import ApiClient, ApiError, TokenStore

LOG = logging.getLogger("ingestor")

MQTT_HOST = os.getenv("MQTT__HOST", "localhost")
MQTT_PORT = int(os.getenv("MQTT__PORT", "1883"))
TOPIC = os.getenv("MQTT__TOPIC", "devices/+/telemetry")
RECONNECT_DELAY = 3


def parse_message(topic: str, payload: bytes) -> Tuple[str, float, float] | None:
    parts = topic.split("/")  # devices {deviceId} telemetry
    if len(parts) < 3 or not parts[-2]:
        LOG.warning("ignoring message on unexpected topic %s", topic)
        return None
    device_id = parts[-2]
    try:
        body = json.loads(payload.decode())
        return device_id, float(body["temperature"]), float(body["humidity"])
    except (UnicodeDecodeError, ValueError, KeyError, TypeError) as e:
        LOG.warning("dropping malformed reading from %s: %s", device_id, e)
        return None


class Bridge:
    def __init__(self, api: ApiClient, email: str, password: str):
        self.api = api
        self.email = email
        self.password = password

    async def login(self):
        await asyncio.to_thread(self.api.login, self.email, self.password)
        LOG.info("bridge logged in as %s", self.email)

    async def forward(self, device_id: str, temperature: float, humidity: float):
        try:
            return await asyncio.to_thread(self.api.create_reading, device_id, temperature, humidity)
        except ApiError as e:
            if e.status != 401:
                raise
        # token expired or was never stored
        await self.login()
        return await asyncio.to_thread(self.api.create_reading, device_id, temperature, humidity)

    async def handle_message(self, topic: str, payload: bytes) -> bool:
        reading = parse_message(topic, payload)
        if reading is None:
            return False
        try:
            await self.forward(*reading)
        except ApiError as e:
            LOG.warning("could not store reading from %s: %s", reading[0], e.message)
            return False
        LOG.debug("forwarded %s", reading)
        return True


async def main():
    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO").upper(),
                        format="%(asctime)s %(levelname)s %(name)s %(message)s")
    api = ApiClient(token_store=TokenStore(os.getenv("INGESTOR_STORAGE")))
    bridge = Bridge(api, os.environ["INGESTOR_EMAIL"], os.environ["INGESTOR_PASSWORD"])
    await bridge.login()
    while True:
        try:
            async with aiomqtt.Client(MQTT_HOST, MQTT_PORT) as client:
                await client.subscribe(TOPIC, qos=1)
                LOG.info("subscribed to %s on %s:%d", TOPIC, MQTT_HOST, MQTT_PORT)
                async for m in client.messages:
                    await bridge.handle_message(m.topic.value, m.payload)
        except aiomqtt.MqttError as e:
            LOG.warning("broker connection lost (%s), retrying in %ds", e, RECONNECT_DELAY)
            await asyncio.sleep(RECONNECT_DELAY)


if __name__ == "__main__":
    asyncio.run(main())
