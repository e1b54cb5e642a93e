"""Temperature/humidity device simulator.

Publishes one reading every few seconds to devices/<DEVICE_ID>/telemetry.
The ingestor bridge picks it up and stores it through an admin account.

Requires paho-mqtt:
    pip install paho-mqtt
    DEVICE_ID=device001 python sim_device.py
"""
import json
import logging
import os
import random
import time

from paho.mqtt import client as mqtt

LOG = logging.getLogger("sim_device")

# --- CONFIG ---
BROKER_HOST = os.getenv("MQTT__HOST", "localhost")
BROKER_PORT = int(os.getenv("MQTT__PORT", "1883"))
DEVICE_ID = os.getenv("DEVICE_ID", "device001")
PUBLISH_INTERVAL = 2  # seconds


def topic_for(device_id: str) -> str:
    return f"devices/{device_id}/telemetry"


def build_reading(rng: random.Random = random) -> dict:
    return {
        "temperature": round(rng.uniform(15, 35), 1),
        "humidity": round(rng.uniform(30, 90), 1),
        "ts": int(time.time()),
    }


def on_connect(c, userdata, flags, reason_code, properties):
    if reason_code == 0:
        LOG.info("connected to %s:%d", BROKER_HOST, BROKER_PORT)
    else:
        LOG.warning("connect failed: %s", reason_code)


def main():
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
    client = mqtt.Client(mqtt.CallbackAPIVersion.VERSION2)
    client.on_connect = on_connect
    while True:
        try:
            client.connect(BROKER_HOST, BROKER_PORT, 60)
            break
        except OSError as e:
            LOG.warning("connect error, retrying in 3s: %s", e)
            time.sleep(3)
    client.loop_start()
    topic = topic_for(DEVICE_ID)
    try:
        while True:
            payload = build_reading()
            client.publish(topic, json.dumps(payload), qos=1)
            LOG.info("sent %s", payload)
            time.sleep(PUBLISH_INTERVAL)
    except KeyboardInterrupt:
        LOG.info("stopping...")
    finally:
        client.loop_stop()
        client.disconnect()


if __name__ == "__main__":
    main()
