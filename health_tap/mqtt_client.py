from __future__ import annotations

from collections.abc import Hashable
import json
import logging
import ssl
import threading
from typing import Any

import paho.mqtt.client as mqtt

from health_tap.config import MqttConfig
from health_tap.models import HealthSnapshot
from health_tap.registry import DeadListenerError, DeathRecipient


class MqttSnapshotListener:
    """Listener that publishes every delivered snapshot to an MQTT broker.

    Closing the listener counts as its death: registered death recipients are
    notified so the service drops it.
    """

    def __init__(self, config: MqttConfig) -> None:
        self.config = config
        self.identity: Hashable = f"mqtt:{config.client_id}"
        self.client = mqtt.Client(
            mqtt.CallbackAPIVersion.VERSION2,
            client_id=config.client_id,
            protocol=mqtt.MQTTv311,
        )
        self.logger = logging.getLogger(self.__class__.__name__)
        self._connected = False
        self._closed = False
        self._lock = threading.Lock()
        self._recipients: list[DeathRecipient] = []

        self.client.on_connect = self._on_connect
        self.client.on_disconnect = self._on_disconnect

        if config.username:
            self.client.username_pw_set(config.username, config.password)
        if config.tls_enabled:
            self.client.tls_set(
                ca_certs=config.ca_cert,
                cert_reqs=ssl.CERT_REQUIRED,
            )

        # Last Will and Testament for availability
        self.client.will_set(
            self._availability_topic,
            payload="offline",
            qos=1,
            retain=True,
        )
        self.client.reconnect_delay_set(min_delay=1, max_delay=120)

    @property
    def _availability_topic(self) -> str:
        return f"{self.config.base_topic}/status"

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def closed(self) -> bool:
        return self._closed

    def _on_connect(
        self,
        client: mqtt.Client,
        userdata: Any,
        flags: Any,
        reason_code: Any,
        properties: Any = None,
    ) -> None:
        if not reason_code.is_failure:
            self._connected = True
            self.logger.info(
                "Connected to MQTT broker %s:%s", self.config.host, self.config.port
            )
            self.client.publish(
                self._availability_topic,
                payload="online",
                qos=1,
                retain=True,
            )
        else:
            self._connected = False
            self.logger.error("Failed to connect to MQTT broker: %s", reason_code)

    def _on_disconnect(
        self,
        client: mqtt.Client,
        userdata: Any,
        flags: Any,
        reason_code: Any,
        properties: Any = None,
    ) -> None:
        self._connected = False
        if self._closed or not reason_code.is_failure:
            self.logger.info("Disconnected from MQTT broker (clean)")
        else:
            self.logger.warning(
                "Unexpectedly disconnected from MQTT broker: %s. "
                "Will attempt to reconnect.",
                reason_code,
            )

    def connect(self) -> None:
        self.logger.info(
            "Connecting to MQTT broker %s:%s", self.config.host, self.config.port
        )
        self.client.connect(
            self.config.host,
            self.config.port,
            keepalive=self.config.keepalive,
        )
        # Background network loop handles reconnects
        self.client.loop_start()

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            recipients = list(self._recipients)
            self._recipients.clear()
        if self._connected:
            self.client.publish(
                self._availability_topic,
                payload="offline",
                qos=1,
                retain=True,
            )
        self.client.loop_stop()
        self.client.disconnect()
        self.logger.info("Disconnected from MQTT broker")
        for recipient in recipients:
            recipient(self.identity)

    def link_to_death(self, recipient: DeathRecipient) -> bool:
        with self._lock:
            if self._closed:
                return False
            if recipient not in self._recipients:
                self._recipients.append(recipient)
        return True

    def unlink_to_death(self, recipient: DeathRecipient) -> None:
        with self._lock:
            if recipient in self._recipients:
                self._recipients.remove(recipient)

    def deliver(self, snapshot: HealthSnapshot) -> None:
        if self._closed:
            raise DeadListenerError(f"{self.identity} is closed")
        self.publish(json.dumps(snapshot.to_dict()))

    def publish(self, payload: str) -> bool:
        if not self._connected:
            self.logger.warning(
                "Not connected to MQTT broker, message may be queued"
            )
        self.logger.debug("Publishing health snapshot to %s", self.config.base_topic)
        result = self.client.publish(
            self.config.base_topic,
            payload=payload,
            qos=self.config.qos,
            retain=self.config.retain,
        )
        if result.rc != mqtt.MQTT_ERR_SUCCESS:
            self.logger.error("Failed to publish message, error code: %s", result.rc)
            return False
        return True
