"""MQTT adapter encapsulating paho-mqtt client usage.

Channel paths map onto retained topics below ``base_topic`` so that the broker
keeps the latest value of every entry, giving the bus its key-value semantics.
"""

from __future__ import annotations

import asyncio
import dataclasses
import json
import logging
import threading
from typing import Any, Callable, Dict, List, Optional

import paho.mqtt.client as mqtt

from ..config import BusConfig
from ..core import TransportError, ValueKind, coerce_value, is_struct

LOGGER = logging.getLogger(__name__)


class MQTTConnectionError(TransportError):
    """Raised when the MQTT client fails to establish a connection."""


def _reason_value(reason_code: Any) -> int:
    return int(getattr(reason_code, "value", reason_code))


def encode_value(value: Any) -> bytes:
    if is_struct(value):
        value = dataclasses.asdict(value)
    return json.dumps(value, separators=(",", ":")).encode("utf-8")


def decode_value(payload: bytes) -> Any:
    return json.loads(payload.decode("utf-8"))


class MQTTClient:
    """Async-friendly wrapper over the threaded paho-mqtt client."""

    def __init__(
        self,
        config: BusConfig,
        *,
        client_id: str,
        keepalive: int = 60,
    ) -> None:
        self.config = config
        self.client_id = client_id
        self.keepalive = keepalive

        self._client: Optional[mqtt.Client] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._connected_event: Optional[asyncio.Event] = None
        self._disconnect_event: Optional[asyncio.Event] = None
        self._message_handler: Optional[Callable[[str, bytes], None]] = None
        self._last_connect_rc: Optional[int] = None
        self._connected: bool = False
        self._disconnect_handlers: List[Callable[[int], None]] = []

    async def connect(self, timeout: float = 30.0) -> None:
        """Connect to the MQTT broker and wait for acknowledgement."""

        self._loop = asyncio.get_running_loop()
        self._connected_event = asyncio.Event()
        self._disconnect_event = asyncio.Event()
        self._last_connect_rc = None

        client = mqtt.Client(mqtt.CallbackAPIVersion.VERSION2, client_id=self.client_id)
        client.enable_logger(LOGGER)

        if self.config.username:
            client.username_pw_set(self.config.username, self.config.password)

        client.on_connect = self._on_connect
        client.on_disconnect = self._on_disconnect
        client.on_message = self._on_message

        self._client = client

        LOGGER.info(
            "Connecting to MQTT broker %s:%s",
            self.config.broker_host,
            self.config.broker_port,
        )

        client.connect_async(
            self.config.broker_host, self.config.broker_port, self.keepalive
        )
        client.loop_start()

        try:
            await asyncio.wait_for(self._connected_event.wait(), timeout=timeout)
            if self._last_connect_rc is None or self._last_connect_rc != 0:
                raise MQTTConnectionError(
                    f"MQTT broker rejected connection (rc={self._last_connect_rc})"
                )
        except asyncio.TimeoutError as exc:
            client.loop_stop()
            raise MQTTConnectionError("Timed out connecting to MQTT broker") from exc
        except MQTTConnectionError:
            client.loop_stop()
            raise

    async def disconnect(self, timeout: float = 5.0) -> None:
        """Gracefully disconnect from the broker."""

        if not self._client:
            return

        assert self._disconnect_event is not None

        self._client.disconnect()

        try:
            await asyncio.wait_for(self._disconnect_event.wait(), timeout=timeout)
        finally:
            self._client.loop_stop()
            self._client = None
        self._connected = False

    def publish(
        self, topic: str, payload: bytes, qos: int = 0, retain: bool = False
    ) -> None:
        if not self._client:
            raise MQTTConnectionError("MQTT client not connected")

        info = self._client.publish(topic, payload, qos=qos, retain=retain)
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            raise MQTTConnectionError(f"Publish failed with rc={info.rc}")

    def subscribe(self, topic: str, qos: int = 0) -> None:
        if not self._client:
            raise MQTTConnectionError("MQTT client not connected")
        result, _ = self._client.subscribe(topic, qos=qos)
        if result != mqtt.MQTT_ERR_SUCCESS:
            raise MQTTConnectionError(f"Subscribe failed with rc={result}")

    def set_message_handler(self, handler: Optional[Callable[[str, bytes], None]]) -> None:
        self._message_handler = handler

    def register_disconnect_handler(self, handler: Callable[[int], None]) -> None:
        self._disconnect_handlers.append(handler)

    def is_connected(self) -> bool:
        return self._connected

    # ------------------------------------------------------------------
    # Internal callbacks bridging the threaded paho callbacks into asyncio
    # ------------------------------------------------------------------
    def _on_connect(self, client, userdata, flags, reason_code, properties=None) -> None:
        rc = _reason_value(reason_code)
        self._last_connect_rc = rc
        if rc == 0:
            LOGGER.info("Connected to MQTT broker")
            self._connected = True
        else:
            LOGGER.error("MQTT connection failed with rc=%s", rc)
            self._connected = False
        if self._connected_event and self._loop:
            self._loop.call_soon_threadsafe(self._connected_event.set)

    def _on_disconnect(
        self, client, userdata, flags, reason_code, properties=None
    ) -> None:
        rc = _reason_value(reason_code)
        LOGGER.info("Disconnected from MQTT broker (rc=%s)", rc)
        self._connected = False
        if self._loop:
            if self._disconnect_event:
                self._loop.call_soon_threadsafe(self._disconnect_event.set)
            for handler in self._disconnect_handlers:
                self._loop.call_soon_threadsafe(handler, rc)

    def _on_message(self, client, userdata, message: mqtt.MQTTMessage) -> None:
        handler = self._message_handler
        if not handler:
            return

        try:
            handler(message.topic, message.payload)
        except Exception:  # pragma: no cover - defensive logging
            LOGGER.exception("MQTT message handler raised an exception")


class MQTTPublisher:
    def __init__(self, bus: "MQTTBus", path: str, kind: ValueKind) -> None:
        self._bus = bus
        self.path = path
        self.kind = kind
        self.closed = False

    def set(self, value: Any) -> None:
        if self.closed:
            raise TransportError(f"Publisher for '{self.path}' is closed")
        self._bus.send(self.path, coerce_value(self.kind, value))

    def close(self) -> None:
        self.closed = True


class MQTTSubscriber:
    def __init__(self, bus: "MQTTBus", path: str, kind: ValueKind, default: Any) -> None:
        self._bus = bus
        self.path = path
        self.kind = kind
        self.default = default
        self.closed = False

    def get(self) -> Any:
        value = self._bus.latest(self.path, self.default)
        if self.kind is ValueKind.STRUCT:
            return value
        try:
            return coerce_value(self.kind, value)
        except (TypeError, ValueError):
            LOGGER.debug("Ignoring malformed value on %s: %r", self.path, value)
            return self.default

    def close(self) -> None:
        self.closed = True


class MQTTBus:
    """Telemetry bus backed by retained MQTT topics.

    The bus subscribes to ``{base_topic}/#`` once and caches the latest decoded
    payload per path, so subscriber reads never touch the network.
    """

    def __init__(self, client: MQTTClient, *, base_topic: str) -> None:
        self._client = client
        self._base_topic = base_topic.rstrip("/")
        self._lock = threading.Lock()
        self._latest: Dict[str, Any] = {}
        client.set_message_handler(self._handle_message)

    async def start(self, *, settle_seconds: float = 0.5) -> None:
        """Subscribe to the table tree and wait for retained values to arrive."""
        self._client.subscribe(f"{self._base_topic}/#")
        if settle_seconds > 0:
            await asyncio.sleep(settle_seconds)
        LOGGER.info(
            "MQTT bus ready with %d retained entries under %s",
            len(self._latest),
            self._base_topic,
        )

    def topic_for(self, path: str) -> str:
        return f"{self._base_topic}/{path}"

    def exists(self, path: str) -> bool:
        with self._lock:
            return path in self._latest

    def publish(self, path: str, kind: ValueKind) -> MQTTPublisher:
        return MQTTPublisher(self, path, kind)

    def subscribe(self, path: str, kind: ValueKind, default: Any) -> MQTTSubscriber:
        return MQTTSubscriber(self, path, kind, default)

    def latest(self, path: str, default: Any) -> Any:
        with self._lock:
            return self._latest.get(path, default)

    def send(self, path: str, value: Any) -> None:
        self._client.publish(self.topic_for(path), encode_value(value), retain=True)
        with self._lock:
            self._latest[path] = value

    def _handle_message(self, topic: str, payload: bytes) -> None:
        prefix = f"{self._base_topic}/"
        if not topic.startswith(prefix):
            return
        path = topic[len(prefix):]
        if not payload:
            # Empty retained payload clears the entry
            with self._lock:
                self._latest.pop(path, None)
            return
        try:
            value = decode_value(payload)
        except (UnicodeDecodeError, ValueError):
            LOGGER.warning("Dropping undecodable payload on %s", topic)
            return
        with self._lock:
            self._latest[path] = value
