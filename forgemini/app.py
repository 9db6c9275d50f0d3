"""Main application entry-point for forgemini."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Iterable, List, Optional

from .adapters import MemoryBus, MQTTBus, MQTTClient, MQTTConnectionError
from .config import ForgeConfig, load_config
from .core import BusTransport, ValueKind
from .health import HealthReporter, HealthServer
from .housekeeping import Optimizer
from .logging import configure_logging
from .telemetry import ChannelCache, IOSubsystem

LOGGER = logging.getLogger(__name__)

ROBOT_TABLE = "Robot"
ENABLED_KEY = "Enabled"

SubsystemFactory = Callable[[ChannelCache], IOSubsystem]


class ForgeMiniApp:
    """Runs registered subsystems on a fixed-period control loop.

    The app owns the bus transport and the shared :class:`ChannelCache`;
    subsystems receive the cache explicitly when they are constructed::

        app = ForgeMiniApp(config)
        app.register(Shooter(app.channels))
        asyncio.run(app.run())

    Every tick calls ``periodic()`` on each subsystem in registration order and
    then lets the :class:`Optimizer` do idle housekeeping.
    """

    def __init__(
        self,
        config: Optional[ForgeConfig] = None,
        *,
        transport: Optional[BusTransport] = None,
        optimizer: Optional[Optimizer] = None,
    ) -> None:
        self._config = config or load_config()
        self._mqtt_client: Optional[MQTTClient] = None
        self._mqtt_bus: Optional[MQTTBus] = None
        self._transport = transport or self._build_transport()
        self.channels = ChannelCache(self._transport)
        self._optimizer = optimizer or Optimizer(self._config.housekeeping)
        self._subsystems: List[IOSubsystem] = []
        self._health = HealthReporter()
        self._health_server: Optional[HealthServer] = None
        self._shutdown_event: Optional[asyncio.Event] = None
        self._ticks = 0

    def _build_transport(self) -> BusTransport:
        bus_config = self._config.bus
        if bus_config.transport == "mqtt":
            self._mqtt_client = MQTTClient(bus_config, client_id=bus_config.client_id)
            self._mqtt_bus = MQTTBus(self._mqtt_client, base_topic=bus_config.base_topic)
            return self._mqtt_bus
        return MemoryBus()

    @property
    def config(self) -> ForgeConfig:
        return self._config

    @property
    def health(self) -> HealthReporter:
        return self._health

    @property
    def subsystems(self) -> List[IOSubsystem]:
        return list(self._subsystems)

    @property
    def ticks(self) -> int:
        return self._ticks

    def register(self, subsystem: IOSubsystem) -> IOSubsystem:
        if subsystem.channels is not self.channels:
            LOGGER.warning(
                "Subsystem %s uses a different channel cache than the app",
                subsystem.table_name,
            )
        self._subsystems.append(subsystem)
        return subsystem

    def is_disabled(self) -> bool:
        enabled = self.channels.get(ROBOT_TABLE, ENABLED_KEY, False, ValueKind.BOOLEAN)
        return not enabled

    def tick(self) -> None:
        """Run one control cycle synchronously."""
        for subsystem in self._subsystems:
            try:
                subsystem.periodic()
            except Exception:
                LOGGER.exception("Periodic logic of %s raised", subsystem.table_name)
        self._optimizer.update(self.is_disabled())
        self._ticks += 1

    def request_shutdown(self) -> None:
        if self._shutdown_event is not None:
            self._shutdown_event.set()

    async def run(self, *, max_ticks: Optional[int] = None) -> None:
        """Start services and run the control loop until shutdown."""
        self._shutdown_event = asyncio.Event()

        LOGGER.info("forgemini starting with config: %s", self._config.path)
        await self._start_services()

        try:
            await self._control_loop(max_ticks)
        except asyncio.CancelledError:
            LOGGER.info("forgemini received shutdown signal")
            raise
        finally:
            await self._stop_services()

    async def _control_loop(self, max_ticks: Optional[int]) -> None:
        assert self._shutdown_event is not None
        loop = asyncio.get_running_loop()
        period = self._config.scheduler.period_seconds
        deadline = loop.time()

        while not self._shutdown_event.is_set():
            started = loop.time()
            self.tick()
            finished = loop.time()

            deadline += period
            overrun = finished > deadline
            await self._health.record_tick(finished - started, overrun=overrun)
            if overrun:
                LOGGER.debug(
                    "Loop overrun: tick took %.1f ms", (finished - started) * 1000.0
                )
                deadline = finished

            if max_ticks is not None and self._ticks >= max_ticks:
                break

            try:
                await asyncio.wait_for(
                    self._shutdown_event.wait(),
                    timeout=max(0.0, deadline - loop.time()),
                )
            except asyncio.TimeoutError:
                pass

    async def _start_services(self) -> None:
        if self._mqtt_client is not None and self._mqtt_bus is not None:
            await self._health.update("bus", False, "connecting")
            try:
                await self._mqtt_client.connect()
                await self._mqtt_bus.start(
                    settle_seconds=self._config.bus.settle_seconds
                )
            except MQTTConnectionError as exc:
                LOGGER.error("Telemetry bus unavailable: %s", exc)
                await self._health.update("bus", False, str(exc))
            else:
                await self._health.update("bus", True, "mqtt")
        else:
            await self._health.update("bus", True, "memory")

        self._optimizer.init()

        health_config = self._config.health
        if health_config.enabled:
            self._health_server = HealthServer(
                self._health,
                health_config.host,
                health_config.port,
                subsystems=lambda: [item.status() for item in self._subsystems],
            )
            try:
                await self._health_server.start()
            except OSError:
                LOGGER.exception("Failed to start health endpoint")
                self._health_server = None

    async def _stop_services(self) -> None:
        for subsystem in self._subsystems:
            subsystem.close()

        if self._mqtt_client is not None:
            try:
                await self._mqtt_client.disconnect()
            except asyncio.TimeoutError:
                LOGGER.warning("Timed out disconnecting from MQTT broker")

        if self._health_server is not None:
            await self._health_server.stop()
            self._health_server = None

    @classmethod
    def start(
        cls,
        config: Optional[ForgeConfig] = None,
        factories: Iterable[SubsystemFactory] = (),
    ) -> None:
        instance = cls(config=config)
        configure_logging(instance._config.logging)
        for factory in factories:
            instance.register(factory(instance.channels))
        try:
            asyncio.run(instance.run())
        except KeyboardInterrupt:
            LOGGER.info("forgemini received shutdown signal")
