"""Health reporting for the forgemini control loop."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from aiohttp import web

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class ComponentStatus:
    name: str
    healthy: bool
    detail: Optional[str] = None
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def as_dict(self) -> Dict[str, object]:
        return {
            "name": self.name,
            "healthy": self.healthy,
            "detail": self.detail,
            "updatedAt": self.updated_at.isoformat(timespec="seconds"),
        }


@dataclass(slots=True)
class LoopStats:
    ticks: int = 0
    overruns: int = 0
    last_tick_seconds: float = 0.0


class HealthReporter:
    """Tracks bus, subsystem and loop health for the running service."""

    def __init__(self) -> None:
        self._status: Dict[str, ComponentStatus] = {}
        self._loop = LoopStats()
        self._lock = asyncio.Lock()

    async def update(
        self, name: str, healthy: bool, detail: Optional[str] = None
    ) -> None:
        async with self._lock:
            self._status[name] = ComponentStatus(
                name=name, healthy=healthy, detail=detail
            )

    async def record_tick(self, duration_seconds: float, *, overrun: bool) -> None:
        async with self._lock:
            self._loop.ticks += 1
            self._loop.last_tick_seconds = duration_seconds
            if overrun:
                self._loop.overruns += 1

    async def snapshot(self) -> Dict[str, object]:
        async with self._lock:
            entries = [status.as_dict() for status in self._status.values()]
            loop = LoopStats(
                ticks=self._loop.ticks,
                overruns=self._loop.overruns,
                last_tick_seconds=self._loop.last_tick_seconds,
            )

        overall = "ok" if all(item["healthy"] for item in entries) else "degraded"
        return {
            "status": overall,
            "components": entries,
            "loop": {
                "ticks": loop.ticks,
                "overruns": loop.overruns,
                "lastTickMs": round(loop.last_tick_seconds * 1000.0, 3),
            },
        }


class HealthServer:
    """HTTP server exposing `/healthz` and `/subsystems`."""

    def __init__(
        self,
        reporter: HealthReporter,
        host: str,
        port: int,
        *,
        subsystems: Optional[Callable[[], List[Dict[str, Any]]]] = None,
    ) -> None:
        self._reporter = reporter
        self._subsystems = subsystems
        self._host = host
        self._port = port
        self._runner: Optional[web.AppRunner] = None
        self._site: Optional[web.TCPSite] = None

    async def start(self) -> None:
        app = web.Application()
        app.router.add_get("/healthz", self._handle_health)
        app.router.add_get("/subsystems", self._handle_subsystems)

        self._runner = web.AppRunner(app)
        await self._runner.setup()
        self._site = web.TCPSite(self._runner, self._host, self._port)
        await self._site.start()
        LOGGER.info(
            "Health endpoint listening on http://%s:%s/healthz", self._host, self._port
        )

    async def stop(self) -> None:
        with contextlib.suppress(Exception):
            if self._site is not None:
                await self._site.stop()
        if self._runner is not None:
            await self._runner.cleanup()
        self._site = None
        self._runner = None

    async def _handle_health(self, request: web.Request) -> web.Response:
        snapshot = await self._reporter.snapshot()
        status = 200 if snapshot["status"] == "ok" else 503
        return web.json_response(snapshot, status=status)

    async def _handle_subsystems(self, request: web.Request) -> web.Response:
        entries = self._subsystems() if self._subsystems is not None else []
        return web.json_response({"subsystems": entries})
