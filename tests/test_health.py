import aiohttp
import pytest

from forgemini.health import HealthReporter, HealthServer


@pytest.mark.asyncio
async def test_health_reporter_snapshot():
    reporter = HealthReporter()

    await reporter.update("bus", True, "mqtt")
    await reporter.update("camera", False, "stopped")

    snapshot = await reporter.snapshot()

    assert snapshot["status"] == "degraded"
    components = {item["name"]: item for item in snapshot["components"]}
    assert components["bus"]["healthy"] is True
    assert components["bus"]["detail"] == "mqtt"
    assert components["camera"]["healthy"] is False
    assert components["camera"]["detail"] == "stopped"


@pytest.mark.asyncio
async def test_health_reporter_records_loop_ticks():
    reporter = HealthReporter()

    await reporter.record_tick(0.004, overrun=False)
    await reporter.record_tick(0.031, overrun=True)
    await reporter.record_tick(0.0125, overrun=False)

    snapshot = await reporter.snapshot()

    assert snapshot["status"] == "ok"
    assert snapshot["loop"] == {"ticks": 3, "overruns": 1, "lastTickMs": 12.5}


@pytest.mark.asyncio
async def test_health_server_serves_snapshot(unused_tcp_port):
    reporter = HealthReporter()
    await reporter.update("bus", True)

    host = "127.0.0.1"
    port = unused_tcp_port
    server = HealthServer(
        reporter,
        host,
        port,
        subsystems=lambda: [{"table": "Shooter", "state": "steady"}],
    )
    await server.start()

    try:
        async with aiohttp.ClientSession() as session:
            async with session.get(f"http://{host}:{port}/healthz") as response:
                payload = await response.json()
                assert response.status == 200
                assert payload["status"] == "ok"
            async with session.get(f"http://{host}:{port}/subsystems") as response:
                payload = await response.json()
                assert response.status == 200
                assert payload == {
                    "subsystems": [{"table": "Shooter", "state": "steady"}]
                }
    finally:
        await server.stop()


@pytest.mark.asyncio
async def test_health_server_reports_degraded(unused_tcp_port):
    reporter = HealthReporter()
    await reporter.update("bus", False, "broker unreachable")

    host = "127.0.0.1"
    port = unused_tcp_port
    server = HealthServer(reporter, host, port)
    await server.start()

    try:
        async with aiohttp.ClientSession() as session:
            async with session.get(f"http://{host}:{port}/healthz") as response:
                payload = await response.json()
                assert response.status == 503
                assert payload["status"] == "degraded"
            async with session.get(f"http://{host}:{port}/subsystems") as response:
                assert (await response.json()) == {"subsystems": []}
    finally:
        await server.stop()
