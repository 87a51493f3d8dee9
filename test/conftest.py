from typing import AsyncGenerator, Awaitable, Callable

import pytest_asyncio
from aiohttp import web
from job_server import JobServer, JobServerSettings

BASE_URL_TEMPLATE = "http://localhost:{}"


@pytest_asyncio.fixture
async def server(unused_tcp_port_factory) -> AsyncGenerator[JobServer, None]:
    """Start and yield a JobServer on a random port whose job has not started."""
    port = unused_tcp_port_factory()
    server_instance = JobServer(
        JobServerSettings(duration=1000.0, will_fail=False, implicit_start=False)
    )
    server_instance.base_url = BASE_URL_TEMPLATE.format(port)
    await server_instance.start(port=port)
    try:
        yield server_instance
    finally:
        await server_instance.stop()


@pytest_asyncio.fixture
async def stub_server(unused_tcp_port_factory):
    """Serve a single /status handler and return its base URL."""
    runners = []

    async def _start(
        handler: Callable[[web.Request], Awaitable[web.StreamResponse]]
    ) -> str:
        port = unused_tcp_port_factory()
        app = web.Application()
        app.router.add_get("/status", handler)
        runner = web.AppRunner(app)
        await runner.setup()
        await web.TCPSite(runner, "localhost", port).start()
        runners.append(runner)
        return BASE_URL_TEMPLATE.format(port)

    try:
        yield _start
    finally:
        for runner in runners:
            await runner.cleanup()
