from datetime import datetime
from typing import Optional

from aiohttp import web
from loguru import logger
from pydantic_settings import BaseSettings, SettingsConfigDict


class JobServerSettings(BaseSettings):
    """Defaults for the mock job, read from JOB_* environment variables"""

    model_config = SettingsConfigDict(env_prefix="JOB_", env_file=".env", extra="ignore")

    duration: float = 5000.0  # ms
    will_fail: bool = False
    implicit_start: bool = False


class JobServer:
    """Fakes a single asynchronous job that stays pending for a fixed duration"""

    def __init__(self, settings: Optional[JobServerSettings] = None):
        self.settings = settings or JobServerSettings()
        self.start_time: Optional[datetime] = None
        self.duration = self.settings.duration
        self.will_fail = self.settings.will_fail
        self.implicit_start = self.settings.implicit_start
        self.status_requests = 0
        self.runner: Optional[web.AppRunner] = None
        self.logger = logger

        self.app = web.Application()
        self.app.router.add_post("/job", self.handle_start_job)
        self.app.router.add_post("/job/{duration}/{will_fail}", self.handle_start_job)
        self.app.router.add_get("/status", self.handle_status)

    def start_job(self, duration: Optional[float] = None, will_fail: Optional[bool] = None):
        self.start_time = datetime.now()
        self.duration = self.settings.duration if duration is None else duration
        self.will_fail = self.settings.will_fail if will_fail is None else will_fail
        self.logger.info(
            f"Job started (duration: {self.duration:.0f}ms, will fail: {self.will_fail})"
        )

    def job_status(self) -> str:
        elapsed = (datetime.now() - self.start_time).total_seconds() * 1000

        if elapsed <= self.duration:
            return "pending"
        return "error" if self.will_fail else "completed"

    async def handle_start_job(self, request):
        duration = request.match_info.get("duration")
        will_fail = request.match_info.get("will_fail")

        try:
            duration = None if duration is None else float(duration)
            will_fail = None if will_fail is None else _parse_bool(will_fail)
        except ValueError as e:
            self.logger.warning(f"Rejecting job request: {e}")
            return web.json_response({"error": str(e)}, status=400)

        self.start_job(duration, will_fail)
        return web.json_response({"result": "created"}, status=201)

    async def handle_status(self, request):
        self.status_requests += 1

        if self.start_time is None:
            if not self.implicit_start:
                self.logger.info("Status requested before the job was started")
                return web.json_response({"error": "Job has not started yet."}, status=400)
            self.start_job()

        status = self.job_status()
        elapsed = (datetime.now() - self.start_time).total_seconds()
        self.logger.info(f"Returning {status} status (elapsed: {elapsed:.1f}s)")
        return web.json_response({"result": status})

    async def start(self, host: str = "localhost", port: int = 8080):
        self.runner = web.AppRunner(self.app)
        await self.runner.setup()
        site = web.TCPSite(self.runner, host, port)
        await site.start()
        self.logger.info(f"Server started on port {port}")
        return site

    async def stop(self):
        if self.runner is not None:
            await self.runner.cleanup()
            self.runner = None
            self.logger.info("Server stopped")


def _parse_bool(value: str) -> bool:
    lowered = value.lower()
    if lowered in ("true", "1", "yes"):
        return True
    if lowered in ("false", "0", "no"):
        return False
    raise ValueError(f"Invalid boolean value: {value!r}")
