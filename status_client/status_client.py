import asyncio
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable, Optional

import aiohttp
from loguru import logger
from pydantic import ValidationError
from status_client.cancellation import CancellationToken, cancellable_sleep
from status_client.errors import (
    Cancelled,
    DecodeFailure,
    PollingTimeout,
    ProtocolFailure,
    TransportFailure,
)
from status_client.models import JobStatus, StatusPollingConfig
from status_client.schedulers import (
    ConstantPollIntervalScheduler,
    ExponentialBackoffScheduler,
    PollIntervalScheduler,
)
from status_client.wait_time import AverageJobDurationEstimator


class StatusClient:
    def __init__(
        self,
        base_url: str,
        config: Optional[StatusPollingConfig] = None,
        wait_time_estimator: Optional[AverageJobDurationEstimator] = None,
        poll_interval_scheduler: Optional[PollIntervalScheduler] = None,
        on_status_change: Optional[Callable[[JobStatus], Any]] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.config = config or StatusPollingConfig()
        self.logger = logger
        self.on_status_change = on_status_change

        self.poll_interval_scheduler = (
            poll_interval_scheduler
            or ExponentialBackoffScheduler(
                self.config.base_poll_rate,
                self.config.exponential_backoff,
                self.config.max_poll_attempts,
            )
        )
        self.wait_time_estimator = wait_time_estimator or AverageJobDurationEstimator(
            self.config.default_wait_time,
            self.config.window_size,
            self.config.overshoot_correction,
        )

        self._session = session
        self._owns_session = False

    async def __aenter__(self) -> "StatusClient":
        if self._session is None:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self

    async def __aexit__(self, *exc_info) -> None:
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None
            self._owns_session = False

    @asynccontextmanager
    async def _open_session(self) -> AsyncIterator[aiohttp.ClientSession]:
        """Yields the shared session, or a session scoped to one operation"""
        if self._session is not None:
            yield self._session
        else:
            async with aiohttp.ClientSession() as session:
                yield session

    async def get_status(
        self, cancellation: Optional[CancellationToken] = None
    ) -> JobStatus:
        """Fetches the status of the job from the server"""
        if cancellation is not None:
            cancellation.raise_if_cancelled()

        async with self._open_session() as session:
            return await self._get_status_once(session, cancellation)

    async def _get_status_once(
        self,
        session: aiohttp.ClientSession,
        cancellation: Optional[CancellationToken],
    ) -> JobStatus:
        if cancellation is None:
            return await self._request_status(session)
        cancellation.raise_if_cancelled()
        return await cancellation.run(self._request_status(session))

    async def _request_status(self, session: aiohttp.ClientSession) -> JobStatus:
        url = f"{self.base_url}/status"

        try:
            async with session.get(url) as response:
                if response.status >= 400:
                    body = await response.text(errors="replace")
                    self.logger.error(f"HTTP error {response.status} at {url}: {body}")
                    raise ProtocolFailure(response.status, url, body)

                data = await response.json(content_type=None)
        except aiohttp.ClientError as e:
            self.logger.error(f"Transport error at {url}: {e!r}")
            raise TransportFailure(f"Could not get a response from {url}") from e
        except asyncio.TimeoutError as e:
            self.logger.error(f"Request to {url} timed out")
            raise TransportFailure(f"Request to {url} timed out") from e
        except ValueError as e:
            self.logger.error(f"Server at {url} returned a body that is not JSON")
            raise DecodeFailure(f"Invalid JSON in response from {url}") from e

        if not isinstance(data, dict):
            self.logger.error(f"Server at {url} returned an empty or invalid response")
            raise DecodeFailure(f"Invalid response from {url}: {data!r}")

        try:
            return JobStatus.model_validate(data)
        except ValidationError as e:
            self.logger.error(f"Could not decode job status from {data!r}")
            raise DecodeFailure(f"Invalid job status in response from {url}") from e

    async def _handle_status_change(
        self, status: JobStatus, last_status: Optional[JobStatus]
    ) -> None:
        """Invoke the status change callback if the status has changed"""
        if last_status != status and self.on_status_change is not None:
            self.logger.debug(f"Job status changed to {status.result.value}")
            await self.on_status_change(status)

    async def _poll(
        self,
        session: aiohttp.ClientSession,
        scheduler: PollIntervalScheduler,
        cancellation: Optional[CancellationToken],
        last_status: Optional[JobStatus] = None,
    ) -> JobStatus:
        """Poll the status endpoint once per interval until the job leaves pending"""
        attempt = 0

        for interval in scheduler.intervals():
            if cancellation is not None and cancellation.cancelled:
                self.logger.info(f"Polling cancelled after {attempt} attempts")
                raise Cancelled("Polling was cancelled")

            attempt += 1
            status = await self._get_status_once(session, cancellation)
            await self._handle_status_change(status, last_status)
            last_status = status

            if status.is_terminal:
                self.logger.info(
                    f"Job finished with {status.result.value} after {attempt} attempts"
                )
                return status

            self.logger.debug(
                f"Job still pending (attempt {attempt}), waiting {interval}ms before next attempt"
            )
            # the final pending attempt also waits out its interval before timing out
            await cancellable_sleep(interval, cancellation)

        self.logger.warning(f"Job still pending after {attempt} attempts")
        raise PollingTimeout(attempt)

    async def poll_until_completed(
        self,
        cancellation: Optional[CancellationToken] = None,
        scheduler: Optional[PollIntervalScheduler] = None,
    ) -> JobStatus:
        """Poll immediately, waiting between attempts as the scheduler dictates"""
        scheduler = scheduler or self.poll_interval_scheduler
        if cancellation is not None:
            cancellation.raise_if_cancelled()

        async with self._open_session() as session:
            return await self._poll(session, scheduler, cancellation)

    async def poll_with_initial_wait_time(
        self,
        cancellation: Optional[CancellationToken] = None,
        estimator: Optional[AverageJobDurationEstimator] = None,
        scheduler: Optional[PollIntervalScheduler] = None,
    ) -> JobStatus:
        """Wait for the estimated job duration before polling.

        If the job is already finished at the first check the estimate was
        accurate. Otherwise polling continues as in ``poll_until_completed`` and
        the full elapsed time is fed back to the estimator.
        """
        estimator = estimator or self.wait_time_estimator
        scheduler = scheduler or self.poll_interval_scheduler
        loop = asyncio.get_running_loop()
        start_time = loop.time()

        initial_wait = estimator.current_estimate()
        self.logger.debug(f"Waiting {initial_wait}ms before the first status check")
        await cancellable_sleep(initial_wait, cancellation)

        async with self._open_session() as session:
            status = await self._get_status_once(session, cancellation)
            await self._handle_status_change(status, None)

            if status.is_terminal:
                self.logger.info(
                    f"Job finished with {status.result.value} within the initial wait"
                )
                estimator.record_observation(True, initial_wait)
                return status

            status = await self._poll(session, scheduler, cancellation, status)

        elapsed_ms = int((loop.time() - start_time) * 1000)
        estimator.record_observation(False, elapsed_ms)
        return status

    async def poll_with_constant_interval(
        self,
        rate: Optional[int] = None,
        cancellation: Optional[CancellationToken] = None,
    ) -> JobStatus:
        scheduler = ConstantPollIntervalScheduler(
            rate if rate is not None else self.config.base_poll_rate,
            self.config.max_poll_attempts,
        )
        return await self.poll_until_completed(cancellation, scheduler)

    async def poll_with_exponential_backoff(
        self,
        rate: int,
        multiplier: float,
        max_attempts: int,
        cancellation: Optional[CancellationToken] = None,
    ) -> JobStatus:
        scheduler = ExponentialBackoffScheduler(rate, multiplier, max_attempts)
        return await self.poll_until_completed(cancellation, scheduler)
