import asyncio

from job_server import JobServer, JobServerSettings
from status_client.cancellation import CancellationToken
from status_client.errors import PollingTimeout, StatusClientError
from status_client.models import StatusPollingConfig
from status_client.status_client import StatusClient


async def status_changed(status):
    print(f"Status changed to: {status.result.value}")


async def main():
    PORT = 8000
    server = JobServer(JobServerSettings(duration=3000.0, will_fail=False))
    await server.start(port=PORT)
    print(f"Server started on http://localhost:{PORT}")

    config = StatusPollingConfig(
        base_poll_rate=50, exponential_backoff=2.0, max_poll_attempts=10
    )
    cancellation = CancellationToken()

    async with StatusClient(
        f"http://localhost:{PORT}", config, on_status_change=status_changed
    ) as client:
        server.start_job()
        try:
            final_status = await client.poll_with_initial_wait_time(cancellation)
            print(f"Final status: {final_status.result.value}")
            print(
                f"Next initial wait: {client.wait_time_estimator.current_estimate()}ms"
            )
        except PollingTimeout as e:
            print(f"Polling timed out: {e}")
        except StatusClientError as e:
            print(f"Error occurred: {e}")

    await server.stop()


if __name__ == "__main__":
    asyncio.run(main())
