
class StatusClientError(Exception):
    """Base class for every error raised by the status client"""


class ConfigurationError(StatusClientError, ValueError):
    pass


class TransportFailure(StatusClientError):
    pass


class ProtocolFailure(StatusClientError):
    def __init__(self, status_code: int, url: str, message: str = ""):
        super().__init__(f"HTTP error {status_code} at {url}: {message}")
        self.status_code = status_code
        self.url = url
        self.message = message


class DecodeFailure(StatusClientError):
    pass


class Cancelled(StatusClientError):
    pass


class PollingTimeout(StatusClientError, TimeoutError):
    def __init__(self, attempts: int):
        super().__init__(
            f"Maximum polling attempts ({attempts}) reached while still pending"
        )
        self.attempts = attempts
