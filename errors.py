"""Error kinds raised by the wake controller and its reporting boundary."""


class WakerError(Exception):
    """Base class for all wake controller errors."""


class ConfigError(WakerError):
    """Settings are missing or inconsistent."""


class DataUnavailable(WakerError):
    """A query returned no usable aggregate or row."""


class StoreQueryError(WakerError):
    """The time-series store could not answer a query."""


class StoreWriteError(WakerError):
    """A status point could not be written."""


class ResolutionError(WakerError):
    """The neighbor table could not be fetched or contains malformed data."""


class ProbeError(WakerError):
    """A liveness probe failed or timed out."""


class DispatchError(WakerError):
    """A wake packet could not be transmitted."""


class ReportError(WakerError):
    """Error answered to a reporting client."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __str__(self):
        return f"({self.status_code}) {self.message}"


class BadRequest(ReportError):
    status_code = 400


class Forbidden(ReportError):
    status_code = 403


class UpstreamQueryFailed(ReportError):
    status_code = 502
