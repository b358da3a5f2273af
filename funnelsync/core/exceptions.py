"""Custom exceptions for the ingest and export paths."""


class FunnelSyncError(Exception):
    """Base exception for all FunnelSync errors."""


class FetchExhausted(FunnelSyncError):
    """Raised when every attempt to fetch an upstream feed failed."""

    def __init__(self, url: str, attempts: int, last_error: object):
        self.url = url
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"Fetch failed after {attempts} attempts: url={url}, last_error={last_error}"
        )


class DecodeError(FunnelSyncError):
    """Raised when a feed body is not valid JSON or does not match its envelope."""

    def __init__(self, source: str, detail: str):
        self.source = source
        self.detail = detail
        super().__init__(f"Failed to decode {source} feed: {detail}")


class SinkDeliveryFailure(FunnelSyncError):
    """Raised when the export sink rejects or cannot receive a payload."""

    def __init__(self, sink_url: str, status_code: int = 0, body: str = ""):
        self.sink_url = sink_url
        self.status_code = status_code
        self.body = body
        if status_code:
            message = f"Sink returned status {status_code}: url={sink_url}, body={body[:200]}"
        else:
            message = f"Sink request failed: url={sink_url}, error={body[:200]}"
        super().__init__(message)


class NoDataForDate(FunnelSyncError):
    """Raised when an export is requested for a date with no stored rows."""

    def __init__(self, date: str):
        self.date = date
        super().__init__(f"No metrics found for date {date}")
