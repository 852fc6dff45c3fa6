class CalendarError(Exception):
    """Base class for failures surfaced by the availability engine."""


class UpstreamFetchError(CalendarError):
    """The free/busy query against the calendar service failed."""


class ComputationError(CalendarError):
    """Turning busy windows into candidate slots failed."""


class EventCreationError(CalendarError):
    """The calendar refused or failed to create the event."""


_TLS_MARKERS = ("ERR_OSSL", "DECODER routines", "SSL", "TLS", "certificate")


def is_tls_error(exc: BaseException) -> bool:
    message = str(exc)
    return any(marker in message for marker in _TLS_MARKERS)
