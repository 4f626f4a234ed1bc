# errors.py
class RSSReaderError(Exception):
    """Base class for errors surfaced by the feed refresh core."""

    status_code = 500

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message or self.__class__.__name__


class NotFound(RSSReaderError):
    status_code = 404


class Forbidden(RSSReaderError):
    status_code = 403


class InvalidState(RSSReaderError):
    status_code = 409


class FetchError(RSSReaderError):
    """Network or HTTP failure while downloading a feed document."""

    status_code = 502


class ParseError(RSSReaderError):
    """Feed document is malformed beyond recovery."""

    status_code = 422
