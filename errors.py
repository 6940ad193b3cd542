"""Error types raised by the Pokédex service and mapped to HTTP responses."""

from typing import Optional


class PokedexError(Exception):
    status_code = 500

    def __init__(self, message: str, error: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.error = error


class ValidationError(PokedexError):
    """Bad or missing request input."""

    status_code = 400


class NotFoundError(PokedexError):
    """The identifier resolved to nothing, even after asking upstream."""

    status_code = 404


class UpstreamError(PokedexError):
    """Network failure, non-2xx status or malformed body from PokeAPI."""

    status_code = 500

    def __init__(self, message: str, url: str = "", status: Optional[int] = None):
        super().__init__(message, error=f"{url}: {message}" if url else message)
        self.url = url
        self.status = status
