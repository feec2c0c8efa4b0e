from __future__ import annotations


class TileRequestError(Exception):
    """
    Per-request serving failure. Carries the HTTP status and the message sent
    back as {"error": message}; never fatal to the server.
    """
    status_code = 500
    message = "Internal server error."

    def __init__(self, message: str | None = None):
        if message is not None:
            self.message = message
        super().__init__(self.message)


class InvalidCoordinate(TileRequestError):
    status_code = 400
    message = "Coordinates must be non-negative integers."


class PathEscape(TileRequestError):
    status_code = 403
    message = "Tile path escapes root directory."


class TileNotFound(TileRequestError):
    status_code = 404
    message = "Tile not found."


class UnsupportedExtension(TileRequestError):
    status_code = 415

    def __init__(self, extension: str, allowed):
        super().__init__(
            f"Unsupported tile extension '{extension}'. Allowed: {', '.join(allowed)}."
        )
        self.extension = extension


class InternalError(TileRequestError):
    status_code = 500
