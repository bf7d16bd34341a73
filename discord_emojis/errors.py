from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .http import HTTPResponse

__all__ = (
    "DiscordException",
    "DiscordServerError",
    "Forbidden",
    "HTTPException",
    "ItemMissing",
    "ModelError",
    "NotFound",
    "Ratelimited",
)


class DiscordException(Exception):  # noqa: N818
    """ Base exception for discord_emojis. """


class ModelError(DiscordException):
    """ Raised whenever a model could not complete an action locally. """


class ItemMissing(ModelError):
    """
    Raised whenever a required item could not be found in the cache.

    This happens when the cache is disabled, not yet populated,
    or no cached guild owns the object in question.
    """


class HTTPException(DiscordException):
    """
    Discord, or something in front of it, answered with an error status.

    Attributes
    ----------
    response: HTTPResponse
        The failed response
    status: int
        The HTTP status code
    code: int
        Discord's JSON error code, 0 when the body was not JSON
    text: str
        Discord's error message, or the raw body
    """
    def __init__(self, r: "HTTPResponse"):
        self.response = r
        self.status: int = r.status
        self.code: int = 0
        self.text: str = str(r.response)

        body = r.response
        if isinstance(body, dict):
            self.code = body.get("code", 0)
            self.text = body.get("message", self.text)

            # Per field validation errors, like an invalid emoji name
            if body.get("errors"):
                self.text += f"\n{body['errors']}"

        summary = f"{r.status} {r.reason} (error code: {self.code})"
        super().__init__(f"{summary}: {self.text}" if self.text else summary)


class NotFound(HTTPException):
    """ Raised whenever a HTTP request returns 404. """


class Forbidden(HTTPException):
    """ Raised whenever a HTTP request returns 403. """


class Ratelimited(HTTPException):
    """ Raised on a 429 that did not come from Discord, so there is nothing to wait for. """


class DiscordServerError(HTTPException):
    """ Raised whenever Discord keeps answering with 5XX. """
