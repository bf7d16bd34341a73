import aiohttp
import asyncio
import contextlib
import logging
import orjson
import platform
import random
import re

from multidict import CIMultiDictProxy
from typing import Any, Generic, Literal, TypeVar, TYPE_CHECKING
from urllib.parse import quote as url_quote

from . import __version__
from .errors import (
    DiscordServerError, Forbidden, HTTPException,
    NotFound, Ratelimited
)

if TYPE_CHECKING:
    from .cache import Cache
    from .client import Client
    from .emoji import Emoji

ResMethodTypes = Literal["text", "read", "json"]
ResponseT = TypeVar("ResponseT")

_log = logging.getLogger(__name__)

# Every emoji route of a guild shares one bucket per method
re_emoji_route = re.compile(r"^(/guilds/\d+/emojis)(?:/\d+)?$")

MAX_ATTEMPTS = 5
SERVER_ERRORS = (500, 502, 503, 504)

__all__ = (
    "DiscordAPI",
    "HTTPClient",
    "HTTPResponse",
    "raise_for_status",
)


class HTTPResponse(Generic[ResponseT]):
    """
    A finished HTTP request, with the body already read.

    Attributes
    ----------
    status: int
        The HTTP status code
    response: ResponseT
        The decoded body. JSON gives a dict or list, text a str and read gives bytes
    reason: str | None
        The reason phrase of the status line, like `Not Found`
    res_method: ResMethodTypes
        How the body was decoded, JSON that could not be decoded falls back to `text`
    headers: CIMultiDictProxy[str]
        The response headers, which carry the ratelimit state
    """

    __slots__ = (
        "headers",
        "reason",
        "res_method",
        "response",
        "status",
    )

    def __init__(
        self,
        *,
        status: int,
        response: ResponseT,
        reason: str | None,
        res_method: ResMethodTypes,
        headers: CIMultiDictProxy[str],
    ):
        self.status = status
        self.response = response
        self.reason = reason
        self.res_method = res_method
        self.headers = headers

    def __repr__(self) -> str:
        return f"<HTTPResponse status={self.status} reason='{self.reason}'>"

    @property
    def ok(self) -> bool:
        """ Whether the status is in the 2XX range. """
        return 200 <= self.status < 300


def raise_for_status(r: HTTPResponse) -> None:
    """
    Raise the exception matching the status of a failed response.

    Parameters
    ----------
    r:
        The response to check, nothing happens when it is a success

    Raises
    ------
    `Forbidden`
        HTTP 403
    `NotFound`
        HTTP 404
    `Ratelimited`
        HTTP 429
    `DiscordServerError`
        HTTP 5XX
    `HTTPException`
        Any other error status
    """
    if r.ok:
        return

    match r.status:
        case 403:
            raise Forbidden(r)
        case 404:
            raise NotFound(r)
        case 429:
            raise Ratelimited(r)
        case x if x >= 500:
            raise DiscordServerError(r)
        case _:
            raise HTTPException(r)


class HTTPClient:
    """
    Owns the aiohttp session used for both the API and the CDN.

    Attributes
    ----------
    session: aiohttp.ClientSession | None
        The session, `None` until the first request or `open()`
    """

    __slots__ = ("session",)

    def __init__(self):
        self.session: aiohttp.ClientSession | None = None

    async def open(self) -> None:
        """ Open a fresh session, closing the previous one if there is one. """
        await self.close()

        self.session = aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=60),
            cookie_jar=aiohttp.DummyCookieJar(),
            # orjson gives bytes, aiohttp wants str
            json_serialize=lambda obj: orjson.dumps(obj).decode("utf-8")
        )

    async def close(self) -> None:
        """ Close the session, if any. """
        if self.session is not None and not self.session.closed:
            await self.session.close()
        self.session = None

    async def request(
        self,
        method: str,
        url: str,
        *,
        res_method: ResMethodTypes = "text",
        **kwargs
    ) -> HTTPResponse:
        """
        Send a request and read the whole body.

        Parameters
        ----------
        method:
            The HTTP method
        url:
            The full URL
        res_method:
            How to decode the body: `json`, `text` or `read` for raw bytes
        **kwargs:
            Passed on to `aiohttp.ClientSession.request`

        Returns
        -------
            The response, with the body decoded

        Raises
        ------
        `ValueError`
            Unknown res_method
        """
        if res_method not in ResMethodTypes.__args__:
            raise ValueError(f"res_method must be text, read or json, not {res_method!r}")

        if self.session is None:
            await self.open()

        async with self.session.request(method.upper(), url, **kwargs) as res:
            body, res_method = await self._read_body(res, res_method)

        return HTTPResponse(
            status=res.status,
            response=body,
            reason=res.reason,
            res_method=res_method,
            headers=res.headers
        )

    @staticmethod
    async def _read_body(
        res: aiohttp.ClientResponse,
        res_method: ResMethodTypes
    ) -> tuple[Any, ResMethodTypes]:
        if res_method == "read":
            return await res.read(), "read"

        text = await res.text()
        if res_method == "text":
            return text, "text"

        # Content-Type is not trusted, proxies in front of Discord answer with HTML
        try:
            return orjson.loads(text), "json"
        except orjson.JSONDecodeError:
            return text, "text"


class Bucket:
    """
    The ratelimit state of one route, as the `X-RateLimit-*` headers last described it.

    Attributes
    ----------
    key: str
        The route this bucket belongs to
    limit: int
        Requests allowed per window
    remaining: int
        Requests left in the current window
    expires_at: float | None
        Loop time at which the window is over
    last_used: float
        Loop time of the last request taken from the bucket
    """

    __slots__ = (
        "_lock",
        "expires_at",
        "key",
        "last_used",
        "limit",
        "remaining",
    )

    def __init__(self, key: str):
        self.key: str = key

        self.limit: int = 1
        self.remaining: int = 1
        self.expires_at: float | None = None
        self.last_used: float = 0.0

        self._lock = asyncio.Lock()

    def __repr__(self) -> str:
        return f"<Bucket key='{self.key}' remaining={self.remaining}/{self.limit}>"

    def is_stale(self, now: float) -> bool:
        """ Whether the bucket went unused for 5 minutes. """
        return now - self.last_used >= 300

    async def acquire(self) -> None:
        """ Wait until the bucket has a request left, then take it. """
        loop = asyncio.get_running_loop()

        while True:
            async with self._lock:
                now = loop.time()

                # Window is over, Discord has refilled the bucket
                if self.expires_at is not None and now >= self.expires_at:
                    self.remaining = self.limit
                    self.expires_at = None

                if self.remaining > 0:
                    self.remaining -= 1
                    self.last_used = now
                    return

                # Empty without a known reset, the last request never got an answer
                if self.expires_at is None:
                    self.expires_at = now + 1.0

                delay = max(self.expires_at - now, 0.1)

            _log.debug(f"Bucket {self.key} is empty, waiting {delay:.2f}s")
            await asyncio.sleep(delay)

    def update(self, r: HTTPResponse) -> None:
        """
        Read the new ratelimit state from a response.

        Parameters
        ----------
        r:
            Any response of this route, errors included
        """
        headers = r.headers
        reset_after = float(headers.get("X-RateLimit-Reset-After", 0))

        self.limit = int(headers.get("X-RateLimit-Limit", 1))
        self.remaining = int(headers.get("X-RateLimit-Remaining", 0))
        self.expires_at = asyncio.get_running_loop().time() + reset_after


class DiscordAPI:
    """
    The state every model is created with.

    It carries both the HTTP session and the local cache,
    so any object holding it is able to both look up and mutate.
    """
    def __init__(self, *, client: "Client"):
        if not isinstance(client.api_version, int):
            raise TypeError("api_version must be an integer")

        self.bot: "Client" = client
        self.cache: "Cache | None" = client.cache
        self.token: str = client.token

        self.api_url: str = f"https://discord.com/api/v{client.api_version}"
        self.http: HTTPClient = HTTPClient()

        self._buckets: dict[str, Bucket] = {}
        self._cleanup_task: asyncio.Task | None = None

        self._default_headers: dict[str, str] = {
            "User-Agent": (
                f"DiscordBot (discord_emojis, {__version__}) "
                f"Python/{platform.python_version()} aiohttp/{aiohttp.__version__}"
            ),
            "Authorization": f"Bot {self.token}",
        }

    async def start(self) -> None:
        """ Opens the HTTP session and starts pruning unused buckets. """
        await self.http.open()

        if self._cleanup_task is None:
            self._cleanup_task = asyncio.create_task(
                self._prune_loop(),
                name="discord_emojis: bucket pruning"
            )

    async def close(self) -> None:
        """ Stops the pruning loop and closes the HTTP session. """
        task, self._cleanup_task = self._cleanup_task, None

        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

        await self.http.close()

    async def _prune_loop(self) -> None:
        while True:
            await asyncio.sleep(300)
            self.prune_buckets()

    def prune_buckets(self) -> int:
        """
        Forget buckets that went unused for 5 minutes.

        Returns
        -------
            How many buckets were removed
        """
        now = asyncio.get_running_loop().time()
        stale = [
            key for key, bucket in self._buckets.items()
            if bucket.is_stale(now)
        ]

        for key in stale:
            del self._buckets[key]

        if stale:
            _log.debug(f"Pruned {len(stale)} buckets, {len(self._buckets)} left")

        return len(stale)

    def _get_bucket_key(self, method: str, path: str) -> str:
        path = path.split("?", 1)[0]
        route = re_emoji_route.sub(r"\1", path)
        return f"{method.upper()} {route}"

    def get_bucket(self, key: str) -> Bucket:
        """ Returns the bucket for a route key, creating it on first use. """
        bucket = self._buckets.get(key)
        if bucket is None:
            bucket = self._buckets[key] = Bucket(key)
        return bucket

    async def _backoff(self, attempt: int) -> None:
        await asyncio.sleep(1 + attempt * 2 + random.random())

    async def query(
        self,
        method: str,
        path: str,
        *,
        res_method: ResMethodTypes = "json",
        reason: str | None = None,
        **kwargs
    ) -> HTTPResponse:
        """
        Make a request to the Discord API.

        Ratelimits are waited out, server errors and dropped connections
        are retried, up to 5 attempts in total.

        Parameters
        ----------
        method:
            Which HTTP method to use
        path:
            The path after the API version, like `/guilds/1/emojis`
        res_method:
            How to decode the body
        reason:
            Shown in the guild's audit log
        **kwargs:
            Passed on to `aiohttp.ClientSession.request`

        Returns
        -------
            The successful response

        Raises
        ------
        `Forbidden`
            You are not allowed to do this
        `NotFound`
            The guild or emoji does not exist
        `Ratelimited`
            Ratelimited by something that is not the Discord API
        `DiscordServerError`
            Discord kept failing on its end
        `HTTPException`
            Any other error
        """
        headers = {
            **self._default_headers,
            **kwargs.pop("headers", {})
        }

        # Audit log reasons may hold any unicode, headers may not
        if reason:
            headers["X-Audit-Log-Reason"] = url_quote(reason)

        bucket = self.get_bucket(self._get_bucket_key(method, path))
        url = f"{self.api_url}{path}"

        for attempt in range(1, MAX_ATTEMPTS + 1):
            await bucket.acquire()

            try:
                r = await self.http.request(
                    method, url,
                    res_method=res_method,
                    headers=headers,
                    **kwargs
                )
            except OSError as e:
                # Connection reset by peer, Discord dropped a keep-alive socket
                if e.errno in (54, 10054) and attempt < MAX_ATTEMPTS:
                    await self._backoff(attempt)
                    continue
                raise

            bucket.update(r)
            _log.debug(
                f"HTTP {method.upper()} {path} ({r.status}), "
                f"{bucket.remaining}/{bucket.limit} left in bucket"
            )

            if r.ok:
                return r

            if r.status == 429:
                if not isinstance(r.response, dict):
                    # Not Discord, most likely Cloudflare blocking the IP
                    raise Ratelimited(r)

                retry_after = float(r.response.get("retry_after", 1.0))
                _log.warning(f"Ratelimited on {bucket.key}, retrying in {retry_after:.2f}s")
                await asyncio.sleep(retry_after + 0.1)
                continue

            if r.status in SERVER_ERRORS and attempt < MAX_ATTEMPTS:
                await self._backoff(attempt)
                continue

            raise_for_status(r)

        # Only reachable when every attempt was ratelimited
        raise Ratelimited(r)

    def _emoji_from(self, data: dict) -> "Emoji":
        from .emoji import Emoji
        return Emoji(state=self, data=data)

    async def fetch_emoji(self, guild_id: int, emoji_id: int) -> "Emoji":
        """ Fetches one emoji of a guild, as Discord currently has it. """
        r = await self.query(
            "GET",
            f"/guilds/{int(guild_id)}/emojis/{int(emoji_id)}"
        )
        return self._emoji_from(r.response)

    async def fetch_emojis(self, guild_id: int) -> list["Emoji"]:
        """ Fetches every emoji of a guild. """
        r = await self.query("GET", f"/guilds/{int(guild_id)}/emojis")
        return [self._emoji_from(data) for data in r.response]

    async def create_emoji(
        self,
        guild_id: int,
        payload: dict,
        *,
        reason: str | None = None
    ) -> "Emoji":
        """
        Creates an emoji in a guild.

        Parameters
        ----------
        guild_id:
            The guild to create the emoji in
        payload:
            The JSON body, at least `name` and `image` as a data URI
        reason:
            Shown in the guild's audit log

        Returns
        -------
            The created emoji
        """
        r = await self.query(
            "POST",
            f"/guilds/{int(guild_id)}/emojis",
            json=payload,
            reason=reason
        )
        return self._emoji_from(r.response)

    async def edit_emoji(
        self,
        guild_id: int,
        emoji_id: int,
        payload: dict,
        *,
        reason: str | None = None
    ) -> "Emoji":
        """
        Edits an emoji of a guild.

        Parameters
        ----------
        guild_id:
            The guild that owns the emoji
        emoji_id:
            The emoji to edit
        payload:
            Only the fields that should change
        reason:
            Shown in the guild's audit log

        Returns
        -------
            A new emoji built from Discord's answer, every field included
        """
        r = await self.query(
            "PATCH",
            f"/guilds/{int(guild_id)}/emojis/{int(emoji_id)}",
            json=payload,
            reason=reason
        )
        return self._emoji_from(r.response)

    async def delete_emoji(
        self,
        guild_id: int,
        emoji_id: int,
        *,
        reason: str | None = None
    ) -> None:
        """ Deletes an emoji of a guild, Discord answers with an empty body. """
        await self.query(
            "DELETE",
            f"/guilds/{int(guild_id)}/emojis/{int(emoji_id)}",
            res_method="text",
            reason=reason
        )
