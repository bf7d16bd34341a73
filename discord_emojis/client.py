import logging

from typing import Self

from . import utils, __version__
from .cache import Cache
from .emoji import PartialEmoji, Emoji
from .flags import CacheFlags
from .guild import PartialGuild, Guild
from .http import DiscordAPI

_log = logging.getLogger(__name__)

__all__ = (
    "Client",
)


class Client:
    def __init__(
        self,
        *,
        token: str,
        api_version: int = 10,
        cache_flags: CacheFlags | None = CacheFlags.guilds | CacheFlags.emojis,
        logging_level: int | None = logging.INFO
    ):
        """
        The main client class for discord_emojis.

        Parameters
        ----------
        token:
            Discord bot token
        api_version:
            API version to use for HTTP, if not provided, it will use the default (10)
        cache_flags:
            What should be kept in the local cache.
            Set to `None` to disable the cache, which also disables editing and
            deleting emojis since their guild can no longer be looked up.
        logging_level:
            Logging level to use, if not provided, it will use `logging.INFO`.
            Set to `None` to leave logging setup to you.
        """
        self.token: str = token
        self.api_version: int = api_version
        self.cache_flags: CacheFlags | None = cache_flags
        self.logging_level: int | None = logging_level

        self.cache: Cache | None = (
            Cache(client=self)
            if cache_flags is not None else None
        )
        self.state: DiscordAPI = DiscordAPI(client=self)

        if self.logging_level is not None:
            utils.setup_logger(level=self.logging_level)

    def __repr__(self) -> str:
        return f"<Client api_version={self.api_version} cache={self.cache!r}>"

    async def __aenter__(self) -> Self:
        await self.start()
        return self

    async def __aexit__(self, *args) -> None:  # noqa: ANN002
        await self.close()

    async def start(self) -> None:
        """ Opens the HTTP session, required before making any requests. """
        await self.state.start()
        _log.info(f"discord_emojis v{__version__} is now ready")

    async def close(self) -> None:
        """ Closes the HTTP session. """
        await self.state.close()
        _log.debug("HTTP session closed")

    @property
    def guilds(self) -> list[Guild | PartialGuild]:
        """ Returns the cached guilds, in the order they were added. """
        if self.cache is None:
            return []
        return self.cache.guilds

    def get_guild(self, guild_id: int) -> Guild | PartialGuild | None:
        """ Returns a cached guild, or `None` when it is not cached or there is no cache. """
        if self.cache is None:
            return None
        return self.cache.get_guild(guild_id)

    def get_partial_guild(self, guild_id: int) -> PartialGuild:
        """ Returns a guild handle to make requests with, the cache is not consulted. """
        return PartialGuild(state=self.state, id=guild_id)

    def add_guild(self, data: dict) -> Guild | PartialGuild | None:
        """
        Parse a guild payload, including its emojis, and put it in the cache.

        Parameters
        ----------
        data:
            The guild payload, as sent by Discord

        Returns
        -------
            The guild as stored in the cache, or `None` if guilds are not cached
        """
        if self.cache is None:
            return None

        return self.cache.add_guild(
            Guild(state=self.state, data=data)
        )

    def get_partial_emoji(self, emoji_id: int) -> PartialEmoji:
        """ Returns an emoji handle that only knows its ID. """
        return PartialEmoji(state=self.state, id=emoji_id)

    def get_emoji_guild_id(self, emoji_id: int) -> int | None:
        """
        Look up which cached guild owns an emoji.

        Parameters
        ----------
        emoji_id:
            The emoji to look for

        Returns
        -------
            The guild ID, or `None` if no cached guild has the emoji
        """
        return self.get_partial_emoji(emoji_id).find_guild_id()

    async def fetch_emoji(
        self,
        emoji_id: int,
        *,
        guild_id: int | None = None
    ) -> Emoji:
        """
        Fetch an emoji from Discord.

        Parameters
        ----------
        emoji_id:
            The emoji to fetch
        guild_id:
            The guild that owns it, looked up in the cache when not given

        Returns
        -------
            The emoji as Discord currently has it

        Raises
        ------
        `ItemMissing`
            No guild_id was given and no cached guild owns the emoji
        """
        return await self.get_partial_emoji(emoji_id).fetch(guild_id=guild_id)
