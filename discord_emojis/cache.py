import logging

from typing import TYPE_CHECKING

from .flags import CacheFlags

if TYPE_CHECKING:
    from .client import Client
    from .emoji import Emoji, PartialEmoji
    from .guild import PartialGuild, Guild

_log = logging.getLogger(__name__)

__all__ = (
    "Cache",
)


class Cache:
    """
    The local replica of the guilds the client knows about.

    Guilds are kept in the order they were added. Nothing in here is locked,
    readers always iterate over a copy, so a lookup may miss or find
    something that a writer is changing at the same time.
    """
    def __init__(
        self,
        *,
        client: "Client"
    ):
        self.bot = client
        self.cache_flags: CacheFlags | None = client.cache_flags

        self.__guilds: dict[int, "PartialGuild | Guild"] = {}

    def __repr__(self) -> str:
        return f"<Cache guilds={len(self.__guilds)} flags={self.cache_flags!r}>"

    @property
    def enabled(self) -> bool:
        """ Whether guilds are cached at all. """
        return (
            self.cache_flags is not None and
            (
                CacheFlags.guilds in self.cache_flags or
                CacheFlags.partial_guilds in self.cache_flags
            )
        )

    @property
    def emojis_enabled(self) -> bool:
        """ Whether guild emojis are cached, required to look up emoji owners. """
        return (
            self.enabled and
            (
                CacheFlags.emojis in self.cache_flags or
                CacheFlags.partial_emojis in self.cache_flags
            )
        )

    @property
    def guilds(self) -> list["PartialGuild | Guild"]:
        """ Returns a list of all the guilds in the cache, in the order they were added. """
        return list(self.__guilds.values())

    def get_guild(self, guild_id: int | None) -> "PartialGuild | Guild | None":
        """ Returns the guild from the cache if it exists. """
        if guild_id is None:
            return None
        return self.__guilds.get(guild_id, None)

    def add_guild(
        self,
        guild: "PartialGuild | Guild"
    ) -> "PartialGuild | Guild | None":
        """
        Add a guild to the cache.

        What is actually stored depends on the cache flags.
        Re-adding a guild keeps its original position.

        Parameters
        ----------
        guild:
            The guild to add, along with its emojis

        Returns
        -------
            The guild object as stored, or `None` if guilds are not cached
        """
        if not self.enabled:
            return None

        if CacheFlags.guilds in self.cache_flags:
            guild_ = guild
        else:
            guild_ = self.bot.get_partial_guild(guild.id)

        emojis = list(guild._cache_emojis.values())
        guild_._cache_emojis = {}
        self.__guilds[guild_.id] = guild_
        self.update_emojis(guild_.id, emojis)

        _log.debug(f"Cached guild {guild_.id} with {len(guild_._cache_emojis)} emojis")
        return guild_

    def remove_guild(self, guild_id: int) -> "PartialGuild | Guild | None":
        """
        Remove a guild from the cache.

        Parameters
        ----------
        guild_id:
            Guild ID to remove

        Returns
        -------
            The guild object
        """
        if self.cache_flags is None:
            return None

        guild = self.__guilds.pop(guild_id, None)
        if guild:
            _log.debug(f"Removed guild {guild_id} from cache")

        return guild

    def update_emojis(
        self,
        guild_id: int,
        emojis: list["Emoji | PartialEmoji"]
    ) -> None:
        """
        Replace the emojis of a cached guild.

        Parameters
        ----------
        guild_id:
            Guild ID to update the emojis from
        emojis:
            Every emoji the guild has right now
        """
        if not self.emojis_enabled:
            return

        guild = self.get_guild(guild_id)
        if not guild:
            return

        if CacheFlags.emojis in self.cache_flags:
            guild._cache_emojis = {
                int(g.id): g
                for g in emojis
            }
        else:
            guild._cache_emojis = {
                int(g.id): self.bot.get_partial_emoji(g.id)
                for g in emojis
            }

    def find_emoji_guild_id(self, emoji_id: int) -> int | None:
        """
        Find the guild that owns an emoji, by looking through every cached guild.

        Guilds are checked in the order they were added to the cache,
        the first one that has the emoji wins.
        The answer is only as fresh as the cache, so look it up again
        right before acting on it instead of keeping it around.

        Parameters
        ----------
        emoji_id:
            The emoji to look for

        Returns
        -------
            The guild ID, or `None` if no cached guild has the emoji
        """
        if not self.emojis_enabled:
            return None

        for guild in self.guilds:
            if guild.has_emoji(emoji_id):
                return guild.id

        return None
