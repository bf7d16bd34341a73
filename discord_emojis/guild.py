from typing import TYPE_CHECKING

from . import utils
from .emoji import Emoji, PartialEmoji
from .file import File
from .object import PartialBase, Snowflake

if TYPE_CHECKING:
    from .http import DiscordAPI

MISSING = utils.MISSING

__all__ = (
    "Guild",
    "PartialGuild",
)


class PartialGuild(PartialBase):
    """
    A guild where only the ID is known.

    Holds the guild's cached emojis, keyed by ID. IDs are unique
    within one guild, the cache does not enforce it across guilds.
    """
    def __init__(
        self,
        *,
        state: "DiscordAPI",
        id: int  # noqa: A002
    ):
        super().__init__(state=state, id=id)
        self._cache_emojis: dict[int, Emoji | PartialEmoji] = {}

    @property
    def emojis(self) -> list[Emoji | PartialEmoji]:
        """ Returns the cached emojis of the guild. """
        return list(self._cache_emojis.values())

    def get_emoji(self, emoji_id: int) -> Emoji | PartialEmoji | None:
        """ Returns a cached emoji of the guild, or `None`. """
        return self._cache_emojis.get(int(emoji_id))

    def has_emoji(self, emoji_id: int) -> bool:
        """ Whether the guild's cached emojis include this ID. """
        return int(emoji_id) in self._cache_emojis

    def get_partial_emoji(self, emoji_id: int) -> PartialEmoji:
        """ Returns a partial emoji, the cache is not consulted. """
        return PartialEmoji(state=self._state, id=emoji_id)

    async def fetch_emojis(self) -> list[Emoji]:
        """ Fetches every emoji of the guild. """
        return await self._state.fetch_emojis(self.id)

    async def fetch_emoji(self, emoji_id: int) -> Emoji:
        """ Fetches one emoji of the guild. """
        return await self.get_partial_emoji(emoji_id).fetch(guild_id=self.id)

    async def create_emoji(
        self,
        name: str,
        *,
        image: File | bytes,
        roles: list[Snowflake | int] | None = MISSING,
        reason: str | None = None
    ) -> Emoji:
        """
        Create an emoji in the guild.

        Parameters
        ----------
        name:
            Name of the emoji
        image:
            PNG, JPEG, GIF or WEBP image.
            A `File` made from a path is closed once it has been read.
        roles:
            Roles allowed to use the emoji, everyone if not provided
        reason:
            Shown in the guild's audit log

        Returns
        -------
            The created emoji
        """
        try:
            payload: dict = {
                "name": name,
                "image": utils.image_to_data_uri(image)
            }
        finally:
            if isinstance(image, File):
                image.close()

        if roles is not MISSING:
            payload["roles"] = [int(r) for r in roles or []]

        return await self._state.create_emoji(
            self.id,
            payload,
            reason=reason
        )


class Guild(PartialGuild):
    """ A guild as sent by Discord, emojis included. """
    def __init__(
        self,
        *,
        state: "DiscordAPI",
        data: dict
    ):
        super().__init__(state=state, id=int(data["id"]))

        self.name: str = data["name"]
        self._cache_emojis = {
            int(e["id"]): Emoji(state=state, data=e)
            for e in data.get("emojis", [])
        }

    def __repr__(self) -> str:
        return f"<Guild id={self.id} name='{self.name}'>"

    def __str__(self) -> str:
        return self.name
