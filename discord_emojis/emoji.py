import re

from typing import TYPE_CHECKING, Self

from . import utils
from .asset import Asset
from .errors import ItemMissing
from .object import PartialBase

if TYPE_CHECKING:
    from .guild import Guild, PartialGuild
    from .http import DiscordAPI

__all__ = (
    "Emoji",
    "EmojiParser",
    "PartialEmoji",
)


class EmojiParser:
    """
    This is used to accept any input and convert
    to either a normal emoji or a Discord emoji automatically.

    It is used for things like reactions, forum, components, etc

    Examples
    --------
    - `EmojiParser("👍")`
    - `EmojiParser("<:name:1234567890123456789>")`
    - `EmojiParser("<a:name:1234567890123456789>")`
    """
    def __init__(self, emoji: str):
        self._original_name: str = emoji

        self.id: int | None = None
        self.animated: bool = False
        self.discord_emoji: bool = False

        is_custom: re.Match | None = utils.re_emoji.search(emoji)

        if is_custom:
            _animated, _name, _id = is_custom.groups()
            self.discord_emoji = True
            self.animated = bool(_animated)
            self.name: str = str(_name)
            self.id = int(_id)
        else:
            self.name: str = emoji

    def __repr__(self) -> str:
        if self.discord_emoji:
            return f"<EmojiParser name='{self.name}' id={self.id} animated={self.animated}>"
        return f"<EmojiParser name='{self.name}'>"

    def __str__(self) -> str:
        return self._original_name

    @classmethod
    def from_dict(cls, data: dict) -> Self:
        """
        Create an emoji from a partial emoji payload.

        Parameters
        ----------
        data:
            The payload, usually with `id`, `name` and `animated`

        Returns
        -------
            The parsed emoji
        """
        emoji_id = utils.get_int(data, "id")
        if emoji_id is None:
            return cls(data["name"])

        prefix = "a" if data.get("animated", False) else ""
        return cls(f"<{prefix}:{data['name']}:{emoji_id}>")

    @property
    def url(self) -> str | None:
        """ Returns the URL of the emoji if it's a Discord emoji. """
        if self.discord_emoji:
            format_ = "gif" if self.animated else "png"
            return f"{Asset.BASE}/emojis/{self.id}.{format_}"
        return None

    def to_dict(self) -> dict:
        """ Returns a dict representation of the emoji. """
        if self.discord_emoji:
            # Include animated, just in case
            return {
                "name": self.name,
                "id": self.id,
                "animated": self.animated
            }
        return {"name": self.name}

    def to_reaction(self) -> str:
        """ Returns the emoji in a format Discord accepts for reactions. """
        if self.discord_emoji:
            return f"{self.name}:{self.id}"
        return self._original_name


class PartialEmoji(PartialBase):
    """
    An emoji where only the ID is known.

    The owning guild is never stored on the emoji itself,
    it is looked up in the cache every time it is needed.
    """
    def __init__(
        self,
        *,
        state: "DiscordAPI",
        id: int  # noqa: A002
    ):
        super().__init__(state=state, id=id)

    @property
    def url(self) -> str:
        """ Returns the static URL of the emoji, animation is unknown for partial emojis. """
        return f"{Asset.BASE}/emojis/{self.id}.png"

    @property
    def guild(self) -> "Guild | PartialGuild | None":
        """ Returns the cached guild that currently owns this emoji, if any. """
        guild_id = self.find_guild_id()
        if guild_id is None:
            return None
        return self._state.cache.get_guild(guild_id)

    def find_guild_id(self) -> int | None:
        """
        Finds the ID of the guild that owns the emoji by looking through the cache.

        This is a plain read of whatever the cache holds right now,
        a missing cache, a missing guild or a missing emoji all give `None`.

        Returns
        -------
            The guild ID, or `None` if no owner could be found
        """
        cache = self._state.cache
        if cache is None:
            return None
        return cache.find_emoji_guild_id(self.id)

    def _resolve_guild_id(self) -> int:
        cache = self._state.cache
        if cache is None or not cache.emojis_enabled:
            raise ItemMissing(
                "Emojis are not cached, unable to find "
                f"the guild that owns emoji {self.id}"
            )

        guild_id = cache.find_emoji_guild_id(self.id)
        if guild_id is None:
            raise ItemMissing(f"No cached guild owns emoji {self.id}")

        return guild_id

    async def fetch(self, *, guild_id: int | None = None) -> "Emoji":
        """
        Fetches the emoji.

        Parameters
        ----------
        guild_id:
            The guild to fetch the emoji from, looked up in the cache if not provided

        Returns
        -------
            The emoji as Discord currently knows it

        Raises
        ------
        `ItemMissing`
            No guild_id was passed and the cache does not know the owner
        """
        if guild_id is None:
            guild_id = self._resolve_guild_id()

        return await self._state.fetch_emoji(guild_id, self.id)

    async def delete(
        self,
        *,
        reason: str | None = None
    ) -> None:
        """
        Deletes the emoji.

        The guild that owns the emoji is looked up in the cache first,
        the cache itself is left alone afterwards.
        Treat this object as stale once the emoji is deleted.

        Parameters
        ----------
        reason:
            The reason for deleting the emoji

        Raises
        ------
        `ItemMissing`
            The cache is unavailable or no cached guild owns the emoji,
            nothing was sent to Discord
        `HTTPException`
            Discord refused or failed to delete the emoji
        """
        guild_id = self._resolve_guild_id()

        await self._state.delete_emoji(
            guild_id,
            self.id,
            reason=reason
        )


class Emoji(PartialEmoji):
    """
    Represents a custom guild emoji.

    Attributes
    ----------
    id: int
        The ID of the emoji
    name: str
        The name of the emoji, 2 or more alphanumeric characters or underscores
    animated: bool
        Whether the emoji is animated
    managed: bool
        Whether the emoji is managed by an integration
    require_colons: bool
        Whether the emoji has to be wrapped in colons to be used
    available: bool
        Whether the emoji can be used, may be false due to loss of server boosts
    roles: list[int]
        The role IDs allowed to use the emoji, empty means everyone
    user_id: int | None
        The ID of the user that created the emoji, if Discord provided it
    """
    def __init__(
        self,
        *,
        state: "DiscordAPI",
        data: dict
    ):
        super().__init__(state=state, id=int(data["id"]))
        self._from_data(data)

    def __repr__(self) -> str:
        return f"<Emoji id={self.id} name='{self.name}' animated={self.animated}>"

    def __str__(self) -> str:
        return self.mention

    def _from_data(self, data: dict) -> None:
        self.name: str = data["name"]
        self.animated: bool = data.get("animated", False)
        self.managed: bool = data.get("managed", False)
        self.require_colons: bool = data.get("require_colons", False)
        self.available: bool = data.get("available", True)
        self.roles: list[int] = [int(r) for r in data.get("roles", [])]

        self.user_id: int | None = None
        if data.get("user"):
            self.user_id = int(data["user"]["id"])

    @property
    def mention(self) -> str:
        """ Returns the text Discord clients render as this emoji. """
        if self.animated:
            return f"<a:{self.name}:{self.id}>"
        return f"<:{self.name}:{self.id}>"

    @property
    def asset(self) -> Asset:
        """ Returns the image of the emoji as an asset. """
        return Asset.from_emoji(
            self._state,
            self.id,
            animated=self.animated
        )

    @property
    def url(self) -> str:
        """ Returns the CDN URL of the emoji, gif if animated, otherwise png. """
        return self.asset.url

    def to_dict(self) -> dict:
        """ Returns the emoji in the same shape Discord sends it. """
        payload = {
            "id": str(self.id),
            "name": self.name,
            "animated": self.animated,
            "managed": self.managed,
            "require_colons": self.require_colons,
            "available": self.available,
            "roles": [str(r) for r in self.roles],
        }

        if self.user_id is not None:
            payload["user"] = {"id": str(self.user_id)}

        return payload

    async def edit(
        self,
        *,
        name: str,
        reason: str | None = None
    ) -> None:
        """
        Renames the emoji.

        The guild that owns the emoji is looked up in the cache first.
        When Discord accepts the edit, every attribute of this object is
        replaced by the emoji Discord sent back, not only the name.
        If anything fails, this object is left exactly as it was.

        Parameters
        ----------
        name:
            The new name of the emoji
        reason:
            The reason for editing the emoji

        Raises
        ------
        `ItemMissing`
            The cache is unavailable or no cached guild owns the emoji,
            nothing was sent to Discord
        `HTTPException`
            Discord refused or failed to edit the emoji
        """
        guild_id = self._resolve_guild_id()

        edited = await self._state.edit_emoji(
            guild_id,
            self.id,
            {"name": name},
            reason=reason
        )

        # Nothing of the old record survives, not even attributes set locally
        vars(self).clear()
        vars(self).update(vars(edited))
