import os
import yarl

from typing import Literal, Self, TYPE_CHECKING

from . import utils
from .http import raise_for_status

if TYPE_CHECKING:
    from .http import DiscordAPI

AssetFormatTypes = Literal["webp", "jpeg", "jpg", "png", "gif"]

MISSING = utils.MISSING

__all__ = (
    "Asset",
)


class Asset:
    """
    An emoji image on Discord's CDN.

    Nothing is downloaded until `fetch` or `save` is called,
    and the URL itself is never checked to exist.

    Attributes
    ----------
    url: str
        The URL of the image
    animated: bool
        Whether the image is a GIF
    """
    BASE = "https://cdn.discordapp.com"

    def __init__(
        self,
        *,
        state: "DiscordAPI",
        url: str,
        animated: bool = False
    ):
        self._state = state

        self.url: str = url
        self.animated: bool = animated

    def __str__(self) -> str:
        return self.url

    def __repr__(self) -> str:
        return f"<Asset url='{self.url}'>"

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Asset) and self.url == other.url

    def __hash__(self) -> int:
        return hash(self.url)

    @classmethod
    def from_emoji(
        cls,
        state: "DiscordAPI",
        emoji_id: int,
        *,
        animated: bool = False
    ) -> Self:
        extension = "gif" if animated else "png"
        return cls(
            state=state,
            url=f"{cls.BASE}/emojis/{int(emoji_id)}.{extension}",
            animated=animated
        )

    async def fetch(self) -> bytes:
        """
        Downloads the image.

        Returns
        -------
            The raw image

        Raises
        ------
        `NotFound`
            The emoji does not exist (anymore)
        `HTTPException`
            The CDN answered with any other error
        """
        r = await self._state.http.request("GET", self.url, res_method="read")
        raise_for_status(r)
        return r.response

    async def save(self, path: str | os.PathLike) -> int:
        """
        Downloads the image into a file.

        Parameters
        ----------
        path:
            Where to write the image, extension included, e.g. `./blobcry.png`

        Returns
        -------
            The amount of bytes written
        """
        data = await self.fetch()
        with open(path, "wb") as f:
            return f.write(data)

    def replace(
        self,
        *,
        size: int = MISSING,
        format: AssetFormatTypes = MISSING  # noqa: A002
    ) -> Self:
        """
        Returns a copy pointing at another size or format of the same image.

        Parameters
        ----------
        size:
            The size in pixels, a power of 2 between 16 and 4096
        format:
            The file format to ask the CDN for

        Returns
        -------
            The new asset, this one is left alone
        """
        url = yarl.URL(self.url)

        if format is not MISSING:
            # with_suffix drops the query string
            url = url.with_suffix(f".{format}").with_query(url.query)

        if size is not MISSING:
            url = url.update_query(size=size)

        return type(self)(
            state=self._state,
            url=str(url),
            animated=self.animated
        )
