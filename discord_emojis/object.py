from datetime import datetime
from typing import TYPE_CHECKING

from . import utils

if TYPE_CHECKING:
    from .http import DiscordAPI

__all__ = (
    "PartialBase",
    "Snowflake",
)


class Snowflake:
    """
    Anything Discord identifies with a snowflake.

    Equality and hashing only look at the ID, so an `Emoji`,
    the `PartialEmoji` and the plain int of the same ID are all equal.
    """
    def __init__(
        self,
        *,
        id: int | str  # noqa: A002
    ):
        try:
            self.id: int = int(id)
        except (TypeError, ValueError):
            raise TypeError(f"Snowflake IDs must be integers, got {id!r}") from None

    def __repr__(self) -> str:
        return f"<{type(self).__name__} id={self.id}>"

    def __int__(self) -> int:
        return self.id

    def __hash__(self) -> int:
        return hash(self.id)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Snowflake):
            return self.id == other.id
        if isinstance(other, int):
            return self.id == other
        return NotImplemented

    @property
    def created_at(self) -> datetime:
        """ When the object was created, read from its ID. """
        return utils.snowflake_time(self.id)


class PartialBase(Snowflake):
    """ An object that only knows its ID and the state it acts through. """
    def __init__(
        self,
        *,
        state: "DiscordAPI",
        id: int  # noqa: A002
    ):
        super().__init__(id=id)
        self._state = state
