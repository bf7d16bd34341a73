from enum import Flag, CONFORM
from typing import Self

__all__ = (
    "BaseFlag",
    "CacheFlags",
)


class BaseFlag(Flag, boundary=CONFORM):
    """ A `Flag` that can be built from, and listed as, member names. """

    @classmethod
    def from_names(cls, *names: str) -> Self:
        """
        Create a flag from member names.

        Parameters
        ----------
        *names:
            The names to combine

        Returns
        -------
            The combined flag

        Raises
        ------
        `ValueError`
            A name is not a member of the flag
        """
        flags = cls(0)
        for name in names:
            try:
                flags |= cls[name]
            except KeyError:
                raise ValueError(f"{name} is not a valid {cls.__name__} name") from None
        return flags

    @property
    def list_names(self) -> list[str]:
        """ Returns the names of every member set in the flag. """
        return [flag.name for flag in self]


class CacheFlags(BaseFlag):
    """
    Controls what the client keeps in its local cache.

    `guilds` and `partial_guilds` decide how guilds are stored,
    `emojis` and `partial_emojis` decide how each guild's emojis are stored.
    Without any emoji flag, no guild will ever be found as an emoji owner.
    """
    partial_guilds = 1 << 0
    partial_emojis = 1 << 1
    guilds = 1 << 50
    emojis = 1 << 51
