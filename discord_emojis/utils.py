import logging
import re
import sys

from base64 import b64encode
from datetime import datetime, UTC
from typing import Any, TYPE_CHECKING

from .file import File

if TYPE_CHECKING:
    from .object import Snowflake

DISCORD_EPOCH = 1420070400000

# <:name:id> and <a:name:id>, the same text Emoji.mention renders
re_emoji: re.Pattern = re.compile(r"<(a)?:([a-zA-Z0-9_]+):([0-9]+)>")

# Magic bytes of the image formats Discord accepts for emojis
IMAGE_SIGNATURES: tuple[tuple[bytes, str], ...] = (
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
)


def snowflake_time(
    id: "Snowflake | int"  # noqa: A002
) -> datetime:
    """ Returns when a snowflake was generated, in UTC. """
    timestamp_ms = (int(id) >> 22) + DISCORD_EPOCH
    return datetime.fromtimestamp(timestamp_ms / 1000, tz=UTC)


def get_int(
    data: dict,
    key: str,
    *,
    default: int | None = None
) -> int | None:
    """
    Read an ID from a payload.

    Discord sends snowflakes as strings, but ints are accepted too.

    Parameters
    ----------
    data:
        The payload
    key:
        The key holding the ID
    default:
        Returned when the key is absent or `None`

    Returns
    -------
        The ID as an int

    Raises
    ------
    `ValueError`
        The value is not a whole number
    """
    value = data.get(key)
    if value is None:
        return default

    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValueError(f"{key!r} is not an integer: {value!r}") from None


def image_mime_type(image: bytes) -> str:
    """
    Guess the mime type of an emoji image from its first bytes.

    Raises
    ------
    `ValueError`
        Not a PNG, JPEG, GIF or WEBP image
    """
    for signature, mime in IMAGE_SIGNATURES:
        if image.startswith(signature):
            return mime

    if image[:4] == b"RIFF" and image[8:12] == b"WEBP":
        return "image/webp"

    raise ValueError("Emoji images must be PNG, JPEG, GIF or WEBP")


def image_to_data_uri(image: File | bytes) -> str:
    """
    Encode an emoji image as the data URI Discord expects in JSON bodies.

    Parameters
    ----------
    image:
        The raw bytes, or a `File` which is read without being closed

    Returns
    -------
        The image as `data:<mime>;base64,<data>`

    Raises
    ------
    `TypeError`
        Neither a `File` nor bytes
    `ValueError`
        The image format is not supported
    """
    if isinstance(image, File):
        data = image.read()
    elif isinstance(image, bytes | bytearray):
        data = bytes(image)
    else:
        raise TypeError(f"Expected File or bytes, got {type(image).__name__}")

    encoded = b64encode(data).decode("ascii")
    return f"data:{image_mime_type(data)};base64,{encoded}"


class _MissingType:
    """ Marks an argument that was not passed, where `None` means something else. """
    __slots__ = ()

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "MISSING"


MISSING: Any = _MissingType()


class CustomFormatter(logging.Formatter):
    """ Prefixes every line with a coloured level name and a grey timestamp. """
    reset = "\x1b[0m"
    grey = "\x1b[38;5;240m"

    # levelno: (label, colour, bracket colour)
    levels: dict[int, tuple[str, str, str]] = {
        logging.DEBUG: ("DEBUG", "\x1b[38;5;240m", "\x1b[38;5;244m"),
        logging.INFO: ("INFO", "\x1b[38;5;39m", "\x1b[38;5;75m"),
        logging.WARNING: ("WARN", "\x1b[38;5;226m", "\x1b[38;5;229m"),
        logging.ERROR: ("ERROR", "\x1b[38;5;196m", "\x1b[38;5;203m"),
        logging.CRITICAL: ("CRIT", "\x1b[31;1m", "\x1b[38;5;197m"),
    }
    unknown_level = ("OTHER", "\x1b[38;21m", "\x1b[38;5;250m")

    def __init__(self, datefmt: str | None = None):
        super().__init__(datefmt=datefmt)
        self._formatters: dict[int, logging.Formatter] = {}

    def _formatter_for(self, levelno: int) -> logging.Formatter:
        formatter = self._formatters.get(levelno)
        if formatter is not None:
            return formatter

        label, colour, bracket = self.levels.get(levelno, self.unknown_level)
        prefix = f"{bracket}[ {colour}{label:>5}{self.reset} {bracket}]{self.reset}"

        formatter = logging.Formatter(
            f"{prefix} {self.grey}%(asctime)s{self.reset} %(message)s",
            datefmt=self.datefmt
        )
        self._formatters[levelno] = formatter
        return formatter

    def format(self, record: logging.LogRecord) -> str:
        """ Format the log. """
        return self._formatter_for(record.levelno).format(record)


def setup_logger(
    *,
    level: int = logging.INFO
) -> logging.Logger:
    """
    Send the library's logs to stdout, coloured.

    Calling it again only changes the level.

    Parameters
    ----------
    level:
        The level of the library's logger

    Returns
    -------
        The library's logger
    """
    logger = logging.getLogger(__name__.partition(".")[0])
    logger.setLevel(level)

    if not any(isinstance(h.formatter, CustomFormatter) for h in logger.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(CustomFormatter(datefmt="%Y-%m-%d %H:%M:%S"))
        logger.addHandler(handler)

    return logger
