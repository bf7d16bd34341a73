__version__ = "1.0.0"

# flake8: noqa: E402, F401
from .asset import Asset
from .cache import Cache
from .client import Client
from .emoji import Emoji, EmojiParser, PartialEmoji
from .errors import (
    DiscordException, DiscordServerError, Forbidden, HTTPException,
    ItemMissing, ModelError, NotFound, Ratelimited
)
from .file import File
from .flags import BaseFlag, CacheFlags
from .guild import Guild, PartialGuild
from .http import DiscordAPI, HTTPClient, HTTPResponse
from .object import PartialBase, Snowflake
from .utils import DISCORD_EPOCH, MISSING
