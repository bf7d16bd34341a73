import argparse
import platform
import sys

from importlib.metadata import version, PackageNotFoundError

import discord_emojis

# Distributions worth reporting in a bug report, besides this one
DEPENDENCIES = ("aiohttp", "orjson", "multidict", "yarl")


def installed_version(distribution: str) -> str:
    """ Returns `v<version>` of an installed distribution, or a hint that it is missing. """
    try:
        return f"v{version(distribution).removeprefix('v')}"
    except PackageNotFoundError:
        return "not installed"


def version_report() -> str:
    """ Returns one line per component, names aligned. """
    rows = [
        ("python", f"v{platform.python_version()} ({sys.implementation.name})"),
        ("discord_emojis", f"v{discord_emojis.__version__}"),
        *((name, installed_version(name)) for name in DEPENDENCIES),
        ("system", f"{platform.system()} {platform.release()}"),
    ]

    width = max(len(name) for name, _ in rows)
    return "\n".join(f"{name:<{width}}  {value}" for name, value in rows)


def main() -> None:
    """ Entry point of `python -m discord_emojis`. """
    parser = argparse.ArgumentParser(
        prog="discord_emojis",
        description="Debugging helpers for discord_emojis"
    )
    parser.add_argument(
        "-v", "--version",
        action="store_true",
        help="Print the versions of discord_emojis, its dependencies and Python"
    )

    args = parser.parse_args()

    if not args.version:
        parser.print_help()
        return

    print(version_report())  # noqa: T201


if __name__ == "__main__":
    main()
