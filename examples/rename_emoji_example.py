# An example of how you can rename and delete a guild emoji
# The emoji's guild is looked up in the cache, so the guild has to be cached first
import asyncio

from discord_emojis import Client, ItemMissing, HTTPException

client = Client(token="BOT_TOKEN")


async def main() -> None:
    async with client:
        guild = client.get_partial_guild(86484642730885120)

        emojis = await guild.fetch_emojis()
        client.cache.add_guild(guild)
        client.cache.update_emojis(guild.id, emojis)

        emoji = emojis[0]
        print(f"{emoji} lives at {emoji.url}")

        try:
            await emoji.edit(name="blobcry")
        except ItemMissing:
            print("Could not find the guild of the emoji")
        except HTTPException as e:
            print(f"Discord refused the edit: {e}")
        else:
            print(f"Renamed to {emoji.name}")

        await emoji.delete(reason="Not needed anymore")


asyncio.run(main())
