import asyncio
import io
import os
import tempfile
import unittest

from unittest.mock import AsyncMock, patch

from multidict import CIMultiDict, CIMultiDictProxy

from discord_emojis import (
    Client, DiscordServerError, Emoji, File, Forbidden,
    HTTPClient, HTTPException, HTTPResponse, NotFound, Ratelimited
)

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 8


def make_response(
    status: int,
    response: dict | list | str | bytes | None = None,
    reason: str = "OK",
    res_method: str | None = None
) -> HTTPResponse:
    if res_method is None:
        res_method = "json" if isinstance(response, dict | list) else "text"

    return HTTPResponse(
        status=status,
        response=response if response is not None else {},
        reason=reason,
        res_method=res_method,
        headers=CIMultiDictProxy(CIMultiDict({
            "X-RateLimit-Limit": "5",
            "X-RateLimit-Remaining": "4",
            "X-RateLimit-Reset-After": "1.0",
        }))
    )


class TestDiscordAPI(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.client = Client(token="token", logging_level=None)
        self.state = self.client.state

        patcher = patch.object(HTTPClient, "request", new_callable=AsyncMock)
        self.request = patcher.start()
        self.addCleanup(patcher.stop)

    def test_api_url(self):
        self.assertEqual(self.state.api_url, "https://discord.com/api/v10")
        self.assertEqual(self.state._default_headers["Authorization"], "Bot token")

    def test_api_version_must_be_int(self):
        with self.assertRaises(TypeError):
            Client(token="token", api_version="10", logging_level=None)

    def test_bucket_key_is_per_guild(self):
        self.assertEqual(
            self.state._get_bucket_key("PATCH", "/guilds/42/emojis/7?x=1"),
            "PATCH /guilds/42/emojis"
        )
        self.assertEqual(
            self.state._get_bucket_key("patch", "/guilds/42/emojis/8"),
            "PATCH /guilds/42/emojis"
        )
        self.assertEqual(
            self.state._get_bucket_key("PATCH", "/guilds/43/emojis/7"),
            "PATCH /guilds/43/emojis"
        )

    async def test_success(self):
        self.request.return_value = make_response(200, {"id": "7"})

        r = await self.state.query("GET", "/guilds/42/emojis/7")
        self.assertEqual(r.response, {"id": "7"})

        args, kwargs = self.request.call_args
        self.assertEqual(args, ("GET", "https://discord.com/api/v10/guilds/42/emojis/7"))
        self.assertEqual(kwargs["res_method"], "json")

    async def test_error_mapping(self):
        cases = [
            (403, Forbidden),
            (404, NotFound),
            (400, HTTPException),
        ]

        for status, error in cases:
            with self.subTest(status=status):
                self.request.return_value = make_response(
                    status,
                    {"code": 50013, "message": "Nope"},
                    reason="Error"
                )

                with self.assertRaises(error) as ctx:
                    await self.state.query("GET", "/guilds/42/emojis")

                self.assertEqual(ctx.exception.status, status)
                self.assertEqual(ctx.exception.code, 50013)
                self.assertEqual(ctx.exception.text, "Nope")

    async def test_ratelimited_without_json(self):
        self.request.return_value = make_response(
            429, "error code: 1015", reason="Too Many Requests"
        )

        with self.assertRaises(Ratelimited):
            await self.state.query("GET", "/guilds/42/emojis")

        self.assertEqual(self.request.await_count, 1)

    async def test_ratelimit_is_waited_out(self):
        self.request.side_effect = [
            make_response(429, {"retry_after": 0.5, "message": "Slow down"}),
            make_response(200, {"id": "7"}),
        ]

        with patch.object(asyncio, "sleep", new_callable=AsyncMock) as sleep:
            r = await self.state.query("GET", "/guilds/42/emojis/7")

        self.assertEqual(r.response, {"id": "7"})
        self.assertEqual(self.request.await_count, 2)
        sleep.assert_awaited_once()
        self.assertAlmostEqual(sleep.await_args.args[0], 0.6)

    async def test_server_error_gives_up_after_five_attempts(self):
        self.request.return_value = make_response(
            503, "upstream connect error", reason="Service Unavailable"
        )

        with patch.object(asyncio, "sleep", new_callable=AsyncMock) as sleep:
            with self.assertRaises(DiscordServerError) as ctx:
                await self.state.query("GET", "/guilds/42/emojis")

        self.assertEqual(ctx.exception.status, 503)
        self.assertEqual(self.request.await_count, 5)
        self.assertEqual(sleep.await_count, 4)

    async def test_server_error_then_success(self):
        self.request.side_effect = [
            make_response(502, "bad gateway", reason="Bad Gateway"),
            make_response(200, {"id": "7"}),
        ]

        with patch.object(asyncio, "sleep", new_callable=AsyncMock):
            r = await self.state.query("GET", "/guilds/42/emojis/7")

        self.assertEqual(r.status, 200)
        self.assertEqual(self.request.await_count, 2)

    async def test_audit_log_reason(self):
        self.request.return_value = make_response(204, "")

        await self.state.delete_emoji(42, 7, reason="bye bye")

        args, kwargs = self.request.call_args
        self.assertEqual(args, ("DELETE", "https://discord.com/api/v10/guilds/42/emojis/7"))
        self.assertEqual(kwargs["res_method"], "text")
        self.assertEqual(kwargs["headers"]["X-Audit-Log-Reason"], "bye%20bye")
        self.assertNotIn("Content-Type", kwargs["headers"])

    async def test_edit_emoji(self):
        self.request.return_value = make_response(200, {
            "id": "7",
            "name": "blobcry",
            "roles": ["1"],
        })

        emoji = await self.state.edit_emoji(42, 7, {"name": "blobcry"})

        self.assertIsInstance(emoji, Emoji)
        self.assertEqual(emoji.name, "blobcry")
        self.assertEqual(emoji.roles, [1])

        args, kwargs = self.request.call_args
        self.assertEqual(args, ("PATCH", "https://discord.com/api/v10/guilds/42/emojis/7"))
        self.assertEqual(kwargs["json"], {"name": "blobcry"})

    async def test_fetch_emojis(self):
        self.request.return_value = make_response(200, [
            {"id": "7", "name": "blobface"},
            {"id": "8", "name": "blobcry", "animated": True},
        ])

        emojis = await self.client.get_partial_guild(42).fetch_emojis()

        self.assertEqual([e.id for e in emojis], [7, 8])
        self.assertEqual(emojis[1].mention, "<a:blobcry:8>")

    async def test_fetch_emoji_uses_cache_owner(self):
        self.client.add_guild({
            "id": "42",
            "name": "Guild",
            "emojis": [{"id": "7", "name": "blobface"}],
        })
        self.request.return_value = make_response(
            200, {"id": "7", "name": "blobface"}
        )

        emoji = await self.client.fetch_emoji(7)

        self.assertEqual(emoji.name, "blobface")
        args, _ = self.request.call_args
        self.assertEqual(args[1], "https://discord.com/api/v10/guilds/42/emojis/7")

    async def test_create_emoji(self):
        self.request.return_value = make_response(201, {
            "id": "9",
            "name": "blobnew",
            "roles": ["5"],
        })

        emoji = await self.client.get_partial_guild(42).create_emoji(
            "blobnew",
            image=PNG_BYTES,
            roles=[5],
            reason="new"
        )

        self.assertEqual(emoji.id, 9)

        args, kwargs = self.request.call_args
        self.assertEqual(args, ("POST", "https://discord.com/api/v10/guilds/42/emojis"))
        self.assertEqual(kwargs["json"]["name"], "blobnew")
        self.assertEqual(kwargs["json"]["roles"], [5])
        self.assertTrue(kwargs["json"]["image"].startswith("data:image/png;base64,"))

    async def test_create_emoji_from_path_closes_file(self):
        self.request.return_value = make_response(201, {"id": "9", "name": "blobnew"})

        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "blobnew.png")
            with open(path, "wb") as f:
                f.write(PNG_BYTES)

            image = File(path)
            await self.client.get_partial_guild(42).create_emoji("blobnew", image=image)

        self.assertTrue(image.closed)
        _, kwargs = self.request.call_args
        self.assertNotIn("roles", kwargs["json"])
        self.assertTrue(kwargs["json"]["image"].startswith("data:image/png;base64,"))

    async def test_create_emoji_from_buffer_leaves_it_open(self):
        self.request.return_value = make_response(201, {"id": "9", "name": "blobnew"})
        buffer = io.BytesIO(PNG_BYTES)

        await self.client.get_partial_guild(42).create_emoji(
            "blobnew",
            image=File(buffer, filename="blobnew.png"),
            roles=None
        )

        self.assertFalse(buffer.closed)
        self.assertEqual(buffer.tell(), 0)
        _, kwargs = self.request.call_args
        self.assertEqual(kwargs["json"]["roles"], [])


class TestEmojiAsset(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.client = Client(token="token", logging_level=None)
        self.emoji = Emoji(
            state=self.client.state,
            data={"id": "7", "name": "blobface"}
        )

        patcher = patch.object(HTTPClient, "request", new_callable=AsyncMock)
        self.request = patcher.start()
        self.addCleanup(patcher.stop)

    async def test_fetch(self):
        self.request.return_value = make_response(200, PNG_BYTES, res_method="read")

        data = await self.emoji.asset.fetch()

        self.assertEqual(data, PNG_BYTES)
        self.request.assert_awaited_once_with(
            "GET", "https://cdn.discordapp.com/emojis/7.png", res_method="read"
        )

    async def test_fetch_missing_emoji(self):
        self.request.return_value = make_response(
            404, b"", reason="Not Found", res_method="read"
        )

        with self.assertRaises(NotFound):
            await self.emoji.asset.fetch()

    async def test_save(self):
        self.request.return_value = make_response(200, PNG_BYTES, res_method="read")

        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "blobface.png")
            written = await self.emoji.asset.save(path)

            with open(path, "rb") as f:
                self.assertEqual(f.read(), PNG_BYTES)

        self.assertEqual(written, len(PNG_BYTES))


class TestSessionLifecycle(unittest.IsolatedAsyncioTestCase):
    async def test_close_awaits_pruning_task(self):
        client = Client(token="token", logging_level=None)

        await client.start()
        task = client.state._cleanup_task
        self.assertIsNotNone(client.state.http.session)

        await client.close()

        self.assertTrue(task.done())
        self.assertTrue(task.cancelled())
        self.assertIsNone(client.state._cleanup_task)
        self.assertIsNone(client.state.http.session)

    async def test_prune_buckets(self):
        client = Client(token="token", logging_level=None)
        state = client.state

        fresh = state.get_bucket("GET /guilds/1/emojis")
        fresh.last_used = asyncio.get_running_loop().time()
        stale = state.get_bucket("GET /guilds/2/emojis")
        stale.last_used = fresh.last_used - 301

        self.assertEqual(state.prune_buckets(), 1)
        self.assertIs(state.get_bucket("GET /guilds/1/emojis"), fresh)
        self.assertIsNot(state.get_bucket("GET /guilds/2/emojis"), stale)


if __name__ == "__main__":
    unittest.main()
