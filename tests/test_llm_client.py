"""Tests for the Gemini client wrapper and JSON parsing."""

import unittest
from unittest.mock import AsyncMock, patch

from src.errors import ConfigurationError, ModelOutputError
from src.llm.client import LLMClient, parse_json_response


class TestParseJsonResponse(unittest.TestCase):

    def test_plain_json(self):
        self.assertEqual(parse_json_response('{"a": 1}'), {"a": 1})

    def test_code_fence_stripped(self):
        self.assertEqual(parse_json_response('```json\n[1, 2]\n```'), [1, 2])
        self.assertEqual(parse_json_response('```\n[1, 2]'), [1, 2])

    def test_invalid(self):
        with self.assertRaises(ModelOutputError):
            parse_json_response("Here you go: {a: 1}")
        with self.assertRaises(ModelOutputError):
            parse_json_response("")


class TestLLMClient(unittest.IsolatedAsyncioTestCase):

    async def test_missing_project_is_configuration_error(self):
        client = LLMClient(project_id=None, region="us-central1")
        with self.assertRaises(ConfigurationError):
            await client.complete("hi")

    async def test_retries_rate_limit_then_succeeds(self):
        client = LLMClient(project_id="proj", region="us-central1")
        generate = AsyncMock(side_effect=[Exception("429 Resource exhausted"), '{"ok": true}'])
        with patch.object(LLMClient, "_get_client", return_value=object()), \
                patch.object(LLMClient, "_generate", generate), \
                patch("src.llm.client.asyncio.sleep", new=AsyncMock()) as sleep:
            self.assertEqual(await client.complete("hi"), '{"ok": true}')
        self.assertEqual(generate.await_count, 2)
        sleep.assert_awaited_once_with(2.0)

    async def test_other_errors_raise_immediately(self):
        client = LLMClient(project_id="proj", region="us-central1")
        generate = AsyncMock(side_effect=RuntimeError("400 bad request"))
        with patch.object(LLMClient, "_get_client", return_value=object()), \
                patch.object(LLMClient, "_generate", generate):
            with self.assertRaises(RuntimeError):
                await client.complete("hi")
        self.assertEqual(generate.await_count, 1)

    async def test_gives_up_after_max_retries(self):
        client = LLMClient(project_id="proj", region="us-central1")
        generate = AsyncMock(side_effect=Exception("429"))
        with patch.object(LLMClient, "_get_client", return_value=object()), \
                patch.object(LLMClient, "_generate", generate), \
                patch("src.llm.client.asyncio.sleep", new=AsyncMock()):
            with self.assertRaises(Exception):
                await client.complete("hi")
        self.assertEqual(generate.await_count, 3)


if __name__ == "__main__":
    unittest.main()
