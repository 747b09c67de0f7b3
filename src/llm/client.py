"""Gemini LLM client used for planning, extraction and JSON repair.

Uses the google-genai SDK against Vertex AI. The client is created on
first use so a missing project id surfaces as a ConfigurationError at
the stage that needs the model.
"""

import asyncio
import json
import logging
from typing import Any, Optional, Protocol

from google import genai
from google.genai import types

from src.errors import ConfigurationError, ModelOutputError
from src.llm.prompts import SYSTEM_PROMPT

logger = logging.getLogger(__name__)

# Retry settings
_MAX_RETRIES = 3
_BASE_BACKOFF_SECONDS = 2.0


class CompletionModel(Protocol):
    async def complete(self, prompt: str) -> str: ...


class LLMClient:
    """Client for Vertex AI Gemini generative models."""

    def __init__(
        self,
        project_id: Optional[str],
        region: str,
        model_name: str = "gemini-2.0-flash",
        temperature: float = 0.1,
        max_output_tokens: int = 8192,
    ):
        """Initialize the LLM client.

        Args:
            project_id: GCP project ID. Required before the first call.
            region: GCP region for Vertex AI endpoint.
            model_name: Gemini model name.
            temperature: Sampling temperature.
            max_output_tokens: Response token cap.
        """
        self.project_id = project_id
        self.region = region
        self.model_name = model_name
        self.generation_config = types.GenerateContentConfig(
            system_instruction=SYSTEM_PROMPT,
            response_mime_type="application/json",
            temperature=temperature,
            max_output_tokens=max_output_tokens,
        )
        self._client: Optional[genai.Client] = None

    def _get_client(self) -> genai.Client:
        if not self.project_id:
            raise ConfigurationError(
                "GCP project id is not set (llm.project_id or GCP_PROJECT_ID)"
            )
        if self._client is None:
            self._client = genai.Client(
                vertexai=True, project=self.project_id, location=self.region
            )
            logger.info(
                "LLMClient initialized: model=%s, region=%s", self.model_name, self.region
            )
        return self._client

    async def complete(self, prompt: str) -> str:
        """Send ``prompt`` to the model and return the raw response text.

        Rate-limit responses (429 / resource exhausted) are retried with
        exponential backoff; any other error is raised immediately.

        Raises:
            ConfigurationError: If no project id is configured.
        """
        client = self._get_client()

        for attempt in range(_MAX_RETRIES - 1):
            try:
                return await self._generate(client, prompt)
            except Exception as e:
                error_str = str(e).lower()
                if "429" in error_str or "resource exhausted" in error_str:
                    wait_time = _BASE_BACKOFF_SECONDS * (2 ** attempt)
                    logger.warning(
                        "LLM rate limited (attempt %d/%d), retrying in %.1fs",
                        attempt + 1,
                        _MAX_RETRIES,
                        wait_time,
                    )
                    await asyncio.sleep(wait_time)
                else:
                    logger.error("LLM call failed: %s", e)
                    raise
        # Final attempt without catching
        return await self._generate(client, prompt)

    async def _generate(self, client: genai.Client, prompt: str) -> str:
        response = await client.aio.models.generate_content(
            model=self.model_name,
            contents=prompt,
            config=self.generation_config,
        )
        text = response.text or ""
        logger.debug("LLM returned %d chars", len(text))
        return text


def parse_json_response(response_text: str) -> Any:
    """Parse model output as JSON, tolerating markdown code fences.

    Raises:
        ModelOutputError: If the text is not valid JSON.
    """
    text = (response_text or "").strip()
    if text.startswith("```"):
        lines = text.split("\n")
        # Remove first and last lines (code fences)
        lines = lines[1:-1] if lines[-1].strip() == "```" else lines[1:]
        text = "\n".join(lines)

    try:
        return json.loads(text)
    except (json.JSONDecodeError, ValueError) as e:
        raise ModelOutputError(f"model output is not valid JSON: {e}") from e
