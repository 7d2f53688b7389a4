"""
Content-generation providers.

A provider turns a prompt plus a structured context object into a short piece
of natural-language text (a project name, an issue description, ...).
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

from pm_synth.exceptions import ContentGenerationError

logger = logging.getLogger(__name__)


SYSTEM_PROMPT = (
    "You are generating realistic test data for a web development agency's project "
    "management software. Generate data that reflects real client projects, tasks, and "
    'communications - like "E-commerce Site for Local Bakery" or "Website Redesign for '
    'Smith & Associates Law Firm". Focus on actual project details a web dev shop would '
    "track. Only return the specific data requested. Do not include any metadata, IDs, "
    "timestamps or other context. Please only return the data requested."
)


class ContentProvider:
    """Interface for content-generation providers."""

    async def generate(self, prompt: str, context: Dict[str, Any]) -> str:
        """
        Generate text for a prompt.

        Raises:
            ContentGenerationError: If no usable text was produced
        """
        raise NotImplementedError


class OpenAIContentProvider(ContentProvider):
    """Content provider backed by the OpenAI chat completions API."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "gpt-4o-mini",
        temperature: float = 0.85,
        client: Optional[Any] = None,
    ):
        """
        Initialize provider.

        Args:
            api_key: OpenAI API key (falls back to OPENAI_API_KEY)
            model: Chat model name
            temperature: Sampling temperature
            client: Pre-built AsyncOpenAI-compatible client
        """
        if client is None:
            from openai import AsyncOpenAI

            client = AsyncOpenAI(api_key=api_key)
        self.client = client
        self.model = model
        self.temperature = temperature

    async def generate(self, prompt: str, context: Dict[str, Any]) -> str:
        response = await self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": f"{prompt} {json.dumps(context, default=str)}"},
            ],
            temperature=self.temperature,
        )

        if response.choices and response.choices[0].message.content:
            return response.choices[0].message.content.strip()

        raise ContentGenerationError("Failed to generate data using OpenAI.")


class StaticContentProvider(ContentProvider):
    """
    Offline provider that fills prompts from Faker.

    Useful for dry runs without API access; the context is ignored.
    """

    def __init__(self, faker: Optional[Any] = None, max_chars: int = 80):
        if faker is None:
            from faker import Faker

            faker = Faker()
        self.faker = faker
        self.max_chars = max_chars

    async def generate(self, prompt: str, context: Dict[str, Any]) -> str:
        text = self.faker.text(max_nb_chars=max(self.max_chars, 5)).strip()
        if not text:
            raise ContentGenerationError("Faker returned empty text")
        return text
