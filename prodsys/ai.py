"""LLM collaborators that turn workspace context into structured advice."""

from __future__ import annotations

import json
import logging
import os
import re
from typing import Optional

from anthropic import Anthropic

from .config import AIConfig, Config
from .errors import AIServiceError
from .models import AIResponse
from .prompts import RESPONSE_FORMAT_INSTRUCTIONS


logger = logging.getLogger("prodsys.ai")

JSON_BLOCK_PATTERN = re.compile(r"\{[\s\S]*\}")
RAW_ANALYSIS_LIMIT = 500


def parse_ai_response(text: str) -> AIResponse:
    """Parse the model's reply, repairing anything that is not JSON.

    The outermost ``{...}`` block is parsed when present. Unparseable
    replies become an advisory response carrying the start of the raw text.
    """
    match = JSON_BLOCK_PATTERN.search(text)
    json_text = match.group(0) if match else text
    try:
        data = json.loads(json_text)
        if not isinstance(data, dict):
            raise ValueError(f"expected a JSON object, got {type(data).__name__}")
        return AIResponse.from_dict(data)
    except ValueError as e:
        logger.warning(f"AI JSON parsing failed: {e}")
        logger.debug(f"Raw AI response: {text}")
        return AIResponse(
            analysis=text[:RAW_ANALYSIS_LIMIT],
            suggestions=[
                "AI response was not in JSON format - check the raw response",
                "Consider adjusting AI prompts for better structured responses",
            ],
            proposed_changes=[],
            reasoning=f"AI response parsing failed: {e}",
        )


class AIService:
    """Interface for analysis providers."""

    provider = "base"

    def analyze(self, prompt: str, context: str) -> AIResponse:
        raise NotImplementedError


class AnthropicService(AIService):
    """Analysis backed by the Anthropic Messages API."""

    provider = "anthropic"

    def __init__(self, config: AIConfig, client: Optional[Anthropic] = None):
        self.config = config
        if client is None:
            api_key = os.getenv(config.api_key_env)
            if not api_key:
                raise AIServiceError(
                    f"Missing API key: {config.api_key_env} environment variable not set"
                )
            client = Anthropic(api_key=api_key, base_url=os.getenv("ANTHROPIC_BASE_URL"))
        self.client = client

    def analyze(self, prompt: str, context: str) -> AIResponse:
        content = f"{context}\n\n{prompt}\n\n{RESPONSE_FORMAT_INSTRUCTIONS}"
        try:
            message = self.client.messages.create(
                model=self.config.model,
                max_tokens=self.config.max_tokens,
                temperature=self.config.temperature,
                messages=[{"role": "user", "content": content}],
            )
        except Exception as e:
            raise AIServiceError(f"AI service error: {e}") from e

        blocks = [block for block in message.content if getattr(block, "type", None) == "text"]
        if not blocks:
            raise AIServiceError("Unexpected response type from AI service")
        return parse_ai_response(blocks[0].text)


class MockAIService(AIService):
    """Deterministic offline provider (``provider: local``)."""

    provider = "local"

    def analyze(self, prompt: str, context: str) -> AIResponse:
        return AIResponse(
            analysis="Mock analysis: System appears to be functioning normally.",
            suggestions=[
                "Continue with current tasks",
                "Consider reviewing completed items",
                "Plan next week's priorities",
            ],
            proposed_changes=[],
            reasoning="This is a mock response for testing purposes",
        )


def create_ai_service(config: Config) -> AIService:
    provider = config.ai.provider
    if provider == "anthropic":
        return AnthropicService(config.ai)
    if provider == "local":
        return MockAIService()
    raise ValueError(f"Unsupported AI provider: {provider}")
