"""Claude (Anthropic) LLM Client"""

import os

import structlog

from commitsmith.llm.base import GenerationOptions, LLMClient, LLMError

log = structlog.get_logger(__name__)

JSON_INSTRUCTION = "Respond with a single JSON object and nothing else."


class ClaudeClient(LLMClient):
    """Claude API client. Requires ANTHROPIC_API_KEY env var."""

    DEFAULT_MODEL = "claude-sonnet-4-20250514"
    MAX_RETRIES = 2

    def __init__(self, api_key: str | None = None, model: str | None = None):
        self.api_key = api_key or os.environ.get("ANTHROPIC_API_KEY")
        self.model = model or self.DEFAULT_MODEL

        if not self.api_key:
            raise LLMError(
                "No API key found. Set ANTHROPIC_API_KEY environment variable:\n"
                "  export ANTHROPIC_API_KEY='your-key-here'"
            )

        try:
            from anthropic import Anthropic
            self._client = Anthropic(api_key=self.api_key, max_retries=self.MAX_RETRIES)
        except ImportError:
            raise LLMError(
                "Anthropic SDK not installed. Run:\n"
                "  pip install anthropic"
            )

    @property
    def name(self) -> str:
        return f"Claude ({self.model})"

    def is_available(self) -> bool:
        return bool(self.api_key) and self._client is not None

    def generate(self, system_prompt: str, user_prompt: str, options: GenerationOptions | None = None) -> str:
        from anthropic import APIError, APITimeoutError, AuthenticationError

        options = options or GenerationOptions()
        system = system_prompt
        if options.format == "json":
            system = f"{system_prompt}\n\n{JSON_INSTRUCTION}"

        request = {
            "model": self.model,
            "max_tokens": options.max_tokens,
            "temperature": options.temperature,
            "system": system,
            "messages": [{"role": "user", "content": user_prompt}],
        }
        if options.timeout:
            request["timeout"] = options.timeout

        try:
            response = self._client.messages.create(**request)
        except AuthenticationError:
            raise LLMError("Invalid API key. Check your ANTHROPIC_API_KEY.")
        except APITimeoutError:
            raise LLMError(f"Claude request timed out after {options.timeout}s")
        except APIError as e:
            raise LLMError(f"Claude API error: {e.message}")

        content = ""
        for block in response.content:
            if block.type == "text":
                content = block.text.strip()
                break

        log.debug(
            "claude_response",
            model=self.model,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
        )
        if not content:
            raise LLMError("Claude returned an empty response")
        return content
