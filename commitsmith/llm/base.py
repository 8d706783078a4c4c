"""LLM Base Classes and Shared Code"""

from abc import ABC, abstractmethod
from dataclasses import dataclass

VALID_FORMATS = {"text", "json"}


@dataclass(frozen=True)
class GenerationOptions:
    """Per-call sampling settings."""
    temperature: float = 0.4
    max_tokens: int = 1000
    format: str = "text"
    timeout: float | None = None

    def __post_init__(self):
        if self.format not in VALID_FORMATS:
            raise ValueError(f"Invalid format '{self.format}', use one of {sorted(VALID_FORMATS)}")


class LLMError(Exception):
    """Raised when LLM operations fail."""
    pass


class LLMClient(ABC):
    """Abstract base for text-generation backends.

    A backend only issues the request and returns the raw text; prompt
    building and response parsing happen in the pipeline.
    """

    @abstractmethod
    def generate(self, system_prompt: str, user_prompt: str, options: GenerationOptions | None = None) -> str:
        pass

    @property
    @abstractmethod
    def name(self) -> str:
        pass

    def is_available(self) -> bool:
        return True
