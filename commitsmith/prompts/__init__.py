"""Prompt construction Package"""

from commitsmith.prompts.builder import PromptBuilder, PromptConfig, RefinementRequest, REFLECTION_CRITERIA
from commitsmith.prompts.examples import COMMIT_EXAMPLES, CommitExample, format_examples, select_relevant_examples

__all__ = [
    "PromptBuilder",
    "PromptConfig",
    "RefinementRequest",
    "REFLECTION_CRITERIA",
    "COMMIT_EXAMPLES",
    "CommitExample",
    "format_examples",
    "select_relevant_examples",
]
