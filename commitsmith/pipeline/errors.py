"""Pipeline Exceptions"""


class PipelineError(Exception):
    """Base for failures that end a pipeline run."""
    kind = "unexpected"


class NothingToAnalyzeError(PipelineError):
    """Raised when the diff is empty, unparseable, or no files are staged."""
    kind = "empty_input"


class ProviderUnavailableError(PipelineError):
    """Raised when the text-generation backend cannot be reached."""
    kind = "provider_unavailable"


class GenerationError(PipelineError):
    """Raised when no commit message can be extracted from a response."""
    pass


class PipelineCancelled(PipelineError):
    """Raised when the caller cancels a run between calls."""
    kind = "cancelled"
