class AssistantError(Exception):
    """Base class for every error raised by the assistant."""


class ValidationError(AssistantError):
    """Caller supplied input that breaks the message or history rules."""


class UpstreamFetchError(AssistantError):
    """The commerce backend or a knowledge document could not be read."""


class CompletionEngineError(AssistantError):
    """Every model in the cascade failed to answer."""


class ChatProcessingError(AssistantError):
    """Generic failure surfaced to the caller instead of internal details."""
