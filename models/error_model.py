class AnalysisError(Exception):
    """Base exception for character analysis."""


class ProviderError(AnalysisError):
    """A remote provider call failed."""


class RecognitionFailure(ProviderError):
    """Character recognition could not be performed."""


class EmbeddingFailure(ProviderError):
    """An embedding could not be produced for a text."""


class MalformedProviderResponse(ProviderError):
    """A provider answered with a payload of an unexpected shape."""
