"""
Custom exceptions for the decision analyzer.
"""


class DecisionAnalyzerError(Exception):
    """Base exception for the decision analyzer."""
    pass


class ConfigurationError(DecisionAnalyzerError):
    """Raised when analyzer configuration is invalid or missing."""
    pass


class ValidationFailed(DecisionAnalyzerError):
    """Raised when a decision lacks the minimum shape required for analysis."""
    def __init__(self, errors: list[str]):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors) or "Decision is not valid for analysis")


class NormalizationError(DecisionAnalyzerError):
    """Raised when a model response cannot be parsed at all."""
    pass


class NoJsonFound(NormalizationError):
    """The model response contains no JSON object."""
    def __init__(self, message: str = "No JSON found in response"):
        super().__init__(message)


class InvalidJson(NormalizationError):
    """The model response contains a JSON-looking span that does not parse."""
    def __init__(self, message: str = "Invalid JSON in AI response"):
        super().__init__(message)


class ProviderUnavailable(DecisionAnalyzerError):
    """Raised when a model provider call fails or exceeds its deadline."""
    def __init__(self, provider: str, message: str):
        self.provider = provider
        super().__init__(f"{provider}: {message}")


class AnalysisFailed(DecisionAnalyzerError):
    """Raised once both provider tiers are exhausted."""
    def __init__(self, message: str = "AI analysis failed. Please try again."):
        super().__init__(message)
