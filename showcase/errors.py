class ShowcaseError(Exception):
    """Base exception class for the Literary Showcase generation core."""
    pass

class ConfigurationError(ShowcaseError):
    """Raised when no usable provider key is configured."""
    pass

class ProviderError(ShowcaseError):
    """Raised when a provider call fails. Carries the provider name."""

    def __init__(self, message: str, provider: str = ""):
        super().__init__(message)
        self.provider = provider

class TransportError(ProviderError):
    """Raised on network errors or non-2xx HTTP responses."""
    pass

class AuthenticationError(ProviderError):
    """Raised when an API key is missing, too short or rejected."""
    pass

class EmptyResponseError(ProviderError):
    """Raised when a provider answers without any text."""
    pass

class ParseError(ProviderError):
    """Raised when a provider response is not the expected JSON."""
    pass

class ProviderChainExhausted(ShowcaseError):
    """Raised when every provider in the fallback chain failed."""

    def __init__(self, errors: dict):
        self.errors = errors
        summary = ", ".join(f"{name}: {err}" for name, err in errors.items())
        super().__init__(f"All providers failed ({summary})")

class ConflictError(ShowcaseError):
    """Raised when a prompt save carries a stale expected version."""

    def __init__(self, current: int, expected: int):
        super().__init__(f"Version conflict: current={current}, expected={expected}")
        self.current = current
        self.expected = expected

class NotFoundError(ShowcaseError):
    """Raised when a prompt or prompt version does not exist."""
    pass

class ValidationError(ShowcaseError):
    """Raised when caller input is rejected."""
    pass

class InvalidPromptError(ValidationError):
    """Raised when prompt content fails validation."""
    pass
