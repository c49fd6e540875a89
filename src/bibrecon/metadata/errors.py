# ABOUTME: Error taxonomy for provider queries and reconciliation.
# ABOUTME: Distinguishes isolated provider failures from fatal deadline and input errors.


class ProviderFailure(Exception):
    """Raised when a single provider call fails."""

    def __init__(self, provider: str, message: str) -> None:
        super().__init__(message)
        self.provider = provider


class ProviderTimeout(ProviderFailure):
    """Raised when a single provider call exceeds its timeout."""

    def __init__(self, provider: str, timeout: float) -> None:
        super().__init__(provider, f"Provider {provider} timed out after {round(timeout * 1000)}ms")
        self.timeout = timeout


class GlobalTimeoutExceeded(Exception):
    """Raised when a whole coordinated query exceeds its deadline."""

    def __init__(self, timeout: float) -> None:
        super().__init__(f"Global timeout of {round(timeout * 1000)}ms exceeded")
        self.timeout = timeout


class ReconciliationInputError(ValueError):
    """Raised when a reconciler is called directly with no input."""
