"""Error taxonomy for the valuation pipeline."""


class ValuationError(Exception):
    """Base class for pipeline errors."""


class ValidationError(ValuationError):
    """Request is missing required fields or has no usable postal code.

    Raised before any cache, provider or store access.
    """


class ProviderError(ValuationError):
    """Provider output could not be turned into a price.

    Raised by the parsing helpers and always absorbed by the estimator
    strategies, which report the outcome as unavailable.
    """


class PersistenceError(ValuationError):
    """The lead store rejected the valuation write."""
