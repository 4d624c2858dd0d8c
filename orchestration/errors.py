"""Exception types raised by the intelligence layer."""


class NovaError(Exception):
    """Base class for Nova errors."""


class AIGatewayError(NovaError):
    """The AI backend failed or answered with something unusable."""


class QuotaExceededError(AIGatewayError):
    """The AI backend kept rejecting calls for quota/rate-limit reasons."""
