"""
Effect orchestration errors.

Raised at the parse/resolve seams and caught at the EffectManager boundary,
where every one of them is logged and the flow returns to IDLE. None of them
is fatal to the orchestrator.
"""


class EffectError(Exception):
    """Base class for effect orchestration errors"""

    pass


class MalformedNotificationError(EffectError):
    """Push message is not JSON, not an object, or has no `event`"""

    pass


class UnknownEffectKindError(EffectError):
    """Well-formed notification whose `event` has no transition-table entry"""

    def __init__(self, event: str):
        super().__init__(f"Unknown effect kind: {event!r}")
        self.event = event


class UnconfiguredEndpointError(EffectError):
    """Known effect kind without an endpoint template"""

    def __init__(self, kind: str):
        super().__init__(f"No endpoint configured for effect {kind!r}")
        self.kind = kind


class SubmissionFailedError(EffectError):
    """Non-2xx response or transport failure while posting an effect response"""

    def __init__(self, kind: str, reason: str, status: int | None = None):
        super().__init__(f"Submission of {kind!r} failed: {reason}")
        self.kind = kind
        self.reason = reason
        self.status = status
