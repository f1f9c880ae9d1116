"""Patchbay error hierarchy.

All patchbay-specific errors inherit from PatchbayError for easy catching.
"""


class PatchbayError(Exception):
    """Base error for all patchbay operations."""


class ConfigError(PatchbayError):
    """Invalid or missing configuration."""


class SnapshotError(PatchbayError):
    """A persisted snapshot could not be read or written."""


class BindingError(PatchbayError):
    """A binding names a property the target object cannot accept."""


class PropagationError(PatchbayError):
    """Error in the propagation engine."""


class PropagationDepthError(PropagationError):
    """A traversal applied more writes than the configured cap allows.

    Raised after the store has been restored to its pre-traversal state.
    """

    def __init__(self, root_id: str, steps: int) -> None:
        self.root_id = root_id
        self.steps = steps
        super().__init__(
            f"propagation depth exceeded: {steps} writes from {root_id!r}"
        )


class CodecError(PatchbayError):
    """A value cannot be represented in the wire protocol."""


class TransportError(PatchbayError):
    """The byte-stream transport failed to open, read, or write."""


class TransportUnavailableError(TransportError):
    """No transport capability is available in this environment."""
