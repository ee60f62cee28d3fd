"""
Error types raised by the alignment and deviation core.

Validation failures derive from ``ValueError`` so callers that already guard
NumPy-style argument errors keep working.
"""


class MeshDeviationError(Exception):
    """Base class for all errors raised by mesh_deviation."""


class InvalidInputError(MeshDeviationError, ValueError):
    """Empty point sets, non-finite coordinates or out-of-range parameters."""


class InsufficientCorrespondencesError(MeshDeviationError):
    """Fewer point pairs than needed to determine a rigid transform."""

    def __init__(self, n_pairs: int, required: int = 3):
        self.n_pairs = n_pairs
        self.required = required
        super().__init__(
            f"At least {required} point pairs are required to estimate a rigid "
            f"transform, got {n_pairs}."
        )
