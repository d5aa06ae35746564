"""Exceptions raised by the distribution engine.

Data-quality problems, lookup misses and missing customs settings never
raise: they degrade to 0 and are logged. Only the cases below surface.
"""


class PrimDistError(Exception):
    """Base class for engine errors."""


class ReferenceDataError(PrimDistError):
    """A reference table is structurally unusable (e.g. required columns missing)."""


class BatchGenerationError(PrimDistError):
    """An unexpected failure while generating a batch; its partial rows were discarded."""

    def __init__(self, batch_id: str, message: str):
        super().__init__(f"batch {batch_id}: {message}")
        self.batch_id = batch_id


class UnknownBatchError(PrimDistError):
    """The requested batch id has no generated routes."""


class InvalidQuantityError(PrimDistError):
    """A quantity update would break 0 <= qty <= max_qty."""
