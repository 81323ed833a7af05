"""Error taxonomy for session processing.

Every error raised by a pipeline stage derives from PipelineError so the
batch driver can isolate a failed session and move on to the next one.
"""


class PipelineError(Exception):
    """Base class for errors that abort processing of a single session."""
    pass


class FormatError(PipelineError):
    """Raised when input data does not match the declared layout.

    Covers channel/column count mismatches, sample columns that are only
    partially valid, and out-of-range channel indices.
    """
    pass


class DataQualityError(PipelineError):
    """Raised when the data cannot support the requested computation.

    For example: every channel flagged bad, no samples left outside bad
    segments, or every ICA component rejected.
    """
    pass


class NumericalError(PipelineError):
    """Raised when a numerical routine fails (rank estimation, ICA fit)."""
    pass


class MissingInputError(PipelineError):
    """Raised by a review collaborator that has no answer for a session."""
    pass
