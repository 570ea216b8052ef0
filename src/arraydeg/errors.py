"""Exception taxonomy for the analysis pipeline.

Every error carries the name of the pipeline stage that raised it so that a
failed run can report ``stage: message`` without parsing tracebacks.
"""

from __future__ import annotations
from typing import Optional


class ArrayDEGError(Exception):
    """Base class for all pipeline errors."""

    stage: str = "pipeline"

    def __init__(self, message: str, stage: Optional[str] = None) -> None:
        super().__init__(message)
        if stage is not None:
            self.stage = stage

    def __str__(self) -> str:
        return f"[{self.stage}] {super().__str__()}"


class MalformedInputError(ArrayDEGError, ValueError):
    """Raw intensity data is structurally invalid."""

    stage = "normalize"


class InvalidGroupLabelError(ArrayDEGError, ValueError):
    """A group code or label is outside the recognized set."""

    stage = "design"


class CardinalityMismatchError(ArrayDEGError, ValueError):
    """Number of group labels differs from the number of samples."""

    stage = "design"


class RankDeficientDesignError(ArrayDEGError, ValueError):
    """Design matrix cannot be fitted (e.g. a group without members)."""

    stage = "lm_fit"


class JoinKeyMismatchError(ArrayDEGError, UserWarning):
    """Annotation join key is missing on one side.

    Emitted as a warning when DEG rows have no annotation match, raised
    when the annotation table lacks the key column altogether.
    """

    stage = "annotate"
