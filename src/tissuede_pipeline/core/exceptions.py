"""
Error and warning types raised by the pipeline stages.

Fatal conditions derive from PipelineError and abort the run. Non-fatal
conditions are UserWarning subclasses: they are emitted with warnings.warn
and the run continues.
"""

from __future__ import annotations


class PipelineError(Exception):
    """Base class for fatal pipeline errors."""


class InputError(PipelineError):
    """Missing or malformed input file, invalid sample selection or config."""


class SchemaMismatchError(PipelineError):
    """Datasets cannot be combined (different genes, overlapping samples)."""


class BackendUnavailableError(PipelineError):
    """The R/edgeR backend needed by a statistical stage is not available."""


class BackendError(PipelineError):
    """R raised an error while running a statistical stage."""


class UndefinedRatioWarning(UserWarning):
    """A percentage had a zero denominator and was reported as NaN."""


class IdentifierMappingWarning(UserWarning):
    """A gene identifier had no resolvable symbol and was skipped."""
