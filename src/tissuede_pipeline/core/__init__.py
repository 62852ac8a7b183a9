"""
Core infrastructure for tissuede-pipeline.

Provides:
- Configuration management
- The immutable run context
- Error and warning types
"""

from tissuede_pipeline.core.config import (
    Config,
    ExportConfig,
    FilterConfig,
    ModelConfig,
    RunContext,
    TissueInput,
)
from tissuede_pipeline.core.exceptions import (
    BackendError,
    BackendUnavailableError,
    IdentifierMappingWarning,
    InputError,
    PipelineError,
    SchemaMismatchError,
    UndefinedRatioWarning,
)

__all__ = [
    "Config",
    "ExportConfig",
    "FilterConfig",
    "ModelConfig",
    "RunContext",
    "TissueInput",
    "PipelineError",
    "InputError",
    "SchemaMismatchError",
    "BackendError",
    "BackendUnavailableError",
    "UndefinedRatioWarning",
    "IdentifierMappingWarning",
]
