"""
Error taxonomy for the detection pipeline.

Per-tick errors (InvalidFrameError, EngineExecutionError) are contained by the
scheduler. Startup errors (AcquisitionError, ModelLoadError, LabelLoadError,
UnsupportedOutputShapeError, ConfigError) are reported once to the caller.
"""

from __future__ import annotations


class PipelineError(Exception):
    """Base class for all pipeline errors."""


class ConfigError(PipelineError):
    """Configuration value missing or out of range."""


class AcquisitionError(PipelineError):
    """Camera unavailable or already claimed by another source."""


class InvalidFrameError(PipelineError):
    """Malformed frame handed to the preprocessor."""


class UnsupportedOutputShapeError(PipelineError):
    """Decoder cannot interpret the model's output layout."""


class EngineExecutionError(PipelineError):
    """Inference call failed."""


class ModelLoadError(PipelineError):
    """Model asset missing or unreadable."""


class LabelLoadError(PipelineError):
    """Label asset missing or unreadable."""
