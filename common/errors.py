"""Error taxonomy shared by the gateway and the backing clients."""

from __future__ import annotations


class PipelineError(Exception):
    """Base class for failures reported to the caller as ``error`` strings."""

    status_code = 500


class ValidationError(PipelineError):
    status_code = 400


class ConfigurationError(PipelineError):
    pass


class AcquisitionError(PipelineError):
    pass


class AudioTimeoutError(AcquisitionError):
    pass


class AudioStreamError(AcquisitionError):
    pass


class EmptyAudioError(AcquisitionError):
    pass


class TranscriptionError(PipelineError):
    pass


class TranscriptionFailedError(TranscriptionError):
    pass


class NoUtterancesError(TranscriptionError):
    pass


class CleanupError(Exception):
    """Raised inside the AI cleanup attempt; never leaves the cleanup stage."""
