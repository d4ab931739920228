"""
Core utilities for the speech evaluation backend.
Provides the error taxonomy and audio input construction.
"""
from .exceptions import (
    SpeechEvaluationError,
    ConfigurationError,
    UploadValidationError,
    AudioFormatError,
    RecognitionError,
)

__all__ = [
    # Errors
    "SpeechEvaluationError",
    "ConfigurationError",
    "UploadValidationError",
    "AudioFormatError",
    "RecognitionError",
]
