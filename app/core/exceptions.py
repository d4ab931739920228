"""
Speech evaluation error taxonomy.

Each error carries the HTTP status, the short ``error`` label and the
caller-facing ``message`` used by the exception handlers in ``app.main``.
"""


class SpeechEvaluationError(Exception):
    """Base class for every classified evaluation failure."""

    status_code: int = 500
    error: str = "Processing Error"
    message: str = "An error occurred while processing your audio"
    # 개발 모드가 아니면 details에 내부 메시지를 노출하지 않음
    expose_details: bool = False

    def __init__(self, detail: str = ""):
        super().__init__(detail or self.message)
        self.detail = detail or self.message


class ConfigurationError(SpeechEvaluationError):
    """Azure Speech credentials are missing."""

    status_code = 500
    error = "Configuration Error"
    message = "Azure Speech Service is not properly configured"
    expose_details = True


class UploadValidationError(SpeechEvaluationError):
    """The upload is missing, too large, or not audio."""

    status_code = 400

    def __init__(self, error: str, message: str):
        super().__init__(message)
        self.error = error
        self.message = message

    @classmethod
    def missing_file(cls) -> "UploadValidationError":
        return cls("No audio file provided", "Please upload an audio file")

    @classmethod
    def invalid_type(cls, mime_type: str) -> "UploadValidationError":
        error = cls("Invalid File Type", "Only audio files are allowed")
        error.detail = f"Unsupported content type: {mime_type or 'unknown'}"
        return error

    @classmethod
    def too_large(cls, limit_bytes: int) -> "UploadValidationError":
        limit_mb = limit_bytes // (1024 * 1024)
        return cls("File Too Large", f"Audio file must be smaller than {limit_mb}MB")


class AudioFormatError(SpeechEvaluationError):
    """Neither the primary nor the fallback audio input could be built."""


class RecognitionError(SpeechEvaluationError):
    """
    The recognizer did not produce an assessable result.

    ``no_match=True`` means the engine heard no speech, which the caller can fix
    by recording again; anything else is an engine-side failure.
    """

    def __init__(self, detail: str, no_match: bool = False):
        super().__init__(detail)
        self.no_match = no_match
        if no_match:
            self.status_code = 400
            self.error = "Recognition Error"
            self.message = (
                "No speech could be recognized in the audio file. "
                "Please try speaking more clearly."
            )
            self.expose_details = True
