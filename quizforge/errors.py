"""
Exceptions raised by the quizforge services.
"""


class QuizForgeError(Exception):
    """Base exception for quizforge."""
    pass


class InvalidDocumentError(QuizForgeError):
    """Raised when an uploaded file is not an acceptable PDF."""
    pass


class TextValidationError(QuizForgeError):
    """Raised when extracted text cannot be used for quiz generation."""
    pass


class QuizGenerationError(QuizForgeError):
    """Raised when no quiz could be produced for a document."""

    def __init__(self, message: str, model: str = "none"):
        super().__init__(message)
        self.model = model


class UnsupportedExportFormat(QuizForgeError):
    """Raised when an export is requested in an unknown format."""
    pass
