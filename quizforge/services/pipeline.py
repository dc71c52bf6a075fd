"""
Document-to-quiz pipeline: parse an upload, chunk it, generate a quiz, export it.
Parsed documents and generated quizzes are cached in the injected caches.
"""
from typing import Optional

import structlog

from quizforge.config import Settings
from quizforge.errors import QuizGenerationError, TextValidationError
from quizforge.models import (
    ChunkingOptions, ExportedFile, ExportOptions, ModelResponse, ParsedPDF,
    QuizGenerationOptions, question_counts
)
from quizforge.services.cache import (
    CacheRegistry, create_pdf_key, create_quiz_key, generate_text_hash
)
from quizforge.services.chunker import analyze_chunks, chunk_text, deduplicate_chunks
from quizforge.services.exporter import export_quiz
from quizforge.services.logging import log_performance
from quizforge.services.monitoring import HealthChecker
from quizforge.services.pdf_parser import parse_pdf, validate_pdf
from quizforge.services.quiz_generator import generate_quiz, validate_text_for_quiz

logger = structlog.get_logger()

QUIZ_CHUNKING = ChunkingOptions(max_words=500, overlap_chars=50)


class QuizPipeline:
    def __init__(self, caches: CacheRegistry, settings: Optional[Settings] = None):
        self.caches = caches
        self.settings = settings or Settings()
        self.health_checker = HealthChecker()

    @log_performance("load_document")
    async def load_document(self, file_name: str, data: bytes, content_type: Optional[str] = None) -> ParsedPDF:
        validate_pdf(file_name, data, content_type, max_bytes=self.settings.max_upload_bytes)
        key = create_pdf_key(file_name, len(data))

        async def produce() -> ParsedPDF:
            return await parse_pdf(file_name, data, delay=self.settings.simulated_delay)

        parsed = await self.caches.pdf.get_or_set(key, produce)
        logger.info("document_loaded", file_name=file_name, words=parsed.word_count, pages=parsed.pages)
        return parsed

    @log_performance("build_quiz")
    async def build_quiz(self, parsed: ParsedPDF, options: Optional[QuizGenerationOptions] = None) -> ModelResponse:
        options = options or QuizGenerationOptions()
        validation = validate_text_for_quiz(parsed.text)
        if not validation.is_valid:
            raise TextValidationError(validation.message)

        key = create_quiz_key(generate_text_hash(parsed.text), options)

        async def produce() -> ModelResponse:
            chunks = deduplicate_chunks(chunk_text(parsed.text, QUIZ_CHUNKING))
            stats = analyze_chunks(chunks)
            logger.info("document_chunked", chunks=stats.total_chunks, avg_words=stats.avg_word_count)

            response = await generate_quiz(parsed.text, options, delay=self.settings.simulated_delay)
            if not response.success or not response.questions:
                raise QuizGenerationError(response.error or "Failed to generate quiz questions", model=response.model)
            return response

        response = await self.caches.quiz.get_or_set(key, produce)
        counts = question_counts(response.questions)
        logger.info("quiz_ready", model=response.model, mcq=counts["mcq"], true_false=counts["true_false"])
        return response

    def export(self, response: ModelResponse, fmt: str = "txt", **options) -> ExportedFile:
        return export_quiz(response.questions, ExportOptions(format=fmt, **options))

    def health(self) -> dict:
        return self.health_checker.get_health_status(self.caches.all())
