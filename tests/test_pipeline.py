"""
Integration tests for the document-to-quiz pipeline
"""
import asyncio
from unittest.mock import patch

import pytest

from quizforge.config import Settings
from quizforge.errors import InvalidDocumentError, QuizGenerationError, TextValidationError
from quizforge.main import main
from quizforge.models import ModelResponse, ParsedPDF, QuizGenerationOptions
from quizforge.services.cache import build_cache_registry
from quizforge.services.pdf_parser import parse_pdf
from quizforge.services.pipeline import QuizPipeline
from quizforge.services.quiz_generator import generate_quiz

PDF_BYTES = b"%PDF-1.4\n%fake document\n"
SETTINGS = Settings(cache_backend="memory", simulated_delay=0)


@pytest.fixture
def pipeline():
    return QuizPipeline(build_cache_registry(SETTINGS), SETTINGS)


class TestLoadDocument:
    def test_parsed_once_per_file(self, pipeline):
        """Test a second upload of the same file is served from the pdf cache"""
        calls = []

        async def counting_parse(file_name, data, delay=0):
            calls.append(file_name)
            return await parse_pdf(file_name, data, delay=0)

        async def scenario():
            with patch("quizforge.services.pipeline.parse_pdf", counting_parse):
                first = await pipeline.load_document("notes.pdf", PDF_BYTES, "application/pdf")
                second = await pipeline.load_document("notes.pdf", PDF_BYTES, "application/pdf")
            return first, second

        first, second = asyncio.run(scenario())

        assert first == second
        assert calls == ["notes.pdf"]
        assert pipeline.caches.pdf.get_stats().size == 1

    def test_invalid_upload(self, pipeline):
        """Test invalid uploads are rejected before parsing"""
        with pytest.raises(InvalidDocumentError):
            asyncio.run(pipeline.load_document("notes.txt", b"hello", "text/plain"))
        assert pipeline.caches.pdf.get_stats().size == 0


class TestBuildQuiz:
    def load(self, pipeline) -> ParsedPDF:
        return asyncio.run(pipeline.load_document("notes.pdf", PDF_BYTES))

    def test_quiz_cached_per_text_and_options(self, pipeline):
        """Test repeated requests reuse the cached quiz"""
        parsed = self.load(pipeline)
        calls = []

        async def counting_generate(text, options=None, delay=0):
            calls.append(options.question_count)
            return await generate_quiz(text, options, delay=0)

        async def scenario():
            with patch("quizforge.services.pipeline.generate_quiz", counting_generate):
                first = await pipeline.build_quiz(parsed, QuizGenerationOptions(question_count=4))
                again = await pipeline.build_quiz(parsed, QuizGenerationOptions(question_count=4))
                other = await pipeline.build_quiz(parsed, QuizGenerationOptions(question_count=2))
            return first, again, other

        first, again, other = asyncio.run(scenario())

        assert len(first.questions) == 4
        assert again.questions == first.questions
        assert len(other.questions) == 2
        assert calls == [4, 2]

    def test_short_text_rejected(self, pipeline):
        """Test documents too short for a quiz raise a validation error"""
        parsed = ParsedPDF(text="Too short to quiz on.", pages=1, word_count=5)
        with pytest.raises(TextValidationError, match="too short"):
            asyncio.run(pipeline.build_quiz(parsed))

    def test_failed_generation_not_cached(self, pipeline):
        """Test a failed generation raises and leaves the quiz cache empty"""
        parsed = self.load(pipeline)

        async def failing_generate(text, options=None, delay=0):
            return ModelResponse(success=False, model="none", processing_time=0.1, error="no model available")

        with patch("quizforge.services.pipeline.generate_quiz", failing_generate):
            with pytest.raises(QuizGenerationError, match="no model available"):
                asyncio.run(pipeline.build_quiz(parsed))

        assert pipeline.caches.quiz.get_stats().size == 0

    def test_export(self, pipeline):
        """Test a generated quiz exports through the pipeline"""
        parsed = self.load(pipeline)
        response = asyncio.run(pipeline.build_quiz(parsed))

        exported = pipeline.export(response, "txt", title="Intro to AI")

        assert exported.filename == "intro_to_ai.txt"
        assert f"Total Questions: {len(response.questions)}" in exported.content.decode("utf-8")


class TestPersistentPipeline:
    def test_cached_results_survive_new_registry(self, fake_redis):
        """Test a fresh registry on the same Redis sees earlier results"""
        settings = Settings(cache_backend="persistent", simulated_delay=0)
        first = QuizPipeline(build_cache_registry(settings, client=fake_redis), settings)
        parsed = asyncio.run(first.load_document("notes.pdf", PDF_BYTES))
        response = asyncio.run(first.build_quiz(parsed))

        second = QuizPipeline(build_cache_registry(settings, client=fake_redis), settings)

        async def unreachable(*args, **kwargs):
            raise AssertionError("should be served from cache")

        with patch("quizforge.services.pipeline.parse_pdf", unreachable), \
                patch("quizforge.services.pipeline.generate_quiz", unreachable):
            parsed_again = asyncio.run(second.load_document("notes.pdf", PDF_BYTES))
            response_again = asyncio.run(second.build_quiz(parsed_again))

        assert isinstance(parsed_again, ParsedPDF)
        assert parsed_again == parsed
        assert isinstance(response_again, ModelResponse)
        assert response_again.questions == response.questions


class TestHealth:
    def test_memory_registry_healthy(self, pipeline):
        """Test health reports every cache"""
        status = pipeline.health()

        assert status["status"] == "healthy"
        assert set(status["checks"]) == {"quiz_cache", "pdf_cache", "api_cache"}

    def test_uptime_counts_from_pipeline_start(self):
        """Test uptime is measured from when the pipeline was built"""
        with patch("quizforge.services.monitoring.time") as fake_time:
            fake_time.time.return_value = 1000.0
            pipeline = QuizPipeline(build_cache_registry(SETTINGS), SETTINGS)
            fake_time.time.return_value = 1060.0
            pipeline.health()
            status = pipeline.health()

        assert status["uptime_seconds"] == 60.0

    def test_redis_outage_unhealthy(self, fake_redis):
        """Test a Redis outage marks the persistent caches unhealthy"""
        settings = Settings(cache_backend="persistent", simulated_delay=0)
        pipeline = QuizPipeline(build_cache_registry(settings, client=fake_redis), settings)
        fake_redis.fail_ping = True

        status = pipeline.health()

        assert status["status"] == "unhealthy"
        assert sorted(status["unhealthy_components"]) == ["pdf_cache", "quiz_cache"]


class TestCommandLine:
    def test_main_writes_export(self, tmp_path):
        """Test the command line turns a PDF into an exported quiz"""
        pdf = tmp_path / "lecture.pdf"
        pdf.write_bytes(PDF_BYTES)
        out = tmp_path / "out"
        out.mkdir()

        with patch("quizforge.main.load_settings", return_value=SETTINGS):
            code = main([str(pdf), "--format", "txt", "--questions", "3", "--output", str(out)])

        assert code == 0
        assert (out / "ai_generated_quiz.txt").exists()

    def test_main_missing_file(self, tmp_path):
        """Test a missing input file exits non-zero"""
        with patch("quizforge.main.load_settings", return_value=SETTINGS):
            code = main([str(tmp_path / "missing.pdf")])
        assert code == 1
