import argparse
import asyncio
import os
import sys

import structlog

from quizforge.config import load_settings
from quizforge.errors import QuizForgeError
from quizforge.models import QuizGenerationOptions
from quizforge.services.cache import build_cache_registry
from quizforge.services.exporter import generate_quiz_summary
from quizforge.services.logging import configure_logging
from quizforge.services.pipeline import QuizPipeline

logger = structlog.get_logger()


def create_pipeline(settings=None, client=None) -> QuizPipeline:
    """Wire up the named caches and the pipeline that uses them"""
    settings = settings or load_settings()
    caches = build_cache_registry(settings, client=client).start()
    return QuizPipeline(caches, settings)


async def run(args) -> int:
    pipeline = create_pipeline()
    try:
        with open(args.pdf, "rb") as fh:
            data = fh.read()
        parsed = await pipeline.load_document(os.path.basename(args.pdf), data)
        options = QuizGenerationOptions(
            question_count=args.questions,
            question_types=args.types,
            include_explanations=not args.no_explanations,
        )
        response = await pipeline.build_quiz(parsed, options)
        exported = pipeline.export(
            response,
            args.format,
            title=args.title,
            include_answers=not args.no_answers,
            include_explanations=not args.no_explanations,
        )
        path = exported.write_to(args.output)
        print(generate_quiz_summary(response.questions))
        print(f"Saved {path}")
        print(pipeline.caches.cache_size_info())
        return 0
    except (QuizForgeError, OSError) as e:
        logger.error("quiz_run_failed", error=str(e))
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        pipeline.caches.close()


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Turn a PDF into a quiz")
    parser.add_argument("pdf", help="Path to the PDF file")
    parser.add_argument("--questions", type=int, default=10, help="Number of questions to generate")
    parser.add_argument("--types", nargs="+", choices=["mcq", "true_false"], default=["mcq", "true_false"])
    parser.add_argument("--format", choices=["txt", "pdf"], default="txt", help="Export format")
    parser.add_argument("--title", default="AI Generated Quiz")
    parser.add_argument("--output", default=".", help="Directory to write the export to")
    parser.add_argument("--no-answers", action="store_true")
    parser.add_argument("--no-explanations", action="store_true")
    args = parser.parse_args(argv)

    configure_logging()
    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main())
