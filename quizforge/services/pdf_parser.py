"""
PDF intake: upload validation and (simulated) text extraction
"""
import asyncio
import math
import re
from typing import Optional

import structlog

from quizforge.config import MAX_UPLOAD_BYTES, SIMULATED_DELAY
from quizforge.errors import InvalidDocumentError
from quizforge.models import DocumentMetadata, ParsedPDF
from quizforge.services.monitoring import DOCUMENTS_PARSED

logger = structlog.get_logger()

PDF_MEDIA_TYPE = "application/pdf"
WORDS_PER_PAGE = 300
READING_WPM = 200

# Extraction is simulated: every document yields this text.
SAMPLE_TEXT = """
Introduction to Artificial Intelligence

Artificial Intelligence (AI) refers to the simulation of human intelligence in machines
that are programmed to think and learn like humans. The term may also be applied to any
machine that exhibits traits associated with a human mind such as learning and problem-solving.

Types of AI:
1. Narrow AI (Weak AI) - AI that is designed to perform a narrow task
2. General AI (Strong AI) - AI with generalized human cognitive abilities
3. Superintelligence - AI that surpasses human intelligence in all areas

Applications of AI:
- Machine Learning and Data Analytics
- Natural Language Processing
- Computer Vision and Image Recognition
- Robotics and Automation
- Expert Systems and Decision Support

Key Concepts:
Machine Learning is a subset of AI that provides systems the ability to automatically
learn and improve from experience without being explicitly programmed. Deep Learning is
a subset of machine learning that uses neural networks with multiple layers.

Neural Networks are computing systems inspired by biological neural networks. They consist
of interconnected nodes (neurons) that process information using a connectionist approach.

Natural Language Processing (NLP) is a branch of AI that helps computers understand,
interpret and manipulate human language. It bridges the gap between human communication
and computer understanding.

Computer Vision enables machines to interpret and make decisions based on visual data.
It involves methods for acquiring, processing, analyzing and understanding digital images.

Conclusion:
AI continues to evolve and transform various industries. Understanding its fundamentals
is crucial for anyone working in technology today. The future of AI holds immense
potential for solving complex problems and improving human life.
"""


def validate_pdf(file_name: str, data: bytes, content_type: Optional[str] = None,
                 max_bytes: int = MAX_UPLOAD_BYTES) -> None:
    """Reject anything that is not a non-empty PDF under the size limit"""
    if content_type is not None:
        is_pdf = content_type == PDF_MEDIA_TYPE
    else:
        is_pdf = file_name.lower().endswith(".pdf")
    if not is_pdf:
        raise InvalidDocumentError("Please upload a PDF file only")
    if not data:
        raise InvalidDocumentError("File is empty")
    if len(data) > max_bytes:
        raise InvalidDocumentError(f"File size must be less than {max_bytes // (1024 * 1024)}MB")


async def parse_pdf(file_name: str, data: bytes, delay: float = SIMULATED_DELAY) -> ParsedPDF:
    """Extract text from an uploaded PDF.

    Extraction is simulated: after ``delay`` seconds the fixed sample document
    is returned, titled after the uploaded file.
    """
    if delay > 0:
        await asyncio.sleep(delay)

    text = SAMPLE_TEXT.strip()
    word_count = len(text.split())
    parsed = ParsedPDF(
        text=text,
        pages=math.ceil(word_count / WORDS_PER_PAGE),
        word_count=word_count,
        metadata=DocumentMetadata(
            title=re.sub(r"\.pdf$", "", file_name, count=1, flags=re.IGNORECASE),
            author="Unknown",
            subject="Educational Content",
        ),
    )
    DOCUMENTS_PARSED.labels(status="success").inc()
    logger.info("pdf_parsed", file_name=file_name, size_bytes=len(data), pages=parsed.pages, words=word_count)
    return parsed


def estimate_reading_time(word_count: int) -> int:
    """Minutes needed to read word_count words"""
    return math.ceil(word_count / READING_WPM)
