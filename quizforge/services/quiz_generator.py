from __future__ import annotations

import asyncio
import random
import time
from typing import List, Optional

import structlog

from quizforge.config import SIMULATED_DELAY
from quizforge.models import ModelResponse, QuizGenerationOptions, QuizQuestion, TextValidation
from quizforge.services.monitoring import QUIZ_GENERATION_REQUESTS

logger = structlog.get_logger()

PRIMARY_MODEL = "gemini-1.5-flash"
FALLBACK_MODEL = "hugging-face-fallback"

MIN_QUIZ_WORDS = 50
MAX_QUIZ_WORDS = 10000
WORDS_PER_QUESTION = 150
MAX_ESTIMATED_QUESTIONS = 20


SAMPLE_MCQS = [
    {
        "type": "mcq",
        "question": "What does AI stand for?",
        "options": ["Artificial Intelligence", "Automated Intelligence", "Advanced Intelligence", "Augmented Intelligence"],
        "correct_answer": "Artificial Intelligence",
        "explanation": "AI stands for Artificial Intelligence, which refers to the simulation of human intelligence in machines.",
        "difficulty": "easy",
        "topic": "AI Basics",
    },
    {
        "type": "mcq",
        "question": "Which of the following is a subset of AI?",
        "options": ["Machine Learning", "Data Science", "Software Engineering", "Web Development"],
        "correct_answer": "Machine Learning",
        "explanation": "Machine Learning is a subset of AI that provides systems the ability to automatically learn and improve from experience.",
        "difficulty": "medium",
        "topic": "Machine Learning",
    },
    {
        "type": "mcq",
        "question": "What type of AI is designed to perform a narrow task?",
        "options": ["General AI", "Narrow AI", "Super AI", "Strong AI"],
        "correct_answer": "Narrow AI",
        "explanation": "Narrow AI (also called Weak AI) is designed to perform a narrow task, such as facial recognition or internet searches.",
        "difficulty": "medium",
        "topic": "AI Types",
    },
    {
        "type": "mcq",
        "question": "Which field helps computers understand human language?",
        "options": ["Computer Vision", "Natural Language Processing", "Robotics", "Expert Systems"],
        "correct_answer": "Natural Language Processing",
        "explanation": "Natural Language Processing (NLP) is a branch of AI that helps computers understand, interpret and manipulate human language.",
        "difficulty": "medium",
        "topic": "NLP",
    },
]

SAMPLE_TRUE_FALSE = [
    {
        "type": "true_false",
        "question": "Deep Learning is a subset of Machine Learning.",
        "correct_answer": True,
        "explanation": "True. Deep Learning is indeed a subset of Machine Learning that uses neural networks with multiple layers.",
        "difficulty": "easy",
        "topic": "Deep Learning",
    },
    {
        "type": "true_false",
        "question": "Neural networks are inspired by the human brain.",
        "correct_answer": True,
        "explanation": "True. Neural networks are computing systems inspired by biological neural networks that constitute animal brains.",
        "difficulty": "easy",
        "topic": "Neural Networks",
    },
    {
        "type": "true_false",
        "question": "AI can only work with structured data.",
        "correct_answer": False,
        "explanation": "False. AI can work with both structured and unstructured data, including text, images, audio, and video.",
        "difficulty": "medium",
        "topic": "Data Types",
    },
    {
        "type": "true_false",
        "question": "Computer Vision enables machines to interpret visual data.",
        "correct_answer": True,
        "explanation": "True. Computer Vision is a field of AI that enables machines to interpret and make decisions based on visual data.",
        "difficulty": "easy",
        "topic": "Computer Vision",
    },
]


def _sample_questions(options: QuizGenerationOptions, rng: random.Random) -> List[QuizQuestion]:
    pool = []
    if "mcq" in options.question_types:
        pool.extend(SAMPLE_MCQS)
    if "true_false" in options.question_types:
        pool.extend(SAMPLE_TRUE_FALSE)

    rng.shuffle(pool)
    stamp = int(time.time() * 1000)
    questions = []
    for index, item in enumerate(pool[:max(options.question_count, 0)]):
        data = dict(item, id=f"q_{stamp}_{index}")
        if not options.include_explanations:
            data["explanation"] = None
        questions.append(QuizQuestion(**data))
    return questions


async def generate_quiz(text: str, options: Optional[QuizGenerationOptions] = None,
                        delay: float = SIMULATED_DELAY, rng: Optional[random.Random] = None) -> ModelResponse:
    """Generate quiz questions for a document.

    Generation is simulated from a fixed question pool. If the primary model
    path fails the fallback model is tried once; if both fail the response has
    success=False instead of raising.
    """
    options = options or QuizGenerationOptions()
    rng = rng or random.Random()
    started = time.monotonic()

    try:
        if delay > 0:
            await asyncio.sleep(delay + rng.random() * 2)
        questions = _sample_questions(options, rng)
        QUIZ_GENERATION_REQUESTS.labels(model=PRIMARY_MODEL, status="success").inc()
        return ModelResponse(success=True, questions=questions, model=PRIMARY_MODEL,
                             processing_time=time.monotonic() - started)
    except Exception as e:
        QUIZ_GENERATION_REQUESTS.labels(model=PRIMARY_MODEL, status="error").inc()
        logger.warning("quiz_generation_failed", model=PRIMARY_MODEL, error=str(e))

    try:
        if delay > 0:
            await asyncio.sleep(delay / 3 + rng.random() * 2)
        questions = _sample_questions(options, rng)
        QUIZ_GENERATION_REQUESTS.labels(model=FALLBACK_MODEL, status="success").inc()
        return ModelResponse(success=True, questions=questions, model=FALLBACK_MODEL,
                             processing_time=time.monotonic() - started)
    except Exception as e:
        QUIZ_GENERATION_REQUESTS.labels(model=FALLBACK_MODEL, status="error").inc()
        logger.error("quiz_generation_failed", model=FALLBACK_MODEL, error=str(e))
        return ModelResponse(success=False, questions=[], model="none",
                             processing_time=time.monotonic() - started,
                             error="Failed to generate quiz questions from the provided text.")


def validate_text_for_quiz(text: str) -> TextValidation:
    if not text or not text.strip():
        return TextValidation(is_valid=False, message="Text content is empty")

    word_count = len(text.split())
    if word_count < MIN_QUIZ_WORDS:
        return TextValidation(is_valid=False, message=f"Text is too short. At least {MIN_QUIZ_WORDS} words are required for quiz generation.")
    if word_count > MAX_QUIZ_WORDS:
        return TextValidation(is_valid=False, message="Text is too long. Please use a document with fewer than 10,000 words.")
    return TextValidation(is_valid=True)


def estimate_question_count(text: str) -> int:
    # Roughly one question per 150 words
    estimated = len(text.split()) // WORDS_PER_QUESTION
    return max(1, min(estimated, MAX_ESTIMATED_QUESTIONS))
