from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


QuestionType = Literal["mcq", "true_false"]
Difficulty = Literal["easy", "medium", "hard"]


class TextChunk(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    content: str
    # Offsets into the normalized text, before the content was trimmed
    start_index: int
    end_index: int
    word_count: int


class ChunkingOptions(BaseModel):
    max_words: int = Field(default=500, gt=0)
    max_chars: int = Field(default=3000, gt=0)
    overlap_chars: int = Field(default=50, ge=0)
    preserve_paragraphs: bool = True
    preserve_sentences: bool = True


class ChunkAnalysis(BaseModel):
    total_chunks: int
    avg_word_count: float
    min_word_count: int
    max_word_count: int
    avg_char_count: float
    min_char_count: int
    max_char_count: int


class CacheEntry(BaseModel):
    """A cached payload and its lifetime, in epoch seconds."""

    model_config = ConfigDict(populate_by_name=True, arbitrary_types_allowed=True)

    data: Any
    key: str
    timestamp: float
    expires_at: float = Field(alias="expiresAt")

    def is_expired(self, now: float) -> bool:
        return now > self.expires_at


class CacheStats(BaseModel):
    size: int
    backend: str
    degraded_entries: int = 0


class DocumentMetadata(BaseModel):
    title: Optional[str] = None
    author: Optional[str] = None
    subject: Optional[str] = None


class ParsedPDF(BaseModel):
    text: str
    pages: int
    word_count: int
    metadata: Optional[DocumentMetadata] = None


class QuizQuestion(BaseModel):
    id: str
    type: QuestionType
    question: str
    options: Optional[List[str]] = None
    correct_answer: Union[bool, str]
    explanation: Optional[str] = None
    difficulty: Optional[Difficulty] = None
    topic: Optional[str] = None


class QuizGenerationOptions(BaseModel):
    question_count: int = 10
    question_types: List[QuestionType] = Field(default_factory=lambda: ["mcq", "true_false"])
    difficulty: Literal["easy", "medium", "hard", "mixed"] = "mixed"
    include_explanations: bool = True


class ModelResponse(BaseModel):
    success: bool
    questions: List[QuizQuestion] = Field(default_factory=list)
    model: str
    processing_time: float
    error: Optional[str] = None


class TextValidation(BaseModel):
    is_valid: bool
    message: Optional[str] = None


class ExportMetadata(BaseModel):
    author: Optional[str] = None
    subject: Optional[str] = None
    keywords: List[str] = Field(default_factory=list)


class ExportOptions(BaseModel):
    format: str = "txt"
    include_answers: bool = True
    include_explanations: bool = True
    title: str = "AI Generated Quiz"
    metadata: ExportMetadata = Field(default_factory=ExportMetadata)


class ExportedFile(BaseModel):
    filename: str
    content: bytes
    media_type: str

    def write_to(self, directory: str) -> str:
        import os

        path = os.path.join(directory, self.filename)
        with open(path, "wb") as fh:
            fh.write(self.content)
        return path


def question_counts(questions: List[QuizQuestion]) -> Dict[str, int]:
    counts: Dict[str, int] = {"mcq": 0, "true_false": 0}
    for q in questions:
        counts[q.type] = counts.get(q.type, 0) + 1
    return counts
