"""
Quiz export to plain text and PDF
"""
import io
import re
from datetime import date
from typing import Dict, List, Optional
from xml.sax.saxutils import escape

import structlog
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.pdfgen import canvas
from reportlab.platypus import KeepTogether, Paragraph, SimpleDocTemplate, Spacer
from reportlab.platypus.flowables import HRFlowable

from quizforge.errors import UnsupportedExportFormat
from quizforge.models import ExportedFile, ExportOptions, QuizQuestion, question_counts

logger = structlog.get_logger()

CHECK_MARK = "✓"
SEPARATOR_WIDTH = 80
FOOTER_TEXT = "Generated by AI Quiz Generator"
MARGIN = 20 * mm


def sanitize_filename(filename: str) -> str:
    filename = re.sub(r"[^a-z0-9\s_-]", "", filename, flags=re.IGNORECASE)
    filename = re.sub(r"\s+", "_", filename)
    filename = re.sub(r"_+", "_", filename)
    return filename.lower()


def _option_letter(index: int) -> str:
    return chr(ord("A") + index)


def _answer_text(question: QuizQuestion) -> str:
    # Booleans render lower-case
    if isinstance(question.correct_answer, bool):
        return "true" if question.correct_answer else "false"
    return question.correct_answer


def export_to_txt(questions: List[QuizQuestion], options: ExportOptions,
                  generated_on: Optional[date] = None) -> str:
    generated_on = generated_on or date.today()
    title = options.title
    lines = [
        title,
        "=" * len(title),
        "",
        f"Generated on: {generated_on.isoformat()}",
        f"Total Questions: {len(questions)}",
        "",
    ]

    for index, question in enumerate(questions, start=1):
        lines.append(f"{index}. {question.question}")

        if question.type == "mcq" and question.options:
            for opt_index, option in enumerate(question.options):
                marker = CHECK_MARK if options.include_answers and option == question.correct_answer else " "
                lines.append(f"   {_option_letter(opt_index)}) {option} {marker}")
        elif question.type == "true_false":
            true_marker = CHECK_MARK if options.include_answers and question.correct_answer is True else " "
            false_marker = CHECK_MARK if options.include_answers and question.correct_answer is False else " "
            lines.append(f"   True {true_marker}")
            lines.append(f"   False {false_marker}")

        if options.include_answers:
            lines.extend(["", f"   Correct Answer: {_answer_text(question)}"])
        if options.include_explanations and question.explanation:
            lines.extend(["", f"   Explanation: {question.explanation}"])
        if question.difficulty:
            lines.append(f"   Difficulty: {question.difficulty}")
        if question.topic:
            lines.append(f"   Topic: {question.topic}")

        lines.extend(["", "-" * SEPARATOR_WIDTH, ""])

    return "\n".join(lines) + "\n"


class NumberedCanvas(canvas.Canvas):
    """Canvas that stamps "Page i of n" on every page once n is known"""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._saved_page_states = []

    def showPage(self):
        self._saved_page_states.append(dict(self.__dict__))
        self._startPage()

    def save(self):
        page_count = len(self._saved_page_states)
        for state in self._saved_page_states:
            self.__dict__.update(state)
            self._draw_footer(page_count)
            super().showPage()
        super().save()

    def _draw_footer(self, page_count: int):
        self.saveState()
        self.setFont("Helvetica", 8)
        self.setFillColor(colors.grey)
        self.drawString(MARGIN, 10 * mm, f"Page {self._pageNumber} of {page_count} | {FOOTER_TEXT}")
        self.restoreState()


def _pdf_styles() -> Dict[str, ParagraphStyle]:
    base = getSampleStyleSheet()
    return {
        "title": ParagraphStyle("QuizTitle", parent=base["Title"], fontSize=24, leading=28, alignment=0),
        "meta": ParagraphStyle("QuizMeta", parent=base["Normal"], fontSize=12, leading=16),
        "question": ParagraphStyle("Question", parent=base["Normal"], fontName="Helvetica-Bold", fontSize=14, leading=18),
        "option": ParagraphStyle("Option", parent=base["Normal"], fontSize=11, leading=15, leftIndent=12),
        "answer": ParagraphStyle("Answer", parent=base["Normal"], fontName="Helvetica-Bold", fontSize=10, leading=14),
        "explanation": ParagraphStyle("Explanation", parent=base["Normal"], fontSize=10, leading=14),
        "detail": ParagraphStyle("Detail", parent=base["Normal"], fontSize=9, leading=12, textColor=colors.grey),
    }


def _question_flowables(index: int, question: QuizQuestion, options: ExportOptions, styles) -> list:
    flow = [Paragraph(escape(f"{index}. {question.question}"), styles["question"]), Spacer(1, 4)]

    if question.type == "mcq" and question.options:
        for opt_index, option in enumerate(question.options):
            marker = " (correct)" if options.include_answers and option == question.correct_answer else ""
            flow.append(Paragraph(escape(f"{_option_letter(opt_index)}) {option}{marker}"), styles["option"]))
    elif question.type == "true_false":
        true_marker = " (correct)" if options.include_answers and question.correct_answer is True else ""
        false_marker = " (correct)" if options.include_answers and question.correct_answer is False else ""
        flow.append(Paragraph(f"True{true_marker}", styles["option"]))
        flow.append(Paragraph(f"False{false_marker}", styles["option"]))

    flow.append(Spacer(1, 4))
    if options.include_answers:
        flow.append(Paragraph(escape(f"Correct Answer: {_answer_text(question)}"), styles["answer"]))
    if options.include_explanations and question.explanation:
        flow.append(Paragraph(escape(f"Explanation: {question.explanation}"), styles["explanation"]))
    if question.difficulty:
        flow.append(Paragraph(f"Difficulty: {question.difficulty}", styles["detail"]))
    if question.topic:
        flow.append(Paragraph(escape(f"Topic: {question.topic}"), styles["detail"]))
    return flow


def export_to_pdf(questions: List[QuizQuestion], options: ExportOptions,
                  generated_on: Optional[date] = None) -> bytes:
    generated_on = generated_on or date.today()
    metadata = options.metadata
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        leftMargin=MARGIN,
        rightMargin=MARGIN,
        topMargin=MARGIN,
        bottomMargin=MARGIN,
        title=options.title,
        subject=metadata.subject or "Quiz Questions",
        author=metadata.author or "AI Quiz Generator",
        keywords=", ".join(metadata.keywords) if metadata.keywords else "quiz, AI, education",
        creator="AI Quiz Generator",
    )
    styles = _pdf_styles()

    story = [
        Paragraph(escape(options.title), styles["title"]),
        Spacer(1, 10),
        Paragraph(f"Generated on: {generated_on.isoformat()}", styles["meta"]),
        Paragraph(f"Total Questions: {len(questions)}", styles["meta"]),
        Spacer(1, 8),
        HRFlowable(width="100%", color=colors.Color(200 / 255, 200 / 255, 200 / 255)),
        Spacer(1, 12),
    ]
    for index, question in enumerate(questions, start=1):
        story.append(KeepTogether(_question_flowables(index, question, options, styles)))
        story.append(Spacer(1, 10))
        if index < len(questions):
            story.append(HRFlowable(width="100%", color=colors.Color(230 / 255, 230 / 255, 230 / 255)))
            story.append(Spacer(1, 12))

    doc.build(story, canvasmaker=NumberedCanvas)
    return buffer.getvalue()


def export_quiz(questions: List[QuizQuestion], options: ExportOptions,
                generated_on: Optional[date] = None) -> ExportedFile:
    """Render questions in the requested format"""
    stem = sanitize_filename(options.title)
    if options.format == "txt":
        content = export_to_txt(questions, options, generated_on).encode("utf-8")
        exported = ExportedFile(filename=f"{stem}.txt", content=content, media_type="text/plain")
    elif options.format == "pdf":
        content = export_to_pdf(questions, options, generated_on)
        exported = ExportedFile(filename=f"{stem}.pdf", content=content, media_type="application/pdf")
    else:
        raise UnsupportedExportFormat(f"Unsupported export format: {options.format}")

    logger.info("quiz_exported", format=options.format, questions=len(questions), size_bytes=len(exported.content))
    return exported


def generate_quiz_summary(questions: List[QuizQuestion]) -> str:
    counts = question_counts(questions)
    difficulties: Dict[str, int] = {}
    topics: Dict[str, int] = {}
    for q in questions:
        if q.difficulty:
            difficulties[q.difficulty] = difficulties.get(q.difficulty, 0) + 1
        if q.topic:
            topics[q.topic] = topics.get(q.topic, 0) + 1

    summary = "Quiz Summary:\n"
    summary += f"Total Questions: {len(questions)}\n"
    summary += f"Multiple Choice: {counts['mcq']}\n"
    summary += f"True/False: {counts['true_false']}\n\n"

    if difficulties:
        summary += "Difficulty Distribution:\n"
        for difficulty, count in difficulties.items():
            summary += f"  {difficulty}: {count}\n"
        summary += "\n"

    if topics:
        summary += "Topics Covered:\n"
        for topic, count in topics.items():
            summary += f"  {topic}: {count} question(s)\n"

    return summary
