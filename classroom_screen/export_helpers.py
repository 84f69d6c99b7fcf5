"""
Quiz Export Helpers
Write AI-generated quiz questions as .docx (Word) or .pdf files.
"""

import io
from typing import List, Optional

from docx import Document
from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.shared import Pt, RGBColor
from fpdf import FPDF

from .ai_client import QuizQuestion


# ── Word (.docx) ─────────────────────────────────────────────────────────────

def quiz_to_docx(questions: List[QuizQuestion], title: str = "Quiz", topic: str = "") -> bytes:
    """Return a .docx file as bytes for a generated quiz."""
    doc = Document()

    heading = doc.add_heading(title, level=1)
    heading.alignment = WD_ALIGN_PARAGRAPH.CENTER
    for run in heading.runs:
        run.font.color.rgb = RGBColor(0x1a, 0x20, 0x3c)

    if topic:
        sub = doc.add_paragraph()
        sub.alignment = WD_ALIGN_PARAGRAPH.CENTER
        sub_run = sub.add_run(topic)
        sub_run.font.size = Pt(11)
        sub_run.font.color.rgb = RGBColor(0x64, 0x74, 0x8b)

    doc.add_paragraph()

    for i, q in enumerate(questions, 1):
        q_run = doc.add_paragraph().add_run(f"{i}. {q.question}")
        q_run.bold = True
        q_run.font.size = Pt(12)

        for opt in q.options:
            doc.add_paragraph(style="List Bullet").add_run(opt).font.size = Pt(11)

        ans_run = doc.add_paragraph().add_run(f"✔ {q.answer}")
        ans_run.bold = True
        ans_run.font.color.rgb = RGBColor(0x16, 0xa3, 0x4a)
        ans_run.font.size = Pt(11)

        if q.explanation:
            exp_run = doc.add_paragraph().add_run(q.explanation)
            exp_run.italic = True
            exp_run.font.color.rgb = RGBColor(0x52, 0x79, 0x6f)
            exp_run.font.size = Pt(10)

        doc.add_paragraph()

    buf = io.BytesIO()
    doc.save(buf)
    return buf.getvalue()


# ── PDF ───────────────────────────────────────────────────────────────────────
# Core PDF fonts are latin-1 only. Pass a TTF font_path to keep Arabic text.

def _clean(text: str) -> str:
    """Replace common Unicode symbols that core PDF fonts can't render."""
    replacements = {
        "✔": "[OK]", "’": "'", "‘": "'", "“": '"', "”": '"',
        "–": "-", "—": "--", "…": "...", "•": "*", " ": " ",
    }
    for ch, rep in replacements.items():
        text = text.replace(ch, rep)
    return text.encode("latin-1", "replace").decode("latin-1")


class _PDF(FPDF):
    def __init__(self, font_path: Optional[str] = None):
        super().__init__()
        self.unicode_font = font_path is not None
        if font_path is not None:
            self.add_font("Body", "", font_path)
            self.add_font("Body", "B", font_path)
            self.add_font("Body", "I", font_path)
        self.body_family = "Body" if self.unicode_font else "Helvetica"

    def header(self):
        pass

    def text_style(self, style: str, size: int, rgb):
        self.set_font(self.body_family, style, size)
        self.set_text_color(*rgb)

    def mc(self, text: str, h: float = 6, indent: float = 0, **kwargs):
        """multi_cell that starts at the left margin (plus indent)."""
        self.set_x(self.l_margin + indent)
        width = self.w - self.r_margin - self.l_margin - indent
        self.multi_cell(width, h, text if self.unicode_font else _clean(text), **kwargs)


def quiz_to_pdf(questions: List[QuizQuestion], title: str = "Quiz", topic: str = "",
                font_path: Optional[str] = None) -> bytes:
    """Return a PDF file as bytes for a generated quiz."""
    pdf = _PDF(font_path)
    pdf.set_auto_page_break(auto=True, margin=15)
    pdf.add_page()
    pdf.set_margins(20, 20, 20)

    pdf.text_style("B", 18, (26, 32, 60))
    pdf.mc(title, h=10, align="C")
    if topic:
        pdf.text_style("", 10, (100, 116, 139))
        pdf.mc(topic, h=6, align="C")
    pdf.ln(6)

    for i, q in enumerate(questions, 1):
        pdf.text_style("B", 12, (26, 32, 60))
        pdf.mc(f"{i}. {q.question}", h=7)
        pdf.ln(1)

        pdf.text_style("", 11, (45, 51, 74))
        for opt in q.options:
            pdf.mc(opt, h=6, indent=8)

        pdf.text_style("B", 10, (22, 163, 74))
        pdf.mc(f"Answer: {q.answer}", h=6)

        if q.explanation:
            pdf.text_style("I", 10, (82, 121, 111))
            pdf.mc(q.explanation, h=6)

        pdf.ln(4)

    return bytes(pdf.output())
