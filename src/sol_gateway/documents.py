"""Render text content into downloadable PDF, PPTX, DOCX or Markdown files."""

import logging
import re
from pathlib import Path
from xml.sax.saxutils import escape

from docx import Document
from pptx import Presentation
from pptx.util import Inches, Pt
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import LETTER
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer

from sol_gateway.exceptions import BadRequest

logger = logging.getLogger(__name__)

SUPPORTED_FORMATS = ("pdf", "pptx", "docx", "md")


def safe_name(name: str) -> str:
    """File-system safe stem: runs of non-word characters become ``_``, max 80 chars."""
    return re.sub(r"[^\w\-]+", "_", str(name))[:80]


def _render_pdf(path: Path, title: str, content: str) -> None:
    styles = getSampleStyleSheet()
    title_style = ParagraphStyle("DocTitle", parent=styles["Title"], fontSize=22, leading=26, alignment=TA_CENTER)
    body_style = ParagraphStyle("DocBody", parent=styles["BodyText"], fontSize=12, leading=15)

    margin = 48  # points
    doc = SimpleDocTemplate(
        str(path),
        pagesize=LETTER,
        leftMargin=margin,
        rightMargin=margin,
        topMargin=margin,
        bottomMargin=margin,
    )
    body = escape(content).replace("\n", "<br/>")
    doc.build([Paragraph(escape(title), title_style), Spacer(1, 12), Paragraph(body, body_style)])


def _render_pptx(path: Path, title: str, content: str) -> None:
    presentation = Presentation()
    blank = presentation.slide_layouts[6]
    sections = [s.strip() for s in re.split(r"(?:^|\n)###\s*", content) if s.strip()]
    for section in sections:
        slide = presentation.slides.add_slide(blank)
        box = slide.shapes.add_textbox(Inches(0.5), Inches(0.5), Inches(9), Inches(6.5))
        frame = box.text_frame
        frame.word_wrap = True
        frame.text = section
        for para in frame.paragraphs:
            for run in para.runs:
                run.font.size = Pt(18)
    presentation.save(str(path))


def _render_docx(path: Path, title: str, content: str) -> None:
    document = Document()
    for line in re.split(r"\n+", content):
        if not line.strip():
            continue
        document.add_paragraph(line)
    document.save(str(path))


def _render_md(path: Path, title: str, content: str) -> None:
    path.write_text(content, encoding="utf-8")


RENDERERS = {
    "pdf": _render_pdf,
    "pptx": _render_pptx,
    "docx": _render_docx,
    "md": _render_md,
}


def render_document(title: str, content: str, fmt: str, directory: Path) -> Path:
    """Write ``content`` as a ``fmt`` file named after ``title`` into ``directory``."""
    renderer = RENDERERS.get((fmt or "").lower())
    if renderer is None:
        raise BadRequest(error="unsupported_format", available=list(SUPPORTED_FORMATS))

    directory.mkdir(parents=True, exist_ok=True)
    path = directory / f"{safe_name(title)}.{fmt.lower()}"
    renderer(path, title, str(content))
    logger.info(f"Generated {fmt} document {path.name}")
    return path
