from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from xml.sax.saxutils import escape

import matplotlib
from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER, TA_JUSTIFY, TA_LEFT
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFont, TTFError
from reportlab.platypus import (
    Image,
    PageBreak,
    Paragraph,
    SimpleDocTemplate,
    Spacer,
    Table,
    TableStyle,
)

from studio_analytics.visuals.style import PALETTE, TREND_COLORS

logger = logging.getLogger(__name__)

IMG_RE = re.compile(r"!\[(?P<alt>.*?)\]\((?P<path>.*?)\)")
MD_BOLD_RE = re.compile(r"\*\*(.+?)\*\*")
MD_ITALIC_RE = re.compile(r"(?<!\w)_(.+?)_(?!\w)")
PAGEBREAK_MARKERS = {"---PAGEBREAK---", "<!--PAGEBREAK-->", "<!-- PAGEBREAK -->"}
TREND_PREFIXES = {"▲": "up", "▼": "down"}


@dataclass
class Block:
    kind: str
    data: object


def _register_fonts() -> tuple[str, str]:
    """DejaVu ships with matplotlib and covers the rupee sign and trend arrows."""
    font_dir = Path(matplotlib.get_data_path()) / "fonts" / "ttf"
    try:
        pdfmetrics.registerFont(TTFont("DejaVuSans", str(font_dir / "DejaVuSans.ttf")))
        pdfmetrics.registerFont(TTFont("DejaVuSans-Bold", str(font_dir / "DejaVuSans-Bold.ttf")))
    except (OSError, TTFError) as exc:
        logger.warning("DejaVu fonts unavailable (%s); using Helvetica", exc)
        return "Helvetica", "Helvetica-Bold"
    return "DejaVuSans", "DejaVuSans-Bold"


def _inline(text: str) -> str:
    text = escape(text)
    text = MD_BOLD_RE.sub(r"<b>\1</b>", text)
    return MD_ITALIC_RE.sub(r"<i>\1</i>", text)


def _parse_markdown(md: str) -> list[Block]:
    lines = md.splitlines()
    blocks: list[Block] = []

    i = 0
    para_buf: list[str] = []

    def flush_para() -> None:
        nonlocal para_buf
        text = " ".join(l.strip() for l in para_buf).strip()
        if text:
            blocks.append(Block("paragraph", text))
        para_buf = []

    while i < len(lines):
        line = lines[i].rstrip()

        if line.strip() in PAGEBREAK_MARKERS:
            flush_para()
            blocks.append(Block("pagebreak", None))
            i += 1
            continue

        if line.startswith("#"):
            flush_para()
            level = len(line) - len(line.lstrip("#"))
            blocks.append(Block("heading", (level, line.lstrip("#").strip())))
            i += 1
            continue

        m = IMG_RE.search(line)
        if m:
            flush_para()
            blocks.append(Block("image", (m.group("alt").strip(), m.group("path").strip())))
            i += 1
            continue

        if line.strip().startswith("|") and "|" in line.strip()[1:]:
            flush_para()
            rows = []
            while i < len(lines) and lines[i].strip().startswith("|"):
                parts = [p.strip() for p in lines[i].strip().strip("|").split("|")]
                # separator row: | --- | --- |
                if not all(p.replace("-", "").strip() == "" for p in parts):
                    rows.append(parts)
                i += 1
            if rows:
                blocks.append(Block("table", rows))
            continue

        if not line.strip():
            flush_para()
            i += 1
            continue

        para_buf.append(line)
        i += 1

    flush_para()
    return blocks


def _cell(text: str, style: ParagraphStyle) -> Paragraph:
    markup = _inline(text)
    for prefix, direction in TREND_PREFIXES.items():
        if prefix in text:
            markup = f'<font color="{TREND_COLORS[direction]}">{markup}</font>'
            break
    return Paragraph(markup, style)


def export_pdf(report_md_path: Path, pdf_path: Path) -> None:
    body_font, body_bold = _register_fonts()
    blocks = _parse_markdown(report_md_path.read_text(encoding="utf-8"))

    styles = getSampleStyleSheet()
    title_style = ParagraphStyle(
        "Title",
        parent=styles["Title"],
        fontName=body_bold,
        fontSize=18,
        leading=22,
        alignment=TA_CENTER,
        textColor=colors.HexColor(PALETTE["primary"]),
        spaceAfter=10,
    )
    h1_style = ParagraphStyle(
        "H1",
        parent=styles["Heading1"],
        fontName=body_bold,
        fontSize=14,
        leading=18,
        textColor=colors.HexColor(PALETTE["primary"]),
        spaceBefore=12,
        spaceAfter=6,
    )
    h2_style = ParagraphStyle(
        "H2",
        parent=styles["Heading2"],
        fontName=body_bold,
        fontSize=12,
        leading=15,
        spaceBefore=8,
        spaceAfter=4,
    )
    body_style = ParagraphStyle(
        "Body",
        parent=styles["BodyText"],
        fontName=body_font,
        fontSize=10,
        leading=13,
        alignment=TA_JUSTIFY,
        spaceAfter=6,
    )
    caption_style = ParagraphStyle(
        "Caption",
        parent=body_style,
        fontSize=8.5,
        leading=10,
        alignment=TA_CENTER,
        textColor=colors.HexColor("#475569"),
    )
    cell_style = ParagraphStyle("TableCell", fontName=body_font, fontSize=8.5, leading=10, alignment=TA_LEFT)
    header_cell_style = ParagraphStyle("TableHeader", parent=cell_style, fontName=body_bold, textColor=colors.white)

    pdf_path.parent.mkdir(parents=True, exist_ok=True)
    doc = SimpleDocTemplate(
        str(pdf_path),
        pagesize=landscape(A4),
        leftMargin=0.6 * inch,
        rightMargin=0.6 * inch,
        topMargin=0.6 * inch,
        bottomMargin=0.6 * inch,
        title="Studio Performance Report",
    )

    story = []
    fig_no = 0
    for block in blocks:
        if block.kind == "heading":
            level, title = block.data  # type: ignore[misc]
            style = {1: title_style, 2: h1_style}.get(level, h2_style)
            story.append(Paragraph(_inline(title), style))
            continue

        if block.kind == "pagebreak":
            story.append(PageBreak())
            continue

        if block.kind == "paragraph":
            story.append(Paragraph(_inline(block.data), body_style))  # type: ignore[arg-type]
            continue

        if block.kind == "table":
            rows: list[list[str]] = block.data  # type: ignore[assignment]
            col_count = max(len(r) for r in rows)
            data = [
                [_cell(c, header_cell_style if r_i == 0 else cell_style) for c in row]
                + [""] * (col_count - len(row))
                for r_i, row in enumerate(rows)
            ]

            # Column widths follow the longest cell in each column.
            col_max = [8] * col_count
            for row in rows:
                for c_i, cell in enumerate(row):
                    col_max[c_i] = max(col_max[c_i], min(len(cell), 48))
            total_w = float(sum(col_max))
            col_widths = [(w / total_w) * doc.width for w in col_max]

            t = Table(data, repeatRows=1, hAlign="LEFT", colWidths=col_widths)
            commands = [
                ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor(PALETTE["primary"])),
                ("GRID", (0, 0), (-1, -1), 0.4, colors.HexColor("#CBD5E1")),
                ("VALIGN", (0, 0), (-1, -1), "TOP"),
                ("LEFTPADDING", (0, 0), (-1, -1), 4),
                ("RIGHTPADDING", (0, 0), (-1, -1), 4),
                ("TOPPADDING", (0, 0), (-1, -1), 3),
                ("BOTTOMPADDING", (0, 0), (-1, -1), 3),
            ]
            commands += [
                ("BACKGROUND", (0, rr), (-1, rr), colors.HexColor("#F1F5F9")) for rr in range(2, len(rows), 2)
            ]
            t.setStyle(TableStyle(commands))
            story.append(t)
            story.append(Spacer(1, 8))
            continue

        if block.kind == "image":
            alt, rel = block.data  # type: ignore[misc]
            img_path = Path(rel) if Path(rel).is_absolute() else (report_md_path.parent / rel).resolve()
            if not img_path.exists():
                logger.warning("Figure %s missing; skipped in PDF", img_path)
                continue

            fig_no += 1
            img = Image(str(img_path))
            iw, ih = img.imageWidth, img.imageHeight
            scale = min(doc.width * 0.8 / iw, doc.height * 0.6 / ih, 1.0)
            img.drawWidth = iw * scale
            img.drawHeight = ih * scale
            story.append(img)
            story.append(Paragraph(f"Figure {fig_no}: {escape(alt)}", caption_style))
            continue

    doc.build(story)
    logger.info("PDF written to %s", pdf_path)
