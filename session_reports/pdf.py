from __future__ import annotations  # Styled PDF rendering for interview reports

import math
from datetime import datetime
from pathlib import Path
from typing import Any, List, Optional, Sequence, Tuple

from fpdf import FPDF
from fpdf.enums import XPos, YPos

from interview_session.models import QuestionAnalysis, Report, ScoringMatrix, SessionRecord


DEJAVU_SANS = "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf"  # System font
DEJAVU_SANS_BOLD = "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf"  # System font

ACCENT = (45, 115, 245)  # Palette accent
TEXT = (34, 34, 34)  # Primary text color
MUTED = (100, 100, 100)  # Secondary text color
RULE = (230, 230, 230)  # Divider color
SOFT_ACCENT_BG = (243, 248, 255)  # Highlight background
WARNING = (196, 120, 20)  # Placeholder notice color

MATRIX_LABELS: Tuple[Tuple[str, str], ...] = (
    ("skill_match", "Skill Match"),
    ("company_fit", "Company Fit"),
    ("communication_clarity", "Communication Clarity"),
    ("star_method_application", "STAR Method Application"),
)


def _parse_datetime(value: Optional[str]) -> Optional[datetime]:  # Parse ISO timestamp safely
    if not value:
        return None
    try:
        normalized = value[:-1] + "+00:00" if value.endswith("Z") else value
        return datetime.fromisoformat(normalized)
    except ValueError:
        return None


def _format_datetime(value: Optional[str]) -> str:  # Format timestamp for display
    parsed = _parse_datetime(value)
    if not parsed:
        return "-"
    return parsed.strftime("%d %b %Y, %I:%M %p").lstrip("0").replace(" 0", " ")


def _effective_width(pdf: FPDF) -> float:  # Compute effective page width
    return float(pdf.w) - float(pdf.l_margin) - float(pdf.r_margin)


def _section_title(pdf: "ReportPDF", title: str) -> None:  # Render styled section title
    pdf.set_text_color(*TEXT)
    pdf.set_x(pdf.l_margin)
    pdf.set_font(pdf.font_bold, "B", 13)
    pdf.cell(0, 9, title, new_x=XPos.LMARGIN, new_y=YPos.NEXT)
    pdf.set_draw_color(*RULE)
    pdf.set_line_width(0.2)
    y = pdf.get_y()
    pdf.line(pdf.l_margin, y, pdf.l_margin + _effective_width(pdf), y)
    pdf.ln(2)


def _meta_block(pdf: "ReportPDF", rows: List[Tuple[str, str]]) -> None:  # Draw two-column metadata
    col = _effective_width(pdf) / 2.0
    line = 6
    for idx in range(0, len(rows), 2):
        left = rows[idx]
        right = rows[idx + 1] if idx + 1 < len(rows) else ("", "")
        pdf.set_x(pdf.l_margin)
        pdf.set_text_color(*MUTED)
        pdf.set_font(pdf.font_regular, "", 10)
        pdf.cell(col, line, left[0], new_x=XPos.RIGHT, new_y=YPos.TOP)
        pdf.cell(col, line, right[0], new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        pdf.set_x(pdf.l_margin)
        pdf.set_text_color(*TEXT)
        pdf.set_font(pdf.font_bold, "B", 11)
        pdf.cell(col, line, left[1], new_x=XPos.RIGHT, new_y=YPos.TOP)
        pdf.cell(col, line, right[1], new_x=XPos.LMARGIN, new_y=YPos.NEXT)
    pdf.ln(2)


def _muted_note(pdf: "ReportPDF", text: str) -> None:
    pdf.set_x(pdf.l_margin)
    pdf.set_text_color(*MUTED)
    pdf.set_font(pdf.font_regular, "", 10)
    pdf.multi_cell(_effective_width(pdf), 6, text, new_x=XPos.LMARGIN, new_y=YPos.NEXT)
    pdf.set_text_color(*TEXT)
    pdf.ln(4)


def _calc_text_height(pdf: FPDF, width: float, text: str, line_height: float) -> float:  # Estimate multi-cell height
    if not text:
        return line_height
    lines = pdf.multi_cell(width, line_height, text, dry_run=True, output="LINES")
    if isinstance(lines, (list, tuple)):
        return line_height * max(1, len(lines))
    return max(1, math.ceil(len(text) / 90)) * line_height


class ReportPDF(FPDF):  # PDF with custom header/footer styling
    def __init__(self, *args, accent: Tuple[int, int, int] = ACCENT, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.accent = accent
        self.header_title = "Interview Report"
        self.font_regular = "Helvetica"
        self.font_bold = "Helvetica"
        self.supports_unicode = False

    def use_dejavu(self) -> bool:  # Register unicode fonts when the system ships them
        if not (Path(DEJAVU_SANS).is_file() and Path(DEJAVU_SANS_BOLD).is_file()):
            return False
        self.add_font("DejaVu", "", DEJAVU_SANS)
        self.add_font("DejaVu", "B", DEJAVU_SANS_BOLD)
        self.font_regular = "DejaVu"
        self.font_bold = "DejaVu"
        self.supports_unicode = True
        return True

    @property
    def bullet(self) -> str:
        return "•" if self.supports_unicode else "-"

    def _prepare_text(self, text: Any) -> str:  # Sanitize text for non-unicode fonts
        value = "" if text is None else str(text)
        if self.supports_unicode:
            return value
        cleaned = value.replace("•", "-").replace("’", "'").replace("“", '"').replace("”", '"')
        return cleaned.encode("latin-1", "ignore").decode("latin-1")

    def cell(self, *args, **kwargs):  # Wrap base cell with text sanitisation
        args_list = list(args)
        if len(args_list) >= 3:
            args_list[2] = self._prepare_text(args_list[2])
        elif "text" in kwargs:
            kwargs["text"] = self._prepare_text(kwargs["text"])
        return super().cell(*args_list, **kwargs)

    def multi_cell(self, *args, **kwargs):  # Wrap base multi_cell with text sanitisation
        args_list = list(args)
        if len(args_list) >= 3:
            args_list[2] = self._prepare_text(args_list[2])
        elif "text" in kwargs:
            kwargs["text"] = self._prepare_text(kwargs["text"])
        return super().multi_cell(*args_list, **kwargs)

    def header(self) -> None:  # Render header banner
        usable = _effective_width(self)
        if self.page_no() == 1:
            line_height = 8
            self.set_font(self.font_bold, "B", 16)
            trial = self.multi_cell(usable, line_height, self.header_title, dry_run=True, output="LINES")
            lines = len(trial) if isinstance(trial, (list, tuple)) else 1
            banner = 6 + lines * line_height + 4
            self.set_fill_color(*self.accent)
            self.rect(0, 0, self.w, banner, style="F")
            self.set_text_color(255, 255, 255)
            self.set_xy(self.l_margin, 6)
            self.multi_cell(usable, line_height, self.header_title, new_x=XPos.LMARGIN, new_y=YPos.NEXT)
            self.set_text_color(*TEXT)
            self.ln(4)
        else:
            self.set_text_color(80, 80, 80)
            self.set_xy(self.l_margin, 8)
            self.set_font(self.font_bold, "B", 12)
            self.multi_cell(usable, 6, self.header_title, new_x=XPos.LMARGIN, new_y=YPos.NEXT)
            mark = self.get_y()
            self.set_draw_color(*self.accent)
            self.set_line_width(0.4)
            self.line(self.l_margin, mark + 1, self.w - self.r_margin, mark + 1)
            self.set_text_color(*TEXT)
            self.ln(4)

    def footer(self) -> None:  # Render footer with pagination
        self.set_y(-12)
        self.set_draw_color(*RULE)
        self.set_line_width(0.2)
        self.line(self.l_margin, self.get_y(), self.w - self.r_margin, self.get_y())
        self.set_text_color(120, 120, 120)
        self.set_font(self.font_regular, "", 9)
        self.cell(0, 10, f"Page {self.page_no()}/{{nb}}", align="R")


def _render_score_banner(pdf: ReportPDF, score: float) -> None:  # Highlight the overall score
    width = _effective_width(pdf)
    top = pdf.get_y()
    pdf.set_fill_color(*SOFT_ACCENT_BG)
    pdf.rect(pdf.l_margin, top, width, 16, style="F")
    pdf.set_xy(pdf.l_margin + 6, top + 4)
    pdf.set_text_color(*MUTED)
    pdf.set_font(pdf.font_regular, "", 10)
    pdf.cell(width - 12, 8, "Overall Score")
    pdf.set_xy(pdf.l_margin, top + 4)
    pdf.set_text_color(*ACCENT)
    pdf.set_font(pdf.font_bold, "B", 14)
    pdf.cell(width - 6, 8, f"{score:.0f}/100", align="R")
    pdf.set_y(top + 20)
    pdf.set_text_color(*TEXT)


def _render_matrix(pdf: ReportPDF, matrix: ScoringMatrix) -> None:  # Draw the four sub-score table
    widths = [_effective_width(pdf) * 0.7, _effective_width(pdf) * 0.3]
    pdf.set_x(pdf.l_margin)
    pdf.set_fill_color(*ACCENT)
    pdf.set_text_color(255, 255, 255)
    pdf.set_font(pdf.font_bold, "B", 10)
    pdf.cell(widths[0], 8, "Dimension", align="L", fill=True)
    pdf.cell(widths[1], 8, "Score", align="L", fill=True)
    pdf.ln(8)
    pdf.set_text_color(*TEXT)
    pdf.set_font(pdf.font_regular, "", 10)
    for idx, (field, label) in enumerate(MATRIX_LABELS):
        fill = idx % 2 == 0
        if fill:
            pdf.set_fill_color(247, 250, 255)
        pdf.set_x(pdf.l_margin)
        pdf.cell(widths[0], 7, label, border=0, fill=fill)
        pdf.cell(widths[1], 7, f"{getattr(matrix, field):.1f}/10", border=0, fill=fill)
        pdf.ln(7)
    pdf.ln(3)


def _analysis_lines(entry: QuestionAnalysis) -> List[Tuple[str, str]]:
    rows = [
        ("Strengths", entry.feedback_strengths),
        ("Improvements", entry.feedback_improvements),
        ("Suggested answer", entry.suggested_answer),
    ]
    return [(label, text.strip()) for label, text in rows if text and text.strip()]


def _render_question_block(pdf: ReportPDF, number: int, entry: QuestionAnalysis) -> None:  # Render one Q&A card
    width = _effective_width(pdf)
    line = 5.5
    question = f"Q{number}: {(entry.question or '-').strip()}"
    answer = f"A: {(entry.answer or '-').strip()}"
    details = _analysis_lines(entry)
    block = _calc_text_height(pdf, width - 4, question, line) + _calc_text_height(pdf, width - 4, answer, line)
    for label, text in details:
        block += _calc_text_height(pdf, width - 4, f"{label}: {text}", line)
    block += 6
    if pdf.get_y() + block > pdf.page_break_trigger:
        pdf.add_page()
    origin_y = pdf.get_y()
    pdf.set_fill_color(248, 249, 255)
    pdf.rect(pdf.l_margin, origin_y, width, block, style="F")
    pdf.set_xy(pdf.l_margin + 2, origin_y + 2)
    pdf.set_text_color(*ACCENT)
    pdf.set_font(pdf.font_bold, "B", 10)
    pdf.multi_cell(width - 4, line, question, new_x=XPos.LMARGIN, new_y=YPos.NEXT)
    pdf.set_x(pdf.l_margin + 2)
    pdf.set_text_color(60, 60, 60)
    pdf.set_font(pdf.font_regular, "", 10)
    pdf.multi_cell(width - 4, line, answer, new_x=XPos.LMARGIN, new_y=YPos.NEXT)
    pdf.set_text_color(*TEXT)
    pdf.set_font(pdf.font_regular, "", 9)
    for label, text in details:
        pdf.set_x(pdf.l_margin + 2)
        pdf.multi_cell(width - 4, line, f"{pdf.bullet} {label}: {text}", new_x=XPos.LMARGIN, new_y=YPos.NEXT)
    bottom = max(pdf.get_y(), origin_y + block - 2)
    pdf.set_draw_color(*RULE)
    pdf.set_line_width(0.2)
    pdf.line(pdf.l_margin, bottom + 1, pdf.l_margin + width, bottom + 1)
    pdf.set_y(bottom + 4)


def _render_questions(pdf: ReportPDF, analysis: Sequence[QuestionAnalysis]) -> None:
    if not analysis:
        _muted_note(pdf, "No per-question analysis is available for this report.")
        return
    for number, entry in enumerate(analysis, start=1):
        _render_question_block(pdf, number, entry)


def _render_recommendations(pdf: ReportPDF, recommendations: Sequence[str]) -> None:
    if not recommendations:
        _muted_note(pdf, "No recommendations were recorded.")
        return
    pdf.set_text_color(*TEXT)
    pdf.set_font(pdf.font_regular, "", 11)
    for item in recommendations:
        pdf.set_x(pdf.l_margin)
        pdf.multi_cell(_effective_width(pdf), 6, f"{pdf.bullet} {item}", new_x=XPos.LMARGIN, new_y=YPos.NEXT)
    pdf.ln(2)


def generate_report_pdf(record: SessionRecord, report: Report) -> bytes:  # Build PDF payload for a session report
    content = report.content
    pdf = ReportPDF()
    pdf.alias_nb_pages()
    pdf.use_dejavu()
    pdf.header_title = f"{record.target_position} - Interview Report"
    pdf.set_margins(15, 22, 15)
    pdf.set_auto_page_break(auto=True, margin=15)
    pdf.add_page()

    _section_title(pdf, "Session Overview")
    _meta_block(
        pdf,
        [
            ("Session ID", record.session_id),
            ("Status", record.status.value),
            ("Company", record.company_name or "-"),
            ("Difficulty", record.difficulty.value),
            ("Provider", f"{record.provider.value} ({record.model})"),
            ("Questions", f"{record.current_question_index}/{record.total_questions}"),
            ("Started", _format_datetime(record.started_at)),
            ("Report generated", _format_datetime(report.generated_at)),
        ],
    )

    if content.is_placeholder:
        pdf.set_x(pdf.l_margin)
        pdf.set_text_color(*WARNING)
        pdf.set_font(pdf.font_bold, "B", 10)
        pdf.multi_cell(
            _effective_width(pdf),
            6,
            "Automated evaluation was unavailable; the scores below are placeholders.",
            new_x=XPos.LMARGIN,
            new_y=YPos.NEXT,
        )
        pdf.set_text_color(*TEXT)
        pdf.ln(2)

    _section_title(pdf, "Summary")
    _render_score_banner(pdf, content.overall_score)
    pdf.set_x(pdf.l_margin)
    pdf.set_font(pdf.font_regular, "", 11)
    pdf.multi_cell(_effective_width(pdf), 6, content.overall_summary or "-", new_x=XPos.LMARGIN, new_y=YPos.NEXT)
    pdf.ln(3)

    _section_title(pdf, "Scoring Matrix")
    _render_matrix(pdf, content.scoring_matrix)

    _section_title(pdf, "Question Analysis")
    _render_questions(pdf, content.per_question_analysis)

    _section_title(pdf, "Recommendations")
    _render_recommendations(pdf, content.final_recommendations)

    return bytes(pdf.output())


__all__ = ["ReportPDF", "generate_report_pdf"]
