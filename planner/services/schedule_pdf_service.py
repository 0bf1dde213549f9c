"""Schedule sheet ("feuille de route") export.

``build_schedule_document`` turns an event and its daily schedules into a
``ScheduleDocument``: filtered, grouped by day and sorted. Both the raw PDF
bytes and the download response are rendered from that one description.
"""

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime
from functools import partial
from io import BytesIO
from xml.sax.saxutils import escape

import httpx
from fastapi import Response
from PIL import Image as PILImage
from PIL import UnidentifiedImageError
from pydantic import BaseModel, Field
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle
from reportlab.lib.units import mm
from reportlab.pdfgen import canvas
from reportlab.platypus import Image, Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from planner.config import get_settings
from planner.models import DailySchedule, Event, TargetGroup
from planner.utils.dates import (
    format_day_heading,
    format_long_date,
    format_time,
    format_timestamp,
    to_local,
    utc_now,
)

logger = logging.getLogger(__name__)
settings = get_settings()

SECTION_TITLE = "Feuille de Route"
EMPTY_PLACEHOLDER = "Aucune feuille de route disponible pour les critères sélectionnés."
MANDATORY_BADGE = "Obligatoire"
COLUMNS = ("Horaire", "Titre", "Lieu", "Groupe", "Responsable")
COLUMN_WIDTHS = (0.15, 0.35, 0.20, 0.15, 0.15)
LOGO_SIZE = 60  # points
LOGO_MAX_PIXELS = (240, 240)

HEADER_ROW_COLOR = "#E0E0E0"
ODD_ROW_COLOR = "#F9F9F9"
SKILL_BADGE_COLOR = "#E0E0E0"
MANDATORY_COLORS = ("#806000", "#FFF0C0")  # text, background


class ScheduleExportOptions(BaseModel):
    include_details: bool = True
    include_logo: bool = True
    # Empty means every group
    target_groups: list[TargetGroup] = Field(default_factory=list)
    logo_url: str | None = None
    company_name: str | None = None


@dataclass(frozen=True)
class GroupStyle:
    text_color: str
    background: str


GROUP_STYLES = {
    "both": GroupStyle("#6B21A8", "#F3E8FF"),
    "artistes": GroupStyle("#1E40AF", "#DBEAFE"),
    "techniques": GroupStyle("#854D0E", "#FEF3C7"),
}


def target_group_label(groups: Iterable[str]) -> str:
    groups = set(groups)
    if TargetGroup.both in groups:
        return "Tous"
    if TargetGroup.artistes in groups and TargetGroup.techniques in groups:
        return "Artistes & Tech."
    if TargetGroup.artistes in groups:
        return "Artistes"
    if TargetGroup.techniques in groups:
        return "Techniques"
    return "Non spécifié"


def target_group_style(groups: Iterable[str]) -> GroupStyle | None:
    groups = set(groups)
    if TargetGroup.both in groups or (
        TargetGroup.artistes in groups and TargetGroup.techniques in groups
    ):
        return GROUP_STYLES["both"]
    if TargetGroup.artistes in groups:
        return GROUP_STYLES["artistes"]
    if TargetGroup.techniques in groups:
        return GROUP_STYLES["techniques"]
    return None


def filter_schedules(
    schedules: Sequence[DailySchedule], target_groups: Sequence[TargetGroup]
) -> list[DailySchedule]:
    if not target_groups:
        return list(schedules)
    return [s for s in schedules if s.is_for_any(target_groups)]


def group_by_day(schedules: Iterable[DailySchedule]) -> list[tuple[date, list[DailySchedule]]]:
    """Days in ISO order; entries keep their input order within a day."""
    days: dict[str, list[DailySchedule]] = {}
    for schedule in schedules:
        days.setdefault(schedule.schedule_date.isoformat(), []).append(schedule)
    return [(date.fromisoformat(key), days[key]) for key in sorted(days)]


# ============= Document description =============


@dataclass
class ScheduleRow:
    time_range: str
    title: str
    mandatory: bool
    location: str
    group_label: str
    group_style: GroupStyle | None
    responsible: str
    description: str | None = None
    skills: list[str] = field(default_factory=list)

    @property
    def badge(self) -> str | None:
        return MANDATORY_BADGE if self.mandatory else None

    @property
    def has_details(self) -> bool:
        return bool(self.description or self.skills)

    @classmethod
    def from_schedule(cls, schedule: DailySchedule) -> "ScheduleRow":
        return cls(
            time_range=f"{format_time(schedule.start_time)} - {format_time(schedule.end_time)}",
            title=schedule.title,
            mandatory=schedule.is_mandatory,
            location=schedule.location or "-",
            group_label=target_group_label(schedule.target_groups),
            group_style=target_group_style(schedule.target_groups),
            responsible=schedule.responsible_person or "-",
            description=schedule.description,
            skills=list(schedule.required_skills),
        )


@dataclass
class DaySection:
    day: date
    rows: list[ScheduleRow]

    @property
    def heading(self) -> str:
        return format_day_heading(self.day)


@dataclass
class ScheduleDocument:
    title: str
    date_range: str
    location: str | None
    company_name: str | None
    logo: bytes | None
    include_details: bool
    sections: list[DaySection]
    generated_at: datetime

    @property
    def is_empty(self) -> bool:
        return not self.sections

    @property
    def footer(self) -> str:
        local = to_local(self.generated_at, settings.display_timezone)
        return f"Feuille de route générée le {format_timestamp(local)}"


def build_schedule_document(
    event: Event,
    schedules: Sequence[DailySchedule],
    options: ScheduleExportOptions | None = None,
    *,
    logo: bytes | None = None,
    generated_at: datetime | None = None,
) -> ScheduleDocument:
    options = options or ScheduleExportOptions()
    kept = filter_schedules(schedules, options.target_groups)
    sections = [
        DaySection(day, [ScheduleRow.from_schedule(s) for s in entries])
        for day, entries in group_by_day(kept)
    ]
    return ScheduleDocument(
        title=event.title,
        date_range=(
            f"Du {format_long_date(event.start_date)} au {format_long_date(event.end_date)}"
        ),
        location=event.location,
        company_name=options.company_name or settings.pdf_company_name,
        logo=logo if options.include_logo else None,
        include_details=options.include_details,
        sections=sections,
        generated_at=generated_at or utc_now(),
    )


# ============= Rendering =============

_TITLE = ParagraphStyle("title", fontName="Helvetica-Bold", fontSize=20, leading=24)
_SUBTITLE = ParagraphStyle("subtitle", fontName="Helvetica", fontSize=11, leading=15,
                           textColor=colors.HexColor("#555555"))
_SECTION = ParagraphStyle("section", fontName="Helvetica-Bold", fontSize=15, leading=20,
                          spaceBefore=8, spaceAfter=6)
_DAY = ParagraphStyle("day", fontName="Helvetica-Bold", fontSize=12, leading=16,
                      spaceBefore=10, spaceAfter=4, textColor=colors.HexColor("#333333"))
_CELL = ParagraphStyle("cell", fontName="Helvetica", fontSize=9, leading=12)
_HEADER_CELL = ParagraphStyle("header_cell", parent=_CELL, fontName="Helvetica-Bold")
_DETAIL = ParagraphStyle("detail", fontName="Helvetica", fontSize=8, leading=11,
                         textColor=colors.HexColor("#444444"))
_PLACEHOLDER = ParagraphStyle("placeholder", fontName="Helvetica-Oblique", fontSize=10, leading=14)


def _badge(text: str, fg: str, bg: str) -> str:
    return f'<font color="{fg}" backColor="{bg}" size="7">&#160;{escape(text)}&#160;</font>'


class NumberedCanvas(canvas.Canvas):
    """Canvas that stamps the footer and ``n / total`` once all pages are known."""

    def __init__(self, *args, footer_text: str = "", **kwargs):
        super().__init__(*args, **kwargs)
        self._saved_page_states: list[dict] = []
        self._footer_text = footer_text

    def showPage(self):
        self._saved_page_states.append(dict(self.__dict__))
        self._startPage()

    def save(self):
        total = len(self._saved_page_states)
        for state in self._saved_page_states:
            self.__dict__.update(state)
            self._draw_footer(total)
            super().showPage()
        super().save()

    def _draw_footer(self, total: int) -> None:
        width, _ = self._pagesize
        self.saveState()
        self.setFont("Helvetica", 8)
        self.setFillColor(colors.HexColor("#888888"))
        self.drawCentredString(width / 2, 12 * mm, self._footer_text)
        self.drawRightString(width - 15 * mm, 12 * mm, f"{self._pageNumber} / {total}")
        self.restoreState()


def _header_flowables(document: ScheduleDocument, width: float) -> list:
    lines = [
        Paragraph(escape(document.title), _TITLE),
        Paragraph(escape(document.date_range), _SUBTITLE),
    ]
    if document.location:
        lines.append(Paragraph(f"Lieu: {escape(document.location)}", _SUBTITLE))
    if document.company_name:
        lines.append(Paragraph(escape(document.company_name), _SUBTITLE))

    if document.logo is None:
        return lines

    logo = Image(BytesIO(document.logo), width=LOGO_SIZE, height=LOGO_SIZE, kind="proportional")
    header = Table([[logo, lines]], colWidths=[LOGO_SIZE + 10, width - LOGO_SIZE - 10])
    header.setStyle(TableStyle([
        ("VALIGN", (0, 0), (-1, -1), "TOP"),
        ("LEFTPADDING", (0, 0), (-1, -1), 0),
    ]))
    return [header]


def _detail_paragraph(row: ScheduleRow) -> Paragraph:
    parts = []
    if row.description:
        parts.append(f"<b>Description:</b><br/>{escape(row.description)}")
    if row.skills:
        badges = " ".join(_badge(s, "#333333", SKILL_BADGE_COLOR) for s in row.skills)
        parts.append(f"<b>Compétences requises:</b><br/>{badges}")
    return Paragraph("<br/>".join(parts), _DETAIL)


def _day_table(section: DaySection, include_details: bool, width: float) -> Table:
    data = [[Paragraph(c, _HEADER_CELL) for c in COLUMNS]]
    style = [
        ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor(HEADER_ROW_COLOR)),
        ("VALIGN", (0, 0), (-1, -1), "TOP"),
        ("LINEBELOW", (0, 0), (-1, -1), 0.25, colors.HexColor("#DDDDDD")),
    ]

    for index, row in enumerate(section.rows):
        title = escape(row.title)
        if row.badge:
            title += "<br/>" + _badge(row.badge, *MANDATORY_COLORS)
        group = escape(row.group_label)
        if row.group_style is not None:
            group = _badge(row.group_label, row.group_style.text_color, row.group_style.background)

        first = len(data)
        data.append([
            Paragraph(row.time_range, _CELL),
            Paragraph(title, _CELL),
            Paragraph(escape(row.location), _CELL),
            Paragraph(group, _CELL),
            Paragraph(escape(row.responsible), _CELL),
        ])
        if include_details and row.has_details:
            data.append([_detail_paragraph(row), "", "", "", ""])
            style.append(("SPAN", (0, len(data) - 1), (-1, len(data) - 1)))

        if index % 2 == 1:
            style.append(
                ("BACKGROUND", (0, first), (-1, len(data) - 1), colors.HexColor(ODD_ROW_COLOR))
            )

    table = Table(data, colWidths=[width * w for w in COLUMN_WIDTHS], repeatRows=1)
    table.setStyle(TableStyle(style))
    return table


def render_schedule_pdf(document: ScheduleDocument) -> bytes:
    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        leftMargin=15 * mm,
        rightMargin=15 * mm,
        topMargin=15 * mm,
        bottomMargin=22 * mm,
        title=f"{SECTION_TITLE} - {document.title}",
    )

    story: list = _header_flowables(document, doc.width)
    story.append(Spacer(1, 6 * mm))
    story.append(Paragraph(SECTION_TITLE, _SECTION))

    if document.is_empty:
        story.append(Paragraph(EMPTY_PLACEHOLDER, _PLACEHOLDER))
    for section in document.sections:
        story.append(Paragraph(escape(section.heading), _DAY))
        story.append(_day_table(section, document.include_details, doc.width))

    doc.build(story, canvasmaker=partial(NumberedCanvas, footer_text=document.footer))
    return buffer.getvalue()


def generate_schedule_pdf(
    event: Event,
    schedules: Sequence[DailySchedule],
    options: ScheduleExportOptions | None = None,
    *,
    logo: bytes | None = None,
) -> bytes:
    return render_schedule_pdf(build_schedule_document(event, schedules, options, logo=logo))


def schedule_pdf_response(
    event: Event,
    schedules: Sequence[DailySchedule],
    options: ScheduleExportOptions | None = None,
    *,
    filename: str | None = None,
    logo: bytes | None = None,
) -> Response:
    content = generate_schedule_pdf(event, schedules, options, logo=logo)
    name = filename or settings.pdf_default_filename
    return Response(
        content=content,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{name}"'},
    )


# ============= Logo =============


def prepare_logo(image_data: bytes, max_size: tuple[int, int] = LOGO_MAX_PIXELS) -> bytes:
    """Flatten and shrink a logo to a small PNG."""
    image = PILImage.open(BytesIO(image_data))
    if image.mode in ("RGBA", "P", "LA"):
        background = PILImage.new("RGB", image.size, (255, 255, 255))
        if image.mode != "RGBA":
            image = image.convert("RGBA")
        background.paste(image, mask=image.split()[-1])
        image = background
    elif image.mode != "RGB":
        image = image.convert("RGB")

    image.thumbnail(max_size, PILImage.Resampling.LANCZOS)
    output = BytesIO()
    image.save(output, format="PNG", optimize=True)
    return output.getvalue()


async def fetch_logo(
    url: str | None, transport: httpx.AsyncBaseTransport | None = None
) -> bytes | None:
    """Download and normalize a logo. Any failure just drops the logo."""
    if not url:
        return None
    try:
        async with httpx.AsyncClient(
            timeout=settings.platform_timeout, transport=transport
        ) as client:
            response = await client.get(url)
            response.raise_for_status()
        return prepare_logo(response.content)
    except httpx.HTTPError as e:
        logger.warning(f"Could not download logo {url}: {e}")
    except (UnidentifiedImageError, OSError) as e:
        logger.warning(f"Logo at {url} is not a usable image: {e}")
    return None
