"""
PDF reports (sponsor report and annual report) rendered with reportlab.

Documents are built into an in-memory buffer; nothing is returned unless
the whole document rendered.
"""
import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from io import BytesIO
from typing import Dict, List, Optional, Sequence
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import cm
from reportlab.platypus import CondPageBreak, Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from festival_portal.models.festival import Festival
from festival_portal.models.ledger import TicketSale, Income, Expense
from festival_portal.models.reports import ExportKind, ExportArtifact
from festival_portal.models.sponsor import Sponsor, SponsorDeliverable, is_committed
from festival_portal.services import ledger_aggregator as agg
from festival_portal.services.csv_export import export_filename, export_guard
from festival_portal.services.formatting import format_currency, format_date

logger = logging.getLogger(__name__)

PDF_MEDIA_TYPE = "application/pdf"

BLUE = colors.HexColor("#3B82F6")
INDIGO = colors.HexColor("#6366F1")
GREEN = colors.HexColor("#10B981")
AMBER = colors.HexColor("#F59E0B")

# Space a section heading plus a table header and one row needs
SECTION_MIN_HEIGHT = 3 * cm
# The annual report's sponsor table is only started with room for a few rows
SPONSOR_SECTION_MIN_HEIGHT = 6 * cm


@dataclass
class SponsorReportStats:
    sponsor_count: int
    committed_count: int
    total_agreement_amount: Decimal
    delivered_count: int
    deliverable_count: int


def sponsor_report_stats(
    sponsors: Sequence[Sponsor],
    deliverables: Sequence[SponsorDeliverable]
) -> SponsorReportStats:
    """Headline numbers for the sponsor report"""
    return SponsorReportStats(
        sponsor_count=len(sponsors),
        committed_count=sum(1 for s in sponsors if is_committed(s.status)),
        total_agreement_amount=sum((agg.to_decimal(s.agreement_amount) for s in sponsors), Decimal("0")),
        delivered_count=sum(1 for d in deliverables if d.delivered),
        deliverable_count=len(deliverables),
    )


def deliverables_by_sponsor(
    deliverables: Sequence[SponsorDeliverable]
) -> Dict[str, List[SponsorDeliverable]]:
    grouped: Dict[str, List[SponsorDeliverable]] = {}
    for deliverable in deliverables:
        grouped.setdefault(deliverable.sponsor_id, []).append(deliverable)
    return grouped


class _Document:
    """Shared styles and flowable helpers for one report"""

    def __init__(self, festival: Festival, subtitle: str, today: date):
        self.festival = festival
        self.currency = festival.currency or "NOK"
        self.locale = festival.default_locale or "nb"
        self.today = today
        self.elements = []

        styles = getSampleStyleSheet()
        self.title_style = ParagraphStyle(
            "ReportTitle", parent=styles["Heading1"], fontSize=18, alignment=1, spaceAfter=6
        )
        self.subtitle_style = ParagraphStyle(
            "ReportSubtitle", parent=styles["Normal"], fontSize=12, alignment=1, spaceAfter=4
        )
        self.meta_style = ParagraphStyle(
            "ReportMeta", parent=styles["Normal"], fontSize=9, alignment=1
        )
        self.section_style = ParagraphStyle(
            "Section", parent=styles["Heading2"], fontSize=11, spaceBefore=10, spaceAfter=6
        )
        self.subsection_style = ParagraphStyle(
            "Subsection", parent=styles["Heading3"], fontSize=10, spaceBefore=8, spaceAfter=4
        )

        self.elements.append(Paragraph(escape(festival.name), self.title_style))
        self.elements.append(Paragraph(escape(subtitle), self.subtitle_style))

    def money(self, amount) -> str:
        return format_currency(amount, self.currency, self.locale)

    def date(self, value) -> str:
        return format_date(value, self.locale)

    def meta(self, text: str):
        self.elements.append(Paragraph(escape(text), self.meta_style))

    def generated_line(self):
        self.meta(f"Generert: {self.date(self.today)}")
        self.elements.append(Spacer(1, 0.6 * cm))

    def section(self, title: str, min_height=SECTION_MIN_HEIGHT, subsection: bool = False):
        self.elements.append(CondPageBreak(min_height))
        style = self.subsection_style if subsection else self.section_style
        self.elements.append(Paragraph(escape(title), style))

    def table(self, header: List[str], rows: List[List[str]], header_color, font_size: int = 9,
              bold_last_row: bool = False):
        table = Table([header, *rows], repeatRows=1, hAlign="LEFT")
        style = [
            ("BACKGROUND", (0, 0), (-1, 0), header_color),
            ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
            ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
            ("FONTSIZE", (0, 0), (-1, -1), font_size),
            ("BOTTOMPADDING", (0, 0), (-1, 0), 6),
            ("LINEBELOW", (0, 0), (-1, -1), 0.25, colors.lightgrey),
            ("VALIGN", (0, 0), (-1, -1), "TOP"),
        ]
        if bold_last_row and rows:
            style.append(("FONTNAME", (0, -1), (-1, -1), "Helvetica-Bold"))
        table.setStyle(TableStyle(style))
        self.elements.append(table)

    def key_values(self, rows: List[List[str]]):
        table = Table(rows, colWidths=[5.5 * cm, None], hAlign="LEFT")
        table.setStyle(TableStyle([
            ("FONTNAME", (0, 0), (0, -1), "Helvetica-Bold"),
            ("FONTSIZE", (0, 0), (-1, -1), 9),
        ]))
        self.elements.append(table)

    def render(self) -> bytes:
        buffer = BytesIO()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=A4,
            topMargin=1.5 * cm,
            bottomMargin=1.5 * cm,
            leftMargin=1.4 * cm,
            rightMargin=1.4 * cm,
            title=self.festival.name,
        )
        doc.build(self.elements)
        return buffer.getvalue()


def _today(today: Optional[date]) -> date:
    return today or datetime.now(timezone.utc).date()


# ============================================================================
# Sponsor report
# ============================================================================

def generate_sponsor_report(
    festival: Festival,
    sponsors: Sequence[Sponsor],
    deliverables: Sequence[SponsorDeliverable],
    today: Optional[date] = None
) -> ExportArtifact:
    """Summary, sponsor list and one deliverables table per sponsor"""
    kind = ExportKind.SPONSOR_REPORT
    today = _today(today)

    with export_guard(kind):
        doc = _Document(festival, "Sponsorrapport", today)
        doc.generated_line()

        stats = sponsor_report_stats(sponsors, deliverables)
        doc.section("Sammendrag")
        doc.key_values([
            ["Antall sponsorer", str(stats.sponsor_count)],
            ["Signert/levert/fakturert", str(stats.committed_count)],
            ["Samlet avtalebeløp", doc.money(stats.total_agreement_amount)],
            ["Leveranser levert", f"{stats.delivered_count} / {stats.deliverable_count}"],
        ])

        grouped = deliverables_by_sponsor(deliverables)

        doc.section("Sponsorliste")
        rows = []
        for sponsor in sponsors:
            own = grouped.get(sponsor.id, [])
            delivered = sum(1 for d in own if d.delivered)
            rows.append([
                sponsor.name,
                sponsor.level.value if sponsor.level else "",
                doc.money(sponsor.agreement_amount) if sponsor.agreement_amount is not None else "",
                sponsor.status.value,
                f"{delivered}/{len(own)}" if own else "",
            ])
        doc.table(["Sponsor", "Nivå", "Avtalebeløp", "Status", "Leveranser"], rows, BLUE, font_size=8)

        for sponsor in sponsors:
            own = grouped.get(sponsor.id)
            if not own:
                continue
            doc.section(f"{sponsor.name}: Leveranser", subsection=True)
            doc.table(
                ["Leveranse", "Status", "Levert dato"],
                [
                    [
                        d.description,
                        "Levert" if d.delivered else "Ikkje levert",
                        doc.date(d.delivered_at) if d.delivered_at else "",
                    ]
                    for d in own
                ],
                INDIGO,
                font_size=8,
            )

        content = doc.render()
        logger.info(f"Sponsor report rendered for festival {festival.id}: {len(sponsors)} sponsors")
        return ExportArtifact(
            filename=export_filename(kind, today=today, extension="pdf"),
            media_type=PDF_MEDIA_TYPE,
            content=content,
        )


# ============================================================================
# Annual report
# ============================================================================

def _economy_rows(doc: _Document, income: Sequence[Income], expenses: Sequence[Expense]) -> List[List[str]]:
    actual_income = agg.actual_only(income)
    actual_expenses = agg.actual_only(expenses)
    total_income = agg.sum_amounts(actual_income).inc_vat
    total_expenses = agg.sum_amounts(actual_expenses).inc_vat

    rows = [["Inntekt", category, doc.money(amount)] for category, amount in agg.totals_by_category(actual_income)]
    rows.append(["Inntekt", "Sum inntekter", doc.money(total_income)])
    rows.append(["", "", ""])
    rows.extend(["Kostnad", category, doc.money(amount)] for category, amount in agg.totals_by_category(actual_expenses))
    rows.append(["Kostnad", "Sum kostnader", doc.money(total_expenses)])
    rows.append(["", "", ""])
    rows.append(["RESULTAT", "", doc.money(total_income - total_expenses)])
    return rows


def generate_annual_report(
    festival: Festival,
    sales: Sequence[TicketSale],
    income: Sequence[Income],
    expenses: Sequence[Expense],
    sponsors: Sequence[Sponsor],
    today: Optional[date] = None
) -> ExportArtifact:
    """Ticket/F&B totals, per-type sales, economy by category and sponsors"""
    kind = ExportKind.ANNUAL_REPORT
    today = _today(today)

    with export_guard(kind):
        doc = _Document(festival, "Årsrapport", today)
        if festival.start_date and festival.end_date:
            doc.meta(f"{doc.date(festival.start_date)} - {doc.date(festival.end_date)}")
        doc.generated_line()

        tickets, fnb = agg.split_by_category(sales)
        ticket_qty = sum(s.quantity for s in tickets)
        fnb_qty = sum(s.quantity for s in fnb)
        ticket_rev = agg.sum_amounts(tickets).inc_vat
        fnb_rev = agg.sum_amounts(fnb).inc_vat

        doc.section("Billettsalg og F&B")
        doc.table(
            ["Kategori", "Antall", "Omsetning inkl. MVA"],
            [
                ["Billetter", str(ticket_qty), doc.money(ticket_rev)],
                ["Mat/drikke", str(fnb_qty), doc.money(fnb_rev)],
                ["Totalt", str(ticket_qty + fnb_qty), doc.money(ticket_rev + fnb_rev)],
            ],
            BLUE,
            bold_last_row=True,
        )

        by_type = sorted(agg.group_by_type(tickets), key=lambda t: t.revenue, reverse=True)
        if by_type:
            doc.section("Per billetttype")
            doc.table(
                ["Billetttype", "Antall", "Omsetning"],
                [[t.type, str(t.tickets), doc.money(t.revenue)] for t in by_type],
                INDIGO,
            )

        doc.section("Økonomi")
        doc.table(["Type", "Kategori", "Beløp"], _economy_rows(doc, income, expenses), GREEN, bold_last_row=True)

        if sponsors:
            total_sponsor = sum((agg.to_decimal(s.agreement_amount) for s in sponsors), Decimal("0"))
            rows = [
                [
                    s.name,
                    s.level.value if s.level else "",
                    doc.money(s.agreement_amount) if s.agreement_amount is not None else "",
                    s.status.value,
                ]
                for s in sponsors
            ]
            rows.append(["Totalt", "", doc.money(total_sponsor), ""])
            doc.section("Sponsorer", min_height=SPONSOR_SECTION_MIN_HEIGHT)
            doc.table(["Sponsor", "Nivå", "Avtalebeløp", "Status"], rows, AMBER, bold_last_row=True)

        content = doc.render()
        logger.info(f"Annual report rendered for festival {festival.id}: {len(sales)} sale lines")
        return ExportArtifact(
            filename=export_filename(kind, today=today, extension="pdf"),
            media_type=PDF_MEDIA_TYPE,
            content=content,
        )
