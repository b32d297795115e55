"""
Tests para los reportes PDF.
"""
import re
from datetime import date
from decimal import Decimal
from unittest.mock import patch

import pytest

from festival_portal.core.exceptions import ExportError
from festival_portal.services import pdf_report
from festival_portal.services.formatting import NBSP
from festival_portal.services.pdf_report import generate_sponsor_report, generate_annual_report, sponsor_report_stats

from tests.utils.factories import (
    FestivalFactory, SaleFactory, IncomeFactory, ExpenseFactory, SponsorFactory, DeliverableFactory
)

TODAY = date(2026, 7, 15)


def _page_count(content: bytes) -> int:
    return len(re.findall(rb"/Type\s*/Page[^s]", content))


def _kr(text: str) -> str:
    return text.replace(" ", NBSP) + f"{NBSP}kr"


@pytest.fixture
def table_calls():
    """Registra cada tabla (encabezado, filas) sin dejar de renderizar el PDF."""
    with patch.object(pdf_report._Document, "table", autospec=True,
                      side_effect=pdf_report._Document.table) as spy:
        yield spy


def _tables(spy) -> dict:
    """Filas por primera columna del encabezado"""
    tables = {}
    for call in spy.call_args_list:
        _, header, rows = call.args[:3]
        tables.setdefault(header[0], []).append(rows)
    return tables


class TestSponsorReportStats:
    """Tests para sponsor_report_stats."""

    def test_counts(self):
        sponsors = [
            SponsorFactory.build(id="s1", status="contacted", agreement_amount=10000),
            SponsorFactory.build(id="s2", status="signed", agreement_amount=50000),
            SponsorFactory.build(id="s3", status="invoiced", agreement_amount=None),
        ]
        deliverables = [
            DeliverableFactory.build(sponsor_id="s2", delivered=True),
            DeliverableFactory.build(sponsor_id="s2"),
            DeliverableFactory.build(sponsor_id="s3", delivered=True),
        ]

        stats = sponsor_report_stats(sponsors, deliverables)

        assert stats.sponsor_count == 3
        assert stats.committed_count == 2
        assert stats.total_agreement_amount == Decimal("60000")
        assert stats.delivered_count == 2
        assert stats.deliverable_count == 3

    def test_empty(self):
        stats = sponsor_report_stats([], [])

        assert stats.sponsor_count == 0
        assert stats.total_agreement_amount == Decimal("0")


class TestSponsorReport:
    """Tests para generate_sponsor_report."""

    def test_renders_pdf(self):
        sponsor = SponsorFactory.build(id="s1", name="Bryggeri & Co <AS>")
        deliverables = [DeliverableFactory.build(sponsor_id="s1", delivered=True)]

        artifact = generate_sponsor_report(FestivalFactory.build(), [sponsor], deliverables, today=TODAY)

        assert artifact.content.startswith(b"%PDF")
        assert artifact.filename == "sponsorrapport-2026-07-15.pdf"
        assert artifact.media_type == "application/pdf"

    def test_sponsor_list_contents(self, table_calls):
        """La columna Leveranser muestra entregados/total; vacía si no hay entregables."""
        sponsors = [
            SponsorFactory.build(id="s1", name="Bryggeriet", level="hovedsponsor", status="signed",
                                 agreement_amount=50000),
            SponsorFactory.build(id="s2", name="Bakeriet", status="contacted", agreement_amount=None),
        ]
        deliverables = [
            DeliverableFactory.build(sponsor_id="s1", description="Logo", delivered=True),
            DeliverableFactory.build(sponsor_id="s1", description="Stand"),
        ]

        generate_sponsor_report(FestivalFactory.build(), sponsors, deliverables, today=TODAY)

        tables = _tables(table_calls)
        assert tables["Sponsor"][0] == [
            ["Bryggeriet", "hovedsponsor", _kr("50 000"), "signed", "1/2"],
            ["Bakeriet", "gull", "", "contacted", ""],
        ]
        assert len(tables["Leveranse"]) == 1
        assert [row[:2] for row in tables["Leveranse"][0]] == [["Logo", "Levert"], ["Stand", "Ikkje levert"]]

    def test_empty_festival_still_renders(self):
        """Sin sponsors el reporte se genera con las tablas vacías."""
        artifact = generate_sponsor_report(FestivalFactory.build(), [], [], today=TODAY)

        assert artifact.content.startswith(b"%PDF")

    def test_many_sponsors_span_pages(self):
        sponsors = [SponsorFactory.build(id=f"s{i}") for i in range(40)]
        deliverables = [DeliverableFactory.build(sponsor_id=f"s{i}") for i in range(40) for _ in range(3)]

        artifact = generate_sponsor_report(FestivalFactory.build(), sponsors, deliverables, today=TODAY)

        assert _page_count(artifact.content) > 1


class TestAnnualReport:
    """Tests para generate_annual_report."""

    def test_renders_pdf(self):
        sales = [
            SaleFactory.build(ticket_type="Dagspass", quantity=2),
            SaleFactory.build(ticket_type="Helgepass", quantity=1, price_ex_vat=800),
            SaleFactory.build(category="fb", ticket_type="Ølbillett", quantity=4, price_ex_vat=60),
        ]
        income = [IncomeFactory.build(), IncomeFactory.build(is_budget=True)]
        expenses = [ExpenseFactory.build()]
        sponsors = [SponsorFactory.build()]

        artifact = generate_annual_report(
            FestivalFactory.build(), sales, income, expenses, sponsors, today=TODAY
        )

        assert artifact.content.startswith(b"%PDF")
        assert artifact.filename == "arsrapport-2026-07-15.pdf"

    def test_table_contents(self, table_calls):
        """Totales por categoría, tipos ordenados por omsetning y RESULTAT = ingresos - gastos."""
        sales = [
            SaleFactory.build(ticket_type="Dagspass", quantity=5, price_ex_vat=100),
            SaleFactory.build(ticket_type="Helgepass", quantity=1, price_ex_vat=800),
            SaleFactory.build(category="fb", ticket_type="Ølbillett", quantity=4, price_ex_vat=60),
        ]
        income = [IncomeFactory.build(category="Tilskudd", amount_ex_vat=1000),
                  IncomeFactory.build(amount_ex_vat=9999, is_budget=True)]
        expenses = [ExpenseFactory.build(category="Scene", amount_ex_vat="600.4")]

        generate_annual_report(FestivalFactory.build(), sales, income, expenses, [], today=TODAY)

        tables = _tables(table_calls)
        assert tables["Kategori"][0] == [
            ["Billetter", "6", _kr("1 625")],
            ["Mat/drikke", "4", _kr("300")],
            ["Totalt", "10", _kr("1 925")],
        ]
        assert tables["Billetttype"][0] == [
            ["Helgepass", "1", _kr("1 000")],
            ["Dagspass", "5", _kr("625")],
        ]
        economy = tables["Type"][0]
        assert ["Inntekt", "Sum inntekter", _kr("1 000")] in economy
        assert ["Kostnad", "Sum kostnader", _kr("600")] in economy
        assert economy[-1] == ["RESULTAT", "", _kr("400")]
        assert "Sponsor" not in tables

    def test_sponsor_total_row(self, table_calls):
        sponsors = [SponsorFactory.build(name="A", agreement_amount=30000),
                    SponsorFactory.build(name="B", agreement_amount=None)]

        generate_annual_report(FestivalFactory.build(), [], [], [], sponsors, today=TODAY)

        rows = _tables(table_calls)["Sponsor"][0]
        assert rows[1][2] == ""
        assert rows[-1] == ["Totalt", "", _kr("30 000"), ""]

    def test_festival_without_dates(self):
        festival = FestivalFactory.build(start_date=None, end_date=None)

        artifact = generate_annual_report(festival, [], [], [], [], today=TODAY)

        assert artifact.content.startswith(b"%PDF")

    def test_render_failure_raises_export_error(self):
        """Un fallo al renderizar no devuelve un PDF parcial."""
        with patch.object(pdf_report._Document, "render", side_effect=RuntimeError("layout")):
            with pytest.raises(ExportError) as exc_info:
                generate_annual_report(FestivalFactory.build(), [], [], [], [], today=TODAY)

        assert exc_info.value.details == {"kind": "arsrapport"}
