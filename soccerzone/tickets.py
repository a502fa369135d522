"""Payment confirmation and the downloadable booking ticket."""

from __future__ import annotations

import datetime as dt
import logging
import os

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from soccerzone.api_client import SoccerZoneClient
from soccerzone.domain import PaymentResult, ValidationError
from soccerzone.stats import format_currency

logger = logging.getLogger(__name__)


def verify_and_build_ticket(client: SoccerZoneClient, reference: str | None) -> PaymentResult:
    if not reference:
        raise ValidationError("Missing payment reference")

    result = client.verify_payment(reference)
    if result.success:
        logger.info("Payment %s verified, ticket=%s", reference, result.ticket_id)
    else:
        logger.warning("Payment %s not confirmed: %s", reference, result.message)
    return result


def ticket_filename(result: PaymentResult) -> str:
    return f"SoccerZone-Ticket-{result.ticket_id or 'unknown'}.pdf"


def render_ticket_pdf(result: PaymentResult, directory: str = ".", *, issued_on: dt.date | None = None) -> str:
    """Write the ticket as a one page A4 PDF and return its path."""
    if not result.success:
        raise ValidationError("Cannot issue a ticket for an unconfirmed payment")

    os.makedirs(directory, exist_ok=True)
    path = os.path.join(directory, ticket_filename(result))
    issued_on = issued_on or dt.date.today()

    styles = getSampleStyleSheet()
    story = [
        Paragraph("SoccerZone Booking Ticket", styles["Title"]),
        Spacer(1, 4 * mm),
        Paragraph(f"Ticket ID: {result.ticket_id}", styles["Normal"]),
        Paragraph(f"Issued: {issued_on.isoformat()}", styles["Normal"]),
        Spacer(1, 6 * mm),
    ]

    rows = [["Date", "Start", "End", "Amount"]]
    for slot in result.slots:
        rows.append([slot.date, slot.start_time, slot.end_time, format_currency(slot.amount, compact=False)])
    rows.append(["", "", "Total", format_currency(sum(s.amount for s in result.slots), compact=False)])

    table = Table(rows, hAlign="LEFT")
    table.setStyle(
        TableStyle(
            [
                ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#16a34a")),
                ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
                ("GRID", (0, 0), (-1, -2), 0.5, colors.grey),
                ("FONTNAME", (0, -1), (-1, -1), "Helvetica-Bold"),
            ]
        )
    )
    story.append(table)

    SimpleDocTemplate(path, pagesize=A4, title=f"SoccerZone Ticket {result.ticket_id}").build(story)
    logger.info("Ticket written to %s", path)
    return path
