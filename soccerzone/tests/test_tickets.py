from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from soccerzone.domain import PaymentResult, Slot, ValidationError
from soccerzone.tickets import render_ticket_pdf, ticket_filename, verify_and_build_ticket


def test_missing_reference_never_calls_backend() -> None:
    client = MagicMock()

    with pytest.raises(ValidationError, match="Missing payment reference"):
        verify_and_build_ticket(client, None)
    client.verify_payment.assert_not_called()


def test_verify_returns_backend_result() -> None:
    client = MagicMock()
    client.verify_payment.return_value = PaymentResult(success=False, message="Payment pending")

    result = verify_and_build_ticket(client, "ref-1")

    client.verify_payment.assert_called_once_with("ref-1")
    assert result.message == "Payment pending"


def test_render_ticket_pdf_writes_file(tmp_path) -> None:
    result = PaymentResult(
        success=True,
        message="ok",
        ticket_id="TCK-9",
        slots=(Slot(start_time="09:00", end_time="10:00", amount=15000, status="booked", date="2025-06-01"),),
    )

    path = render_ticket_pdf(result, str(tmp_path))

    assert path.endswith("SoccerZone-Ticket-TCK-9.pdf")
    with open(path, "rb") as f:
        assert f.read(5) == b"%PDF-"


def test_unconfirmed_payment_has_no_ticket(tmp_path) -> None:
    with pytest.raises(ValidationError):
        render_ticket_pdf(PaymentResult(success=False, message="nope"), str(tmp_path))


def test_ticket_filename_without_id() -> None:
    assert ticket_filename(PaymentResult(success=True, message="")) == "SoccerZone-Ticket-unknown.pdf"
