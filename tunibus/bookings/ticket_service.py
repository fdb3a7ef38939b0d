import hashlib
import hmac
import json
import logging
from io import BytesIO
from typing import Optional

import qrcode
from qrcode import constants
from sqlalchemy.orm import Session

from tunibus.config import settings
from tunibus.models import Reservation

logger = logging.getLogger(__name__)

TOKEN_LENGTH = 32


class TicketService:
    """Signed QR tickets: payload generation, rendering and scanner validation"""

    def __init__(self, db: Session, secret: Optional[str] = None):
        self.db = db
        self.secret = secret or settings.TICKET_SECRET

    def token_for(self, reservation_id: str) -> str:
        digest = hmac.new(self.secret.encode(), reservation_id.encode(), hashlib.sha256).hexdigest()
        return digest[:TOKEN_LENGTH]

    def qr_text(self, reservation_id: str) -> str:
        """Text encoded in the QR code of a reservation"""
        return json.dumps({"reservationId": reservation_id, "token": self.token_for(reservation_id)})

    def qr_png(self, reservation: Reservation) -> bytes:
        qr = qrcode.QRCode(
            version=1,
            error_correction=constants.ERROR_CORRECT_M,
            box_size=10,
            border=4,
        )
        qr.add_data(self.qr_text(reservation.id))
        qr.make(fit=True)

        img = qr.make_image(fill_color="black", back_color="white")
        buffer = BytesIO()
        img.save(buffer, format="PNG")
        return buffer.getvalue()

    def pdf_ticket(self, reservation: Reservation) -> bytes:
        """Printable A4 ticket with the journey, passenger and QR code"""
        from reportlab.lib import colors
        from reportlab.lib.pagesizes import A4
        from reportlab.lib.styles import getSampleStyleSheet
        from reportlab.platypus import Image, Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

        buffer = BytesIO()
        doc = SimpleDocTemplate(buffer, pagesize=A4, title=f"Ticket {reservation.reference}")
        styles = getSampleStyleSheet()
        story = []

        story.append(Paragraph(settings.PROJECT_NAME, styles["Title"]))
        story.append(Spacer(1, 12))
        story.append(Paragraph(f"Booking reference {reservation.reference}", styles["Heading2"]))
        story.append(Spacer(1, 12))

        trip = reservation.trip
        client = reservation.client
        ticket_info = [
            ["Passenger:", client.full_name if client else "-"],
            ["From:", trip.origin],
            ["To:", trip.destination],
            ["Departure:", trip.departure_at.strftime("%Y-%m-%d %H:%M")],
            ["Arrival:", trip.arrival_at.strftime("%Y-%m-%d %H:%M")],
            ["Seats:", str(reservation.seat_count)],
            ["Seat number:", str(reservation.seat_number) if reservation.seat_number else "Free seating"],
            ["Amount:", f"{float(reservation.total_amount or 0):.2f} TND"],
            ["Status:", reservation.status.replace("_", " ").title()],
        ]
        info_table = Table(ticket_info, colWidths=[110, 300])
        info_table.setStyle(TableStyle([
            ("BACKGROUND", (0, 0), (0, -1), colors.lightgrey),
            ("TEXTCOLOR", (0, 0), (-1, -1), colors.black),
            ("FONTNAME", (0, 0), (0, -1), "Helvetica-Bold"),
            ("FONTSIZE", (0, 0), (-1, -1), 10),
            ("BOTTOMPADDING", (0, 0), (-1, -1), 6),
            ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
        ]))
        story.append(info_table)
        story.append(Spacer(1, 20))

        story.append(Image(BytesIO(self.qr_png(reservation)), width=160, height=160))
        story.append(Spacer(1, 12))
        story.append(Paragraph("Present this code to the driver when boarding.", styles["Italic"]))

        doc.build(story)
        return buffer.getvalue()

    def validate(self, reservation_id: str, token: str) -> dict:
        """Check a scanned payload; returns a result dict with a 'status' of ok, not_found, invalid or cancelled"""
        reservation = self.db.query(Reservation).filter(Reservation.id == reservation_id).first()
        if not reservation:
            return {"status": "not_found"}

        if not hmac.compare_digest(self.token_for(reservation.id).encode(), token.encode()):
            logger.warning("Rejected ticket token for reservation %s", reservation.id)
            return {"status": "invalid", "reservation": reservation}

        if reservation.status == "cancelled":
            return {"status": "cancelled", "reservation": reservation}

        return {"status": "ok", "reservation": reservation}
