"""Repository for the Ticket aggregate."""

from receiving.domain import receiving
from receiving.ticket.ticket import Ticket


@receiving.repository(part_of=Ticket)
class TicketRepository:
    """Ticket lookups used by verification and ticket numbering."""

    def find_by_goods_receipt(self, goods_receipt_id: str) -> Ticket | None:
        tickets = self._dao.query.filter(goods_receipt_id=str(goods_receipt_id)).limit(1).all().items
        return tickets[0] if tickets else None

    def ticket_number_taken(self, ticket_number: str) -> bool:
        return bool(self._dao.query.filter(ticket_number=ticket_number).limit(1).all().items)

    def last_sequence_for(self, sequence_date: str) -> int:
        """Highest sequence issued on ``sequence_date`` (``YYYYMMDD``), or 0."""
        latest = (
            self._dao.query.filter(sequence_date=sequence_date, sequence__gte=1)
            .order_by("-sequence")
            .limit(1)
            .all()
            .items
        )
        return latest[0].sequence if latest else 0
