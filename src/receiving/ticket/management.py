"""Ticket management: status changes, assignment, and comments."""

from protean import handle
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from receiving.domain import receiving
from receiving.ticket.ticket import Ticket, TicketStatus


@receiving.command(part_of="Ticket")
class ChangeTicketStatus:
    ticket_id = Identifier(required=True)
    new_status = String(required=True, max_length=20, choices=TicketStatus)
    changed_by = Identifier(required=True)
    note = Text()


@receiving.command(part_of="Ticket")
class AssignTicket:
    ticket_id = Identifier(required=True)
    assignee_id = Identifier(required=True)
    assigned_by = Identifier(required=True)


@receiving.command(part_of="Ticket")
class AddTicketComment:
    ticket_id = Identifier(required=True)
    author_id = Identifier(required=True)
    content = Text(required=True)


@receiving.command_handler(part_of=Ticket)
class TicketManagementHandler:
    @handle(ChangeTicketStatus)
    def change_status(self, command):
        repo = current_domain.repository_for(Ticket)
        ticket = repo.get(command.ticket_id)
        ticket.transition_to(command.new_status, changed_by=command.changed_by, note=command.note)
        repo.add(ticket)

    @handle(AssignTicket)
    def assign(self, command):
        repo = current_domain.repository_for(Ticket)
        ticket = repo.get(command.ticket_id)
        ticket.assign(command.assignee_id, assigned_by=command.assigned_by)
        repo.add(ticket)

    @handle(AddTicketComment)
    def add_comment(self, command):
        repo = current_domain.repository_for(Ticket)
        ticket = repo.get(command.ticket_id)
        ticket.add_comment(command.author_id, command.content)
        repo.add(ticket)
