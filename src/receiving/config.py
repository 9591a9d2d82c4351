"""Tunables for the Receiving domain, overridable through environment variables."""

import os

# Total absolute critical discrepancy (units) above which a ticket is HIGH / URGENT
HIGH_PRIORITY_THRESHOLD = int(os.environ.get("HIGH_PRIORITY_THRESHOLD", "50"))
URGENT_PRIORITY_THRESHOLD = int(os.environ.get("URGENT_PRIORITY_THRESHOLD", "100"))

# Ticket number generation
TICKET_NUMBER_MAX_ATTEMPTS = int(os.environ.get("TICKET_NUMBER_MAX_ATTEMPTS", "5"))
TICKET_NUMBER_BACKOFF_SECONDS = float(os.environ.get("TICKET_NUMBER_BACKOFF_SECONDS", "0.05"))
