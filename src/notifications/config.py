"""Tunables for the Notifications domain, overridable through environment variables."""

import os


def _flag(name: str, default: str) -> bool:
    return os.environ.get(name, default).strip().lower() in ("1", "true", "yes", "on")


def _roles(name: str, default: str) -> list[str]:
    return [role.strip() for role in os.environ.get(name, default).split(",") if role.strip()]


# Kill switch: when off, sends are simulated and nothing reaches the gateway
NOTIFICATIONS_ENABLED = _flag("NOTIFICATIONS_ENABLED", "true")

# Gateway fan-out
PUSH_BATCH_SIZE = int(os.environ.get("PUSH_BATCH_SIZE", "500"))
PUSH_BATCH_TIMEOUT = float(os.environ.get("PUSH_BATCH_TIMEOUT", "10"))
PUSH_MAX_WORKERS = int(os.environ.get("PUSH_MAX_WORKERS", "8"))

# Device token lifecycle
TOKEN_EXPIRY_DAYS = int(os.environ.get("TOKEN_EXPIRY_DAYS", "30"))
TOKENS_PER_DEVICE_TYPE = int(os.environ.get("TOKENS_PER_DEVICE_TYPE", "5"))
INACTIVE_TOKEN_GRACE_DAYS = int(os.environ.get("INACTIVE_TOKEN_GRACE_DAYS", "7"))

# Retry sweep
MAX_NOTIFICATION_RETRIES = int(os.environ.get("MAX_NOTIFICATION_RETRIES", "3"))
RETRY_BATCH_LIMIT = int(os.environ.get("RETRY_BATCH_LIMIT", "100"))

# Audiences for goods-receipt ticket alerts
TICKET_ALERT_ROLES = _roles("TICKET_ALERT_ROLES", "OPERATIONS,ADMIN,QC,ACCOUNTS")
TICKET_RESOLUTION_ROLES = _roles("TICKET_RESOLUTION_ROLES", "OPERATIONS,ADMIN")
