"""Notifications bounded context: push delivery to registered devices.

Keeps the registry of push endpoints (device tokens) per user, fans logical
notifications out to those endpoints through a push gateway, records every
send for audit and retry, and reacts to Receiving events so that people
hear about goods-receipt tickets as they are raised and resolved.
"""

from protean.domain import Domain
from shared.logging import configure_logging, get_logger

configure_logging()

logger = get_logger(__name__)

notifications = Domain(name="notifications")
