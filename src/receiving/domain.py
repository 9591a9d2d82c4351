"""Receiving bounded context: Goods-Receipt Verification and Issue Ticketing.

Records goods received against a vendor dispatch, classifies per-line
discrepancies on verification, and opens an issue ticket when anything
other than an exact, undamaged match was received. The receipt update and
the ticket are written in the same unit of work.
"""

from protean.domain import Domain
from shared.logging import configure_logging, get_logger

configure_logging()

logger = get_logger(__name__)

receiving = Domain(name="receiving")
