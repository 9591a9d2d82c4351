"""Notification dispatcher: fans a logical notification out to device endpoints.

For each target user the dispatcher loads the user's active endpoints,
writes a PENDING NotificationRecord, and splits the endpoints into batches
for the push gateway. Gateway calls for every user and batch run
concurrently on a thread pool and are bounded by a timeout. Repository
reads and writes stay on the calling thread. Once all batches report back:

    - endpoints the gateway reports as permanently invalid are deactivated
    - endpoints that accepted the message have their last-used time refreshed
    - each record is settled to SENT (any device accepted) or FAILED

Failures are reported in the returned result and the record, never raised:
a notification problem must not break the business flow that asked for it.
When delivery is switched off or the gateway has no credentials, sends are
simulated and reported as a single successful delivery.
"""

from concurrent.futures import ThreadPoolExecutor, wait
from datetime import UTC, datetime

import structlog
from notifications import config
from notifications.channel import get_push_gateway
from notifications.device_token.registry import DeviceRegistry
from notifications.directory import get_user_directory
from notifications.notification.notification import NotificationRecord, NotificationStatus
from notifications.notification.payload import NotificationPayload
from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

logger = structlog.get_logger(__name__)


def _delivery_result(success, record_id=None, total_targets=0, sent_count=0, failed_count=0, errors=None, **extra):
    return {
        "success": success,
        "notification_record_id": str(record_id) if record_id else None,
        "total_targets": total_targets,
        "sent_count": sent_count,
        "failed_count": failed_count,
        "errors": list(errors or []),
        **extra,
    }


class _Tally:
    """Per-user accumulation of batch outcomes."""

    def __init__(self):
        self.sent = 0
        self.failed = 0
        self.errors: list[str] = []
        self.invalid_tokens: list[str] = []
        self.delivered_tokens: list[str] = []

    def record(self, batch, outcomes, offset=0):
        for index, token in enumerate(batch):
            outcome = outcomes[index] if index < len(outcomes) else None
            if outcome is not None and outcome.success:
                self.sent += 1
                self.delivered_tokens.append(token)
                continue

            self.failed += 1
            reason = outcome.error if outcome is not None else "No outcome reported by gateway"
            self.errors.append(f"Token {offset + index}: {reason}")
            if outcome is not None and outcome.token_invalid:
                self.invalid_tokens.append(token)

    def batch_failed(self, batch, reason):
        self.failed += len(batch)
        self.errors.append(f"Batch error: {reason}")


class NotificationDispatcher:
    def __init__(
        self,
        registry: DeviceRegistry | None = None,
        gateway=None,
        directory=None,
        batch_size: int | None = None,
        batch_timeout: float | None = None,
        max_workers: int | None = None,
        enabled: bool | None = None,
    ):
        self.registry = registry or DeviceRegistry()
        self.gateway = gateway or get_push_gateway()
        self.directory = directory or get_user_directory()
        self.batch_size = config.PUSH_BATCH_SIZE if batch_size is None else batch_size
        self.batch_timeout = config.PUSH_BATCH_TIMEOUT if batch_timeout is None else batch_timeout
        self.max_workers = config.PUSH_MAX_WORKERS if max_workers is None else max_workers
        self.enabled = config.NOTIFICATIONS_ENABLED if enabled is None else enabled

        if self.batch_size < 1:
            raise ValidationError({"batch_size": ["Batch size must be at least 1"]})

    @property
    def _repo(self):
        return current_domain.repository_for(NotificationRecord)

    def delivery_enabled(self) -> bool:
        return self.enabled and self.gateway.is_available()

    # -------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------
    def send_to_user(self, user_id, payload, options=None) -> dict:
        """Deliver to every active endpoint of one user."""
        user_id = str(user_id)
        return self._deliver([user_id], self._coerce(payload), options)[user_id]

    def send_to_users(self, user_ids, payload, options=None) -> dict:
        """Deliver to each listed user that is active in the directory."""
        members = self.directory.active_users([str(user_id) for user_id in user_ids])
        return self._fan_out(members, self._coerce(payload), options)

    def send_to_role(self, roles, payload, options=None) -> dict:
        """Deliver to every active user holding any of ``roles``."""
        if isinstance(roles, str):
            roles = [roles]
        members = self.directory.users_with_roles(list(roles))
        return self._fan_out(members, self._coerce(payload), options)

    def history(self, user_id, limit: int = 20, offset: int = 0) -> list[NotificationRecord]:
        """A user's notification records, newest first."""
        return (
            self._repo._dao.query.filter(user_id=str(user_id))
            .order_by("-created_at")
            .offset(offset)
            .limit(limit)
            .all()
            .items
        )

    def mark_delivered(self, record_id) -> NotificationRecord:
        record = self._repo.get(record_id)
        record.mark_delivered()
        self._repo.add(record)
        return record

    def expire_stale(self, as_of: datetime | None = None) -> int:
        """Expire PENDING and FAILED records whose time-to-live has passed."""
        as_of = as_of or datetime.now(UTC)
        expired = 0
        for status in (NotificationStatus.PENDING, NotificationStatus.FAILED):
            stale = self._repo._dao.query.filter(status=status.value, expires_at__lte=as_of).limit(None).all().items
            for record in stale:
                record.expire(now=as_of)
                self._repo.add(record)
                expired += 1

        if expired:
            logger.info("Expired stale notifications", count=expired)
        return expired

    def redeliver(self, record: NotificationRecord) -> dict:
        """Send a FAILED record again, reusing the record for the outcome."""
        user_id = str(record.user_id)
        tokens = [t.token for t in self.registry.active_for(user_id)]

        if tokens:
            tally = self._send_batches({user_id: tokens}, record.payload.gateway_message())[user_id]
            self._apply_token_feedback([tally])
        else:
            tally = _Tally()
            tally.errors.append("No active device tokens")

        record.record_outcome(
            sent_count=tally.sent,
            failed_count=tally.failed,
            errors=tally.errors,
            device_token_count=len(tokens),
            retried=True,
        )
        self._repo.add(record)

        return _delivery_result(
            success=tally.sent > 0,
            record_id=record.id,
            total_targets=len(tokens),
            sent_count=tally.sent,
            failed_count=tally.failed,
            errors=tally.errors,
        )

    # -------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------
    @staticmethod
    def _coerce(payload) -> NotificationPayload:
        if isinstance(payload, NotificationPayload):
            return payload
        return NotificationPayload.from_dict(payload)

    def _fan_out(self, members, payload: NotificationPayload, options) -> dict:
        unique = {}
        for member in members:
            unique.setdefault(str(member.user_id), member)

        results = self._deliver(list(unique), payload, options)
        entries = [
            {"user_id": user_id, "user_name": member.name, "result": results[user_id]}
            for user_id, member in unique.items()
        ]

        return {
            "success": all(entry["result"]["success"] for entry in entries),
            "results": entries,
            "total_users": len(entries),
            "total_notifications": sum(entry["result"]["sent_count"] for entry in entries),
        }

    def _deliver(self, user_ids: list[str], payload: NotificationPayload, options) -> dict[str, dict]:
        if not self.delivery_enabled():
            logger.info("Push delivery unavailable, simulating send", users=len(user_ids), title=payload.title)
            return {
                user_id: _delivery_result(success=True, total_targets=1, sent_count=1, simulated=True)
                for user_id in user_ids
            }

        results = {}
        records = {}
        tokens_by_user = {}

        for user_id, device_tokens in self.registry.active_for_many(user_ids).items():
            if not device_tokens:
                results[user_id] = _delivery_result(success=True)
                continue

            tokens = [t.token for t in device_tokens]
            try:
                record = NotificationRecord.create(user_id, payload, len(tokens), options=options)
                self._repo.add(record)
            except Exception as exc:
                logger.error("Failed to record notification", user_id=user_id, error=str(exc))
                results[user_id] = _delivery_result(success=False, total_targets=len(tokens), errors=[str(exc)])
                continue

            records[user_id] = record
            tokens_by_user[user_id] = tokens

        tallies = self._send_batches(tokens_by_user, payload.gateway_message())
        self._apply_token_feedback(tallies.values())

        for user_id, record in records.items():
            tally = tallies[user_id]
            try:
                record.record_outcome(sent_count=tally.sent, failed_count=tally.failed, errors=tally.errors)
                self._repo.add(record)
            except Exception as exc:
                logger.error(
                    "Failed to settle notification record",
                    notification_id=str(record.id),
                    error=str(exc),
                )

            if tally.failed:
                logger.warning(
                    "Notification partially or wholly undelivered",
                    user_id=user_id,
                    sent=tally.sent,
                    failed=tally.failed,
                )

            results[user_id] = _delivery_result(
                success=tally.sent > 0,
                record_id=record.id,
                total_targets=len(tokens_by_user[user_id]),
                sent_count=tally.sent,
                failed_count=tally.failed,
                errors=tally.errors,
            )

        return {user_id: results[user_id] for user_id in user_ids}

    def _send_batches(self, tokens_by_user: dict[str, list[str]], message: dict) -> dict[str, _Tally]:
        tallies = {user_id: _Tally() for user_id in tokens_by_user}

        jobs = []
        for user_id, tokens in tokens_by_user.items():
            for start in range(0, len(tokens), self.batch_size):
                jobs.append((user_id, start, tokens[start : start + self.batch_size]))
        if not jobs:
            return tallies

        executor = ThreadPoolExecutor(max_workers=max(1, min(self.max_workers, len(jobs))))
        try:
            futures = {
                executor.submit(self.gateway.send_batch, batch, message): (user_id, start, batch)
                for user_id, start, batch in jobs
            }
            done, not_done = wait(futures, timeout=self.batch_timeout)

            for future in done:
                user_id, start, batch = futures[future]
                try:
                    outcomes = future.result()
                except Exception as exc:
                    logger.error("Push batch failed", user_id=user_id, batch_size=len(batch), error=str(exc))
                    tallies[user_id].batch_failed(batch, str(exc))
                    continue
                tallies[user_id].record(batch, outcomes, offset=start)

            for future in not_done:
                user_id, start, batch = futures[future]
                future.cancel()
                logger.error("Push batch timed out", user_id=user_id, batch_size=len(batch), timeout=self.batch_timeout)
                tallies[user_id].batch_failed(batch, f"timed out after {self.batch_timeout}s")
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        return tallies

    def _apply_token_feedback(self, tallies) -> None:
        invalid = []
        delivered = []
        for tally in tallies:
            invalid.extend(tally.invalid_tokens)
            delivered.extend(tally.delivered_tokens)

        try:
            if invalid:
                self.registry.deactivate(invalid)
            if delivered:
                self.registry.touch(delivered)
        except Exception as exc:
            logger.error("Failed to update device tokens after send", error=str(exc))
