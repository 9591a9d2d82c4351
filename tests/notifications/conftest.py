from datetime import UTC, datetime, timedelta

import pytest
from protean.integrations.pytest import DomainFixture


@pytest.fixture(scope="session")
def notifications_bed():
    from notifications.domain import notifications

    bed = DomainFixture(notifications)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(notifications_bed):
    with notifications_bed.domain_context():
        yield

        from protean import current_domain

        for _, provider in current_domain.providers.items():
            provider._data_reset()

        current_domain.event_store.store._data_reset()


class FrozenClock:
    """A clock that only moves when told to."""

    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **delta):
        self.now = self.now + timedelta(**delta)
        return self.now


@pytest.fixture
def clock():
    return FrozenClock(datetime(2026, 3, 14, 9, 0, tzinfo=UTC))


@pytest.fixture
def make_token():
    """Build a syntactically valid push endpoint string from a short label."""

    def _make(label):
        return f"{label}:" + "A1b2_C3d4-" * 15

    return _make


@pytest.fixture
def gateway():
    from notifications.channel import get_push_gateway

    return get_push_gateway()


@pytest.fixture
def directory():
    from notifications.directory import get_user_directory

    return get_user_directory()
