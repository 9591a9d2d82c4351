import pytest
from protean.integrations.pytest import DomainFixture


@pytest.fixture(scope="session")
def receiving_bed():
    from receiving.domain import receiving

    bed = DomainFixture(receiving)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(receiving_bed):
    with receiving_bed.domain_context():
        yield

        from protean import current_domain

        for _, provider in current_domain.providers.items():
            provider._data_reset()

        current_domain.event_store.store._data_reset()

        from receiving.ticket.numbering import issued_numbers

        issued_numbers.clear()
