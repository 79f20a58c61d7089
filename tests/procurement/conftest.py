import pytest
from protean.integrations.pytest import DomainFixture


@pytest.fixture(scope="session")
def procurement_bed():
    from procurement.domain import procurement

    bed = DomainFixture(procurement)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(procurement_bed):
    with procurement_bed.domain_context():
        yield


@pytest.fixture()
def travel_to(monkeypatch):
    """Move the domain clock to a fixed instant for the rest of the test."""
    from procurement.utils import clock

    def _travel(instant):
        monkeypatch.setattr(clock, "utcnow", lambda: instant)

    return _travel
