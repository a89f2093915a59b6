"""Shared pytest fixtures for mysociety tests."""

from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest

from mysociety.database.workbook_store import WorkbookStore
from mysociety.domain.entities import Actor
from mysociety.notifications.transports import DeliveryReceipt, Transport, TransportError


class TickingClock:
    """Clock that moves forward by a fixed step on every call."""

    def __init__(self, start: datetime | None = None, step: timedelta = timedelta(seconds=1)):
        self.current = start or datetime(2024, 3, 1, 9, 0, tzinfo=UTC)
        self.step = step

    def __call__(self) -> datetime:
        now = self.current
        self.current = self.current + self.step
        return now


class FlakyTransport(Transport):
    """Transport failing a fixed number of times before succeeding."""

    name = "flaky"

    def __init__(self, failures: int):
        self.failures = failures
        self.calls = 0
        self.delivered: list[str] = []

    def send(self, text: str) -> DeliveryReceipt:
        self.calls += 1
        if self.calls <= self.failures:
            raise TransportError(f"temporary outage #{self.calls}")
        self.delivered.append(text)
        return DeliveryReceipt(provider=self.name, message_id=f"msg-{self.calls}")


@pytest.fixture
def clock():
    """Create a deterministic, always-advancing clock."""
    return TickingClock()


@pytest.fixture
def data_file(tmp_path):
    """Path of a store file that does not exist yet."""
    return tmp_path / "data" / "mysociety_data.xlsx"


@pytest.fixture
def backup_dir(tmp_path):
    """Path of the backup directory."""
    return tmp_path / "backups"


@pytest.fixture
def store(data_file, backup_dir, clock):
    """Create a WorkbookStore over a temporary file."""
    return WorkbookStore(data_file, backup_dir, clock=clock)


@pytest.fixture
def admin():
    return Actor(username="admin", role="admin")


@pytest.fixture
def treasurer():
    return Actor(username="treasurer", role="treasurer")


@pytest.fixture
def resident():
    return Actor(username="resident", role="resident")


@pytest.fixture
def gardener_fields():
    """Fields of a typical outflow record."""
    return {"description": "Gardener", "amount": Decimal("1500.00"), "date": "2024-03-01"}


@pytest.fixture
def sleeps():
    """Recorded sleep durations, for dispatcher tests."""
    return []


@pytest.fixture
def fake_sleep(sleeps):
    return sleeps.append


@pytest.fixture
def flaky_transport():
    """Factory for transports that fail a given number of times."""
    return FlakyTransport


@pytest.fixture
def cli_runner():
    """Create a Click CLI test runner."""
    from click.testing import CliRunner

    return CliRunner()


@pytest.fixture
def cli_base_args(data_file, backup_dir):
    """Global CLI options pointing at the temporary store."""
    return ["--data-file", str(data_file), "--backup-dir", str(backup_dir), "--notify", "mock"]
