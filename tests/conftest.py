import pytest

from app.services.errors import UpstreamUnavailableError
from fakes import ALICE, BOB, FakeLedger, FakeNotifier


@pytest.fixture
def ledger():
    return FakeLedger(balances={ALICE: 10000, BOB: 500})


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def unavailable():
    return UpstreamUnavailableError("Ledger unreachable: timed out")
