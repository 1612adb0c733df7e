from __future__ import annotations

import pytest

from ledger_service.tests.fakes import LedgerFixture, build_ledger_fixture


@pytest.fixture
def ledger() -> LedgerFixture:
    return build_ledger_fixture()
