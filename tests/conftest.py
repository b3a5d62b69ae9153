import os as _os
import sys

import pytest

# Ensure project root is importable without installing the package.
_project_root = _os.path.dirname(_os.path.dirname(__file__))
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

from dynstandby.db import SqliteStore  # noqa: E402
from dynstandby.models import FleetKey  # noqa: E402


@pytest.fixture
def store(tmp_path):
    return SqliteStore(str(tmp_path / "test.db"))


@pytest.fixture
def key():
    return FleetKey("default", "build-a")


@pytest.fixture
def make_fleet(store, key):
    def _make(target=50, active=0, standby=0, build_id="11111111-2222-3333-4444-555555555555", fleet_key=None):
        return store.upsert_fleet(fleet_key or key, build_id, target, active=active, standby=standby)

    return _make
