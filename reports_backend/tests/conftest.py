import os
import sys
import tempfile

import pytest

WORKSPACE_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))
if WORKSPACE_ROOT not in sys.path:
    sys.path.insert(0, WORKSPACE_ROOT)

os.environ.setdefault("LOG_FILE", os.path.join(tempfile.gettempdir(), "reportes-tests.log"))

from sqlalchemy import create_engine, text  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from reports_backend.database import dbconnect  # noqa: E402


@pytest.fixture
def sqlite_target():
    """Register an in-memory SQLite engine as the 'firmas' target."""
    engine = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    with engine.begin() as conn:
        conn.execute(text("CREATE TABLE registros (id INTEGER, ruc TEXT, fecha TEXT)"))
        conn.execute(
            text("INSERT INTO registros (id, ruc, fecha) VALUES (1, '0990001', '2024-01-05'), (2, '0990002', '2024-02-10')")
        )
    dbconnect.register_engine("firmas", engine)
    yield engine
    dbconnect.dispose_engines()
