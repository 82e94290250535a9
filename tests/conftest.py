import os
import sys
import tempfile
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Must be set before packing.db.session builds its engine
_TMP_DIR = tempfile.mkdtemp(prefix="packing-tests-")
os.environ["APP_DATABASE_URL"] = f"sqlite:///{_TMP_DIR}/packing.db"
os.environ.setdefault("DRAFT_AUTOSAVE", "true")

from packing.domain.models import OrderLineItem, PackableUnit  # noqa: E402


@pytest.fixture
def db():
    from packing.db import models  # noqa: F401
    from packing.db.session import AppBase, AppSessionLocal, app_engine

    AppBase.metadata.drop_all(app_engine)
    AppBase.metadata.create_all(app_engine)
    session = AppSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(db):
    from fastapi.testclient import TestClient
    from packing.main import app

    with TestClient(app) as c:
        yield c


def make_unit(unit_id: str, qty: int = 1, catalog: str | None = None, **kwargs) -> PackableUnit:
    return PackableUnit(
        unit_id=unit_id,
        source_item_id=kwargs.pop("source_item_id", unit_id),
        catalog_number=catalog or f"CAT-{unit_id}",
        unit_quantity=qty,
        **kwargs,
    )


def make_item(item_id: str, qty: int, catalog: str | None = None, **kwargs) -> OrderLineItem:
    return OrderLineItem(
        item_id=item_id,
        catalog_number=catalog,
        description=kwargs.pop("description", f"Item {item_id}"),
        ordered_quantity=qty,
        **kwargs,
    )
