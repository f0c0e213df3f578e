from datetime import datetime, timezone

import pandas as pd
import pytest
from fastapi import HTTPException

from fulfillment_api.api.routes import exports
from fulfillment_api.services.documents import XLSX_MEDIA_TYPE, export_dataframe
from tests.conftest import make_user


async def _body(response) -> bytes:
    chunks = []
    async for chunk in response.body_iterator:
        chunks.append(chunk.encode() if isinstance(chunk, str) else chunk)
    return b"".join(chunks)


@pytest.mark.anyio
async def test_export_dataframe_csv():
    df = pd.DataFrame([{"order_id": "ORD-20250114-001", "final_total": 1250.0}])
    response = export_dataframe(df, "orders", "CSV")
    assert response.media_type == "text/csv"
    assert response.headers["Content-Disposition"] == 'attachment; filename="orders.csv"'
    body = (await _body(response)).decode()
    assert body.splitlines() == ["order_id,final_total", "ORD-20250114-001,1250.0"]


def test_export_dataframe_xlsx_headers():
    response = export_dataframe(pd.DataFrame([{"a": 1}]), "orders", "xlsx")
    assert response.media_type == XLSX_MEDIA_TYPE


def test_export_dataframe_rejects_unknown_format():
    with pytest.raises(HTTPException) as exc:
        export_dataframe(pd.DataFrame(), "orders", "xml")
    assert exc.value.status_code == 400


class FakeOrderRepo:
    def __init__(self, _session):
        pass

    async def export_rows(self, platform_id, *, search=None, filters=None):
        return [
            {
                "order_id": "ORD-20250114-001",
                "company": "Acme Events",
                "order_status": "QUOTED",
                "financial_status": "QUOTE_SENT",
                "venue": "Expo Hall 3",
                "event_start": "2025-02-01",
                "event_end": "2025-02-03",
                "volume_m3": 3.375,
                "weight_kg": 53.05,
                "final_total": 1250.0,
                "created_at": datetime(2025, 1, 14, tzinfo=timezone.utc),
            }
        ]


@pytest.mark.anyio
async def test_order_export_endpoint(client_for, monkeypatch):
    monkeypatch.setattr(exports, "OrderRepository", FakeOrderRepo, raising=True)
    async with client_for(make_user("LOGISTICS")) as ac:
        resp = await ac.get("/api/v1/exports/orders", params={"format": "csv", "order_status": "QUOTED"})
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/csv")
        assert resp.text.splitlines()[0].startswith("order_id,company,order_status")

        bad = await ac.get("/api/v1/exports/orders", params={"order_status": "LOST"})
    assert bad.status_code == 400
