import csv
import io
import json
from unittest.mock import patch

import requests

import inventory_script


def make_response(body, status=200):
    resp = requests.Response()
    resp.status_code = status
    resp.raw = io.BytesIO(json.dumps(body).encode("utf-8"))
    resp.url = "http://127.0.0.1:8000/api/v1/products"
    resp.encoding = "utf-8"
    return resp


@patch('requests.sessions.Session.request')
def test_main_writes_csv_report(mock_request, tmp_path, monkeypatch):
    monkeypatch.delenv("TIMEOUT", raising=False)
    monkeypatch.setattr(inventory_script, "REPORTS_DIR", tmp_path / "reports")
    mock_request.return_value = make_response([{"id": 1, "name": "lamp"}, {"id": 2, "sku": "D-2"}])

    assert inventory_script.main() == 0

    reports = list((tmp_path / "reports").glob("api_v1_products_*.csv"))
    assert len(reports) == 1
    with reports[0].open(newline="", encoding="utf-8") as f:
        rows = list(csv.DictReader(f))
    assert rows == [
        {"id": "1", "name": "lamp", "sku": ""},
        {"id": "2", "name": "", "sku": "D-2"},
    ]


@patch('requests.sessions.Session.request')
def test_main_reports_failure(mock_request, tmp_path, monkeypatch):
    monkeypatch.delenv("TIMEOUT", raising=False)
    monkeypatch.setattr(inventory_script, "REPORTS_DIR", tmp_path / "reports")
    mock_request.side_effect = requests.ConnectionError("refused")

    assert inventory_script.main() == 1
    assert not (tmp_path / "reports").exists()
