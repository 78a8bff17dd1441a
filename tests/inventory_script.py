#!/usr/bin/env python3
"""
GET runner for a collection endpoint with CSV export.

- Reads BASE_URL / TIMEOUT / USE_STREAMS from the environment
- Fetches ENDPOINT (a JSON array) through RestClient
- Saves the items into ./reports/<name>_TIMESTAMP.csv

Usage (after `pip install -e .`):
    ENDPOINT=/api/v1/products python tests/inventory_script.py
"""
import csv
import os
import time
from pathlib import Path

from rest_client import RestClient
from utils.logger import get_logger

logger = get_logger("inventory-runner")

ENDPOINT = os.environ.get("ENDPOINT", "/api/v1/products")
REPORTS_DIR = Path("reports")


def flatten(items):
    rows = []
    for item in items:
        rows.append(item if isinstance(item, dict) else {"value": item})
    return rows


def main():
    failures = []
    client = RestClient.from_env(logger=logger, error_handler=lambda op, err: failures.append(err))

    with client:
        items = client.get(ENDPOINT)

    if failures:
        logger.error("Request failed: %s", failures[0])
        return 1
    logger.info("Fetched %d items from %s", len(items), ENDPOINT)

    rows = flatten(items)
    if not rows:
        logger.info("No rows to write in CSV.")
        return 0

    REPORTS_DIR.mkdir(parents=True, exist_ok=True)
    name = ENDPOINT.strip("/").replace("/", "_") or "root"
    out_csv = REPORTS_DIR / f"{name}_{time.strftime('%Y%m%d-%H%M%S')}.csv"
    fieldnames = sorted({k for row in rows for k in row.keys()})
    with out_csv.open("w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=fieldnames)
        writer.writeheader()
        writer.writerows(rows)
    logger.info("WROTE CSV: %s", out_csv)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
