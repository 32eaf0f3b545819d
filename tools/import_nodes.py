# tools/import_nodes.py
import csv
import os
import requests

API_BASE = os.getenv("FLEETDEPLOY_API_BASE", "http://localhost:8000")
API_KEY = os.getenv("FLEETDEPLOY_API_KEY")  # if you use one

PARAM_COLUMNS = ("username", "password", "distr", "bind_addr", "bind_port")


def load_nodes(path: str):
    nodes = []
    with open(path, newline="", encoding="utf-8") as f:
        reader = csv.DictReader(f)
        for row in reader:
            name = (row.get("name") or "").strip()
            address = (row.get("address") or "").strip()
            if not name or not address:
                continue
            params = {
                col: row[col].strip()
                for col in PARAM_COLUMNS
                if row.get(col) and row[col].strip()
            }
            nodes.append({"name": name, "address": address, "params": params})
    return nodes


def import_csv(path: str):
    headers = {}
    if API_KEY:
        headers["Authorization"] = f"Bearer {API_KEY}"

    for payload in load_nodes(path):
        r = requests.post(f"{API_BASE}/nodes/", json=payload, headers=headers)
        print(payload["name"], r.status_code, r.text)


if __name__ == "__main__":
    import sys

    if len(sys.argv) < 2:
        print("Usage: python import_nodes.py path/to/nodes.csv")
        raise SystemExit(1)

    import_csv(sys.argv[1])
