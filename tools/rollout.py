# tools/rollout.py
import os
import requests

API_BASE = os.getenv("FLEETDEPLOY_API_BASE", "http://localhost:8000")
API_KEY = os.getenv("FLEETDEPLOY_API_KEY")

STEPS = ("connect", "deploy", "run")


def rollout(node: str, subject: str = "runner") -> bool:
    """connect -> deploy -> run -> alive for one node; stops at the first failure."""
    headers = {}
    if API_KEY:
        headers["Authorization"] = f"Bearer {API_KEY}"

    for step in STEPS:
        params = {"subject": subject} if step != "connect" else None
        r = requests.post(f"{API_BASE}/nodes/{node}/{step}", params=params, headers=headers)
        print(node, step, r.status_code, r.text)
        if r.status_code != 200:
            return False

    r = requests.get(f"{API_BASE}/nodes/{node}/alive", headers=headers)
    r.raise_for_status()
    alive = r.json()
    print(node, "alive", alive)
    return bool(alive.get("alive"))


if __name__ == "__main__":
    import sys

    if len(sys.argv) < 2:
        print("Usage: python rollout.py NODE-1 [NODE-2 NODE-3 ...]")
        raise SystemExit(1)

    failed = [node for node in sys.argv[1:] if not rollout(node)]
    if failed:
        print("Failed:", ", ".join(failed))
        raise SystemExit(1)
