# scripts/smoke.py
"""
Smoke Test Script for the background job pipeline.

Submits a diagnostic job to a running API and polls it until it ends. This
exercises enqueue, the background worker and the status endpoint without
touching any LLM provider.

Usage
-----
1. Start the API:
    $ classlens serve

2. Run a job that succeeds after 2 seconds:
    $ python scripts/smoke.py --delay 2000

3. Run a job that fails on purpose:
    $ python scripts/smoke.py --fail
"""

import argparse
import logging
import sys
import time
from pathlib import Path

import httpx
from dotenv import load_dotenv

# --------------------------------------------------------------------------- #
# Environment Setup
# --------------------------------------------------------------------------- #
env_path = Path(".env")
if env_path.exists():
    load_dotenv(env_path)
    print("✅ Loaded .env file")

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger("smoke")

TERMINAL = {"completed", "failed"}


def main() -> int:
    """Execute the smoke test workflow; returns the process exit code."""
    parser = argparse.ArgumentParser(description="Run the ClassLens background-job smoke test")
    parser.add_argument("--api-url", default="http://localhost:8000", help="API root")
    parser.add_argument("--delay", type=int, default=2000, help="Job sleep in milliseconds")
    parser.add_argument("--fail", action="store_true", help="Ask the job to fail")
    parser.add_argument("--interval", type=float, default=1.0, help="Poll interval in seconds")
    parser.add_argument("--timeout", type=float, default=120.0, help="Give up after N seconds")
    args = parser.parse_args()

    with httpx.Client(base_url=args.api_url, timeout=10.0) as client:
        # 1. Submit
        resp = client.post(
            "/diagnostics/background",
            json={"delay": args.delay, "shouldFail": args.fail},
        )
        if resp.status_code != 202:
            print(f"❌ Submit failed ({resp.status_code}): {resp.text}")
            return 1
        job_id = resp.json()["jobId"]
        print(f"\n📨 Submitted diagnostic job {job_id}")

        # 2. Poll
        deadline = time.monotonic() + args.timeout
        while time.monotonic() < deadline:
            time.sleep(args.interval)
            snap = client.get(f"/diagnostics/background/{job_id}").json()
            logger.info("status=%s", snap.get("status"))
            if snap.get("status") in TERMINAL:
                break
        else:
            print(f"❌ Job {job_id} did not finish within {args.timeout:.0f}s")
            return 1

    # 3. Inspect
    print("\n" + "=" * 60)
    if snap["status"] == "completed":
        print("✅ Job completed")
        print(f"  - Result: {snap.get('result')}")
    else:
        print("⚠️  Job failed")
        print(f"  - Error: {snap.get('error')}")
    print(f"  - Started:   {snap.get('startedAt')}")
    print(f"  - Completed: {snap.get('completedAt')}")

    expected = "failed" if args.fail else "completed"
    return 0 if snap["status"] == expected else 1


if __name__ == "__main__":
    sys.exit(main())
