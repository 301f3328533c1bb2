#!/usr/bin/env python3
"""
Start Meetspace Celery workers.
"""

import argparse
import logging
import subprocess
import sys

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

APP = "meetspace.workers.celery_app"


def run(cmd) -> bool:
    logger.info(f"Running command: {' '.join(cmd)}")
    try:
        subprocess.run(cmd, check=True)
        return True
    except KeyboardInterrupt:
        logger.info("Stopping workers...")
        return True
    except subprocess.CalledProcessError as e:
        logger.error(f"Worker exited with status {e.returncode}")
        return False


def start_workers(queues: str, concurrency: int) -> bool:
    return run([
        "celery", "-A", APP, "worker",
        "--loglevel=info",
        f"--queues={queues}",
        f"--concurrency={concurrency}",
        "--hostname=meetspace-worker@%h",
    ])


def start_beat() -> bool:
    """Scheduler for the periodic ticket reconciliation sweep."""
    return run(["celery", "-A", APP, "beat", "--loglevel=info"])


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Meetspace worker launcher")
    parser.add_argument("mode", choices=["worker", "beat"], nargs="?", default="worker")
    parser.add_argument("--queues", default="email_notifications,maintenance")
    parser.add_argument("--concurrency", type=int, default=4)
    args = parser.parse_args()

    ok = start_beat() if args.mode == "beat" else start_workers(args.queues, args.concurrency)
    sys.exit(0 if ok else 1)
