"""Memorium — dev launcher. Starts the generation service in watch mode."""

import argparse
import os
import signal
import subprocess
import sys
from pathlib import Path

from dotenv import load_dotenv

ROOT = Path(__file__).parent
load_dotenv(ROOT / ".env")

HOST = os.getenv("HOST", "0.0.0.0")
BACKEND_PORT = os.getenv("BACKEND_PORT", "13013")


def main():
    parser = argparse.ArgumentParser(description="Memorium dev launcher")
    parser.add_argument("--provider", choices=["gemini", "openai", "echo"], default=None,
                        help="Generation provider (default: MEMORIUM_PROVIDER or gemini)")
    parser.add_argument("--retries", type=int, default=None,
                        help="Extra attempts on transient provider errors")
    args = parser.parse_args()

    env = os.environ.copy()
    if args.provider:
        env["MEMORIUM_PROVIDER"] = args.provider
    if args.retries is not None:
        env["MEMORIUM_RETRIES"] = str(args.retries)

    print(f"Starting backend on http://localhost:{BACKEND_PORT} ...")
    proc = subprocess.Popen(
        ["uv", "run", "uvicorn", "backend.app:app", "--reload", "--host", HOST, "--port", BACKEND_PORT],
        cwd=ROOT, env=env,
    )

    def shutdown(*_):
        print("\nShutting down...")
        proc.terminate()
        proc.wait()
        sys.exit(0)

    signal.signal(signal.SIGINT, shutdown)
    signal.signal(signal.SIGTERM, shutdown)
    proc.wait()


if __name__ == "__main__":
    main()
