"""Pourtrait server and job control.

Usage:
    pourtrait-server start [--port PORT] [--reload] [--foreground]
    pourtrait-server stop
    pourtrait-server status
    pourtrait-server process-notifications
    pourtrait-server rollup-metrics [--offset DAYS]
"""

import argparse
import asyncio
import json
import os
import signal
import subprocess
import sys
import time
import urllib.request
from pathlib import Path

from pourtrait.config import settings

DATA_DIR = Path("data")
PID_FILE = DATA_DIR / "pourtrait.pid"
LOG_FILE = DATA_DIR / "pourtrait.log"
APP_PATH = "pourtrait.main:app"


def read_pid() -> int | None:
    """PID from the pid file when that process is still alive."""
    if not PID_FILE.exists():
        return None
    try:
        pid = int(PID_FILE.read_text().strip())
        os.kill(pid, 0)
        return pid
    except (ValueError, ProcessLookupError, PermissionError):
        PID_FILE.unlink(missing_ok=True)
        return None


def start_server(port: int, host: str, reload: bool = False, foreground: bool = False) -> bool:
    if read_pid():
        print(f"Server is already running (PID: {read_pid()})")
        return False

    DATA_DIR.mkdir(parents=True, exist_ok=True)
    cmd = [sys.executable, "-m", "uvicorn", APP_PATH, "--host", host, "--port", str(port)]
    if reload:
        cmd.append("--reload")

    print(f"Starting Pourtrait on http://{host}:{port}")
    if foreground:
        try:
            subprocess.run(cmd)
        except KeyboardInterrupt:
            print("\nServer stopped")
        return True

    with open(LOG_FILE, "w") as log:
        process = subprocess.Popen(cmd, stdout=log, stderr=subprocess.STDOUT, start_new_session=True)

    time.sleep(1)
    if process.poll() is not None:
        print(f"Failed to start server. See {LOG_FILE}")
        return False
    PID_FILE.write_text(str(process.pid))
    print(f"Server started with PID: {process.pid}")
    return True


def stop_server() -> bool:
    pid = read_pid()
    if not pid:
        print("Server is not running")
        return False

    os.kill(pid, signal.SIGTERM)
    for _ in range(10):
        time.sleep(0.5)
        try:
            os.kill(pid, 0)
        except ProcessLookupError:
            break
    else:
        print("Server didn't stop gracefully, forcing...")
        os.kill(pid, signal.SIGKILL)

    PID_FILE.unlink(missing_ok=True)
    print("Server stopped")
    return True


def server_status(port: int) -> bool:
    pid = read_pid()
    if not pid:
        print("Pourtrait server is not running")
        return False

    print(f"Pourtrait server is running (PID: {pid})")
    try:
        with urllib.request.urlopen(f"http://localhost:{port}/health", timeout=2) as response:
            data = json.loads(response.read().decode())
        print(f"  Status: {data.get('status', 'unknown')}")
        print(f"  Version: {data.get('version', 'unknown')}")
    except OSError:
        print("  (Could not fetch health status)")
    return True


async def _run_job(job: str, offset: int) -> dict:
    """Run a scheduler job in-process against the configured database."""
    from pourtrait.database import close_db, init_db
    from pourtrait.services.alerts import process_all_user_alerts
    from pourtrait.services.metrics import rollup
    from pourtrait.services.scheduler import process_pending

    await init_db()
    try:
        if job == "process-notifications":
            return {
                "delivered": await process_pending(),
                "alerts": await process_all_user_alerts(),
            }
        return await rollup(offset)
    finally:
        await close_db()


def main() -> int:
    parser = argparse.ArgumentParser(description="Pourtrait server and job control")
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    start_parser = subparsers.add_parser("start", help="Start the API server")
    start_parser.add_argument("--port", "-p", type=int, default=settings.port)
    start_parser.add_argument("--host", default=settings.host)
    start_parser.add_argument("--reload", "-r", action="store_true", help="Auto-reload for development")
    start_parser.add_argument("--foreground", "-f", action="store_true", help="Run in the foreground")

    subparsers.add_parser("stop", help="Stop the API server")

    status_parser = subparsers.add_parser("status", help="Check server status")
    status_parser.add_argument("--port", "-p", type=int, default=settings.port)

    subparsers.add_parser(
        "process-notifications",
        help="Deliver due notifications and generate drinking-window alerts",
    )

    rollup_parser = subparsers.add_parser("rollup-metrics", help="Roll up one day of mapping runs")
    rollup_parser.add_argument("--offset", type=int, default=1, help="Days back (default: yesterday)")

    args = parser.parse_args()
    if not args.command:
        parser.print_help()
        return 1

    try:
        if args.command == "start":
            ok = start_server(args.port, args.host, reload=args.reload, foreground=args.foreground)
        elif args.command == "stop":
            ok = stop_server()
        elif args.command == "status":
            ok = server_status(args.port)
        else:
            result = asyncio.run(_run_job(args.command, getattr(args, "offset", 1)))
            print(json.dumps(result, indent=2, default=str))
            ok = True
    except KeyboardInterrupt:
        print("\nInterrupted")
        return 130

    return 0 if ok else 1


if __name__ == "__main__":
    sys.exit(main())
