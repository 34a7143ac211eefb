"""Invoke tasks for Pourtrait development and operations."""

import sys
from pathlib import Path

from invoke import task
from invoke.context import Context

LOG_FILE = Path("data/pourtrait.log")


@task
def start(ctx: Context, host: str = "0.0.0.0", port: int = 8000, reload: bool = False) -> None:
    """Start the API server in the foreground.

    Args:
        ctx: Invoke context
        host: Host to bind to (default: 0.0.0.0)
        port: Port to bind to (default: 8000)
        reload: Enable auto-reload for development
    """
    cmd = f"uv run pourtrait-server start --host {host} --port {port} --foreground"
    if reload:
        cmd += " --reload"

    try:
        ctx.run(cmd, pty=True)
    except KeyboardInterrupt:
        print("\nServer stopped")
        sys.exit(0)


@task(name="start-background")
def start_background(ctx: Context, host: str = "0.0.0.0", port: int = 8000) -> None:
    ctx.run(f"uv run pourtrait-server start --host {host} --port {port}")


@task
def stop(ctx: Context) -> None:
    ctx.run("uv run pourtrait-server stop")


@task
def status(ctx: Context) -> None:
    ctx.run("uv run pourtrait-server status")


@task
def logs(ctx: Context, follow: bool = False, lines: int = 50) -> None:
    """View the background server log.

    Args:
        ctx: Invoke context
        follow: Follow log output (like tail -f)
        lines: Number of lines to show (default: 50)
    """
    if not LOG_FILE.exists():
        print("No log file found. Server may not have been started in background mode.")
        return

    if follow:
        ctx.run(f"tail -f {LOG_FILE}", pty=True)
    else:
        ctx.run(f"tail -n {lines} {LOG_FILE}")


@task
def test(ctx: Context, verbose: bool = False, coverage: bool = False, keyword: str = "") -> None:
    """Run the test suite (needs a MongoDB reachable at the test URL).

    Args:
        ctx: Invoke context
        verbose: Enable verbose output
        coverage: Run with coverage report
        keyword: Only run tests matching this -k expression
    """
    cmd = "uv run pytest"
    if verbose:
        cmd += " -v"
    if coverage:
        cmd += " --cov=pourtrait --cov-report=term-missing"
    if keyword:
        cmd += f" -k '{keyword}'"
    ctx.run(cmd, pty=True)


@task(name="process-notifications")
def process_notifications(ctx: Context) -> None:
    """Deliver due notifications and generate drinking-window alerts once."""
    ctx.run("uv run pourtrait-server process-notifications")


@task(name="rollup-metrics")
def rollup_metrics(ctx: Context, offset: int = 1) -> None:
    """Roll up profile-mapping telemetry for one UTC day.

    Args:
        ctx: Invoke context
        offset: Days back from today (default: 1, yesterday)
    """
    ctx.run(f"uv run pourtrait-server rollup-metrics --offset {offset}")


@task
def clean(ctx: Context) -> None:
    """Remove caches and build artifacts."""
    for pattern in ["__pycache__", "*.pyc", "*.pyo", ".pytest_cache"]:
        ctx.run(f"find . -name '{pattern}' -exec rm -rf {{}} + 2>/dev/null || true", warn=True)

    for path in ["build", "dist", "*.egg-info", ".eggs"]:
        ctx.run(f"rm -rf {path} 2>/dev/null || true", warn=True)

    print("Cleanup complete")
