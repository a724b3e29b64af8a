"""
Pytest configuration and shared fixtures for the audit pipeline tests.

Provides a fake browser factory, a scripted measurement function and sample
builders so the orchestration can be exercised without Chrome or Lighthouse,
plus fake Chrome and Lighthouse executables for the subprocess paths.
"""

import os
import sys
import tempfile
import textwrap
from contextlib import asynccontextmanager
from pathlib import Path

import pytest

# Must be set before perfaudit.core.config is imported anywhere
os.environ.setdefault("REPORTS_DIR", tempfile.mkdtemp(prefix="perfaudit-test-reports-"))

from perfaudit.core.exceptions import BrowserLaunchError, MeasurementFailure
from perfaudit.models import CategoryScores, Sample, TimingMetrics
from perfaudit.services.browser_service import BrowserHandle

# Stands in for Chrome: answers /json/version on the requested debugging port
# and writes its pid to --pid-file when given
FAKE_CHROME = textwrap.dedent(
    """
    import json, os, sys
    from http.server import BaseHTTPRequestHandler, HTTPServer

    args = dict(arg[2:].split("=", 1) for arg in sys.argv[1:] if arg.startswith("--") and "=" in arg)
    if "pid-file" in args:
        with open(args["pid-file"], "w") as pid_file:
            pid_file.write(str(os.getpid()))

    class Handler(BaseHTTPRequestHandler):
        def do_GET(self):
            body = json.dumps({"Browser": "HeadlessChrome/fake", "userDataDir": args["user-data-dir"]}).encode()
            self.send_response(200)
            self.send_header("Content-Type", "application/json")
            self.end_headers()
            self.wfile.write(body)

        def log_message(self, *args):
            pass

    HTTPServer(("127.0.0.1", int(args["remote-debugging-port"])), Handler).serve_forever()
    """
)

# Stands in for the Lighthouse CLI: fails for hosts containing "unreachable",
# reports a runtime error for hosts containing "broken"
FAKE_LIGHTHOUSE = textwrap.dedent(
    """
    import json, sys
    args = dict(arg[2:].split("=", 1) for arg in sys.argv[2:] if "=" in arg)
    url = sys.argv[1]
    if "unreachable" in url:
        sys.stderr.write("Runtime error encountered: net::ERR_NAME_NOT_RESOLVED\\n")
        sys.exit(1)
    config = json.load(open(args["config-path"]))
    lhr = {
        "finalUrl": url,
        "configSettings": config["settings"],
        "port": args["port"],
        "categories": {
            "performance": {"score": 0.5},
            "seo": {"score": 0.75},
            "accessibility": {"score": 1},
            "best-practices": {"score": 0.25},
        },
        "audits": {
            "first-contentful-paint": {"numericValue": 1000},
            "largest-contentful-paint": {"numericValue": 2000},
            "total-blocking-time": {"numericValue": 30},
            "speed-index": {"numericValue": 1500},
            "cumulative-layout-shift": {"numericValue": 0.01},
        },
    }
    if "broken" in url:
        lhr = {"runtimeError": {"code": "NO_FCP", "message": "The page did not paint any content."}}
    json.dump(lhr, open(args["output-path"] + ".report.json", "w"))
    open(args["output-path"] + ".report.html", "w").write("<html>" + url + "</html>")
    """
)


def write_executable(path: Path, content: str) -> Path:
    path.write_text(f"#!{sys.executable}\n{content}", encoding="utf-8")
    path.chmod(0o755)
    return path


def make_sample(performance=90.0, seo=100.0, accessibility=95.0, best_practices=96.0,
                fcp=1200.0, lcp=2400.0, tbt=150.0, si=1800.0, cls=0.05, report="/reports/r.html"):
    return Sample(
        scores=CategoryScores(
            performance=performance, seo=seo, accessibility=accessibility, best_practices=best_practices
        ),
        metrics=TimingMetrics(fcp=fcp, lcp=lcp, tbt=tbt, si=si, cls=cls),
        report=report,
    )


def make_lhr(performance=0.9, seo=1.0, accessibility=0.95, best_practices=0.96,
             fcp=1200.0, lcp=2400.0, tbt=150.0, si=1800.0, cls=0.05):
    return {
        "categories": {
            "performance": {"score": performance},
            "seo": {"score": seo},
            "accessibility": {"score": accessibility},
            "best-practices": {"score": best_practices},
        },
        "audits": {
            "first-contentful-paint": {"numericValue": fcp},
            "largest-contentful-paint": {"numericValue": lcp},
            "total-blocking-time": {"numericValue": tbt},
            "speed-index": {"numericValue": si},
            "cumulative-layout-shift": {"numericValue": cls},
        },
    }


class FakeBrowserFactory:
    """Hands out BrowserHandles without a process and counts acquire/release."""

    def __init__(self, fail_on_launch=False):
        self.fail_on_launch = fail_on_launch
        self.acquired = 0
        self.released = 0
        self.handles = []

    def __call__(self):
        return self._open()

    @asynccontextmanager
    async def _open(self):
        if self.fail_on_launch:
            raise BrowserLaunchError("browser binary not found")
        self.acquired += 1
        handle = BrowserHandle(port=9222)
        self.handles.append(handle)
        try:
            yield handle
        finally:
            self.released += 1
            await handle.close()


class ScriptedMeasure:
    """
    Measurement function returning results keyed by (url, device).

    outcomes maps (url, device) to a list consumed one entry per pass; an entry
    is either a Sample or an Exception to raise. Unlisted pairs succeed.
    """

    def __init__(self, outcomes=None):
        self.outcomes = {key: list(value) for key, value in (outcomes or {}).items()}
        self.calls = []

    async def __call__(self, browser, url, device, pass_index=None):
        self.calls.append((url, device, pass_index))
        queue = self.outcomes.get((url, device))
        outcome = queue.pop(0) if queue else make_sample(report=f"/reports/{device}_{pass_index}.html")
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


@pytest.fixture
def browser_factory():
    return FakeBrowserFactory()


@pytest.fixture
def scripted_measure():
    return ScriptedMeasure()


@pytest.fixture
def failing_pass():
    return MeasurementFailure("Lighthouse exited with code 1: net::ERR_NAME_NOT_RESOLVED")
