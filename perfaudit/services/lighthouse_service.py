# perfaudit/services/lighthouse_service.py
import asyncio
import copy
import json
import logging
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol

from perfaudit.core.config import Settings
from perfaudit.core.exceptions import MeasurementFailure
from perfaudit.models import CategoryScores, DeviceProfile, Sample, TimingMetrics
from perfaudit.services.browser_service import BrowserHandle
from perfaudit.services.report_service import ReportStore

logger = logging.getLogger(__name__)

CATEGORIES = ["performance", "seo", "accessibility", "best-practices"]

# Sample field -> Lighthouse category id
SCORE_CATEGORIES = {
    "performance": "performance",
    "seo": "seo",
    "accessibility": "accessibility",
    "best_practices": "best-practices",
}

# Sample field -> Lighthouse audit id
METRIC_AUDITS = {
    "fcp": "first-contentful-paint",
    "lcp": "largest-contentful-paint",
    "tbt": "total-blocking-time",
    "si": "speed-index",
    "cls": "cumulative-layout-shift",
}

def base_config(settings: Settings) -> Dict[str, Any]:
    return {
        "extends": "lighthouse:default",
        "settings": {
            "throttlingMethod": settings.THROTTLING_METHOD,
            "disableStorageReset": settings.DISABLE_STORAGE_RESET,
            "onlyCategories": list(CATEGORIES),
        },
    }

def device_config_patch(device: DeviceProfile) -> Dict[str, Any]:
    """Returns the settings that differ between device profiles."""
    if device == "desktop":
        return {"formFactor": "desktop", "screenEmulation": {"disabled": True}}
    return {"formFactor": "mobile"}

def build_config(settings: Settings, device: DeviceProfile) -> Dict[str, Any]:
    config = copy.deepcopy(base_config(settings))
    config["settings"].update(device_config_patch(device))
    return config

def extract_sample_values(lhr: Dict[str, Any]) -> Dict[str, Dict[str, float]]:
    """
    Extracts the category scores and lab metrics from a Lighthouse result.

    Args:
        lhr: The parsed Lighthouse result (``report.json``).

    Returns:
        ``{"scores": {...}, "metrics": {...}}`` with scores scaled to 0-100.

    Raises:
        MeasurementFailure: If a category score or metric value is missing.
    """
    categories = lhr.get("categories", {})
    audits = lhr.get("audits", {})

    scores = {}
    for field, category_id in SCORE_CATEGORIES.items():
        score = categories.get(category_id, {}).get("score")
        if score is None:
            raise MeasurementFailure(f"Lighthouse result has no score for '{category_id}'")
        scores[field] = score * 100

    metrics = {}
    for field, audit_id in METRIC_AUDITS.items():
        value = audits.get(audit_id, {}).get("numericValue")
        if value is None:
            raise MeasurementFailure(f"Lighthouse result has no value for '{audit_id}'")
        metrics[field] = value

    return {"scores": scores, "metrics": metrics}

@dataclass
class LighthouseRun:
    lhr: Dict[str, Any]
    report_html: str

class MeasurementBackend(Protocol):
    async def run(self, url: str, port: int, config: Dict[str, Any]) -> LighthouseRun:
        ...

class LighthouseCLI:
    """Runs the Lighthouse CLI against an already running browser."""

    def __init__(self, executable: str = "lighthouse", timeout: float = 120.0):
        self.executable = executable
        self.timeout = timeout

    def command(self, url: str, port: int, config_path: Path, output_path: Path) -> List[str]:
        return [
            self.executable,
            url,
            f"--port={port}",
            "--output=json",
            "--output=html",
            f"--output-path={output_path}",
            f"--config-path={config_path}",
            "--quiet",
        ]

    async def run(self, url: str, port: int, config: Dict[str, Any]) -> LighthouseRun:
        """
        Audits one URL and returns the parsed result plus the HTML report.

        Raises:
            MeasurementFailure: If Lighthouse cannot be started, times out,
                exits non-zero or leaves no readable report behind.
        """
        with tempfile.TemporaryDirectory(prefix="perfaudit-lh-") as work_dir:
            work = Path(work_dir)
            config_path = work / "config.json"
            config_path.write_text(json.dumps(config), encoding="utf-8")
            output_path = work / "run"

            try:
                process = await asyncio.create_subprocess_exec(
                    *self.command(url, port, config_path, output_path),
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.PIPE,
                )
            except OSError as e:
                raise MeasurementFailure(f"Could not start Lighthouse '{self.executable}': {e}") from e

            try:
                _, stderr = await asyncio.wait_for(process.communicate(), timeout=self.timeout)
            except asyncio.TimeoutError:
                process.kill()
                await process.wait()
                raise MeasurementFailure(f"Lighthouse timed out after {self.timeout:.0f}s")

            if process.returncode != 0:
                logger.debug("Lighthouse exited with code %s for %s (port %s)", process.returncode, url, port)
                detail = stderr.decode("utf-8", errors="replace").strip().splitlines()
                message = detail[-1] if detail else "no output"
                raise MeasurementFailure(f"Lighthouse exited with code {process.returncode}: {message}")

            try:
                lhr = json.loads((work / "run.report.json").read_text(encoding="utf-8"))
                report_html = (work / "run.report.html").read_text(encoding="utf-8")
            except (OSError, ValueError) as e:
                raise MeasurementFailure(f"Could not read Lighthouse output: {e}") from e

        runtime_error = lhr.get("runtimeError")
        if runtime_error:
            raise MeasurementFailure(f"Lighthouse runtime error: {runtime_error.get('message', runtime_error)}")

        return LighthouseRun(lhr=lhr, report_html=report_html)

class MeasurementAdapter:
    """Turns one Lighthouse run into a normalized Sample with a stored report."""

    def __init__(self, backend: MeasurementBackend, store: ReportStore, settings: Settings):
        self.backend = backend
        self.store = store
        self.settings = settings

    async def run_pass(
        self,
        browser: BrowserHandle,
        url: str,
        device: DeviceProfile,
        pass_index: Optional[int] = None,
    ) -> Sample:
        """
        Runs a single measurement pass. No retries happen here.

        Args:
            browser: The open browser shared by the batch.
            url: The normalized target URL.
            device: The device profile to emulate.
            pass_index: Pass number, used only to name the report.

        Returns:
            The Sample for this pass.

        Raises:
            MeasurementFailure: If the backend fails or its result is incomplete.
        """
        config = build_config(self.settings, device)
        run = await self.backend.run(url, browser.port, config)
        values = extract_sample_values(run.lhr)

        try:
            report = await self.store.save(url, device, run.report_html, pass_index)
        except OSError as e:
            raise MeasurementFailure(f"Could not store report: {e}") from e

        return Sample(
            scores=CategoryScores(**values["scores"]),
            metrics=TimingMetrics(**values["metrics"]),
            report=report,
        )
