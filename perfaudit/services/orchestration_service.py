# perfaudit/services/orchestration_service.py
import logging
import re
from pathlib import Path
from typing import AsyncContextManager, Callable, Iterable, List

from perfaudit.core.config import Settings
from perfaudit.core.exceptions import OrchestrationFailure, ValidationFailure
from perfaudit.models import (
    DEVICE_PROFILES,
    AggregateResult,
    CategoryScores,
    DeviceProfile,
    Sample,
    TimingMetrics,
)
from perfaudit.services.browser_service import BrowserHandle, launch_browser
from perfaudit.services.lighthouse_service import LighthouseCLI, MeasurementAdapter
from perfaudit.services.pass_runner import MeasureFn, run_passes
from perfaudit.services.report_service import ReportStore
from perfaudit.services.statistics_service import mean_std

logger = logging.getLogger(__name__)

_SCHEME = re.compile(r"^https?://", re.IGNORECASE)

BrowserFactory = Callable[[], AsyncContextManager[BrowserHandle]]

def normalize_urls(raw_urls: Iterable[str]) -> List[str]:
    """Trims each URL, drops blank entries and prefixes https:// when no http(s) scheme is present."""
    urls = []
    for raw_url in raw_urls:
        url = raw_url.strip()
        if not url:
            continue
        if not _SCHEME.match(url):
            url = f"https://{url}"
        urls.append(url)
    return urls

def aggregate_samples(url: str, device: DeviceProfile, samples: List[Sample]) -> AggregateResult:
    """
    Reduces the samples of one (url, device) pair to means and standard deviations.

    Raises:
        ValueError: If samples is empty.
    """
    average_scores, std_scores = {}, {}
    for field in CategoryScores.model_fields:
        average_scores[field], std_scores[field] = mean_std(
            [getattr(sample.scores, field) for sample in samples]
        )

    average_metrics, std_metrics = {}, {}
    for field in TimingMetrics.model_fields:
        average_metrics[field], std_metrics[field] = mean_std(
            [getattr(sample.metrics, field) for sample in samples]
        )

    return AggregateResult(
        url=url,
        device=device,
        average_scores=CategoryScores(**average_scores),
        std_scores=CategoryScores(**std_scores),
        average_metrics=TimingMetrics(**average_metrics),
        std_metrics=TimingMetrics(**std_metrics),
        reports=[sample.report for sample in samples],
    )

class AuditOrchestrator:
    """
    Runs a batch of audits on one shared browser.

    Pairs are visited strictly in order: URLs as submitted, then devices in
    DEVICE_PROFILES order. Pairs whose passes all failed are left out.
    """

    def __init__(
        self,
        open_browser: BrowserFactory,
        measure: MeasureFn,
        pass_count: int = 3,
        pass_runner=run_passes,
    ):
        self.open_browser = open_browser
        self.measure = measure
        self.pass_count = pass_count
        self.pass_runner = pass_runner

    async def run_batch(self, raw_urls: Iterable[str]) -> List[AggregateResult]:
        """
        Audits every URL on every device profile.

        Raises:
            ValidationFailure: If no URL is left after normalization. The
                browser is not started in that case.
            OrchestrationFailure: If the browser cannot be started or an error
                escapes outside a single pass.
        """
        urls = normalize_urls(raw_urls)
        if not urls:
            raise ValidationFailure("No URLs provided")

        logger.info("Starting audit batch: %d URL(s), %d pass(es) per device", len(urls), self.pass_count)
        results = []
        skipped = 0
        try:
            async with self.open_browser() as browser:
                for url in urls:
                    for device in DEVICE_PROFILES:
                        samples = await self.pass_runner(
                            browser, url, device, self.measure, pass_count=self.pass_count
                        )
                        if not samples:
                            logger.warning("Skipping %s (%s): every audit pass failed", url, device)
                            skipped += 1
                            continue
                        results.append(aggregate_samples(url, device, samples))
        except OrchestrationFailure:
            raise
        except Exception as e:
            raise OrchestrationFailure(f"Audit batch aborted: {e}") from e

        logger.info("Finished audit batch: %d result(s), %d pair(s) skipped", len(results), skipped)
        return results

def build_orchestrator(settings: Settings) -> AuditOrchestrator:
    """Wires the production orchestrator: a real browser and the Lighthouse CLI."""
    store = ReportStore(Path(settings.REPORTS_DIR), settings.REPORTS_URL_PREFIX)
    backend = LighthouseCLI(settings.LIGHTHOUSE_PATH, timeout=settings.PASS_TIMEOUT)
    adapter = MeasurementAdapter(backend, store, settings)
    return AuditOrchestrator(
        open_browser=lambda: launch_browser(settings),
        measure=adapter.run_pass,
        pass_count=settings.PASS_COUNT,
    )
