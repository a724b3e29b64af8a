# perfaudit/services/report_service.py
import asyncio
import logging
import re
import time
from pathlib import Path
from typing import Optional
from urllib.parse import urlsplit

from perfaudit.models import DeviceProfile

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_-]")

def safe_host(url: str) -> str:
    """Returns the URL's host with every character outside [A-Za-z0-9_-] replaced by '_'."""
    host = urlsplit(url).hostname or "unknown"
    return _UNSAFE_CHARS.sub("_", host)

def report_filename(url: str, device: DeviceProfile, timestamp_ms: int, pass_index: Optional[int] = None) -> str:
    """
    Builds the file name of one pass's HTML report.

    Args:
        url: The audited URL.
        device: The device profile of the pass.
        timestamp_ms: Millisecond epoch at which the report is stored.
        pass_index: Zero-based pass number, appended 1-based when given.

    Returns:
        A name like ``report_example_com_mobile_1700000000000_1.html``.
    """
    name = f"report_{safe_host(url)}_{device}_{timestamp_ms}"
    if pass_index is not None:
        name += f"_{pass_index + 1}"
    return name + ".html"

class ReportStore:
    """
    Writes report artifacts into a single directory served read-only under url_prefix.

    Timestamps handed out by one store strictly increase, so two reports for the
    same URL and device never share a name even within the same millisecond.
    """

    def __init__(self, reports_dir: Path, url_prefix: str = "/reports"):
        self.reports_dir = Path(reports_dir)
        self.url_prefix = url_prefix.rstrip("/")
        self._last_timestamp = 0

    def next_timestamp(self) -> int:
        timestamp = time.time_ns() // 1_000_000
        if timestamp <= self._last_timestamp:
            timestamp = self._last_timestamp + 1
        self._last_timestamp = timestamp
        return timestamp

    async def save(self, url: str, device: DeviceProfile, html: str, pass_index: Optional[int] = None) -> str:
        """Stores an HTML report and returns its public relative path."""
        file_name = report_filename(url, device, self.next_timestamp(), pass_index)
        file_path = self.reports_dir / file_name
        await asyncio.to_thread(self._write, file_path, html)
        logger.debug("Stored report %s", file_path)
        return f"{self.url_prefix}/{file_name}"

    def _write(self, file_path: Path, html: str) -> None:
        self.reports_dir.mkdir(parents=True, exist_ok=True)
        file_path.write_text(html, encoding="utf-8")
