# perfaudit/services/pass_runner.py
import logging
from typing import Awaitable, Callable, List, Optional

from perfaudit.models import DeviceProfile, Sample
from perfaudit.services.browser_service import BrowserHandle

logger = logging.getLogger(__name__)

MeasureFn = Callable[[BrowserHandle, str, DeviceProfile, Optional[int]], Awaitable[Sample]]

async def run_passes(
    browser: BrowserHandle,
    url: str,
    device: DeviceProfile,
    measure: MeasureFn,
    pass_count: int = 3,
) -> List[Sample]:
    """
    Runs pass_count independent passes for one (url, device) pair, one after another.

    A failed pass is logged and left out; it never stops the remaining passes.

    Returns:
        The samples of the passes that succeeded, possibly none.
    """
    samples = []
    for pass_index in range(pass_count):
        try:
            samples.append(await measure(browser, url, device, pass_index))
        except Exception as e:
            logger.warning(
                "Audit pass %d/%d failed for %s (%s): %s",
                pass_index + 1, pass_count, url, device, e,
            )
    return samples
