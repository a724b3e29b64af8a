# perfaudit/services/browser_service.py
import asyncio
import logging
import shutil
import socket
import tempfile
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import httpx

from perfaudit.core.config import Settings
from perfaudit.core.exceptions import BrowserLaunchError

logger = logging.getLogger(__name__)

KILL_GRACE_PERIOD = 5.0
PROBE_INTERVAL = 0.25

class BrowserHandle:
    """A running browser process reachable through its DevTools port."""

    def __init__(self, port: int, process: Optional[asyncio.subprocess.Process] = None):
        self.port = port
        self.process = process
        self.closed = False

    @property
    def endpoint(self) -> str:
        return f"http://127.0.0.1:{self.port}"

    async def close(self) -> None:
        """Terminates the browser process. Safe to call more than once."""
        if self.closed:
            return
        self.closed = True
        if self.process is None or self.process.returncode is not None:
            return

        self.process.terminate()
        try:
            await asyncio.wait_for(self.process.wait(), timeout=KILL_GRACE_PERIOD)
        except asyncio.TimeoutError:
            logger.warning("Browser pid=%s ignored SIGTERM, killing it", self.process.pid)
            self.process.kill()
            await self.process.wait()

def find_free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]

async def wait_until_ready(handle: BrowserHandle, timeout: float) -> None:
    """
    Polls the DevTools ``/json/version`` endpoint until the browser answers.

    Raises:
        BrowserLaunchError: If the process exits or the endpoint stays unreachable.
    """
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    version_url = f"{handle.endpoint}/json/version"

    async with httpx.AsyncClient() as client:
        while True:
            if handle.process is not None and handle.process.returncode is not None:
                raise BrowserLaunchError(
                    f"Browser exited with code {handle.process.returncode} during startup"
                )
            try:
                response = await client.get(version_url, timeout=1.0)
                if response.status_code == 200:
                    logger.debug("DevTools ready: %s", response.json().get("Browser"))
                    return
            except httpx.RequestError:
                pass

            if loop.time() >= deadline:
                raise BrowserLaunchError(
                    f"Browser DevTools endpoint {version_url} not reachable after {timeout:.1f}s"
                )
            await asyncio.sleep(PROBE_INTERVAL)

@asynccontextmanager
async def launch_browser(settings: Settings) -> AsyncIterator[BrowserHandle]:
    """
    Starts one browser for the duration of the ``async with`` block.

    The process is terminated and its profile directory removed on every exit
    path, including startup failures and errors raised inside the block.
    """
    port = find_free_port()
    user_data_dir = tempfile.mkdtemp(prefix="perfaudit-browser-")
    command = [
        settings.CHROME_PATH,
        *settings.CHROME_FLAGS,
        f"--remote-debugging-port={port}",
        f"--user-data-dir={user_data_dir}",
    ]

    try:
        process = await asyncio.create_subprocess_exec(
            *command,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.DEVNULL,
        )
    except OSError as e:
        shutil.rmtree(user_data_dir, ignore_errors=True)
        raise BrowserLaunchError(f"Could not start browser '{settings.CHROME_PATH}': {e}") from e

    handle = BrowserHandle(port=port, process=process)
    logger.info("Launched browser pid=%s on port %s", process.pid, port)
    try:
        await wait_until_ready(handle, settings.BROWSER_STARTUP_TIMEOUT)
        yield handle
    finally:
        await handle.close()
        shutil.rmtree(user_data_dir, ignore_errors=True)
        logger.info("Released browser pid=%s", process.pid)
