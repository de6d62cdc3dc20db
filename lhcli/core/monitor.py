"""Live-refreshing views of Longhorn resources."""

import logging
import time
from datetime import datetime
from typing import Callable, Optional

from rich.console import Console, Group, RenderableType
from rich.live import Live
from rich.text import Text

from lhcli.core.exceptions import LonghornError

logger = logging.getLogger(__name__)


def _render(title: str, fetch: Callable[[], RenderableType]) -> RenderableType:
    header = Text(f"{title} (updated {datetime.now().strftime('%H:%M:%S')})", style="dim")
    try:
        body = fetch()
    except LonghornError as e:
        logger.warning("Error refreshing %s: %s", title.lower(), e)
        body = Text(f"Error refreshing {title.lower()}: {e}", style="red")
    return Group(header, body)


def run_monitor(
    title: str,
    fetch: Callable[[], RenderableType],
    interval: float,
    iterations: int = 0,
    console: Optional[Console] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> int:
    """Refresh a view every ``interval`` seconds.

    A failed refresh is shown in place of the view and monitoring continues.

    Args:
        title: Heading shown above the view
        fetch: Builds the renderable for one refresh
        interval: Seconds between refreshes
        iterations: Number of refreshes, 0 to run until interrupted
        console: Console to draw on
        sleep: Sleep function

    Returns:
        Number of refreshes performed
    """
    count = 1
    with Live(_render(title, fetch), console=console, auto_refresh=False) as live:
        try:
            while iterations == 0 or count < iterations:
                sleep(interval)
                live.update(_render(title, fetch), refresh=True)
                count += 1
        except KeyboardInterrupt:
            logger.debug("Monitoring of %s interrupted after %d refreshes", title, count)
    return count
