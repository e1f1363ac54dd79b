import logging
import threading
import webbrowser

logger = logging.getLogger(__name__)


def _open(url: str):
    try:
        if not webbrowser.open(url):
            logger.warning("No web browser available to open %s", url)
    except webbrowser.Error as e:
        logger.warning("Unable to open %s in a web browser: %s", url, e)


def open_url(url: str) -> threading.Thread:
    """Fire-and-forget: open ``url`` in the default browser."""
    logger.debug("Opening %s in a web browser.", url)
    t = threading.Thread(target=_open, args=(url,), daemon=True)
    t.start()
    return t
