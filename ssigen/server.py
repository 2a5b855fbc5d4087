from __future__ import annotations

from typing import Optional

from livereload import Server

from .builder import BuildSession
from .logging import get_logger
from .watcher import SiteWatcher

logger = get_logger("server")


def serve(
    session: BuildSession, host: str = "localhost", port: int = 3000, open_url_delay: Optional[float] = None
) -> None:
    """Serve the output tree with live reload while rebuilding sources incrementally.

    The source watcher writes into the output directory; livereload watches that
    directory and signals connected browsers when it changes.
    """
    watcher = SiteWatcher(session).start()
    server = Server()
    server.watch(str(session.output_root))
    logger.info("Starting dev server at http://%s:%d", host, port)
    try:
        server.serve(root=str(session.output_root), host=host, port=port, open_url_delay=open_url_delay)
    finally:
        watcher.stop()
