"""Parallel discovery of source declarations under a project root."""

from __future__ import annotations

import concurrent.futures
import logging
import threading
from collections.abc import Iterable
from pathlib import Path

from swagger_docgen.errors import GenerationCancelled

from .base import Declaration, DocWarning, warn
from .index import declaration_sort_key
from .pysource import parse_file

logger = logging.getLogger(__name__)

DEFAULT_EXCLUDED_DIRS = frozenset({
    "vendor", "tests", "test", "__pycache__", "venv", "node_modules", "build", "dist",
})


def discover_sources(root: Path, exclude: Iterable[str] = ()) -> list[Path]:
    """List ``.py`` files under ``root``, skipping vendored, test and dot directories."""
    excluded = DEFAULT_EXCLUDED_DIRS | set(exclude)
    sources = []
    for path in sorted(root.rglob("*.py")):
        dirs = path.relative_to(root).parts[:-1]
        if any(d in excluded or d.startswith(".") for d in dirs):
            continue
        sources.append(path)
    return sources


def scan_project(
    root: Path,
    workers: int = 4,
    exclude: Iterable[str] = (),
    cancel: threading.Event | None = None,
) -> tuple[list[Declaration], list[DocWarning]]:
    """Parse every source file under ``root`` with a bounded thread pool.

    Results arrive in completion order and are sorted afterwards, so the
    returned declarations do not depend on scheduling. A file that cannot
    be read or parsed is reported as a warning and skipped.
    """
    sources = discover_sources(root, exclude)
    logger.info("Scanning %d source files under %s", len(sources), root)

    declarations: list[Declaration] = []
    warnings: list[DocWarning] = []
    with concurrent.futures.ThreadPoolExecutor(max_workers=max(1, workers)) as executor:
        futures_map = {executor.submit(parse_file, path, root): path for path in sources}
        for future in concurrent.futures.as_completed(futures_map):
            if cancel is not None and cancel.is_set():
                executor.shutdown(wait=False, cancel_futures=True)
                raise GenerationCancelled("cancelled while scanning sources")
            path = futures_map[future]
            relative = path.relative_to(root).as_posix()
            try:
                declarations.extend(future.result())
            except SyntaxError as e:
                warn(warnings, "scan", f"skipping unparsable file: {e.msg} (line {e.lineno})", relative)
            except (OSError, UnicodeDecodeError, ValueError) as e:
                warn(warnings, "scan", f"skipping unreadable file: {e}", relative)
            except Exception as e:
                logger.debug("front-end failure on %s", relative, exc_info=True)
                warn(warnings, "scan", f"skipping file the front-end cannot read: {type(e).__name__}: {e}", relative)

    declarations.sort(key=declaration_sort_key)
    warnings.sort(key=lambda w: w.source)
    logger.debug("Collected %d declarations", len(declarations))
    return declarations, warnings
