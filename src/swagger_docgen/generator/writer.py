"""JSON and YAML rendering of an assembled document."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path

import yaml

from swagger_docgen.errors import OutputError

from .document import Document

logger = logging.getLogger(__name__)

JSON_FILE = "swagger.json"
YAML_FILE = "swagger.yml"


def render_json(document: Document) -> str:
    return json.dumps(document.to_dict(), indent=4, ensure_ascii=False) + "\n"


def render_yaml(document: Document) -> str:
    return yaml.safe_dump(document.to_dict(), sort_keys=False, allow_unicode=True, default_flow_style=False)


def write_documents(document: Document, output_dir: Path) -> list[Path]:
    """Write ``swagger.json`` and ``swagger.yml`` into ``output_dir``.

    Both files are rendered before anything touches the disk, and each
    one is written to a temporary file that replaces the target only
    once complete.
    """
    rendered = {JSON_FILE: render_json(document), YAML_FILE: render_yaml(document)}
    try:
        output_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise OutputError(f"cannot create output directory {output_dir}: {e}") from e

    written = []
    for filename, content in rendered.items():
        target = output_dir / filename
        tmp = target.with_name(f".{filename}.tmp")
        try:
            tmp.write_text(content, encoding="utf-8")
            os.replace(tmp, target)
        except OSError as e:
            tmp.unlink(missing_ok=True)
            raise OutputError(f"cannot write {target}: {e}") from e
        logger.info("wrote %s (%d bytes)", target, len(content.encode("utf-8")))
        written.append(target)
    return written
