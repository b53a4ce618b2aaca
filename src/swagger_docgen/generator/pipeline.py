"""End-to-end documentation run: scan, parse, resolve, walk, assemble, write."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path

from swagger_docgen.config import Settings
from swagger_docgen.errors import GenerationCancelled, RouterNotFoundError
from swagger_docgen.parser.annotations import parse_document_meta, parse_operation
from swagger_docgen.parser.base import DocWarning
from swagger_docgen.parser.index import DeclarationIndex
from swagger_docgen.parser.pysource import module_id_for
from swagger_docgen.parser.scan import scan_project

from .assembler import assemble
from .document import Document
from .resolver import TypeModelResolver
from .topology import ControllerRoute, RouteTopologyWalker
from .writer import write_documents

logger = logging.getLogger(__name__)


@dataclass
class GenerationResult:
    document: Document
    warnings: list[DocWarning] = field(default_factory=list)
    written: list[Path] = field(default_factory=list)


def _check_cancelled(cancel: threading.Event | None) -> None:
    if cancel is not None and cancel.is_set():
        raise GenerationCancelled("documentation run cancelled")


def build_document(
    index: DeclarationIndex,
    router_package: str,
    cancel: threading.Event | None = None,
) -> tuple[Document, list[DocWarning]]:
    """Assemble the document for ``index`` using the router in ``router_package``."""
    router_module = index.module(router_package)
    if router_module is None:
        raise RouterNotFoundError(f"router declaration {router_package!r} not found")

    warnings: list[DocWarning] = []
    meta, meta_warnings = parse_document_meta(router_module.doc_text, router_module.source)
    warnings.extend(meta_warnings)

    resolver = TypeModelResolver(index, warnings)
    controllers: dict[str, list[ControllerRoute]] = {}
    for decl in index:
        _check_cancelled(cancel)
        if decl.kind != "func" or not decl.receiver_type_name or "@" not in decl.doc_text:
            continue
        annotated, parse_warnings = parse_operation(
            decl.doc_text,
            controller=decl.receiver_type_name,
            resolver=resolver,
            func_params=decl.params,
            source=decl.source,
            package=decl.package_name,
        )
        warnings.extend(parse_warnings)
        if annotated.route is None:
            continue
        key = f"{decl.package_id}.{decl.receiver_type_name}"
        controllers.setdefault(key, []).append(ControllerRoute(annotated, decl, index.order_of(decl)))
    logger.debug("parsed operations for %d controllers", len(controllers))

    _check_cancelled(cancel)
    router_decls = [router_module] + [
        d for d in index.list_declarations(router_package) if d.kind == "func" and not d.receiver_type_name
    ]
    topology = RouteTopologyWalker(index, controllers, warnings).walk(router_decls)

    _check_cancelled(cancel)
    document, assembly_warnings = assemble(
        topology.routes,
        resolver.definitions,
        meta,
        base_path=topology.base_path,
        tags=topology.tags,
    )
    warnings.extend(assembly_warnings)
    return document, warnings


def generate_docs(
    root: Path,
    settings: Settings | None = None,
    cancel: threading.Event | None = None,
) -> GenerationResult:
    """Generate ``swagger.json`` and ``swagger.yml`` for the project at ``root``.

    Raises ``DocgenError`` subclasses on fatal problems; everything else is
    returned as warnings alongside the document.
    """
    settings = settings or Settings()
    root = root.resolve()
    router_path = root / settings.router_file
    if not router_path.is_file():
        raise RouterNotFoundError(f"router file {router_path} does not exist")

    declarations, warnings = scan_project(root, settings.scan_workers, settings.exclude_dirs, cancel)
    _check_cancelled(cancel)
    index = DeclarationIndex(declarations)
    router_package = module_id_for(router_path, root)
    if index.module(router_package) is None:
        raise RouterNotFoundError(f"cannot parse router file {router_path}")

    document, build_warnings = build_document(index, router_package, cancel)
    warnings.extend(build_warnings)

    _check_cancelled(cancel)
    written = write_documents(document, root / settings.output_dir)
    return GenerationResult(document=document, warnings=warnings, written=written)
