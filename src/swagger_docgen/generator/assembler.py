"""Merges routed operations, definitions and metadata into one document."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator

from swagger_docgen.parser.base import DocWarning, warn

from .document import METHOD_ORDER, Document, DocumentMeta, Operation, PathItem, Schema, Tag
from .topology import RoutedOperation

logger = logging.getLogger(__name__)


def assemble(
    routes: Iterable[RoutedOperation],
    definitions: dict[str, Schema],
    meta: DocumentMeta | None = None,
    base_path: str | None = None,
    tags: Iterable[Tag] = (),
) -> tuple[Document, list[DocWarning]]:
    """Build the final document.

    Routes are inserted in declaration order; when two routes share a
    path and method the later one wins and a warning names both sources.
    Only definitions reachable from the emitted operations are kept.
    """
    meta = meta or DocumentMeta()
    warnings: list[DocWarning] = []

    chosen: dict[tuple[str, str], RoutedOperation] = {}
    for route in sorted(routes, key=lambda r: r.order):
        previous = chosen.get((route.path, route.method))
        if previous is not None:
            warn(
                warnings,
                "topology",
                f"duplicate route {route.method.upper()} {route.path}: {route.source} "
                f"overrides {previous.source}",
                route.source,
            )
        chosen[(route.path, route.method)] = route

    by_path: dict[str, dict[str, Operation]] = {}
    for (path, method), route in chosen.items():
        by_path.setdefault(path, {})[method] = route.operation
    paths = {
        path: PathItem(**{m: by_path[path][m] for m in METHOD_ORDER if m in by_path[path]})
        for path in sorted(by_path)
    }

    reachable = reachable_definitions(paths.values(), definitions)
    document = Document(
        info=meta.info,
        host=meta.host,
        base_path=base_path,
        schemes=meta.schemes,
        paths=paths,
        definitions={key: definitions[key] for key in sorted(reachable)},
        security_definitions=meta.security_definitions,
        security=meta.security,
        tags=list(tags),
    )
    logger.info("assembled %d paths and %d definitions", len(paths), len(reachable))
    return document, warnings


def reachable_definitions(path_items: Iterable[PathItem], definitions: dict[str, Schema]) -> set[str]:
    """Keys of every definition referenced, directly or transitively, by the operations."""
    reachable: set[str] = set()
    pending: list[Schema] = []
    for item in path_items:
        for method in METHOD_ORDER:
            operation: Operation | None = getattr(item, method)
            if operation is None:
                continue
            for param in operation.parameters:
                pending.extend(s for s in (param.schema_, param.items) if s is not None)
            pending.extend(r.schema_ for r in operation.responses.values() if r.schema_ is not None)

    while pending:
        for ref in _refs(pending.pop()):
            if ref in reachable or ref not in definitions:
                continue
            reachable.add(ref)
            pending.append(definitions[ref])
    return reachable


def _refs(schema: Schema) -> Iterator[str]:
    if schema.ref is not None:
        yield schema.ref
    for child in (schema.items, schema.additional_properties):
        if child is not None:
            yield from _refs(child)
    for child in (schema.properties or {}).values():
        yield from _refs(child)
