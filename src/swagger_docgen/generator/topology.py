"""Reconstruction of route prefixes and tags from router namespace calls.

A router declaration registers controllers through nested calls::

    ns = Namespace("/v1",
        ns_namespace("/object",
            ns_include(controllers.ObjectController),
        ),
        ns_include(controllers.HealthController),
    )

The outermost namespace prefix becomes the document ``basePath``. Nested
namespace prefixes concatenate and the nearest one names the tag of every
operation included below it; an include directly under the root is tagged
with the controller's class name.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from swagger_docgen.parser.annotations import AnnotatedOperation
from swagger_docgen.parser.base import CallNode, Declaration, DocWarning, warn
from swagger_docgen.parser.index import DeclarationIndex

from .document import Operation, Tag

logger = logging.getLogger(__name__)

ROOT_CALLS = frozenset({"NewNamespace", "new_namespace", "Namespace"})
NAMESPACE_CALLS = frozenset({"NSNamespace", "ns_namespace"})
INCLUDE_CALLS = frozenset({"NSInclude", "ns_include"})


@dataclass(frozen=True)
class ControllerRoute:
    """A parsed operation waiting to be attached to the route tree."""

    annotated: AnnotatedOperation
    decl: Declaration
    order: int


@dataclass
class RouteNode:
    prefix: str = ""
    tag: str | None = None
    controller_ref: str | None = None
    children: list[RouteNode] = field(default_factory=list)


@dataclass(frozen=True)
class RoutedOperation:
    path: str
    method: str
    operation: Operation
    source: str
    order: int


@dataclass
class TopologyResult:
    base_path: str | None = None
    routes: list[RoutedOperation] = field(default_factory=list)
    tags: list[Tag] = field(default_factory=list)


def url_replace(src: str) -> str:
    """Rewrite ``:id``, ``?:id``, ``{id:int}`` and ``{id(\\d+)}`` segments as ``{id}``."""
    segments = src.split("/")
    for i, seg in enumerate(segments):
        if seg.startswith(":"):
            seg = "{" + seg[1:] + "}"
        elif seg.startswith("?:"):
            seg = "{" + seg[2:] + "}"
        if seg.startswith("{"):
            if ":" in seg:
                seg = seg[: seg.index(":")] + "}"
            elif "(" in seg:
                seg = seg[: seg.index("(")] + "}"
        segments[i] = seg
    return "/".join(segments)


class RouteTopologyWalker:
    def __init__(
        self,
        index: DeclarationIndex,
        controllers: dict[str, list[ControllerRoute]],
        warnings: list[DocWarning] | None = None,
    ):
        self.index = index
        self.controllers = controllers
        self.warnings = warnings if warnings is not None else []

    def build_tree(self, router_decls: list[Declaration]) -> list[tuple[RouteNode, Declaration]]:
        """Root namespace nodes found in the router declarations, in order."""
        roots: list[tuple[RouteNode, Declaration]] = []
        seen: set[CallNode] = set()
        for decl in router_decls:
            for call in decl.calls:
                for root_call in _find_root_calls(call, set()):
                    if root_call in seen:
                        continue
                    seen.add(root_call)
                    roots.append((self._namespace_node(root_call, nested=False), decl))
        return roots

    def _namespace_node(self, call: CallNode, nested: bool) -> RouteNode:
        args = list(call.args)
        prefix = ""
        if args and args[0].kind == "literal":
            prefix = args.pop(0).value
        else:
            warn(self.warnings, "topology", f"{call.value}(...) has no literal path prefix")
        node = RouteNode(prefix=prefix, tag=(prefix.strip("/") or None) if nested else None)
        for arg in args:
            if arg.kind != "call":
                continue
            if arg.short_name in NAMESPACE_CALLS:
                node.children.append(self._namespace_node(arg, nested=True))
            elif arg.short_name in INCLUDE_CALLS:
                for ref in arg.args:
                    if ref.kind == "literal":
                        warn(self.warnings, "topology", f"couldn't determine controller type of {ref.value!r}")
                        continue
                    node.children.append(RouteNode(controller_ref=ref.value))
            else:
                logger.debug("ignoring router call %s", arg.value)
        return node

    def walk(self, router_decls: list[Declaration]) -> TopologyResult:
        result = TopologyResult()
        included: set[str] = set()
        for position, (root, decl) in enumerate(self.build_tree(router_decls)):
            if position == 0:
                # only the first root namespace names the basePath
                result.base_path = root.prefix or None
                prefix = ""
            else:
                prefix = "" if root.prefix == result.base_path else root.prefix
            self._visit(root, prefix, None, decl, result, included)

        for key in sorted(set(self.controllers) - included):
            warn(
                self.warnings,
                "topology",
                f"controller {key} is never included from the router; its operations are skipped",
                self.controllers[key][0].decl.source,
            )
        return result

    def _visit(
        self,
        node: RouteNode,
        prefix: str,
        tag: str | None,
        decl: Declaration,
        result: TopologyResult,
        included: set[str],
    ) -> None:
        for child in node.children:
            if child.controller_ref is not None:
                self._include(child.controller_ref, prefix, tag, decl, result, included)
            else:
                self._visit(child, prefix + child.prefix, child.tag or tag, decl, result, included)

    def _include(
        self,
        ref: str,
        prefix: str,
        tag: str | None,
        decl: Declaration,
        result: TopologyResult,
        included: set[str],
    ) -> None:
        key = self.resolve_controller(ref, decl)
        if key is None:
            warn(self.warnings, "topology", f"cannot resolve controller reference {ref!r}", decl.source)
            return
        included.add(key)
        op_tag = tag or key.rsplit(".", 1)[-1]

        doc = self.index.controller_doc(key).strip()
        if doc and all(t.name != op_tag for t in result.tags):
            result.tags.append(Tag(name=op_tag, description=doc))

        for route in self.controllers.get(key, []):
            annotated = route.annotated
            path = url_replace(prefix + (annotated.route or ""))
            for method in annotated.methods:
                operation = annotated.operation.model_copy(deep=True, update={"tags": [op_tag]})
                result.routes.append(
                    RoutedOperation(
                        path=path,
                        method=method.lower(),
                        operation=operation,
                        source=route.decl.source,
                        order=route.order,
                    )
                )

    def resolve_controller(self, ref: str, decl: Declaration) -> str | None:
        """Map a controller reference in the router to ``<package_id>.<Class>``."""
        head, _, rest = ref.partition(".")
        if head in decl.imports:
            target = decl.imports[head] + (f".{rest}" if rest else "")
        else:
            target = f"{decl.package_id}.{ref}"
        if target in self.controllers:
            return target

        module, _, class_name = target.rpartition(".")
        candidates = sorted(k for k in self.controllers if k.rsplit(".", 1)[-1] == class_name)
        if not candidates:
            type_decl = self.index.find_type(class_name)
            if type_decl is None:
                return None
            return f"{type_decl.package_id}.{type_decl.name}"
        if len(candidates) == 1:
            return candidates[0]
        for key in candidates:
            key_module = key.rpartition(".")[0]
            if key_module.startswith(module + ".") or key_module.endswith("." + module) or module.endswith("." + key_module):
                return key
        warn(self.warnings, "topology", f"ambiguous controller reference {ref!r}, using {candidates[0]}", decl.source)
        return candidates[0]


def _find_root_calls(call: CallNode, visited: set[int]) -> list[CallNode]:
    # bound names share nodes, so a body can reach the same node many times
    if call.kind != "call" or id(call) in visited:
        return []
    visited.add(id(call))
    if call.short_name in ROOT_CALLS:
        return [call]
    found: list[CallNode] = []
    for arg in call.args:
        found.extend(_find_root_calls(arg, visited))
    return found
