"""Python source front-end.

Turns a ``.py`` file into language-neutral ``Declaration`` records:

- every class becomes a ``type`` declaration; annotated class attributes
  are its fields and base classes are embedded fields;
- ``Enum`` subclasses become enum types;
- methods become ``func`` declarations whose receiver is the class;
- module-level functions keep the calls made in their body, which is how
  router declarations expose their namespace tree;
- typing aliases (``Users = list[User]``, ``NewType``, ``TypeAlias``)
  become alias types;
- the module docstring and top-of-file ``#`` comments become a
  ``module`` declaration.

Annotation doc text is the docstring plus any ``#`` comment block directly
above the definition.
"""

from __future__ import annotations

import ast
from pathlib import Path

from .base import CallNode, Declaration, FieldDescriptor, ParamDescriptor

LIST_TYPES = frozenset({"list", "List", "Sequence", "MutableSequence", "Iterable", "set", "Set", "frozenset", "FrozenSet", "tuple", "Tuple"})
MAP_TYPES = frozenset({"dict", "Dict", "Mapping", "MutableMapping", "OrderedDict", "defaultdict"})
ENUM_BASES = frozenset({"Enum", "IntEnum", "StrEnum", "Flag", "IntFlag"})
IGNORED_BASES = frozenset({
    "object", "BaseModel", "Generic", "ABC", "Protocol", "TypedDict", "NamedTuple", "Exception",
})
# Modules whose members are spelled by their bare name in the primitive table.
STDLIB_TYPE_MODULES = frozenset({"datetime", "decimal", "uuid", "typing", "json", "time"})
SKIPPED_PARAMS = frozenset({"self", "cls"})


def module_id_for(path: Path, root: Path) -> str:
    """Dotted module path of ``path`` relative to the project ``root``.

    When the root itself is a package its directory name prefixes the id.
    """
    parts = list(path.relative_to(root).with_suffix("").parts)
    if parts and parts[-1] == "__init__":
        parts.pop()
    if (root / "__init__.py").exists():
        parts.insert(0, root.name)
    return ".".join(parts) or root.name


def parse_file(path: Path, root: Path) -> list[Declaration]:
    """Parse one source file; raises ``OSError`` or ``SyntaxError``."""
    source = path.read_text(encoding="utf-8")
    relative = path.relative_to(root).as_posix()
    return parse_source(
        source,
        module_id_for(path, root),
        file_path=relative,
        is_package=path.name == "__init__.py",
    )


def parse_source(
    source: str,
    package_id: str,
    file_path: str = "",
    is_package: bool = False,
) -> list[Declaration]:
    tree = ast.parse(source, filename=file_path or "<string>")
    return _ModuleReader(source, package_id, file_path, is_package).read(tree)


class _ModuleReader:
    def __init__(self, source: str, package_id: str, file_path: str, is_package: bool):
        self.lines = source.splitlines()
        self.package_id = package_id
        self.package_name = package_id.rsplit(".", 1)[-1]
        self.file_path = file_path
        self.is_package = is_package
        self.imports: dict[str, str] = {}
        self.local_classes: set[str] = set()

    def read(self, tree: ast.Module) -> list[Declaration]:
        self.imports = self._collect_imports(tree)
        self.local_classes = {n.name for n in tree.body if isinstance(n, ast.ClassDef)}

        declarations = [self._module_declaration(tree)]
        for node in tree.body:
            if isinstance(node, ast.ClassDef):
                declarations.extend(self._class_declarations(node))
            elif isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)):
                declarations.append(self._function_declaration(node))
            elif alias := self._alias_declaration(node):
                declarations.append(alias)
        return declarations

    # -- imports ---------------------------------------------------------

    def _collect_imports(self, tree: ast.Module) -> dict[str, str]:
        imports: dict[str, str] = {}
        for node in ast.walk(tree):
            if isinstance(node, ast.Import):
                for alias in node.names:
                    if alias.asname:
                        imports[alias.asname] = alias.name
                    else:
                        head = alias.name.split(".")[0]
                        imports[head] = head
            elif isinstance(node, ast.ImportFrom):
                module = self._absolute_module(node)
                for alias in node.names:
                    if alias.name == "*":
                        continue
                    target = f"{module}.{alias.name}" if module else alias.name
                    imports[alias.asname or alias.name] = target
        return imports

    def _absolute_module(self, node: ast.ImportFrom) -> str:
        if node.level == 0:
            return node.module or ""
        parts = self.package_id.split(".")
        if not self.is_package:
            parts = parts[:-1]
        if node.level > 1:
            parts = parts[: len(parts) - (node.level - 1)]
        if node.module:
            parts.append(node.module)
        return ".".join(p for p in parts if p)

    # -- declarations ----------------------------------------------------

    def _module_declaration(self, tree: ast.Module) -> Declaration:
        header: list[str] = []
        for line in self.lines:
            stripped = line.strip()
            if not stripped:
                continue
            if not stripped.startswith("#"):
                break
            header.append(stripped.lstrip("#").strip())
        doc = ast.get_docstring(tree) or ""
        doc_text = "\n".join(header + ([doc] if doc else []))
        return Declaration(
            package_id=self.package_id,
            kind="module",
            name=self.package_name,
            doc_text=doc_text,
            imports=self.imports,
            calls=self._collect_calls(tree.body),
            file_path=self.file_path,
            line=0,
        )

    def _class_declarations(self, node: ast.ClassDef) -> list[Declaration]:
        base_names = [ast.unparse(b) for b in node.bases]
        short_bases = {b.rsplit(".", 1)[-1].split("[")[0] for b in base_names}

        if short_bases & ENUM_BASES:
            type_decl = Declaration(
                package_id=self.package_id,
                kind="type",
                name=node.name,
                doc_text=self._doc_text(node),
                type_kind="enum",
                enum_values=tuple(self._enum_values(node)),
                file_path=self.file_path,
                line=node.lineno,
            )
            return [type_decl]

        fields: list[FieldDescriptor] = []
        for base in base_names:
            short = base.rsplit(".", 1)[-1].split("[")[0]
            if short in IGNORED_BASES:
                continue
            fields.append(FieldDescriptor(name=short, type_ref=self._type_ref(ast.parse(base, mode="eval").body), embedded=True))
        for item in node.body:
            if isinstance(item, ast.AnnAssign) and isinstance(item.target, ast.Name):
                field = self._field(item)
                if field is not None:
                    fields.append(field)

        declarations = [
            Declaration(
                package_id=self.package_id,
                kind="type",
                name=node.name,
                doc_text=self._doc_text(node),
                fields=tuple(fields),
                imports=self.imports,
                file_path=self.file_path,
                line=node.lineno,
            )
        ]
        for item in node.body:
            if isinstance(item, (ast.FunctionDef, ast.AsyncFunctionDef)):
                declarations.append(self._function_declaration(item, receiver=node.name))
        return declarations

    def _field(self, item: ast.AnnAssign) -> FieldDescriptor | None:
        name = item.target.id
        if name.startswith("_"):
            return None
        annotation = item.annotation
        tags: dict[str, str] = {}
        if _subscript_base(annotation) == "ClassVar":
            return None
        if _subscript_base(annotation) == "Annotated":
            elts = _slice_elements(annotation)
            annotation = elts[0] if elts else None
            for extra in elts[1:]:
                if isinstance(extra, ast.Call):
                    tags.update(_call_tags(extra))
        if isinstance(item.value, ast.Call):
            tags.update(_call_tags(item.value))
        return FieldDescriptor(name=name, type_ref=self._type_ref(annotation), tags=tags)

    def _enum_values(self, node: ast.ClassDef) -> list[str | int | float | bool]:
        values: list[str | int | float | bool] = []
        for item in node.body:
            if not isinstance(item, ast.Assign) or not isinstance(item.value, ast.Constant):
                continue
            if isinstance(item.value.value, (str, int, float, bool)):
                values.append(item.value.value)
        return values

    def _function_declaration(
        self,
        node: ast.FunctionDef | ast.AsyncFunctionDef,
        receiver: str = "",
    ) -> Declaration:
        args = node.args
        params = [
            ParamDescriptor(name=a.arg, type_ref=self._type_ref(a.annotation))
            for a in (*args.posonlyargs, *args.args, *args.kwonlyargs)
            if a.arg not in SKIPPED_PARAMS
        ]
        return Declaration(
            package_id=self.package_id,
            kind="func",
            name=node.name,
            receiver_type_name=receiver,
            doc_text=self._doc_text(node),
            params=tuple(params),
            imports=self.imports if not receiver else {},
            calls=() if receiver else self._collect_calls(node.body),
            file_path=self.file_path,
            line=node.lineno,
        )

    def _alias_declaration(self, node: ast.stmt) -> Declaration | None:
        name = ""
        value: ast.expr | None = None
        if isinstance(node, ast.Assign) and len(node.targets) == 1 and isinstance(node.targets[0], ast.Name):
            name, value = node.targets[0].id, node.value
            if isinstance(value, ast.Call) and ast.unparse(value.func).endswith("NewType") and len(value.args) == 2:
                value = value.args[1]
            elif _subscript_base(value) not in LIST_TYPES | MAP_TYPES | {"Optional", "Union", "Annotated"}:
                return None
        elif isinstance(node, ast.AnnAssign) and isinstance(node.target, ast.Name) and node.value is not None:
            if "TypeAlias" not in ast.unparse(node.annotation):
                return None
            name, value = node.target.id, node.value
        elif hasattr(ast, "TypeAlias") and isinstance(node, ast.TypeAlias):
            name, value = node.name.id, node.value
        if not name or value is None:
            return None
        return Declaration(
            package_id=self.package_id,
            kind="type",
            name=name,
            doc_text=self._comment_block(node.lineno),
            type_kind="alias",
            alias_of=self._type_ref(value),
            file_path=self.file_path,
            line=node.lineno,
        )

    # -- doc text --------------------------------------------------------

    def _doc_text(self, node: ast.FunctionDef | ast.AsyncFunctionDef | ast.ClassDef) -> str:
        start = node.decorator_list[0].lineno if node.decorator_list else node.lineno
        parts = [self._comment_block(start), ast.get_docstring(node) or ""]
        return "\n".join(p for p in parts if p)

    def _comment_block(self, lineno: int) -> str:
        collected: list[str] = []
        i = lineno - 2
        while i >= 0 and self.lines[i].strip().startswith("#"):
            collected.append(self.lines[i].strip().lstrip("#").strip())
            i -= 1
        return "\n".join(reversed(collected))

    # -- type references -------------------------------------------------

    def _type_ref(self, node: ast.expr | None) -> str:
        if node is None:
            return ""
        if isinstance(node, ast.Constant):
            if isinstance(node.value, str):
                try:
                    return self._type_ref(ast.parse(node.value, mode="eval").body)
                except SyntaxError:
                    return node.value
            return ""
        if isinstance(node, (ast.Name, ast.Attribute)):
            return self._named_ref(ast.unparse(node))
        if isinstance(node, ast.BinOp) and isinstance(node.op, ast.BitOr):
            return self._union_ref(_union_members(node))
        if isinstance(node, ast.Subscript):
            return self._subscript_ref(node)
        return ""

    def _named_ref(self, dotted: str) -> str:
        short = dotted.rsplit(".", 1)[-1]
        if dotted not in self.local_classes:
            # unparameterized containers: ``list``, ``typing.Dict``
            if short in LIST_TYPES:
                return "[]object"
            if short in MAP_TYPES:
                return "map[string]object"
        return self._qualify(dotted)

    def _union_ref(self, members: list[ast.expr]) -> str:
        present = [m for m in members if not _is_none(m)]
        ref = self._type_ref(present[0]) if present else ""
        return f"*{ref}" if ref and len(present) < len(members) else ref

    def _subscript_ref(self, node: ast.Subscript) -> str:
        base = _subscript_base(node)
        elts = _slice_elements(node)
        first = elts[0] if elts else None
        if base in LIST_TYPES:
            return "[]" + (self._type_ref(first) or "object")
        if base in MAP_TYPES:
            key = self._type_ref(first) or "string"
            value = self._type_ref(elts[1]) if len(elts) > 1 else ""
            return f"map[{key}]{value or 'object'}"
        if base == "Optional":
            ref = self._type_ref(first)
            return f"*{ref}" if ref else ""
        if base == "Union":
            return self._union_ref(elts)
        if base == "Annotated":
            return self._type_ref(first)
        if base == "Literal":
            return _literal_type(first.value) if isinstance(first, ast.Constant) else ""
        return self._type_ref(node.value)

    def _qualify(self, dotted: str) -> str:
        head, _, rest = dotted.partition(".")
        if not rest:
            if dotted in self.local_classes:
                return f"{self.package_name}.{dotted}"
            target = self.imports.get(dotted)
            if target and "." in target:
                module, _, name = target.rpartition(".")
                if module.split(".")[0] in STDLIB_TYPE_MODULES:
                    return name
                return f"{module.rsplit('.', 1)[-1]}.{name}"
            return dotted
        if head in STDLIB_TYPE_MODULES or self.imports.get(head, "").split(".")[0] in STDLIB_TYPE_MODULES:
            return dotted.rsplit(".", 1)[-1]
        module = self.imports.get(head, head)
        if "." in rest:
            module, _, rest = f"{module}.{rest}".rpartition(".")
        return f"{module.rsplit('.', 1)[-1]}.{rest}"

    # -- router calls ----------------------------------------------------

    def _collect_calls(self, body: list[ast.stmt]) -> tuple[CallNode, ...]:
        # converted value of each local name; nodes are immutable, so uses share them
        bindings: dict[str, CallNode] = {}
        calls: list[CallNode] = []
        for stmt in _iter_statements(body):
            value: ast.expr | None = None
            if isinstance(stmt, (ast.Assign, ast.AnnAssign, ast.Expr, ast.Return)):
                value = stmt.value
            if value is None:
                continue
            converted = _call_node(value, bindings)
            if isinstance(value, ast.Call) and converted is not None:
                calls.append(converted)
            if isinstance(stmt, ast.Assign):
                for target in stmt.targets:
                    if not isinstance(target, ast.Name):
                        continue
                    if converted is None:
                        bindings.pop(target.id, None)
                    else:
                        bindings[target.id] = converted
        return tuple(calls)


def _iter_statements(body: list[ast.stmt]):
    for stmt in body:
        yield stmt
        if isinstance(stmt, (ast.FunctionDef, ast.AsyncFunctionDef, ast.ClassDef)):
            continue
        for attr in ("body", "orelse", "finalbody"):
            nested = getattr(stmt, attr, None)
            if isinstance(nested, list):
                yield from _iter_statements(nested)


def _call_node(expr: ast.expr, bindings: dict[str, CallNode]) -> CallNode | None:
    if isinstance(expr, ast.Call):
        args = tuple(a for a in (_call_node(arg, bindings) for arg in expr.args) if a is not None)
        return CallNode(kind="call", value=ast.unparse(expr.func), args=args)
    if isinstance(expr, ast.Constant) and isinstance(expr.value, str):
        return CallNode(kind="literal", value=expr.value)
    if isinstance(expr, ast.Name):
        if expr.id in bindings:
            return bindings[expr.id]
        return CallNode(kind="symbol", value=expr.id)
    if isinstance(expr, ast.Attribute):
        return CallNode(kind="symbol", value=ast.unparse(expr))
    return None


def _call_tags(call: ast.Call) -> dict[str, str]:
    """Collect constant keyword arguments of a field default call as tags."""
    tags: dict[str, str] = {}
    for keyword in call.keywords:
        if keyword.arg is None:
            continue
        if isinstance(keyword.value, ast.Dict):
            for key, value in zip(keyword.value.keys, keyword.value.values):
                if isinstance(key, ast.Constant) and isinstance(value, ast.Constant):
                    tags[str(key.value)] = _tag_value(value.value)
        elif isinstance(keyword.value, ast.Constant):
            tags[keyword.arg] = _tag_value(keyword.value.value)
    if "default" not in tags and call.args and isinstance(call.args[0], ast.Constant):
        value = call.args[0].value
        if value is not None and value is not Ellipsis:
            tags["default"] = _tag_value(value)
    return tags


def _tag_value(value: object) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _literal_type(value: object) -> str:
    if isinstance(value, bool):
        return "bool"
    if isinstance(value, int):
        return "int"
    if isinstance(value, float):
        return "float64"
    return "string"


def _subscript_base(node: ast.expr | None) -> str:
    if not isinstance(node, ast.Subscript):
        return ""
    return ast.unparse(node.value).rsplit(".", 1)[-1]


def _slice_elements(node: ast.Subscript) -> list[ast.expr]:
    if isinstance(node.slice, ast.Tuple):
        return list(node.slice.elts)
    return [node.slice]


def _union_members(node: ast.expr) -> list[ast.expr]:
    if isinstance(node, ast.BinOp) and isinstance(node.op, ast.BitOr):
        return _union_members(node.left) + _union_members(node.right)
    return [node]


def _is_none(node: ast.expr) -> bool:
    return isinstance(node, ast.Constant) and node.value is None
