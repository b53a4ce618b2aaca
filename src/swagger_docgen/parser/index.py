"""In-memory declaration index shared by every generation stage."""

from __future__ import annotations

from collections.abc import Iterable

from .base import Declaration


def declaration_sort_key(decl: Declaration) -> tuple[str, str, int]:
    return (decl.package_id, decl.file_path, decl.line)


class DeclarationIndex:
    """Deterministically ordered view over a set of declarations.

    Declarations are sorted by package id, then file path, then line,
    so iteration order does not depend on how the files were scanned.
    """

    def __init__(self, declarations: Iterable[Declaration]):
        self._declarations = tuple(sorted(declarations, key=declaration_sort_key))
        self._order = {id(d): i for i, d in enumerate(self._declarations)}
        self._types: dict[str, list[Declaration]] = {}
        self._controllers: dict[str, list[Declaration]] = {}
        for decl in self._declarations:
            if decl.kind == "type":
                self._types.setdefault(decl.name, []).append(decl)
            elif decl.kind == "func" and decl.receiver_type_name:
                key = f"{decl.package_id}.{decl.receiver_type_name}"
                self._controllers.setdefault(key, []).append(decl)

    def __iter__(self):
        return iter(self._declarations)

    def __len__(self) -> int:
        return len(self._declarations)

    def packages(self) -> list[str]:
        return sorted({d.package_id for d in self._declarations})

    def list_declarations(self, package_id: str | None = None) -> list[Declaration]:
        """Return declarations in index order, optionally for one package."""
        if package_id is None:
            return list(self._declarations)
        return [d for d in self._declarations if d.package_id == package_id]

    def module(self, package_id: str) -> Declaration | None:
        for decl in self.list_declarations(package_id):
            if decl.kind == "module":
                return decl
        return None

    def order_of(self, decl: Declaration) -> int:
        """Position of ``decl`` in index iteration order."""
        return self._order.get(id(decl), len(self._declarations))

    def find_type(self, name: str, package: str | None = None) -> Declaration | None:
        """Find a type declaration by name.

        ``package`` may be a full package id or just its last segment,
        matching how annotations qualify type names (``models.User``).
        """
        candidates = self._types.get(name, [])
        if package is None:
            return candidates[0] if candidates else None
        for decl in candidates:
            if decl.package_id == package or decl.package_name == package:
                return decl
        for decl in candidates:
            if decl.package_id.endswith("." + package):
                return decl
        # "models.User" also matches a type declared in "models/user.py"
        for decl in candidates:
            if package in decl.package_id.split("."):
                return decl
        return None

    def controllers(self) -> dict[str, list[Declaration]]:
        """Map ``<package_id>.<ClassName>`` to its method declarations."""
        return dict(self._controllers)

    def controller_doc(self, controller_key: str) -> str:
        package_id, _, class_name = controller_key.rpartition(".")
        for decl in self._types.get(class_name, []):
            if decl.package_id == package_id:
                return decl.doc_text
        return ""
