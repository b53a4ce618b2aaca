"""Language-neutral declaration records.

Every source front-end converts its parsed files into these models.
The annotation parser, type resolver and route walker only ever see
these records, never a language-specific syntax tree.

Type references use a small neutral notation:
``T``, ``pkg.T``, ``*T`` (optional), ``[]T`` (list) and ``map[K]V``.
"""

from __future__ import annotations

import logging
from typing import Literal

from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)

DeclarationKind = Literal["func", "type", "module"]
TypeKind = Literal["struct", "alias", "enum"]
WarningKind = Literal["parse", "resolution", "topology", "scan"]


class FieldDescriptor(BaseModel):
    """One field of a struct-like type."""

    model_config = ConfigDict(frozen=True)

    name: str
    type_ref: str
    tags: dict[str, str] = {}  # documentation-only key/value pairs
    embedded: bool = False


class ParamDescriptor(BaseModel):
    """One parameter of a function declaration."""

    model_config = ConfigDict(frozen=True)

    name: str
    type_ref: str = ""


class CallNode(BaseModel):
    """An expression inside a router declaration body.

    ``call`` nodes carry the callee's dotted name in ``value`` and their
    positional arguments in ``args``; ``literal`` nodes carry a string
    constant; ``symbol`` nodes carry a dotted name reference.
    """

    model_config = ConfigDict(frozen=True)

    kind: Literal["call", "literal", "symbol"]
    value: str
    args: tuple[CallNode, ...] = ()

    @property
    def short_name(self) -> str:
        return self.value.rsplit(".", 1)[-1]


class Declaration(BaseModel):
    """A function, type or module declaration plus its doc comment."""

    model_config = ConfigDict(frozen=True)

    package_id: str  # dotted module path, e.g. "app.controllers.user"
    kind: DeclarationKind
    name: str
    receiver_type_name: str = ""
    doc_text: str = ""
    fields: tuple[FieldDescriptor, ...] = ()
    params: tuple[ParamDescriptor, ...] = ()
    type_kind: TypeKind = "struct"
    alias_of: str = ""
    enum_values: tuple[str | int | float | bool, ...] = ()
    imports: dict[str, str] = {}  # local name -> dotted target
    calls: tuple[CallNode, ...] = ()
    file_path: str = ""
    line: int = 0

    @property
    def package_name(self) -> str:
        """Last segment of the package id, used to qualify type names."""
        return self.package_id.rsplit(".", 1)[-1]

    @property
    def source(self) -> str:
        if self.file_path:
            return f"{self.file_path}:{self.line}"
        return f"{self.package_id}.{self.name}"


class DocWarning(BaseModel):
    """A non-fatal problem found during a run."""

    model_config = ConfigDict(frozen=True)

    kind: WarningKind
    message: str
    source: str = ""

    def __str__(self) -> str:
        where = f" ({self.source})" if self.source else ""
        return f"[{self.kind}] {self.message}{where}"


def warn(
    warnings: list[DocWarning],
    kind: WarningKind,
    message: str,
    source: str = "",
) -> DocWarning:
    """Record a warning in ``warnings`` and log it."""
    warning = DocWarning(kind=kind, message=message, source=source)
    warnings.append(warning)
    logger.warning("%s", warning)
    return warning
