"""Resolution of type references into Swagger schemas.

Named types become entries of a per-run definition cache keyed by
``<package>.<Type>``; every use of a named type is a ``$ref`` to that
entry. A placeholder definition is cached before a type's fields are
visited, so self-referential and mutually referential types terminate
with a ``$ref`` to the definition that is still being built.
"""

from __future__ import annotations

import logging
import re
from typing import Any

from swagger_docgen.parser.annotations import coerce_value, primitive_schema
from swagger_docgen.parser.base import Declaration, DocWarning, FieldDescriptor, warn
from swagger_docgen.parser.index import DeclarationIndex

from .document import Schema

logger = logging.getLogger(__name__)

DOC_DEFAULT_RE = re.compile(r"default\((.*)\)")
INTEGER_SIZES = {"8": "int32", "16": "int32", "32": "int32", "64": "int64"}
NUMBER_SIZES = {"32": "float", "64": "double"}


def split_map_type(type_ref: str) -> tuple[str, str]:
    """Split ``map[K]V`` into ``(K, V)``, honoring nested brackets in K."""
    depth = 0
    for i, ch in enumerate(type_ref[3:], start=3):
        if ch == "[":
            depth += 1
        elif ch == "]":
            depth -= 1
            if depth == 0:
                return type_ref[4:i], type_ref[i + 1:]
    return "string", "object"


class TypeModelResolver:
    """Resolves type references against one declaration index.

    One instance per run; ``definitions`` is its memo cache and is never
    shared between runs.
    """

    def __init__(self, index: DeclarationIndex, warnings: list[DocWarning] | None = None):
        self.index = index
        self.warnings = warnings if warnings is not None else []
        self.definitions: dict[str, Schema] = {}
        self.resolve_calls = 0

    def resolve(self, type_ref: str, package: str | None = None) -> Schema:
        """Schema for ``type_ref``: inline for primitives, ``$ref`` for named types.

        ``package`` qualifies bare type names that are not primitives.
        """
        type_ref = type_ref.strip()
        if type_ref.startswith("*"):
            return self.resolve(type_ref[1:], package)
        if type_ref.startswith("[]"):
            return Schema(type="array", items=self.resolve(type_ref[2:], package))
        if type_ref.startswith("map["):
            _, value_ref = split_map_type(type_ref)
            return Schema(type="object", additional_properties=self.resolve(value_ref, package))
        primitive = primitive_schema(type_ref)
        if primitive is not None:
            return primitive
        return Schema.reference(self.define(type_ref, package))

    def define(self, type_name: str, package: str | None = None) -> str:
        """Make sure ``type_name`` has a cached definition and return its key."""
        pkg, _, name = type_name.rpartition(".")
        decl = self.index.find_type(name, pkg or package)
        if decl is None and not pkg and package is not None:
            decl = self.index.find_type(name)
        key = f"{decl.package_name}.{decl.name}" if decl is not None else type_name
        if key in self.definitions:
            return key

        self.resolve_calls += 1
        if decl is None:
            warn(self.warnings, "resolution", f"cannot find the object: {type_name}")
            self.definitions[key] = Schema(type="object", title=name)
            return key

        placeholder = Schema(title=decl.name)
        self.definitions[key] = placeholder
        self._fill(placeholder, decl)
        logger.debug("resolved definition %s", key)
        return key

    # -- definition bodies -----------------------------------------------

    def _fill(self, schema: Schema, decl: Declaration) -> None:
        if decl.doc_text.strip():
            schema.description = decl.doc_text.strip().splitlines()[0]
        if decl.type_kind == "alias":
            self._fill_alias(schema, decl)
        elif decl.type_kind == "enum":
            self._fill_enum(schema, decl)
        else:
            self._fill_struct(schema, decl)

    def _fill_alias(self, schema: Schema, decl: Declaration) -> None:
        target = self.resolve(decl.alias_of, decl.package_name)
        for name in ("ref", "type", "format", "items", "additional_properties"):
            setattr(schema, name, getattr(target, name))
        if schema.ref is None and schema.type is None:
            schema.type = "object"

    def _fill_enum(self, schema: Schema, decl: Declaration) -> None:
        values = list(decl.enum_values)
        schema.type = _enum_type(values)
        if values:
            schema.enum = values
            schema.example = values[0]

    def _fill_struct(self, schema: Schema, decl: Declaration) -> None:
        schema.type = "object"
        properties: dict[str, Schema] = {}
        required: list[str] = []
        for field in decl.fields:
            if field.embedded and not _json_name(field.tags):
                self._inline_embedded(field, decl, properties, required)
                continue
            resolved = self._field_property(field, decl)
            if resolved is None:
                continue
            name, prop, is_required = resolved
            properties[name] = prop
            if is_required and name not in required:
                required.append(name)
        schema.properties = properties or None
        schema.required = required or None

    def _inline_embedded(
        self,
        field: FieldDescriptor,
        owner: Declaration,
        properties: dict[str, Schema],
        required: list[str],
    ) -> None:
        """Copy an embedded type's properties into the owner's schema."""
        type_ref = field.type_ref.lstrip("*")
        pkg, _, name = type_ref.rpartition(".")
        if self.index.find_type(name, pkg or owner.package_name) is None:
            logger.debug("embedded type %s of %s is not declared, skipping", type_ref, owner.name)
            return
        key = self.define(type_ref, owner.package_name)
        embedded = self.definitions[key]
        for prop_name, prop in (embedded.properties or {}).items():
            properties.setdefault(prop_name, prop)
        for prop_name in embedded.required or []:
            if prop_name not in required:
                required.append(prop_name)

    def _field_property(self, field: FieldDescriptor, owner: Declaration) -> tuple[str, Schema, bool] | None:
        tags = field.tags
        if _is_truthy(tags.get("omit")) or _is_truthy(tags.get("ignore")):
            return None
        json_name = _json_name(tags)
        if json_name == "-":
            return None
        name = json_name or field.name

        prop = self.resolve(field.type_ref, owner.package_name)
        # a $ref cannot carry sibling keywords in Swagger 2.0
        if prop.ref is None:
            self._apply_tags(prop, field, owner)
        return name, prop, _is_truthy(tags.get("required"))

    def _apply_tags(self, prop: Schema, field: FieldDescriptor, owner: Declaration) -> None:
        tags = field.tags
        if desc := tags.get("description"):
            prop.description = desc
        default = tags.get("default")
        if default is None and (doc := tags.get("doc")):
            match = DOC_DEFAULT_RE.search(doc)
            if match:
                default = match.group(1)
            else:
                warn(self.warnings, "resolution", f"invalid default value {doc!r} on {owner.name}.{field.name}", owner.source)
        if default is not None:
            prop.default = self._coerce(default, prop, owner, field)
        example = tags.get("example")
        if example is not None and prop.type not in ("object", "array"):
            prop.example = self._coerce(example, prop, owner, field)
        if size := tags.get("size"):
            self._apply_size(prop, size)

    def _coerce(self, value: str, prop: Schema, owner: Declaration, field: FieldDescriptor) -> Any:
        try:
            return coerce_value(value, prop.type)
        except ValueError:
            warn(
                self.warnings,
                "resolution",
                f"invalid default value type {prop.type!r} on {owner.name}.{field.name}: {value}",
                owner.source,
            )
            return value

    @staticmethod
    def _apply_size(prop: Schema, size: str) -> None:
        if prop.type == "integer" and size in INTEGER_SIZES:
            prop.format = INTEGER_SIZES[size]
        elif prop.type == "number" and size in NUMBER_SIZES:
            prop.format = NUMBER_SIZES[size]
        elif prop.type == "string" and size.isdigit():
            prop.max_length = int(size)


def _json_name(tags: dict[str, str]) -> str:
    """Field name from a ``json`` tag (``name,omitempty``) or an ``alias`` tag."""
    if "json" in tags:
        first = tags["json"].split(",")[0].strip()
        if first and first != "omitempty":
            return first
    return tags.get("alias", "")


def _is_truthy(value: str | None) -> bool:
    return value is not None and value.strip().lower() not in ("", "false", "0", "no")


def _enum_type(values: list[Any]) -> str:
    if values and all(isinstance(v, bool) for v in values):
        return "boolean"
    if values and all(isinstance(v, int) and not isinstance(v, bool) for v in values):
        return "integer"
    if values and all(isinstance(v, (int, float)) and not isinstance(v, bool) for v in values):
        return "number"
    return "string"
