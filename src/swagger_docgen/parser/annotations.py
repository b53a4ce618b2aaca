"""Parser for the ``@``-tag annotation language used in doc comments.

Operation comments::

    @Title Get
    @Description find object by objectId
    @Param   objectId  path  string  true  "the objectid you want to get"
    @Success 200 {object} models.Object "the object"
    @Failure 403 :objectId is empty
    @router /:objectId [get]

Router file header comments carry document-level tags such as
``@APIVersion``, ``@Title``, ``@Host`` and ``@SecurityDefinition``.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any, Protocol

from pydantic import BaseModel

from swagger_docgen.generator.document import (
    Contact,
    DocumentMeta,
    License,
    Operation,
    Parameter,
    Response,
    Schema,
    SecurityScheme,
)

from .base import DocWarning, ParamDescriptor, warn

logger = logging.getLogger(__name__)

# type name -> (swagger type, swagger format)
PRIMITIVE_TYPES: dict[str, tuple[str, str | None]] = {
    "bool": ("boolean", None),
    "uint": ("integer", "int32"),
    "uint8": ("integer", "int32"),
    "uint16": ("integer", "int32"),
    "uint32": ("integer", "int32"),
    "uint64": ("integer", "int64"),
    "int": ("integer", "int64"),
    "int8": ("integer", "int32"),
    "int16": ("integer", "int32"),
    "int32": ("integer", "int32"),
    "int64": ("integer", "int64"),
    "uintptr": ("integer", "int64"),
    "float32": ("number", "float"),
    "float64": ("number", "double"),
    "complex64": ("number", "float"),
    "complex128": ("number", "double"),
    "string": ("string", None),
    "byte": ("string", "byte"),
    "rune": ("string", "byte"),
    "time.Time": ("string", "datetime"),
    "json.RawMessage": ("object", None),
    # names emitted by the Python front-end
    "str": ("string", None),
    "float": ("number", "double"),
    "bytes": ("string", "byte"),
    "datetime": ("string", "datetime"),
    "date": ("string", "date"),
    "time": ("string", "time"),
    "Decimal": ("number", "double"),
    "UUID": ("string", "uuid"),
    "Any": ("object", None),
    "any": ("object", None),
    "dict": ("object", None),
    "object": ("object", None),
    "interface{}": ("object", None),
}

# Swagger's own scalar names, accepted verbatim in @Param
SWAGGER_TYPES = frozenset({"string", "number", "integer", "boolean", "array", "file"})

PARAM_LOCATIONS = frozenset({"query", "header", "path", "formData", "body"})
HTTP_METHODS = ("GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS")

ACCEPT_TYPES: dict[str, tuple[str, bool]] = {
    # name -> (mime type, also a produced type)
    "json": ("application/json", True),
    "xml": ("application/xml", True),
    "plain": ("text/plain", True),
    "html": ("text/html", True),
    "form": ("multipart/form-data", False),
}

OAUTH2_FLOWS = frozenset({"implicit", "password", "application", "accessCode"})

_TRUE = frozenset({"1", "t", "T", "TRUE", "true", "True"})
_FALSE = frozenset({"0", "f", "F", "FALSE", "false", "False"})


class SchemaResolver(Protocol):
    def resolve(self, type_ref: str, package: str | None = None) -> Schema: ...


class AnnotatedOperation(BaseModel):
    """An operation plus the route it was declared for."""

    operation: Operation
    route: str | None = None
    methods: list[str] = []


def tokenize_args(text: str) -> list[str]:
    """Split on whitespace, keeping double-quoted segments as one token.

    >>> tokenize_args('id path int true "the id"')
    ['id', 'path', 'int', 'true', 'the id']
    """
    tokens: list[str] = []
    current: list[str] = []
    quoted = False
    started = False
    for ch in text:
        if ch.isspace() and not quoted:
            if started:
                tokens.append("".join(current))
                current = []
                started = False
            continue
        started = True
        if ch == '"':
            quoted = not quoted
            continue
        current.append(ch)
    if started:
        tokens.append("".join(current))
    return tokens


def primitive_schema(type_name: str) -> Schema | None:
    """Inline schema for a primitive type name, or None for named types."""
    if type_name in SWAGGER_TYPES:
        return Schema(type=type_name)
    if type_name in PRIMITIVE_TYPES:
        swagger_type, swagger_format = PRIMITIVE_TYPES[type_name]
        return Schema(type=swagger_type, format=swagger_format)
    return None


def parse_bool(value: str) -> bool | None:
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    return None


def coerce_value(value: str, swagger_type: str | None) -> Any:
    """Convert a textual default/example to the type's native value.

    Raises ``ValueError`` when the text does not fit the type.
    """
    if swagger_type == "integer":
        return int(value)
    if swagger_type == "number":
        return float(value)
    if swagger_type == "boolean":
        parsed = parse_bool(value)
        if parsed is None:
            raise ValueError(f"invalid boolean {value!r}")
        return parsed
    return value


def _split_tag(line: str) -> tuple[str, str]:
    text = line.strip()
    for marker in ("//", "#"):
        if text.startswith(marker):
            text = text[len(marker):].strip()
    if not text.startswith("@"):
        return "", ""
    tag, _, rest = text.partition(" ")
    if "\t" in tag:
        tag, _, more = tag.partition("\t")
        rest = f"{more} {rest}"
    return tag, rest.strip()


def _peek(text: str) -> tuple[str, str]:
    """Return the first whitespace-delimited token and the stripped remainder."""
    parts = text.strip().split(None, 1)
    if not parts:
        return "", ""
    return parts[0], parts[1].strip() if len(parts) > 1 else ""


def _unquote(text: str) -> str:
    return text.strip().strip('"').strip()


class _OperationBuilder:
    def __init__(
        self,
        controller: str,
        resolver: SchemaResolver | None,
        func_params: Iterable[ParamDescriptor],
        source: str,
        package: str | None,
    ):
        self.controller = controller
        self.resolver = resolver
        self.func_params = {p.name: p.type_ref for p in func_params}
        self.source = source
        self.package = package
        self.warnings: list[DocWarning] = []
        self.operation = Operation()
        self.route: str | None = None
        self.methods: list[str] = []

    def warn(self, message: str) -> None:
        where = f"{self.controller}: " if self.controller else ""
        warn(self.warnings, "parse", where + message, self.source)

    def build(self, doc_text: str) -> AnnotatedOperation:
        handlers = {
            "@router": self.on_router,
            "@Title": self.on_title,
            "@Description": self.on_description,
            "@Summary": self.on_summary,
            "@Success": self.on_success,
            "@Param": self.on_param,
            "@Failure": self.on_failure,
            "@Deprecated": self.on_deprecated,
            "@Accept": self.on_accept,
            "@Security": self.on_security,
        }
        for line in doc_text.splitlines():
            tag, rest = _split_tag(line)
            handler = handlers.get(tag)
            if handler is not None:
                handler(rest)

        if self.route is not None:
            self.add_unmapped_params()
        return AnnotatedOperation(operation=self.operation, route=self.route, methods=self.methods)

    # -- schemas ---------------------------------------------------------

    def model_schema(self, type_name: str) -> Schema:
        if self.resolver is None:
            return Schema.reference(type_name)
        return self.resolver.resolve(type_name, self.package)

    def type_schema(self, type_name: str) -> Schema:
        return primitive_schema(type_name) or self.model_schema(type_name)

    # -- tags ------------------------------------------------------------

    def on_router(self, rest: str) -> None:
        tokens = rest.split()
        if not tokens:
            self.warn("@router needs a path")
            return
        self.route = tokens[0]
        methods = ["GET"]
        if len(tokens) > 1:
            methods = []
            for method in tokens[1].strip("[]").split(","):
                method = method.strip().upper()
                if method in HTTP_METHODS:
                    methods.append(method)
                elif method:
                    self.warn(f"unknown HTTP method {method!r} in @router")
        self.methods = methods

    def on_title(self, rest: str) -> None:
        title = rest.strip()
        self.operation.operation_id = f"{self.controller}.{title}" if self.controller else title

    def on_description(self, rest: str) -> None:
        self.operation.description = rest.strip()

    def on_summary(self, rest: str) -> None:
        self.operation.summary = rest.strip()

    def on_deprecated(self, rest: str) -> None:
        value = parse_bool(rest.strip())
        if value is None:
            self.warn(f"@Deprecated expects true or false, got {rest.strip()!r}")
            return
        self.operation.deprecated = value or None

    def on_accept(self, rest: str) -> None:
        for name in rest.split(","):
            name = name.strip()
            if name not in ACCEPT_TYPES:
                self.warn(f"unknown @Accept type {name!r}")
                continue
            mime, produced = ACCEPT_TYPES[name]
            self.operation.consumes.append(mime)
            if produced:
                self.operation.produces.append(mime)

    def on_security(self, rest: str) -> None:
        tokens = tokenize_args(rest)
        if not tokens:
            self.warn("@Security needs a scheme name")
            return
        self.operation.security.append({tokens[0]: tokens[1:]})

    def on_failure(self, rest: str) -> None:
        code, description = _peek(rest)
        if not code:
            self.warn("@Failure needs a status code")
            return
        self.operation.responses[code] = Response(description=_unquote(description))

    def on_success(self, rest: str) -> None:
        code, remainder = _peek(rest)
        if not code:
            self.warn("@Success needs a status code")
            return
        shape, after_shape = _peek(remainder)
        if not (shape.startswith("{") and shape.endswith("}")):
            self.operation.responses[code] = Response(description=_unquote(remainder))
            return

        if shape not in ("{object}", "{array}"):
            self.warn(f"unknown response shape {shape} in @Success {code}, using {{object}}")
        is_array = shape == "{array}"
        type_name, description = _peek(after_shape)
        if not type_name:
            self.warn(f"@Success {code}: a type name must follow {shape}")
            self.operation.responses[code] = Response(description=_unquote(description))
            return
        if type_name.startswith("[]"):
            type_name = type_name[2:]
            is_array = True
        schema = self.type_schema(type_name)
        if is_array:
            schema = Schema(type="array", items=schema)
        self.operation.responses[code] = Response(description=_unquote(description), schema_=schema)

    def on_param(self, rest: str) -> None:
        tokens = tokenize_args(rest)
        if len(tokens) < 4:
            self.warn(f"@Param should have at least 4 params, got {len(tokens)}: {rest.strip()!r}")
            return
        if len(tokens) > 6:
            self.warn(f"@Param has {len(tokens)} params, extra ones are ignored: {rest.strip()!r}")
            tokens = tokens[:6]

        name, _, func_name = tokens[0].partition("=>")
        func_name = func_name or name
        func_type = self.func_params.pop(func_name, None)

        location = tokens[1]
        if location not in PARAM_LOCATIONS:
            self.warn(
                f"unknown param location {location!r} for {name!r}. Possible values are "
                "`query`, `header`, `path`, `formData` or `body`"
            )
            location = "query"

        type_name = tokens[2]
        if type_name == "auto":
            if not func_type:
                self.warn(f"@Param {name!r} uses type auto but no function parameter {func_name!r} exists")
            type_name = func_type or "string"

        fields = self.param_type_fields(type_name.lstrip("*"), location)
        default = None
        required = None
        if len(tokens) == 4:
            description = tokens[3]
        elif len(tokens) == 5:
            required = self.param_required(tokens[3], name)
            description = tokens[4]
        else:
            default = self.param_default(tokens[3], fields, name)
            required = self.param_required(tokens[4], name)
            description = tokens[5]

        self.operation.parameters.append(
            Parameter(
                name=name,
                in_=location,
                required=required,
                default=default,
                description=_unquote(description) or None,
                **fields,
            )
        )

    # -- @Param helpers --------------------------------------------------

    def param_type_fields(self, type_name: str, location: str) -> dict[str, Any]:
        """Type-related Parameter fields: ``type``/``format``/``items`` or ``schema_``."""
        is_array = type_name.startswith("[]")
        if is_array:
            type_name = type_name[2:]

        primitive = primitive_schema(type_name)
        if primitive is None:
            schema = self.model_schema(type_name)
            return {"schema_": Schema(type="array", items=schema) if is_array else schema}
        if location == "body":
            return {"schema_": Schema(type="array", items=primitive) if is_array else primitive}
        if is_array:
            return {"type": "array", "items": primitive}
        return {"type": primitive.type, "format": primitive.format}

    def param_required(self, value: str, name: str) -> bool:
        parsed = parse_bool(value)
        if parsed is None:
            self.warn(f"@Param {name!r}: required must be true or false, got {value!r}")
            return False
        return parsed

    def param_default(self, value: str, fields: dict[str, Any], name: str) -> Any:
        swagger_type = fields.get("type")
        if swagger_type is None and fields.get("schema_") is not None:
            swagger_type = fields["schema_"].type
        try:
            return coerce_value(value, swagger_type)
        except ValueError:
            self.warn(f"invalid default value {value!r} for {swagger_type} param {name!r}")
            return value

    def add_unmapped_params(self) -> None:
        """Document function parameters that no @Param line mentioned."""
        for name, type_ref in self.func_params.items():
            location = "path" if param_in_path(name, self.route or "") else "query"
            fields = self.param_type_fields((type_ref or "string").lstrip("*"), location)
            self.operation.parameters.append(
                Parameter(name=name, in_=location, required=location == "path" or None, **fields)
            )
        self.func_params = {}


def param_in_path(name: str, route: str) -> bool:
    return route.endswith(":" + name) or f":{name}/" in route


def parse_operation(
    doc_text: str,
    controller: str = "",
    resolver: SchemaResolver | None = None,
    func_params: Iterable[ParamDescriptor] = (),
    source: str = "",
    package: str | None = None,
) -> tuple[AnnotatedOperation, list[DocWarning]]:
    """Parse one function's doc comment into an operation.

    Named types in ``@Param`` and ``@Success`` are handed to ``resolver``;
    without one they become bare references. Malformed lines produce
    warnings and never abort the operation.
    """
    builder = _OperationBuilder(controller, resolver, func_params, source, package)
    annotated = builder.build(doc_text)
    return annotated, builder.warnings


def parse_document_meta(doc_text: str, source: str = "") -> tuple[DocumentMeta, list[DocWarning]]:
    """Parse the router file's header comments into document metadata."""
    meta = DocumentMeta()
    warnings: list[DocWarning] = []
    info = meta.info

    for line in doc_text.splitlines():
        tag, rest = _split_tag(line)
        if tag == "@APIVersion":
            info.version = rest
        elif tag == "@Title":
            info.title = rest
        elif tag == "@Description":
            info.description = rest
        elif tag == "@TermsOfServiceUrl":
            info.terms_of_service = rest
        elif tag == "@Contact":
            info.contact = info.contact or Contact()
            info.contact.email = rest
        elif tag == "@Name":
            info.contact = info.contact or Contact()
            info.contact.name = rest
        elif tag == "@URL":
            info.contact = info.contact or Contact()
            info.contact.url = rest
        elif tag == "@LicenseUrl":
            info.license = info.license or License()
            info.license.url = rest
        elif tag == "@License":
            info.license = info.license or License()
            info.license.name = rest
        elif tag == "@Schemes":
            meta.schemes = [s.strip() for s in rest.split(",") if s.strip()]
        elif tag == "@Host":
            meta.host = rest
        elif tag == "@SecurityDefinition":
            tokens = tokenize_args(rest)
            scheme = _security_definition(tokens, warnings, source)
            if scheme is not None:
                meta.security_definitions[tokens[0]] = scheme
        elif tag == "@Security":
            tokens = tokenize_args(rest)
            if not tokens:
                warn(warnings, "parse", "@Security needs a scheme name", source)
                continue
            meta.security.append({tokens[0]: tokens[1:]})
    return meta, warnings


def _security_definition(
    tokens: list[str],
    warnings: list[DocWarning],
    source: str,
) -> SecurityScheme | None:
    if len(tokens) < 2:
        warn(warnings, "parse", f"not enough params for @SecurityDefinition: {len(tokens)}", source)
        return None
    builders = {"oauth2": _oauth2_scheme, "apiKey": _api_key_scheme, "basic": _basic_scheme}
    builder = builders.get(tokens[1])
    if builder is None:
        warn(
            warnings,
            "parse",
            f"unknown security type {tokens[1]!r}. Possible values are `oauth2`, `apiKey` or `basic`",
            source,
        )
        return None
    problem, scheme = builder(tokens)
    if problem:
        warn(warnings, "parse", problem, source)
    return scheme


def _oauth2_scheme(tokens: list[str]) -> tuple[str, SecurityScheme | None]:
    if len(tokens) < 4:
        return f"not enough params for oauth2 security {tokens[0]!r}: {len(tokens)}", None
    flow = tokens[3]
    if flow not in OAUTH2_FLOWS:
        return (
            f"unknown oauth2 flow {flow!r}. Possible values are `implicit`, `password`, "
            "`application` or `accessCode`"
        ), None
    extra = tokens[4:]
    description = extra.pop() if len(extra) % 2 else None
    scopes = {extra[i]: extra[i + 1] for i in range(0, len(extra), 2)}
    return "", SecurityScheme(
        type="oauth2",
        authorization_url=tokens[2],
        flow=flow,
        scopes=scopes,
        description=description,
    )


def _api_key_scheme(tokens: list[str]) -> tuple[str, SecurityScheme | None]:
    if len(tokens) < 4:
        return f"not enough params for apiKey security {tokens[0]!r}: {len(tokens)}", None
    if tokens[3] not in ("header", "query"):
        return f"unknown apiKey location {tokens[3]!r}. Possible values are `query` or `header`", None
    return "", SecurityScheme(
        type="apiKey",
        name=tokens[2],
        in_=tokens[3],
        description=tokens[4] if len(tokens) > 4 else None,
    )


def _basic_scheme(tokens: list[str]) -> tuple[str, SecurityScheme | None]:
    return "", SecurityScheme(type="basic", description=tokens[2] if len(tokens) > 2 else None)
