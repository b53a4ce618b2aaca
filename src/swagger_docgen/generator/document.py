"""Swagger 2.0 document models.

Field order matches the canonical Swagger 2.0 layout, so dumping a model
yields keys in that order. Empty collections and unset fields are dropped
from the serialized form.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_serializer, model_validator

SWAGGER_VERSION = "2.0"
DEFINITIONS_PREFIX = "#/definitions/"
METHOD_ORDER = ("get", "put", "post", "delete", "options", "head", "patch")


class _Model(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class Schema(_Model):
    """A data shape: object, array, primitive or a reference to a definition."""

    ref: str | None = Field(default=None, alias="$ref")  # SchemaKey of the target
    title: str | None = None
    type: str | None = None
    format: str | None = None
    description: str | None = None
    items: Schema | None = None
    properties: dict[str, Schema] | None = None
    additional_properties: Schema | None = Field(default=None, alias="additionalProperties")
    required: list[str] | None = None
    enum: list[Any] | None = None
    default: Any = None
    example: Any = None
    max_length: int | None = Field(default=None, alias="maxLength")

    @model_validator(mode="after")
    def _ref_has_no_properties(self) -> Schema:
        if self.ref is not None and self.properties:
            raise ValueError("a $ref schema cannot carry inline properties")
        return self

    @field_serializer("ref")
    def _serialize_ref(self, ref: str | None) -> str | None:
        return None if ref is None else DEFINITIONS_PREFIX + ref

    @classmethod
    def reference(cls, key: str) -> Schema:
        return cls(ref=key)


class Parameter(_Model):
    """An operation parameter. Exactly one of ``type`` or ``schema`` is set."""

    in_: str = Field(alias="in")
    name: str
    description: str | None = None
    required: bool | None = None
    type: str | None = None
    format: str | None = None
    items: Schema | None = None
    default: Any = None
    schema_: Schema | None = Field(default=None, alias="schema")

    @model_validator(mode="after")
    def _type_or_schema(self) -> Parameter:
        if (self.type is None) == (self.schema_ is None):
            raise ValueError(f"parameter {self.name!r} needs exactly one of type or schema")
        return self


class Response(_Model):
    description: str = ""
    schema_: Schema | None = Field(default=None, alias="schema")


class Operation(_Model):
    """Documentation of one HTTP method on one route."""

    tags: list[str] = []
    summary: str | None = None
    description: str | None = None
    operation_id: str | None = Field(default=None, alias="operationId")
    consumes: list[str] = []
    produces: list[str] = []
    parameters: list[Parameter] = []
    responses: dict[str, Response] = {}
    deprecated: bool | None = None
    security: list[dict[str, list[str]]] = []


class PathItem(_Model):
    get: Operation | None = None
    put: Operation | None = None
    post: Operation | None = None
    delete: Operation | None = None
    options: Operation | None = None
    head: Operation | None = None
    patch: Operation | None = None


class Contact(_Model):
    name: str | None = None
    url: str | None = None
    email: str | None = None


class License(_Model):
    name: str | None = None
    url: str | None = None


class Info(_Model):
    title: str | None = None
    description: str | None = None
    version: str | None = None
    terms_of_service: str | None = Field(default=None, alias="termsOfService")
    contact: Contact | None = None
    license: License | None = None


class Tag(_Model):
    name: str
    description: str | None = None


class SecurityScheme(_Model):
    type: str
    description: str | None = None
    name: str | None = None
    in_: str | None = Field(default=None, alias="in")
    flow: str | None = None
    authorization_url: str | None = Field(default=None, alias="authorizationUrl")
    scopes: dict[str, str] | None = None


class DocumentMeta(_Model):
    """Document-level metadata read from the router file's header comments."""

    info: Info = Field(default_factory=Info)
    host: str | None = None
    schemes: list[str] = []
    security_definitions: dict[str, SecurityScheme] = {}
    security: list[dict[str, list[str]]] = []


class Document(_Model):
    swagger: str = SWAGGER_VERSION
    info: Info = Field(default_factory=Info)
    host: str | None = None
    base_path: str | None = Field(default=None, alias="basePath")
    schemes: list[str] = []
    paths: dict[str, PathItem] = {}
    definitions: dict[str, Schema] = {}
    security_definitions: dict[str, SecurityScheme] = Field(default={}, alias="securityDefinitions")
    security: list[dict[str, list[str]]] = []
    tags: list[Tag] = []

    def to_dict(self) -> dict[str, Any]:
        """Plain serializable form shared by the JSON and YAML renderers."""
        return _prune(self.model_dump(mode="json", by_alias=True, exclude_none=True))


PRUNABLE_KEYS = frozenset({
    "tags", "consumes", "produces", "parameters", "responses", "security", "schemes", "paths",
    "definitions", "securityDefinitions", "properties", "required", "enum", "scopes",
})


def _prune(value: Any) -> Any:
    if isinstance(value, dict):
        # security requirements map scheme names to possibly empty scope lists
        pruned = {k: v if k == "security" else _prune(v) for k, v in value.items()}
        return {k: v for k, v in pruned.items() if not (k in PRUNABLE_KEYS and v in ([], {}))}
    if isinstance(value, list):
        return [_prune(v) for v in value]
    return value
