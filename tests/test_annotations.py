import pytest

from swagger_docgen.parser.annotations import (
    parse_document_meta,
    parse_operation,
    primitive_schema,
    tokenize_args,
)
from swagger_docgen.parser.base import ParamDescriptor


def _parse(doc: str, **kwargs):
    annotated, warnings = parse_operation(doc, controller="ObjectController", **kwargs)
    return annotated, warnings


class TestTokenizeArgs:
    def test_quoted_segment_is_one_token(self):
        assert tokenize_args('id path int true "the id"') == ["id", "path", "int", "true", "the id"]

    def test_collapses_whitespace(self):
        assert tokenize_args("  a \t b   c ") == ["a", "b", "c"]

    def test_empty(self):
        assert tokenize_args("") == []


class TestPrimitiveSchema:
    def test_go_style_names(self):
        assert primitive_schema("int64").type == "integer"
        assert primitive_schema("int64").format == "int64"
        assert primitive_schema("float32").format == "float"

    def test_python_names(self):
        assert primitive_schema("str").type == "string"
        assert primitive_schema("datetime").format == "datetime"

    def test_named_type_is_not_primitive(self):
        assert primitive_schema("models.User") is None


class TestParam:
    def test_path_param_round_trip(self):
        annotated, warnings = _parse('@Param id path int true "the id"')
        param = annotated.operation.parameters[0]
        assert warnings == []
        assert param.name == "id"
        assert param.in_ == "path"
        assert param.type == "integer"
        assert param.format == "int64"
        assert param.required is True
        assert param.description == "the id"
        assert param.schema_ is None

    def test_six_tokens_carry_default(self):
        annotated, _ = _parse('@Param limit query int 10 false "page size"')
        param = annotated.operation.parameters[0]
        assert param.default == 10
        assert param.required is False

    def test_invalid_default_keeps_text_and_warns(self):
        annotated, warnings = _parse('@Param limit query int ten false "page size"')
        assert annotated.operation.parameters[0].default == "ten"
        assert len(warnings) == 1

    def test_too_few_tokens_drops_param(self):
        annotated, warnings = _parse("@Param id path int\n@router /:id [get]")
        assert annotated.operation.parameters == []
        assert annotated.route == "/:id"
        assert warnings[0].kind == "parse"
        assert "at least 4" in warnings[0].message

    def test_unknown_location_falls_back_to_query(self):
        annotated, warnings = _parse('@Param id cookie string true "id"')
        assert annotated.operation.parameters[0].in_ == "query"
        assert len(warnings) == 1

    def test_body_model_param_uses_reference(self):
        annotated, _ = _parse('@Param body body models.Object true "The object content"')
        param = annotated.operation.parameters[0]
        assert param.type is None
        assert param.schema_.ref == "models.Object"

    def test_query_array_of_primitives(self):
        annotated, _ = _parse('@Param ids query []int false "ids"')
        param = annotated.operation.parameters[0]
        assert param.type == "array"
        assert param.items.type == "integer"

    def test_auto_type_uses_function_param(self):
        annotated, _ = _parse(
            '@Param uid path auto true "user id"',
            func_params=[ParamDescriptor(name="uid", type_ref="int")],
        )
        assert annotated.operation.parameters[0].type == "integer"

    def test_unmapped_function_params_are_documented(self):
        annotated, _ = _parse(
            '@Param username query string true "name"\n@router /:uid [get]',
            func_params=[
                ParamDescriptor(name="username", type_ref="str"),
                ParamDescriptor(name="uid", type_ref="int"),
                ParamDescriptor(name="verbose", type_ref="*bool"),
            ],
        )
        by_name = {p.name: p for p in annotated.operation.parameters}
        assert set(by_name) == {"username", "uid", "verbose"}
        assert by_name["uid"].in_ == "path"
        assert by_name["uid"].required is True
        assert by_name["verbose"].in_ == "query"
        assert by_name["verbose"].type == "boolean"


class TestResponses:
    def test_array_success_of_primitive(self):
        annotated, _ = _parse('@Success 200 {array} string "list of names"')
        response = annotated.operation.responses["200"]
        assert response.schema_.type == "array"
        assert response.schema_.items.type == "string"
        assert response.description == "list of names"

    def test_object_success_references_model(self):
        annotated, _ = _parse('@Success 200 {object} models.Object "the object"')
        assert annotated.operation.responses["200"].schema_.ref == "models.Object"

    def test_slice_type_means_array(self):
        annotated, _ = _parse("@Success 200 {object} []models.Object")
        schema = annotated.operation.responses["200"].schema_
        assert schema.type == "array"
        assert schema.items.ref == "models.Object"

    def test_unknown_shape_warns_and_uses_object(self):
        annotated, warnings = _parse("@Success 200 {map} models.Object")
        assert annotated.operation.responses["200"].schema_.ref == "models.Object"
        assert len(warnings) == 1

    def test_missing_type_after_shape_warns(self):
        annotated, warnings = _parse("@Success 200 {object}")
        assert annotated.operation.responses["200"].schema_ is None
        assert len(warnings) == 1

    def test_success_without_shape(self):
        annotated, _ = _parse("@Success 204 no content")
        assert annotated.operation.responses["204"].description == "no content"

    def test_failure(self):
        annotated, _ = _parse("@Failure 403 :objectId is empty")
        assert annotated.operation.responses["403"].description == ":objectId is empty"


class TestRouterAndMisc:
    def test_router_defaults_to_get(self):
        annotated, _ = _parse("@router /objects")
        assert annotated.methods == ["GET"]

    def test_router_method_list_is_upper_cased(self):
        annotated, _ = _parse("@router /:id [get,post]")
        assert annotated.route == "/:id"
        assert annotated.methods == ["GET", "POST"]

    def test_unknown_method_is_skipped(self):
        annotated, warnings = _parse("@router /:id [get,fetch]")
        assert annotated.methods == ["GET"]
        assert len(warnings) == 1

    def test_title_becomes_operation_id(self):
        annotated, _ = _parse("@Title Get\n@Summary short\n@Description long")
        operation = annotated.operation
        assert operation.operation_id == "ObjectController.Get"
        assert operation.summary == "short"
        assert operation.description == "long"

    def test_accept_sets_mime_types(self):
        annotated, _ = _parse("@Accept json,form")
        assert annotated.operation.consumes == ["application/json", "multipart/form-data"]
        assert annotated.operation.produces == ["application/json"]

    def test_security_and_deprecated(self):
        annotated, _ = _parse("@Security oauth read write\n@Deprecated true")
        assert annotated.operation.security == [{"oauth": ["read", "write"]}]
        assert annotated.operation.deprecated is True

    def test_comment_markers_and_unknown_tags_are_ignored(self):
        annotated, warnings = _parse("// @Title Get\n# @Unknown stuff\nplain prose")
        assert annotated.operation.operation_id == "ObjectController.Get"
        assert warnings == []
        assert annotated.route is None


class TestDocumentMeta:
    def test_info_fields(self):
        meta, warnings = parse_document_meta(
            "@APIVersion 1.0.0\n@Title demo\n@Contact a@b.c\n@License MIT\n@LicenseUrl http://mit\n"
            "@Schemes http,https\n@Host example.com"
        )
        assert warnings == []
        assert meta.info.version == "1.0.0"
        assert meta.info.title == "demo"
        assert meta.info.contact.email == "a@b.c"
        assert meta.info.license.name == "MIT"
        assert meta.info.license.url == "http://mit"
        assert meta.schemes == ["http", "https"]
        assert meta.host == "example.com"

    def test_security_definitions(self):
        meta, warnings = parse_document_meta(
            '@SecurityDefinition key apiKey X-Key header "key auth"\n'
            '@SecurityDefinition login basic\n'
            '@SecurityDefinition oauth oauth2 http://auth implicit read "read access" "oauth desc"\n'
            "@Security key"
        )
        assert warnings == []
        schemes = meta.security_definitions
        assert schemes["key"].in_ == "header"
        assert schemes["key"].description == "key auth"
        assert schemes["login"].type == "basic"
        assert schemes["oauth"].scopes == {"read": "read access"}
        assert schemes["oauth"].description == "oauth desc"
        assert meta.security == [{"key": []}]

    def test_invalid_security_definition_warns(self):
        meta, warnings = parse_document_meta("@SecurityDefinition key apiKey X-Key cookie")
        assert meta.security_definitions == {}
        assert len(warnings) == 1

    @pytest.mark.parametrize(
        "line, expected",
        [
            ("@SecurityDefinition lonely", "not enough params for @SecurityDefinition: 1"),
            ("@SecurityDefinition key bearer", "unknown security type 'bearer'"),
            ("@SecurityDefinition oauth oauth2 http://auth", "not enough params for oauth2 security 'oauth'"),
            ("@SecurityDefinition oauth oauth2 http://auth magic", "unknown oauth2 flow 'magic'"),
            ("@SecurityDefinition key apiKey X-Key", "not enough params for apiKey security 'key'"),
        ],
    )
    def test_security_definition_problems(self, line, expected):
        meta, warnings = parse_document_meta(line)
        assert meta.security_definitions == {}
        assert [w.kind for w in warnings] == ["parse"]
        assert expected in warnings[0].message
