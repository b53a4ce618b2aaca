from conftest import SAMPLE_SOURCES, index_from_sources

from swagger_docgen.generator.resolver import TypeModelResolver, split_map_type


def _resolver(sources=None):
    return TypeModelResolver(index_from_sources(sources or SAMPLE_SOURCES))


class TestSplitMapType:
    def test_simple(self):
        assert split_map_type("map[string]int") == ("string", "int")

    def test_nested_key_brackets(self):
        assert split_map_type("map[[2]int][]string") == ("[2]int", "[]string")


class TestResolve:
    def test_primitives_stay_inline(self):
        resolver = _resolver()
        schema = resolver.resolve("int32")
        assert (schema.type, schema.format, schema.ref) == ("integer", "int32", None)
        assert resolver.definitions == {}

    def test_containers(self):
        resolver = _resolver()
        schema = resolver.resolve("map[string][]*int")
        assert schema.type == "object"
        assert schema.additional_properties.type == "array"
        assert schema.additional_properties.items.type == "integer"

    def test_named_type_becomes_reference(self):
        resolver = _resolver()
        schema = resolver.resolve("models.Object")
        assert schema.ref == "objects.Object"
        assert "objects.Object" in resolver.definitions

    def test_repeated_resolution_reuses_definition(self):
        resolver = _resolver()
        resolver.resolve("models.User")
        calls = resolver.resolve_calls
        definitions = dict(resolver.definitions)
        resolver.resolve("models.User")
        resolver.resolve("[]models.User")
        assert resolver.resolve_calls == calls
        assert resolver.definitions == definitions
        assert resolver.definitions["user.User"] is definitions["user.User"]

    def test_mutual_recursion_terminates_with_references(self):
        resolver = _resolver()
        resolver.resolve("models.User")
        profile = resolver.definitions["user.Profile"]
        user = resolver.definitions["user.User"]
        assert profile.properties["owner"].ref == "user.User"
        assert user.properties["profile"].ref == "user.Profile"
        assert user.properties["labels"].additional_properties.type == "integer"

    def test_self_reference(self):
        resolver = _resolver()
        resolver.resolve("models.Object")
        obj = resolver.definitions["objects.Object"]
        assert obj.properties["parent"].ref == "objects.Object"
        assert obj.properties["children"].items.ref == "objects.Object"

    def test_unknown_type_gets_stub_and_warning(self):
        resolver = _resolver()
        schema = resolver.resolve("models.Missing")
        assert schema.ref == "models.Missing"
        assert resolver.definitions["models.Missing"].type == "object"
        assert resolver.definitions["models.Missing"].title == "Missing"
        assert [w.kind for w in resolver.warnings] == ["resolution"]
        assert "models.Missing" in resolver.warnings[0].message

    def test_bare_name_uses_package_hint(self):
        resolver = _resolver()
        assert resolver.resolve("Role", "user").ref == "user.Role"


class TestStructDefinitions:
    def test_embedded_fields_are_flattened(self):
        resolver = _resolver()
        resolver.resolve("models.Object")
        obj = resolver.definitions["objects.Object"]
        assert list(obj.properties)[:2] == ["id", "created"]
        assert "Base" not in obj.properties
        assert obj.required == ["id"]
        assert obj.description == "A stored object."

    def test_field_tags(self):
        resolver = _resolver()
        resolver.resolve("models.Object")
        props = resolver.definitions["objects.Object"].properties
        assert props["id"].description == "identifier"
        assert props["created"].format == "datetime"
        assert props["score"].format == "int32"
        assert props["score"].default == 0
        assert props["playerName"].description == "owner"
        assert "player_name" not in props
        assert "secret" not in props
        assert props["tags"].items.type == "string"

    def test_doc_default_and_example(self):
        resolver = _resolver({
            "shop.models": '''
                from pydantic import Field

                class Item:
                    count: int = Field(doc="default(5)", example="3")
                    code: str = Field(size=8)
                    broken: int = Field(doc="nothing here")
                    flag: bool = Field(default="maybe")
            ''',
        })
        resolver.resolve("models.Item")
        props = resolver.definitions["models.Item"].properties
        assert props["count"].default == 5
        assert props["count"].example == 3
        assert props["code"].max_length == 8
        assert props["broken"].default is None
        assert props["flag"].default == "maybe"
        assert len(resolver.warnings) == 2

    def test_omitted_fields(self):
        resolver = _resolver({
            "shop.models": '''
                from pydantic import Field

                class Item:
                    name: str = Field(json="label,omitempty")
                    internal: str = Field(ignore=True)
                    skipped: str = Field(omit="true")
            ''',
        })
        resolver.resolve("models.Item")
        assert list(resolver.definitions["models.Item"].properties) == ["label"]


class TestEnumAndAlias:
    def test_enum(self):
        resolver = _resolver()
        resolver.resolve("models.Role")
        role = resolver.definitions["user.Role"]
        assert role.type == "string"
        assert role.enum == ["admin", "guest"]
        assert role.example == "admin"

    def test_integer_enum(self):
        resolver = _resolver({"shop.models": "import enum\n\nclass Level(enum.IntEnum):\n    LOW = 1\n    HIGH = 2\n"})
        resolver.resolve("models.Level")
        assert resolver.definitions["models.Level"].type == "integer"

    def test_alias_of_list(self):
        resolver = _resolver({
            "shop.models": '''
                class Item:
                    name: str

                Items = list[Item]
            ''',
        })
        schema = resolver.resolve("models.Items")
        assert schema.ref == "models.Items"
        items = resolver.definitions["models.Items"]
        assert items.type == "array"
        assert items.items.ref == "models.Item"
        assert "models.Item" in resolver.definitions

    def test_bare_containers_hold_objects(self):
        resolver = _resolver({
            "shop.models": '''
                from typing import Dict

                class Bag:
                    items: list
                    names: set
                    meta: Dict
            ''',
        })
        resolver.resolve("models.Bag")
        props = resolver.definitions["models.Bag"].properties
        assert resolver.warnings == []
        assert list(resolver.definitions) == ["models.Bag"]
        assert (props["items"].type, props["items"].items.type) == ("array", "object")
        assert (props["names"].type, props["names"].items.type) == ("array", "object")
        assert props["meta"].type == "object"
        assert props["meta"].additional_properties.type == "object"
