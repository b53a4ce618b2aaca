import textwrap
from pathlib import Path

import pytest

from swagger_docgen.parser.index import DeclarationIndex
from swagger_docgen.parser.pysource import parse_source

ROUTER = '''\
# @APIVersion 1.0.0
# @Title object API
# @Description widgets and objects
# @Contact dev@example.com
# @SecurityDefinition api_key apiKey X-API-Key header "api key auth"
from app import web
from controllers import objects as object_ctrl
from controllers.user import UserController
from controllers.widget import WidgetController


def init():
    ns = web.Namespace(
        "/v1",
        web.ns_namespace("/object", web.ns_include(object_ctrl.ObjectController)),
        web.ns_namespace("/user", web.ns_include(UserController)),
        web.ns_include(WidgetController),
    )
    web.add_namespace(ns)
'''

OBJECT_CONTROLLER = '''\
from models.objects import Object


class ObjectController:
    """Operations about object"""

    def get(self, object_id: str):
        """
        @Title Get
        @Description find object by objectid
        @Param objectId=>object_id path string true "the objectid you want to get"
        @Success 200 {object} models.Object "the object"
        @Failure 403 :objectId is empty
        @router /:objectId [get]
        """

    def get_all(self):
        """
        @Title GetAll
        @Success 200 {array} models.Object "all objects"
        @router / [get]
        """

    def post(self):
        """
        @Title Create
        @Param body body models.Object true "The object content"
        @Success 200 {object} models.Object
        @Failure 403 body is empty
        @router / [post]
        """

    def helper(self):
        return None
'''

USER_CONTROLLER = '''\
class UserController:
    """Operations about users"""

    # @Title Login
    # @Param username query string true "The username for login"
    # @Security api_key
    # @router /login [get]
    def login(self, username: str, password: str):
        pass

    def get(self, uid: int):
        """
        @Title Get
        @Success 200 {object} models.User
        @router /:uid [get,post]
        """
'''

WIDGET_CONTROLLER = '''\
class WidgetController:
    def list(self):
        """
        @Title List
        @Success 200 {array} string "widget names"
        @router /widgets [get]
        """


class GadgetController:
    """Never registered."""

    def list(self):
        """
        @Title List
        @Success 200 {object} models.Gadget
        @router /gadgets [get]
        """
'''

OBJECT_MODELS = '''\
from datetime import datetime

from pydantic import BaseModel, Field


class Base:
    id: int = Field(description="identifier", required=True)
    created: datetime


class Object(Base):
    """A stored object."""

    score: int = Field(default=0, size=32)
    player_name: str = Field(alias="playerName", description="owner")
    tags: list[str]
    parent: "Object | None" = None
    secret: str = Field(json="-")
    children: list["Object"]


class Gadget(BaseModel):
    name: str
'''

USER_MODELS = '''\
from enum import Enum
from typing import Optional


class Role(Enum):
    ADMIN = "admin"
    GUEST = "guest"


class Profile:
    email: str
    owner: Optional["User"]


class User:
    name: str
    role: Role
    profile: Profile
    labels: dict[str, int]
'''

SAMPLE_FILES = {
    "routers/router.py": ROUTER,
    "controllers/objects.py": OBJECT_CONTROLLER,
    "controllers/user.py": USER_CONTROLLER,
    "controllers/widget.py": WIDGET_CONTROLLER,
    "models/objects.py": OBJECT_MODELS,
    "models/user.py": USER_MODELS,
}

# same project keyed by module id, for in-memory indexes
SAMPLE_SOURCES = {path[: -len(".py")].replace("/", "."): source for path, source in SAMPLE_FILES.items()}


def write_files(root: Path, files: dict[str, str]) -> Path:
    for name, content in files.items():
        path = root / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(textwrap.dedent(content), encoding="utf-8")
    return root


def index_from_sources(files: dict[str, str]) -> DeclarationIndex:
    """Build an index from {package_id: source} without touching the disk."""
    declarations = []
    for package_id, source in files.items():
        declarations.extend(parse_source(textwrap.dedent(source), package_id, file_path=package_id.replace(".", "/") + ".py"))
    return DeclarationIndex(declarations)


@pytest.fixture
def make_project(tmp_path):
    def _make(files: dict[str, str]) -> Path:
        return write_files(tmp_path / "project", files)

    return _make


@pytest.fixture
def sample_project(make_project) -> Path:
    return make_project(SAMPLE_FILES)
