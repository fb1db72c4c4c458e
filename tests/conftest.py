"""Shared fixtures for quickstart_cli tests."""

import copy
from pathlib import Path

import pytest
import yaml

from quickstart_cli import stack_loader
from quickstart_cli.stack_loader import parse_stack

STACKS_DIR = Path(__file__).parent.parent / "infra" / "stacks"
WEB_SERVER_YAML = STACKS_DIR / "web-server" / "stack.yaml"

with open(WEB_SERVER_YAML) as f:
    _WEB_SERVER_DATA = yaml.safe_load(f)


def web_server_data() -> dict:
    """A fresh copy of the shipped web-server stack as plain YAML data."""
    return copy.deepcopy(_WEB_SERVER_DATA)


def find_resource(data: dict, resource_id: str) -> dict:
    for resource in data["resources"]:
        if resource["id"] == resource_id:
            return resource
    raise KeyError(resource_id)


@pytest.fixture(autouse=True)
def shipped_stacks(monkeypatch):
    """Point the loader at the repository's infra/stacks directory."""
    monkeypatch.setattr(stack_loader, "STACKS_BASE_PATH", STACKS_DIR)
    return STACKS_DIR


@pytest.fixture
def stack_data() -> dict:
    return web_server_data()


@pytest.fixture
def definition(stack_data):
    return parse_stack(stack_data)


@pytest.fixture
def stacks_dir(tmp_path, monkeypatch):
    """An empty stacks directory; write stack.yaml files into it per test."""
    monkeypatch.setattr(stack_loader, "STACKS_BASE_PATH", tmp_path)
    return tmp_path


def write_stack(base: Path, name: str, data) -> Path:
    stack_dir = base / name
    stack_dir.mkdir(parents=True, exist_ok=True)
    path = stack_dir / "stack.yaml"
    if isinstance(data, str):
        path.write_text(data)
    else:
        path.write_text(yaml.safe_dump(data))
    return path
