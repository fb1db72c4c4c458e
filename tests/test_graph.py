"""Tests for reference extraction and resource ordering."""

import pytest

from conftest import find_resource
from quickstart_cli.graph import (
    GraphError,
    creation_order,
    dependency_map,
    dependents,
    resource_references,
    teardown_order,
    unresolved_references,
)
from quickstart_cli.models import INTERNET_GATEWAY, SECURITY_GROUP, SUBNET, VPC
from quickstart_cli.stack_loader import parse_stack


class TestReferences:
    def test_vpc_has_no_references(self, definition) -> None:
        assert resource_references(definition.get("main-vpc")) == []

    def test_route_table_references_vpc_and_gateway(self, definition) -> None:
        refs = resource_references(definition.get("public-rt"))

        assert [(r.field, r.target, r.target_type) for r in refs] == [
            ("vpc", "main-vpc", VPC),
            ("routes[0].gateway", "main-igw", INTERNET_GATEWAY),
        ]

    def test_instance_references_subnet_and_groups(self, definition) -> None:
        refs = resource_references(definition.get("web-instance"))

        assert [(r.field, r.target, r.target_type) for r in refs] == [
            ("subnet", "public-subnet", SUBNET),
            ("security_groups[0]", "ssh-sg", SECURITY_GROUP),
        ]
        assert all(r.source == "web-instance" for r in refs)

    def test_all_shipped_references_resolve(self, definition) -> None:
        assert unresolved_references(definition) == []

    def test_dependency_map(self, definition) -> None:
        deps = dependency_map(definition)

        assert deps["main-vpc"] == set()
        assert deps["public-rta"] == {"public-subnet", "public-rt"}
        assert deps["web-instance"] == {"public-subnet", "ssh-sg"}

    def test_dependents(self, definition) -> None:
        assert dependents(definition, "main-vpc") == {
            "public-subnet",
            "main-igw",
            "public-rt",
            "ssh-sg",
        }
        assert dependents(definition, "web-instance") == set()


class TestOrdering:
    def test_creation_order_of_shipped_stack(self, definition) -> None:
        assert creation_order(definition) == [
            "main-vpc",
            "public-subnet",
            "main-igw",
            "ssh-sg",
            "public-rt",
            "web-instance",
            "public-rta",
        ]

    def test_every_dependency_created_first(self, definition) -> None:
        order = creation_order(definition)
        position = {rid: i for i, rid in enumerate(order)}

        for rid, deps in dependency_map(definition).items():
            for dep in deps:
                assert position[dep] < position[rid]

    def test_teardown_covers_every_resource(self, definition) -> None:
        order = teardown_order(definition)

        assert sorted(order) == sorted(r.id for r in definition.resources)
        assert order[-1] == "main-vpc"
        assert order.index("public-rta") < order.index("public-subnet")
        assert order.index("web-instance") < order.index("ssh-sg")

    def test_declaration_order_does_not_matter(self, stack_data) -> None:
        stack_data["resources"].reverse()
        definition = parse_stack(stack_data)
        order = creation_order(definition)

        assert order[0] == "main-vpc"
        assert order.index("public-subnet") < order.index("web-instance")

    def test_unresolved_reference(self, stack_data) -> None:
        find_resource(stack_data, "public-subnet")["properties"]["vpc"] = "other-vpc"
        definition = parse_stack(stack_data)

        missing = unresolved_references(definition)
        assert [(r.source, r.target) for r in missing] == [("public-subnet", "other-vpc")]
        with pytest.raises(GraphError, match="public-subnet.vpc -> other-vpc"):
            creation_order(definition)

    def test_cycle_detected(self) -> None:
        definition = parse_stack(
            {
                "id": "cyclic",
                "region": "us-east-1",
                "resources": [
                    {
                        "id": "subnet-a",
                        "type": "aws:subnet",
                        "properties": {
                            "vpc": "subnet-a",
                            "cidr_block": "10.0.1.0/24",
                            "availability_zone": "us-east-1a",
                        },
                    }
                ],
            }
        )
        with pytest.raises(GraphError, match="Circular dependency"):
            creation_order(definition)
