"""Tests for static stack validation."""

import ipaddress

import pytest

from conftest import find_resource
from quickstart_cli.models import SECURITY_GROUP, SUBNET, VPC
from quickstart_cli.stack_loader import parse_stack
from quickstart_cli.validation import (
    ValidationError,
    allows_all_egress,
    check_stack,
    ingress_ports,
    validate_stack,
)


def _messages(findings) -> list[str]:
    return [str(f) for f in findings]


class TestShippedStack:
    """Structural facts the web-server template must satisfy."""

    def test_is_valid(self, definition) -> None:
        assert validate_stack(definition) == []
        check_stack(definition)

    def test_subnet_inside_vpc(self, definition) -> None:
        vpc = ipaddress.ip_network(definition.of_type(VPC)[0].properties.cidr_block)
        subnet = ipaddress.ip_network(definition.of_type(SUBNET)[0].properties.cidr_block)

        assert subnet.subnet_of(vpc)

    def test_security_group_opens_only_ssh(self, definition) -> None:
        group = definition.of_type(SECURITY_GROUP)[0].properties

        assert ingress_ports(group) == {22}
        assert allows_all_egress(group)

    def test_output_reads_instance_public_ip(self, definition) -> None:
        output = definition.outputs[0]

        assert definition.get(output.resource).type == "aws:instance"
        assert output.attribute == "public_ip"


class TestReferences:
    def test_undeclared_reference(self, stack_data) -> None:
        find_resource(stack_data, "main-igw")["properties"]["vpc"] = "ghost-vpc"
        findings = validate_stack(parse_stack(stack_data))

        assert _messages(findings) == [
            "main-igw: vpc references undeclared resource 'ghost-vpc'"
        ]

    def test_wrong_target_type(self, stack_data) -> None:
        find_resource(stack_data, "web-instance")["properties"]["subnet"] = "main-vpc"
        findings = validate_stack(parse_stack(stack_data))

        assert any(
            "subnet references 'main-vpc' of type aws:vpc, expected aws:subnet" in m
            for m in _messages(findings)
        )

    def test_check_stack_raises_with_all_findings(self, stack_data) -> None:
        find_resource(stack_data, "main-igw")["properties"]["vpc"] = "ghost-vpc"
        find_resource(stack_data, "public-rta")["properties"]["route_table"] = "ghost-rt"

        with pytest.raises(ValidationError) as excinfo:
            check_stack(parse_stack(stack_data))

        assert len(excinfo.value.findings) == 2
        assert "2 validation error(s)" in str(excinfo.value)


class TestAddressing:
    def test_subnet_outside_vpc(self, stack_data) -> None:
        find_resource(stack_data, "public-subnet")["properties"]["cidr_block"] = "10.1.1.0/24"
        findings = validate_stack(parse_stack(stack_data))

        assert _messages(findings) == [
            "public-subnet: CIDR block 10.1.1.0/24 is not within main-vpc (10.0.0.0/16)"
        ]

    def test_subnet_larger_than_vpc(self, stack_data) -> None:
        find_resource(stack_data, "public-subnet")["properties"]["cidr_block"] = "10.0.0.0/8"
        findings = validate_stack(parse_stack(stack_data))

        assert len(findings) == 1
        assert "not within main-vpc" in str(findings[0])

    @pytest.mark.parametrize("cidr", ["10.0.0.300/24", "10.0.1.5/24", "not-a-cidr"])
    def test_invalid_vpc_cidr(self, stack_data, cidr) -> None:
        find_resource(stack_data, "main-vpc")["properties"]["cidr_block"] = cidr
        findings = validate_stack(parse_stack(stack_data))

        assert f"main-vpc: invalid CIDR block '{cidr}'" in _messages(findings)

    def test_invalid_rule_cidr(self, stack_data) -> None:
        group = find_resource(stack_data, "ssh-sg")
        group["properties"]["ingress"][0]["cidr_blocks"] = ["0.0.0.0/33"]
        findings = validate_stack(parse_stack(stack_data))

        assert _messages(findings) == ["ssh-sg: invalid CIDR block '0.0.0.0/33'"]

    def test_availability_zone_outside_region(self, stack_data) -> None:
        find_resource(stack_data, "public-subnet")["properties"]["availability_zone"] = "eu-west-1a"
        findings = validate_stack(parse_stack(stack_data))

        assert _messages(findings) == [
            "public-subnet: availability zone eu-west-1a is not in region us-east-1"
        ]


class TestPlacement:
    def _second_vpc(self, stack_data) -> None:
        stack_data["resources"] += [
            {"id": "other-vpc", "type": "aws:vpc", "properties": {"cidr_block": "172.16.0.0/16"}},
            {"id": "other-igw", "type": "aws:internet-gateway", "properties": {"vpc": "other-vpc"}},
            {
                "id": "other-sg",
                "type": "aws:security-group",
                "properties": {"vpc": "other-vpc"},
            },
        ]

    def test_route_to_gateway_of_other_vpc(self, stack_data) -> None:
        self._second_vpc(stack_data)
        find_resource(stack_data, "public-rt")["properties"]["routes"][0]["gateway"] = "other-igw"
        findings = validate_stack(parse_stack(stack_data))

        assert len(findings) == 1
        assert "targets gateway other-igw attached to a different VPC" in str(findings[0])

    def test_security_group_of_other_vpc(self, stack_data) -> None:
        self._second_vpc(stack_data)
        find_resource(stack_data, "web-instance")["properties"]["security_groups"] = ["other-sg"]
        findings = validate_stack(parse_stack(stack_data))

        assert _messages(findings) == [
            "web-instance: security group other-sg belongs to a different VPC "
            "than subnet public-subnet"
        ]


class TestIngressPolicy:
    def test_extra_port_rejected(self, stack_data) -> None:
        group = find_resource(stack_data, "ssh-sg")
        group["properties"]["ingress"].append(
            {"protocol": "tcp", "from_port": 80, "to_port": 80, "cidr_blocks": ["0.0.0.0/0"]}
        )
        findings = validate_stack(parse_stack(stack_data))

        assert len(findings) == 1
        assert "tcp 80-80 opens ports outside the allowed set [22]" in str(findings[0])

    def test_all_traffic_ingress_rejected(self, stack_data) -> None:
        group = find_resource(stack_data, "ssh-sg")
        group["properties"]["ingress"][0].update(protocol="-1", from_port=0, to_port=0)
        findings = validate_stack(parse_stack(stack_data))

        assert len(findings) == 1

    def test_reversed_port_range(self, stack_data) -> None:
        del stack_data["policy"]
        group = find_resource(stack_data, "ssh-sg")
        group["properties"]["ingress"][0].update(from_port=443, to_port=80)
        findings = validate_stack(parse_stack(stack_data))

        assert _messages(findings) == ["ssh-sg: invalid port range 443-80"]

    def test_no_policy_allows_any_port(self, stack_data) -> None:
        del stack_data["policy"]
        group = find_resource(stack_data, "ssh-sg")
        group["properties"]["ingress"].append(
            {"protocol": "tcp", "from_port": 443, "to_port": 443, "cidr_blocks": ["0.0.0.0/0"]}
        )
        definition = parse_stack(stack_data)

        assert validate_stack(definition) == []
        assert ingress_ports(definition.get("ssh-sg").properties) == {22, 443}

    def test_restricted_egress_detected(self, stack_data) -> None:
        group = find_resource(stack_data, "ssh-sg")
        group["properties"]["egress"] = [
            {"protocol": "tcp", "from_port": 443, "to_port": 443, "cidr_blocks": ["0.0.0.0/0"]}
        ]
        definition = parse_stack(stack_data)

        assert not allows_all_egress(definition.get("ssh-sg").properties)


class TestOutputs:
    def test_unknown_attribute(self, stack_data) -> None:
        stack_data["outputs"] = [{"name": "ip", "value": "web-instance.elastic_ip"}]
        findings = validate_stack(parse_stack(stack_data))

        assert _messages(findings) == [
            "ip: aws:instance does not export attribute 'elastic_ip'"
        ]

    def test_undeclared_resource(self, stack_data) -> None:
        stack_data["outputs"] = [{"name": "ip", "value": "db-instance.public_ip"}]
        findings = validate_stack(parse_stack(stack_data))

        assert _messages(findings) == [
            "ip: db-instance.public_ip references undeclared resource"
        ]

    def test_duplicate_output_name(self, stack_data) -> None:
        stack_data["outputs"].append({"name": "instance_public_ip", "value": "main-vpc.id"})
        findings = validate_stack(parse_stack(stack_data))

        assert _messages(findings) == ["instance_public_ip: duplicate output name"]

    def test_association_id_exported(self, stack_data) -> None:
        stack_data["outputs"].append({"name": "rta", "value": "public-rta.id"})

        assert validate_stack(parse_stack(stack_data)) == []
