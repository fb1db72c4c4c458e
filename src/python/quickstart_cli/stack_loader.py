"""Stack definition loader for YAML files."""

import logging
import os
from pathlib import Path

import yaml

from .models import (
    INSTANCE,
    INTERNET_GATEWAY,
    RESOURCE_TYPES,
    ROUTE_TABLE,
    ROUTE_TABLE_ASSOCIATION,
    SECURITY_GROUP,
    SUBNET,
    VPC,
    InstanceProperties,
    InternetGatewayProperties,
    OutputSpec,
    Policy,
    Resource,
    Route,
    RouteTableAssociationProperties,
    RouteTableProperties,
    SecurityGroupProperties,
    SecurityRule,
    StackDefinition,
    SubnetProperties,
    VpcProperties,
)

logger = logging.getLogger(__name__)

# Base path for stack definitions
STACKS_BASE_PATH = Path(
    os.environ.get(
        "QUICKSTART_STACKS_DIR",
        Path(__file__).parent.parent.parent.parent / "infra" / "stacks",
    )
)

STACK_FILE = "stack.yaml"


class StackNotFoundError(Exception):
    """Raised when a stack cannot be found."""

    pass


class StackParseError(Exception):
    """Raised when a stack.yaml is malformed."""

    pass


def discover_stacks() -> list[str]:
    """Return list of available stack names.

    Returns:
        Sorted list of stack directory names that contain stack.yaml
    """
    stacks = []
    if not STACKS_BASE_PATH.exists():
        return stacks

    for stack_dir in STACKS_BASE_PATH.iterdir():
        if stack_dir.is_dir() and (stack_dir / STACK_FILE).exists():
            stacks.append(stack_dir.name)
    return sorted(stacks)


def get_stack_path(stack_name: str) -> Path:
    """Get the path to a stack's stack.yaml file.

    Args:
        stack_name: Name of the stack directory

    Returns:
        Path to stack.yaml

    Raises:
        StackNotFoundError: If stack directory or stack.yaml doesn't exist
    """
    path = STACKS_BASE_PATH / stack_name / STACK_FILE
    if not path.exists():
        raise StackNotFoundError(f"Stack '{stack_name}' not found at {path}")
    return path


def _tags(props: dict) -> dict[str, str]:
    tags = props.get("tags") or {}
    if not isinstance(tags, dict):
        raise TypeError("tags must be a mapping")
    return {str(k): str(v) for k, v in tags.items()}


def _list(props: dict, key: str) -> list:
    value = props.get(key) or []
    if not isinstance(value, list):
        raise TypeError(f"{key} must be a list, got {value!r}")
    return value


def _parse_rule(data: dict) -> SecurityRule:
    if not isinstance(data, dict):
        raise TypeError(f"rule must be a mapping, got {data!r}")
    return SecurityRule(
        protocol=str(data.get("protocol", "tcp")),
        from_port=int(data["from_port"]),
        to_port=int(data["to_port"]),
        cidr_blocks=list(_list(data, "cidr_blocks")),
        description=data.get("description", ""),
    )


def _parse_vpc(props: dict) -> VpcProperties:
    return VpcProperties(
        cidr_block=props["cidr_block"],
        enable_dns_support=bool(props.get("enable_dns_support", True)),
        enable_dns_hostnames=bool(props.get("enable_dns_hostnames", True)),
        tags=_tags(props),
    )


def _parse_subnet(props: dict) -> SubnetProperties:
    return SubnetProperties(
        vpc=props["vpc"],
        cidr_block=props["cidr_block"],
        availability_zone=props["availability_zone"],
        map_public_ip_on_launch=bool(props.get("map_public_ip_on_launch", False)),
        tags=_tags(props),
    )


def _parse_internet_gateway(props: dict) -> InternetGatewayProperties:
    return InternetGatewayProperties(vpc=props["vpc"], tags=_tags(props))


def _parse_route_table(props: dict) -> RouteTableProperties:
    routes = [
        Route(cidr_block=route["cidr_block"], gateway=route["gateway"])
        for route in _list(props, "routes")
    ]
    return RouteTableProperties(vpc=props["vpc"], routes=routes, tags=_tags(props))


def _parse_route_table_association(props: dict) -> RouteTableAssociationProperties:
    return RouteTableAssociationProperties(
        subnet=props["subnet"],
        route_table=props["route_table"],
    )


def _parse_security_group(props: dict) -> SecurityGroupProperties:
    """Parse security group properties, including nested ingress/egress rules.

    Args:
        props: Properties dict from stack.yaml

    Returns:
        SecurityGroupProperties dataclass
    """
    return SecurityGroupProperties(
        vpc=props["vpc"],
        description=props.get("description", "Managed by quickstart"),
        ingress=[_parse_rule(rule) for rule in _list(props, "ingress")],
        egress=[_parse_rule(rule) for rule in _list(props, "egress")],
        tags=_tags(props),
    )


def _parse_instance(props: dict) -> InstanceProperties:
    return InstanceProperties(
        ami=props["ami"],
        instance_type=props["instance_type"],
        subnet=props["subnet"],
        security_groups=list(_list(props, "security_groups")),
        key_name=props.get("key_name"),
        tags=_tags(props),
    )


_PARSERS = {
    VPC: _parse_vpc,
    SUBNET: _parse_subnet,
    INTERNET_GATEWAY: _parse_internet_gateway,
    ROUTE_TABLE: _parse_route_table,
    ROUTE_TABLE_ASSOCIATION: _parse_route_table_association,
    SECURITY_GROUP: _parse_security_group,
    INSTANCE: _parse_instance,
}


def _parse_resource(resource_data: dict) -> Resource:
    """Parse a single resource definition.

    Args:
        resource_data: Resource dict from stack.yaml

    Returns:
        Resource dataclass

    Raises:
        StackParseError: If resource type is not supported or a key is missing
    """
    if not isinstance(resource_data, dict):
        raise StackParseError(f"Resource entry must be a mapping, got {resource_data!r}")

    resource_type = resource_data.get("type")
    if resource_type not in _PARSERS:
        raise StackParseError(
            f"Unsupported resource type: {resource_type}. "
            f"Supported types: {', '.join(RESOURCE_TYPES)}"
        )

    properties_data = resource_data.get("properties") or {}
    if not isinstance(properties_data, dict):
        raise StackParseError(
            f"Resource '{resource_data.get('id', '?')}' ({resource_type}) "
            "properties must be a mapping"
        )

    try:
        resource_id = resource_data["id"]
        properties = _PARSERS[resource_type](properties_data)
    except KeyError as e:
        raise StackParseError(
            f"Resource '{resource_data.get('id', '?')}' ({resource_type}) "
            f"is missing required key {e}"
        ) from e
    except (AttributeError, TypeError, ValueError) as e:
        raise StackParseError(
            f"Resource '{resource_data.get('id', '?')}' ({resource_type}) "
            f"has an invalid value: {e}"
        ) from e

    return Resource(id=resource_id, type=resource_type, properties=properties)


def _parse_output(output_data: dict) -> OutputSpec:
    """Parse an output of the form {name: ..., value: "<resource-id>.<attribute>"}."""
    if not isinstance(output_data, dict):
        raise StackParseError(
            f"Output entry must be a mapping with 'name' and 'value', got {output_data!r}"
        )

    try:
        name = output_data["name"]
        expression = output_data["value"]
    except KeyError as e:
        raise StackParseError(f"Output is missing required key {e}") from e

    resource_id, sep, attribute = str(expression).partition(".")
    if not sep or not resource_id or not attribute or "." in attribute:
        raise StackParseError(
            f"Output '{name}' has invalid value '{expression}'. "
            "Expected '<resource-id>.<attribute>'."
        )
    return OutputSpec(name=name, resource=resource_id, attribute=attribute)


def _section(data: dict, key: str) -> list:
    value = data.get(key) or []
    if not isinstance(value, list):
        raise StackParseError(f"'{key}' must be a list")
    return value


def _parse_policy(data: dict) -> Policy:
    policy_data = data.get("policy") or {}
    if not isinstance(policy_data, dict):
        raise StackParseError("'policy' must be a mapping")

    ports = policy_data.get("allowed_ingress_ports")
    if ports is None:
        return Policy(allowed_ingress_ports=None)
    if not isinstance(ports, list):
        raise StackParseError(
            f"policy.allowed_ingress_ports must be a list of ports, got {ports!r}"
        )
    try:
        return Policy(allowed_ingress_ports=[int(p) for p in ports])
    except (TypeError, ValueError) as e:
        raise StackParseError(f"policy.allowed_ingress_ports has an invalid port: {e}") from e


def parse_stack(data: dict) -> StackDefinition:
    """Build a StackDefinition from already-parsed YAML data.

    Args:
        data: Top-level mapping from stack.yaml

    Returns:
        StackDefinition dataclass

    Raises:
        StackParseError: If the data is malformed
    """
    if not isinstance(data, dict):
        raise StackParseError("Stack definition must be a mapping")

    for key in ("id", "region"):
        if key not in data:
            raise StackParseError(f"Stack definition is missing required key '{key}'")

    resources = [_parse_resource(r) for r in _section(data, "resources")]

    seen: set[str] = set()
    for resource in resources:
        if resource.id in seen:
            raise StackParseError(f"Duplicate resource id: {resource.id}")
        seen.add(resource.id)

    outputs = [_parse_output(o) for o in _section(data, "outputs")]

    return StackDefinition(
        id=data["id"],
        description=data.get("description", ""),
        region=data["region"],
        resources=resources,
        outputs=outputs,
        policy=_parse_policy(data),
    )


def load_stack(stack_name: str) -> StackDefinition:
    """Load and parse a stack definition.

    Args:
        stack_name: Name of the stack to load

    Returns:
        StackDefinition dataclass with parsed configuration

    Raises:
        StackNotFoundError: If stack doesn't exist
        StackParseError: If YAML is invalid or malformed
    """
    path = get_stack_path(stack_name)

    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise StackParseError(f"Invalid YAML in {path}: {e}") from e

    definition = parse_stack(data)
    logger.debug(
        "Loaded stack %s from %s (%d resources)",
        definition.id,
        path,
        len(definition.resources),
    )
    return definition
