"""Static structural checks for stack definitions.

Nothing here talks to AWS. These checks catch the mistakes the provisioning
engine would otherwise only report halfway through an apply: references to
undeclared resources, subnets outside their VPC, ingress rules that open more
than the stack's policy allows, and outputs that read attributes a resource
never exports.
"""

import ipaddress
import logging
from dataclasses import dataclass

from .graph import GraphError, all_references, creation_order
from .models import (
    INSTANCE,
    INTERNET_GATEWAY,
    ROUTE_TABLE,
    ROUTE_TABLE_ASSOCIATION,
    SECURITY_GROUP,
    SUBNET,
    VPC,
    SecurityGroupProperties,
    SecurityRule,
    StackDefinition,
)

logger = logging.getLogger(__name__)

ANY_IPV4 = "0.0.0.0/0"
ALL_PROTOCOLS = "-1"

# Attributes each resource type exposes after creation
OUTPUT_ATTRIBUTES = {
    VPC: {"id", "arn", "cidr_block"},
    SUBNET: {"id", "arn", "cidr_block", "availability_zone"},
    INTERNET_GATEWAY: {"id", "arn"},
    ROUTE_TABLE: {"id", "arn"},
    ROUTE_TABLE_ASSOCIATION: {"id"},
    SECURITY_GROUP: {"id", "arn", "name"},
    INSTANCE: {"id", "arn", "public_ip", "public_dns", "private_ip", "private_dns"},
}


class ValidationError(Exception):
    """Raised when a stack definition fails one or more checks."""

    def __init__(self, findings: list["Finding"]):
        self.findings = findings
        lines = "\n".join(f"  - {f}" for f in findings)
        super().__init__(f"{len(findings)} validation error(s):\n{lines}")


@dataclass(frozen=True)
class Finding:
    """A single failed check."""

    resource: str  # resource id, or output name for output checks
    message: str

    def __str__(self) -> str:
        return f"{self.resource}: {self.message}"


def _network(cidr: str):
    try:
        return ipaddress.ip_network(cidr, strict=True)
    except ValueError:
        return None


def _check_references(definition: StackDefinition) -> list[Finding]:
    findings = []
    for ref in all_references(definition):
        target = definition.get(ref.target)
        if target is None:
            findings.append(
                Finding(ref.source, f"{ref.field} references undeclared resource '{ref.target}'")
            )
        elif target.type != ref.target_type:
            findings.append(
                Finding(
                    ref.source,
                    f"{ref.field} references '{ref.target}' of type {target.type}, "
                    f"expected {ref.target_type}",
                )
            )
    return findings


def _check_cidrs(definition: StackDefinition) -> list[Finding]:
    """Check that CIDR blocks parse and that subnets nest inside their VPC."""
    findings = []

    for resource in definition.of_type(VPC):
        if _network(resource.properties.cidr_block) is None:
            findings.append(
                Finding(resource.id, f"invalid CIDR block '{resource.properties.cidr_block}'")
            )

    for resource in definition.of_type(SUBNET):
        props = resource.properties
        subnet = _network(props.cidr_block)
        if subnet is None:
            findings.append(Finding(resource.id, f"invalid CIDR block '{props.cidr_block}'"))
            continue

        vpc = definition.get(props.vpc)
        if vpc is None or vpc.type != VPC:
            continue
        vpc_net = _network(vpc.properties.cidr_block)
        if vpc_net is not None and (
            subnet.version != vpc_net.version or not subnet.subnet_of(vpc_net)
        ):
            findings.append(
                Finding(
                    resource.id,
                    f"CIDR block {props.cidr_block} is not within "
                    f"{vpc.id} ({vpc.properties.cidr_block})",
                )
            )

    for resource in definition.of_type(SECURITY_GROUP):
        for rule in resource.properties.ingress + resource.properties.egress:
            for cidr in rule.cidr_blocks:
                if _network(cidr) is None:
                    findings.append(Finding(resource.id, f"invalid CIDR block '{cidr}'"))

    for resource in definition.of_type(ROUTE_TABLE):
        for route in resource.properties.routes:
            if _network(route.cidr_block) is None:
                findings.append(
                    Finding(resource.id, f"invalid route destination '{route.cidr_block}'")
                )

    return findings


def _check_placement(definition: StackDefinition) -> list[Finding]:
    """Check availability zones and that routes stay inside one VPC."""
    findings = []

    for resource in definition.of_type(SUBNET):
        zone = resource.properties.availability_zone
        if not zone.startswith(definition.region):
            findings.append(
                Finding(
                    resource.id,
                    f"availability zone {zone} is not in region {definition.region}",
                )
            )

    for resource in definition.of_type(ROUTE_TABLE):
        for route in resource.properties.routes:
            gateway = definition.get(route.gateway)
            if gateway is None or gateway.type != INTERNET_GATEWAY:
                continue
            # Dangling gateway VPCs are already reported as references
            if definition.get(gateway.properties.vpc) is None:
                continue
            if gateway.properties.vpc != resource.properties.vpc:
                findings.append(
                    Finding(
                        resource.id,
                        f"route {route.cidr_block} targets gateway {gateway.id} "
                        f"attached to a different VPC ({gateway.properties.vpc})",
                    )
                )

    for resource in definition.of_type(INSTANCE):
        subnet = definition.get(resource.properties.subnet)
        if subnet is None or subnet.type != SUBNET:
            continue
        for group_id in resource.properties.security_groups:
            group = definition.get(group_id)
            if group is None or group.type != SECURITY_GROUP:
                continue
            if group.properties.vpc != subnet.properties.vpc:
                findings.append(
                    Finding(
                        resource.id,
                        f"security group {group_id} belongs to a different VPC "
                        f"than subnet {subnet.id}",
                    )
                )

    return findings


def _rule_ports(rule: SecurityRule) -> set[int]:
    if rule.protocol == ALL_PROTOCOLS:
        return set(range(0, 65536))
    return set(range(rule.from_port, rule.to_port + 1))


def ingress_ports(group: SecurityGroupProperties) -> set[int]:
    """Return every port any ingress rule of the group opens."""
    ports: set[int] = set()
    for rule in group.ingress:
        ports |= _rule_ports(rule)
    return ports


def allows_all_egress(group: SecurityGroupProperties) -> bool:
    """Return True when some egress rule permits all traffic to anywhere."""
    return any(
        rule.protocol == ALL_PROTOCOLS and ANY_IPV4 in rule.cidr_blocks
        for rule in group.egress
    )


def _check_ports(definition: StackDefinition) -> list[Finding]:
    findings = []
    for resource in definition.of_type(SECURITY_GROUP):
        for rule in resource.properties.ingress + resource.properties.egress:
            if not (0 <= rule.from_port <= rule.to_port <= 65535):
                findings.append(
                    Finding(
                        resource.id,
                        f"invalid port range {rule.from_port}-{rule.to_port}",
                    )
                )
    return findings


def _check_policy(definition: StackDefinition) -> list[Finding]:
    allowed = definition.policy.allowed_ingress_ports
    if allowed is None:
        return []

    findings = []
    for resource in definition.of_type(SECURITY_GROUP):
        for rule in resource.properties.ingress:
            extra = _rule_ports(rule) - set(allowed)
            if extra:
                findings.append(
                    Finding(
                        resource.id,
                        f"ingress rule {rule.protocol} {rule.from_port}-{rule.to_port} "
                        f"opens ports outside the allowed set {sorted(allowed)}",
                    )
                )
    return findings


def _check_outputs(definition: StackDefinition) -> list[Finding]:
    findings = []
    names: set[str] = set()
    for output in definition.outputs:
        if output.name in names:
            findings.append(Finding(output.name, "duplicate output name"))
        names.add(output.name)

        target = definition.get(output.resource)
        if target is None:
            findings.append(
                Finding(output.name, f"{output.expression} references undeclared resource")
            )
            continue
        exported = OUTPUT_ATTRIBUTES.get(target.type, set())
        if output.attribute not in exported:
            findings.append(
                Finding(
                    output.name,
                    f"{target.type} does not export attribute '{output.attribute}'",
                )
            )
    return findings


def _check_graph(definition: StackDefinition) -> list[Finding]:
    try:
        creation_order(definition)
    except GraphError as e:
        return [Finding(definition.id, str(e))]
    return []


def validate_stack(definition: StackDefinition) -> list[Finding]:
    """Run every check and return the findings (empty when the stack is valid)."""
    reference_findings = _check_references(definition)
    findings = (
        reference_findings
        + _check_cidrs(definition)
        + _check_placement(definition)
        + _check_ports(definition)
        + _check_policy(definition)
        + _check_outputs(definition)
    )
    # Unresolved references already make the ordering fail
    if not reference_findings:
        findings += _check_graph(definition)

    logger.debug("Validated stack %s: %d finding(s)", definition.id, len(findings))
    return findings


def check_stack(definition: StackDefinition) -> None:
    """Validate a stack definition.

    Raises:
        ValidationError: If any check fails
    """
    findings = validate_stack(definition)
    if findings:
        raise ValidationError(findings)
