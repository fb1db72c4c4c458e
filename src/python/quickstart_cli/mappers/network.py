"""Mappers for VPC networking resources."""

import pulumi
import pulumi_aws as aws

from ..models import Resource, SecurityRule


def _tags(resource: Resource) -> dict[str, str]:
    """Resource tags, with a Name tag defaulting to the resource id."""
    return {"Name": resource.id, **resource.properties.tags}


def create_vpc(
    resource: Resource,
    created: dict[str, pulumi.CustomResource],
    opts: pulumi.ResourceOptions,
) -> aws.ec2.Vpc:
    """Create the network container.

    Args:
        resource: Parsed aws:vpc resource from stack.yaml
        created: Already-created resources by id (unused, no references)
        opts: Resource options carrying parent and provider

    Returns:
        Pulumi Vpc resource
    """
    props = resource.properties
    return aws.ec2.Vpc(
        resource.id,
        cidr_block=props.cidr_block,
        enable_dns_support=props.enable_dns_support,
        enable_dns_hostnames=props.enable_dns_hostnames,
        tags=_tags(resource),
        opts=opts,
    )


def create_subnet(
    resource: Resource,
    created: dict[str, pulumi.CustomResource],
    opts: pulumi.ResourceOptions,
) -> aws.ec2.Subnet:
    """Create a subnet inside its VPC."""
    props = resource.properties
    return aws.ec2.Subnet(
        resource.id,
        vpc_id=created[props.vpc].id,
        cidr_block=props.cidr_block,
        availability_zone=props.availability_zone,
        map_public_ip_on_launch=props.map_public_ip_on_launch,
        tags=_tags(resource),
        opts=opts,
    )


def create_internet_gateway(
    resource: Resource,
    created: dict[str, pulumi.CustomResource],
    opts: pulumi.ResourceOptions,
) -> aws.ec2.InternetGateway:
    props = resource.properties
    return aws.ec2.InternetGateway(
        resource.id,
        vpc_id=created[props.vpc].id,
        tags=_tags(resource),
        opts=opts,
    )


def create_route_table(
    resource: Resource,
    created: dict[str, pulumi.CustomResource],
    opts: pulumi.ResourceOptions,
) -> aws.ec2.RouteTable:
    """Create a route table with its inline routes.

    Each route forwards its destination block to an internet gateway declared
    in the same stack.
    """
    props = resource.properties
    routes = [
        aws.ec2.RouteTableRouteArgs(
            cidr_block=route.cidr_block,
            gateway_id=created[route.gateway].id,
        )
        for route in props.routes
    ]
    return aws.ec2.RouteTable(
        resource.id,
        vpc_id=created[props.vpc].id,
        routes=routes,
        tags=_tags(resource),
        opts=opts,
    )


def create_route_table_association(
    resource: Resource,
    created: dict[str, pulumi.CustomResource],
    opts: pulumi.ResourceOptions,
) -> aws.ec2.RouteTableAssociation:
    props = resource.properties
    return aws.ec2.RouteTableAssociation(
        resource.id,
        subnet_id=created[props.subnet].id,
        route_table_id=created[props.route_table].id,
        opts=opts,
    )


def _ingress_args(rule: SecurityRule) -> aws.ec2.SecurityGroupIngressArgs:
    return aws.ec2.SecurityGroupIngressArgs(
        protocol=rule.protocol,
        from_port=rule.from_port,
        to_port=rule.to_port,
        cidr_blocks=rule.cidr_blocks,
        description=rule.description or None,
    )


def _egress_args(rule: SecurityRule) -> aws.ec2.SecurityGroupEgressArgs:
    return aws.ec2.SecurityGroupEgressArgs(
        protocol=rule.protocol,
        from_port=rule.from_port,
        to_port=rule.to_port,
        cidr_blocks=rule.cidr_blocks,
        description=rule.description or None,
    )


def create_security_group(
    resource: Resource,
    created: dict[str, pulumi.CustomResource],
    opts: pulumi.ResourceOptions,
) -> aws.ec2.SecurityGroup:
    """Create a security group with inline ingress and egress rules."""
    props = resource.properties
    return aws.ec2.SecurityGroup(
        resource.id,
        vpc_id=created[props.vpc].id,
        description=props.description,
        ingress=[_ingress_args(rule) for rule in props.ingress],
        egress=[_egress_args(rule) for rule in props.egress],
        tags=_tags(resource),
        opts=opts,
    )
