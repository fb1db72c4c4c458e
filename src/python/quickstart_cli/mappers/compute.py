"""Mapper for EC2 instance resources."""

import pulumi
import pulumi_aws as aws

from ..models import Resource


def create_instance(
    resource: Resource,
    created: dict[str, pulumi.CustomResource],
    opts: pulumi.ResourceOptions,
) -> aws.ec2.Instance:
    """Create a Pulumi aws Instance resource from a stack Resource.

    Args:
        resource: Parsed aws:instance resource from stack.yaml
        created: Already-created resources by id, used to resolve the subnet
            and security group references
        opts: Resource options carrying parent and provider

    Returns:
        Pulumi Instance resource
    """
    props = resource.properties

    return aws.ec2.Instance(
        resource.id,
        ami=props.ami,
        instance_type=props.instance_type,
        # Network placement
        subnet_id=created[props.subnet].id,
        vpc_security_group_ids=[created[group].id for group in props.security_groups],
        # Existing key pair for SSH access
        key_name=props.key_name,
        tags={"Name": resource.id, **props.tags},
        opts=opts,
    )
