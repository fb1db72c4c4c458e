"""Data models for quickstart_cli."""

from dataclasses import dataclass, field
from typing import Optional, Union


# Resource type identifiers used in stack.yaml
VPC = "aws:vpc"
SUBNET = "aws:subnet"
INTERNET_GATEWAY = "aws:internet-gateway"
ROUTE_TABLE = "aws:route-table"
ROUTE_TABLE_ASSOCIATION = "aws:route-table-association"
SECURITY_GROUP = "aws:security-group"
INSTANCE = "aws:instance"

RESOURCE_TYPES = (
    VPC,
    SUBNET,
    INTERNET_GATEWAY,
    ROUTE_TABLE,
    ROUTE_TABLE_ASSOCIATION,
    SECURITY_GROUP,
    INSTANCE,
)


@dataclass
class AWSCredentials:
    """Credentials and region handed to the AWS provider."""

    access_key_id: str
    secret_access_key: str
    region: Optional[str] = None


@dataclass
class VpcProperties:
    """Network container."""

    cidr_block: str
    enable_dns_support: bool = True
    enable_dns_hostnames: bool = True
    tags: dict[str, str] = field(default_factory=dict)


@dataclass
class SubnetProperties:
    """Subnet carved out of a VPC, bound to one availability zone."""

    vpc: str  # resource id of the VPC
    cidr_block: str
    availability_zone: str
    map_public_ip_on_launch: bool = False
    tags: dict[str, str] = field(default_factory=dict)


@dataclass
class InternetGatewayProperties:
    """Internet gateway attached to a VPC."""

    vpc: str
    tags: dict[str, str] = field(default_factory=dict)


@dataclass
class Route:
    """A single route table entry."""

    cidr_block: str  # e.g., "0.0.0.0/0"
    gateway: str  # resource id of the internet gateway


@dataclass
class RouteTableProperties:
    """Route table owned by a VPC."""

    vpc: str
    routes: list[Route] = field(default_factory=list)
    tags: dict[str, str] = field(default_factory=dict)


@dataclass
class RouteTableAssociationProperties:
    """Binds a subnet to a route table."""

    subnet: str
    route_table: str


@dataclass
class SecurityRule:
    """Ingress or egress rule of a security group."""

    protocol: str  # "tcp", "udp", "icmp" or "-1" for all traffic
    from_port: int
    to_port: int
    cidr_blocks: list[str] = field(default_factory=list)
    description: str = ""


@dataclass
class SecurityGroupProperties:
    """Stateful allow-list attached to instances."""

    vpc: str
    description: str = "Managed by quickstart"
    ingress: list[SecurityRule] = field(default_factory=list)
    egress: list[SecurityRule] = field(default_factory=list)
    tags: dict[str, str] = field(default_factory=dict)


@dataclass
class InstanceProperties:
    """EC2 instance placed in a subnet."""

    ami: str
    instance_type: str  # e.g., "t2.micro"
    subnet: str
    security_groups: list[str] = field(default_factory=list)
    key_name: Optional[str] = None
    tags: dict[str, str] = field(default_factory=dict)


ResourceProperties = Union[
    VpcProperties,
    SubnetProperties,
    InternetGatewayProperties,
    RouteTableProperties,
    RouteTableAssociationProperties,
    SecurityGroupProperties,
    InstanceProperties,
]


@dataclass
class Resource:
    """A resource definition from stack.yaml."""

    id: str
    type: str  # e.g., "aws:subnet"
    properties: ResourceProperties


@dataclass
class OutputSpec:
    """A named output read from a resource attribute after apply."""

    name: str
    resource: str  # resource id
    attribute: str  # e.g., "public_ip"

    @property
    def expression(self) -> str:
        return f"{self.resource}.{self.attribute}"


@dataclass
class Policy:
    """Optional structural constraints checked before deployment."""

    allowed_ingress_ports: Optional[list[int]] = None


@dataclass
class StackDefinition:
    """A stack definition from stack.yaml."""

    id: str
    description: str
    region: str
    resources: list[Resource]
    outputs: list[OutputSpec] = field(default_factory=list)
    policy: Policy = field(default_factory=Policy)

    def get(self, resource_id: str) -> Optional[Resource]:
        """Return the resource with the given id, or None."""
        for resource in self.resources:
            if resource.id == resource_id:
                return resource
        return None

    def of_type(self, resource_type: str) -> list[Resource]:
        return [r for r in self.resources if r.type == resource_type]
