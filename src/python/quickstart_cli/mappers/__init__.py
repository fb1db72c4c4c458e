"""Resource mappers for converting stack definitions to Pulumi resources."""

from ..models import (
    INSTANCE,
    INTERNET_GATEWAY,
    ROUTE_TABLE,
    ROUTE_TABLE_ASSOCIATION,
    SECURITY_GROUP,
    SUBNET,
    VPC,
)
from .compute import create_instance
from .network import (
    create_internet_gateway,
    create_route_table,
    create_route_table_association,
    create_security_group,
    create_subnet,
    create_vpc,
)

MAPPERS = {
    VPC: create_vpc,
    SUBNET: create_subnet,
    INTERNET_GATEWAY: create_internet_gateway,
    ROUTE_TABLE: create_route_table,
    ROUTE_TABLE_ASSOCIATION: create_route_table_association,
    SECURITY_GROUP: create_security_group,
    INSTANCE: create_instance,
}

__all__ = [
    "MAPPERS",
    "create_instance",
    "create_internet_gateway",
    "create_route_table",
    "create_route_table_association",
    "create_security_group",
    "create_subnet",
    "create_vpc",
]
