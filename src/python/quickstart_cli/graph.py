"""Reference extraction and ordering for stack definitions.

Resources refer to each other by id (a subnet names its VPC, an instance names
its subnet and security groups). The provisioning engine infers creation order
from those edges on its own; the order computed here drives the Pulumi program,
the `graph` command and the teardown listing shown before `destroy`.
"""

import logging
from dataclasses import dataclass

from .models import (
    INSTANCE,
    INTERNET_GATEWAY,
    ROUTE_TABLE,
    ROUTE_TABLE_ASSOCIATION,
    SECURITY_GROUP,
    SUBNET,
    VPC,
    Resource,
    StackDefinition,
)

logger = logging.getLogger(__name__)


class GraphError(Exception):
    """Raised when references cannot be resolved or form a cycle."""

    pass


@dataclass(frozen=True)
class Reference:
    """One reference-by-id edge from a resource field to another resource."""

    source: str  # resource id holding the reference
    field: str  # e.g., "vpc", "routes[0].gateway"
    target: str  # referenced resource id
    target_type: str  # expected type of the referenced resource


def resource_references(resource: Resource) -> list[Reference]:
    """Return every reference declared by a resource, in field order."""
    props = resource.properties
    refs: list[tuple[str, str, str]] = []

    if resource.type in (SUBNET, INTERNET_GATEWAY, SECURITY_GROUP):
        refs.append(("vpc", props.vpc, VPC))
    elif resource.type == ROUTE_TABLE:
        refs.append(("vpc", props.vpc, VPC))
        for i, route in enumerate(props.routes):
            refs.append((f"routes[{i}].gateway", route.gateway, INTERNET_GATEWAY))
    elif resource.type == ROUTE_TABLE_ASSOCIATION:
        refs.append(("subnet", props.subnet, SUBNET))
        refs.append(("route_table", props.route_table, ROUTE_TABLE))
    elif resource.type == INSTANCE:
        refs.append(("subnet", props.subnet, SUBNET))
        for i, group in enumerate(props.security_groups):
            refs.append((f"security_groups[{i}]", group, SECURITY_GROUP))

    return [
        Reference(source=resource.id, field=f, target=t, target_type=tt)
        for f, t, tt in refs
    ]


def all_references(definition: StackDefinition) -> list[Reference]:
    return [ref for r in definition.resources for ref in resource_references(r)]


def unresolved_references(definition: StackDefinition) -> list[Reference]:
    """Return references whose target id is not declared in the definition."""
    declared = {r.id for r in definition.resources}
    return [ref for ref in all_references(definition) if ref.target not in declared]


def dependency_map(definition: StackDefinition) -> dict[str, set[str]]:
    """Map each resource id to the ids it directly depends on.

    Raises:
        GraphError: If any reference names an undeclared resource
    """
    missing = unresolved_references(definition)
    if missing:
        details = ", ".join(f"{r.source}.{r.field} -> {r.target}" for r in missing)
        raise GraphError(f"Unresolved references: {details}")

    deps: dict[str, set[str]] = {r.id: set() for r in definition.resources}
    for ref in all_references(definition):
        deps[ref.source].add(ref.target)
    return deps


def creation_order(definition: StackDefinition) -> list[str]:
    """Return resource ids with every dependency before its dependents.

    Resources that become ready at the same time keep their declaration order,
    so the result is stable for a given stack.yaml.

    Raises:
        GraphError: On unresolved references or a dependency cycle
    """
    deps = dependency_map(definition)
    declared = [r.id for r in definition.resources]

    result: list[str] = []
    placed: set[str] = set()
    while len(result) < len(declared):
        ready = [
            rid for rid in declared if rid not in placed and deps[rid] <= placed
        ]
        if not ready:
            remaining = sorted(set(declared) - placed)
            raise GraphError(
                f"Circular dependency detected among: {', '.join(remaining)}"
            )
        result.extend(ready)
        placed.update(ready)

    logger.debug("Creation order for %s: %s", definition.id, result)
    return result


def teardown_order(definition: StackDefinition) -> list[str]:
    """Return resource ids with every dependent removed before its dependencies."""
    return list(reversed(creation_order(definition)))


def dependents(definition: StackDefinition, resource_id: str) -> set[str]:
    """Return ids of resources that directly reference the given resource."""
    return {
        ref.source
        for ref in all_references(definition)
        if ref.target == resource_id
    }
