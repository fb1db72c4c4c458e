"""Pulumi component that materialises a stack definition."""

import logging
from typing import Optional

import pulumi
from pulumi import ComponentResource, ResourceOptions

from .graph import creation_order
from .mappers import MAPPERS
from .models import StackDefinition

logger = logging.getLogger(__name__)


class QuickstartStack(ComponentResource):
    """All resources of one stack definition, parented under a single component.

    Resources are created in dependency order so every reference-by-id can be
    replaced by the referenced resource's `id` output.
    """

    def __init__(
        self,
        name: str,
        definition: StackDefinition,
        provider: Optional[pulumi.ProviderResource] = None,
        opts: Optional[ResourceOptions] = None,
    ):
        super().__init__("quickstart:index:Stack", name, None, opts)
        self.definition = definition
        self.provider = provider

        self.resources: dict[str, pulumi.CustomResource] = {}
        self.outputs: dict[str, pulumi.Output] = {}

        self._create_resources()
        self._resolve_outputs()
        self.register_outputs(self.outputs)

    def _create_resources(self) -> None:
        resource_opts = ResourceOptions(parent=self, provider=self.provider)
        for resource_id in creation_order(self.definition):
            resource = self.definition.get(resource_id)
            logger.debug("Declaring %s (%s)", resource.id, resource.type)
            self.resources[resource_id] = MAPPERS[resource.type](
                resource, self.resources, resource_opts
            )

    def _resolve_outputs(self) -> None:
        """Read each output expression off the created resource."""
        for output in self.definition.outputs:
            target = self.resources[output.resource]
            self.outputs[output.name] = getattr(target, output.attribute)
