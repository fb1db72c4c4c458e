"""Pulumi Automation API orchestration for deploying stacks."""

import logging
from typing import Callable

import pulumi
from pulumi import automation as auto
import pulumi_aws as aws

from .credentials import (
    WORK_DIR,
    PulumiConfig,
    get_aws_credentials,
    get_pulumi_config,
)
from .models import AWSCredentials, StackDefinition
from .stack import QuickstartStack
from .stack_loader import load_stack
from .validation import check_stack

logger = logging.getLogger(__name__)

# Pulumi project configuration
PROJECT_NAME = "ec2-quickstart"


class DeployerError(Exception):
    """Raised when deployment operations fail."""

    pass


def _ensure_work_dir() -> None:
    """Ensure the Pulumi working directory exists."""
    WORK_DIR.mkdir(parents=True, exist_ok=True)
    (WORK_DIR / "state").mkdir(parents=True, exist_ok=True)


def _create_pulumi_program(definition: StackDefinition) -> Callable[[], None]:
    """Create a Pulumi program function for the given stack definition.

    Args:
        definition: Validated stack definition

    Returns:
        A callable that defines the Pulumi infrastructure
    """

    def pulumi_program() -> None:
        # Region comes from the definition; keys come from the workspace env
        provider = aws.Provider("aws-provider", region=definition.region)

        stack = QuickstartStack(definition.id, definition, provider=provider)

        for name, value in stack.outputs.items():
            pulumi.export(name, value)

    return pulumi_program


def _env_vars(credentials: AWSCredentials, pulumi_config: PulumiConfig, region: str) -> dict:
    """Build environment variables for the Pulumi workspace."""
    return {
        # Passphrase for encrypting secrets in state
        # Can be empty string if not using encrypted secrets
        "PULUMI_CONFIG_PASSPHRASE": pulumi_config.passphrase,
        # Read by the AWS provider plugin
        "AWS_ACCESS_KEY_ID": credentials.access_key_id,
        "AWS_SECRET_ACCESS_KEY": credentials.secret_access_key,
        "AWS_REGION": region,
    }


def _get_or_create_stack(definition: StackDefinition) -> auto.Stack:
    """Get or create a Pulumi stack for the definition.

    Args:
        definition: Validated stack definition

    Returns:
        Pulumi Stack instance with aws:region configured
    """
    credentials = get_aws_credentials()
    pulumi_config = get_pulumi_config()

    if credentials.region and credentials.region != definition.region:
        logger.warning(
            "Environment region %s differs from stack region %s; using %s",
            credentials.region,
            definition.region,
            definition.region,
        )

    _ensure_work_dir()

    project_settings = auto.ProjectSettings(
        name=PROJECT_NAME,
        runtime="python",
        backend=auto.ProjectBackend(url=pulumi_config.backend),
    )

    logger.debug("Selecting stack %s on backend %s", definition.id, pulumi_config.backend)
    try:
        # Each stack definition gets its own Pulumi stack for isolation
        stack = auto.create_or_select_stack(
            stack_name=definition.id,
            project_name=PROJECT_NAME,
            program=_create_pulumi_program(definition),
            opts=auto.LocalWorkspaceOptions(
                work_dir=str(WORK_DIR),
                project_settings=project_settings,
                env_vars=_env_vars(credentials, pulumi_config, definition.region),
            ),
        )
        stack.set_config("aws:region", auto.ConfigValue(value=definition.region))
    except auto.CommandError as e:
        raise DeployerError(f"Could not select stack '{definition.id}': {e}") from e

    return stack


def _load_validated(stack_name: str) -> StackDefinition:
    definition = load_stack(stack_name)
    check_stack(definition)
    return definition


def init_stack(stack_name: str) -> auto.Stack:
    """Prepare the Pulumi workspace and stack for a definition.

    Args:
        stack_name: Name of the stack to initialise

    Returns:
        The created or selected Pulumi Stack

    Raises:
        DeployerError: If the stack cannot be created or selected
    """
    definition = _load_validated(stack_name)
    stack = _get_or_create_stack(definition)
    logger.info("Initialised stack %s in %s", definition.id, definition.region)
    return stack


def preview_stack(
    stack_name: str, on_output: Callable[[str], None] = print
) -> auto.PreviewResult:
    """Preview changes for a stack without applying them.

    Args:
        stack_name: Name of the stack to preview
        on_output: Callback for output messages (default: print)

    Returns:
        PreviewResult containing change summary

    Raises:
        DeployerError: If preview fails
    """
    stack = _get_or_create_stack(_load_validated(stack_name))
    try:
        return stack.preview(on_output=on_output)
    except auto.CommandError as e:
        raise DeployerError(f"Preview of '{stack_name}' failed: {e}") from e


def deploy_stack(stack_name: str, on_output: Callable[[str], None] = print) -> auto.UpResult:
    """Create or update every resource of a stack.

    Args:
        stack_name: Name of the stack to deploy
        on_output: Callback for output messages (default: print)

    Returns:
        UpResult containing deployment outputs

    Raises:
        DeployerError: If deployment fails
    """
    stack = _get_or_create_stack(_load_validated(stack_name))
    try:
        return stack.up(on_output=on_output)
    except auto.CommandError as e:
        raise DeployerError(f"Apply of '{stack_name}' failed: {e}") from e


def destroy_stack(
    stack_name: str, on_output: Callable[[str], None] = print
) -> auto.DestroyResult:
    """Destroy every resource of a deployed stack.

    Args:
        stack_name: Name of the stack to destroy
        on_output: Callback for output messages (default: print)

    Returns:
        DestroyResult from the operation

    Raises:
        DeployerError: If destruction fails
    """
    # No validation: an edited, invalid definition must still be destroyable
    stack = _get_or_create_stack(load_stack(stack_name))
    try:
        return stack.destroy(on_output=on_output)
    except auto.CommandError as e:
        raise DeployerError(f"Destroy of '{stack_name}' failed: {e}") from e


def stack_outputs(stack_name: str) -> dict[str, auto.OutputValue]:
    """Return the outputs recorded by the last successful apply.

    Raises:
        DeployerError: If the outputs cannot be read
    """
    stack = _get_or_create_stack(load_stack(stack_name))
    try:
        return stack.outputs()
    except auto.CommandError as e:
        raise DeployerError(f"Could not read outputs of '{stack_name}': {e}") from e
