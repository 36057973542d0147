"""Deployment stages and stage-qualified resource naming.

Every stack takes a Stage and passes its resource names through stagify(),
so beta and production can be deployed side by side from one definition:

    stagify(Stage.BETA, "UsersTable")                 -> "betaUsersTable"
    stagify(Stage.PROD, "UsersTable")                 -> "UsersTable"
    stagify(Stage.BETA, "my-project-assets", "-")     -> "beta-my-project-assets"
"""
from enum import Enum

# Base names shared by the service app and the pipelines that deploy it.
STORAGE_STACK = "MyServiceStorageStack"
AUTH_STACK = "MyServiceAuthStack"
API_STACK = "MyServiceAPIStack"
PIPELINE_STACK = "MyServicePipelineStack"
HELLO_FUNCTION = "MyProject-Hello"
WEB_BUCKET = "my-project-web"


class Stage(Enum):
    BETA = "beta"
    # Production is unprefixed so canonical names stay canonical.
    PROD = ""

    @property
    def label(self) -> str:
        """Readable stage name for tags, descriptions and build variables."""
        return self.value or "prod"


def stagify(stage: Stage, name: str, separator: str = "") -> str:
    """Return ``name`` qualified with ``stage`` (unchanged in production)."""
    stage = Stage(stage)
    return f"{stage.value}{separator}{name}" if stage.value else name


def get_stage(value: str) -> Stage:
    """Resolve a stage from CLI/context input.

    Only "beta" and "prod" are accepted. Anything else is a configuration
    error and raises ValueError instead of silently deploying production.
    """
    normalized = value.strip().lower() if isinstance(value, str) else None
    for stage in Stage:
        if normalized == stage.label:
            return stage
    raise ValueError(
        f"Unknown stage {value!r}; expected one of: {', '.join(s.label for s in Stage)}"
    )
