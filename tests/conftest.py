import aws_cdk as cdk
import pytest

from stacks.auth_stack import AuthStack
from stacks.storage_stack import StorageStack


@pytest.fixture
def app():
    return cdk.App()


@pytest.fixture
def storage_and_auth(app):
    """Build storage and auth stacks for a stage inside the shared app."""
    def build(stage):
        storage = StorageStack(app, "TestStorageStack", stage=stage)
        auth = AuthStack(app, "TestAuthStack", stage=stage)
        return storage, auth
    return build
