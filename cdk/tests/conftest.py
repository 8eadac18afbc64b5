import aws_cdk as cdk
import pytest

from cdk.stacks.auth_stack import AuthStack
from cdk.stacks.usage_stack import UsageStack


@pytest.fixture
def env():
    return cdk.Environment(account="111111111111", region="us-west-1")


@pytest.fixture
def app():
    return cdk.App()


@pytest.fixture
def usage_stack(app, env):
    return UsageStack(app, "UsageStackTest", stage="test", env=env)


@pytest.fixture
def auth_stack(app, env, usage_stack):
    return AuthStack(app, "AuthStackTest", usage=usage_stack, stage="test", env=env)
