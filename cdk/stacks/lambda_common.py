# cdk/stacks/lambda_common.py
from pathlib import Path

from aws_cdk import (
    Duration,
    RemovalPolicy,
    Stack,
    aws_lambda as _lambda,
    aws_logs as logs,
)
from constructs import Construct

REPO_ROOT = Path(__file__).resolve().parents[2]
LAYER_DIR = REPO_ROOT / "layer"

# keep infra, tests and local files out of the function bundle
ASSET_EXCLUDES = [
    "cdk", "cdk.out", "layer", ".git", ".venv", "**/tests", "**/__pycache__",
    "*.md", "*.txt", "conftest.py", "**/.env.local",
]

POWERTOOLS_LAYER_ARN = "arn:aws:lambda:{region}:017000801446:layer:AWSLambdaPowertoolsPythonV3-python312-x86_64:7"


def dependencies_layer(scope: Construct) -> _lambda.ILayerVersion:
    """Third-party deps (stripe, urllib3, python-dotenv); build with `pip install -t layer/python -r layer/requirements.txt`."""
    return _lambda.LayerVersion(
        scope, "DependenciesLayer",
        code=_lambda.Code.from_asset(str(LAYER_DIR)),
        compatible_runtimes=[_lambda.Runtime.PYTHON_3_12],
        description="Third-party dependencies for the indexing service",
    )


def powertools_layer(scope: Construct) -> _lambda.ILayerVersion:
    region = Stack.of(scope).region
    return _lambda.LayerVersion.from_layer_version_arn(
        scope, "PowertoolsLayer", POWERTOOLS_LAYER_ARN.format(region=region)
    )


def python_function(scope: Construct, construct_id: str, *, handler: str, environment: dict,
                    layers: list, timeout_seconds: int = 10) -> _lambda.Function:
    log_group = logs.LogGroup(
        scope, f"{construct_id}LogGroup",
        retention=logs.RetentionDays.ONE_MONTH,
        removal_policy=RemovalPolicy.DESTROY,  # consider RETAIN in prod
    )
    return _lambda.Function(
        scope, construct_id,
        runtime=_lambda.Runtime.PYTHON_3_12,
        handler=handler,
        code=_lambda.Code.from_asset(str(REPO_ROOT), exclude=ASSET_EXCLUDES),
        timeout=Duration.seconds(timeout_seconds),
        environment=environment,
        layers=layers,
        log_group=log_group,
    )
