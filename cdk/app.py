#!/usr/bin/env python3
import os
import aws_cdk as cdk

from stacks.usage_stack import UsageStack
from stacks.auth_stack import AuthStack
from stacks.indexing_api_stack import IndexingApiStack
from stacks.billing_lambda_stack import BillingLambdaStack

app = cdk.App()

stage = app.node.try_get_context("stage") or "dev"
hard_quota = str(app.node.try_get_context("hardQuota") or "false").lower() == "true"

env = cdk.Environment(
    account=os.getenv("CDK_DEFAULT_ACCOUNT"),
    region=os.getenv("CDK_DEFAULT_REGION"),
)

# ──── 1) Data ────────────────────────────────────────────────────────────────

usage_stack_id = "UsageStack" if stage == "dev" else f"UsageStack-{stage}"
usage_stack = UsageStack(app, usage_stack_id, stage=stage, env=env)

# ──── 2) Auth + APIs ─────────────────────────────────────────────────────────

auth_stack = AuthStack(app, f"AuthStack-{stage}", usage=usage_stack, stage=stage, env=env)

indexing_api_stack = IndexingApiStack(
    app, f"IndexingApiStack-{stage}",
    user_pool=auth_stack.user_pool,
    usage=usage_stack,
    stage=stage,
    hard_quota=hard_quota,
    env=env,
)

billing_stack = BillingLambdaStack(
    app, f"BillingLambdaStack-{stage}",
    usage=usage_stack,
    user_pool=auth_stack.user_pool,
    stage=stage,
    env=env,
)

# ──── 3) Stack Dependencies ──────────────────────────────────────────────────
auth_stack.add_dependency(usage_stack)
indexing_api_stack.add_dependency(auth_stack)
billing_stack.add_dependency(auth_stack)

cdk.Tags.of(app).add("Project", "IndexPilot")
cdk.Tags.of(app).add("Stage", stage)

app.synth()
