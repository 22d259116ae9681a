#!/usr/bin/env python3
"""
Application stack CDK App
Resolves the stack configuration once and provisions the security foundation from it.
"""

import os
import uuid

import aws_cdk as cdk

from appstack.config import get_environment_config, load_config_file
from appstack.core.secrets_lookup import fetch_secret_arns, partial_secret_arns, referenced_secret_names
from appstack.core.security_stack import SecurityStack
from appstack.resolution import ProvisioningContext, resolve
from appstack.resolution.resolver import DEFAULT_VPC_CIDR

app = cdk.App()

# Get environment configuration (a JSON file wins over the preset)
environment = app.node.try_get_context("environment") or "dev"
config_file = app.node.try_get_context("configFile")
config = load_config_file(config_file) if config_file else get_environment_config(environment)

project = config["project"]
account = project.get("account_id") or os.environ.get("CDK_DEFAULT_ACCOUNT")
region = project.get("region") or os.environ.get("CDK_DEFAULT_REGION", "us-east-1")

# CDK environment (account/region)
cdk_env = cdk.Environment(account=account, region=region)

# Secret lookup: query Secrets Manager only when asked, otherwise use partial ARNs
lookup_secrets = str(app.node.try_get_context("lookupSecrets") or "").lower() in {"1", "true", "yes"}
if lookup_secrets:
    secret_arns = fetch_secret_arns(prefix=app.node.try_get_context("secretPrefix"))
else:
    secret_arns = partial_secret_arns(
        referenced_secret_names(config), region=region, account=account or cdk.Aws.ACCOUNT_ID
    )

vpc_cidr = app.node.try_get_context("vpcCidr") or DEFAULT_VPC_CIDR
context = ProvisioningContext(secret_arns=secret_arns, vpc_cidr=vpc_cidr)
resolved = resolve(config, context, correlation_id=str(uuid.uuid4()))

stack_prefix = f"{resolved.project.name}-{environment}"

# ========================================
# CORE INFRASTRUCTURE LAYER
# ========================================

# Security Foundation - VPC, execution roles, security groups
security_stack = SecurityStack(
    app,
    f"{stack_prefix}-Core-Security",
    environment=environment,
    resolved=resolved,
    bucket_name=context.bucket_for(resolved.project),
    vpc_cidr=vpc_cidr,
    partial_secret_arns=() if lookup_secrets else secret_arns.values(),
    env=cdk_env,
)

# ========================================
# TAGGING STRATEGY
# ========================================

cdk.Tags.of(app).add("Environment", environment)
cdk.Tags.of(app).add("ManagedBy", "CDK")
for key, value in sorted(resolved.project.tags.items()):
    cdk.Tags.of(app).add(key, value)

app.synth()
