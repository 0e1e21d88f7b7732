#!/usr/bin/env python3
"""CDK App entry point for the user service application stack."""

import logging

import aws_cdk as cdk

from stacks.app_stack import AppStack
from topology.composer import compose_topology
from topology.config import get_settings


settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

topology = compose_topology(settings.to_descriptor())

app = cdk.App()

env = cdk.Environment(
    account=settings.cdk_default_account,
    region=settings.cdk_default_region,
)

# Application stack (API Gateway + Lambda + DynamoDB)
AppStack(
    app,
    topology.stack_name,
    topology=topology,
    description=topology.description,
    env=env,
)

app.synth()
