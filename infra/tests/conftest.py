"""Shared fixtures for topology and stack tests."""

from collections.abc import Callable

import pytest

from topology.models import EnvironmentDescriptor


@pytest.fixture
def make_descriptor() -> Callable[..., EnvironmentDescriptor]:
    """Build an EnvironmentDescriptor, overriding any field by keyword."""

    def _make(**overrides) -> EnvironmentDescriptor:
        values = {
            "service": "cf-user",
            "stage": "dev",
            "account": "123456789012",
            "region": "eu-west-1",
            "authorizer_function_arn": "arn:aws:lambda:eu-west-1:123456789012:function:authorizer",
            "notification_endpoint": "aws_alarm@classifind.app",
            "country_code": "NL",
        }
        values.update(overrides)
        return EnvironmentDescriptor(**values)

    return _make
