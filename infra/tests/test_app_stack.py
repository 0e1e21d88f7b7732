"""Synthesis tests for the CDK application stack."""

import shutil
import zipfile

import pytest

if shutil.which("node") is None:
    pytest.skip("aws-cdk-lib needs a node runtime", allow_module_level=True)

import aws_cdk as cdk
from aws_cdk.assertions import Match, Template

from stacks.app_stack import AppStack
from topology.composer import compose_topology
from topology.routes import USER_COMPUTE_UNITS


@pytest.fixture
def asset_dir(tmp_path):
    """Lay out an empty bootstrap.zip for every compute unit."""
    for unit in USER_COMPUTE_UNITS:
        unit_dir = tmp_path / unit.asset_name
        unit_dir.mkdir()
        with zipfile.ZipFile(unit_dir / "bootstrap.zip", "w") as archive:
            archive.writestr("bootstrap", "")
    return tmp_path


@pytest.fixture
def synth(make_descriptor, asset_dir):
    def _synth(stage: str) -> Template:
        topology = compose_topology(
            make_descriptor(stage=stage, lambda_asset_dir=str(asset_dir))
        )
        app = cdk.App()
        stack = AppStack(
            app,
            topology.stack_name,
            topology=topology,
            env=cdk.Environment(account="123456789012", region="eu-west-1"),
        )
        return Template.from_stack(stack)

    return _synth


class TestCoreResources:
    """Resources present on every stage."""

    def test_table(self, synth) -> None:
        template = synth("local")
        template.has_resource_properties(
            "AWS::DynamoDB::Table",
            {
                "TableName": "cf-user-local-app-user",
                "BillingMode": "PAY_PER_REQUEST",
                "StreamSpecification": {"StreamViewType": "NEW_AND_OLD_IMAGES"},
                "PointInTimeRecoverySpecification": {"PointInTimeRecoveryEnabled": True},
            },
        )

    def test_functions_and_aliases(self, synth) -> None:
        template = synth("local")
        template.resource_count_is("AWS::Lambda::Function", 4)
        template.resource_count_is("AWS::Lambda::Alias", 4)
        template.has_resource_properties(
            "AWS::Lambda::Function",
            {
                "FunctionName": "cf-user-local-app-CreateUser",
                "Handler": "bootstrap",
                "Architectures": ["arm64"],
                "MemorySize": 1024,
                "Timeout": 30,
                "TracingConfig": {"Mode": "Active"},
            },
        )

    def test_alarms_notify_topic(self, synth) -> None:
        template = synth("local")
        template.resource_count_is("AWS::CloudWatch::Alarm", 5)
        template.has_resource_properties(
            "AWS::CloudWatch::Alarm",
            {
                "AlarmName": "cf-user-local-app-GetUser-errors",
                "Threshold": 5,
                "EvaluationPeriods": 1,
                "ComparisonOperator": "GreaterThanOrEqualToThreshold",
                "AlarmActions": Match.any_value(),
            },
        )

    def test_routes(self, synth) -> None:
        template = synth("local")
        for method in ("POST", "GET", "PUT", "DELETE"):
            template.has_resource_properties(
                "AWS::ApiGateway::Method",
                {"HttpMethod": method, "AuthorizationType": "CUSTOM"},
            )

    def test_gateway_responses(self, synth) -> None:
        template = synth("local")
        template.has_resource_properties(
            "AWS::ApiGateway::GatewayResponse",
            {"ResponseType": "ACCESS_DENIED", "StatusCode": "403"},
        )
        template.has_resource_properties(
            "AWS::ApiGateway::GatewayResponse",
            {"ResponseType": "UNAUTHORIZED", "StatusCode": "401"},
        )
        template.has_resource_properties(
            "AWS::ApiGateway::GatewayResponse",
            {
                "ResponseType": "ACCESS_DENIED",
                "ResponseParameters": Match.object_like(
                    {"gatewayresponse.header.Access-Control-Allow-Origin": "'*'"}
                ),
            },
        )

    def test_cors_preflight_is_cached_for_a_minute(self, synth) -> None:
        synth("local").has_resource_properties(
            "AWS::ApiGateway::Method",
            {
                "HttpMethod": "OPTIONS",
                "Integration": Match.object_like(
                    {
                        "IntegrationResponses": Match.array_with(
                            [
                                Match.object_like(
                                    {
                                        "ResponseParameters": Match.object_like(
                                            {"method.response.header.Access-Control-Max-Age": "'60'"}
                                        ),
                                    }
                                ),
                            ]
                        ),
                    }
                ),
            },
        )

    def test_authorizer_cache(self, synth) -> None:
        synth("local").has_resource_properties(
            "AWS::ApiGateway::Authorizer",
            {"Type": "TOKEN", "AuthorizerResultTtlInSeconds": 30},
        )


class TestStagePolicies:
    """Resources that depend on the stage."""

    def test_local_has_no_optional_resources(self, synth) -> None:
        template = synth("local")
        template.resource_count_is("AWS::Backup::BackupPlan", 0)
        template.resource_count_is("AWS::ApiGateway::BasePathMapping", 0)
        template.resource_count_is("AWS::SNS::Subscription", 0)

    def test_dev_has_backups_and_domain(self, synth) -> None:
        template = synth("dev")
        template.resource_count_is("AWS::Backup::BackupPlan", 1)
        template.has_resource_properties(
            "AWS::Backup::BackupPlan",
            {
                "BackupPlan": Match.object_like(
                    {
                        "BackupPlanRule": Match.array_with(
                            [
                                Match.object_like(
                                    {
                                        "ScheduleExpression": "cron(0 0 1 * ? *)",
                                        "StartWindowMinutes": 60,
                                        "CompletionWindowMinutes": 180,
                                        "Lifecycle": {
                                            "MoveToColdStorageAfterDays": 30,
                                            "DeleteAfterDays": 365,
                                        },
                                    }
                                ),
                            ]
                        ),
                    }
                ),
            },
        )
        template.has_resource_properties(
            "AWS::ApiGateway::BasePathMapping",
            {"DomainName": "dev-api.classifind.app", "BasePath": "user"},
        )
        template.resource_count_is("AWS::SNS::Subscription", 0)

    def test_prod_subscribes_and_canaries(self, synth) -> None:
        template = synth("prod")
        template.has_resource_properties(
            "AWS::SNS::Subscription",
            {"Protocol": "email", "Endpoint": "aws_alarm@classifind.app"},
        )
        template.has_resource_properties(
            "AWS::CodeDeploy::DeploymentGroup",
            {
                "DeploymentConfigName": "CodeDeployDefault.LambdaCanary10Percent10Minutes",
            },
        )
        template.has_resource_properties(
            "AWS::Logs::LogGroup",
            {"LogGroupName": "/aws/lambda/cf-user-prod-app-GetUser", "RetentionInDays": 365},
        )
