"""Application stack - API Gateway, Lambda, DynamoDB, alarms and backups."""

from constructs import Construct
import aws_cdk as cdk
from aws_cdk import (
    Duration,
    RemovalPolicy,
    Stack,
    Tags,
    aws_apigateway as apigateway,
    aws_backup as backup,
    aws_cloudwatch as cloudwatch,
    aws_cloudwatch_actions as cw_actions,
    aws_codedeploy as codedeploy,
    aws_dynamodb as dynamodb,
    aws_events as events,
    aws_iam as iam,
    aws_lambda as lambda_,
    aws_logs as logs,
    aws_sns as sns,
    aws_sns_subscriptions as subscriptions,
)

from topology.gateway import access_log_format
from topology.models import (
    AlarmSpec,
    BackupPlanSpec,
    ComputeUnitDeployment,
    DomainMappingSpec,
    GatewaySpec,
    LogRetention,
    RolloutStrategy,
    SubscriptionSpec,
    TablePermission,
    TableSpec,
    TopologyResult,
)
from topology.routes import path_segments

RETENTION_DAYS = {
    LogRetention.ONE_WEEK: logs.RetentionDays.ONE_WEEK,
    LogRetention.ONE_YEAR: logs.RetentionDays.ONE_YEAR,
}

DEPLOYMENT_CONFIGS = {
    RolloutStrategy.ALL_AT_ONCE: codedeploy.LambdaDeploymentConfig.ALL_AT_ONCE,
    RolloutStrategy.CANARY_10_PERCENT_10_MINUTES: (
        codedeploy.LambdaDeploymentConfig.CANARY_10_PERCENT_10_MINUTES
    ),
}

COMPARISON_OPERATORS = {
    ">=": cloudwatch.ComparisonOperator.GREATER_THAN_OR_EQUAL_TO_THRESHOLD,
    ">": cloudwatch.ComparisonOperator.GREATER_THAN_THRESHOLD,
}


class AppStack(Stack):
    """Stack that provisions a composed topology."""

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        topology: TopologyResult,
        **kwargs,
    ) -> None:
        super().__init__(scope, construct_id, **kwargs)

        self.topology = topology

        for key, value in topology.tags:
            Tags.of(self).add(key, value)

        # Alarm topic
        self.alarm_topic = sns.Topic(
            self,
            "SnsTopic",
            topic_name=topology.topic.topic_name,
        )
        if topology.subscription is not None:
            self._subscribe(topology.subscription)

        # DynamoDB
        self.users_table = self._create_table(topology.table)

        # API Gateway
        self.api = self._create_api(topology.gateway)

        if topology.backup_plan is not None:
            self._create_backup_plan(topology.backup_plan)

        # Lambda functions
        self.aliases: dict[str, lambda_.Alias] = {}
        for deployment in topology.compute_units:
            self.aliases[deployment.spec.logical_name] = self._create_function(deployment)

        # Routes
        self._resources: dict[str, apigateway.IResource] = {"": self.api.root}
        for route in topology.routes:
            resource = self._resource_for(route.path)
            resource.add_method(
                route.method,
                apigateway.LambdaIntegration(self.aliases[route.unit.logical_name]),
            )

        if topology.domain_mapping is not None:
            self._map_domain(topology.domain_mapping)

        # Outputs
        cdk.CfnOutput(
            self,
            "ApiUrl",
            value=self.api.url,
            description="User API URL",
        )

        cdk.CfnOutput(
            self,
            "UserTableName",
            value=self.users_table.table_name,
            description="DynamoDB user table name",
        )

        cdk.CfnOutput(
            self,
            "AlarmTopicArn",
            value=self.alarm_topic.topic_arn,
            description="SNS topic receiving every alarm",
        )

    def _subscribe(self, spec: SubscriptionSpec) -> None:
        if "@" in spec.endpoint:
            subscription = subscriptions.EmailSubscription(spec.endpoint)
        else:
            subscription = subscriptions.UrlSubscription(spec.endpoint)
        self.alarm_topic.add_subscription(subscription)

    def _create_table(self, spec: TableSpec) -> dynamodb.Table:
        table = dynamodb.Table(
            self,
            "UserTable",
            table_name=spec.table_name,
            billing_mode=dynamodb.BillingMode.PAY_PER_REQUEST,
            partition_key=dynamodb.Attribute(
                name=spec.partition_key,
                type=dynamodb.AttributeType.STRING,
            ),
            sort_key=dynamodb.Attribute(
                name=spec.sort_key,
                type=dynamodb.AttributeType.STRING,
            ),
            point_in_time_recovery=spec.point_in_time_recovery,
            removal_policy=RemovalPolicy.DESTROY,
            encryption=dynamodb.TableEncryption.AWS_MANAGED,
            stream=(
                dynamodb.StreamViewType.NEW_AND_OLD_IMAGES
                if spec.stream_new_and_old_images
                else None
            ),
        )

        for index in spec.global_indexes:
            table.add_global_secondary_index(
                index_name=index.index_name,
                partition_key=dynamodb.Attribute(
                    name=index.partition_key,
                    type=dynamodb.AttributeType.STRING,
                ),
                sort_key=dynamodb.Attribute(
                    name=index.sort_key,
                    type=dynamodb.AttributeType.STRING,
                ),
            )

        return table

    def _create_alarm(self, spec: AlarmSpec, metric: cloudwatch.IMetric) -> cloudwatch.Alarm:
        alarm = cloudwatch.Alarm(
            self,
            spec.logical_id,
            alarm_name=spec.alarm_name,
            alarm_description=spec.description,
            metric=metric,
            threshold=spec.threshold,
            evaluation_periods=spec.evaluation_periods,
            actions_enabled=True,
            comparison_operator=COMPARISON_OPERATORS[spec.comparison],
        )
        alarm.add_alarm_action(cw_actions.SnsAction(self.alarm_topic))
        return alarm

    def _create_api(self, spec: GatewaySpec) -> apigateway.RestApi:
        authorizer_function = lambda_.Function.from_function_arn(
            self,
            "LambdaAuthorizer",
            spec.authorizer.function_arn,
        )

        authorizer = apigateway.TokenAuthorizer(
            self,
            spec.authorizer.authorizer_name,
            handler=authorizer_function,
            authorizer_name=spec.authorizer.authorizer_name,
            results_cache_ttl=Duration.seconds(spec.authorizer.results_cache_ttl_seconds),
        )

        access_logs = logs.LogGroup(
            self,
            "AccessLogsLogGroup",
            log_group_name=spec.access_log_group_name,
            retention=RETENTION_DAYS[spec.access_log_retention],
            removal_policy=RemovalPolicy.DESTROY,
        )

        api = apigateway.RestApi(
            self,
            "api-gateway",
            rest_api_name=spec.rest_api_name,
            endpoint_configuration=apigateway.EndpointConfiguration(
                types=[apigateway.EndpointType.REGIONAL],
            ),
            deploy_options=apigateway.StageOptions(
                stage_name=spec.stage_name,
                tracing_enabled=True,
                access_log_destination=apigateway.LogGroupLogDestination(access_logs),
                access_log_format=apigateway.AccessLogFormat.custom(
                    access_log_format(spec.access_log_fields)
                ),
            ),
            default_method_options=apigateway.MethodOptions(authorizer=authorizer),
            policy=iam.PolicyDocument(
                statements=[
                    iam.PolicyStatement(
                        effect=iam.Effect.ALLOW,
                        actions=list(spec.invoke_actions),
                        principals=[iam.AnyPrincipal()],
                        resources=["execute-api:/*"],
                    ),
                ],
            ),
            default_cors_preflight_options=apigateway.CorsOptions(
                allow_methods=apigateway.Cors.ALL_METHODS,
                allow_origins=apigateway.Cors.ALL_ORIGINS,
                allow_headers=list(spec.cors.allow_headers),
                max_age=Duration.seconds(spec.cors.max_age_seconds),
            ),
            cloud_watch_role=False,
        )

        for response in spec.gateway_responses:
            api.add_gateway_response(
                response.logical_id,
                type=apigateway.ResponseType.of(response.response_type),
                status_code=response.status_code,
                response_headers=dict(response.response_headers),
                templates={"application/json": response.template},
            )

        alarm = spec.server_error_alarm
        self._create_alarm(
            alarm,
            api.metric_server_error(
                statistic=alarm.statistic,
                period=Duration.minutes(alarm.period_minutes),
            ),
        )

        return api

    def _create_backup_plan(self, spec: BackupPlanSpec) -> None:
        vault = backup.BackupVault(
            self,
            "BackupVault",
            backup_vault_name=spec.vault_name,
            removal_policy=RemovalPolicy.DESTROY,
        )

        plan = backup.BackupPlan(
            self,
            "BackupPlan",
            backup_plan_name=spec.plan_name,
            backup_vault=vault,
        )

        plan.add_selection(
            "BackupPlanSelection",
            resources=[backup.BackupResource.from_dynamo_db_table(self.users_table)],
        )

        plan.add_rule(
            backup.BackupPlanRule(
                start_window=Duration.hours(spec.start_window_hours),
                completion_window=Duration.hours(spec.completion_window_hours),
                schedule_expression=events.Schedule.cron(
                    minute=spec.schedule_minute,
                    hour=spec.schedule_hour,
                    day=spec.schedule_day,
                    month="*",
                    year="*",
                ),
                move_to_cold_storage_after=Duration.days(spec.move_to_cold_storage_after_days),
                delete_after=Duration.days(spec.delete_after_days),
            )
        )

    def _create_function(self, deployment: ComputeUnitDeployment) -> lambda_.Alias:
        name = deployment.spec.logical_name

        log_group = logs.LogGroup(
            self,
            f"{name}LogGroup",
            log_group_name=deployment.log_group_name,
            retention=RETENTION_DAYS[deployment.policy.log_retention],
            removal_policy=RemovalPolicy.DESTROY,
        )

        function = lambda_.Function(
            self,
            name,
            function_name=deployment.function_name,
            code=lambda_.Code.from_asset(deployment.code_path),
            handler="bootstrap",
            runtime=lambda_.Runtime.PROVIDED_AL2,
            architecture=lambda_.Architecture.ARM_64,
            timeout=Duration.seconds(30),
            memory_size=1024,
            environment=dict(deployment.environment),
            tracing=lambda_.Tracing.ACTIVE,
            log_group=log_group,
            current_version_options=lambda_.VersionOptions(
                removal_policy=RemovalPolicy.RETAIN,
            ),
        )

        alias = lambda_.Alias(
            self,
            f"{name}Alias",
            alias_name=deployment.alias_name,
            version=function.current_version,
        )

        # Grant permissions
        if deployment.spec.table_permission is TablePermission.FULL:
            self.users_table.grant_full_access(alias)
        else:
            self.users_table.grant_read_data(alias)

        spec = deployment.alarm
        alarm = self._create_alarm(
            spec,
            alias.metric_errors(
                statistic=spec.statistic,
                period=Duration.minutes(spec.period_minutes),
            ),
        )

        codedeploy.LambdaDeploymentGroup(
            self,
            f"{name}DeploymentGroup",
            alias=alias,
            deployment_config=DEPLOYMENT_CONFIGS[deployment.policy.rollout_strategy],
            alarms=[alarm],
        )

        return alias

    def _resource_for(self, path: str) -> apigateway.IResource:
        """Return the API resource for ``path``, creating missing parents."""
        current = ""
        resource = self._resources[current]
        for segment in path_segments(path):
            current = f"{current}/{segment}"
            if current not in self._resources:
                self._resources[current] = resource.add_resource(segment)
            resource = self._resources[current]
        return resource

    def _map_domain(self, spec: DomainMappingSpec) -> None:
        apigateway.CfnBasePathMapping(
            self,
            "BasePathMapping",
            domain_name=spec.domain_name,
            rest_api_id=self.api.rest_api_id,
            base_path=spec.base_path,
            stage=self.api.deployment_stage.stage_name,
        )
