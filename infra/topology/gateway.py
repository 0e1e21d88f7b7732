"""Edge settings for the REST API: CORS, error templates, authorizer, access logs."""

from topology.models import (
    AuthorizerSpec,
    CorsPolicy,
    GatewayResponseSpec,
    GatewaySpec,
    LogRetention,
)
from topology.naming import ResourceNamer
from topology.policy import ERROR_ALARM_THRESHOLD, error_alarm

STAGE_NAME = "LIVE"
AUTHORIZER_NAME = "TokenAuthorizer"
AUTHORIZER_CACHE_TTL_SECONDS = 30
CORS_MAX_AGE_SECONDS = 60

# Same set API Gateway uses as its default CORS headers.
CORS_DEFAULT_HEADERS = (
    "Content-Type",
    "X-Amz-Date",
    "Authorization",
    "X-Api-Key",
    "X-Amz-Security-Token",
    "X-Amz-User-Agent",
)

ERROR_RESPONSE_HEADERS = {
    "Access-Control-Allow-Origin": "'*'",
    "Access-Control-Allow-Headers": "'*'",
    "Access-Control-Allow-Methods": "'*'",
    "Access-Control-Max-Age": "'86400'",
}

ACCESS_DENIED_TEMPLATE = (
    '{ "ErrorMessage": "$context.authorizer.errorMessage", '
    '"ErrorCode": "$context.error.responseType", "Errors": [] }'
)
UNAUTHORIZED_TEMPLATE = (
    '{ "ErrorMessage": "Unauthorized", '
    '"ErrorCode": "$context.error.responseType", "Errors": [] }'
)

# (json key, access log context variable), in log line order.
ACCESS_LOG_FIELDS: tuple[tuple[str, str], ...] = (
    ("requestTime", "$context.requestTime"),
    ("requestId", "$context.requestId"),
    ("httpMethod", "$context.httpMethod"),
    ("path", "$context.path"),
    ("resourcePath", "$context.resourcePath"),
    ("status", "$context.status"),
    ("responseLatency", "$context.responseLatency"),
    ("xrayTraceId", "$context.xrayTraceId"),
    ("integrationLatency", "$context.integrationLatency"),
    ("integrationStatus", "$context.integrationStatus"),
    ("sourceIp", "$context.identity.sourceIp"),
    ("userAgent", "$context.identity.userAgent"),
)

# Rendered unquoted so the log line carries numbers.
NUMERIC_ACCESS_LOG_FIELDS = frozenset({"status", "responseLatency"})


def access_log_format(fields: tuple[tuple[str, str], ...] = ACCESS_LOG_FIELDS) -> str:
    """Render the single-line JSON access log format."""
    parts = []
    for key, variable in fields:
        if key in NUMERIC_ACCESS_LOG_FIELDS:
            parts.append(f'"{key}":{variable}')
        else:
            parts.append(f'"{key}":"{variable}"')
    return "{" + ",".join(parts) + "}"


def gateway_responses() -> tuple[GatewayResponseSpec, ...]:
    return (
        GatewayResponseSpec(
            logical_id="AccessDeniedGatewayResponse",
            response_type="ACCESS_DENIED",
            status_code="403",
            response_headers=tuple(ERROR_RESPONSE_HEADERS.items()),
            template=ACCESS_DENIED_TEMPLATE,
        ),
        GatewayResponseSpec(
            logical_id="UnauthorizedGatewayResponse",
            response_type="UNAUTHORIZED",
            status_code="401",
            response_headers=tuple(ERROR_RESPONSE_HEADERS.items()),
            template=UNAUTHORIZED_TEMPLATE,
        ),
    )


def build_gateway(
    namer: ResourceNamer, authorizer_function_arn: str, log_retention: LogRetention
) -> GatewaySpec:
    """Describe the REST API, its authorizer and its 5xx alarm."""
    return GatewaySpec(
        rest_api_name=namer.stack_name,
        stage_name=STAGE_NAME,
        access_log_group_name=namer.access_log_group_name,
        access_log_retention=log_retention,
        access_log_fields=ACCESS_LOG_FIELDS,
        cors=CorsPolicy(
            allow_all_methods=True,
            allow_all_origins=True,
            allow_headers=CORS_DEFAULT_HEADERS,
            max_age_seconds=CORS_MAX_AGE_SECONDS,
        ),
        gateway_responses=gateway_responses(),
        authorizer=AuthorizerSpec(
            authorizer_name=AUTHORIZER_NAME,
            function_arn=authorizer_function_arn,
            results_cache_ttl_seconds=AUTHORIZER_CACHE_TTL_SECONDS,
        ),
        invoke_actions=("execute-api:Invoke",),
        server_error_alarm=error_alarm(
            logical_id="ApiErrors",
            description=f"500 errors >= {ERROR_ALARM_THRESHOLD}",
            metric="server_error",
            topic_name=namer.topic_name,
        ),
    )
