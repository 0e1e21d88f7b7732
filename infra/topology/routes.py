"""Compute-unit declarations and the route table."""

from collections.abc import Iterable

from topology.errors import ConfigurationError, DuplicateRouteBindingError
from topology.models import ComputeUnitSpec, RouteBinding, TablePermission

USERS_PATH = "/v1/users"
USER_PATH = "/v1/users/{userId}"

CREATE_USER = ComputeUnitSpec(
    logical_name="CreateUser",
    asset_name="create-user",
    resource_path=USERS_PATH,
    http_method="POST",
    table_permission=TablePermission.FULL,
)
UPDATE_USER = ComputeUnitSpec(
    logical_name="UpdateUser",
    asset_name="update-user",
    resource_path=USER_PATH,
    http_method="PUT",
    table_permission=TablePermission.FULL,
)
DELETE_USER = ComputeUnitSpec(
    logical_name="DeleteUser",
    asset_name="delete-user",
    resource_path=USER_PATH,
    http_method="DELETE",
    table_permission=TablePermission.FULL,
)
GET_USER = ComputeUnitSpec(
    logical_name="GetUser",
    asset_name="get-user",
    resource_path=USER_PATH,
    http_method="GET",
    table_permission=TablePermission.READ_ONLY,
)

# Declaration order is synthesis order.
USER_COMPUTE_UNITS: tuple[ComputeUnitSpec, ...] = (
    CREATE_USER,
    UPDATE_USER,
    DELETE_USER,
    GET_USER,
)


def path_segments(path: str) -> list[str]:
    """Split ``/v1/users/{userId}`` into ``["v1", "users", "{userId}"]``."""
    return [segment for segment in path.split("/") if segment]


def normalize_path(path: str) -> str:
    """Collapse repeated and trailing slashes: ``/v1/users/`` -> ``/v1/users``."""
    return "/" + "/".join(path_segments(path))


def build_routes(units: Iterable[ComputeUnitSpec]) -> list[RouteBinding]:
    """Bind each unit to its (path, method) pair.

    Raises:
        DuplicateRouteBindingError: two units claim the same pair.
        ConfigurationError: a unit declares a relative or empty path.
    """
    bound: dict[tuple[str, str], ComputeUnitSpec] = {}
    routes: list[RouteBinding] = []

    for unit in units:
        if not unit.resource_path.startswith("/") or not path_segments(unit.resource_path):
            raise ConfigurationError(
                f"{unit.logical_name} declares an invalid path {unit.resource_path!r}"
            )
        path = normalize_path(unit.resource_path)
        method = unit.http_method.upper()
        key = (path, method)
        if key in bound:
            raise DuplicateRouteBindingError(
                method=method,
                path=path,
                existing=bound[key].logical_name,
                duplicate=unit.logical_name,
            )
        bound[key] = unit
        routes.append(RouteBinding(path=path, method=method, unit=unit))

    return routes
