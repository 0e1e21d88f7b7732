"""Tests for the route table builder."""

import pytest

from topology.errors import ConfigurationError, DuplicateRouteBindingError
from topology.models import ComputeUnitSpec, TablePermission
from topology.routes import USER_COMPUTE_UNITS, build_routes, normalize_path, path_segments


class TestBuildRoutes:
    """Binding compute units to (path, method) pairs."""

    def test_canonical_user_routes(self) -> None:
        """The four user operations produce four distinct bindings."""
        routes = build_routes(USER_COMPUTE_UNITS)

        bindings = {(route.method, route.path): route.unit.logical_name for route in routes}
        assert bindings == {
            ("POST", "/v1/users"): "CreateUser",
            ("GET", "/v1/users/{userId}"): "GetUser",
            ("PUT", "/v1/users/{userId}"): "UpdateUser",
            ("DELETE", "/v1/users/{userId}"): "DeleteUser",
        }
        assert len(routes) == 4

    def test_order_follows_declaration(self) -> None:
        routes = build_routes(USER_COMPUTE_UNITS)
        assert [route.unit for route in routes] == list(USER_COMPUTE_UNITS)

    def test_duplicate_binding_is_rejected(self) -> None:
        """A fifth unit claiming GET /v1/users/{userId} fails."""
        shadow = ComputeUnitSpec(
            logical_name="FetchUser",
            asset_name="fetch-user",
            resource_path="/v1/users/{userId}",
            http_method="get",
            table_permission=TablePermission.READ_ONLY,
        )

        with pytest.raises(DuplicateRouteBindingError) as exc_info:
            build_routes([*USER_COMPUTE_UNITS, shadow])

        assert exc_info.value.method == "GET"
        assert exc_info.value.path == "/v1/users/{userId}"
        assert exc_info.value.existing == "GetUser"
        assert exc_info.value.duplicate == "FetchUser"
        assert isinstance(exc_info.value, ConfigurationError)

    def test_trailing_slash_does_not_hide_a_duplicate(self) -> None:
        """POST /v1/users/ is the same binding as POST /v1/users."""
        shadow = ComputeUnitSpec(
            logical_name="RegisterUser",
            asset_name="register-user",
            resource_path="/v1/users/",
            http_method="POST",
            table_permission=TablePermission.FULL,
        )

        with pytest.raises(DuplicateRouteBindingError) as exc_info:
            build_routes([*USER_COMPUTE_UNITS, shadow])

        assert exc_info.value.path == "/v1/users"
        assert exc_info.value.existing == "CreateUser"
        assert exc_info.value.duplicate == "RegisterUser"

    def test_bindings_store_the_normalized_path(self) -> None:
        unit = ComputeUnitSpec(
            logical_name="ListUsers",
            asset_name="list-users",
            resource_path="//v1//users/",
            http_method="GET",
            table_permission=TablePermission.READ_ONLY,
        )
        (route,) = build_routes([unit])
        assert route.path == "/v1/users"

    def test_same_path_different_method_is_allowed(self) -> None:
        patch = ComputeUnitSpec(
            logical_name="PatchUser",
            asset_name="patch-user",
            resource_path="/v1/users/{userId}",
            http_method="PATCH",
            table_permission=TablePermission.FULL,
        )
        assert len(build_routes([*USER_COMPUTE_UNITS, patch])) == 5

    @pytest.mark.parametrize("path", ["", "/", "v1/users"])
    def test_invalid_paths_are_rejected(self, path: str) -> None:
        unit = ComputeUnitSpec(
            logical_name="Broken",
            asset_name="broken",
            resource_path=path,
            http_method="GET",
            table_permission=TablePermission.READ_ONLY,
        )
        with pytest.raises(ConfigurationError):
            build_routes([unit])


class TestPathSegments:
    def test_placeholder_is_kept_verbatim(self) -> None:
        assert path_segments("/v1/users/{userId}") == ["v1", "users", "{userId}"]


class TestNormalizePath:
    @pytest.mark.parametrize(
        "path",
        ["/v1/users", "/v1/users/", "//v1//users", "/v1/users//"],
    )
    def test_repeated_and_trailing_slashes_collapse(self, path: str) -> None:
        assert normalize_path(path) == "/v1/users"
