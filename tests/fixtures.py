"""
Test fixtures for unitgraph.

This module provides sample units and small graph builders for testing
the dependency graph engine.
"""

from unitgraph.graph import DependencyGraph
from unitgraph.models import Dependency, Unit


def unit(identifier, type="model", file_path=None, deps=(), namespace=None):
    """Shorthand for building a Unit with plain string dependency targets."""
    return Unit(
        identifier=identifier,
        type=type,
        file_path=file_path,
        namespace=namespace,
        dependencies=tuple(
            d if isinstance(d, Dependency) else Dependency(target=d, type="association")
            for d in deps
        ),
    )


def build_graph(*units):
    """Register the given units, in order, into a new graph."""
    graph = DependencyGraph()
    for u in units:
        graph.register(u)
    return graph


# User <- UserService <- UsersController
USER = unit("User", "model", "app/models/user.rb")
USER_SERVICE = unit("UserService", "service", "app/services/user_service.rb", deps=["User"])
USERS_CONTROLLER = unit(
    "UsersController",
    "controller",
    "app/controllers/users_controller.rb",
    deps=["UserService"],
)

# Order -> User, UserService -> User, Product isolated
ORDER = unit("Order", "model", "app/models/order.rb", deps=["User"])
PRODUCT = unit("Product", "model", "app/models/product.rb")

# Raw extractor output, as read by the CLI build command
UNITS_JSON = [
    {
        "identifier": "User",
        "type": "model",
        "file_path": "app/models/user.rb",
        "dependencies": [],
    },
    {
        "identifier": "UserService",
        "type": "service",
        "file_path": "app/services/user_service.rb",
        "dependencies": [{"type": "association", "target": "User", "via": "constant"}],
    },
    {
        "identifier": "UsersController",
        "type": "controller",
        "file_path": "app/controllers/users_controller.rb",
        "dependencies": [{"type": "method_call", "target": "UserService", "via": "call"}],
    },
    {
        "identifier": "Admin::UsersController",
        "type": "controller",
        "file_path": "app/controllers/admin/users_controller.rb",
        "namespace": "Admin",
        "dependencies": [{"type": "method_call", "target": "UserService", "via": "call"}],
    },
]


def user_chain_graph():
    """User <- UserService <- UsersController, registered leaf-first."""
    return build_graph(USER, USER_SERVICE, USERS_CONTROLLER)


def order_graph():
    """Order -> User, UserService -> User, Product isolated."""
    return build_graph(ORDER, USER_SERVICE, USER, PRODUCT)
