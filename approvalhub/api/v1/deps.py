"""Request-scoped access to the application's services."""

from fastapi import Request

from approvalhub.container import Services


def get_services(request: Request) -> Services:
    """Dependency returning the services built in the application lifespan."""
    return request.app.state.services
