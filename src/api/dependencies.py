"""FastAPI dependency injection helpers."""

from fastapi import Header, Request

from src.container import Container


def get_container(request: Request) -> Container:
    return request.app.state.container


def get_tenant_id(x_tenant_id: int = Header(..., alias="X-Tenant-ID")) -> int:
    """Tenant scope; authentication upstream sets this header."""
    return x_tenant_id


def get_user_id(x_user_id: int = Header(..., alias="X-User-ID")) -> int:
    return x_user_id
