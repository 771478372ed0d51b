"""FastAPI dependencies resolving the per-application service context."""

from fastapi import Request

from traowl.services.data_service import DataService


def get_data_service(request: Request) -> DataService:
    return request.app.state.context.data_service
