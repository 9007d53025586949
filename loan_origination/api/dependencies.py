"""Dependency injection for FastAPI endpoints"""

from fastapi import Request

from loan_origination.config import settings
from loan_origination.domain.models import PlanConfig
from loan_origination.infrastructure.clients.recordkeeper import RecordkeeperClient
from loan_origination.infrastructure.store import InMemoryApplicationStore, application_store


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_plan_config() -> PlanConfig:
    """Provide the plan policy for this request"""
    return settings.plan_config()


def get_application_store() -> InMemoryApplicationStore:
    """Provide the process-wide draft store"""
    return application_store


def get_recordkeeper_client() -> RecordkeeperClient:
    """Provide Recordkeeper webhook client instance"""
    return RecordkeeperClient()
