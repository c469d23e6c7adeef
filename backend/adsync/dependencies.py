"""
FastAPI dependencies for the long-lived services built in main.lifespan.
"""

from fastapi import Request

from adsync.services.job_queue import JobQueue
from adsync.services.sync_events import SyncEventBroker
from adsync.services.validation.service import SyncValidationService


def get_job_queue(request: Request) -> JobQueue:
    return request.app.state.job_queue


def get_event_broker(request: Request) -> SyncEventBroker:
    return request.app.state.event_broker


def get_validation_service(request: Request) -> SyncValidationService:
    return request.app.state.validation_service
