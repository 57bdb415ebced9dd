from __future__ import annotations

import logging

from fastapi import FastAPI

import config
from api import create_router
from repository import InMemoryRentalRepository
from services import ReservationService

# Configure logging
logging.basicConfig(
    level=config.LOG_LEVEL,
    format=config.LOG_FORMAT,
    datefmt=config.LOG_DATE_FORMAT,
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Car Rental Booking API", version="1.0.0")

_repo = InMemoryRentalRepository()
_service = ReservationService(_repo)

app.include_router(create_router(_service))

logger.info(f"Business timezone {config.BUSINESS_TZ}, conflict buffer {config.CONFLICT_BUFFER_HOURS}h")
