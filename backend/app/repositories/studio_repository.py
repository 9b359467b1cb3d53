# backend/app/repositories/studio_repository.py
"""
Studio Repository.

Studios are reference data for the reservation core: the booking flow only
reads them (rate, policy, hour limits, timezone).
"""

import logging

from sqlalchemy.orm import Session

from ..models.studio import Studio
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class StudioRepository(BaseRepository[Studio]):
    def __init__(self, db: Session):
        super().__init__(db, Studio)
