"""
Exclusion service for admin-managed blackout periods.

Exclusions are validated on write with the same resolution rules the slot
resolver applies on read, so a stored exclusion is always resolvable.
"""

import logging
from datetime import date as date_type, time
from typing import List, Optional

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from core.exceptions import NotFound
from models import Exclusion
from services.time_window_service import TimeWindowService

logger = logging.getLogger(__name__)


class ExclusionService:
    """Service class for exclusion operations."""

    @staticmethod
    def get_exclusion(db: Session, exclusion_id: int) -> Exclusion:
        exclusion = db.query(Exclusion).filter(Exclusion.id == exclusion_id).first()
        if exclusion is None:
            raise NotFound(f"Exclusion {exclusion_id} not found")
        return exclusion

    @staticmethod
    def list_exclusions(
        db: Session,
        start_date: Optional[date_type] = None,
        end_date: Optional[date_type] = None
    ) -> List[Exclusion]:
        """List exclusions touching [start_date, end_date], oldest first."""
        query = db.query(Exclusion)
        if end_date is not None:
            query = query.filter(Exclusion.start_date <= end_date)
        if start_date is not None:
            query = query.filter(or_(
                Exclusion.end_date >= start_date,
                and_(Exclusion.end_date.is_(None), Exclusion.start_date >= start_date)
            ))
        return query.order_by(Exclusion.start_date, Exclusion.start_time).all()

    @staticmethod
    def create_exclusion(
        db: Session,
        start_date: date_type,
        end_date: Optional[date_type] = None,
        start_time: Optional[time] = None,
        end_time: Optional[time] = None,
        note: Optional[str] = None
    ) -> Exclusion:
        """
        Raises:
            InvalidExclusion: If the exclusion would be empty or reversed
        """
        exclusion = Exclusion(
            start_date=start_date,
            end_date=end_date,
            start_time=start_time,
            end_time=end_time,
            note=note,
        )
        TimeWindowService.validate_exclusion(exclusion)
        db.add(exclusion)
        db.commit()
        db.refresh(exclusion)
        logger.info(f"Created exclusion {exclusion.id}")
        return exclusion

    @staticmethod
    def update_exclusion(
        db: Session,
        exclusion_id: int,
        start_date: date_type,
        end_date: Optional[date_type] = None,
        start_time: Optional[time] = None,
        end_time: Optional[time] = None,
        note: Optional[str] = None
    ) -> Exclusion:
        """
        Replace an exclusion's fields. Absent optional fields are cleared.

        Raises:
            NotFound: If the exclusion does not exist
            InvalidExclusion: If the new fields are invalid; nothing is written
        """
        exclusion = ExclusionService.get_exclusion(db, exclusion_id)
        TimeWindowService.validate_exclusion(Exclusion(
            id=exclusion_id,
            start_date=start_date,
            end_date=end_date,
            start_time=start_time,
            end_time=end_time,
        ))

        exclusion.start_date = start_date
        exclusion.end_date = end_date
        exclusion.start_time = start_time
        exclusion.end_time = end_time
        exclusion.note = note
        db.commit()
        db.refresh(exclusion)
        return exclusion

    @staticmethod
    def delete_exclusion(db: Session, exclusion_id: int) -> None:
        exclusion = ExclusionService.get_exclusion(db, exclusion_id)
        db.delete(exclusion)
        db.commit()
        logger.info(f"Deleted exclusion {exclusion_id}")
