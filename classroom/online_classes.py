import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from db.models.online_classes import OnlineClass
from db.models.users import User

from .errors import NotFoundError, PermissionDeniedError
from .meet import MeetService

logger = logging.getLogger(__name__)


class OnlineClassManager:
    def __init__(self, meet: MeetService = None):
        self.meet = meet or MeetService()

    def ongoing(self, db: Session) -> Optional[OnlineClass]:
        return (
            db.query(OnlineClass)
            .filter(OnlineClass.status == "ongoing")
            .order_by(OnlineClass.start_time.desc())
            .first()
        )

    def upcoming(self, db: Session) -> List[OnlineClass]:
        return (
            db.query(OnlineClass)
            .filter(OnlineClass.status == "scheduled")
            .order_by(OnlineClass.start_time.asc())
            .all()
        )

    def create(self, db: Session, teacher: User, data) -> OnlineClass:
        online_class = OnlineClass(
            title=data.title.strip(),
            teacher_id=teacher.id,
            start_time=data.start_time,
            end_time=data.end_time,
            status=data.status,
            meeting_link=data.meeting_link or self.meet.generate_link(),
            description=data.description,
        )
        db.add(online_class)
        db.commit()
        db.refresh(online_class)
        logger.info("Online class %s scheduled by teacher %s", online_class.id, teacher.id)
        return online_class

    def set_status(self, db: Session, class_id: int, teacher: User, status: str) -> OnlineClass:
        online_class = db.query(OnlineClass).filter(OnlineClass.id == class_id).first()
        if not online_class:
            raise NotFoundError("Online class not found")
        if online_class.teacher_id != teacher.id:
            raise PermissionDeniedError("You can only manage your own classes")

        online_class.status = status
        db.commit()
        db.refresh(online_class)
        logger.info("Online class %s is now %s", online_class.id, status)
        return online_class
