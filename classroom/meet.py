import logging
import secrets
import string

from sqlalchemy.orm import Session

from db.models.online_classes import MeetLink
from db.models.users import User

from .config import MEET_BASE_URL

logger = logging.getLogger(__name__)

MEET_CODE_ALPHABET = string.ascii_lowercase + string.digits
MEET_CODE_LENGTH = 13


class MeetService:
    """
    Stand-in for a video-conference integration: links are generated
    locally and never registered with a real provider.
    """

    def __init__(self, base_url: str = MEET_BASE_URL):
        self.base_url = base_url.rstrip("/")

    def generate_link(self) -> str:
        code = "".join(secrets.choice(MEET_CODE_ALPHABET) for _ in range(MEET_CODE_LENGTH))
        return f"{self.base_url}/{code}"

    def create_link(self, db: Session, teacher: User) -> MeetLink:
        meet = MeetLink(link=self.generate_link(), created_by=teacher.id)
        db.add(meet)
        db.commit()
        db.refresh(meet)
        logger.info("Meeting link %s created by teacher %s", meet.link, teacher.id)
        return meet

    def current_link(self, db: Session):
        return db.query(MeetLink).order_by(MeetLink.created_at.desc(), MeetLink.id.desc()).first()
