import logging
from datetime import date, timedelta
from typing import Any, Dict, List

from sqlalchemy import func
from sqlalchemy.orm import Session

from db.models.attendance import AttendanceRecord
from db.models.users import User

from .config import CALENDAR_DAYS, CALENDAR_DAYS_BEFORE_TODAY
from .errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_STATUS = "present"


def summarize(records) -> Dict[str, int]:
    total = len(records)
    present = len([r for r in records if r.status == "present"])
    absent = len([r for r in records if r.status == "absent"])
    late = len([r for r in records if r.status == "late"])
    pct = int(present / total * 100) if total > 0 else 0
    return {"total": total, "present": present, "absent": absent, "late": late, "percentage": pct}


class AttendanceBook:
    """Daily attendance, one record per student per date."""

    def students(self, db: Session) -> List[User]:
        return db.query(User).filter(User.role == "student").order_by(User.name, User.id).all()

    def _upsert(self, db: Session, student_id: int, day: date, status: str, recorded_by: int, notes=None):
        record = (
            db.query(AttendanceRecord)
            .filter(AttendanceRecord.student_id == student_id, AttendanceRecord.date == day)
            .first()
        )
        if record is None:
            record = AttendanceRecord(student_id=student_id, date=day)
            db.add(record)
        record.status = status
        record.recorded_by = recorded_by
        if notes is not None:
            record.notes = notes
        return record

    def record(self, db: Session, teacher: User, data) -> AttendanceRecord:
        student = db.query(User).filter(User.id == data.student_id, User.role == "student").first()
        if not student:
            raise NotFoundError("Student not found")

        record = self._upsert(db, student.id, data.date, data.status, teacher.id, data.notes)
        db.commit()
        db.refresh(record)
        logger.info("Attendance for student %s on %s set to %s", student.id, data.date, data.status)
        return record

    def record_bulk(self, db: Session, teacher: User, day: date, statuses: Dict[int, str]) -> List[AttendanceRecord]:
        students = self.students(db)
        known = {s.id for s in students}
        unknown = [sid for sid in statuses if sid not in known]
        if unknown:
            raise ValidationError(f"Unknown student ids: {sorted(unknown)}")

        # every student gets a record; anyone not marked counts as present
        records = [
            self._upsert(db, s.id, day, statuses.get(s.id, DEFAULT_STATUS), teacher.id)
            for s in students
        ]
        db.commit()
        for r in records:
            db.refresh(r)
        logger.info("Attendance saved for %d students on %s by teacher %s", len(records), day, teacher.id)
        return records

    def by_date(self, db: Session, day: date) -> List[Dict[str, Any]]:
        rows = (
            db.query(AttendanceRecord, User)
            .join(User, AttendanceRecord.student_id == User.id)
            .filter(AttendanceRecord.date == day)
            .order_by(User.name)
            .all()
        )
        return [
            {
                "id": record.id,
                "student_id": record.student_id,
                "date": record.date,
                "status": record.status,
                "notes": record.notes,
                "recorded_by": record.recorded_by,
                "created_at": record.created_at,
                "student_name": student.name,
                "student_email": student.email,
            }
            for record, student in rows
        ]

    def stats(self, db: Session, day: date) -> Dict[str, Any]:
        students = self.students(db)
        marked = {
            r.student_id: r.status
            for r in db.query(AttendanceRecord).filter(AttendanceRecord.date == day).all()
        }
        statuses = [marked.get(s.id, DEFAULT_STATUS) for s in students]
        return {
            "date": day,
            "total": len(students),
            "present": statuses.count("present"),
            "absent": statuses.count("absent"),
            "late": statuses.count("late"),
        }

    def calendar(self, db: Session, today: date) -> List[Dict[str, Any]]:
        start = today - timedelta(days=CALENDAR_DAYS_BEFORE_TODAY)
        end = start + timedelta(days=CALENDAR_DAYS - 1)

        counts = dict(
            db.query(AttendanceRecord.date, func.count(AttendanceRecord.id))
            .filter(AttendanceRecord.date >= start, AttendanceRecord.date <= end)
            .group_by(AttendanceRecord.date)
            .all()
        )

        days = []
        for i in range(CALENDAR_DAYS):
            day = start + timedelta(days=i)
            count = counts.get(day, 0)
            days.append({"date": day, "count": count, "has_attendance": count > 0, "is_today": day == today})
        return days

    def student_attendance(self, db: Session, student_id: int) -> Dict[str, Any]:
        records = (
            db.query(AttendanceRecord)
            .filter(AttendanceRecord.student_id == student_id)
            .order_by(AttendanceRecord.date.desc())
            .all()
        )
        return {"student_id": student_id, "records": records, "summary": summarize(records)}
