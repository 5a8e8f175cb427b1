class ClassroomError(ValueError):
    """Base class for rule violations raised by the classroom engines."""

    status_code = 400


class ValidationError(ClassroomError):
    status_code = 400


class NotFoundError(ClassroomError):
    status_code = 404


class PermissionDeniedError(ClassroomError):
    status_code = 403


class ConflictError(ClassroomError):
    status_code = 409
