import logging
from fastapi import HTTPException, status
from pymongo.errors import PyMongoError

logger = logging.getLogger(__name__)


def get_user_exception():
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    return credentials_exception


def get_unknown_entity_exception():
    entity_exception = HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail="Entity not found"
    )
    return entity_exception


def get_server_exception(error: PyMongoError, context: str):
    """Logs a storage fault with its traceback and hides the detail from the caller."""
    logger.error("%s failed: %s", context, error, exc_info=error)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="Server error"
    )


class HRException(HTTPException):
    status_code = status.HTTP_400_BAD_REQUEST
    detail = "Bad request"

    def __init__(self, detail: str = None):
        super().__init__(status_code=self.status_code, detail=detail or self.detail)


class NotFoundError(HRException):
    status_code = status.HTTP_404_NOT_FOUND
    detail = "Entity not found"


class ForbiddenError(HRException):
    status_code = status.HTTP_403_FORBIDDEN
    detail = "You are not authorized to perform this function"


class UnlinkedAccountError(HRException):
    detail = "No employee profile linked to your account. Please contact HR to link your employee profile."


class MissingEmployeeError(UnlinkedAccountError):
    detail = "No employee profile linked to your account. Please contact HR."


# Attendance
class AlreadyClockedInError(HRException):
    detail = "Already clocked in today"


class NoClockInRecordError(HRException):
    detail = "No clock-in record found for today"


class AlreadyClockedOutError(HRException):
    detail = "Already clocked out today"


class BreakStateError(HRException):
    detail = "Invalid break state"


class DuplicateAttendanceError(HRException):
    detail = "An attendance record already exists for this employee and date"


# Leave
class AlreadyProcessedError(HRException):
    detail = "Leave request has already been processed"


class SelfApprovalError(HRException):
    detail = "You cannot approve your own leave request"


class SelfRejectionError(HRException):
    detail = "You cannot reject your own leave request"
