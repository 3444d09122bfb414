"""
Exception hierarchy of the CV Matching API.

Every domain error carries a machine readable ``error_code``, a ``details``
dict and the HTTP status it maps to. The middleware turns them into the JSON
error envelope via ``map_to_http_exception``.
"""
import functools
import time
from random import uniform
from typing import Any, Dict

from fastapi import HTTPException


def _details(base: Dict[str, Any] = None, **fields) -> Dict[str, Any]:
    details = dict(base or {})
    details.update({k: v for k, v in fields.items() if v is not None})
    return details


class CVMatchBaseException(Exception):
    """Base exception for the CV Matching API"""

    status_code = 500
    default_code = None

    def __init__(
        self,
        message: str,
        error_code: str = None,
        details: Dict[str, Any] = None,
        cause: Exception = None
    ):
        self.message = message
        self.error_code = error_code or self.default_code or self.__class__.__name__
        self.details = details or {}
        self.cause = cause
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Serializable form used in logs and error responses"""
        result = {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details
        }
        if self.cause:
            result["cause"] = str(self.cause)
        return result


class ValidationError(CVMatchBaseException):
    """Invalid input, e.g. criteria weights that do not sum to 100"""

    status_code = 400
    default_code = "VALIDATION_ERROR"

    def __init__(self, message: str, field: str = None, value: Any = None, **kwargs):
        invalid = str(value) if value is not None else None
        kwargs["details"] = _details(kwargs.get("details"), field=field, invalid_value=invalid)
        super().__init__(message, **kwargs)


class NotFoundError(CVMatchBaseException):
    status_code = 404
    default_code = "NOT_FOUND"

    def __init__(self, message: str, resource: str = None, resource_id: str = None, **kwargs):
        kwargs["details"] = _details(kwargs.get("details"), resource=resource, resource_id=resource_id)
        super().__init__(message, **kwargs)


class BusinessLogicError(CVMatchBaseException):
    """A request that is well formed but breaks a domain rule"""

    status_code = 400
    default_code = "BUSINESS_LOGIC_ERROR"

    def __init__(self, message: str, rule: str = None, **kwargs):
        kwargs["details"] = _details(kwargs.get("details"), rule=rule)
        super().__init__(message, **kwargs)


class DatabaseError(CVMatchBaseException):
    status_code = 500
    default_code = "DATABASE_ERROR"

    def __init__(self, message: str, operation: str = None, collection: str = None, **kwargs):
        kwargs["details"] = _details(kwargs.get("details"), operation=operation, collection=collection)
        super().__init__(message, **kwargs)


class ExternalServiceError(CVMatchBaseException):
    """An upstream service (Ollama) failed or could not be reached"""

    status_code = 502
    default_code = "EXTERNAL_SERVICE_ERROR"

    def __init__(self, message: str, service_name: str = None, status_code: int = None, **kwargs):
        kwargs["details"] = _details(kwargs.get("details"), service_name=service_name,
                                     upstream_status=status_code)
        super().__init__(message, **kwargs)


class ProcessingError(CVMatchBaseException):
    status_code = 500
    default_code = "PROCESSING_ERROR"

    def __init__(self, message: str, document_id: str = None, document_type: str = None, **kwargs):
        kwargs["details"] = _details(kwargs.get("details"), document_id=document_id, document_type=document_type)
        super().__init__(message, **kwargs)


class CVParsingError(ProcessingError):
    """A CV document could not be turned into structured data"""

    status_code = 422
    default_code = "CV_PARSING_ERROR"

    def __init__(self, message: str, file_path: str = None, **kwargs):
        kwargs["details"] = _details(kwargs.get("details"), file_path=file_path)
        super().__init__(message, document_type="cv", **kwargs)


class CVFileNotFoundError(CVParsingError):
    default_code = "CV_FILE_NOT_FOUND"


class UnsupportedFileTypeError(CVParsingError):
    default_code = "UNSUPPORTED_FILE_TYPE"

    def __init__(self, message: str, file_path: str = None, extension: str = None, **kwargs):
        kwargs["details"] = _details(kwargs.get("details"), extension=extension)
        super().__init__(message, file_path=file_path, **kwargs)


class FileTooLargeError(CVParsingError):
    default_code = "FILE_TOO_LARGE"

    def __init__(self, message: str, file_path: str = None, size_bytes: int = None, **kwargs):
        kwargs["details"] = _details(kwargs.get("details"), size_bytes=size_bytes)
        super().__init__(message, file_path=file_path, **kwargs)


def map_to_http_exception(exc: CVMatchBaseException) -> HTTPException:
    """Map a domain exception to the HTTPException the middleware renders"""
    detail = {
        "error": exc.to_dict(),
        "message": exc.message
    }
    return HTTPException(status_code=exc.status_code, detail=detail)


def retry_with_logging(
    max_attempts: int = 3,
    backoff_factor: float = 1.0,
    exceptions: tuple = (Exception,),
    logger=None
):
    """Retry a blocking call with exponential backoff and jitter, logging each failure"""

    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            for attempt in range(1, max_attempts + 1):
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    if logger:
                        logger.warning(f"Attempt {attempt}/{max_attempts} failed for {func.__name__}: {e}")
                    if attempt == max_attempts:
                        if logger:
                            logger.error(f"All {max_attempts} attempts failed for {func.__name__}")
                        raise
                    time.sleep(backoff_factor * (2 ** (attempt - 1)) + uniform(0, 1))
        return wrapper

    return decorator
