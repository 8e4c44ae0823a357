from fastapi import HTTPException, status


class AppException:
    """Class-based exception handlers for common HTTP status codes."""

    @staticmethod
    def raise_401(message: str = "Unauthorized"):
        """Raise a 401 Unauthorized exception."""
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=message)

    @staticmethod
    def raise_403(message: str = "Forbidden"):
        """Raise a 403 Forbidden exception."""
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=message)

    @staticmethod
    def raise_404(message: str = "Not Found"):
        """Raise a 404 Not Found exception."""
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=message)

    @staticmethod
    def raise_409(message: str = "Conflict"):
        """Raise a 409 Conflict exception."""
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=message)

    @staticmethod
    def raise_503(message: str = "Service Unavailable"):
        """Raise a 503 Service Unavailable exception."""
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=message)


raise_401 = AppException.raise_401
raise_403 = AppException.raise_403
raise_404 = AppException.raise_404
raise_409 = AppException.raise_409
raise_503 = AppException.raise_503


# -------------------------------------------------
# Background job errors
# -------------------------------------------------

class StoreUnavailable(Exception):
    """A database statement failed; the current unit of work was aborted."""


class EndpointGone(Exception):
    """The push service reports the subscription no longer exists (404/410, unregistered token)."""


class TransientDeliveryFailure(Exception):
    """Any other push send error, including timeouts. Logged, never retried."""


class VendorMetricsError(Exception):
    """Collected vendor metrics are inconsistent and cannot be scored."""


class VendorNotFound(Exception):
    def __init__(self, vendor_id: int):
        super().__init__(f"Vendor {vendor_id} not found")
        self.vendor_id = vendor_id


class UnknownJob(Exception):
    def __init__(self, name: str):
        super().__init__(f"Unknown job: {name}")
        self.name = name


class JobAlreadyRunning(Exception):
    def __init__(self, name: str):
        super().__init__(f"Job {name} is already running")
        self.name = name
