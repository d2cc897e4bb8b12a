"""Report errors. Each carries the HTTP status it is reported with."""


class ReportError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ReportValidationError(ReportError):
    """Missing or malformed request parameters."""
    status_code = 400


class ShopAccessDenied(ReportError):
    status_code = 403


class ScanBudgetExceeded(ReportError):
    """The window holds more pages than the configured scan budget."""
    status_code = 422


class ScanCancelled(ReportError):
    """The caller went away before the scan finished."""
    status_code = 499


class StoreReadError(ReportError):
    """A page could not be read from the order store."""
    status_code = 502
