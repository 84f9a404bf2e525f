class AppError(Exception):
    """Base class for all application exceptions."""
    def __init__(self, message: str, status_code: int = 500, details: dict = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)

class SchedulerError(AppError):
    """Raised when the scheduler is handed input it cannot plan with."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message, status_code=400, details=details)

class GenomeConsistencyError(AppError):
    """Raised when an individual's genome and its instances disagree."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message, status_code=500, details=details)

class ResourceNotFoundError(AppError):
    """Raised when a requested resource is not found."""
    def __init__(self, resource_type: str, resource_id: str):
        super().__init__(f"{resource_type} with id {resource_id} not found", status_code=404)
