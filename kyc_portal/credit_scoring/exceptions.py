# Error taxonomy for credit scoring and the bureau lookup feeding it.
from typing import Optional


class ValidationError(Exception):
    """Required identifying input (the BVN) is missing or malformed."""
    def __init__(self, message="Invalid input provided"):
        self.message = message
        super().__init__(self.message)

class UpstreamUnavailable(Exception):
    """The identity-data provider could not be reached or returned nothing usable."""
    def __init__(self, message="Credit bureau service is currently unavailable"):
        self.message = message
        super().__init__(self.message)

class CreditBureauError(UpstreamUnavailable):
    """The provider answered, but with a non-success status."""
    def __init__(self, message="Failed to fetch credit bureau data", status_code: int = 502,
                 suggestion: str = "", details: Optional[dict] = None):
        self.status_code = status_code
        self.suggestion = suggestion
        self.details = details or {}
        super().__init__(message)

class ComputationError(Exception):
    def __init__(self, message="Credit score computation failed"):
        self.message = message
        super().__init__(self.message)

class NotFoundException(Exception):
    def __init__(self, message="Resource not found"):
        self.message = message
        super().__init__(self.message)
