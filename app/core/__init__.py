"""
Core Application - Infrastructure & Base Classes

Generic, reusable building blocks shared by the domain apps. Nothing in
here knows about payments or subscriptions.

Models (import from core.models):
    - BaseModel: Abstract model with timestamps (created_at, updated_at)

Model Mixins (import from core.model_mixins):
    - UUIDPrimaryKeyMixin: UUID as primary key

Services (import from core.services):
    - BaseService: Base class for service layer
    - ServiceResult: Standard result wrapper for success/failure handling

Exceptions (import from core.exceptions):
    - BaseApplicationError: Base exception with error codes
    - ValidationError, NotFoundError, PermissionDeniedError,
      ConflictError, RateLimitError, ExternalServiceError

Helpers (import from core.helpers):
    - calculate_pagination: Pagination window calculation
    - parse_iso_date: ISO-8601 query parameter parsing
    - month_label, shift_month: Calendar month arithmetic

Views (import from core.views):
    - api_exception_handler: DRF exception handler
    - health_check: Database and Redis probe
"""
