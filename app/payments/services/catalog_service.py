"""
Service catalog maintenance.

Every edit to a ServiceConfig is written together with a ServiceHistory
row in the same transaction.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.exceptions import ConflictError, NotFoundError, ValidationError
from core.services import BaseService, ServiceResult
from payments.models import ServiceConfig, ServiceHistory
from payments.state_machines import ServiceChangeType, ServiceStatus

if TYPE_CHECKING:
    from typing import Any

EDITABLE_FIELDS = frozenset(["display_name", "description", "status", "amount", "currency", "duration_days"])


class ServiceCatalog(BaseService):
    """Reads and edits the purchasable services."""

    def get_active_service(self, service_code: str) -> ServiceResult[ServiceConfig]:
        service = ServiceConfig.objects.filter(service_code=service_code).first()
        if service is None or not service.is_available:
            return ServiceResult.from_exception(
                NotFoundError(
                    f"Service {service_code} is not available",
                    details={"service_code": service_code},
                )
            )
        return ServiceResult.success(service)

    def create_service(self, service_code: str, changed_by: str, **fields: Any) -> ServiceResult[ServiceConfig]:
        unknown = set(fields) - EDITABLE_FIELDS
        if unknown:
            return ServiceResult.from_exception(
                ValidationError("Unknown service fields", details={"fields": sorted(unknown)})
            )
        if ServiceConfig.objects.filter(service_code=service_code).exists():
            return ServiceResult.from_exception(
                ConflictError(f"Service {service_code} already exists", details={"service_code": service_code})
            )

        with self.atomic():
            service = ServiceConfig.objects.create(service_code=service_code, updated_by=changed_by, **fields)
            ServiceHistory.objects.create(
                service=service,
                service_code=service_code,
                change_type=ServiceChangeType.CREATED,
                changed_by=changed_by,
                changes={name: {"old": None, "new": value} for name, value in fields.items()},
            )
        return ServiceResult.success(service)

    def update_service(self, service_code: str, changed_by: str, **changes: Any) -> ServiceResult[ServiceConfig]:
        """
        Apply field changes and append a ServiceHistory row.

        A change that only touches status is recorded as STATUS_CHANGED
        (ARCHIVED when archiving); anything else as UPDATED. Fields whose
        value does not change are left out of the history entry.
        """
        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            return ServiceResult.from_exception(
                ValidationError("Unknown service fields", details={"fields": sorted(unknown)})
            )
        if "status" in changes and changes["status"] not in ServiceStatus.values:
            return ServiceResult.from_exception(
                ValidationError("Unknown service status", details={"status": changes["status"]})
            )
        if "amount" in changes and (not isinstance(changes["amount"], int) or changes["amount"] <= 0):
            return ServiceResult.from_exception(
                ValidationError("amount must be a positive integer", details={"amount": changes["amount"]})
            )

        with self.atomic():
            service = ServiceConfig.objects.select_for_update().filter(service_code=service_code).first()
            if service is None:
                return ServiceResult.from_exception(
                    NotFoundError(f"Service {service_code} not found", details={"service_code": service_code})
                )

            diff = {
                name: {"old": getattr(service, name), "new": value}
                for name, value in changes.items()
                if getattr(service, name) != value
            }
            if not diff:
                return ServiceResult.success(service)

            for name, change in diff.items():
                setattr(service, name, change["new"])
            service.updated_by = changed_by
            service.save(update_fields=[*diff, "updated_by", "updated_at"])

            ServiceHistory.objects.create(
                service=service,
                service_code=service_code,
                change_type=self._change_type(diff),
                changed_by=changed_by,
                changes=diff,
            )

        self.get_logger().info(
            "Service updated",
            extra={"service_code": service_code, "fields": sorted(diff), "changed_by": changed_by},
        )
        return ServiceResult.success(service)

    @staticmethod
    def _change_type(diff: dict[str, Any]) -> str:
        if set(diff) == {"status"}:
            if diff["status"]["new"] == ServiceStatus.ARCHIVED:
                return ServiceChangeType.ARCHIVED
            return ServiceChangeType.STATUS_CHANGED
        return ServiceChangeType.UPDATED
