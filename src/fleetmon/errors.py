"""fleetmon errors."""


class MonitorError(Exception):
    """Base error for monitoring operations."""

    def __init__(self, message: str, code: str = "MONITOR_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)


class FleetLoadError(MonitorError):
    """Prerequisite fleet state could not be loaded. Aborts the run."""

    def __init__(self, what: str, cause: Exception):
        super().__init__(f"error loading {what}: {cause}", "FLEET_LOAD_FAILED")
        self.what = what
        self.cause = cause


class ProjectResolutionError(MonitorError):
    """A project ref could not be resolved to a project."""

    def __init__(self, identifier: str, reason: str):
        super().__init__(
            f"error finding project {identifier}: {reason}",
            "PROJECT_RESOLUTION_FAILED",
        )
        self.identifier = identifier
        self.reason = reason


class FlaggingError(MonitorError):
    """A flagging policy, monitoring check or notification builder failed to evaluate."""

    def __init__(self, stage: str, policy: str, cause: Exception):
        super().__init__(
            f"{stage}: error running {policy}: {cause}",
            "FLAGGING_FAILED",
        )
        self.stage = stage
        self.policy = policy
        self.cause = cause


class CleanupError(MonitorError):
    """A corrective action on a single host or task failed."""

    def __init__(self, resource_kind: str, resource_id: str, operation: str, cause: Exception):
        super().__init__(
            f"error {operation} {resource_kind} {resource_id}: {cause}",
            "CLEANUP_FAILED",
        )
        self.resource_kind = resource_kind
        self.resource_id = resource_id
        self.operation = operation
        self.cause = cause


class NotificationError(MonitorError):
    """A notification could not be built or delivered."""

    def __init__(self, operation: str, target: str, cause: Exception):
        super().__init__(
            f"error {operation} notification for {target}: {cause}",
            "NOTIFICATION_FAILED",
        )
        self.operation = operation
        self.target = target
        self.cause = cause


class EventLogError(MonitorError):
    """An audit event could not be persisted."""

    def __init__(self, resource_id: str, event_type: str, cause: Exception):
        super().__init__(
            f"error recording {event_type} event for {resource_id}: {cause}",
            "EVENT_LOG_FAILED",
        )
        self.resource_id = resource_id
        self.event_type = event_type
        self.cause = cause


class StaleResourceError(MonitorError):
    """A resource changed underneath a cleanup action."""

    def __init__(self, resource_kind: str, resource_id: str, expected: str):
        super().__init__(
            f"{resource_kind} {resource_id} is no longer {expected}",
            "STALE_RESOURCE",
        )
        self.resource_kind = resource_kind
        self.resource_id = resource_id
        self.expected = expected


class ProvisionerError(MonitorError):
    """The provisioning service rejected or failed an action."""

    def __init__(self, host_id: str, action: str, reason: str):
        super().__init__(
            f"provisioner failed to {action} host {host_id}: {reason}",
            "PROVISIONER_FAILED",
        )
        self.host_id = host_id
        self.action = action
        self.reason = reason


class ProvisionerNotConfigured(MonitorError):
    """No provisioning service endpoint is configured."""

    def __init__(self):
        super().__init__("provisioner_endpoint is not configured", "PROVISIONER_NOT_CONFIGURED")


class DeliveryNotConfigured(MonitorError):
    """No notification delivery endpoint is configured."""

    def __init__(self):
        super().__init__(
            "notification_webhook_url is not configured",
            "DELIVERY_NOT_CONFIGURED",
        )
