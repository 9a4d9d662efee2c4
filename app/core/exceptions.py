"""Domain exceptions raised by services and translated to HTTP errors by routes."""


class LeadRouterError(Exception):
    """Base class for domain errors."""


class SourceNotFoundError(LeadRouterError):
    """Webhook source does not exist, is inactive, or was deleted."""

    def __init__(self, webhook_id: str) -> None:
        self.webhook_id = webhook_id
        super().__init__(f"Webhook {webhook_id} is not configured or is inactive")


class WorkspaceNotFoundError(LeadRouterError):
    """Workspace does not exist or is inactive."""

    def __init__(self, workspace_id: int) -> None:
        self.workspace_id = workspace_id
        super().__init__(f"Workspace {workspace_id} not found or inactive")


class RuleNotFoundError(LeadRouterError):
    """Routing or forwarding rule does not exist in the requested scope."""

    def __init__(self, rule_id: int) -> None:
        self.rule_id = rule_id
        super().__init__(f"Rule {rule_id} not found")


class RuleConfigurationError(LeadRouterError):
    """Rule definition rejected at creation or update time."""


class LeadNotFoundError(LeadRouterError):
    """Lead referenced by an operation no longer exists."""

    def __init__(self, lead_id: int) -> None:
        self.lead_id = lead_id
        super().__init__(f"Lead {lead_id} not found")


class AppointmentNotFoundError(LeadRouterError):
    """Appointment does not exist."""

    def __init__(self, appointment_id: int) -> None:
        self.appointment_id = appointment_id
        super().__init__(f"Appointment {appointment_id} not found")


class WorkspaceConfigurationError(LeadRouterError):
    """Workspace cannot take part in an operation as configured."""


class WebhookDeliveryError(LeadRouterError):
    """Outbound webhook delivery attempt failed (non-2xx, timeout, connection)."""

    def __init__(self, message: str, status_code: int | None = None, response_body: str | None = None) -> None:
        self.status_code = status_code
        self.response_body = response_body
        super().__init__(message)


class DuplicateSourceError(LeadRouterError):
    """A webhook source with the same webhook ID already exists."""

    def __init__(self, webhook_id: str) -> None:
        self.webhook_id = webhook_id
        super().__init__(f"Webhook {webhook_id} already exists")


class ContactResolutionError(LeadRouterError):
    """A lead could not be bound to a contact identity.

    ``retryable`` is True when the failure came from concurrent changes to
    the same identity and resubmitting the lead will succeed.
    """

    def __init__(self, message: str, retryable: bool = False) -> None:
        self.retryable = retryable
        super().__init__(message)
