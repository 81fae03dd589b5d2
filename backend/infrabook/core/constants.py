"""
Centralized constants for the slot lifecycle and the scheduler.

Statuses and kinds are stored as plain strings; change them here, not in queries.
"""
# SlotRecord.kind
KIND_AVAILABILITY = "availability"
KIND_RESERVATION = "reservation"

# SlotRecord.status
STATUS_AVAILABLE = "available"
STATUS_PENDING = "pending"
STATUS_APPROVED = "approved"
STATUS_REJECTED = "rejected"
STATUS_COMPLETED = "completed"
STATUS_EXPIRED = "expired"
STATUS_CANCELED = "canceled"

ALL_STATUSES = (
    STATUS_AVAILABLE,
    STATUS_PENDING,
    STATUS_APPROVED,
    STATUS_REJECTED,
    STATUS_COMPLETED,
    STATUS_EXPIRED,
    STATUS_CANCELED,
)
# Statuses that occupy the physical interval; at most one row per interval may hold one
CAPACITY_HOLDING_STATUSES = (STATUS_AVAILABLE, STATUS_PENDING, STATUS_APPROVED)
TERMINAL_STATUSES = (STATUS_REJECTED, STATUS_COMPLETED, STATUS_EXPIRED, STATUS_CANCELED)

# QuestionDefinition.question_type
QUESTION_TEXT = "text"
QUESTION_NUMBER = "number"
QUESTION_DROPDOWN = "dropdown"
QUESTION_DOCUMENT = "document"
QUESTION_TYPES = (QUESTION_TEXT, QUESTION_NUMBER, QUESTION_DROPDOWN, QUESTION_DOCUMENT)

# CapabilityToken.action
TOKEN_ACTION_APPROVE = "approve"
TOKEN_ACTION_REJECT = "reject"
TOKEN_ACTION_CONFIRM_GUEST = "confirm_guest"
EMAIL_TOKEN_ACTIONS = (TOKEN_ACTION_APPROVE, TOKEN_ACTION_REJECT)

# Decision actions accepted by decide()
DECISION_APPROVE = "approve"
DECISION_REJECT = "reject"
DECISION_CANCEL = "cancel"
DECISION_ACTIONS = (DECISION_APPROVE, DECISION_REJECT, DECISION_CANCEL)

# GuestIntent.status
INTENT_PENDING = "pending"
INTENT_CONFIRMED = "confirmed"

# Actor roles (role storage is external; the engine only reads these)
ROLE_ADMIN = "admin"
ROLE_MANAGER = "manager"
ROLE_USER = "user"
ROLE_GUEST = "guest"

# Notification events
EVENT_BOOKING_REQUESTED = "booking_requested"
EVENT_BOOKING_STATUS_CHANGED = "booking_status_changed"
EVENT_GUEST_CONFIRMATION = "guest_confirmation"

# Scheduler job IDs (must match ids used in main.py add_job)
SWEEP_JOB_ID = "slot_status_sweep"

# Rolling window for the guest rate limit
GUEST_RATE_WINDOW_HOURS = 24
