"""Fakes and row builders shared by the tests (imported after conftest sets the environment)."""
from datetime import date, datetime, time

from infrabook.core.constants import KIND_AVAILABILITY, KIND_RESERVATION, STATUS_AVAILABLE
from infrabook.models.slot import SlotRecord

NOW = datetime(2031, 3, 3, 8, 0)
DAY = date(2031, 3, 5)

MANAGER_EMAIL = "manager@example.com"
USER_EMAIL = "user@example.com"


class FakeNotifier:
    def __init__(self, result: bool = True):
        self.sent = []
        self.result = result

    def send(self, event, recipients, payload):
        self.sent.append((event, list(recipients), dict(payload)))
        return self.result

    def events(self):
        return [e for e, _, _ in self.sent]


class FailingNotifier:
    def send(self, event, recipients, payload):
        raise RuntimeError("smtp down")


class MemoryDocumentStore:
    def __init__(self):
        self.files = {}

    def store(self, data, filename=None):
        handle = f"doc-{len(self.files) + 1}"
        self.files[handle] = (data, filename)
        return handle


def make_slot(
    db,
    infrastructure_id,
    day=DAY,
    start=time(10, 0),
    end=time(11, 0),
    *,
    status=STATUS_AVAILABLE,
    claimant=None,
):
    row = SlotRecord(
        infrastructure_id=infrastructure_id,
        slot_date=day,
        start_time=start,
        end_time=end,
        kind=KIND_RESERVATION if claimant else KIND_AVAILABILITY,
        status=status,
        claimant=claimant,
    )
    db.add(row)
    db.commit()
    return row


def slot_rows(db, infrastructure_id):
    """(start, end, kind, status) per row, in insertion order."""
    db.expire_all()
    rows = (
        db.query(SlotRecord)
        .filter(SlotRecord.infrastructure_id == infrastructure_id)
        .order_by(SlotRecord.id.asc())
        .all()
    )
    return [(r.start_time, r.end_time, r.kind, r.status) for r in rows]
