from infrabook.models.answer import Answer
from infrabook.models.capability_token import CapabilityToken
from infrabook.models.guest_intent import GuestIntent
from infrabook.models.infrastructure import Infrastructure
from infrabook.models.infrastructure_manager import InfrastructureManager
from infrabook.models.question import QuestionDefinition
from infrabook.models.slot import SlotRecord

__all__ = [
    "Answer",
    "CapabilityToken",
    "GuestIntent",
    "Infrastructure",
    "InfrastructureManager",
    "QuestionDefinition",
    "SlotRecord",
]
