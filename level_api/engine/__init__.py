"""Threshold evaluation and pump control engine.

Structure:
- evaluator.py: pure level classification and input normalisation
- deduplicator.py: alert cool-down gate
- pump_controller.py: pump state machine (single writer of PumpState)
- dispatcher.py: ordered fan-out to broadcast, email and alarm
- ingress.py: one evaluation cycle per reading
- alarm.py: buzzer actuator
"""

from .evaluator import classify, distance_to_level, validate_level
from .deduplicator import AlertDecision, AlertDeduplicator
from .pump_controller import PumpController, PumpStateCell, TransitionOutcome
from .dispatcher import NotificationDispatcher
from .ingress import IngestOutcome, ReadingIngress
from .alarm import Buzzer

__all__ = [
    "classify",
    "distance_to_level",
    "validate_level",
    "AlertDecision",
    "AlertDeduplicator",
    "PumpController",
    "PumpStateCell",
    "TransitionOutcome",
    "NotificationDispatcher",
    "IngestOutcome",
    "ReadingIngress",
    "Buzzer",
]
