"""Core of the lottery drawing engine."""

from .collaborators import Applicant, DeliveryResult, EligibilityResolver, Notifier
from .distribution import DistributionManager, DistributionReport, format_prize_message
from .eligibility import EligibilityChecker, EligibilityRule, EligibilityVerdict
from .engine import DrawEngine, DrawResult, select_winners
from .inventory import PrizeInventory, WarehouseSummary
from .ledger import AdmissionResult, ParticipantLedger, RejectReason
from .registry import LotteryConfig, LotteryRegistry

__all__ = [
    "AdmissionResult",
    "Applicant",
    "DeliveryResult",
    "DistributionManager",
    "DistributionReport",
    "DrawEngine",
    "DrawResult",
    "EligibilityChecker",
    "EligibilityResolver",
    "EligibilityRule",
    "EligibilityVerdict",
    "LotteryConfig",
    "LotteryRegistry",
    "Notifier",
    "ParticipantLedger",
    "PrizeInventory",
    "RejectReason",
    "WarehouseSummary",
    "format_prize_message",
    "select_winners",
]
