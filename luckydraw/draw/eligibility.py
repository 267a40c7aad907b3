"""Eligibility predicates evaluated before a user is admitted."""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Iterable, Optional

from .collaborators import Applicant, EligibilityResolver

if TYPE_CHECKING:
    from ..models import LotteryActivity

logger = logging.getLogger(__name__)


class EligibilityRule(enum.Enum):
    """Closed set of admission requirements a lottery can impose."""

    NOT_BOT = "not_bot"
    HAS_AVATAR = "has_avatar"
    HAS_USERNAME = "has_username"
    CHANNEL_MEMBER = "channel_member"


REJECTION_REASONS: dict[EligibilityRule, str] = {
    EligibilityRule.NOT_BOT: "Bots are not allowed to join this lottery",
    EligibilityRule.HAS_AVATAR: "A profile photo is required to join this lottery",
    EligibilityRule.HAS_USERNAME: "A username is required to join this lottery",
    EligibilityRule.CHANNEL_MEMBER: "Joining the required channel is needed to take part",
}

# Rules whose lookup errors count as "ineligible" even when fail-open is allowed.
FAIL_CLOSED_RULES = frozenset({EligibilityRule.NOT_BOT, EligibilityRule.CHANNEL_MEMBER})


@dataclass(frozen=True)
class EligibilityVerdict:
    eligible: bool
    rule: Optional[EligibilityRule] = None
    reason: Optional[str] = None


def _check_not_bot(resolver, applicant, lottery) -> bool:
    return not resolver.is_bot(applicant.user_id)


def _check_has_avatar(resolver, applicant, lottery) -> bool:
    return resolver.has_avatar(applicant.user_id)


def _check_has_username(resolver, applicant, lottery) -> bool:
    # The username sent with the join request is enough; only ask when absent.
    if applicant.username:
        return True
    return resolver.has_username(applicant.user_id)


def _check_channel_member(resolver, applicant, lottery) -> bool:
    return resolver.is_channel_member(lottery.required_channel, applicant.user_id)


PREDICATES: dict[
    EligibilityRule,
    Callable[[EligibilityResolver, Applicant, "LotteryActivity"], bool],
] = {
    EligibilityRule.NOT_BOT: _check_not_bot,
    EligibilityRule.HAS_AVATAR: _check_has_avatar,
    EligibilityRule.HAS_USERNAME: _check_has_username,
    EligibilityRule.CHANNEL_MEMBER: _check_channel_member,
}


class EligibilityChecker:
    """Evaluates a lottery's eligibility rules against the resolver.

    Parameters
    ----------
    resolver : EligibilityResolver
        External user lookup service.
    fail_closed : bool, default: False
        When true, a resolver error rejects the applicant for every rule.
        Otherwise only the rules in :data:`FAIL_CLOSED_RULES` reject on error
        and the others let the applicant through.
    """

    def __init__(self, resolver: EligibilityResolver, *, fail_closed: bool = False) -> None:
        self._resolver = resolver
        self._fail_closed = fail_closed

    def check_rule(
        self, rule: EligibilityRule, applicant: Applicant, lottery: "LotteryActivity"
    ) -> bool:
        """Evaluate a single rule, applying the failure policy on lookup errors."""
        predicate = PREDICATES[rule]
        try:
            return bool(predicate(self._resolver, applicant, lottery))
        except Exception as exc:
            if self._fail_closed or rule in FAIL_CLOSED_RULES:
                logger.warning(
                    f"Eligibility lookup {rule.value} failed for user {applicant.user_id}; rejecting: {exc}"
                )
                return False
            logger.warning(
                f"Eligibility lookup {rule.value} failed for user {applicant.user_id}; allowing: {exc}"
            )
            return True

    def evaluate(
        self,
        applicant: Applicant,
        lottery: "LotteryActivity",
        rules: Optional[Iterable[EligibilityRule]] = None,
    ) -> EligibilityVerdict:
        """Return the first failing rule, or an eligible verdict."""
        for rule in rules if rules is not None else lottery.eligibility_rules():
            if not self.check_rule(rule, applicant, lottery):
                return EligibilityVerdict(
                    eligible=False, rule=rule, reason=REJECTION_REASONS[rule]
                )
        return EligibilityVerdict(eligible=True)


__all__ = [
    "EligibilityRule",
    "EligibilityVerdict",
    "EligibilityChecker",
    "FAIL_CLOSED_RULES",
    "REJECTION_REASONS",
]
