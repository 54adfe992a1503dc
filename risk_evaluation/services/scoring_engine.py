"""Rule-based risk scoring.

The scoring step is a pure function of a transaction and point-in-time
snapshots of the user's history: it performs no I/O and mutates nothing, so
identical snapshots always produce identical results.

Rules run in a fixed order and every rule category may fire. At most one tier
per category fires, the first whose conditions all hold.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from risk_evaluation.core.config import RiskRulesConfig
from risk_evaluation.domain.models.transaction import (
    RuleName,
    TransactionSnapshot,
    TransactionStatus,
    UserContext,
    UserStatsSnapshot,
)


@dataclass(frozen=True)
class RuleHit:
    rule: RuleName
    penalty: int


@dataclass(frozen=True)
class ScoringResult:
    """Total penalty and the rules that produced it, in firing order."""

    risk_score: int
    triggered_rules: tuple[str, ...] = ()

    @property
    def rules_triggered(self) -> str:
        return ",".join(self.triggered_rules)


class RuleSet:
    """The five scoring rules, parameterised by ``RiskRulesConfig``."""

    def __init__(self, config: RiskRulesConfig | None = None):
        self.config = config or RiskRulesConfig()

    def evaluate(
        self,
        transaction: TransactionSnapshot,
        user: UserContext,
        stats: UserStatsSnapshot,
    ) -> list[RuleHit]:
        candidates = (
            self.first_transaction_high_amount(transaction, stats),
            self.amount_deviation(transaction, stats),
            self.velocity(transaction, user),
            self.untrusted_device(transaction, user),
            self.missing_device(transaction),
        )
        return [hit for hit in candidates if hit is not None]

    def first_transaction_high_amount(
        self, transaction: TransactionSnapshot, stats: UserStatsSnapshot
    ) -> RuleHit | None:
        if stats.total_txns == 0 and transaction.amount > self.config.high_amount_limit:
            return RuleHit(
                RuleName.FIRST_TRANSACTION_HIGH_AMOUNT,
                self.config.first_transaction_high_amount_penalty,
            )
        return None

    def amount_deviation(
        self, transaction: TransactionSnapshot, stats: UserStatsSnapshot
    ) -> RuleHit | None:
        avg = Decimal(stats.avg_amount)
        if avg <= 0:
            return None

        cfg = self.config
        tiers = (
            (cfg.deviation_multiplier_high, RuleName.AMOUNT_DEVIATION_HIGH, cfg.amount_deviation_high_penalty),
            (cfg.deviation_multiplier_medium, RuleName.AMOUNT_DEVIATION_MEDIUM, cfg.amount_deviation_medium_penalty),
            (cfg.deviation_multiplier_low, RuleName.AMOUNT_DEVIATION_LOW, cfg.amount_deviation_low_penalty),
        )
        for multiplier, rule, penalty in tiers:
            if transaction.amount >= avg * multiplier:
                return RuleHit(rule, penalty)
        return None

    def velocity(self, transaction: TransactionSnapshot, user: UserContext) -> RuleHit | None:
        cfg = self.config
        amount = transaction.amount
        recent = user.recent_transaction_count

        # Each tier is range and count together; a tier that misses on count
        # falls through to the next one.
        if (
            cfg.medium_amount_min <= amount < cfg.medium_amount_max
            and recent >= cfg.medium_amount_min_count
        ):
            return RuleHit(RuleName.RAPID_MEDIUM_AMOUNT, cfg.rapid_medium_amount_penalty)
        if (
            cfg.large_amount_min <= amount < cfg.large_amount_max
            and recent >= cfg.large_amount_min_count
        ):
            return RuleHit(RuleName.RAPID_LARGE_AMOUNT, cfg.rapid_large_amount_penalty)
        if amount >= cfg.very_large_amount_min and recent >= cfg.very_large_amount_min_count:
            return RuleHit(RuleName.RAPID_VERY_LARGE_AMOUNT, cfg.rapid_very_large_amount_penalty)
        return None

    def untrusted_device(
        self, transaction: TransactionSnapshot, user: UserContext
    ) -> RuleHit | None:
        if user.trusted_device_id is None:
            return None
        if transaction.device_id != user.trusted_device_id:
            return RuleHit(RuleName.UNTRUSTED_DEVICE, self.config.untrusted_device_penalty)
        return None

    def missing_device(self, transaction: TransactionSnapshot) -> RuleHit | None:
        if not transaction.has_device:
            return RuleHit(RuleName.MISSING_DEVICE_ID, self.config.missing_device_penalty)
        return None


class ScoringEngine:
    """Sums the penalties of every rule that fires."""

    def __init__(self, rules: RuleSet | None = None):
        self.rules = rules or RuleSet()

    def score(
        self,
        transaction: TransactionSnapshot,
        user: UserContext,
        stats: UserStatsSnapshot,
    ) -> ScoringResult:
        hits = self.rules.evaluate(transaction, user, stats)
        return ScoringResult(
            risk_score=sum(hit.penalty for hit in hits),
            triggered_rules=tuple(hit.rule.value for hit in hits),
        )


class StatusClassifier:
    """Maps a risk score onto success, flagged or blocked."""

    def __init__(self, flagged_threshold: int, blocked_threshold: int):
        if flagged_threshold >= blocked_threshold:
            raise ValueError(
                f"flagged_threshold ({flagged_threshold}) must be lower than "
                f"blocked_threshold ({blocked_threshold})"
            )
        self.flagged_threshold = flagged_threshold
        self.blocked_threshold = blocked_threshold

    @classmethod
    def from_config(cls, config: RiskRulesConfig) -> StatusClassifier:
        return cls(config.flagged_threshold, config.blocked_threshold)

    def classify(self, risk_score: int) -> TransactionStatus:
        if risk_score >= self.blocked_threshold:
            return TransactionStatus.BLOCKED
        if risk_score >= self.flagged_threshold:
            return TransactionStatus.FLAGGED
        return TransactionStatus.SUCCESS
