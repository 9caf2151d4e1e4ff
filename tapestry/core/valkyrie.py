"""
Valkyrie: Autonomous Response
=============================

Policy-driven decisions on top of Sentinel reports.

GUARANTEES:
===========
1. Every `evaluate` call appends exactly one ExecutionLogEntry,
   including NO_ACTION entries
2. Decisions are deterministic given (report, policy, status, clock)
3. No debouncing: an unchanged report may re-trigger the same action;
   the caller owns invocation cadence
4. Manual overrides bypass policy and status and are logged as MANUAL

FAILURE STATES:
- PolicyConfigError at construction when thresholds or rules are
  missing or invalid. Proceeding without a policy is never allowed.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union
import logging
import threading

from ..contracts.base import Error, ErrorCode, PolicyConfigError
from ..contracts.events import (
    GLOBAL_TARGET, TRIGGER_MANUAL, TRIGGER_NONE,
    ActionType, AuditEventType, Directive, ExecutionLogEntry,
    NotificationLevel, Outcome, Report, Severity, Thread, Threat,
    ThreatType, ValkyrieStatus
)
from ..temporal.clock import LogicalClock


logger = logging.getLogger(__name__)

RuleKey = Tuple[ThreatType, Severity]


def default_rules() -> Dict[RuleKey, ActionType]:
    rules: Dict[RuleKey, ActionType] = {
        (ThreatType.TEMPORAL_SURGE, Severity.LOW): ActionType.TEMPORAL_BRAKE,
        (ThreatType.TEMPORAL_SURGE, Severity.MEDIUM): ActionType.TEMPORAL_BRAKE,
        (ThreatType.TEMPORAL_SURGE, Severity.HIGH): ActionType.CONTAINMENT,
        (ThreatType.LOCALIZED_CONGESTION, Severity.LOW): ActionType.SECTOR_DISPERSAL,
        (ThreatType.LOCALIZED_CONGESTION, Severity.MEDIUM): ActionType.SECTOR_DISPERSAL,
        (ThreatType.LOCALIZED_CONGESTION, Severity.HIGH): ActionType.CONTAINMENT,
        (ThreatType.POLARIZATION, Severity.MEDIUM): ActionType.MEMETIC_STABILIZATION,
        (ThreatType.POLARIZATION, Severity.HIGH): ActionType.MEMETIC_STABILIZATION,
        (ThreatType.MALFORMED_DATA, Severity.LOW): ActionType.DATA_AUDIT,
    }
    for threat_type in ThreatType:
        rules[(threat_type, Severity.CRITICAL)] = ActionType.SYSTEM_LOCK
    return rules


@dataclass
class PolicyConfig:
    """Valkyrie policy: activation threshold and (threat, severity) -> action."""
    threshold: Optional[int] = 3
    rules: Optional[Dict[RuleKey, ActionType]] = field(default_factory=default_rules)


def validate_policy(policy: Optional[PolicyConfig]) -> PolicyConfig:
    if policy is None:
        raise PolicyConfigError("Valkyrie requires a policy configuration")

    threshold = policy.threshold
    if threshold is None or isinstance(threshold, bool) or not isinstance(threshold, int):
        raise PolicyConfigError(
            f"Policy threshold must be an integer, got {threshold!r}",
            Error.create(ErrorCode.INVALID_POLICY, "invalid threshold", threshold=repr(threshold))
        )
    if not 1 <= threshold <= 5:
        raise PolicyConfigError(
            f"Policy threshold must be between 1 and 5, got {threshold}",
            Error.create(ErrorCode.INVALID_POLICY, "threshold out of range", threshold=threshold)
        )
    if not policy.rules:
        raise PolicyConfigError("Policy must define at least one rule")

    for key, action in policy.rules.items():
        if (
            not isinstance(key, tuple) or len(key) != 2
            or not isinstance(key[0], ThreatType) or not isinstance(key[1], Severity)
        ):
            raise PolicyConfigError(f"Invalid policy rule key: {key!r}")
        if not isinstance(action, ActionType) or action == ActionType.NO_ACTION:
            raise PolicyConfigError(f"Invalid action for rule {key[0].value}/{key[1].value}: {action!r}")
    return policy


# =============================================================================
# ACTION EXECUTION (Collaborator)
# =============================================================================

class ActionExecutor:
    """Carries out a directive. Implementations may raise to signal failure."""

    def execute(self, directive: Directive) -> None:
        raise NotImplementedError


class NotifyingExecutor(ActionExecutor):
    """Default executor: announces the directive on the notification channel."""

    def __init__(self, notifier=None):
        self._notifier = notifier

    def execute(self, directive: Directive) -> None:
        message = f"VALKYRIE: {directive.action.value} deployed to {directive.target_region}"
        if directive.note:
            message = f"{message} ({directive.note})"
        if self._notifier is None:
            logger.warning(message)
            return
        level = (
            NotificationLevel.ERROR
            if directive.action in (ActionType.CONTAINMENT, ActionType.SYSTEM_LOCK)
            else NotificationLevel.WARNING
        )
        self._notifier.notify(level, "valkyrie", message)


# =============================================================================
# VALKYRIE ENGINE
# =============================================================================

class Valkyrie:
    """Autonomous decision engine with a complete audit trail."""

    def __init__(
        self,
        policy: Optional[PolicyConfig] = None,
        executor: Optional[ActionExecutor] = None,
        clock: Optional[Callable[[], int]] = None,
        audit=None,
        status: ValkyrieStatus = ValkyrieStatus.ACTIVE
    ):
        self._policy = validate_policy(policy if policy is not None else PolicyConfig())
        self._rules: Dict[RuleKey, ActionType] = dict(self._policy.rules)
        self._executor = executor or NotifyingExecutor()
        self._clock = clock or LogicalClock.live()
        self._audit = audit
        self._status = status
        self._log: List[ExecutionLogEntry] = []
        self._lock = threading.Lock()

    # =========================================================================
    # STATE
    # =========================================================================

    @property
    def status(self) -> ValkyrieStatus:
        return self._status

    @property
    def threshold(self) -> int:
        return self._policy.threshold

    @property
    def execution_log(self) -> Tuple[ExecutionLogEntry, ...]:
        with self._lock:
            return tuple(self._log)

    def arm(self) -> None:
        self._status = ValkyrieStatus.ACTIVE
        logger.info("Valkyrie armed")

    def disarm(self) -> None:
        self._status = ValkyrieStatus.INACTIVE
        logger.info("Valkyrie disarmed")

    # =========================================================================
    # RULES
    # =========================================================================

    def rules(self) -> Tuple[Tuple[ThreatType, Severity, ActionType], ...]:
        return tuple((t, s, a) for (t, s), a in self._rules.items())

    def add_rule(self, threat_type: ThreatType, severity: Severity, action: ActionType) -> None:
        key = (threat_type, severity)
        if key in self._rules:
            raise PolicyConfigError(
                f"Rule for {threat_type.value}/{severity.value} already exists",
                Error.create(ErrorCode.DUPLICATE_RULE, "duplicate rule",
                             threat_type=threat_type.value, severity=severity.value)
            )
        validate_policy(PolicyConfig(threshold=self._policy.threshold, rules={key: action}))
        self._rules[key] = action

    def remove_rule(self, threat_type: ThreatType, severity: Severity) -> bool:
        key = (threat_type, severity)
        if key not in self._rules:
            return False
        if len(self._rules) == 1:
            raise PolicyConfigError("Cannot remove the last policy rule")
        del self._rules[key]
        return True

    # =========================================================================
    # DECISIONS
    # =========================================================================

    def select_directive(self, report: Report) -> Optional[Directive]:
        """Pure policy evaluation: the directive `evaluate` would execute."""
        if report.defcon_level > self._policy.threshold:
            return None

        chosen: Optional[Threat] = None
        for threat in report.threats:
            if (threat.type, threat.severity) not in self._rules:
                continue
            if chosen is None or threat.severity.rank > chosen.severity.rank:
                chosen = threat
        if chosen is None:
            return None

        return Directive(
            action=self._rules[(chosen.type, chosen.severity)],
            target_region=self._target_region(report),
            trigger=chosen.type.value,
            severity=chosen.severity
        )

    def evaluate(self, report: Report, threads: Sequence[Thread] = ()) -> ExecutionLogEntry:
        if self._status != ValkyrieStatus.ACTIVE:
            return self._append(ExecutionLogEntry(
                timestamp=self._clock(),
                trigger=TRIGGER_NONE,
                action_taken=ActionType.NO_ACTION,
                outcome=Outcome.SUSPENDED,
                defcon_level=report.defcon_level,
                note="valkyrie inactive"
            ))

        directive = self.select_directive(report)
        if directive is None:
            return self._append(ExecutionLogEntry(
                timestamp=self._clock(),
                trigger=TRIGGER_NONE,
                action_taken=ActionType.NO_ACTION,
                outcome=Outcome.STANDBY,
                defcon_level=report.defcon_level,
                note=f"ledger_size={len(threads)}"
            ))

        outcome = self._execute(directive)
        return self._append(ExecutionLogEntry(
            timestamp=self._clock(),
            trigger=directive.trigger,
            action_taken=directive.action,
            outcome=outcome,
            target_region=directive.target_region,
            defcon_level=report.defcon_level,
            note=f"ledger_size={len(threads)}"
        ))

    def override(
        self,
        action: Union[ActionType, str],
        region: Optional[str] = None,
        note: str = ""
    ) -> ExecutionLogEntry:
        """Execute an operator command, bypassing policy and status."""
        action = ActionType(action) if not isinstance(action, ActionType) else action
        target = region or GLOBAL_TARGET

        if action == ActionType.NO_ACTION:
            outcome = Outcome.STANDBY
        else:
            outcome = self._execute(Directive(
                action=action, target_region=target, trigger=TRIGGER_MANUAL, note=note
            ))

        return self._append(ExecutionLogEntry(
            timestamp=self._clock(),
            trigger=TRIGGER_MANUAL,
            action_taken=action,
            outcome=outcome,
            target_region=target,
            note=note
        ))

    # -------------------------------------------------------------------------

    @staticmethod
    def _target_region(report: Report) -> str:
        best = None
        for zone in report.zones:
            if best is None or zone.intensity > best.intensity:
                best = zone
        return best.region.value if best else GLOBAL_TARGET

    def _execute(self, directive: Directive) -> Outcome:
        try:
            self._executor.execute(directive)
        except Exception:
            logger.exception("Action %s failed", directive.action.value)
            return Outcome.FAILED
        return Outcome.DEPLOYED

    def _append(self, entry: ExecutionLogEntry) -> ExecutionLogEntry:
        with self._lock:
            self._log.append(entry)
        if self._audit is not None:
            self._audit.record(
                AuditEventType.DECISION,
                entry.action_taken.value,
                trigger=entry.trigger,
                outcome=entry.outcome.value,
                target=entry.target_region or ""
            )
        return entry
