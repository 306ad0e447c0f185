"""
Issue collection and the tri-state conversion result.

Every component reports anomalies here instead of raising; the collector
derives ``success | partial | failure`` once the pass is over.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, TypeVar

from .config import ConversionOptions, ErrorHandling

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Severity(str, Enum):
    CRITICAL = "critical"
    ERROR = "error"
    WARNING = "warning"


class ItemType(str, Enum):
    CARD = "card"
    NOTE = "note"
    REVIEW = "review"
    DECK = "deck"
    NOTE_TYPE = "note_type"
    MEDIA = "media"


class ConversionStatus(str, Enum):
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILURE = "failure"


@dataclass(frozen=True)
class IssueContext:
    item_type: ItemType | None = None
    original_data: Any = None


@dataclass(frozen=True)
class ConversionIssue:
    severity: Severity
    message: str
    context: IssueContext | None = None

    @property
    def item_type(self) -> ItemType | None:
        return self.context.item_type if self.context else None


@dataclass
class ConversionResult(Generic[T]):
    """
    Outcome of a conversion pass.

    ``data`` is populated for ``success`` and ``partial`` and is always
    ``None`` for ``failure``.
    """

    status: ConversionStatus
    issues: list[ConversionIssue] = field(default_factory=list)
    data: T | None = None

    @property
    def ok(self) -> bool:
        return self.status != ConversionStatus.FAILURE

    def issues_of(
        self, severity: Severity | None = None, item_type: ItemType | None = None
    ) -> list[ConversionIssue]:
        return [
            issue
            for issue in self.issues
            if (severity is None or issue.severity == severity)
            and (item_type is None or issue.item_type == item_type)
        ]


_LOG_LEVELS = {
    Severity.CRITICAL: logging.ERROR,
    Severity.ERROR: logging.WARNING,
    Severity.WARNING: logging.INFO,
}


class IssueCollector:
    """
    Accumulates issues for one conversion pass.

    Purely observational: it never touches the data being converted.
    """

    def __init__(self, options: ConversionOptions | None = None):
        self.options = options or ConversionOptions()
        self._issues: list[ConversionIssue] = []

    def add_issue(self, issue: ConversionIssue) -> None:
        logger.log(_LOG_LEVELS[issue.severity], f"[{issue.severity.value}] {issue.message}")
        self._issues.append(issue)

    def add_issues(self, issues: list[ConversionIssue]) -> None:
        for issue in issues:
            self.add_issue(issue)

    def _add(
        self,
        severity: Severity,
        message: str,
        item_type: ItemType | None,
        original_data: Any,
    ) -> None:
        context = None
        if item_type is not None or original_data is not None:
            context = IssueContext(item_type=item_type, original_data=original_data)
        self.add_issue(ConversionIssue(severity=severity, message=message, context=context))

    def add_critical(
        self, message: str, item_type: ItemType | None = None, original_data: Any = None
    ) -> None:
        self._add(Severity.CRITICAL, message, item_type, original_data)

    def add_error(
        self, message: str, item_type: ItemType | None = None, original_data: Any = None
    ) -> None:
        self._add(Severity.ERROR, message, item_type, original_data)

    def add_warning(
        self, message: str, item_type: ItemType | None = None, original_data: Any = None
    ) -> None:
        self._add(Severity.WARNING, message, item_type, original_data)

    def add_card_error(self, message: str, card: Any) -> None:
        self.add_error(message, ItemType.CARD, card)

    def add_note_error(self, message: str, note: Any) -> None:
        self.add_error(message, ItemType.NOTE, note)

    def add_review_error(self, message: str, review: Any) -> None:
        self.add_error(message, ItemType.REVIEW, review)

    @property
    def issues(self) -> list[ConversionIssue]:
        return list(self._issues)

    def has_critical_issues(self) -> bool:
        return any(issue.severity == Severity.CRITICAL for issue in self._issues)

    def has_recoverable_errors(self) -> bool:
        return any(issue.severity == Severity.ERROR for issue in self._issues)

    def create_result(self, data: T) -> ConversionResult[T]:
        issues = self.issues

        if self.has_critical_issues():
            return ConversionResult(status=ConversionStatus.FAILURE, issues=issues)

        if self.has_recoverable_errors():
            if self.options.error_handling == ErrorHandling.STRICT:
                return ConversionResult(status=ConversionStatus.FAILURE, issues=issues)
            return ConversionResult(status=ConversionStatus.PARTIAL, issues=issues, data=data)

        return ConversionResult(status=ConversionStatus.SUCCESS, issues=issues, data=data)

    def create_failure_result(self) -> ConversionResult[Any]:
        return ConversionResult(status=ConversionStatus.FAILURE, issues=self.issues)
