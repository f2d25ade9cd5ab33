"""
Transcript Classifier - Work order command recognition

Maps a final transcript to exactly one intent. Rules are evaluated in a
fixed precedence order; the first rule that matches wins:

    restart > resume > start / help me fix > proceed > query

The classifier is stateless. Whether a work order session is active only
decides if a proceed phrase is honoured or treated as a general question.
"""

import logging
import re
from dataclasses import dataclass
from typing import List, Optional

from .models import ClassifiedTranscript, IntentKind

logger = logging.getLogger(__name__)

# Digits may be dictated one by one: "2 0 2 4"
NUMBER = r"(\d+(?:\s*\d+)*)"
# "work order", "workorder", "wo", "wo-", "work"
WORK_ORDER_REF = r"(?:work\s*order|wo|work)[-\s]*"
_DIGIT_GAPS = re.compile(r"\s+")


@dataclass(frozen=True)
class ClassificationRule:
    """One entry of the ordered rule list"""
    name: str
    pattern: re.Pattern
    kind: IntentKind
    needs_session: bool = False


def _rule(name: str, pattern: str, kind: IntentKind, needs_session: bool = False) -> ClassificationRule:
    return ClassificationRule(name, re.compile(pattern, re.IGNORECASE), kind, needs_session)


COMMAND_RULES: List[ClassificationRule] = [
    _rule("restart", rf"\brestart\s+(?:the\s+)?{WORK_ORDER_REF}{NUMBER}", IntentKind.RESTART),
    _rule("resume", rf"\bresume\s+(?:the\s+)?{WORK_ORDER_REF}{NUMBER}", IntentKind.RESUME),
    _rule("start", rf"\bstart\s+(?:the\s+)?{WORK_ORDER_REF}{NUMBER}", IntentKind.START),
    _rule("help_me_fix", rf"\bhelp\s+me\s+(?:to\s+)?fix\s+(?:the\s+)?(?:{WORK_ORDER_REF})?{NUMBER}", IntentKind.START),
]

PROCEED_RULE = _rule(
    "proceed",
    r"\b(?:proceed|continue|next|move\s+to\s+next|completed?)\b",
    IntentKind.PROCEED,
    needs_session=True,
)


def canonical_work_order_id(digits: str) -> str:
    """'2 0 2 4' -> 'WO-2024'"""
    return "WO-" + _DIGIT_GAPS.sub("", digits)


class TranscriptClassifier:
    """
    Ordered rule list classifier.

    Every transcript yields exactly one ClassifiedTranscript; text that no
    rule accepts becomes a QUERY carrying the original text.
    """

    def __init__(self, rules: Optional[List[ClassificationRule]] = None,
                 proceed_rule: Optional[ClassificationRule] = PROCEED_RULE):
        self.rules = list(rules) if rules is not None else list(COMMAND_RULES)
        self.proceed_rule = proceed_rule

    def classify(self, text: str, session_active: bool = False) -> ClassifiedTranscript:
        """
        Classify a transcript.

        Args:
            text: Final transcript or typed input
            session_active: Whether a work order session is currently active

        Returns:
            The intent of the first matching rule, or QUERY
        """
        command = self.match_work_order_command(text)
        if command is not None:
            return command

        if self.proceed_rule is not None and self.proceed_rule.pattern.search(text):
            if session_active or not self.proceed_rule.needs_session:
                logger.debug(f"Classified '{text}' as proceed")
                return ClassifiedTranscript(IntentKind.PROCEED, text, rule=self.proceed_rule.name)
            logger.debug(f"Proceed phrase without active session, treating '{text}' as query")

        return ClassifiedTranscript(IntentKind.QUERY, text)

    def match_work_order_command(self, text: str) -> Optional[ClassifiedTranscript]:
        """Return a start/resume/restart classification, or None"""
        for rule in self.rules:
            match = rule.pattern.search(text)
            if match:
                work_order_id = canonical_work_order_id(match.group(1))
                logger.debug(f"Classified '{text}' as {rule.kind.value} {work_order_id} (rule: {rule.name})")
                return ClassifiedTranscript(rule.kind, text, work_order_id=work_order_id, rule=rule.name)
        return None

    def is_work_order_command(self, text: str) -> bool:
        return self.match_work_order_command(text) is not None

