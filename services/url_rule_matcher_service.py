"""
URL Rule Matcher Service - synthesizes events from page views

A rule matches when its pattern matches either the full URL or the path:
    contains -> glob match ('*' within one path segment, '**' across segments)
    exact    -> string equality
An exclude pattern (glob rules only) vetoes an otherwise matching rule, e.g.
    pattern         '**/thank-you'
    exclude_pattern '**/thank-you-variant*'
fires on /thank-you but never on /thank-you-variant.
"""

from datetime import datetime
from functools import lru_cache
import re
from typing import List, Optional

from logging_config import get_logger
from repositories.contact_repository import ContactRepository
from repositories.event_repository import InsertOutcome
from repositories.unit_of_work import UnitOfWork
from repositories.url_rule_repository import UrlRuleRepository
from services.event_recorder_service import EventRecorderService
from tracking_database import EventSource, UrlRule
from utils.datetime_utils import day_bucket

logger = get_logger(__name__)

KNOWN_CONTACT_CONFIDENCE = 80
ANONYMOUS_CONFIDENCE = 50


def _strip_query(value: str) -> str:
    for separator in ('?', '#'):
        value = value.split(separator, 1)[0]
    return value


def _prepare(value: str, rule: UrlRule) -> str:
    if rule.ignore_query:
        value = _strip_query(value)
    if rule.ignore_case:
        value = value.lower()
    return value


@lru_cache(maxsize=512)
def _glob_regex(pattern: str, ignore_case: bool):
    flags = re.IGNORECASE if ignore_case else 0
    return re.compile(_translate_glob(pattern), flags)


def _translate_glob(pattern: str) -> str:
    """
    Path-aware glob to regex.

    '*' and '?' stay inside one '/' segment; a '**' segment spans any number
    of segments, including none; '[...]' and '{a,b}' are supported.
    """
    parts = []
    i, n = 0, len(pattern)
    while i < n:
        char = pattern[i]
        if char == '*':
            j = i
            while j < n and pattern[j] == '*':
                j += 1
            whole_segment = (i == 0 or pattern[i - 1] == '/') and (j == n or pattern[j] == '/')
            if j - i < 2 or not whole_segment:
                parts.append('[^/]*')
            elif j < n:
                parts.append('(?:.*/)?')
                j += 1
            elif parts and parts[-1] == '/':
                parts[-1] = '(?:/.*)?'
            else:
                parts.append('.*')
            i = j
        elif char == '?':
            parts.append('[^/]')
            i += 1
        elif char == '[' and pattern.find(']', i + 2) != -1:
            end = pattern.find(']', i + 2)
            body = pattern[i + 1:end].replace('\\', '\\\\')
            if body[0] in '!^':
                body = '^' + body[1:]
            parts.append(f'[{body}]')
            i = end + 1
        elif char == '{' and pattern.find('}', i) != -1:
            end = pattern.find('}', i)
            options = pattern[i + 1:end].split(',')
            parts.append('(?:' + '|'.join(_translate_glob(option) for option in options) + ')')
            i = end + 1
        else:
            parts.append(re.escape(char))
            i += 1
    return ''.join(parts)


def _glob_matches(url: str, path: str, pattern: str, rule: UrlRule) -> bool:
    regex = _glob_regex(pattern, bool(rule.ignore_case))
    return bool(regex.fullmatch(url) or regex.fullmatch(path))


def rule_matches(rule: UrlRule, url: str, path: str) -> bool:
    """
    Check one rule against a page view.

    Args:
        rule: UrlRule to evaluate
        url: Full page URL
        path: URL path

    Returns:
        True when the include pattern matches and the exclude pattern does not
    """
    url = _prepare(url or '', rule)
    path = _prepare(path or '', rule)

    if rule.match_type == 'exact':
        pattern = rule.pattern.lower() if rule.ignore_case else rule.pattern
        return url == pattern or path == pattern

    if not _glob_matches(url, path, rule.pattern, rule):
        return False
    if rule.exclude_pattern and _glob_matches(url, path, rule.exclude_pattern, rule):
        return False
    return True


class UrlRuleMatcherService:
    """Evaluates an organization's active URL rules and fires their events"""

    def __init__(self,
                 unit_of_work: UnitOfWork,
                 url_rule_repository: UrlRuleRepository,
                 contact_repository: ContactRepository,
                 event_recorder: EventRecorderService):
        self.unit_of_work = unit_of_work
        self.url_rule_repository = url_rule_repository
        self.contact_repository = contact_repository
        self.event_recorder = event_recorder

    def match(self, organization_id: str, url: str, path: str) -> List[UrlRule]:
        """Active rules of the organization that match the page view."""
        rules = self.url_rule_repository.find_active(organization_id)
        return [rule for rule in rules if rule_matches(rule, url, path)]

    def match_and_fire(self, organization_id: str, url: str, path: str,
                       contact_id: Optional[str], session_id: str,
                       variant_id: Optional[str] = None,
                       now: Optional[datetime] = None) -> List[UrlRule]:
        """
        Fire one event per matching rule and tag the contact.

        Known contacts are deduplicated per rule per contact per UTC day;
        anonymous views per rule per session per day at lower confidence.

        Returns:
            The rules whose events were newly recorded
        """
        matched = self.match(organization_id, url, path)
        if not matched:
            return []

        day = day_bucket(now)
        fired = []
        for rule in matched:
            if contact_id:
                external_id = f"url-rule-{rule.id}-{contact_id}-{day}"
                confidence = KNOWN_CONTACT_CONFIDENCE
            else:
                external_id = f"url-rule-{rule.id}-session-{session_id}-{day}"
                confidence = ANONYMOUS_CONFIDENCE

            outcome = self.event_recorder.record(
                organization_id=organization_id,
                event_type=rule.event_type,
                source=EventSource.PIXEL,
                confidence=confidence,
                external_id=external_id,
                payload={
                    'urlRuleId': rule.id,
                    'urlRuleName': rule.name,
                    'url': url,
                    'path': path,
                    'tags': list(rule.tags or []),
                },
                contact_id=contact_id,
                session_id=session_id,
                variant_id=variant_id,
            )
            if outcome is InsertOutcome.INSERTED:
                fired.append(rule)

            if contact_id and rule.tags:
                self._tag_contact(organization_id, contact_id, rule.tags)

        logger.info(
            "URL rules evaluated",
            organization_id=organization_id,
            matched=len(matched),
            fired=len(fired),
        )
        return fired

    def _tag_contact(self, organization_id: str, contact_id: str, tags: List[str]) -> None:
        with self.unit_of_work.transaction():
            contact = self.contact_repository.get_for_organization(contact_id, organization_id)
            if contact is not None:
                self.contact_repository.append_tags(contact, tags)
