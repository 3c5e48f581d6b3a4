"""
URL Rule Service - operator configuration of URL rules
"""

from typing import Any, Dict, List

from logging_config import get_logger
from repositories.organization_repository import OrganizationRepository
from repositories.unit_of_work import UnitOfWork
from repositories.url_rule_repository import UrlRuleRepository
from services.common.result import Result
from tracking_database import EventType

logger = get_logger(__name__)

MATCH_TYPES = ('contains', 'exact')


class UrlRuleService:
    """Lists and creates URL rules for an organization"""

    def __init__(self, unit_of_work: UnitOfWork,
                 organization_repository: OrganizationRepository,
                 url_rule_repository: UrlRuleRepository):
        self.unit_of_work = unit_of_work
        self.organization_repository = organization_repository
        self.url_rule_repository = url_rule_repository

    def list_rules(self, organization_id: str) -> Result[List[Dict[str, Any]]]:
        if self.organization_repository.get_by_id(organization_id) is None:
            return Result.failure("Organization not found", code="NOT_FOUND")
        rules = self.url_rule_repository.list_for_organization(organization_id)
        return Result.success([rule.to_dict() for rule in rules])

    def create_rule(self, organization_id: str, data: Dict[str, Any]) -> Result[Dict[str, Any]]:
        """
        Validate and create a rule.

        Args:
            organization_id: Owning organization
            data: name, pattern, event_type and optional match_type,
                exclude_pattern, ignore_case, ignore_query, tags, is_active

        Returns:
            Result with the rule dict, or VALIDATION_ERROR / NOT_FOUND
        """
        if self.organization_repository.get_by_id(organization_id) is None:
            return Result.failure("Organization not found", code="NOT_FOUND")

        errors = self._validate(data)
        if errors:
            return Result.failure("; ".join(errors), code="VALIDATION_ERROR")

        with self.unit_of_work.transaction():
            rule = self.url_rule_repository.create(
                organization_id=organization_id,
                name=data['name'].strip(),
                match_type=data.get('match_type') or 'contains',
                pattern=data['pattern'].strip(),
                exclude_pattern=(data.get('exclude_pattern') or '').strip() or None,
                ignore_case=bool(data.get('ignore_case', True)),
                ignore_query=bool(data.get('ignore_query', True)),
                event_type=EventType(data['event_type']).value,
                tags=list(data.get('tags') or []),
                is_active=bool(data.get('is_active', True)),
            )
            created = rule.to_dict()

        logger.info("URL rule created", organization_id=organization_id, rule_id=created['id'])
        return Result.success(created)

    @staticmethod
    def _validate(data: Dict[str, Any]) -> List[str]:
        errors = []
        if not isinstance(data.get('name'), str) or not data['name'].strip():
            errors.append("name is required")
        if not isinstance(data.get('pattern'), str) or not data['pattern'].strip():
            errors.append("pattern is required")
        if data.get('match_type') is not None and data['match_type'] not in MATCH_TYPES:
            errors.append("match_type must be one of: contains, exact")
        if data.get('event_type') not in {member.value for member in EventType}:
            errors.append("event_type is not a valid event type")
        if data.get('exclude_pattern') is not None and not isinstance(data['exclude_pattern'], str):
            errors.append("exclude_pattern must be a string")
        tags = data.get('tags')
        if tags is not None and (not isinstance(tags, list) or not all(isinstance(tag, str) for tag in tags)):
            errors.append("tags must be a list of strings")
        return errors
