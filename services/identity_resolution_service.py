"""
Identity Resolution Service - stitches identity signals onto canonical contacts

Resolution order (first hit wins):
    1. EMAIL signal       -> confidence 90
    2. PHONE signal       -> confidence 85
    3. FINGERPRINT signal -> confidence 65
    4. no hit             -> new contact, confidence 65

Payment confirmation is stronger proof than any form and upgrades the
EMAIL signal to 100.

Everything one resolution writes (contact, session links, signals) commits in
a single transaction. If a brand-new signal loses a uniqueness race to a
concurrent resolution, the attempt is rolled back and the resolution is
replayed from a fresh read.
"""

from dataclasses import dataclass
from typing import Callable, Dict, Iterable, Optional

from sqlalchemy.exc import SQLAlchemyError

from logging_config import get_logger
from repositories.contact_repository import ContactRepository
from repositories.identity_signal_repository import IdentitySignalRepository, SignalConflictError
from repositories.unit_of_work import UnitOfWork
from repositories.visitor_session_repository import VisitorSessionRepository
from tracking_database import IdentityType, LeadQuality
from utils.identity_utils import hash_identity_value, normalize_phone

logger = get_logger(__name__)

EMAIL_CONFIDENCE = 90
PHONE_CONFIDENCE = 85
FINGERPRINT_CONFIDENCE = 65
PAYMENT_CONFIDENCE = 100


class IdentityResolutionError(Exception):
    """Resolution could not be committed; the caller should report a retryable failure"""
    pass


@dataclass
class ContactInfo:
    """Normalized identity fields extracted from any source"""
    email: Optional[str] = None
    phone: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None

    @property
    def has_identifier(self) -> bool:
        """Email or phone present; names alone cannot identify anyone."""
        return bool(self.email or self.phone)

    def as_fields(self) -> Dict[str, Optional[str]]:
        return {
            'email': self.email,
            'phone': self.phone,
            'first_name': self.first_name,
            'last_name': self.last_name,
        }


@dataclass
class ResolutionResult:
    contact_id: str
    is_new: bool
    confidence: int


class IdentityResolutionService:
    """Finds or creates the canonical contact for a set of identity signals"""

    def __init__(self,
                 unit_of_work: UnitOfWork,
                 contact_repository: ContactRepository,
                 signal_repository: IdentitySignalRepository,
                 session_repository: VisitorSessionRepository,
                 max_attempts: int = 2):
        """
        Initialize with injected dependencies.

        Args:
            unit_of_work: Transaction scope shared by the repositories
            contact_repository: Repository for Contact data access
            signal_repository: Repository for IdentitySignal data access
            session_repository: Repository for VisitorSession data access
            max_attempts: Attempts made when a signal insert loses a race
        """
        self.unit_of_work = unit_of_work
        self.contact_repository = contact_repository
        self.signal_repository = signal_repository
        self.session_repository = session_repository
        self.max_attempts = max(1, max_attempts)

    # Public API

    def resolve(self, organization_id: str, session_key: Optional[str],
                contact_info: ContactInfo, fingerprint: Optional[str] = None) -> ResolutionResult:
        """
        Resolve contact info (plus optional fingerprint) to a contact.

        Args:
            organization_id: Tenant scope
            session_key: Pixel session to link, None for webhook sources
            contact_info: Email/phone/name supplied by the source
            fingerprint: Optional device fingerprint

        Returns:
            ResolutionResult with contact id, whether it was created, and confidence

        Raises:
            IdentityResolutionError: if the transaction could not be committed
        """
        return self._run_with_retries(
            organization_id,
            lambda: self._resolve_once(organization_id, session_key, contact_info, fingerprint),
        )

    def resolve_from_payment(self, organization_id: str, email: str,
                             payment_info: Optional[ContactInfo] = None) -> ResolutionResult:
        """
        Resolve a payment-confirmed email. Only the EMAIL signal is consulted
        and it is stored (or upgraded) at confidence 100.

        Raises:
            IdentityResolutionError: if the transaction could not be committed
        """
        return self._run_with_retries(
            organization_id,
            lambda: self._resolve_payment_once(organization_id, email, payment_info or ContactInfo()),
        )

    def find_contact_id_by_email(self, organization_id: str, email: str) -> Optional[str]:
        """Contact owning the EMAIL signal for this address, if any."""
        if not email:
            return None
        signal = self.signal_repository.find_by_value(
            organization_id, IdentityType.EMAIL.value, hash_identity_value(email)
        )
        return signal.contact_id if signal else None

    def set_lead_quality(self, organization_id: str, contact_id: str, quality: LeadQuality) -> bool:
        """
        Classify a contact's lead quality.

        Returns:
            False when the contact is not in this organization
        """
        with self.unit_of_work.transaction():
            contact = self.contact_repository.get_for_organization(contact_id, organization_id)
            if contact is None:
                return False
            self.contact_repository.set_lead_quality(contact, LeadQuality(quality).value)
        return True

    def append_tags(self, organization_id: str, contact_id: str, tags: Iterable[str]) -> bool:
        """Append tags to a contact (duplicates are kept)."""
        tags = [tag for tag in tags if tag]
        if not tags:
            return False
        with self.unit_of_work.transaction():
            contact = self.contact_repository.get_for_organization(contact_id, organization_id)
            if contact is None:
                return False
            self.contact_repository.append_tags(contact, tags)
        return True

    # Resolution internals

    def _run_with_retries(self, organization_id: str,
                          attempt: Callable[[], ResolutionResult]) -> ResolutionResult:
        last_conflict = None
        for attempt_number in range(1, self.max_attempts + 1):
            try:
                with self.unit_of_work.transaction():
                    return attempt()
            except SignalConflictError as e:
                last_conflict = e
                logger.info(
                    "Identity signal insert lost a race, re-reading",
                    organization_id=organization_id,
                    signal_type=e.signal_type,
                    attempt=attempt_number,
                )
            except SQLAlchemyError as e:
                logger.error("Identity resolution failed", organization_id=organization_id, exc_info=True)
                raise IdentityResolutionError(f"Identity resolution failed: {e}") from e

        raise IdentityResolutionError(
            f"Identity resolution still conflicting after {self.max_attempts} attempts"
        ) from last_conflict

    def _resolve_once(self, organization_id: str, session_key: Optional[str],
                      contact_info: ContactInfo, fingerprint: Optional[str]) -> ResolutionResult:
        contact_id = None
        confidence = FINGERPRINT_CONFIDENCE

        if contact_info.email:
            contact_id = self._lookup(organization_id, IdentityType.EMAIL,
                                      hash_identity_value(contact_info.email))
            if contact_id:
                confidence = EMAIL_CONFIDENCE

        phone_digits = normalize_phone(contact_info.phone) if contact_info.phone else ''
        if not contact_id and phone_digits:
            contact_id = self._lookup(organization_id, IdentityType.PHONE,
                                      hash_identity_value(phone_digits))
            if contact_id:
                confidence = PHONE_CONFIDENCE

        if not contact_id and fingerprint:
            contact_id = self._lookup(organization_id, IdentityType.FINGERPRINT, fingerprint)
            if contact_id:
                confidence = FINGERPRINT_CONFIDENCE

        if contact_id:
            contact = self.contact_repository.get_by_id(contact_id)
            self.contact_repository.apply_fields(contact, contact_info.as_fields())
            is_new = False
        else:
            contact = self.contact_repository.create_contact(organization_id, contact_info.as_fields())
            is_new = True

        self._link_sessions(organization_id, session_key, contact.id, fingerprint)

        if contact_info.email:
            self.signal_repository.upsert_signal(
                organization_id, contact.id, IdentityType.EMAIL.value,
                hash_identity_value(contact_info.email), contact_info.email, EMAIL_CONFIDENCE,
            )
        if phone_digits:
            self.signal_repository.upsert_signal(
                organization_id, contact.id, IdentityType.PHONE.value,
                hash_identity_value(phone_digits), contact_info.phone, PHONE_CONFIDENCE,
            )
        if fingerprint:
            self.signal_repository.upsert_signal(
                organization_id, contact.id, IdentityType.FINGERPRINT.value,
                fingerprint, fingerprint, FINGERPRINT_CONFIDENCE,
            )

        logger.info(
            "Identity resolved",
            organization_id=organization_id,
            contact_id=contact.id,
            is_new=is_new,
            confidence=confidence,
        )
        return ResolutionResult(contact_id=contact.id, is_new=is_new, confidence=confidence)

    def _resolve_payment_once(self, organization_id: str, email: str,
                              payment_info: ContactInfo) -> ResolutionResult:
        email_hash = hash_identity_value(email)
        fields = payment_info.as_fields()
        fields['email'] = email

        contact_id = self._lookup(organization_id, IdentityType.EMAIL, email_hash)
        if contact_id:
            contact = self.contact_repository.get_by_id(contact_id)
            self.contact_repository.apply_fields(contact, fields)
            is_new = False
        else:
            contact = self.contact_repository.create_contact(organization_id, fields)
            is_new = True

        self.signal_repository.upsert_signal(
            organization_id, contact.id, IdentityType.EMAIL.value, email_hash, email, PAYMENT_CONFIDENCE,
        )

        logger.info(
            "Payment identity resolved",
            organization_id=organization_id,
            contact_id=contact.id,
            is_new=is_new,
        )
        return ResolutionResult(contact_id=contact.id, is_new=is_new, confidence=PAYMENT_CONFIDENCE)

    def _lookup(self, organization_id: str, signal_type: IdentityType, value: str) -> Optional[str]:
        signal = self.signal_repository.find_by_value(organization_id, signal_type.value, value)
        return signal.contact_id if signal else None

    def _link_sessions(self, organization_id: str, session_key: Optional[str],
                       contact_id: str, fingerprint: Optional[str]) -> None:
        if session_key:
            self.session_repository.link_contact(organization_id, session_key, contact_id)
        if fingerprint:
            self.session_repository.claim_by_fingerprint(organization_id, fingerprint, contact_id)
