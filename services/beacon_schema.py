"""Wire schema for the first-party pixel beacon."""

from typing import Dict, Literal, Optional
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator

from utils.identity_utils import is_valid_email


class BeaconUtms(BaseModel):
    """UTM parameters captured by the pixel; all optional"""

    model_config = ConfigDict(extra="ignore")

    utm_source: Optional[str] = None
    utm_medium: Optional[str] = None
    utm_campaign: Optional[str] = None
    utm_content: Optional[str] = None
    utm_term: Optional[str] = None


class BeaconContact(BaseModel):
    """Contact fields scraped from a submitted form."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    email: Optional[str] = None
    phone: Optional[str] = Field(None, min_length=7)
    first_name: Optional[str] = Field(None, alias="firstName", max_length=100)
    last_name: Optional[str] = Field(None, alias="lastName", max_length=100)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: Optional[str]) -> Optional[str]:
        """Reject malformed addresses, normalize the rest to lowercase."""
        if v is None:
            return v
        if not is_valid_email(v):
            raise ValueError("Invalid email format")
        return v.strip().lower()


class BeaconData(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    contact: Optional[BeaconContact] = None
    form_action: Optional[str] = Field(None, alias="formAction")
    form_id: Optional[str] = Field(None, alias="formId")
    # Original form page path, used for dedup when firing from a confirmation page
    form_path: Optional[str] = Field(None, alias="formPath")
    title: Optional[str] = None


class BeaconEnvelope(BaseModel):
    """One beacon hit as posted by the pixel script."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    org_key: str = Field(..., alias="orgKey", min_length=1)
    session_id: str = Field(..., alias="sessionId", min_length=1)
    fingerprint: str = Field(..., min_length=1)
    type: Literal["page_view", "form_submit"]
    url: str
    path: str = Field(..., min_length=1)
    referrer: Optional[str] = None
    utms: BeaconUtms = Field(default_factory=BeaconUtms)
    ad_clicks: Dict[str, str] = Field(default_factory=dict, alias="adClicks")
    contact_id: Optional[str] = Field(None, alias="contactId")
    click_email: Optional[str] = Field(None, alias="clickEmail")
    data: Optional[BeaconData] = None
    ts: int = Field(..., gt=0)

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        parsed = urlparse(v)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError("url must be a valid URL")
        return v

    @property
    def contact(self) -> Optional[BeaconContact]:
        return self.data.contact if self.data else None
