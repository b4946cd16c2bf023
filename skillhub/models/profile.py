from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Literal
from uuid import uuid4

from pydantic import BaseModel, Field, TypeAdapter

ProfileKind = Literal["service", "local"]


class ProfileStatus(str, Enum):
    PENDING_CONTENT = "pending_content"
    READY = "ready"
    PUBLISHED = "published"
    GENERATION_FAILED = "generation_failed"


# Publishing is admin-controlled; a new profile always enters PENDING_CONTENT.
ALLOWED_TRANSITIONS: dict[ProfileStatus, frozenset[ProfileStatus]] = {
    ProfileStatus.PENDING_CONTENT: frozenset({ProfileStatus.READY, ProfileStatus.GENERATION_FAILED}),
    ProfileStatus.GENERATION_FAILED: frozenset({ProfileStatus.READY}),
    ProfileStatus.READY: frozenset({ProfileStatus.PUBLISHED}),
    ProfileStatus.PUBLISHED: frozenset({ProfileStatus.READY}),
}


def can_transition(current: ProfileStatus, target: ProfileStatus) -> bool:
    return current == target or target in ALLOWED_TRANSITIONS[current]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ServiceProviderForm(BaseModel):
    """Onboarding form submitted by a service provider."""

    kind: Literal["service"] = "service"
    full_name: str = Field(min_length=1)
    service: str = Field(min_length=1)
    years_experience: int = Field(default=0, ge=0)
    location: str = ""
    phone: str = ""
    email: str = ""
    whatsapp: str | None = None
    is_business_owner: bool = False

    def normalized(self) -> dict[str, Any]:
        contact = ", ".join(part for part in (self.phone, self.email, self.whatsapp) if part)
        return {
            "kind": self.kind,
            "display_name": self.full_name.strip(),
            "skill": self.service.strip(),
            "years_experience": self.years_experience,
            "location": self.location.strip(),
            "contact": contact,
        }


class LocalProfileForm(BaseModel):
    """Onboarding form captured for a community member by a field agent."""

    kind: Literal["local"] = "local"
    full_name: str = Field(min_length=1)
    skill: str = Field(min_length=1)
    years_experience: int = Field(default=0, ge=0)
    location: str = ""
    contact: str = ""

    def normalized(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "display_name": self.full_name.strip(),
            "skill": self.skill.strip(),
            "years_experience": self.years_experience,
            "location": self.location.strip(),
            "contact": self.contact.strip(),
        }


ProfileForm = Annotated[ServiceProviderForm | LocalProfileForm, Field(discriminator="kind")]

_form_adapter: TypeAdapter = TypeAdapter(ProfileForm)


def parse_form(data: dict[str, Any]) -> ServiceProviderForm | LocalProfileForm:
    """Validate raw form data into the matching variant. Defaults to a service form."""
    payload = dict(data)
    payload.setdefault("kind", "service")
    return _form_adapter.validate_python(payload)


class Profile(BaseModel):
    """
    Normalized provider record, whichever form it was onboarded from.
    """

    id: str = Field(default_factory=lambda: uuid4().hex)
    kind: ProfileKind = "service"
    display_name: str
    skill: str
    years_experience: int = Field(default=0, ge=0)
    location: str = ""
    contact: str = ""
    bio: str = ""
    suggested_price: int | None = None
    status: ProfileStatus = ProfileStatus.PENDING_CONTENT
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)
