import re

from app.interview.errors import ValidationError
from app.interview.models import CandidateProfile, ResumeFields


REQUIRED_FIELDS = ("name", "email", "phone")
OPTIONAL_FIELDS = ("position",)

EMAIL_PATTERN = re.compile(r"^[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}$")
PHONE_PATTERN = re.compile(r"^\+?[0-9(][0-9\s().-]{6,18}[0-9]$")

FIELD_PROMPTS = {
    "name": "What is your full name?",
    "email": "What is your email address?",
    "phone": "What is your phone number?",
}


def missing_fields(profile: CandidateProfile) -> list[str]:
    return [name for name in REQUIRED_FIELDS if not str(getattr(profile, name, "") or "").strip()]


def validate_field(field: str, value: str) -> str:
    name = str(field or "").strip().lower()
    if name not in REQUIRED_FIELDS and name not in OPTIONAL_FIELDS:
        raise ValidationError(name, f"Unknown candidate field: {field!r}")

    text = " ".join(str(value or "").split())
    if not text:
        raise ValidationError(name, f"{name.capitalize()} is required")

    if name == "name":
        if len(text) < 2 or len(text) > 80 or any(ch.isdigit() for ch in text):
            raise ValidationError(name, "Please enter a valid full name")
    elif name == "email":
        text = text.lower()
        if not EMAIL_PATTERN.match(text):
            raise ValidationError(name, "Please enter a valid email address")
    elif name == "phone":
        digits = re.sub(r"\D", "", text)
        if not PHONE_PATTERN.match(text) or not 7 <= len(digits) <= 15:
            raise ValidationError(name, "Please enter a valid phone number")
    return text


def apply_field(profile: CandidateProfile, field: str, value: str) -> str:
    normalized = validate_field(field, value)
    name = str(field).strip().lower()
    setattr(profile, name, normalized)
    return name


def next_prompt(profile: CandidateProfile) -> str | None:
    missing = missing_fields(profile)
    if not missing:
        return None
    return FIELD_PROMPTS[missing[0]]


def prefill_from_resume(profile: CandidateProfile, fields: ResumeFields) -> list[str]:
    """Copy valid resume-extracted fields onto the profile; returns the names applied."""
    profile.resume_text = fields.resume_text
    applied = []
    for name, value in fields.present_fields().items():
        profile.extracted_fields[name] = value
        if str(getattr(profile, name, "") or "").strip():
            continue
        try:
            apply_field(profile, name, value)
        except ValidationError:
            continue
        applied.append(name)
    return applied
