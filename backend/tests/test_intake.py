import pytest

from app.interview.errors import ValidationError
from app.interview.intake import apply_field, missing_fields, next_prompt, prefill_from_resume, validate_field
from app.interview.models import CandidateProfile, ResumeFields


def test_validate_field_normalizes_values():
    assert validate_field("email", "  Ada@Example.COM ") == "ada@example.com"
    assert validate_field("name", "Ada   Lovelace") == "Ada Lovelace"
    assert validate_field("phone", "+44 20 7946 0958") == "+44 20 7946 0958"
    assert validate_field("position", "Backend Developer") == "Backend Developer"


@pytest.mark.parametrize(
    "field,value",
    [
        ("name", ""),
        ("name", "R2D2"),
        ("email", "ada@"),
        ("phone", "12"),
        ("phone", "call me maybe"),
        ("salary", "a lot"),
    ],
)
def test_validate_field_rejects_bad_input(field, value):
    with pytest.raises(ValidationError) as excinfo:
        validate_field(field, value)
    assert excinfo.value.field == field


def test_prompts_follow_missing_fields():
    profile = CandidateProfile()
    assert missing_fields(profile) == ["name", "email", "phone"]
    assert next_prompt(profile) == "What is your full name?"

    apply_field(profile, "name", "Ada Lovelace")
    assert next_prompt(profile) == "What is your email address?"


def test_prefill_skips_invalid_and_existing_values():
    profile = CandidateProfile(name="Already Set")
    fields = ResumeFields(
        resume_text="resume body",
        name="Someone Else",
        email="ada@example.com",
        phone="12",
    )

    applied = prefill_from_resume(profile, fields)

    assert applied == ["email"]
    assert profile.name == "Already Set"
    assert profile.phone == ""
    assert profile.resume_text == "resume body"
    assert profile.extracted_fields == {"name": "Someone Else", "email": "ada@example.com", "phone": "12"}
