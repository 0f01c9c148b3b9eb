"""
Résumé document contract returned by the structured-data extractor.

The LLM is asked to follow this shape. Its reply is only normalised at the
top level: every key is present, arrays default to [] and profile fields
default to null (booleans to false). Nested records are stored as returned.
"""
from enum import Enum
from typing import Any, Dict


class EmploymentType(str, Enum):
    FULL_TIME = "FULL_TIME"
    PART_TIME = "PART_TIME"
    INTERNSHIP = "INTERNSHIP"
    CONTRACT = "CONTRACT"


class LocationType(str, Enum):
    ONSITE = "ONSITE"
    REMOTE = "REMOTE"
    HYBRID = "HYBRID"


class DegreeType(str, Enum):
    HIGH_SCHOOL = "HIGH_SCHOOL"
    ASSOCIATE = "ASSOCIATE"
    BACHELOR = "BACHELOR"
    MASTER = "MASTER"
    DOCTORATE = "DOCTORATE"


class LanguageLevel(str, Enum):
    BEGINNER = "BEGINNER"
    INTERMEDIATE = "INTERMEDIATE"
    ADVANCED = "ADVANCED"
    NATIVE = "NATIVE"


PROFILE_FIELDS = (
    "name",
    "surname",
    "email",
    "headline",
    "professionalSummary",
    "linkedIn",
    "website",
    "country",
    "city",
    "relocation",
    "remote",
)
PROFILE_BOOLEAN_FIELDS = ("relocation", "remote")

LIST_FIELDS = (
    "workExperiences",
    "educations",
    "skills",
    "licenses",
    "languages",
    "achievements",
    "publications",
    "honors",
)


def enum_choices(enum_cls) -> str:
    return "|".join(member.value for member in enum_cls)


def _normalize_profile(profile: Any) -> Dict[str, Any]:
    if not isinstance(profile, dict):
        profile = {}
    normalized = dict(profile)
    for field in PROFILE_FIELDS:
        if field in PROFILE_BOOLEAN_FIELDS:
            normalized[field] = bool(normalized.get(field) or False)
        else:
            normalized.setdefault(field, None)
    # The model sometimes answers "" for optional links
    for field in ("linkedIn", "website"):
        if normalized[field] == "":
            normalized[field] = None
    return normalized


def normalize_resume_data(data: Dict[str, Any]) -> Dict[str, Any]:
    normalized: Dict[str, Any] = {"profile": _normalize_profile(data.get("profile"))}
    for field in LIST_FIELDS:
        value = data.get(field)
        normalized[field] = value if isinstance(value, list) else []
    return normalized
