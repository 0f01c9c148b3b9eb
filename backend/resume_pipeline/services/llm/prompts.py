from langchain_core.prompts import ChatPromptTemplate

from ...schemas.resume import (
    DegreeType,
    EmploymentType,
    LanguageLevel,
    LocationType,
    enum_choices,
)

RESUME_SCHEMA = f"""{{
  "profile": {{
    "name": "string", "surname": "string", "email": "string",
    "headline": "string", "professionalSummary": "string",
    "linkedIn": "string|null", "website": "string|null",
    "country": "string", "city": "string",
    "relocation": boolean, "remote": boolean
  }},
  "workExperiences": [{{
    "jobTitle": "string", "employmentType": "{enum_choices(EmploymentType)}",
    "locationType": "{enum_choices(LocationType)}", "company": "string",
    "startMonth": 1-12, "startYear": number,
    "endMonth": "number|null", "endYear": "number|null",
    "current": boolean, "description": "string"
  }}],
  "educations": [{{
    "school": "string", "degree": "{enum_choices(DegreeType)}",
    "major": "string", "startYear": number, "endYear": number,
    "current": boolean, "description": "string"
  }}],
  "skills": ["string"],
  "licenses": [{{
    "name": "string", "issuer": "string", "issueYear": number, "description": "string"
  }}],
  "languages": [{{
    "language": "string", "level": "{enum_choices(LanguageLevel)}"
  }}],
  "achievements": [{{
    "title": "string", "organization": "string",
    "achieveDate": "YYYY-MM", "description": "string"
  }}],
  "publications": [{{
    "title": "string", "publisher": "string",
    "publicationDate": "ISO8601", "publicationUrl": "string", "description": "string"
  }}],
  "honors": [{{
    "title": "string", "issuer": "string",
    "issueMonth": 1-12, "issueYear": number, "description": "string"
  }}]
}}"""

SYSTEM_PROMPT = f"""You are an expert at extracting structured data from resumes and CVs.
Extract resume data into this JSON structure:
{RESUME_SCHEMA}

Rules: Use empty arrays [] for missing data. When "current":true, set endMonth/endYear to null. \
Use null (not "") for optional fields like linkedIn/website. Return ONLY valid JSON."""

# The schema is passed as a variable so its braces are not read as template fields
RESUME_EXTRACTION_PROMPT = ChatPromptTemplate.from_messages(
    [
        ("system", "{instructions}"),
        ("human", "Extract structured data from this resume:\n\n{resume_text}"),
    ]
)
