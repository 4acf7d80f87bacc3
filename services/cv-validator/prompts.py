"""Prompt for CV/form cross-checking by a vision model.

The reply shape spelled out here is parsed by validation.parse_verdicts;
keep the keys in sync with models.FieldVerdict aliases.
"""

from models import FormData

NOT_PROVIDED = "Not provided"

# Form field keys as the model must echo them back, in prompt order
FIELD_KEYS: tuple[str, ...] = ("fullName", "email", "phone", "skills", "experience")

_JSON_RULES = """CRITICAL OUTPUT RULES:
- Return ONLY a single valid JSON object. No other text before or after.
- Do NOT include any preamble, explanation, or markdown formatting.
- Do NOT wrap in code fences. Just raw JSON."""

_STATUS_DEFINITIONS = """Status definitions:
- "match": the form value is the same as, or trivially different from, what the CV shows
- "partial_match": the form value overlaps with the CV content but differs in some details
- "no_match": the form value contradicts what the CV shows
- "not_found": the CV does not contain this information"""

_EXAMPLE_CONFIDENCE = {
    "fullName": 0.95,
    "email": 0.90,
    "phone": 0.85,
    "skills": 0.80,
    "experience": 0.75,
}


def _value(raw: str | None) -> str:
    return raw if raw is not None else NOT_PROVIDED


def _reply_shape() -> str:
    entries = []
    for key in FIELD_KEYS:
        entries.append(
            "    {\n"
            f'      "field": "{key}",\n'
            '      "status": "match|partial_match|no_match|not_found",\n'
            f'      "confidence": {_EXAMPLE_CONFIDENCE[key]:.2f},\n'
            '      "reason": "why you reached this verdict",\n'
            '      "extractedValue": "the value as it appears in the CV"\n'
            "    }"
        )
    return '{\n  "fields": [\n' + ",\n".join(entries) + "\n  ]\n}"


def build_validation_prompt(form: FormData) -> str:
    """Render the instruction asking the model to judge each form field against the CV."""
    return f"""You are reviewing a CV/resume document (PDF or image).
Check whether the following form data matches what is written in the document.

{_JSON_RULES}

FORM DATA TO VALIDATE:
- Full Name: "{_value(form.full_name)}"
- Email: "{_value(form.email)}"
- Phone: "{_value(form.phone)}"
- Skills: "{_value(form.skills)}"
- Experience: "{_value(form.experience)}"

For every field, decide:
1. Does the form value match what the CV shows?
2. How confident are you, as a number from 0.0 to 1.0?
3. Which value did you find in the CV, if any?
4. Why did you reach this verdict?

Return one entry per field using EXACTLY this structure:

{_reply_shape()}

{_STATUS_DEFINITIONS}

Allow for formatting differences, abbreviations and synonyms. Read all visible
text in the document before deciding a field is missing.
"""
