"""
Requirement block extraction.

A requirement block is an ID heading followed by ``**Label:** value`` lines::

    ### REQ-AUTH-001 User Login
    **Statement:** The system shall authenticate users.
    **Acceptance Criteria:**
    - Valid credentials grant access
    - Invalid credentials are rejected
    **Verification Method:** Test

Manifesto:
    Regulated documents are written in more than one dialect (English
    "Statement/Rationale/Verification Method", Chinese "描述/優先級/安全分類").
    Dialects are data: each label is looked up in FIELD_SYNONYMS and
    normalized to a canonical field, so a new dialect is a dictionary edit.

Architecture:
    ::

        heading ──match──► RequirementRecord(id, name)
            │
            ▼  per line, until next heading or horizontal rule
        ┌─────────────────────┬───────────────────────────────────────┐
        │ **Label:** value    │ canonical field / acceptance sub-state │
        │                     │ / other_fields[label]                  │
        │ - bullet            │ acceptance_criteria (in sub-state)     │
        │ other text          │ ends sub-state, or continues           │
        │                     │ statement/rationale with a space       │
        │ blank               │ ignored                                │
        └─────────────────────┴───────────────────────────────────────┘

Guardrails:
    ❌ DON'T: Raise on a heading that merely looks like a requirement
    ✅ DO: Return None and let the caller render an ordinary heading

Tags:
    requirements, parser, srs, dialect, md2docx
"""

from __future__ import annotations

import re

from md2docx.models import RequirementRecord

REQUIREMENT_PREFIXES = ("SRS", "SWD", "SDD", "STC", "REQ")

REQUIREMENT_ID_PATTERN = re.compile(rf"(?:{'|'.join(REQUIREMENT_PREFIXES)})-[A-Z]+-\d+")

REQUIREMENT_HEADING_PATTERN = re.compile(
    rf"^#{{3,5}}\s+({REQUIREMENT_ID_PATTERN.pattern})(?=[\s:：]|$)[:：]?\s*(.*)$"
)

# **Label:** value  or  **Label**: value
LABEL_PATTERN = re.compile(r"^\*\*(?P<label>[^*]+?)\s*(?:[:：]\*\*|\*\*\s*[:：])\s*(?P<value>.*)$")

HORIZONTAL_RULE_PATTERN = re.compile(r"^(?:-{3,}|\*{3,}|_{3,})$")

BULLET_PATTERN = re.compile(r"^[-*]\s+(.*)$")

# Lowercased label → canonical RequirementRecord field
FIELD_SYNONYMS: dict[str, str] = {
    # English dialect
    "statement": "statement",
    "description": "statement",
    "rationale": "rationale",
    "priority": "priority",
    "safety class": "safety_class",
    "safety classification": "safety_class",
    "acceptance criteria": "acceptance_criteria",
    "verification method": "verification_method",
    "verification": "verification_method",
    # Chinese dialect
    "描述": "statement",
    "需求描述": "statement",
    "理由": "rationale",
    "優先級": "priority",
    "優先順序": "priority",
    "安全分類": "safety_class",
    "安全等級": "safety_class",
    "驗收標準": "acceptance_criteria",
    "驗證方法": "verification_method",
}

# Fields that accept continuation lines
PARAGRAPH_FIELDS = {"statement", "rationale"}


def is_requirement_heading(line: str) -> bool:
    return REQUIREMENT_HEADING_PATTERN.match(line.strip()) is not None


def canonical_field(label: str) -> str | None:
    return FIELD_SYNONYMS.get(label.strip().lower())


class RequirementBlockExtractor:
    """Turns an ID heading and its labeled lines into a RequirementRecord."""

    def extract(self, lines: list[str], index: int) -> tuple[RequirementRecord, int] | None:
        """Extract the block whose heading is ``lines[index]``.

        Returns:
            (record, index of the last consumed line), or None when the
            heading is not a requirement heading.
        """
        heading = REQUIREMENT_HEADING_PATTERN.match(lines[index].strip())
        if heading is None:
            return None

        record = RequirementRecord(id=heading.group(1), name=heading.group(2).strip())
        current: str | None = None
        in_criteria = False
        position = index + 1

        while position < len(lines):
            line = lines[position].strip()
            if line.startswith("#") or HORIZONTAL_RULE_PATTERN.match(line):
                break

            labeled = LABEL_PATTERN.match(line)
            bullet = BULLET_PATTERN.match(line)

            if labeled:
                label = labeled.group("label").strip()
                value = labeled.group("value").strip()
                canonical = canonical_field(label)
                in_criteria = canonical == "acceptance_criteria"
                current = canonical if canonical in PARAGRAPH_FIELDS else None

                if canonical is None:
                    record.other_fields[label] = value
                elif in_criteria:
                    record.labels[canonical] = label
                    if value:
                        record.acceptance_criteria.append(value)
                else:
                    record.labels[canonical] = label
                    setattr(record, canonical, value)
            elif not line:
                pass
            elif in_criteria and bullet:
                record.acceptance_criteria.append(bullet.group(1).strip())
            elif in_criteria:
                in_criteria = False
            elif current is not None:
                existing = getattr(record, current)
                setattr(record, current, f"{existing} {line}" if existing else line)

            position += 1

        return record, position - 1


__all__ = [
    "REQUIREMENT_PREFIXES",
    "REQUIREMENT_ID_PATTERN",
    "REQUIREMENT_HEADING_PATTERN",
    "LABEL_PATTERN",
    "FIELD_SYNONYMS",
    "RequirementBlockExtractor",
    "is_requirement_heading",
    "canonical_field",
]
