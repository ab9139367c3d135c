"""
Resume data models - drafts, job targeting context, and persisted resumes
"""
import copy
import re
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from resume_session.config import (
    BLANK_RESUME_DATA,
    DEFAULT_SECTION_ORDER,
    DEFAULT_TEMPLATE,
    UNTITLED_RESUME_TITLE,
)

CONTENT_FIELDS = ('personalInfo', 'summary', 'experience', 'education', 'skills', 'additional')


@dataclass
class Draft:
    """Unpersisted resume content held in session storage."""
    personal_info: Dict[str, Any] = field(default_factory=dict)
    summary: str = ''
    experience: List[Dict[str, Any]] = field(default_factory=list)
    education: List[Dict[str, Any]] = field(default_factory=list)
    skills: List[Any] = field(default_factory=list)
    additional: Dict[str, Any] = field(default_factory=dict)
    template: str = DEFAULT_TEMPLATE
    section_order: List[str] = field(default_factory=lambda: list(DEFAULT_SECTION_ORDER))
    progress: int = 0

    def content(self) -> Dict[str, Any]:
        """Resume content in the wire shape used by the resume API."""
        return {
            'personalInfo': self.personal_info,
            'summary': self.summary,
            'experience': self.experience,
            'education': self.education,
            'skills': self.skills,
            'additional': self.additional,
        }

    @classmethod
    def from_content(
        cls,
        data: Dict[str, Any],
        template: Optional[str] = None,
        section_order: Optional[List[str]] = None,
        progress: Optional[int] = None,
    ) -> 'Draft':
        if not isinstance(data, dict):
            raise TypeError(f"Resume content must be a dict, got {type(data).__name__}")
        return cls(
            personal_info=data.get('personalInfo') or {},
            summary=data.get('summary') or '',
            experience=list(data.get('experience') or []),
            education=list(data.get('education') or []),
            skills=list(data.get('skills') or []),
            additional=data.get('additional') or {},
            template=template or DEFAULT_TEMPLATE,
            section_order=list(section_order) if section_order else list(DEFAULT_SECTION_ORDER),
            progress=int(progress or 0),
        )

    @classmethod
    def blank(cls, template: str = DEFAULT_TEMPLATE) -> 'Draft':
        return cls.from_content(copy.deepcopy(BLANK_RESUME_DATA), template=template)


@dataclass
class JobContext:
    """Target job posting used to bias tailoring."""
    title: str
    description: str = ''
    timestamp: float = field(default_factory=time.time)
    active: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            'title': self.title,
            'description': self.description,
            'timestamp': self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], active: bool = False) -> 'JobContext':
        if not isinstance(data, dict):
            raise TypeError(f"Job context must be a dict, got {type(data).__name__}")
        return cls(
            title=data.get('title') or data.get('jobTitle') or '',
            description=data.get('description') or '',
            timestamp=data.get('timestamp') or time.time(),
            active=active,
        )


@dataclass
class PersistedResume:
    """Server-owned resume record."""
    id: str
    user_id: str
    title: str
    data: Dict[str, Any]
    template: str = DEFAULT_TEMPLATE
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_api_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'title': self.title,
            'data': self.data,
            'template': self.template,
            'createdAt': self.created_at.isoformat(),
            'updatedAt': self.updated_at.isoformat(),
        }

    def to_summary_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'title': self.title,
            'template': self.template,
            'updatedAt': self.updated_at.isoformat(),
        }

    def to_firestore(self) -> Dict[str, Any]:
        return {
            'userId': self.user_id,
            'title': self.title,
            'data': self.data,
            'template': self.template,
            'createdAt': self.created_at,
            'updatedAt': self.updated_at,
        }

    @classmethod
    def from_firestore(cls, doc_id: str, doc: Dict[str, Any]) -> 'PersistedResume':
        now = datetime.now(timezone.utc)
        return cls(
            id=doc_id,
            user_id=doc.get('userId', ''),
            title=doc.get('title') or UNTITLED_RESUME_TITLE,
            data=doc.get('data') or {},
            template=doc.get('template') or DEFAULT_TEMPLATE,
            created_at=doc.get('createdAt') or now,
            updated_at=doc.get('updatedAt') or now,
        )


# ========================================
# Text sanitization for storage
# ========================================

_REPLACEMENTS = (
    (re.compile('[‘’]'), "'"),
    (re.compile('[“”]'), '"'),
    (re.compile('–'), '-'),
    (re.compile('—'), '--'),
    (re.compile('…'), '...'),
    (re.compile(r'[^\x00-\x7F]'), ''),
)


def sanitize_text(text: str) -> str:
    """Replace characters unsupported by LATIN1 renderers; drop other non-ASCII."""
    if not text:
        return text
    for pattern, replacement in _REPLACEMENTS:
        text = pattern.sub(replacement, text)
    return text


def sanitize_data_for_db(data: Any) -> Any:
    """Recursively sanitize all string values in resume content."""
    if isinstance(data, str):
        return sanitize_text(data)
    if isinstance(data, list):
        return [sanitize_data_for_db(item) for item in data]
    if isinstance(data, dict):
        return {key: sanitize_data_for_db(value) for key, value in data.items()}
    return data


def imported_resume_title(data: Dict[str, Any], today: Optional[datetime] = None) -> str:
    """Base title for a resume coming out of the import flow."""
    name = ((data or {}).get('personalInfo') or {}).get('name')
    if name:
        return f"{name}'s Resume (Imported)"
    today = today or datetime.now()
    return f"Resume (Imported) - {today.strftime('%m/%d/%Y')}"


def normalize_imported_resume(data: Dict[str, Any]) -> Dict[str, Any]:
    """Coerce import collaborator output into the resume content shape."""
    data = data or {}
    normalized = copy.deepcopy(BLANK_RESUME_DATA)
    personal_info = data.get('personalInfo')
    if isinstance(personal_info, dict):
        normalized['personalInfo'].update(personal_info)
    if isinstance(data.get('summary'), str):
        normalized['summary'] = data['summary']
    for list_field in ('experience', 'education', 'skills'):
        if isinstance(data.get(list_field), list):
            normalized[list_field] = data[list_field]
    if isinstance(data.get('additional'), dict):
        normalized['additional'].update(data['additional'])
    return normalized
