"""Typed records passed between the crawl, extraction and storage stages."""

from dataclasses import dataclass, field, fields, asdict
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional


class Source(str, Enum):
    """Source sites crawled by the pipeline"""

    K_STARTUP = 'k-startup'
    BIZINFO = 'bizinfo'


# Maximum stored length per text field
FIELD_LIMITS = {
    'title': 500,
    'category': 100,
    'organization': 200,
    'region': 100,
    'description': 5000,
    'eligibility': 2000,
    'target_age': 200,
    'target_region': 200,
    'target_type': 200,
    'company_age': 200,
    'institution_type': 200,
    'target_industry': 300,
    'support_field': 200,
    'funding_amount': 200,
    'ai_summary': 2000,
    'target_detail': 2000,
    'exclusion_detail': 2000,
}

CRITICAL_FIELDS = ('company_age', 'target_region', 'application_start', 'application_end')


@dataclass
class ListItem:
    """One announcement as it appears on a listing page"""

    source_id: str
    url: str
    title: Optional[str] = None
    category: str = '기타'
    organization: Optional[str] = None
    region: Optional[str] = None
    application_start: Optional[datetime] = None
    application_end: Optional[datetime] = None
    view_count: Optional[int] = None
    days_remaining: Optional[int] = None
    is_target: bool = False


@dataclass
class ProgramPatch:
    """
    Partial program record.

    Every field is optional; None means "not known at this stage" and is never
    written over an existing value.
    """

    title: Optional[str] = None
    category: Optional[str] = None
    organization: Optional[str] = None
    region: Optional[str] = None
    application_start: Optional[datetime] = None
    application_end: Optional[datetime] = None
    view_count: Optional[int] = None
    description: Optional[str] = None
    eligibility: Optional[str] = None
    target_age: Optional[str] = None
    target_region: Optional[str] = None
    target_type: Optional[str] = None
    company_age: Optional[str] = None
    institution_type: Optional[str] = None
    target_industry: Optional[str] = None
    support_field: Optional[str] = None
    funding_amount: Optional[str] = None
    ai_summary: Optional[str] = None
    target_detail: Optional[str] = None
    exclusion_detail: Optional[str] = None
    llm_processed: Optional[bool] = None

    def present(self) -> Dict[str, Any]:
        """Fields that carry a value"""
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if has_value(getattr(self, f.name))
        }

    def truncated(self) -> 'ProgramPatch':
        """Copy with text fields cut to their storage limits"""
        values = {}
        for f in fields(self):
            value = getattr(self, f.name)
            limit = FIELD_LIMITS.get(f.name)
            if limit and isinstance(value, str):
                value = value[:limit]
            values[f.name] = value
        return ProgramPatch(**values)


PATCH_FIELDS = tuple(f.name for f in fields(ProgramPatch))


def has_value(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    return True


def merge_patch(
    base: ProgramPatch,
    overlay: ProgramPatch,
    names: Optional[Iterable[str]] = None,
    overwrite: bool = True,
) -> ProgramPatch:
    """
    Merge overlay into a copy of base, field by field.

    Args:
        names: fields to consider (default: all)
        overwrite: when False, overlay only fills fields missing in base

    Empty overlay values never replace base values.
    """
    merged = ProgramPatch(**{name: getattr(base, name) for name in PATCH_FIELDS})
    for name in (PATCH_FIELDS if names is None else names):
        value = getattr(overlay, name)
        if not has_value(value):
            continue
        if overwrite or not has_value(getattr(merged, name)):
            setattr(merged, name, value)
    return merged


@dataclass
class ProgramRecord:
    """Stored program, one per (source, source_id)"""

    source: str
    source_id: str
    url: str
    title: str
    category: str = '기타'
    organization: Optional[str] = None
    region: Optional[str] = None
    application_start: Optional[datetime] = None
    application_end: Optional[datetime] = None
    view_count: Optional[int] = None
    description: Optional[str] = None
    eligibility: Optional[str] = None
    target_age: Optional[str] = None
    target_region: Optional[str] = None
    target_type: Optional[str] = None
    company_age: Optional[str] = None
    institution_type: Optional[str] = None
    target_industry: Optional[str] = None
    support_field: Optional[str] = None
    funding_amount: Optional[str] = None
    ai_summary: Optional[str] = None
    target_detail: Optional[str] = None
    exclusion_detail: Optional[str] = None
    llm_processed: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def key(self):
        return (self.source, self.source_id)

    def apply(self, patch: ProgramPatch):
        """Write every present patch field onto the record"""
        for name, value in patch.present().items():
            setattr(self, name, value)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        for name, value in data.items():
            if isinstance(value, datetime):
                data[name] = value.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ProgramRecord':
        known = {f.name: f for f in fields(cls)}
        values = {}
        for name, value in data.items():
            if name not in known:
                continue
            if name in _DATETIME_FIELDS and isinstance(value, str):
                value = datetime.fromisoformat(value)
            values[name] = value
        return cls(**values)


_DATETIME_FIELDS = {'application_start', 'application_end', 'created_at', 'updated_at'}


@dataclass
class ApplicationTarget:
    """Structured eligibility data returned by an LLM strategy"""

    company_age: str
    target_region: str
    target_age: str
    target_industry: str
    ai_summary: Optional[str] = None
    target_detail: Optional[str] = None
    exclusion_detail: Optional[str] = None
    support_field: Optional[str] = None
    parsed: bool = True

    def to_patch(self) -> ProgramPatch:
        return ProgramPatch(
            company_age=self.company_age,
            target_region=self.target_region,
            target_age=self.target_age,
            target_industry=self.target_industry,
            ai_summary=self.ai_summary,
            target_detail=self.target_detail,
            exclusion_detail=self.exclusion_detail,
            support_field=self.support_field,
        )


@dataclass
class CaptureResult:
    """Ordered base64 screenshot chunks of one rendered detail page"""

    chunks: List[str]
    mime_type: str = 'image/jpeg'
    from_viewer: bool = True


@dataclass
class CrawlOptions:
    max_pages: int = 3
    fetch_details: bool = True
    use_rendering: bool = False
    target_id: Optional[str] = None
    limit: Optional[int] = None


@dataclass
class CrawlResult:
    success: bool
    count: int
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data = {'success': self.success, 'count': self.count}
        if self.errors:
            data['errors'] = list(self.errors)
        return data
