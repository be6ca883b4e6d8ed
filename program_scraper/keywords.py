"""Keyword inference: cheap deterministic field guessing used before any LLM call."""

import re
from typing import Optional


# Checked in order; the first term found decides the field
SUPPORT_FIELD_TERMS = [
    ('기술개발', ['R&D', '연구개발', '기술개발', '기술사업화']),
    ('자금', ['융자', '보증', '정책자금', '투자유치', '출자']),
    ('수출', ['수출', '해외진출', '글로벌', '해외마케팅']),
    ('판로', ['판로', '내수', '유통', '온라인 판매', '홈쇼핑', '전시회']),
    ('인력', ['채용', '인건비', '인력', '일자리']),
    ('시설·공간', ['입주', '보육공간', '사무공간', '창업공간', '시설']),
    ('멘토링·컨설팅', ['멘토링', '컨설팅', '코칭', '교육']),
    ('사업화', ['사업화', '시제품', '창업자금', '사업비']),
    ('행사·네트워크', ['네트워킹', '데모데이', '경진대회', '박람회', '행사']),
]

# Bizinfo category tag -> normalized support field
CATEGORY_TO_SUPPORT_FIELD = {
    '경영': '자금',
    '기술': '기술개발',
    '인력': '인력',
    '수출': '수출',
    '창업': '창업',
    '금융': '자금',
    '내수': '판로',
    '기타': '기타',
}

_AMOUNT = r'\d+(?:,\d+)*\s*(?:억|천만|백만|만)?원'

FUNDING_PATTERNS = [
    re.compile(rf'최대\s*({_AMOUNT})'),
    re.compile(rf'({_AMOUNT})\s*(?:이내|이하|한도)'),
    re.compile(rf'지원금액[:\s]*({_AMOUNT})'),
    re.compile(r'(\d+(?:,\d+)*원/kg)'),
    re.compile(r'(\d+백만원)'),
    re.compile(r'(\d+천만원)'),
    re.compile(r'(\d+억원)'),
    re.compile(r'(?:업체당|개사당|1사당|기업당|업체별)\s*(\d+(?:백|천)?만?원)'),
    re.compile(r'(?:장려금|보조금|지원금|사업비)[:\s]*(\d+(?:백|천)?만?원)'),
    re.compile(r'(\d+(?:,\d+)*(?:억|천만|백만|만|천|백)원)'),
]


def infer_support_field(text: Optional[str]) -> Optional[str]:
    """Guess the support field from description/eligibility text"""
    if not text:
        return None
    for support_field, terms in SUPPORT_FIELD_TERMS:
        if any(term in text for term in terms):
            return support_field
    return None


def normalize_category_tag(tag: Optional[str]) -> Optional[str]:
    """Map a displayed category tag to the support-field vocabulary"""
    if not tag:
        return None
    tag = tag.strip()
    return CATEGORY_TO_SUPPORT_FIELD.get(tag, tag) or None


def find_funding_amount(text: Optional[str]) -> Optional[str]:
    """First currency amount mentioned in text, e.g. "최대 1억원" -> "1억원" """
    if not text:
        return None
    for pattern in FUNDING_PATTERNS:
        match = pattern.search(text)
        if match:
            return (match.group(1) or match.group(0)).strip()
    return None
