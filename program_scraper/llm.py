"""
Gemini structured extraction of eligibility data.

Two strategies share one instruction template and one response schema:
text mode over eligibility + description text, and vision mode over the
screenshot chunks of a rendered announcement.
"""

import re
import json
import base64
import logging
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeoutError
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Union

import google.generativeai as genai

from .config import Config
from .errors import ExtractionError
from .models import ApplicationTarget


TEXT_TIMEOUT = 120

# Explicit "no constraint found" values; an empty string would look like "not attempted"
SENTINELS = {
    'companyAge': '무관',
    'targetRegion': '전국',
    'targetAge': '무관',
    'targetIndustry': '전분야',
    'aiSummary': '요약 정보 없음',
    'targetDetail': '제한 없음',
    'exclusionDetail': '해당 없음',
    'supportField': '기타',
}

FIELD_NAMES = {
    'companyAge': 'company_age',
    'targetRegion': 'target_region',
    'targetAge': 'target_age',
    'targetIndustry': 'target_industry',
    'aiSummary': 'ai_summary',
    'targetDetail': 'target_detail',
    'exclusionDetail': 'exclusion_detail',
    'supportField': 'support_field',
}

CORE_FIELDS = ['companyAge', 'targetRegion', 'targetAge', 'targetIndustry']


BASE_INSTRUCTIONS = """
제공된 창업지원사업 공고문(이미지/텍스트)을 분석하여 핵심 정보를 JSON 형식으로 추출해줘.

1. **companyAge**: 신청 가능한 **업력(창업기간)** 요건.
   - 예: "예비창업자", "3년 미만", "7년 이내", "무관"
2. **targetRegion**: 사업장 소재지 등 **지역 제한**.
   - 예: "서울", "경기도", "전국", "제주"
3. **targetAge**: 대표자 **연령 제한**.
   - 예: "만 39세 이하", "만 19세~39세", "무관"
4. **targetIndustry**: 특정 **업종/분야**만 지원한다면 기재.
   - 예: "정보통신업", "제조업", "바이오", "전분야"
"""

DETAIL_INSTRUCTIONS = """
5. **aiSummary**: 공고 전체 내용을 3~5문장으로 요약 (지원 목적, 대상, 규모 등).
6. **targetDetail**: 신청 대상 요건 전체를 빠짐없이 정리.
7. **exclusionDetail**: **신청 제외 대상**이나 지원 불가 사유 요약.
   - 금융채무 불이행, 국세 체납 등 일반적인 사유만 있다면 "일반 제외 요건(채무불이행 등)"으로 요약.
8. **supportField**: 지원 분야 (예: "사업화", "기술개발", "자금", "판로", "인력", "수출", "멘토링·컨설팅").
"""

RULES = """
**주의사항**:
- 표(Table) 안의 내용을 꼼꼼히 확인해. 자격 요건은 보통 표 안에 있어.
- 값이 명시되지 않았거나 제한이 없으면 "무관", "전국" 등으로 기재해. ("확인불가" X, 빈값 X)
- 매칭 시스템이 활용할 수 있도록 핵심 키워드 위주로 짧게 적어줘. (aiSummary, targetDetail 제외)
"""

VISION_SUFFIX = (
    "\n\n여러 장의 이미지는 하나의 공고문을 위에서부터 순서대로 나눈 것이야. "
    "하나의 문서로 보고 분석해서 결과를 반드시 JSON으로 출력해."
)


def _schema(required: Sequence[str], optional: Sequence[str] = ()) -> Dict[str, Any]:
    return {
        'type': 'OBJECT',
        'properties': {name: {'type': 'STRING'} for name in list(required) + list(optional)},
        'required': list(required),
    }


@dataclass(frozen=True)
class PromptTemplate:
    """Instruction text plus the response schema it asks for"""

    name: str
    instructions: str
    schema: Dict[str, Any]
    fields: tuple


MATCHING_TEMPLATE = PromptTemplate(
    name='matching',
    instructions=BASE_INSTRUCTIONS + RULES,
    schema=_schema(CORE_FIELDS),
    fields=tuple(CORE_FIELDS),
)

DETAILED_TEMPLATE = PromptTemplate(
    name='detailed',
    instructions=BASE_INSTRUCTIONS + DETAIL_INSTRUCTIONS + RULES,
    schema=_schema(CORE_FIELDS + ['aiSummary', 'exclusionDetail'], ['targetDetail', 'supportField']),
    fields=tuple(CORE_FIELDS + ['aiSummary', 'targetDetail', 'exclusionDetail', 'supportField']),
)

RESPONSE_SCHEMA = DETAILED_TEMPLATE.schema


def _normalize_value(value: Any) -> str:
    if value is None:
        return ''
    if isinstance(value, (list, tuple)):
        return ', '.join(str(v).strip() for v in value if v is not None and str(v).strip())
    return str(value).strip()


def parse_llm_response(text: Optional[str], template: PromptTemplate = DETAILED_TEMPLATE,
                       logger: Optional[logging.Logger] = None) -> ApplicationTarget:
    """
    Parse the model's JSON into an ApplicationTarget.

    Blank or missing fields get their sentinel. Unparseable output gives an
    all-sentinel target with parsed=False instead of raising.
    """
    logger = logger or logging.getLogger('ProgramScraper')
    parsed = True
    try:
        raw = text or ''
        # Extract JSON from markdown code blocks if present
        fenced = re.search(r'```(?:json)?\s*(.*?)\s*```', raw, re.DOTALL)
        if fenced:
            raw = fenced.group(1)
        data = json.loads(raw)
        if not isinstance(data, dict):
            raise ExtractionError(f"expected a JSON object, got {type(data).__name__}")
    except (json.JSONDecodeError, ExtractionError) as e:
        logger.error(f"[LLM] JSON parse error: {e}")
        data = {}
        parsed = False

    values = {}
    for key in template.fields:
        values[FIELD_NAMES[key]] = _normalize_value(data.get(key)) or SENTINELS[key]
    return ApplicationTarget(parsed=parsed, **values)


class LLMExtractionClient:
    """Text and vision extraction strategies over one Gemini model"""

    def __init__(self, config: Config, logger: logging.Logger,
                 template: PromptTemplate = DETAILED_TEMPLATE, model=None):
        self.config = config
        self.logger = logger
        self.template = template

        if model is not None:
            self.model = model
        elif config.gemini_api_key:
            genai.configure(api_key=config.gemini_api_key)
            self.model = genai.GenerativeModel(config.gemini_model)
        else:
            self.model = None
            self.logger.warning("Gemini API key not configured - LLM extraction disabled")

    @property
    def available(self) -> bool:
        return self.model is not None

    def _generation_config(self):
        return genai.GenerationConfig(
            temperature=self.config.llm_temperature,
            response_mime_type='application/json',
            response_schema=self.template.schema,
        )

    def _generate(self, parts: List[Any], timeout: float) -> str:
        response = self.model.generate_content(
            parts,
            generation_config=self._generation_config(),
            request_options={'timeout': timeout},
        )
        text = response.text
        if not text:
            raise ExtractionError("empty response")
        return text

    def extract_from_text(self, eligibility: Optional[str],
                          description: Optional[str] = None) -> Optional[ApplicationTarget]:
        """Text mode; None when there is no text, no credential or the call fails"""
        if not self.available:
            self.logger.error("[LLM] GEMINI_API_KEY not configured")
            return None
        if not eligibility and not description:
            return None

        input_text = '\n\n---\n\n'.join(part for part in (eligibility, description) if part)
        prompt = f"{self.template.instructions}\n\n[입력 텍스트]\n{input_text}"

        try:
            raw = self._generate([prompt], TEXT_TIMEOUT)
        except Exception as e:
            self.logger.error(f"[LLM] Text extraction failed: {e}")
            return None

        return parse_llm_response(raw, self.template, self.logger)

    def extract_from_images(self, images: Union[str, Sequence[str]],
                            mime_type: str = 'image/jpeg') -> Optional[ApplicationTarget]:
        """
        Vision mode over base64 image chunks of one document.

        The call races a hard timeout; running out of time is a failure (None),
        never a partial result.
        """
        if not self.available:
            self.logger.error("[LLM] GEMINI_API_KEY not configured")
            return None

        image_list = [images] if isinstance(images, str) else list(images)
        if not image_list:
            return None

        parts: List[Any] = [
            {'mime_type': mime_type, 'data': base64.b64decode(image)} for image in image_list
        ]
        parts.append(self.template.instructions + VISION_SUFFIX)

        timeout = self.config.vision_timeout
        self.logger.info(f"[LLM] Sending {len(image_list)} image(s) to Gemini Vision...")
        executor = ThreadPoolExecutor(max_workers=1)
        future = executor.submit(self._generate, parts, timeout)
        try:
            raw = future.result(timeout=timeout)
        except FuturesTimeoutError:
            self.logger.error(f"[LLM] Vision extraction timed out after {timeout}s")
            return None
        except Exception as e:
            self.logger.error(f"[LLM] Vision extraction failed: {e}")
            return None
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        return parse_llm_response(raw, self.template, self.logger)
