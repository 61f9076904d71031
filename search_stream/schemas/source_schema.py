"""Pydantic 스키마 정의 (Provider payloads & Source items)"""
from enum import Enum
from typing import Optional, List, Any
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from search_stream.core.config import settings


class SourceType(str, Enum):
    """프로바이더 데이터 소스 종류"""
    TWITTER = "twitter"
    TWITTER_API = "twitter-api"
    TWITTER_CREDENTIAL = "twitter-credential"


class SearchMethod(str, Enum):
    """프로바이더 검색 방식"""
    SEARCH_BY_QUERY = "searchbyquery"
    SEARCH_BY_FULL_ARCHIVE = "searchbyfullarchive"
    GET_BY_ID = "getbyid"
    GET_REPLIES = "getreplies"
    GET_RETWEETERS = "getretweeters"
    GET_TWEETS = "gettweets"
    GET_MEDIA = "getmedia"
    GET_HOME_TWEETS = "gethometweets"
    GET_FOR_YOU_TWEETS = "getforyoutweets"
    SEARCH_BY_PROFILE = "searchbyprofile"
    GET_PROFILE_BY_ID = "getprofilebyid"
    GET_TRENDS = "gettrends"
    GET_FOLLOWING = "getfollowing"
    GET_FOLLOWERS = "getfollowers"
    GET_SPACE = "getspace"


class JobStatus(str, Enum):
    """프로바이더 잡 상태"""
    SUBMITTED = "submitted"
    IN_PROGRESS = "in progress"
    DONE = "done"
    ERROR = "error"


class KeywordOperator(str, Enum):
    AND = "and"
    OR = "or"


class InstantSource(str, Enum):
    """즉시 검색(similarity/hybrid) 대상 소스"""
    TWITTER = "twitter"
    WEB = "web"
    TIKTOK = "tiktok"


# ============================================================================
# 프로바이더 응답 (원본)
# ============================================================================

class ProviderMetadata(BaseModel):
    """프로바이더 결과 메타데이터 (알 수 없는 키도 보존)"""
    model_config = ConfigDict(extra="allow")

    author: Optional[str] = None
    conversation_id: Optional[str] = None
    created_at: Optional[str] = None
    lang: Optional[str] = None
    likes: Optional[int] = None
    newest_id: Optional[str] = None
    oldest_id: Optional[str] = None
    possibly_sensitive: Optional[bool] = None
    public_metrics: Optional[dict[str, Any]] = None
    tweet_id: Optional[int] = None
    user_id: Optional[str] = None
    username: Optional[str] = None


class ProviderResult(BaseModel):
    """프로바이더 검색 결과 한 건 (원본 형식)"""
    model_config = ConfigDict(extra="allow")

    id: str = Field(..., description="10진수 문자열 Snowflake ID")
    source: str = Field("", description="데이터 소스")
    content: str = Field("", description="본문")
    metadata: Optional[ProviderMetadata] = Field(None, description="메타데이터")
    updated_at: Optional[str] = Field(None, description="프로바이더 갱신 시각")

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, v: Any) -> Any:
        # 일부 응답은 ID를 정수로 내려줌 (정밀도 손실 없는 int만 허용)
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v

    @field_validator("content", mode="before")
    @classmethod
    def _coerce_content(cls, v: Any) -> Any:
        return "" if v is None else v


# ============================================================================
# 정규화된 콘텐츠 레코드
# ============================================================================

class _CamelModel(BaseModel):
    """직렬화 시 camelCase 키를 사용하는 모델"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class Author(_CamelModel):
    """작성자 정보"""
    id: Optional[str] = None
    username: Optional[str] = None
    display_name: Optional[str] = None
    url: Optional[str] = None


class SourceItem(_CamelModel):
    """정규화된 콘텐츠 레코드 (생성 후 불변)"""
    external_id: str = Field(..., description="10진수 문자열 Snowflake ID")
    content: str = Field(..., description="본문")
    content_type: str = Field("post", description="콘텐츠 종류")
    created_at: str = Field(..., description="ISO-8601 생성 시각")
    url: Optional[str] = Field(None, description="원문 링크")
    authors: Optional[List[Author]] = Field(None, description="작성자 목록 (순서 유지)")
    raw: dict[str, Any] = Field(default_factory=dict, description="감사용 원본 페이로드")


class Profile(_CamelModel):
    """프로필 조회 결과"""
    id: str
    username: str
    display_name: Optional[str] = None
    bio: Optional[str] = None
    followers_count: Optional[int] = None
    following_count: Optional[int] = None
    tweets_count: Optional[int] = None
    verified: Optional[bool] = None
    profile_image_url: Optional[str] = None
    raw: dict[str, Any] = Field(default_factory=dict)


class Trend(_CamelModel):
    """트렌드 항목"""
    name: str
    query: Optional[str] = None
    tweet_volume: Optional[int] = None
    raw: dict[str, Any] = Field(default_factory=dict)


# ============================================================================
# 요청 스키마
# ============================================================================

class SearchInput(BaseModel):
    """스트리밍 검색 요청 (입력 검증 강화)"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    query: str = Field(..., min_length=1, description="기본 검색어 (커서 제외)")
    source_type: SourceType = Field(SourceType.TWITTER, description="데이터 소스")
    search_method: SearchMethod = Field(SearchMethod.SEARCH_BY_QUERY, description="검색 방식")
    max_results: Optional[int] = Field(None, ge=1, description="백필 총 건수 예산")
    budget_ms: int = Field(60000, ge=5000, le=300000, description="턴당 벽시계 예산 (ms)")
    live_poll_ms: int = Field(
        default_factory=lambda: settings.default_live_poll_ms,
        ge=1000,
        le=3600000,
        description="라이브 폴링 간격 (ms, 기본값은 DEFAULT_LIVE_POLL_MS)",
    )
    backfill_page_size: int = Field(100, ge=1, le=500, description="백필 페이지 크기")
    live_page_size: int = Field(50, ge=1, le=100, description="라이브 페이지 크기")
    enable_live: bool = Field(True, description="백필 완료 후 라이브 추적 여부")
    oldest_allowed_id: Optional[str] = Field(None, description="이 ID보다 오래된 항목에서 백필 중단")
    max_backfill_age_ms: Optional[int] = Field(None, ge=1, description="이보다 오래된 항목에서 백필 중단")

    @field_validator("query")
    @classmethod
    def validate_query(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("query must not be blank")
        # 커서는 엔진이 관리하므로 직접 넣지 못하게 함
        lowered = v.lower()
        if "max_id:" in lowered or "since_id:" in lowered:
            raise ValueError("query must not contain max_id:/since_id: cursors")
        return v.strip()

    @field_validator("oldest_allowed_id")
    @classmethod
    def validate_oldest_allowed_id(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        if not (v.isascii() and v.isdigit()):
            raise ValueError("oldest_allowed_id must be a decimal id")
        return v


class WeightedQuery(BaseModel):
    query: str = Field(..., min_length=1)
    weight: float = Field(..., ge=0.0, le=1.0)


class SimilaritySearchOptions(BaseModel):
    """벡터 기반 즉시 검색 옵션"""
    query: str = Field(..., min_length=1)
    sources: Optional[List[InstantSource]] = None
    keywords: Optional[List[str]] = None
    keyword_operator: KeywordOperator = KeywordOperator.AND
    max_results: int = Field(10, ge=1, le=100)

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


class HybridSearchOptions(BaseModel):
    """시맨틱 + 키워드 하이브리드 즉시 검색 옵션"""
    similarity_query: WeightedQuery
    text_query: WeightedQuery
    sources: Optional[List[InstantSource]] = None
    keywords: Optional[List[str]] = None
    keyword_operator: KeywordOperator = KeywordOperator.AND
    max_results: int = Field(10, ge=1, le=100)

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)
