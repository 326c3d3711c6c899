"""
Data schemas for API requests and responses.

This module defines Pydantic models for validating the payloads exchanged
with the recommendations service. Field names are snake_case in Python and
camelCase on the wire.
"""

from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

SUCCEEDED = "Succeeded"
TERMINAL_STATUSES = ("succeeded", "failed", "cancelled")


class ApiModel(BaseModel):
    """Base model mapping snake_case attributes to camelCase JSON keys."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        protected_namespaces=()
    )

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class BuildType(str, Enum):
    """Kinds of build the service can train."""
    RECOMMENDATION = "recommendation"
    FBT = "fbt"


class ModelInfo(ApiModel):
    """A model container returned by the create-model call."""
    id: str
    name: Optional[str] = None
    description: Optional[str] = None
    created_date_time: Optional[str] = None
    active_build_id: Optional[int] = None


class ImportErrorInfo(ApiModel):
    error: Optional[str] = None
    count: int = 0


class CatalogImportStats(ApiModel):
    """Result of a catalog upload."""
    processed_line_count: int = 0
    error_line_count: int = 0
    imported_line_count: int = 0
    error_summary: List[ImportErrorInfo] = []


class UsageImportStats(ApiModel):
    """Result of a usage upload."""
    processed_line_count: int = 0
    error_line_count: int = 0
    file_id: Optional[str] = None
    error_summary: List[ImportErrorInfo] = []


class BuildRequestInfo(ApiModel):
    """Body of the create-build call."""
    description: str
    build_type: BuildType = BuildType.RECOMMENDATION
    enable_model_insights: bool = False

    def to_payload(self) -> Dict[str, Any]:
        # Build parameters are nested under the build type key.
        return {
            "description": self.description,
            "buildType": self.build_type.value,
            "buildParameters": {
                self.build_type.value: {"enableModelingInsights": self.enable_model_insights}
            }
        }


class OperationInfo(ApiModel):
    """
    Status of an asynchronous operation (a build or a batch job).

    `result` carries the operation-specific payload once the operation ends.
    """
    type: Optional[str] = None
    status: str
    created_date_time: Optional[str] = None
    last_action_date_time: Optional[str] = None
    percent_complete: Optional[int] = None
    message: Optional[str] = None
    resource_location: Optional[str] = None
    result: Optional[Dict[str, Any]] = None

    @property
    def is_terminal(self) -> bool:
        return self.status.lower() in TERMINAL_STATUSES

    @property
    def succeeded(self) -> bool:
        return self.status.lower() == SUCCEEDED.lower()


class RecommendedItemInfo(ApiModel):
    id: str
    name: Optional[str] = None
    metadata: Optional[str] = None


class RecommendedItemSetInfo(ApiModel):
    """A set of items recommended together with a single rating."""
    items: List[RecommendedItemInfo] = []
    rating: float = 0.0
    reasoning: List[str] = []


class RecommendedItemSetInfoList(ApiModel):
    """Response of the item and user recommendation calls."""
    recommended_items: Optional[List[RecommendedItemSetInfo]] = None


class StorageBlobInfo(ApiModel):
    """Location of a blob used by a batch job."""
    authentication_type: str = "PublicOrSas"
    base_location: str
    relative_location: str
    sas_blob_token: str


class JobInfo(ApiModel):
    """Scoring parameters of a batch job."""
    api_name: str = "ItemRecommend"
    model_id: str
    build_id: int
    number_of_results: int = Field(10, ge=1)
    include_metadata: bool = False
    minimal_score: float = 0


class BatchJobsRequestInfo(ApiModel):
    """Body of the start-batch-job call."""
    input: StorageBlobInfo
    output: StorageBlobInfo
    error: StorageBlobInfo
    job: JobInfo
