# perfaudit/models.py
from pydantic import BaseModel, ConfigDict, Field
from typing import List, Literal, Tuple

DeviceProfile = Literal["mobile", "desktop"]

# Order in which devices are audited for every URL
DEVICE_PROFILES: Tuple[DeviceProfile, ...] = ("mobile", "desktop")

class AuditRequest(BaseModel):
    urls: List[str] = []

class CategoryScores(BaseModel):
    """Lighthouse category scores on a 0-100 scale."""
    model_config = ConfigDict(populate_by_name=True)

    performance: float
    seo: float
    accessibility: float
    best_practices: float = Field(alias="bestPractices")

class TimingMetrics(BaseModel):
    """Lab metrics in milliseconds, except the unitless cls."""
    fcp: float
    lcp: float
    tbt: float
    si: float
    cls: float

class Sample(BaseModel):
    """Output of one successful Lighthouse pass."""
    scores: CategoryScores
    metrics: TimingMetrics
    report: str

class AggregateResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    url: str
    device: DeviceProfile
    average_scores: CategoryScores = Field(alias="averageScores")
    std_scores: CategoryScores = Field(alias="stdScores")
    average_metrics: TimingMetrics = Field(alias="averageMetrics")
    std_metrics: TimingMetrics = Field(alias="stdMetrics")
    reports: List[str]

class AuditResponse(BaseModel):
    results: List[AggregateResult]

class ErrorResponse(BaseModel):
    error: str
