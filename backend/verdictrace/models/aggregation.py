"""
VerdictTrace - Aggregation Response Models

Typed view of the nested bucket tree returned by the cluster aggregation:

    by_product -> by_failure_mode -> { over_time, by_region, injury_mentions }

The payload is validated here at the adapter boundary. A shape that does
not fit these models is a malformed response, never coerced.
"""
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator


class TimeBucket(BaseModel):
    """One date_histogram bucket."""
    key: int = Field(..., description="Bucket start, epoch milliseconds")
    key_as_string: Optional[str] = None
    doc_count: int = Field(..., ge=0)


class TimeHistogram(BaseModel):
    buckets: List[TimeBucket] = Field(default_factory=list)


class RegionBucket(BaseModel):
    key: str
    doc_count: int = Field(..., ge=0)


class RegionTerms(BaseModel):
    buckets: List[RegionBucket] = Field(default_factory=list)


class InjuryFilter(BaseModel):
    doc_count: int = Field(..., ge=0)


class FailureModeBucket(BaseModel):
    key: str
    doc_count: int = Field(..., ge=0)
    over_time: TimeHistogram
    by_region: RegionTerms
    injury_mentions: InjuryFilter

    @model_validator(mode="after")
    def check_counts(self):
        if self.injury_mentions.doc_count > self.doc_count:
            raise ValueError(
                f"injury_mentions ({self.injury_mentions.doc_count}) exceeds doc_count ({self.doc_count})"
            )
        if self.doc_count > 0 and not self.by_region.buckets:
            raise ValueError(f"failure mode '{self.key}' has documents but no region buckets")
        return self


class FailureModeTerms(BaseModel):
    buckets: List[FailureModeBucket] = Field(default_factory=list)


class ProductBucket(BaseModel):
    key: str
    doc_count: int = Field(..., ge=0)
    by_failure_mode: FailureModeTerms


class ProductTerms(BaseModel):
    buckets: List[ProductBucket] = Field(default_factory=list)


class ClusterAggregations(BaseModel):
    by_product: ProductTerms


class ClusterAggregationResponse(BaseModel):
    """Top level of the search response; hits are ignored (size=0)."""
    aggregations: ClusterAggregations


# =============================================================================
# SEARCH HITS (exemplar sampling)
# =============================================================================

class ComplaintSource(BaseModel):
    title: str = ""
    summary: str = ""
    location: Optional[str] = ""
    injury_mentioned: bool = False


class ComplaintHit(BaseModel):
    id: str = Field(..., alias="_id")
    source: ComplaintSource = Field(default_factory=ComplaintSource, alias="_source")


class ComplaintHits(BaseModel):
    hits: List[ComplaintHit] = Field(default_factory=list)


class ComplaintSearchResponse(BaseModel):
    hits: ComplaintHits
