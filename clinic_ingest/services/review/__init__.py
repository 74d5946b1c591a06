"""Human review of extracted procedures."""

from clinic_ingest.services.review.mapping_review_service import ApprovalResult, MappingReviewService

__all__ = [
    "ApprovalResult",
    "MappingReviewService",
]
