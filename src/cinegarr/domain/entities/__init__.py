from .movie import (
    Category,
    CategoryEnvelope,
    DetailFragment,
    DownloadLink,
    ErrorInfo,
    ListingPage,
    MovieDetail,
    MovieListing,
    ResultEnvelope,
    ScrapeRequest,
    SourceType,
    merge_detail,
)

__all__ = [
    "Category",
    "CategoryEnvelope",
    "DetailFragment",
    "DownloadLink",
    "ErrorInfo",
    "ListingPage",
    "MovieDetail",
    "MovieListing",
    "ResultEnvelope",
    "ScrapeRequest",
    "SourceType",
    "merge_detail",
]
