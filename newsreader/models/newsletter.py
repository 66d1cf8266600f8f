"""Newsletter and article models exchanged with the UI."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ApiModel(BaseModel):
    """Base for models serialized with the camelCase names the UI expects."""

    model_config = ConfigDict(populate_by_name=True)

    def to_api(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=False)


class Article(ApiModel):
    """Canonical article view produced from any stored record shape."""

    id: str = Field(..., description="Newsletter identifier")
    key: str = Field(..., description="Store key the record was found under")
    title: str = Field("Untitled Article", description="Display title")
    content: str = Field("", description="HTML body")
    sender: str = Field("Unknown Sender", description="Sender name or address")
    publish_date: str = Field(..., alias="publishDate", description="ISO 8601")
    tags: List[str] = Field(default_factory=list, description="Tags")
    image_url: Optional[str] = Field(None, alias="imageUrl", description="Lead image")
    is_read: bool = Field(False, alias="isRead")
    is_archived: bool = Field(False, alias="isArchived")
    raw: Optional[Dict[str, Any]] = Field(None, alias="_raw")

    def to_api(self) -> Dict[str, Any]:
        data = super().to_api()
        if self.raw is None:
            data.pop("_raw", None)
        return data


class NewsletterMeta(ApiModel):
    """Processing metadata attached to a newsletter."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    processing_version: str = Field("1.0", alias="processingVersion")
    processed_at: str = Field(..., alias="processedAt")
    is_read: bool = Field(False, alias="isRead")
    archived: bool = False


class NewsletterSummary(ApiModel):
    """One entry of the paginated newsletter listing."""

    id: str
    subject: str = "No Subject"
    sender: str = "Unknown Sender"
    date: str
    is_new: bool = Field(False, alias="isNew")
    url: str
    content: str = ""
    clean_content: str = Field("", alias="cleanContent")
    raw_content: str = Field("", alias="rawContent")
    preview_text: str = Field("", alias="previewText")
    is_read: bool = Field(False, alias="isRead")
    is_archived: bool = Field(False, alias="isArchived")
    metadata: NewsletterMeta
    has_full_content: bool = Field(True, alias="hasFullContent")


class Pagination(ApiModel):
    page: int
    page_size: int = Field(..., alias="pageSize")
    total_items: int = Field(..., alias="totalItems")
    total_pages: int = Field(..., alias="totalPages")
    has_next_page: bool = Field(..., alias="hasNextPage")


class DashboardStats(ApiModel):
    total_newsletters: int = Field(0, alias="totalNewsletters")
    today_count: int = Field(0, alias="todayCount")
    unique_senders: int = Field(0, alias="uniqueSenders")
    total: int = 0
    with_clean_content: int = Field(0, alias="withCleanContent")
    with_raw_content: int = Field(0, alias="withRawContent")


class NewsletterPage(ApiModel):
    newsletters: List[NewsletterSummary]
    pagination: Pagination
    stats: DashboardStats


class NewsletterDetail(ApiModel):
    """Full newsletter record with every content representation."""

    id: str
    title: str = "Untitled Newsletter"
    content: str = ""
    clean_content: str = Field("", alias="cleanContent")
    raw_content: str = Field("", alias="rawContent")
    text_content: str = Field("", alias="textContent")
    publish_date: str = Field(..., alias="publishDate")
    sender: str = "Unknown Sender"
    url: str
    is_read: bool = Field(False, alias="isRead")
    is_archived: bool = Field(False, alias="isArchived")
    tags: List[str] = Field(default_factory=list)
    raw: Optional[Dict[str, Any]] = Field(None, alias="_raw")

    def to_api(self) -> Dict[str, Any]:
        data = super().to_api()
        if self.raw is None:
            data.pop("_raw", None)
        return data


class ReadStatusResult(ApiModel):
    success: bool = True
    is_read: bool = Field(..., alias="isRead")
    timestamp: str
    updated_in: str = Field("metadata", alias="updatedIn")
    meta_key: str = Field(..., alias="metaKey")


class ArchiveResult(ApiModel):
    success: bool = True
    id: str
    is_archived: bool = Field(..., alias="isArchived")
    preview_text: Optional[str] = Field(None, alias="previewText")
    timestamp: str


class WebhookPayload(BaseModel):
    """Inbound email as posted by the mail forwarding service."""

    model_config = ConfigDict(populate_by_name=True)

    subject: Optional[str] = None
    body: Optional[str] = None
    sender: Optional[str] = Field(None, alias="from")
    date: Optional[Any] = None


class ReadStatusRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    is_read: bool = Field(True, alias="isRead")


class ArchiveRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    is_archived: bool = Field(True, alias="isArchived")
    content: Optional[str] = None


class PreviewRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    content: Optional[Any] = None
    preview_text: Optional[str] = Field(None, alias="previewText")


class ReprocessAllRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    confirm_reprocess_all: bool = Field(False, alias="confirmReprocessAll")
    max_count: int = Field(10, ge=1, le=1000, alias="maxCount")
