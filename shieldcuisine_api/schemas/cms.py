from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Dict, List, Literal, Optional, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

Alignment = Literal["left", "center", "right"]


class _BlockContent(BaseModel):
    # Editor-specific keys the server does not interpret are kept as sent.
    model_config = ConfigDict(extra="allow")


class HeadingContent(_BlockContent):
    text: str = ""
    level: Literal["h1", "h2", "h3", "h4", "h5", "h6"] = "h2"
    alignment: Optional[Alignment] = None


class TextContent(_BlockContent):
    text: str = ""


class RichTextContent(_BlockContent):
    content: str = Field("", description="Formatted HTML")
    textAlign: Optional[Alignment] = None


class ImageContent(_BlockContent):
    src: str
    alt: Optional[str] = None
    caption: Optional[str] = None


class GalleryImage(_BlockContent):
    src: str
    alt: str = ""
    caption: Optional[str] = None


class GalleryContent(_BlockContent):
    images: List[GalleryImage] = Field(default_factory=list)
    layout: Literal["grid", "masonry", "carousel"] = "grid"


class HtmlContent(_BlockContent):
    code: str = ""


class AiContent(_BlockContent):
    prompt: str = ""
    content: str = ""
    tone: Optional[str] = None
    format: Literal["text", "html"] = "text"


class ContactFormField(_BlockContent):
    name: str = Field(..., min_length=1)
    label: str
    type: Literal["text", "email", "textarea", "select", "checkbox", "radio"] = "text"
    required: bool = False
    options: List[Dict[str, str]] = Field(default_factory=list)


class ContactFormContent(_BlockContent):
    title: str = ""
    fields: List[ContactFormField] = Field(default_factory=list)
    successMessage: Optional[str] = None
    errorMessage: Optional[str] = None
    redirectUrl: Optional[str] = None


class _Block(BaseModel):
    id: str = Field(..., min_length=1, description="Client-generated block id")
    animation: Optional[Dict[str, Any]] = None
    style: Optional[Dict[str, Any]] = None
    layout: Optional[Dict[str, Any]] = None
    advanced: Optional[Dict[str, Any]] = None


class HeadingBlock(_Block):
    type: Literal["heading"]
    content: HeadingContent


class TextBlock(_Block):
    type: Literal["text"]
    content: TextContent


class RichTextBlock(_Block):
    type: Literal["rich-text"]
    content: RichTextContent


class ImageBlock(_Block):
    type: Literal["image"]
    content: ImageContent


class GalleryBlock(_Block):
    type: Literal["gallery"]
    content: GalleryContent


class HtmlBlock(_Block):
    type: Literal["html"]
    content: HtmlContent


class AiBlock(_Block):
    type: Literal["ai"]
    content: AiContent


class ContactFormBlock(_Block):
    type: Literal["contact-form"]
    content: ContactFormContent


Block = Annotated[
    Union[
        HeadingBlock,
        TextBlock,
        RichTextBlock,
        ImageBlock,
        GalleryBlock,
        HtmlBlock,
        AiBlock,
        ContactFormBlock,
    ],
    Field(discriminator="type"),
]


class PageContent(BaseModel):
    """Body of a page: an ordered list of blocks."""
    blocks: List[Block] = Field(default_factory=list)


PageStatus = Literal["draft", "published"]
PageType = Literal["page", "blog", "product"]


class PageCreate(BaseModel):
    title: str = Field(..., min_length=1)
    slug: Optional[str] = Field(None, description="Derived from the title when omitted")
    content: PageContent = Field(default_factory=PageContent)
    seo_title: Optional[str] = None
    seo_description: Optional[str] = None
    featured: bool = False
    thumbnail: Optional[str] = None
    page_type: PageType = "page"


class PageUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1)
    slug: Optional[str] = None
    content: Optional[PageContent] = None
    seo_title: Optional[str] = None
    seo_description: Optional[str] = None
    featured: Optional[bool] = None
    thumbnail: Optional[str] = None
    page_type: Optional[PageType] = None
    version_comment: Optional[str] = Field(None, description="Comment stored on the automatic snapshot")


class PageRead(BaseModel):
    """Read model for a CMS page."""
    id: UUID
    tenant_id: UUID
    title: str
    slug: str
    content: Dict[str, Any] = Field(default_factory=dict)
    status: str
    published_at: Optional[datetime] = None
    seo_title: Optional[str] = None
    seo_description: Optional[str] = None
    featured: bool
    thumbnail: Optional[str] = None
    page_type: str
    created_by: Optional[UUID] = None
    last_updated_by: Optional[UUID] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class PublicPageRead(BaseModel):
    """Published page data for public rendering."""
    id: UUID
    title: str
    slug: str
    content: Dict[str, Any] = Field(default_factory=dict)
    seo_title: Optional[str] = None
    seo_description: Optional[str] = None
    thumbnail: Optional[str] = None
    page_type: str
    published_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PageVersionCreate(BaseModel):
    comment: Optional[str] = None


class PageVersionRead(BaseModel):
    """Read model for a page snapshot."""
    id: UUID
    page_id: UUID
    version_number: int
    title: str
    content: Dict[str, Any] = Field(default_factory=dict)
    comment: Optional[str] = None
    created_by: Optional[UUID] = None
    created_at: datetime

    class Config:
        from_attributes = True


class BlockChange(BaseModel):
    id: str
    before: Dict[str, Any]
    after: Dict[str, Any]


class VersionComparison(BaseModel):
    """Block-level differences between two versions (from `a` to `b`)."""
    version_a: int
    version_b: int
    title_changed: bool
    added: List[Dict[str, Any]] = Field(default_factory=list)
    removed: List[Dict[str, Any]] = Field(default_factory=list)
    changed: List[BlockChange] = Field(default_factory=list)


class FormSubmit(BaseModel):
    """Public contact-form submission."""
    form_id: str = Field(..., min_length=1, description="Id of the contact-form block")
    page_id: Optional[UUID] = None
    data: Dict[str, Any] = Field(default_factory=dict)


class FormSubmissionRead(BaseModel):
    id: UUID
    form_id: str
    page_id: Optional[UUID] = None
    data: Dict[str, Any] = Field(default_factory=dict)
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class CmsStats(BaseModel):
    """CMS counters for the admin dashboard."""
    total_pages: int
    published_pages: int
    draft_pages: int
    media_files: int
    form_submissions: int


# Media

FileType = Literal["image", "video", "audio", "document", "other"]


class MediaFileRead(BaseModel):
    """Read model for an uploaded media file."""
    id: UUID
    filename: str
    original_name: str
    mime_type: str
    file_type: str
    size: int
    url: str
    alt: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    category_id: Optional[UUID] = None
    uploaded_by: Optional[UUID] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class MediaFileUpdate(BaseModel):
    alt: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    category_id: Optional[UUID] = None


class UploadError(BaseModel):
    filename: str
    message: str


class UploadResult(BaseModel):
    """Outcome of a (possibly multi-file) upload."""
    uploaded: List[MediaFileRead] = Field(default_factory=list)
    errors: List[UploadError] = Field(default_factory=list)


class MediaCategoryCreate(BaseModel):
    name: str = Field(..., min_length=1)
    slug: Optional[str] = None
    description: Optional[str] = None


class MediaCategoryUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None


class MediaCategoryRead(BaseModel):
    id: UUID
    name: str
    slug: str
    description: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
