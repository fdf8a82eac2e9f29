"""Domain models for the builder: projects, workflow steps, artifacts and diagnostics."""
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Union
from uuid import uuid4

from pydantic import BaseModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid4())


class WorkflowStep(str, Enum):
    INITIAL = "initial"
    SITEMAP = "sitemap"
    WIREFRAME = "wireframe"
    STYLE = "style"
    REVIEW = "review"
    EXPORT = "export"

    @property
    def rank(self) -> int:
        return STEP_ORDER.index(self)

    @property
    def previous(self) -> Optional["WorkflowStep"]:
        idx = self.rank
        return STEP_ORDER[idx - 1] if idx > 0 else None


STEP_ORDER: List[WorkflowStep] = [
    WorkflowStep.INITIAL,
    WorkflowStep.SITEMAP,
    WorkflowStep.WIREFRAME,
    WorkflowStep.STYLE,
    WorkflowStep.REVIEW,
    WorkflowStep.EXPORT,
]

ProjectStatus = Literal["draft", "in-progress", "completed", "archived"]
GenerationStatus = Literal["idle", "generating", "success", "error"]
ChangeFreq = Literal["always", "hourly", "daily", "weekly", "monthly", "yearly", "never"]
HistoryAction = Literal[
    "create",
    "update",
    "generate-sitemap",
    "generate-wireframe",
    "generate-style",
    "export",
]
Severity = Literal["error", "warning", "info"]
DesignStyle = Literal["modern", "minimal", "corporate", "creative", "tech", "ecommerce"]


class Project(BaseModel):
    id: str = Field(default_factory=new_id)
    name: str
    description: Optional[str] = None
    website_type: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    version: str = "1.0.0"
    current_step: WorkflowStep = WorkflowStep.INITIAL
    status: ProjectStatus = "draft"
    metadata: Dict[str, Any] = Field(default_factory=dict)


class GenerationState(BaseModel):
    status: GenerationStatus = "idle"
    progress: int = Field(default=0, ge=0, le=100)
    message: Optional[str] = None
    error: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    confidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)


# --- Sitemap ---------------------------------------------------------------

class SitemapPage(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    path: str
    parent_id: Optional[str] = None
    children: List["SitemapPage"] = Field(default_factory=list)
    priority: int = Field(default=5, ge=1, le=10)
    changefreq: ChangeFreq = "monthly"
    purpose: str = "information"
    importance: int = 50
    is_critical: bool = False
    requires_auth: bool = False
    order: int = 1
    metadata: Dict[str, Any] = Field(default_factory=dict)


class SitemapStatistics(BaseModel):
    total_pages: int = 0
    critical_pages: int = 0
    average_priority: float = 0.0
    max_depth: int = 0
    total_keywords: int = 0


class SitemapStructure(BaseModel):
    id: str = Field(default_factory=new_id)
    title: str
    description: Optional[str] = None
    website_type: str = "business"
    pages: List[SitemapPage] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    model_used: Optional[str] = None
    version: int = 1
    statistics: Optional[SitemapStatistics] = None


class SitemapValidationIssue(BaseModel):
    code: str
    message: str
    page_id: Optional[str] = None
    severity: Severity = "error"
    suggestion: Optional[str] = None


class SitemapValidationStatistics(BaseModel):
    total_pages: int = 0
    root_pages: int = 0
    average_depth: float = 0.0
    max_depth: int = 0
    orphaned_pages: int = 0
    duplicate_paths: int = 0


class SitemapValidationResult(BaseModel):
    is_valid: bool
    errors: List[SitemapValidationIssue] = Field(default_factory=list)
    statistics: SitemapValidationStatistics = Field(default_factory=SitemapValidationStatistics)


# --- Wireframes ------------------------------------------------------------

class WireframeComponent(BaseModel):
    id: str
    name: str
    type: str = "container"
    category: Literal["layout", "content", "form", "navigation", "data", "media"] = "layout"
    props: Dict[str, Any] = Field(default_factory=dict)
    children: List["WireframeComponent"] = Field(default_factory=list)


class WireframeLayout(BaseModel):
    pattern: str = "single-column"
    columns: Optional[int] = None
    gap: Optional[str] = None


class Breakpoint(BaseModel):
    name: str
    min_width: Optional[int] = None
    max_width: Optional[int] = None


class WireframeExportConfig(BaseModel):
    format: Literal["json", "svg", "png", "figma", "sketch"] = "json"
    include_comments: bool = True
    include_annotations: bool = True


class Wireframe(BaseModel):
    id: str = Field(default_factory=new_id)
    name: str
    description: Optional[str] = None
    version: str = "1.0.0"
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    layout: WireframeLayout = Field(default_factory=WireframeLayout)
    components: List[WireframeComponent] = Field(default_factory=list)
    root_component: WireframeComponent = Field(
        default_factory=lambda: WireframeComponent(id="root", name="Root")
    )
    page_type: Optional[str] = None
    target_audience: Optional[str] = None
    breakpoints: List[Breakpoint] = Field(default_factory=list)
    default_breakpoint: str = "desktop"
    active_breakpoint: str = "desktop"
    metadata: Dict[str, Any] = Field(default_factory=dict)
    export_config: WireframeExportConfig = Field(default_factory=WireframeExportConfig)


class WireframeValidationResult(BaseModel):
    is_valid: bool
    errors: List[Dict[str, Any]] = Field(default_factory=list)
    warnings: List[Dict[str, Any]] = Field(default_factory=list)
    score: int = 100


# --- Style guide -----------------------------------------------------------

class BrandGuidelines(BaseModel):
    name: str
    industry: str = ""
    target_audience: str = ""
    brand_personality: List[str] = Field(default_factory=list)
    brand_values: List[str] = Field(default_factory=list)
    color_preferences: List[str] = Field(default_factory=list)
    color_avoid: List[str] = Field(default_factory=list)
    typography_preference: Optional[Literal["serif", "sans-serif", "mixed"]] = None


class ColorPalette(BaseModel):
    primary: Dict[str, str] = Field(default_factory=dict)
    secondary: Dict[str, str] = Field(default_factory=dict)
    neutral: Dict[str, str] = Field(default_factory=dict)
    success: str = "#10b981"
    warning: str = "#f59e0b"
    error: str = "#ef4444"
    info: str = "#3b82f6"
    background: Dict[str, str] = Field(default_factory=dict)
    text: Dict[str, str] = Field(default_factory=dict)


class Typography(BaseModel):
    font_family: Dict[str, List[str]] = Field(default_factory=dict)
    font_size: Dict[str, str] = Field(default_factory=dict)
    font_weight: Dict[str, int] = Field(default_factory=dict)
    line_height: Dict[str, float] = Field(default_factory=dict)
    letter_spacing: Dict[str, str] = Field(default_factory=dict)


class Spacing(BaseModel):
    base: int = 4
    scale: Dict[str, str] = Field(default_factory=dict)


class StyleGuide(BaseModel):
    id: str = Field(default_factory=new_id)
    name: str
    description: str = ""
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    brand_guidelines: Optional[BrandGuidelines] = None
    design_style: Optional[DesignStyle] = None
    color_palette: ColorPalette = Field(default_factory=ColorPalette)
    typography: Typography = Field(default_factory=Typography)
    spacing: Spacing = Field(default_factory=Spacing)
    border_radius: Dict[str, str] = Field(default_factory=dict)
    shadows: Dict[str, str] = Field(default_factory=dict)
    component_styles: Dict[str, Dict[str, Dict[str, str]]] = Field(default_factory=dict)
    css_variables: Dict[str, str] = Field(default_factory=dict)


class StyleValidationResult(BaseModel):
    is_valid: bool
    warnings: List[str] = Field(default_factory=list)


# --- History & diagnostics -------------------------------------------------

class ArtifactSnapshot(BaseModel):
    """Artifact triple as it stood right after a recorded action."""

    sitemap: Optional[SitemapStructure] = None
    wireframes: Dict[str, Wireframe] = Field(default_factory=dict)
    style_guide: Optional[StyleGuide] = None


class HistoryEntry(BaseModel):
    id: str = Field(default_factory=new_id)
    timestamp: datetime = Field(default_factory=utcnow)
    action: HistoryAction
    description: str
    data: Optional[Any] = None
    snapshot: Optional[ArtifactSnapshot] = None


class BuilderError(BaseModel):
    id: str = Field(default_factory=new_id)
    code: str
    message: str
    severity: Severity = "error"
    step: Optional[WorkflowStep] = None
    timestamp: datetime = Field(default_factory=utcnow)
    resolved: bool = False
    metadata: Dict[str, Any] = Field(default_factory=dict)


class BuilderWarning(BaseModel):
    id: str = Field(default_factory=new_id)
    code: str
    message: str
    step: Optional[WorkflowStep] = None
    timestamp: datetime = Field(default_factory=utcnow)
    acknowledged: bool = False
    metadata: Dict[str, Any] = Field(default_factory=dict)


# --- Generation requests / responses --------------------------------------

class SitemapGenerationRequest(BaseModel):
    kind: Literal["sitemap"] = "sitemap"
    prompt: str
    website_type: Optional[str] = None
    domain: Optional[str] = None
    requirements: List[str] = Field(default_factory=list)
    include_pages: List[str] = Field(default_factory=list)
    options: Dict[str, Any] = Field(default_factory=dict)
    preferences: Dict[str, Any] = Field(default_factory=dict)


class WireframeGenerationOptions(BaseModel):
    layout_preference: str = "single-column"
    industry: Optional[str] = None
    target_audience: Optional[str] = None
    style: Optional[str] = None
    include_navigation: bool = True
    include_footer: bool = True
    include_sidebar: bool = False
    complexity: Literal["simple", "medium", "complex"] = "medium"


class WireframeGenerationRequest(BaseModel):
    kind: Literal["wireframe"] = "wireframe"
    page_id: str
    page_title: str = ""
    page_path: str = "/"
    page_description: Optional[str] = None
    site_title: Optional[str] = None
    options: WireframeGenerationOptions = Field(default_factory=WireframeGenerationOptions)


class StyleGenerationRequest(BaseModel):
    kind: Literal["style"] = "style"
    brand_guidelines: BrandGuidelines
    design_style: DesignStyle = "modern"
    wireframe_description: Optional[str] = None
    existing_colors: List[str] = Field(default_factory=list)
    preferences: Dict[str, Any] = Field(default_factory=dict)


GenerationRequest = Union[SitemapGenerationRequest, WireframeGenerationRequest, StyleGenerationRequest]
Artifact = Union[SitemapStructure, Wireframe, StyleGuide]


class GenerationMetadata(BaseModel):
    confidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    processing_time_ms: int = 0
    tokens_used: int = 0
    warnings: List[str] = Field(default_factory=list)


class GenerationResponse(BaseModel):
    artifact: Artifact
    metadata: GenerationMetadata = Field(default_factory=GenerationMetadata)


SitemapPage.model_rebuild()
WireframeComponent.model_rebuild()
