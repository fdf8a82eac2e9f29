"""Pydantic schemas for API requests and responses."""
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field

from sitebuilder.core.models import (
    BrandGuidelines,
    ChangeFreq,
    DesignStyle,
    ProjectStatus,
    Severity,
    WireframeGenerationOptions,
    WorkflowStep,
)


class ProjectCreate(BaseModel):
    """Project creation request."""
    name: str = Field(min_length=1)
    description: Optional[str] = None
    website_type: Optional[str] = None


class ProjectUpdate(BaseModel):
    """Partial project update; unset fields are left alone."""
    name: Optional[str] = None
    description: Optional[str] = None
    website_type: Optional[str] = None
    status: Optional[ProjectStatus] = None
    metadata: Optional[Dict[str, Any]] = None


class StepRequest(BaseModel):
    step: WorkflowStep


class SitemapGenerate(BaseModel):
    prompt: str = Field(min_length=1)
    website_type: Optional[str] = None
    domain: Optional[str] = None
    requirements: List[str] = Field(default_factory=list)
    include_pages: List[str] = Field(default_factory=list)
    options: Dict[str, Any] = Field(default_factory=dict)
    preferences: Dict[str, Any] = Field(default_factory=dict)


class PageCreate(BaseModel):
    parent_id: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    path: Optional[str] = None
    priority: Optional[int] = Field(default=None, ge=1, le=10)


class PageUpdate(BaseModel):
    """Partial page edit; only the fields sent are applied."""
    title: Optional[str] = None
    description: Optional[str] = None
    path: Optional[str] = None
    priority: Optional[int] = Field(default=None, ge=1, le=10)
    changefreq: Optional[ChangeFreq] = None
    purpose: Optional[str] = None
    importance: Optional[int] = None
    is_critical: Optional[bool] = None
    requires_auth: Optional[bool] = None
    order: Optional[int] = None
    metadata: Optional[Dict[str, Any]] = None


class PageMove(BaseModel):
    new_parent_id: Optional[str] = None
    new_order: Optional[int] = Field(default=None, ge=1)


class WireframeGenerate(BaseModel):
    page_id: Optional[str] = None  # None means every root page
    options: WireframeGenerationOptions = Field(default_factory=WireframeGenerationOptions)


class ComponentUpdate(BaseModel):
    updates: Dict[str, Any]


class StyleGenerate(BaseModel):
    brand_guidelines: BrandGuidelines
    design_style: DesignStyle = "modern"
    wireframe_description: Optional[str] = None
    existing_colors: List[str] = Field(default_factory=list)
    preferences: Dict[str, Any] = Field(default_factory=dict)


class StyleTokenUpdate(BaseModel):
    """One design-token edit, e.g. ``{"token": "color", "args": ["primary", "500", "#123456"]}``."""
    token: Literal[
        "brand_guidelines",
        "design_style",
        "color",
        "typography",
        "spacing",
        "border_radius",
        "shadow",
        "component_style",
    ]
    args: List[Union[str, int, float, Dict[str, Any], None]] = Field(default_factory=list)


class ErrorCreate(BaseModel):
    code: str
    message: str
    severity: Severity = "error"
    step: Optional[WorkflowStep] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class WarningCreate(BaseModel):
    code: str
    message: str
    step: Optional[WorkflowStep] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class AutoSaveSettings(BaseModel):
    enabled: Optional[bool] = None
    interval: Optional[int] = Field(default=None, ge=1)


class ImportRequest(BaseModel):
    data: str


class GenerationAccepted(BaseModel):
    """Returned with 202 once a generation has been scheduled."""
    project_id: str
    kind: str
    status: str = "accepted"


class UiStateUpdate(BaseModel):
    """Selection and layout flags; fields left unset are not touched."""
    selected_page_id: Optional[str] = None
    sidebar_collapsed: Optional[bool] = None
