from __future__ import annotations

import re
import time
from typing import Dict, List, Optional, Tuple

from sitebuilder.core.errors import GenerationServiceError
from sitebuilder.core.models import (
    ColorPalette,
    GenerationMetadata,
    GenerationRequest,
    GenerationResponse,
    SitemapGenerationRequest,
    SitemapPage,
    SitemapStructure,
    Spacing,
    StyleGenerationRequest,
    StyleGuide,
    Typography,
    Wireframe,
    WireframeComponent,
    WireframeGenerationRequest,
    WireframeLayout,
    Breakpoint,
)
from sitebuilder.utils.logging import get_logger

from .adapter import BaseGenerationService

LOGGER = get_logger(__name__)

MOCK_CONFIDENCE = 0.85

# (title, path, priority, children)
PageTemplate = Tuple[str, str, int, List[Tuple[str, str, int]]]

_PAGE_TEMPLATES: Dict[str, List[PageTemplate]] = {
    "business": [
        ("Home", "/", 10, []),
        ("About", "/about", 7, [("Team", "/about/team", 5), ("Careers", "/about/careers", 4)]),
        ("Services", "/services", 9, [("Consulting", "/services/consulting", 7)]),
        ("Contact", "/contact", 8, []),
    ],
    "ecommerce": [
        ("Home", "/", 10, []),
        ("Shop", "/shop", 9, [("Categories", "/shop/categories", 8), ("Deals", "/shop/deals", 6)]),
        ("Cart", "/cart", 8, []),
        ("Account", "/account", 6, [("Orders", "/account/orders", 5)]),
        ("Help", "/help", 5, []),
    ],
    "blog": [
        ("Home", "/", 10, []),
        ("Articles", "/articles", 9, [("Archive", "/articles/archive", 5)]),
        ("About", "/about", 6, []),
        ("Subscribe", "/subscribe", 5, []),
    ],
    "portfolio": [
        ("Home", "/", 10, []),
        ("Work", "/work", 9, [("Case Studies", "/work/case-studies", 7)]),
        ("About", "/about", 7, []),
        ("Contact", "/contact", 8, []),
    ],
    "saas": [
        ("Home", "/", 10, []),
        ("Features", "/features", 9, []),
        ("Pricing", "/pricing", 9, []),
        ("Docs", "/docs", 7, [("Getting Started", "/docs/getting-started", 7), ("API", "/docs/api", 6)]),
        ("Login", "/login", 6, []),
    ],
}

_CRITICAL_PATHS = {"/", "/contact", "/pricing", "/shop", "/cart"}
_AUTH_PATHS = {"/account", "/account/orders", "/cart", "/login"}


def _slug(value: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", value.lower()).strip("-") or "page"


def _shades(*hexes: str) -> Dict[str, str]:
    keys = ("50", "100", "200", "300", "400", "500", "600", "700", "800", "900", "950")
    return dict(zip(keys, hexes))


def default_style_tokens() -> Dict[str, object]:
    """Baseline palette, type scale and spacing used for every mock style guide."""
    return {
        "color_palette": ColorPalette(
            primary=_shades("#eff6ff", "#dbeafe", "#bfdbfe", "#93c5fd", "#60a5fa", "#3b82f6",
                            "#2563eb", "#1d4ed8", "#1e40af", "#1e3a8a", "#172554"),
            secondary=_shades("#f8fafc", "#f1f5f9", "#e2e8f0", "#cbd5e1", "#94a3b8", "#64748b",
                              "#475569", "#334155", "#1e293b", "#0f172a", "#020617"),
            neutral=_shades("#fafafa", "#f4f4f5", "#e4e4e7", "#d4d4d8", "#a1a1aa", "#71717a",
                            "#52525b", "#3f3f46", "#27272a", "#18181b", "#09090b"),
            background={"primary": "#ffffff", "secondary": "#f8fafc", "muted": "#f1f5f9"},
            text={"primary": "#0f172a", "secondary": "#475569", "muted": "#94a3b8", "inverse": "#ffffff"},
        ),
        "typography": Typography(
            font_family={
                "sans": ["Inter", "ui-sans-serif", "system-ui"],
                "serif": ["Georgia", "ui-serif"],
                "mono": ["JetBrains Mono", "ui-monospace", "SFMono-Regular"],
            },
            font_size={
                "xs": "0.75rem", "sm": "0.875rem", "base": "1rem", "lg": "1.125rem",
                "xl": "1.25rem", "2xl": "1.5rem", "3xl": "1.875rem", "4xl": "2.25rem",
            },
            font_weight={"light": 300, "normal": 400, "medium": 500, "semibold": 600, "bold": 700},
            line_height={"tight": 1.25, "snug": 1.375, "normal": 1.5, "relaxed": 1.625, "loose": 2.0},
            letter_spacing={"tight": "-0.025em", "normal": "0em", "wide": "0.025em"},
        ),
        "spacing": Spacing(
            base=4,
            scale={"0": "0px", "1": "0.25rem", "2": "0.5rem", "3": "0.75rem", "4": "1rem",
                   "6": "1.5rem", "8": "2rem", "12": "3rem", "16": "4rem"},
        ),
        "border_radius": {"none": "0px", "sm": "0.125rem", "md": "0.375rem", "lg": "0.5rem", "full": "9999px"},
        "shadows": {
            "sm": "0 1px 2px 0 rgb(0 0 0 / 0.05)",
            "md": "0 4px 6px -1px rgb(0 0 0 / 0.1)",
            "lg": "0 10px 15px -3px rgb(0 0 0 / 0.1)",
        },
        "component_styles": {
            "button": {
                "primary": {"background": "#3b82f6", "color": "#ffffff", "borderRadius": "0.375rem"},
                "secondary": {"background": "#f1f5f9", "color": "#0f172a", "borderRadius": "0.375rem"},
            },
            "card": {"default": {"background": "#ffffff", "shadow": "md", "padding": "1.5rem"}},
        },
    }


class MockGenerationService(BaseGenerationService):
    """Deterministic generator used in development and tests.

    ``fail_kinds`` makes the service raise for the given artifact kinds, which
    is how tests exercise the coordinator's failure path.
    """

    def __init__(self, *, fail_kinds: Optional[set] = None, model_name: str = "mock") -> None:
        self.fail_kinds = set(fail_kinds or ())
        self.model_name = model_name
        self.calls: List[GenerationRequest] = []

    async def generate_artifact(self, request: GenerationRequest, *, fresh: bool = False) -> GenerationResponse:
        started = time.perf_counter()
        self.calls.append(request)
        if request.kind in self.fail_kinds:
            raise GenerationServiceError(f"Mock {request.kind} generation failed", retryable=False)

        if isinstance(request, SitemapGenerationRequest):
            artifact = self._sitemap(request)
        elif isinstance(request, WireframeGenerationRequest):
            artifact = self._wireframe(request)
        elif isinstance(request, StyleGenerationRequest):
            artifact = self._style(request)
        else:
            raise GenerationServiceError(f"Unsupported request kind: {getattr(request, 'kind', '?')}")

        elapsed = int((time.perf_counter() - started) * 1000)
        LOGGER.info("Mock %s generated in %dms", request.kind, elapsed)
        return GenerationResponse(
            artifact=artifact,
            metadata=GenerationMetadata(confidence=MOCK_CONFIDENCE, processing_time_ms=elapsed),
        )

    # ---------------------------------------------------------------- sitemap

    def _sitemap(self, request: SitemapGenerationRequest) -> SitemapStructure:
        website_type = (request.website_type or "business").lower()
        templates = list(_PAGE_TEMPLATES.get(website_type, _PAGE_TEMPLATES["business"]))

        known = {_slug(path) for _, path, _, children in templates}
        known.update(_slug(child_path) for _, _, _, children in templates for _, child_path, _ in children)
        for extra in request.include_pages:
            slug = _slug(extra)
            if slug not in known:
                templates.append((extra.strip().title(), f"/{slug}", 5, []))
                known.add(slug)

        pages: List[SitemapPage] = []
        for order, (title, path, priority, children) in enumerate(templates, start=1):
            page_id = "home" if path == "/" else _slug(path)
            page = self._page(page_id, title, path, priority, order, None)
            page.children = [
                self._page(_slug(child_path), child_title, child_path, child_priority, child_order, page_id)
                for child_order, (child_title, child_path, child_priority) in enumerate(children, start=1)
            ]
            pages.append(page)

        title = request.domain or f"{website_type.title()} website"
        return SitemapStructure(
            title=title,
            description=request.prompt,
            website_type=website_type,
            pages=pages,
            model_used=self.model_name,
            metadata={"requirements": list(request.requirements)},
        )

    @staticmethod
    def _page(page_id: str, title: str, path: str, priority: int, order: int, parent_id: Optional[str]) -> SitemapPage:
        return SitemapPage(
            id=page_id,
            title=title,
            description=f"{title} page",
            path=path,
            parent_id=parent_id,
            priority=priority,
            changefreq="weekly" if priority >= 8 else "monthly",
            purpose="conversion" if path in _CRITICAL_PATHS and path != "/" else "information",
            importance=priority * 10,
            is_critical=path in _CRITICAL_PATHS,
            requires_auth=path in _AUTH_PATHS,
            order=order,
            metadata={"keywords": [w for w in _slug(title).split("-") if w]},
        )

    # -------------------------------------------------------------- wireframe

    def _wireframe(self, request: WireframeGenerationRequest) -> Wireframe:
        opts = request.options
        components: List[WireframeComponent] = []
        if opts.include_navigation:
            components.append(WireframeComponent(
                id="header", name="Header", type="header", category="navigation",
                props={"sticky": True},
                children=[WireframeComponent(id="nav", name="Main navigation", type="nav", category="navigation")],
            ))

        components.append(WireframeComponent(
            id="hero", name=f"{request.page_title or 'Page'} hero", type="hero", category="content",
            props={"heading": request.page_title, "subheading": request.page_description or ""},
        ))

        sections = {"simple": 1, "medium": 2, "complex": 4}[opts.complexity]
        for n in range(1, sections + 1):
            components.append(WireframeComponent(
                id=f"section-{n}", name=f"Content section {n}", type="section", category="content",
            ))
        if opts.include_sidebar:
            components.append(WireframeComponent(id="sidebar", name="Sidebar", type="aside", category="layout"))
        if opts.include_footer:
            components.append(WireframeComponent(id="footer", name="Footer", type="footer", category="layout"))

        return Wireframe(
            name=f"{request.page_title or request.page_path} wireframe",
            description=request.page_description,
            layout=WireframeLayout(pattern=opts.layout_preference),
            components=components,
            page_type=request.page_path.strip("/").split("/")[0] or "home",
            target_audience=opts.target_audience,
            breakpoints=[
                Breakpoint(name="mobile", max_width=767),
                Breakpoint(name="tablet", min_width=768, max_width=1023),
                Breakpoint(name="desktop", min_width=1024),
            ],
            metadata={"page_id": request.page_id, "site_title": request.site_title},
        )

    # ------------------------------------------------------------------ style

    def _style(self, request: StyleGenerationRequest) -> StyleGuide:
        brand = request.brand_guidelines
        tokens = default_style_tokens()
        guide = StyleGuide(
            name=f"{brand.name} style guide",
            description=f"{request.design_style.title()} design system for {brand.name}",
            brand_guidelines=brand,
            design_style=request.design_style,
            **tokens,
        )
        preferred = [c for c in brand.color_preferences + request.existing_colors if c.startswith("#")]
        if preferred:
            guide.color_palette.primary["500"] = preferred[0]
        return guide
