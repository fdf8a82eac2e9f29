from typing import List
import json

from sitebuilder.core.models import (
    GenerationRequest,
    SitemapGenerationRequest,
    StyleGenerationRequest,
    WireframeGenerationRequest,
)


class PromptBuilder:
    """Builds the system and user prompts sent to the generation model."""

    SYSTEM_PROMPT = (
        "You are a senior information architect and UI designer. "
        "You MUST respond with ONLY valid JSON. "
        "Do NOT include any text, explanations, or markdown before or after the JSON object. "
        "Start with { and end with }."
    )

    @staticmethod
    def build(request: GenerationRequest) -> str:
        if isinstance(request, SitemapGenerationRequest):
            return PromptBuilder.sitemap(request)
        if isinstance(request, WireframeGenerationRequest):
            return PromptBuilder.wireframe(request)
        if isinstance(request, StyleGenerationRequest):
            return PromptBuilder.style(request)
        raise TypeError(f"Unsupported generation request: {type(request).__name__}")

    @staticmethod
    def sitemap(request: SitemapGenerationRequest) -> str:
        lines: List[str] = [
            "Design the sitemap for this website.",
            f"Description: {request.prompt}",
            f"Website type: {request.website_type or 'business'}",
        ]
        if request.domain:
            lines.append(f"Domain: {request.domain}")
        if request.requirements:
            lines.append("Requirements:\n" + "\n".join(f"- {r}" for r in request.requirements))
        if request.include_pages:
            lines.append("Must include pages: " + ", ".join(request.include_pages))
        if request.options:
            lines.append("Options: " + json.dumps(request.options, sort_keys=True))
        if request.preferences:
            lines.append("Preferences: " + json.dumps(request.preferences, sort_keys=True))
        lines.append(
            "Return an object with keys: title, description, pages. Each page has "
            "id (unique slug), title, description, path (starting with /), priority (1-10), "
            "changefreq (always|hourly|daily|weekly|monthly|yearly|never), purpose, importance (1-100), "
            "is_critical, requires_auth, order, metadata {keywords: []}, and children (same shape)."
        )
        return "\n".join(lines)

    @staticmethod
    def wireframe(request: WireframeGenerationRequest) -> str:
        opts = request.options
        return "\n".join([
            "Design a low-fidelity wireframe for one page.",
            f"Site: {request.site_title or 'Untitled site'}",
            f"Page: {request.page_title} ({request.page_path})",
            f"Page purpose: {request.page_description or 'n/a'}",
            f"Layout preference: {opts.layout_preference}",
            f"Complexity: {opts.complexity}",
            f"Include navigation: {opts.include_navigation}; footer: {opts.include_footer}; sidebar: {opts.include_sidebar}",
            f"Target audience: {opts.target_audience or 'general'}",
            "Return an object with keys: name, description, layout {pattern}, page_type, "
            "components (list of {id, name, type, category, props, children}).",
        ])

    @staticmethod
    def style(request: StyleGenerationRequest) -> str:
        brand = request.brand_guidelines
        return "\n".join([
            "Create a design-token style guide.",
            f"Brand: {brand.name} ({brand.industry or 'general'})",
            f"Audience: {brand.target_audience or 'general'}",
            f"Personality: {', '.join(brand.brand_personality) or 'n/a'}",
            f"Preferred colors: {', '.join(brand.color_preferences + request.existing_colors) or 'none'}",
            f"Avoid colors: {', '.join(brand.color_avoid) or 'none'}",
            f"Design style: {request.design_style}",
            f"Wireframes: {request.wireframe_description or 'n/a'}",
            "Return an object with keys: name, description, color_palette "
            "{primary, secondary, neutral as shade maps 50..950, success, warning, error, info, background, text}, "
            "typography {font_family, font_size, font_weight, line_height, letter_spacing}, "
            "spacing {base, scale}, border_radius, shadows, component_styles.",
        ])
