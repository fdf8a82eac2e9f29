"""Pure encoders for sitemap, style guide and whole-session exports."""
from __future__ import annotations

import csv
import io
import json
import xml.etree.ElementTree as ET
from datetime import date, datetime, timezone
from typing import Any, Dict, Iterator, List, Optional, Tuple

from sitebuilder.core.models import SitemapPage, SitemapStructure, StyleGuide, Wireframe, Project

EXPORT_VERSION = "1.0.0"
SITEMAP_FORMATS = ("json", "xml", "csv")
STYLE_FORMATS = ("json", "css", "scss")
SESSION_FORMATS = ("json", "csv", "xml")

_SITEMAP_NS = "http://www.sitemaps.org/schemas/sitemap/0.9"


def _join_url(parent_url: str, path: str) -> str:
    if path.startswith("/"):
        return path
    return f"{parent_url.rstrip('/')}/{path}"


def _walk_urls(
    pages: List[SitemapPage], parent_url: str = "", depth: int = 1
) -> Iterator[Tuple[SitemapPage, str, int]]:
    for page in pages:
        url = _join_url(parent_url, page.path)
        yield page, url, depth
        yield from _walk_urls(page.children, url, depth + 1)


def _check_format(fmt: str, allowed: Tuple[str, ...], what: str) -> str:
    fmt = (fmt or "").lower()
    if fmt not in allowed:
        raise ValueError(f"Unsupported {what} export format '{fmt}'. Expected one of: {', '.join(allowed)}")
    return fmt


def _today(lastmod: Optional[date]) -> str:
    return (lastmod or datetime.now(timezone.utc).date()).isoformat()


# --- Sitemap -----------------------------------------------------------------

def export_sitemap(
    sitemap: SitemapStructure, fmt: str, *, base_url: str = "", lastmod: Optional[date] = None
) -> str:
    fmt = _check_format(fmt, SITEMAP_FORMATS, "sitemap")
    if fmt == "json":
        return sitemap.model_dump_json(indent=2)
    if fmt == "xml":
        return sitemap_to_xml(sitemap, base_url=base_url, lastmod=lastmod)
    return sitemap_to_csv(sitemap, base_url=base_url, lastmod=lastmod)


def sitemap_to_xml(sitemap: SitemapStructure, *, base_url: str = "", lastmod: Optional[date] = None) -> str:
    urlset = ET.Element("urlset", xmlns=_SITEMAP_NS)
    day = _today(lastmod)
    for page, url, _ in _walk_urls(sitemap.pages):
        node = ET.SubElement(urlset, "url")
        ET.SubElement(node, "loc").text = f"{base_url.rstrip('/')}{url}"
        ET.SubElement(node, "lastmod").text = day
        ET.SubElement(node, "changefreq").text = page.changefreq
        ET.SubElement(node, "priority").text = f"{page.priority / 10:.1f}"
    ET.indent(urlset, space="  ")
    return '<?xml version="1.0" encoding="UTF-8"?>\n' + ET.tostring(urlset, encoding="unicode")


def sitemap_to_csv(sitemap: SitemapStructure, *, base_url: str = "", lastmod: Optional[date] = None) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(["URL", "Title", "Description", "Priority", "Changefreq", "Last Modified"])
    day = _today(lastmod)
    for page, url, _ in _walk_urls(sitemap.pages):
        writer.writerow([
            f"{base_url.rstrip('/')}{url}",
            page.title,
            page.description or "",
            page.priority,
            page.changefreq,
            day,
        ])
    return buffer.getvalue().rstrip("\n")


# --- Style guide -------------------------------------------------------------

def style_tokens(guide: StyleGuide) -> Dict[str, str]:
    """Flatten a style guide into ``name -> value`` design tokens."""
    tokens: Dict[str, str] = {}
    palette = guide.color_palette
    for group in ("primary", "secondary", "neutral", "background", "text"):
        for shade, value in getattr(palette, group).items():
            tokens[f"color-{group}-{shade}"] = value
    for flat in ("success", "warning", "error", "info"):
        tokens[f"color-{flat}"] = getattr(palette, flat)

    typography = guide.typography
    for name, stack in typography.font_family.items():
        tokens[f"font-family-{name}"] = ", ".join(stack)
    for group, prefix in (
        ("font_size", "font-size"),
        ("font_weight", "font-weight"),
        ("line_height", "line-height"),
        ("letter_spacing", "letter-spacing"),
    ):
        for key, value in getattr(typography, group).items():
            tokens[f"{prefix}-{key}"] = str(value)

    for key, value in guide.spacing.scale.items():
        tokens[f"spacing-{key}"] = value
    for key, value in guide.border_radius.items():
        tokens[f"radius-{key}"] = value
    for key, value in guide.shadows.items():
        tokens[f"shadow-{key}"] = value
    tokens.update(guide.css_variables)
    return tokens


def export_style_guide(guide: StyleGuide, fmt: str) -> str:
    fmt = _check_format(fmt, STYLE_FORMATS, "style guide")
    if fmt == "json":
        return guide.model_dump_json(indent=2)
    tokens = style_tokens(guide)
    if fmt == "css":
        body = "\n".join(f"  --{name}: {value};" for name, value in tokens.items())
        return f":root {{\n{body}\n}}\n"
    lines = [f"${name}: {value};" for name, value in tokens.items()]
    lines.append("")
    lines.append("$tokens: (")
    lines.extend(f'  "{name}": ${name},' for name in tokens)
    lines.append(");")
    return "\n".join(lines) + "\n"


# --- Whole session -----------------------------------------------------------

def session_payload(
    project: Optional[Project],
    sitemap: Optional[SitemapStructure],
    wireframes: Dict[str, Wireframe],
    style_guide: Optional[StyleGuide],
) -> Dict[str, Any]:
    return {
        "project": project.model_dump(mode="json") if project else None,
        "sitemap": sitemap.model_dump(mode="json") if sitemap else None,
        "wireframes": {k: v.model_dump(mode="json") for k, v in wireframes.items()},
        "style_guide": style_guide.model_dump(mode="json") if style_guide else None,
        "metadata": {
            "exported_at": datetime.now(timezone.utc).isoformat(),
            "version": EXPORT_VERSION,
        },
    }


def export_session(
    fmt: str,
    *,
    project: Optional[Project],
    sitemap: Optional[SitemapStructure],
    wireframes: Dict[str, Wireframe],
    style_guide: Optional[StyleGuide],
) -> str:
    fmt = _check_format(fmt, SESSION_FORMATS, "session")
    if fmt == "json":
        return json.dumps(session_payload(project, sitemap, wireframes, style_guide), indent=2)
    if fmt == "csv":
        return _session_csv(project, sitemap, wireframes)
    return _session_xml(project, sitemap, wireframes, style_guide)


def _session_csv(
    project: Optional[Project], sitemap: Optional[SitemapStructure], wireframes: Dict[str, Wireframe]
) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(["Project", "Page ID", "Title", "Path", "Parent ID", "Depth", "Priority", "Has Wireframe"])
    project_name = project.name if project else ""
    if sitemap is not None:
        for page, url, depth in _walk_urls(sitemap.pages):
            writer.writerow([
                project_name,
                page.id,
                page.title,
                url,
                page.parent_id or "",
                depth,
                page.priority,
                "yes" if page.id in wireframes else "no",
            ])
    return buffer.getvalue().rstrip("\n")


def _session_xml(
    project: Optional[Project],
    sitemap: Optional[SitemapStructure],
    wireframes: Dict[str, Wireframe],
    style_guide: Optional[StyleGuide],
) -> str:
    root = ET.Element("builderExport", version=EXPORT_VERSION)
    if project is not None:
        ET.SubElement(
            root,
            "project",
            id=project.id,
            name=project.name,
            status=project.status,
            currentStep=project.current_step.value,
        )

    def _append_pages(parent: ET.Element, pages: List[SitemapPage]) -> None:
        for page in pages:
            node = ET.SubElement(
                parent,
                "page",
                id=page.id,
                path=page.path,
                priority=str(page.priority),
                changefreq=page.changefreq,
            )
            ET.SubElement(node, "title").text = page.title
            if page.children:
                _append_pages(node, page.children)

    if sitemap is not None:
        sitemap_node = ET.SubElement(root, "sitemap", id=sitemap.id, title=sitemap.title)
        _append_pages(sitemap_node, sitemap.pages)

    wireframes_node = ET.SubElement(root, "wireframes")
    for page_id, wireframe in wireframes.items():
        ET.SubElement(
            wireframes_node,
            "wireframe",
            pageId=page_id,
            name=wireframe.name,
            components=str(len(wireframe.components)),
        )

    if style_guide is not None:
        style_node = ET.SubElement(root, "styleGuide", id=style_guide.id, name=style_guide.name)
        for name, value in style_tokens(style_guide).items():
            ET.SubElement(style_node, "token", name=name).text = value

    ET.indent(root, space="  ")
    return '<?xml version="1.0" encoding="UTF-8"?>\n' + ET.tostring(root, encoding="unicode")
