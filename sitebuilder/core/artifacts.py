"""Artifact store: the sitemap tree, per-page wireframes and the style guide.

All targeted edits go through here so that a single page or a single design
token can change without regenerating the whole artifact. Edits that address
something by id report a ``MutationResult`` instead of failing silently.
"""
from __future__ import annotations

import re
from collections import Counter
from typing import Any, Dict, Iterator, List, Literal, Mapping, Optional, Tuple
from uuid import uuid4

from pydantic import BaseModel, Field, ValidationError

from sitebuilder.core.models import (
    BrandGuidelines,
    DesignStyle,
    SitemapPage,
    SitemapStatistics,
    SitemapStructure,
    SitemapValidationIssue,
    SitemapValidationResult,
    SitemapValidationStatistics,
    StyleGuide,
    StyleValidationResult,
    Wireframe,
    WireframeComponent,
    WireframeValidationResult,
    utcnow,
)
from sitebuilder.core.state import BuilderState
from sitebuilder.utils.logging import get_logger

LOGGER = get_logger(__name__)

MutationReason = Literal["not_found", "no_sitemap", "no_style_guide", "invalid_target"]

_IMMUTABLE_PAGE_FIELDS = {"id", "children", "parent_id"}
_IMMUTABLE_COMPONENT_FIELDS = {"id", "children"}
_SHADED_COLORS = {"primary", "secondary", "neutral", "background", "text"}
_FLAT_COLORS = {"success", "warning", "error", "info"}
_LEADING_NUMBER = re.compile(r"^\s*(-?\d+(?:\.\d+)?)")


class MutationResult(BaseModel):
    ok: bool
    reason: Optional[MutationReason] = None
    target_id: Optional[str] = None
    detail: Optional[str] = None
    affected_ids: List[str] = Field(default_factory=list)

    @classmethod
    def success(cls, target_id: Optional[str] = None, **kwargs: Any) -> "MutationResult":
        return cls(ok=True, target_id=target_id, **kwargs)

    @classmethod
    def failure(cls, reason: MutationReason, target_id: Optional[str] = None, detail: Optional[str] = None) -> "MutationResult":
        return cls(ok=False, reason=reason, target_id=target_id, detail=detail)


def iter_pages(
    pages: List[SitemapPage], parent: Optional[SitemapPage] = None, depth: int = 1
) -> Iterator[Tuple[SitemapPage, Optional[SitemapPage], int]]:
    """Depth-first walk yielding ``(page, tree_parent, depth)``; roots have depth 1."""
    for page in pages:
        yield page, parent, depth
        if page.children:
            yield from iter_pages(page.children, page, depth + 1)


def count_pages(pages: List[SitemapPage]) -> int:
    return sum(1 for _ in iter_pages(pages))


def compute_statistics(sitemap: SitemapStructure) -> SitemapStatistics:
    walked = list(iter_pages(sitemap.pages))
    if not walked:
        return SitemapStatistics()
    keywords = sum(len(p.metadata.get("keywords") or []) for p, _, _ in walked)
    return SitemapStatistics(
        total_pages=len(walked),
        critical_pages=sum(1 for p, _, _ in walked if p.is_critical),
        average_priority=round(sum(p.priority for p, _, _ in walked) / len(walked), 2),
        max_depth=max(d for _, _, d in walked),
        total_keywords=keywords,
    )


def _describe(exc: ValidationError) -> str:
    return "; ".join(f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors())


def _leading_number(value: str) -> Optional[float]:
    match = _LEADING_NUMBER.match(str(value))
    return float(match.group(1)) if match else None


def check_sitemap(sitemap: SitemapStructure) -> SitemapValidationResult:
    """Structural checks on a sitemap tree; never raises."""
    walked = list(iter_pages(sitemap.pages))
    issues: List[SitemapValidationIssue] = []
    id_counts = Counter(p.id for p, _, _ in walked)
    path_counts = Counter(p.path for p, _, _ in walked)
    known_ids = set(id_counts)

    for page_id, count in id_counts.items():
        if count > 1:
            issues.append(SitemapValidationIssue(
                code="DUPLICATE_PAGE_ID",
                message=f"Page id '{page_id}' appears {count} times",
                page_id=page_id,
                severity="error",
            ))

    orphaned = 0
    for page, tree_parent, _ in walked:
        if page.parent_id is not None and page.parent_id not in known_ids:
            orphaned += 1
            issues.append(SitemapValidationIssue(
                code="ORPHANED_PAGE",
                message=f"Page '{page.title}' references missing parent '{page.parent_id}'",
                page_id=page.id,
                severity="error",
                suggestion="Move the page under an existing parent or to the root",
            ))
        elif (tree_parent.id if tree_parent else None) != page.parent_id:
            issues.append(SitemapValidationIssue(
                code="PARENT_MISMATCH",
                message=f"Page '{page.title}' parent_id does not match its position in the tree",
                page_id=page.id,
                severity="warning",
            ))
        if not page.title.strip():
            issues.append(SitemapValidationIssue(
                code="EMPTY_TITLE", message="Page has an empty title", page_id=page.id, severity="warning"
            ))

    duplicate_paths = 0
    for path, count in path_counts.items():
        if count > 1:
            duplicate_paths += count - 1
            issues.append(SitemapValidationIssue(
                code="DUPLICATE_PATH",
                message=f"Path '{path}' is used by {count} pages",
                severity="warning",
                suggestion="Give each page a unique path",
            ))

    if walked and "/" not in path_counts:
        issues.append(SitemapValidationIssue(
            code="MISSING_HOME_PAGE", message="No page is mounted at '/'", severity="info"
        ))

    depths = [d for _, _, d in walked]
    statistics = SitemapValidationStatistics(
        total_pages=len(walked),
        root_pages=len(sitemap.pages),
        average_depth=round(sum(depths) / len(depths), 2) if depths else 0.0,
        max_depth=max(depths, default=0),
        orphaned_pages=orphaned,
        duplicate_paths=duplicate_paths,
    )
    return SitemapValidationResult(
        is_valid=not any(i.severity == "error" for i in issues),
        errors=issues,
        statistics=statistics,
    )


class ArtifactStore:

    def __init__(self, state: BuilderState) -> None:
        self._state = state

    # ------------------------------------------------------------------ sitemap

    @property
    def sitemap(self) -> Optional[SitemapStructure]:
        return self._state.sitemap

    def set_sitemap(self, sitemap: SitemapStructure) -> None:
        sitemap.statistics = compute_statistics(sitemap)
        self._state.sitemap = sitemap
        self._touch_project()

    def find_page(self, page_id: str) -> Optional[SitemapPage]:
        located = self._locate(page_id)
        return located[0][located[1]] if located else None

    def _locate(self, page_id: str) -> Optional[Tuple[List[SitemapPage], int, Optional[SitemapPage]]]:
        """Return ``(siblings, index, parent)`` for the page, searching depth-first."""
        if self._state.sitemap is None:
            return None

        def _search(pages: List[SitemapPage], parent: Optional[SitemapPage]):
            for idx, page in enumerate(pages):
                if page.id == page_id:
                    return pages, idx, parent
                if page.children:
                    found = _search(page.children, page)
                    if found:
                        return found
            return None

        return _search(self._state.sitemap.pages, None)

    def update_sitemap_page(self, page_id: str, updates: Mapping[str, Any]) -> MutationResult:
        if self._state.sitemap is None:
            return MutationResult.failure("no_sitemap", page_id)
        page = self.find_page(page_id)
        if page is None:
            return MutationResult.failure("not_found", page_id, f"Page '{page_id}' not found")

        allowed = {k: v for k, v in updates.items() if k not in _IMMUTABLE_PAGE_FIELDS and k in SitemapPage.model_fields}
        skipped = [k for k in updates if k not in allowed]
        if skipped:
            LOGGER.debug("update_sitemap_page(%s) ignored fields: %s", page_id, skipped)

        try:
            candidate = SitemapPage.model_validate({**page.model_dump(exclude={"children"}), **allowed})
        except ValidationError as exc:
            return MutationResult.failure("invalid_target", page_id, _describe(exc))
        for key in allowed:
            setattr(page, key, getattr(candidate, key))

        self._touch_sitemap()
        return MutationResult.success(page_id, detail=f"ignored: {', '.join(skipped)}" if skipped else None)

    def _fresh_page_id(self) -> str:
        while True:
            candidate = f"page-{uuid4().hex[:12]}"
            if self.find_page(candidate) is None:
                return candidate

    def _fresh_path(self, base: str) -> str:
        taken = {p.path for p, _, _ in iter_pages(self._state.sitemap.pages)} if self._state.sitemap else set()
        path, n = base, 2
        while path in taken:
            path = f"{base}-{n}"
            n += 1
        return path

    def add_page(self, parent_id: Optional[str] = None, **overrides: Any) -> MutationResult:
        sitemap = self._state.sitemap
        if sitemap is None:
            return MutationResult.failure("no_sitemap")

        parent = None
        if parent_id is not None:
            parent = self.find_page(parent_id)
            if parent is None:
                return MutationResult.failure("not_found", parent_id, f"Parent page '{parent_id}' not found")

        prefix = parent.path.rstrip("/") if parent else ""
        fields: Dict[str, Any] = {
            "title": "New Page",
            "description": "",
            "path": self._fresh_path(f"{prefix}/new-page"),
            "priority": 5,
            "changefreq": "monthly",
            "purpose": "information",
            "importance": 50,
            "is_critical": False,
            "requires_auth": False,
            "order": count_pages(sitemap.pages) + 1,
            "metadata": {},
        }
        fields.update({k: v for k, v in overrides.items() if k not in _IMMUTABLE_PAGE_FIELDS})
        try:
            page = SitemapPage(id=self._fresh_page_id(), parent_id=parent_id, **fields)
        except ValidationError as exc:
            return MutationResult.failure("invalid_target", parent_id, _describe(exc))

        if parent is not None:
            parent.children.append(page)
        else:
            sitemap.pages.append(page)

        self._touch_sitemap()
        return MutationResult.success(page.id, affected_ids=[page.id])

    def remove_page(self, page_id: str) -> MutationResult:
        if self._state.sitemap is None:
            return MutationResult.failure("no_sitemap", page_id)
        located = self._locate(page_id)
        if located is None:
            return MutationResult.failure("not_found", page_id, f"Page '{page_id}' not found")

        siblings, idx, _ = located
        removed = siblings.pop(idx)
        removed_ids = [p.id for p, _, _ in iter_pages([removed])]
        self._touch_sitemap()
        LOGGER.info("Removed page %s and %d descendant(s)", page_id, len(removed_ids) - 1)
        return MutationResult.success(page_id, affected_ids=removed_ids)

    def move_page(
        self, page_id: str, new_parent_id: Optional[str] = None, new_order: Optional[int] = None
    ) -> MutationResult:
        sitemap = self._state.sitemap
        if sitemap is None:
            return MutationResult.failure("no_sitemap", page_id)
        located = self._locate(page_id)
        if located is None:
            return MutationResult.failure("not_found", page_id, f"Page '{page_id}' not found")

        siblings, idx, _ = located
        page = siblings[idx]

        new_parent = None
        if new_parent_id is not None:
            subtree_ids = {p.id for p, _, _ in iter_pages([page])}
            if new_parent_id in subtree_ids:
                return MutationResult.failure(
                    "invalid_target", page_id, "A page cannot be moved beneath itself or its descendants"
                )
            new_parent = self.find_page(new_parent_id)
            if new_parent is None:
                return MutationResult.failure("not_found", new_parent_id, f"Parent page '{new_parent_id}' not found")

        siblings.pop(idx)
        destination = new_parent.children if new_parent is not None else sitemap.pages

        if new_order is None:
            page.order = max((p.order for p in destination), default=0) + 1
            destination.append(page)
        else:
            position = min(max(new_order - 1, 0), len(destination))
            destination.insert(position, page)
            for order, sibling in enumerate(destination, start=1):
                sibling.order = order

        page.parent_id = new_parent_id
        self._touch_sitemap()
        return MutationResult.success(page_id, affected_ids=[page_id])

    def validate_sitemap(self) -> SitemapValidationResult:
        sitemap = self._state.sitemap
        if sitemap is None:
            return SitemapValidationResult(
                is_valid=False,
                errors=[SitemapValidationIssue(code="NO_SITEMAP", message="No sitemap to validate")],
            )
        return check_sitemap(sitemap)

    # --------------------------------------------------------------- wireframes

    @property
    def wireframes(self) -> Dict[str, Wireframe]:
        return self._state.wireframes

    def set_wireframe(self, page_id: str, wireframe: Wireframe) -> None:
        self._state.wireframes[page_id] = wireframe
        self._touch_project()

    def delete_wireframe(self, page_id: str) -> MutationResult:
        if self._state.wireframes.pop(page_id, None) is None:
            return MutationResult.failure("not_found", page_id, f"No wireframe for page '{page_id}'")
        self._touch_project()
        return MutationResult.success(page_id)

    def find_component(self, page_id: str, component_id: str) -> Optional[WireframeComponent]:
        wireframe = self._state.wireframes.get(page_id)
        if wireframe is None:
            return None

        def _search(components: List[WireframeComponent]) -> Optional[WireframeComponent]:
            for component in components:
                if component.id == component_id:
                    return component
                found = _search(component.children)
                if found:
                    return found
            return None

        return _search([wireframe.root_component, *wireframe.components])

    def update_wireframe_component(
        self, page_id: str, component_id: str, updates: Mapping[str, Any]
    ) -> MutationResult:
        wireframe = self._state.wireframes.get(page_id)
        if wireframe is None:
            return MutationResult.failure("not_found", page_id, f"No wireframe for page '{page_id}'")
        component = self.find_component(page_id, component_id)
        if component is None:
            return MutationResult.failure("not_found", component_id, f"Component '{component_id}' not found")

        allowed = {
            k: v for k, v in updates.items() if k not in _IMMUTABLE_COMPONENT_FIELDS and k in WireframeComponent.model_fields
        }
        if isinstance(allowed.get("props"), Mapping):
            # props are merged, not replaced
            allowed["props"] = {**component.props, **allowed["props"]}
        try:
            candidate = WireframeComponent.model_validate({**component.model_dump(exclude={"children"}), **allowed})
        except ValidationError as exc:
            return MutationResult.failure("invalid_target", component_id, _describe(exc))
        for key in allowed:
            setattr(component, key, getattr(candidate, key))
        wireframe.updated_at = utcnow()
        self._touch_project()
        return MutationResult.success(component_id)

    def orphaned_wireframes(self) -> List[str]:
        """Wireframe keys that no longer match a sitemap page."""
        if self._state.sitemap is None:
            return list(self._state.wireframes)
        known = {p.id for p, _, _ in iter_pages(self._state.sitemap.pages)}
        return [key for key in self._state.wireframes if key not in known]

    def validate_wireframe(self, page_id: str) -> Optional[WireframeValidationResult]:
        wireframe = self._state.wireframes.get(page_id)
        if wireframe is None:
            return None

        errors: List[Dict[str, Any]] = []
        warnings: List[Dict[str, Any]] = []

        def _walk(components: List[WireframeComponent]) -> Iterator[WireframeComponent]:
            for component in components:
                yield component
                yield from _walk(component.children)

        components = list(_walk([wireframe.root_component, *wireframe.components]))
        for component_id, count in Counter(c.id for c in components).items():
            if count > 1:
                errors.append({
                    "component_id": component_id,
                    "type": "duplicate-id",
                    "message": f"Component id '{component_id}' appears {count} times",
                    "severity": "error",
                })
        for component in components:
            if not component.name.strip():
                warnings.append({
                    "component_id": component.id,
                    "type": "empty-name",
                    "message": "Component has no name",
                })
        if page_id in self.orphaned_wireframes():
            warnings.append({
                "component_id": wireframe.root_component.id,
                "type": "orphaned-wireframe",
                "message": f"Page '{page_id}' is not part of the sitemap",
                "recommendation": "Delete the wireframe or restore the page",
            })

        score = max(0, 100 - 20 * len(errors) - 5 * len(warnings))
        return WireframeValidationResult(is_valid=not errors, errors=errors, warnings=warnings, score=score)

    # -------------------------------------------------------------- style guide

    @property
    def style_guide(self) -> Optional[StyleGuide]:
        return self._state.style_guide

    def set_style_guide(self, style_guide: StyleGuide) -> None:
        self._state.style_guide = style_guide
        self._touch_project()

    def _edit_style(self) -> Optional[StyleGuide]:
        guide = self._state.style_guide
        if guide is not None:
            guide.updated_at = utcnow()
            self._touch_project()
        return guide

    def update_brand_guidelines(self, guidelines: BrandGuidelines) -> MutationResult:
        guide = self._edit_style()
        if guide is None:
            return MutationResult.failure("no_style_guide")
        guide.brand_guidelines = guidelines
        return MutationResult.success(guide.id)

    def update_design_style(self, design_style: DesignStyle) -> MutationResult:
        guide = self._edit_style()
        if guide is None:
            return MutationResult.failure("no_style_guide")
        guide.design_style = design_style
        return MutationResult.success(guide.id)

    def update_color(self, color_type: str, shade: Optional[str | int], value: str) -> MutationResult:
        if self._state.style_guide is None:
            return MutationResult.failure("no_style_guide")
        palette = self._state.style_guide.color_palette
        if color_type in _SHADED_COLORS:
            if shade is None:
                return MutationResult.failure("invalid_target", color_type, "A shade is required")
            getattr(palette, color_type)[str(shade)] = value
        elif color_type in _FLAT_COLORS:
            setattr(palette, color_type, value)
        else:
            return MutationResult.failure("invalid_target", color_type, f"Unknown color '{color_type}'")
        guide = self._edit_style()
        return MutationResult.success(guide.id, detail=f"{color_type}.{shade}" if shade is not None else color_type)

    def update_typography(self, prop: str, value: Any) -> MutationResult:
        guide = self._state.style_guide
        if guide is None:
            return MutationResult.failure("no_style_guide")
        group, _, key = prop.partition(".")
        if group not in type(guide.typography).model_fields or not key:
            return MutationResult.failure("invalid_target", prop, f"Unknown typography property '{prop}'")
        getattr(guide.typography, group)[key] = value
        self._edit_style()
        return MutationResult.success(guide.id, detail=prop)

    def update_spacing(self, size: str, value: str) -> MutationResult:
        guide = self._edit_style()
        if guide is None:
            return MutationResult.failure("no_style_guide")
        guide.spacing.scale[str(size)] = value
        return MutationResult.success(guide.id, detail=str(size))

    def update_border_radius(self, size: str, value: str) -> MutationResult:
        guide = self._edit_style()
        if guide is None:
            return MutationResult.failure("no_style_guide")
        guide.border_radius[size] = value
        return MutationResult.success(guide.id, detail=size)

    def update_shadow(self, size: str, value: str) -> MutationResult:
        guide = self._edit_style()
        if guide is None:
            return MutationResult.failure("no_style_guide")
        guide.shadows[size] = value
        return MutationResult.success(guide.id, detail=size)

    def update_component_style(self, component: str, variant: str, style: Mapping[str, str]) -> MutationResult:
        guide = self._edit_style()
        if guide is None:
            return MutationResult.failure("no_style_guide")
        guide.component_styles.setdefault(component, {})[variant] = dict(style)
        return MutationResult.success(guide.id, detail=f"{component}.{variant}")

    def validate_style_guide(self) -> StyleValidationResult:
        guide = self._state.style_guide
        if guide is None:
            return StyleValidationResult(is_valid=False, warnings=["No style guide available"])

        warnings: List[str] = []
        if not guide.typography.font_size.get("base"):
            warnings.append("Missing base font size")
        if not guide.color_palette.primary.get("500"):
            warnings.append("Missing primary 500 color")

        steps = []
        for key, value in guide.spacing.scale.items():
            k, v = _leading_number(key), _leading_number(value)
            if k is not None and v is not None:
                steps.append((k, v))
        steps.sort()
        if any(cur[1] <= prev[1] for prev, cur in zip(steps, steps[1:])):
            warnings.append("Inconsistent spacing scale detected")

        return StyleValidationResult(is_valid=not warnings, warnings=warnings)

    # ---------------------------------------------------------------- internal

    def _touch_sitemap(self) -> None:
        sitemap = self._state.sitemap
        if sitemap is not None:
            sitemap.updated_at = utcnow()
            sitemap.statistics = compute_statistics(sitemap)
        self._touch_project()

    def _touch_project(self) -> None:
        if self._state.project is not None:
            self._state.project.updated_at = utcnow()
