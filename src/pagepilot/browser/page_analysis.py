"""
页面分析

在页面内执行一段 JavaScript，提取：
- 区块 (semantic / visual)：可见、面积不小于阈值，按面积降序
- 站内链接：与当前页面同 host、文本非空
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)

SEMANTIC_TAGS = [
    "header", "nav", "main", "section", "article", "aside",
    "footer", "form", "fieldset", "table", "figure", "blockquote",
]

VISUAL_SELECTORS = [
    ".card", ".panel", ".box", ".container", ".wrapper",
    ".content", ".section", ".block", ".widget", ".component",
]

MIN_SECTION_AREA = 100

_ANALYZE_SCRIPT = """
({ semanticTags, visualSelectors, minArea }) => {
    const clean = (text) => (text || '')
        .replace(/\\u00A0/g, ' ')
        .replace(/[\\u200B-\\u200D\\uFEFF]/g, '')
        .replace(/[\\x00-\\x09\\x0B-\\x1F\\x7F]/g, '')
        .replace(/\\s+/g, ' ')
        .trim();

    const sections = [];
    const measure = (el) => {
        const r = el.getBoundingClientRect();
        if (r.width === 0 || r.height === 0) return null;
        const area = r.width * r.height;
        return area < minArea ? null : area;
    };

    semanticTags.forEach((tag) => {
        document.querySelectorAll(tag).forEach((el, i) => {
            const area = measure(el);
            if (area === null) return;
            sections.push({
                id: `semantic-${tag}-${sections.length}`,
                type: 'semantic',
                tagName: tag,
                selector: `${tag}:nth-of-type(${i + 1})`,
                area,
                text: clean(el.textContent).substring(0, 100),
            });
        });
    });

    visualSelectors.forEach((sel) => {
        document.querySelectorAll(sel).forEach((el) => {
            const area = measure(el);
            if (area === null) return;
            sections.push({
                id: `visual-${sel.replace(/[^a-zA-Z0-9]/g, '-')}-${sections.length}`,
                type: 'visual',
                selector: sel,
                area,
                text: clean(el.textContent).substring(0, 100),
            });
        });
    });

    const host = window.location.hostname;
    const links = [];
    document.querySelectorAll('a[href]').forEach((a) => {
        const href = a.getAttribute('href');
        if (!href) return;
        let full;
        try {
            full = new URL(href, window.location.href);
        } catch (e) {
            return;
        }
        if (full.hostname !== host) return;
        const text = clean(a.textContent);
        if (!text) return;
        const r = a.getBoundingClientRect();
        links.push({ text, href: full.href, isVisible: r.width > 0 && r.height > 0 });
    });

    sections.sort((a, b) => b.area - a.area);
    return { sections, internalLinks: links };
}
"""


@dataclass
class PageAnalysis:
    sections: list[dict] = field(default_factory=list)
    internal_links: list[dict] = field(default_factory=list)

    def summary(self, returned: int) -> dict:
        by_type = {"semantic": 0, "visual": 0}
        for s in self.sections:
            by_type[s.get("type", "semantic")] = by_type.get(s.get("type", "semantic"), 0) + 1
        return {
            "totalSections": len(self.sections),
            "sectionsByType": by_type,
            "returnedSections": returned,
            "truncatedSections": len(self.sections) > returned,
            "totalInternalLinks": len(self.internal_links),
            "visibleLinks": sum(1 for link in self.internal_links if link.get("isVisible")),
        }


async def analyze_page(page: Any) -> PageAnalysis:
    """在 page 中执行分析脚本"""
    data = await page.evaluate(
        _ANALYZE_SCRIPT,
        {
            "semanticTags": SEMANTIC_TAGS,
            "visualSelectors": VISUAL_SELECTORS,
            "minArea": MIN_SECTION_AREA,
        },
    )
    data = data or {}
    return PageAnalysis(
        sections=list(data.get("sections") or []),
        internal_links=list(data.get("internalLinks") or []),
    )
