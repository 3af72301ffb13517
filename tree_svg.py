"""
Ownership Tree SVG
Serialises a TreeLayout into a standalone SVG diagram
"""

from typing import Dict, List, Optional

from schema import (
    BOX_HEIGHT,
    BOX_WIDTH,
    COUNTRY_FLAGS,
    DEPTH_COLORS,
    LABEL_MAX_CHARS,
    LABEL_MAX_LINES,
    UNKNOWN_COUNTRY_FLAG,
    UNKNOWN_JURISDICTION_MARKER,
)
from tree_layout import PositionedNode, TreeLayout

EMPTY_TREE_HTML = '<p class="text-gray-500">No ownership data</p>'
XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>\n'

_XML_ESCAPES = {
    "<": "&lt;",
    ">": "&gt;",
    "&": "&amp;",
    "'": "&apos;",
    '"': "&quot;",
}


def escape_xml(unsafe) -> str:
    if not isinstance(unsafe, str):
        return ""
    return "".join(_XML_ESCAPES.get(c, c) for c in unsafe)


def get_country_flag(country: Optional[str]) -> str:
    if not country or not isinstance(country, str):
        return ""
    return COUNTRY_FLAGS.get(country.upper().strip(), UNKNOWN_COUNTRY_FLAG)


def wrap_label(name: str, max_chars: int = LABEL_MAX_CHARS, max_lines: int = LABEL_MAX_LINES) -> List[str]:
    """Greedy word wrap; overflow past `max_lines` is cut with an ellipsis."""
    lines: List[str] = []
    current = ""
    for word in name.split(" "):
        if len(current + " " + word) <= max_chars:
            current = f"{current} {word}" if current else word
        else:
            if current:
                lines.append(current)
            current = word
    if current:
        lines.append(current)

    if len(lines) > max_lines:
        lines[max_lines - 1] = lines[max_lines - 1][:max_chars - 3] + "..."
        lines = lines[:max_lines]
    return lines


def link_label(target: PositionedNode) -> Optional[str]:
    """Band text if any, else the known, non-zero percentage. Unknown is never shown as 0%."""
    if target.percentage_band:
        return target.percentage_band
    if target.percentage is not None and target.percentage > 0:
        return f"{target.percentage:.1f}%"
    return None


def _fmt(value: float) -> str:
    return f"{value:g}"


def _render_link(source: PositionedNode, target: PositionedNode) -> str:
    source_x, source_y = source.x, source.y + 40   # bottom of source box
    target_x, target_y = target.x, target.y - 10   # top of target box
    mid_y = (source_y + target_y) / 2
    parts = [
        f'<path d="M {_fmt(source_x)} {_fmt(source_y)} C {_fmt(source_x)} {_fmt(mid_y)}, '
        f'{_fmt(target_x)} {_fmt(mid_y)}, {_fmt(target_x)} {_fmt(target_y)}" '
        f'stroke="#9ca3af" stroke-width="2" fill="none" marker-end="url(#arrowhead)"/>'
    ]
    label = link_label(target)
    if label:
        label_x = (source_x + target_x) / 2
        label_y = (source_y + target_y) / 2 - 5
        parts.append(
            f'<text x="{_fmt(label_x)}" y="{_fmt(label_y)}" text-anchor="middle" font-size="10" '
            f'fill="#6b7280" font-weight="600">{escape_xml(label)}</text>'
        )
    return "".join(parts)


def _render_node(node: PositionedNode) -> str:
    color = DEPTH_COLORS[min(max(node.depth, 0), len(DEPTH_COLORS) - 1)]
    is_root = node.depth == 0
    fill_color = color if is_root else "#ffffff"
    text_color = "#ffffff" if is_root else "#1f2937"
    x, y = node.x, node.y

    parts = [
        f'<rect x="{_fmt(x - BOX_WIDTH / 2)}" y="{_fmt(y - 35)}" width="{BOX_WIDTH}" height="{BOX_HEIGHT}" '
        f'rx="8" ry="8" fill="{fill_color}" stroke="{color}" stroke-width="2" filter="url(#shadow)" '
        f'style="cursor: pointer;"/>'
    ]

    icon = "🏢" if node.is_company else "👤"
    parts.append(f'<text x="{_fmt(x - 90)}" y="{_fmt(y - 10)}" font-size="16">{icon}</text>')

    flag = get_country_flag(node.country)
    if flag:
        parts.append(
            f'<text x="{_fmt(x + 80)}" y="{_fmt(y - 10)}" font-size="16">'
            f'<title>{escape_xml(node.country)}</title>{flag}</text>'
        )
    elif node.is_company and not node.company_number:
        parts.append(
            f'<text x="{_fmt(x + 80)}" y="{_fmt(y - 10)}" font-size="16">'
            f'<title>Non-UK company (no UK company number)</title>{UNKNOWN_JURISDICTION_MARKER}</text>'
        )

    lines = wrap_label(node.name)
    start_y = y - 15 + (5 if len(lines) == 1 else 0)
    parts.append(
        f'<text x="{_fmt(x - 65)}" y="{_fmt(start_y)}" font-size="11" font-weight="600" fill="{text_color}">'
    )
    for idx, line in enumerate(lines):
        parts.append(f'<tspan x="{_fmt(x - 65)}" dy="{0 if idx == 0 else 12}">{escape_xml(line)}</tspan>')
    parts.append("</text>")

    if node.company_number:
        number_color = "#e5e7eb" if is_root else "#6b7280"
        parts.append(
            f'<text x="{_fmt(x - 65)}" y="{_fmt(y + 5)}" font-size="10" fill="{number_color}">'
            f'{escape_xml(node.company_number)}</text>'
        )

    if node.shares > 0:
        shares_color = "#d1d5db" if is_root else "#9ca3af"
        parts.append(
            f'<text x="{_fmt(x - 65)}" y="{_fmt(y + 20)}" font-size="9" fill="{shares_color}">'
            f'{node.shares:,} shares</text>'
        )
    return "".join(parts)


def create_ownership_svg(layout: TreeLayout) -> str:
    """
    Render the layout sized to its bounding box plus fixed margins. The
    layout itself is not modified; nodes are shifted on copies.
    """
    if layout.is_empty:
        return EMPTY_TREE_HTML

    min_x = min(n.x for n in layout.nodes) - 100
    max_x = max(n.x for n in layout.nodes) + 100
    max_y = max(n.y for n in layout.nodes) + 100

    x_offset = 50 - min_x if min_x < 50 else 0
    width = max_x - min_x + x_offset + 100
    height = max(400, max_y + 150)

    shifted: Dict[str, PositionedNode] = {
        n.id: n.model_copy(update={"x": n.x + x_offset}) for n in layout.nodes
    }

    parts = [
        f'<svg width="{_fmt(width)}" height="{_fmt(height)}" xmlns="http://www.w3.org/2000/svg" '
        f'viewBox="0 0 {_fmt(width)} {_fmt(height)}" style="border: 1px solid #e5e7eb; border-radius: 8px; '
        f'background: #ffffff; display: block; margin: 0 auto; max-width: 100%;">',
        "<defs>",
        '<marker id="arrowhead" markerWidth="10" markerHeight="7" refX="9" refY="3.5" orient="auto">'
        '<polygon points="0 0, 10 3.5, 0 7" fill="#9ca3af" /></marker>',
        '<filter id="shadow" x="-50%" y="-50%" width="200%" height="200%">'
        '<feGaussianBlur in="SourceAlpha" stdDeviation="3"/><feOffset dx="0" dy="2" result="offsetblur"/>'
        '<feComponentTransfer><feFuncA type="linear" slope="0.2"/></feComponentTransfer>'
        '<feMerge><feMergeNode/><feMergeNode in="SourceGraphic"/></feMerge></filter>',
        "</defs>",
        '<g transform="scale(1)">',
    ]

    # Links first so they sit behind the boxes
    for link in layout.links:
        source = shifted.get(link.source)
        target = shifted.get(link.target)
        if source and target:
            parts.append(_render_link(source, target))

    for node in layout.nodes:
        parts.append(_render_node(shifted[node.id]))

    parts.append("</g></svg>")
    return "".join(parts)


def svg_document(svg: str) -> str:
    """Standalone file form of a rendered diagram."""
    return XML_DECLARATION + svg
