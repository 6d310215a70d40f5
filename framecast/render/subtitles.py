"""Subtitle burn-in as a post-pass over a compiled filter graph."""

import logging

from framecast.exceptions import CompilationError
from framecast.render.graph import (
    PRE_SUBTITLE_PREFIX,
    VIDEO_OUT,
    FilterGraph,
    GraphNode,
    LabelAllocator,
    NodeKind,
)
from framecast.render.text_renderer import color_to_hex
from framecast.schemas.composition import SubtitleSpec

logger = logging.getLogger(__name__)

# ASS numpad alignment
ALIGNMENT = {"bottom": 2, "center": 5, "top": 8}


def ass_color(color: str, alpha: str = "00") -> str:
    """``#rrggbb`` / colour name to ASS ``&HAABBGGRR``."""
    rgb = color_to_hex(color)
    return f"&H{alpha}{rgb[4:6]}{rgb[2:4]}{rgb[0:2]}".upper()


def build_force_style(spec: SubtitleSpec) -> str:
    parts = [
        f"FontSize={spec.font_size}",
        f"PrimaryColour={ass_color(spec.font_color)}",
    ]
    if spec.outline:
        parts.extend(["OutlineColour=&H00000000", "Outline=2"])
    if spec.background and spec.background.lower() != "transparent":
        parts.extend(["BorderStyle=3", f"BackColour={ass_color(spec.background, alpha='80')}"])
    parts.append(f"Alignment={ALIGNMENT[spec.position]}")
    return ",".join(parts)


def escape_filter_path(path: str) -> str:
    return path.replace("\\", "/").replace(":", "\\:").replace("'", "\\'")


def build_subtitle_filter(path: str, spec: SubtitleSpec) -> str:
    return f"subtitles=filename='{escape_filter_path(path)}':force_style='{build_force_style(spec)}'"


def latest_text_label(graph: FilterGraph, fallback: str) -> str:
    """Output label of the highest-ordinal text node still free to read.

    Falls back to ``fallback`` when there are no text nodes or the latest
    one already feeds another node.
    """
    text_nodes = graph.nodes_of_kind(NodeKind.TEXT)
    if not text_nodes:
        return fallback
    latest = max(text_nodes, key=lambda node: node.ordinal)
    if latest.output != fallback and graph.consumers(latest.output):
        return fallback
    return latest.output


def inject_subtitles(graph: FilterGraph, path: str, spec: SubtitleSpec) -> GraphNode:
    """Burn subtitles into the terminal video label.

    The terminal label is moved to an interim label and a subtitle node
    re-establishes it. Running this on a graph that already has a subtitle
    node only refreshes that node's parameters.
    """
    filter_str = build_subtitle_filter(path, spec)

    existing = graph.nodes_of_kind(NodeKind.SUBTITLES)
    if existing:
        node = existing[-1]
        node.filter = filter_str
        logger.debug("[COMPILE] subtitle node already present, parameters refreshed")
        return node

    producer = graph.producer(VIDEO_OUT)
    if producer is None:
        raise CompilationError(f"Graph has no terminal video label [{VIDEO_OUT}]")

    interim, _ = LabelAllocator.for_graph(graph).allocate(PRE_SUBTITLE_PREFIX)
    graph.rename_output(VIDEO_OUT, interim)
    source = latest_text_label(graph, interim)

    node = GraphNode(NodeKind.SUBTITLES, [source], VIDEO_OUT, filter_str)
    return graph.insert_after(graph.producer(source) or producer, node)
