"""Filter graph IR.

A compiled program is an ordered list of typed nodes. Each node reads one
or more labelled pads and writes exactly one labelled output. Label
rewriting (terminal renames, subtitle injection) operates on the node list
and the text form is produced only by ``FilterGraph.serialize``.
"""

import re
from dataclasses import dataclass, field
from enum import Enum

from framecast.exceptions import CompilationError

VIDEO_OUT = "v"
AUDIO_OUT = "a"

_STREAM_RE = re.compile(r"^\d+:[va]$")


def video_stream(index: int) -> str:
    return f"{index}:v"


def audio_stream(index: int) -> str:
    return f"{index}:a"


def is_stream_specifier(pad: str) -> bool:
    """True for engine input pads such as ``0:v`` (not produced by any node)."""
    return bool(_STREAM_RE.match(pad))


class NodeKind(Enum):
    """Node kinds, each with its own label prefix."""

    BACKGROUND = "bg"
    SCALE = "scaled"
    KEN_BURNS = "kb"
    VIDEO_LAYER = "layer"
    OVERLAY = "ov"
    TEXT = "vt"
    PASSTHROUGH = "copy"
    SUBTITLES = "sub"
    AUDIO_PREP = "aud"
    AUDIO_MIX = "mix"

    @property
    def prefix(self) -> str:
        return self.value


# Interim label prefix used when the terminal video label is moved aside
PRE_SUBTITLE_PREFIX = "vpre"


@dataclass
class GraphNode:
    """One filter chain: ``[in1][in2]filter[out]``."""

    kind: NodeKind
    inputs: list[str]
    output: str
    filter: str
    # Allocation order within the node's kind
    ordinal: int = 0

    def serialize(self) -> str:
        pads = "".join(f"[{pad}]" for pad in self.inputs)
        return f"{pads}{self.filter}[{self.output}]"


class LabelAllocator:
    """Hands out labels unique within one graph, one counter per prefix."""

    def __init__(self, reserved: set[str] | None = None):
        self._counters: dict[str, int] = {}
        self._used: set[str] = set(reserved or ())

    @classmethod
    def for_graph(cls, graph: "FilterGraph") -> "LabelAllocator":
        """Allocator that will never collide with labels already in ``graph``."""
        return cls(reserved=set(graph.labels()))

    def allocate(self, prefix: str) -> tuple[str, int]:
        """Return the next free ``(label, ordinal)`` for ``prefix``."""
        n = self._counters.get(prefix, 0)
        while f"{prefix}{n}" in self._used:
            n += 1
        label = f"{prefix}{n}"
        self._counters[prefix] = n + 1
        self._used.add(label)
        return label, n


@dataclass
class FilterGraph:
    nodes: list[GraphNode] = field(default_factory=list)

    def add(self, node: GraphNode) -> GraphNode:
        self.nodes.append(node)
        return node

    def insert_after(self, anchor: GraphNode, node: GraphNode) -> GraphNode:
        self.nodes.insert(self.nodes.index(anchor) + 1, node)
        return node

    def labels(self) -> list[str]:
        return [node.output for node in self.nodes]

    def producer(self, label: str) -> GraphNode | None:
        for node in self.nodes:
            if node.output == label:
                return node
        return None

    def consumers(self, label: str) -> list[GraphNode]:
        return [node for node in self.nodes if label in node.inputs]

    def nodes_of_kind(self, kind: NodeKind) -> list[GraphNode]:
        return [node for node in self.nodes if node.kind is kind]

    def rename_output(self, old: str, new: str) -> None:
        """Rename a produced label everywhere it appears."""
        node = self.producer(old)
        if node is None:
            raise CompilationError(f"No node produces label [{old}]")
        node.output = new
        for consumer in self.consumers(old):
            consumer.inputs = [new if pad == old else pad for pad in consumer.inputs]

    def validate(self, terminals: set[str]) -> None:
        """Check label hygiene.

        Every produced label is unique, is produced before it is read, and is
        read exactly once unless it is a terminal label (read by nobody).
        """
        produced: set[str] = set()
        for node in self.nodes:
            for pad in node.inputs:
                if not is_stream_specifier(pad) and pad not in produced:
                    raise CompilationError(f"Label [{pad}] read before it is produced")
            if node.output in produced:
                raise CompilationError(f"Label [{node.output}] produced twice")
            produced.add(node.output)

        for label in produced:
            uses = len(self.consumers(label))
            if label in terminals:
                if uses:
                    raise CompilationError(f"Terminal label [{label}] is consumed")
            elif uses != 1:
                raise CompilationError(f"Label [{label}] consumed {uses} times")

    def serialize(self) -> str:
        return ";".join(node.serialize() for node in self.nodes)

    def __str__(self) -> str:
        return self.serialize()

    def __len__(self) -> int:
        return len(self.nodes)
