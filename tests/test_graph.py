"""Tests for the filter graph IR and label allocation."""

import pytest

from framecast.exceptions import CompilationError
from framecast.render.graph import (
    VIDEO_OUT,
    FilterGraph,
    GraphNode,
    LabelAllocator,
    NodeKind,
    is_stream_specifier,
)


class TestLabelAllocator:
    """Test per-kind label counters."""

    def test_counters_are_per_prefix(self):
        labels = LabelAllocator()
        assert labels.allocate("scaled") == ("scaled0", 0)
        assert labels.allocate("scaled") == ("scaled1", 1)
        assert labels.allocate("vt") == ("vt0", 0)

    def test_reserved_labels_are_skipped(self):
        labels = LabelAllocator(reserved={"vt0", "vt1"})
        assert labels.allocate("vt") == ("vt2", 2)

    def test_for_graph_avoids_existing_labels(self):
        graph = FilterGraph([GraphNode(NodeKind.TEXT, ["0:v"], "vpre0", "null")])
        label, _ = LabelAllocator.for_graph(graph).allocate("vpre")
        assert label == "vpre1"

    def test_allocators_are_independent(self):
        assert LabelAllocator().allocate("kb") == LabelAllocator().allocate("kb")


class TestFilterGraph:
    """Test graph construction, rewriting and serialization."""

    def _chain(self) -> FilterGraph:
        graph = FilterGraph()
        graph.add(GraphNode(NodeKind.SCALE, ["1:v"], "scaled0", "scale=100:100"))
        graph.add(GraphNode(NodeKind.OVERLAY, ["0:v", "scaled0"], "ov0", "overlay=0:0"))
        return graph

    def test_node_serialize(self):
        node = GraphNode(NodeKind.SCALE, ["1:v"], "scaled0", "scale=100:100")
        assert node.serialize() == "[1:v]scale=100:100[scaled0]"

    def test_graph_serialize_joins_with_semicolons(self):
        assert self._chain().serialize() == "[1:v]scale=100:100[scaled0];[0:v][scaled0]overlay=0:0[ov0]"

    def test_rename_output_updates_consumers(self):
        graph = self._chain()
        graph.rename_output("scaled0", "img")
        assert graph.nodes[0].output == "img"
        assert graph.nodes[1].inputs == ["0:v", "img"]

    def test_rename_unknown_label(self):
        with pytest.raises(CompilationError):
            self._chain().rename_output("nope", "x")

    def test_validate_accepts_terminal(self):
        graph = self._chain()
        graph.rename_output("ov0", VIDEO_OUT)
        graph.validate({VIDEO_OUT})

    def test_validate_rejects_dangling_label(self):
        with pytest.raises(CompilationError, match="consumed 0 times"):
            self._chain().validate({VIDEO_OUT})

    def test_validate_rejects_double_consumption(self):
        graph = self._chain()
        graph.add(GraphNode(NodeKind.TEXT, ["scaled0"], VIDEO_OUT, "null"))
        with pytest.raises(CompilationError):
            graph.validate({VIDEO_OUT})

    def test_validate_rejects_read_before_produced(self):
        graph = FilterGraph([GraphNode(NodeKind.TEXT, ["ghost"], VIDEO_OUT, "null")])
        with pytest.raises(CompilationError, match="before it is produced"):
            graph.validate({VIDEO_OUT})

    def test_stream_specifiers(self):
        assert is_stream_specifier("0:v")
        assert is_stream_specifier("12:a")
        assert not is_stream_specifier("vt0")
