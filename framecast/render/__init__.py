from framecast.render.encoder import PROFILES, CapabilityNegotiator, EncoderProfile
from framecast.render.engine import EngineResult, ExternalEngine, FFmpegEngine
from framecast.render.filter_compiler import CompiledGraph, FilterCompiler
from framecast.render.graph import AUDIO_OUT, VIDEO_OUT, FilterGraph, GraphNode, LabelAllocator, NodeKind
from framecast.render.pipeline import JobPipeline

__all__ = [
    "AUDIO_OUT",
    "PROFILES",
    "VIDEO_OUT",
    "CapabilityNegotiator",
    "CompiledGraph",
    "EncoderProfile",
    "EngineResult",
    "ExternalEngine",
    "FFmpegEngine",
    "FilterCompiler",
    "FilterGraph",
    "GraphNode",
    "JobPipeline",
    "LabelAllocator",
    "NodeKind",
]
