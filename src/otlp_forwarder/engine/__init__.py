"""Record processing: normalize, decode, compact and run the pipeline."""

from otlp_forwarder.engine.codec import PayloadCodec, signal_for_endpoint
from otlp_forwarder.engine.compactor import BatchCompactor
from otlp_forwarder.engine.normalizer import RecordNormalizer, normalize_record
from otlp_forwarder.engine.processor import ForwardingPipeline, build_pipeline

__all__ = [
    "BatchCompactor",
    "ForwardingPipeline",
    "PayloadCodec",
    "RecordNormalizer",
    "build_pipeline",
    "normalize_record",
    "signal_for_endpoint",
]
