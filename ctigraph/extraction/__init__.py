"""Text-to-triples extraction: recognizer, relation extractor, graph assembler."""

from ctigraph.extraction.graph import build_graph
from ctigraph.extraction.pipeline import ExtractionPipeline
from ctigraph.extraction.recognizer import EntityRecognizer
from ctigraph.extraction.relations import RelationExtractor

__all__ = ["EntityRecognizer", "ExtractionPipeline", "RelationExtractor", "build_graph"]
