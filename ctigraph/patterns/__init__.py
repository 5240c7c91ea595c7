"""Entity and relation pattern tables."""

from ctigraph.patterns.catalog import (
    EntityPattern,
    PatternCatalog,
    PhrasePattern,
    RelationPattern,
)

__all__ = ["EntityPattern", "PatternCatalog", "PhrasePattern", "RelationPattern"]
