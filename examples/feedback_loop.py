"""Example: extract a report, correct it twice, and persist the graph.

Usage:
    python examples/feedback_loop.py
"""

import asyncio
import logging
from collections import Counter

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%H:%M:%S",
)

from ctigraph.config import Settings
from ctigraph.events.bus import EventBus
from ctigraph.extraction.pipeline import ExtractionPipeline
from ctigraph.storage.graph_store import InMemoryGraphStore

REPORT = (
    "APT28, also known as Fancy Bear, uses Zebrocy and Mimikatz against government "
    "networks in Ukraine. The group exploits CVE-2017-0199 and Zebrocy communicates "
    "via 185.220.101.4."
)


async def main():
    settings = Settings.load()
    bus = EventBus()
    pipeline = ExtractionPipeline(settings, bus=bus)
    store = InMemoryGraphStore()

    result = await pipeline.process_and_store(REPORT, store)
    print(f"\n{len(result.entities)} entities, {len(result.relations)} relations")
    names = {e.id: e.text for e in result.entities}
    for e in result.entities:
        print(f"  {e.id:<4} {e.type:<14} {e.confidence:.2f}  {e.text}")
    for r in result.relations:
        print(f"  {names[r.source]} --{r.relation}--> {names[r.target]} ({r.confidence:.2f})")

    # Mimikatz is a tool, not malware; it takes two agreeing analysts to stick
    for analyst in ("alice", "bob"):
        pipeline.submit_feedback({
            "extraction_id": "example-1",
            "user_id": analyst,
            "corrections": [{
                "original_entity": {"text": "Mimikatz", "type": "malware"},
                "corrected_type": "tool",
                "reason": "credential dumping utility",
            }],
        })

    rerun = await pipeline.process_and_store(REPORT, store)
    print("\nAfter feedback:")
    print("  types:", dict(Counter(str(e.type) for e in rerun.entities)))
    print(f"  threshold: {rerun.metadata.confidence_threshold:.2f}")
    print(f"  kept at threshold: {len(rerun.above_threshold().entities)} entities")

    graph = await store.query_graph()
    print(f"\nStored graph: {len(graph.nodes)} nodes, {len(graph.edges)} edges")


if __name__ == "__main__":
    asyncio.run(main())
