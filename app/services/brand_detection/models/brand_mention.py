from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class ExtractedBrand:
    """One brand the classifier found in a response"""

    name: str
    domain: Optional[str]
    position: int
    citation_url: Optional[str] = None
    # Set by the extractor when this entry is the tracked brand itself
    is_tracked: bool = False
    sentiment: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "domain": self.domain,
            "position": self.position,
            "citation_url": self.citation_url,
            "is_tracked": self.is_tracked,
            "sentiment": self.sentiment,
        }


@dataclass
class HeuristicMatch:
    """Where the tracked brand first appears in a response"""

    variant: str
    index: int
    position: int
    context_snippet: str


@dataclass
class SignalAnalysis:
    """Signal extractor verdict for one response"""

    mentioned: bool = False
    position: Optional[int] = None
    sentiment: Optional[float] = None
    context_snippet: Optional[str] = None
    brands: List[ExtractedBrand] = field(default_factory=list)
    # heuristic | classifier | none
    source: str = "none"
    classifier_failed: bool = False

    @classmethod
    def neutral(cls, classifier_failed: bool = False) -> "SignalAnalysis":
        return cls(classifier_failed=classifier_failed)

    def to_summary_dict(self) -> Dict[str, Any]:
        return {
            "mentioned": self.mentioned,
            "position": self.position,
            "sentiment": self.sentiment,
            "source": self.source,
            "brand_count": len(self.brands),
            "classifier_failed": self.classifier_failed,
        }
