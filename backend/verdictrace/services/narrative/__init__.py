"""Narrative generation for Evidence Packs."""
from .narrative_generator import NarrativeGenerator, template_narrative

__all__ = ["NarrativeGenerator", "template_narrative"]
