"""
Narrative Generator

Writes the plain-language summary of an Evidence Pack through an
OpenAI-compatible chat completion endpoint. When the model is not
configured, fails, or returns nothing, NarrativeDegraded is raised and the
caller substitutes template_narrative().
"""
import json
import logging
from typing import List, Optional

from openai import OpenAI, OpenAIError

from ...config import get_config
from ...exceptions import NarrativeDegraded
from ...models.signals import Exemplar, ScoredCluster


logger = logging.getLogger(__name__)


SYSTEM_PROMPT = """You are a safety investigation analyst. Given aggregated complaint cluster data and representative exemplar cases, write a clear, professional narrative summary suitable for a safety investigation report. Include:
1. What product and failure mode is affected
2. Statistical summary (volume, velocity, geographic spread)
3. Key patterns observed across exemplar cases
4. Recommended investigation focus areas
Keep the tone factual and investigation-grade. Do not speculate beyond the data provided."""


def template_narrative(scored: ScoredCluster) -> str:
    """Deterministic narrative built from cluster metrics alone."""
    c = scored.candidate
    regions = ", ".join(c.regions)
    return (
        f"Cluster detected for product {c.product_sku} with failure mode '{c.failure_mode}'. "
        f"{c.count} complaints found across {c.geo_spread} regions ({regions}). "
        f"{c.injury_count} injury reports. Confidence score: {scored.confidence_score}."
    )


class NarrativeGenerator:
    """
    LLM-backed narrative writer.

    Usage:
        generator = NarrativeGenerator()
        try:
            text = generator.generate(scored, exemplars)
        except NarrativeDegraded:
            text = template_narrative(scored)
    """

    TEMPERATURE = 0.3

    def __init__(self, client: Optional[OpenAI] = None, model: Optional[str] = None):
        config = get_config()
        self.model = model or config.llm_model
        if client is not None:
            self.client = client
        elif config.llm_api_key:
            self.client = OpenAI(
                base_url=config.llm_base_url,
                api_key=config.llm_api_key,
                timeout=config.llm_timeout,
                max_retries=0,
            )
        else:
            self.client = None

    @property
    def enabled(self) -> bool:
        return self.client is not None

    def build_user_message(self, scored: ScoredCluster, exemplars: List[Exemplar]) -> str:
        return (
            "Cluster Data:\n" + json.dumps(scored.metrics(), indent=2)
            + "\n\nExemplar Cases:\n" + json.dumps([e.excerpt() for e in exemplars], indent=2)
        )

    def generate(self, scored: ScoredCluster, exemplars: List[Exemplar]) -> str:
        """
        Generate the narrative for a gated cluster.

        Raises:
            NarrativeDegraded: no model configured, API error, or empty content
        """
        if not self.enabled:
            raise NarrativeDegraded("No LLM API key configured")

        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": self.build_user_message(scored, exemplars)},
                ],
                temperature=self.TEMPERATURE,
            )
        except OpenAIError as e:
            logger.warning(f"Narrative generation failed for {scored.product_sku}/{scored.failure_mode}: {e}")
            raise NarrativeDegraded(str(e)) from e

        content = response.choices[0].message.content if response.choices else None
        if not content or not content.strip():
            raise NarrativeDegraded("LLM returned no content")
        return content.strip()
