"""Troubleshooting guides and error code lookups grounded in the knowledge buckets."""
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from models.knowledge import KnowledgeBuckets, KnowledgeItem, PROCEDURES, ERRORS
from services.llm_client import LLMClient, LLMResponse

logger = logging.getLogger(__name__)

# Issue key -> display label, in the order they are offered to users
ISSUE_LABELS: Dict[str, str] = {
    "power": "Power / Won't Turn On",
    "display": "Display Issues",
    "audio": "Audio Problems",
    "connectivity": "Connectivity Issues",
    "performance": "Performance / Slow",
    "overheating": "Overheating",
    "error-codes": "Error Codes",
    "other": "General Issues",
}


@dataclass
class AssistAnswer:
    """LLM answer plus the knowledge it was grounded on."""
    title: str
    text: str
    context_items: int
    response: LLMResponse


class Troubleshooter:
    """Builds troubleshooting workflows and explains error codes."""

    def __init__(self, llm_client: LLMClient, model: Optional[str] = None):
        self.llm_client = llm_client
        self.model = model

    def build_guide(self, issue: str, buckets: KnowledgeBuckets) -> AssistAnswer:
        """
        Write a step-by-step troubleshooting guide for an issue class.

        The guide is grounded on the procedures and errors items of the
        manual; with none available the LLM is told so and answers generally.

        Args:
            issue: One of ISSUE_LABELS
            buckets: Current knowledge buckets

        Raises:
            ValueError: Unknown issue class
            LLMClientError, InvalidResponseStructure: Generation failed
        """
        label = ISSUE_LABELS.get(issue)
        if label is None:
            raise ValueError(f"Unknown issue category: {issue}")

        items = list(buckets.get(PROCEDURES) or []) + list(buckets.get(ERRORS) or [])
        prompt = self.build_guide_prompt(label, _render(items))

        response = self.llm_client.generate(prompt, model=self.model)
        logger.info(f"Troubleshooting guide for '{issue}' from {len(items)} items")
        return AssistAnswer(title=label, text=response.text, context_items=len(items), response=response)

    def lookup_error_code(self, code: str, buckets: KnowledgeBuckets) -> AssistAnswer:
        """
        Explain an error code using the errors bucket.

        Raises:
            ValueError: Blank code
            LLMClientError, InvalidResponseStructure: Generation failed
        """
        code = (code or "").strip()
        if not code:
            raise ValueError("Enter an error code to look up")

        items = list(buckets.get(ERRORS) or [])
        prompt = self.build_lookup_prompt(code, _render(items))

        response = self.llm_client.generate(prompt, model=self.model)
        logger.info(f"Error code lookup for '{code}' from {len(items)} items")
        return AssistAnswer(title=code, text=response.text, context_items=len(items), response=response)

    @staticmethod
    def build_guide_prompt(label: str, context: str) -> str:
        return f"""Based on the manual content, create a step-by-step troubleshooting guide for "{label}" issues.

Manual Context:
{context or "No specific troubleshooting information available."}

Create a structured troubleshooting workflow with:
1. Initial checks (3-5 quick things to verify)
2. Step-by-step diagnostic process
3. Common solutions
4. When to contact support

Format as markdown with clear numbered steps and checkboxes where appropriate."""

    @staticmethod
    def build_lookup_prompt(code: str, context: str) -> str:
        return f"""Look up error code "{code}" in the manual content.

Manual Error Information:
{context or "No error code information available."}

If the error code is found:
- Explain what it means
- Provide steps to resolve it
- Reference the page number

If not found:
- Indicate the code wasn't found in the manual
- Provide general troubleshooting advice

Format response clearly with markdown."""


def _render(items: List[KnowledgeItem]) -> str:
    return "\n".join(f"[Page {item.page}] {item.text}" for item in items)
