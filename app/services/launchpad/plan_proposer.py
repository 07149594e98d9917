"""Build mode-specific prompts and ask the generative model for a plan."""

from typing import Any, Dict, Optional, Sequence, Tuple

from app.core.config import settings
from app.core.exceptions import AnalysisError, AppError, UnparseableResponseError
from app.prompts.launchpad_prompts import (
    EXTRACTION_EXISTING_BLOCK,
    EXTRACTION_USER_PROMPT,
    GROUNDING_BLOCK,
    INFERENCE_EXISTING_BLOCK,
    INFERENCE_USER_PROMPT,
    PLAN_EXTRACTION_PROMPT,
    PLAN_INFERENCE_PROMPT,
)
from app.schemas.launchpad import ExistingEntities
from app.services.launchpad.mode_detector import DocumentMode
from app.utils.json_parser import parse_json_safely
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)

UNPARSEABLE_MESSAGE = "Failed to parse AI response"


def build_grounding_context(documents: Sequence[Any]) -> str:
    """Render grounding documents as ``### title`` sections."""
    sections = []
    for doc in documents or []:
        title = getattr(doc, "title", None)
        content = getattr(doc, "content", None)
        if title is None and isinstance(doc, dict):
            title, content = doc.get("title"), doc.get("content")
        if content:
            sections.append(f"### {title or 'Untitled'}\n{content}")
    return "\n\n".join(sections)


def build_existing_context(existing: Optional[ExistingEntities]) -> str:
    """Digest of what the tenant already has, one line per entity kind."""
    if existing is None:
        return ""

    lines = []
    if existing.mission:
        lines.append(f'- Existing Mission: "{existing.mission}"')
    if existing.vision:
        lines.append(f'- Existing Vision: "{existing.vision}"')
    value_titles = [str(v.get("title")) for v in existing.values if isinstance(v, dict) and v.get("title")]
    if value_titles:
        lines.append(f"- Existing Values: {', '.join(value_titles)}")
    goal_titles = existing.annual_goal_titles()
    if goal_titles:
        lines.append(f"- Existing Annual Goals: {', '.join(goal_titles)}")
    if existing.strategies:
        lines.append(f"- Existing Strategies: {', '.join(s.title for s in existing.strategies)}")
    if existing.objectives:
        lines.append(f"- Existing Objectives: {', '.join(o.title for o in existing.objectives)}")

    return "\n".join(lines) + "\n" if lines else ""


class PlanProposer:
    """Turns document text into a raw (unnormalized) plan via the model.

    Args:
        llm_client: Any object with an async ``generate_content`` method
    """

    def __init__(
        self,
        llm_client: Any,
        prompt_text_budget: Optional[int] = None,
        max_output_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ):
        self.llm_client = llm_client
        self.prompt_text_budget = prompt_text_budget or settings.launchpad.prompt_text_budget
        self.max_output_tokens = max_output_tokens or settings.launchpad.max_output_tokens
        self.temperature = settings.launchpad.temperature if temperature is None else temperature

    def build_prompts(
        self,
        text: str,
        mode: DocumentMode,
        target_year: int,
        existing: Optional[ExistingEntities] = None,
        grounding_documents: Sequence[Any] = (),
    ) -> Tuple[str, str]:
        """Return (system_prompt, user_prompt) for the given mode."""
        structured = mode == DocumentMode.STRUCTURED
        grounding_context = build_grounding_context(grounding_documents)
        existing_context = build_existing_context(existing)

        grounding_block = GROUNDING_BLOCK.format(grounding_context=grounding_context) if grounding_context else ""
        existing_template = EXTRACTION_EXISTING_BLOCK if structured else INFERENCE_EXISTING_BLOCK
        existing_block = existing_template.format(existing_context=existing_context) if existing_context else ""

        user_template = EXTRACTION_USER_PROMPT if structured else INFERENCE_USER_PROMPT
        user_prompt = user_template.format(
            target_year=target_year,
            grounding_block=grounding_block,
            existing_block=existing_block,
            document_text=(text or "")[:self.prompt_text_budget],
        )
        system_prompt = PLAN_EXTRACTION_PROMPT if structured else PLAN_INFERENCE_PROMPT
        return system_prompt, user_prompt

    async def propose(
        self,
        text: str,
        mode: DocumentMode,
        target_year: int,
        existing: Optional[ExistingEntities] = None,
        grounding_documents: Sequence[Any] = (),
    ) -> Dict[str, Any]:
        """Ask the model for a plan.

        Returns:
            The parsed JSON object, not yet normalized

        Raises:
            AnalysisError: The model call failed (the original error is attached)
            UnparseableResponseError: The response is not a JSON object
        """
        system_prompt, user_prompt = self.build_prompts(
            text, mode, target_year, existing, grounding_documents
        )

        LOGGER.info(
            f"Requesting {mode.value} plan from model",
            extra={"mode": mode.value, "target_year": target_year, "prompt_chars": len(user_prompt)}
        )

        try:
            response_text = await self.llm_client.generate_content(
                contents=user_prompt,
                system_instruction=system_prompt,
                generation_config={
                    "temperature": self.temperature,
                    "max_output_tokens": self.max_output_tokens,
                    "response_mime_type": "application/json",
                },
            )
        except AppError as e:
            raise AnalysisError(str(e), original_error=e) from e
        except Exception as e:
            LOGGER.error(f"Model call failed: {e}", exc_info=True)
            raise AnalysisError(f"Model call failed: {e}", original_error=e) from e

        parsed = parse_json_safely(response_text)
        if not isinstance(parsed, dict):
            LOGGER.warning(
                "Model response is not a JSON object",
                extra={"response_chars": len(response_text or ""), "parsed_type": type(parsed).__name__}
            )
            raise UnparseableResponseError(UNPARSEABLE_MESSAGE)

        LOGGER.info(
            "Model returned a plan",
            extra={"mode": mode.value, "keys": sorted(parsed.keys())}
        )
        return parsed
