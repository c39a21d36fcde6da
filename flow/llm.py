"""Content-generation service — produces suggestions and section drafts for steps.

The LLM is used ONLY for:
  ✅ Suggesting list entries (advantages, risks, challenges, ...)
  ✅ Drafting small sections (audience statement, hero copy, ideal user)
  ❌ NOT for gating, navigation or persistence

Every failure, including "no API key configured", is raised as GenerationError so
the session can substitute the target's template fallback.
"""

import json
import logging
from typing import Any, Dict, List, Optional, Protocol, Union

from langchain_core.messages import HumanMessage, SystemMessage
from langchain_google_genai import ChatGoogleGenerativeAI
from pydantic import BaseModel, Field, create_model

from config import GOOGLE_API_KEY, LLM_MODEL, LLM_TEMPERATURE
from flow.errors import GenerationError
from prompts.generation_prompts import get_generation_prompt


class Suggestion(BaseModel):
    """One suggested list entry."""

    text: str
    description: Optional[str] = None
    ref: Optional[str] = Field(None, description="Id of the entity this suggestion answers, if any")


class SuggestionList(BaseModel):
    items: List[Suggestion] = Field(default_factory=list)


class SectionDraft(BaseModel):
    """Field name → drafted text for one section."""

    fields: Dict[str, str] = Field(default_factory=dict)


GenerationResult = Union[List[Suggestion], SectionDraft]


class ContentGenerator(Protocol):
    async def generate(self, context: Dict[str, Any]) -> GenerationResult:
        """Return suggestions or a section draft; raise GenerationError on failure."""
        ...


# ── LLM-backed implementation ──────────────────────────────────────────
class LLMContentGenerator:
    """Gemini via LangChain, with structured output parsed into pydantic models."""

    def __init__(self, api_key: str = GOOGLE_API_KEY, model: str = LLM_MODEL,
                 temperature: float = LLM_TEMPERATURE):
        self._api_key = api_key
        self._model = model
        self._temperature = temperature
        self._llm = None

    def _get_llm(self):
        """Lazy: creates the chat model once, reuses on every call."""
        if self._llm is not None:
            return self._llm
        if not self._api_key:
            raise GenerationError("No GOOGLE_API_KEY configured; content generation is unavailable")
        self._llm = ChatGoogleGenerativeAI(
            model=self._model,
            google_api_key=self._api_key,
            temperature=self._temperature,
        )
        return self._llm

    async def generate(self, context: Dict[str, Any]) -> GenerationResult:
        target = context.get("target", "")
        kind = context.get("kind", "suggestions")
        llm = self._get_llm()

        if kind == "section":
            section_fields = context.get("fields", [])
            definitions = {name: (Optional[str], Field(None, description=name.replace("_", " ")))
                           for name in section_fields}
            schema = create_model(f"{target}_Draft", **definitions)
        else:
            schema = SuggestionList

        system = (
            "You are a product-led growth coach helping a founder fill in a guided worksheet. "
            "Write concrete, specific copy in plain language. "
            "Never invent customer names, numbers or testimonials."
        )
        human = get_generation_prompt(target, json.dumps(context.get("data", {}), default=str),
                                      count=context.get("count", 3))

        try:
            structured_llm = llm.with_structured_output(schema)
            output = await structured_llm.ainvoke([SystemMessage(content=system), HumanMessage(content=human)])
        except Exception as e:
            logging.error(f"Error generating {target}: {e}")
            raise GenerationError(f"Generation failed for {target}") from e

        if output is None:
            raise GenerationError(f"Model returned nothing for {target}")
        if kind == "section":
            drafted = {k: v.strip() for k, v in output.model_dump(exclude_none=True).items() if v and v.strip()}
            if not drafted:
                raise GenerationError(f"Model returned an empty draft for {target}")
            return SectionDraft(fields=drafted)
        items = [s for s in output.items if s.text.strip()]
        if not items:
            raise GenerationError(f"Model returned no suggestions for {target}")
        return items
