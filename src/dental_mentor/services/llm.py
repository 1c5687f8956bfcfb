"""Thin wrapper around the Gemini SDK."""

from typing import Any, Dict, List, Optional

import google.generativeai as genai
import structlog
from google.api_core import exceptions

logger = structlog.get_logger()


class LLMError(Exception):
    """A Gemini call failed."""


class LLMService:
    """Owns the Gemini SDK configuration and builds models for the agents."""

    def __init__(self, api_key: str, embedding_model: str = "models/text-embedding-004"):
        genai.configure(api_key=api_key)
        self.embedding_model = embedding_model
        logger.info("llm_service_init", embedding_model=embedding_model, has_api_key=bool(api_key))

    def model(
        self,
        name: str,
        instructions: Optional[str] = None,
        declarations: Optional[List[Dict[str, Any]]] = None,
    ) -> genai.GenerativeModel:
        tools = [{"function_declarations": declarations}] if declarations else None
        return genai.GenerativeModel(name, system_instruction=instructions or None, tools=tools)

    async def generate_text(self, model_name: str, prompt: str) -> str:
        """One-shot, non-streaming completion."""
        try:
            response = await self.model(model_name).generate_content_async(prompt)
            return response.text
        except exceptions.ResourceExhausted as e:
            logger.warning("gemini_quota_exhausted", model=model_name)
            raise LLMError("Gemini quota exhausted") from e
        except (exceptions.GoogleAPIError, ValueError) as e:
            logger.error("text_generation_error", model=model_name, error=str(e))
            raise LLMError(str(e)) from e

    async def embed(self, text: str) -> List[float]:
        try:
            result = await genai.embed_content_async(model=self.embedding_model, content=text)
        except exceptions.GoogleAPIError as e:
            logger.error("embedding_error", model=self.embedding_model, error=str(e))
            raise LLMError(str(e)) from e
        return list(result["embedding"])
