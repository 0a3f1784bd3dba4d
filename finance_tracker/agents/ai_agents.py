"""
AI Agents for the Shared Finance Tracker

CRITICAL BOUNDARIES:

CATEGORY SUGGESTION AGENT:
   - CAN: Suggest one of the fixed categories for a description
   - CANNOT: Write anything to storage
   - CANNOT: Invent a category outside the fixed list
   - MUST: Fall back to "Other" when it isn't confident

The LLM is a CLASSIFIER, not a bookkeeper.
The user always sees the suggestion in the form and can override it.

DESIGN DECISION: Model failures are NOT silently turned into "Other".
They raise CategorySuggestionError so the UI can tell the user the
suggestion failed and leave the category field untouched.
"""

import json
from typing import Any, Optional

import google.generativeai as genai
from pydantic import BaseModel, Field, ValidationError

from finance_tracker.audit import AuditLogger
from finance_tracker.config import get_settings
from finance_tracker.models.transaction import Category


class CategorySuggestionError(Exception):
    """The suggestion could not be produced. Recoverable: retry or pick manually."""
    pass


class CategoryClassification(BaseModel):
    """Raw classifier output, before the confidence policy is applied."""

    suggested_category: str = Field(
        ...,
        description="Category name as returned by the model"
    )
    confidence: float = Field(
        ...,
        ge=0.0,
        le=1.0,
        description="Model's certainty, 0-1"
    )


CATEGORY_PROMPT = """You are a personal finance expert. Given a transaction description, you will suggest a spending category for the transaction.

Transaction Description: {description}

Consider common spending categories such as:
{categories}

Return the suggested category and a confidence level (0-1) indicating how certain you are of the suggestion.

Respond with ONLY a JSON object in this exact format:
{{"suggestedCategory": "category_name", "confidence": 0.8}}

The "suggestedCategory" field MUST be one of the categories listed above, or "Other"."""


def parse_classification(text: str) -> CategoryClassification:
    """
    Extract the JSON object from a model reply.

    Raises:
        CategorySuggestionError: If the reply holds no usable JSON object
    """
    start = text.find("{")
    end = text.rfind("}") + 1
    if start < 0 or end <= start:
        raise CategorySuggestionError("Model reply contained no JSON object")

    try:
        data = json.loads(text[start:end])
        return CategoryClassification(
            suggested_category=str(data.get("suggestedCategory", "")),
            confidence=float(data.get("confidence", 0.0)),
        )
    except (json.JSONDecodeError, ValidationError, TypeError, ValueError) as e:
        raise CategorySuggestionError(f"Unreadable model reply: {e}")


def apply_suggestion_policy(
    classification: CategoryClassification,
    threshold: float = 0.5,
) -> Category:
    """
    Use the model's category only when it is confident and valid.

    Confidence must be strictly above the threshold.
    """
    if classification.confidence > threshold:
        try:
            return Category(classification.suggested_category)
        except ValueError:
            pass
    return Category.OTHER


class CategorySuggestionAgent:
    """
    AI agent suggesting a category for a transaction description.

    RESPONSIBILITIES:
    - Classify free text into the fixed category list
    - Apply the confidence policy

    BOUNDARIES:
    - NEVER persists data
    - ALWAYS defers to the user, who can override the suggestion
    """

    def __init__(
        self,
        model: Optional[Any] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        """
        Args:
            model: Anything with an async `generate_content_async(prompt)`.
                   If None, a Gemini model is configured from settings.
            audit_logger: Records suggestions and model failures.
        """
        self._threshold = get_settings().app.suggestion_confidence_threshold
        self._audit = audit_logger or AuditLogger()
        self._model = model or self._configure_genai()

    @staticmethod
    def _configure_genai():
        """Configure Google Generative AI."""
        settings = get_settings().gemini
        genai.configure(api_key=settings.api_key)
        return genai.GenerativeModel(
            model_name=settings.model_name,
            generation_config={
                "temperature": settings.temperature,  # Low temperature for consistency
                "max_output_tokens": settings.max_tokens,
            }
        )

    async def classify(self, description: str) -> CategoryClassification:
        """
        Ask the model for a category and a confidence.

        Raises:
            CategorySuggestionError: If the model call fails or its reply is unusable
        """
        prompt = CATEGORY_PROMPT.format(
            description=description,
            categories="\n".join(f"- {cat.value}" for cat in Category),
        )

        try:
            response = await self._model.generate_content_async(prompt)
            text = response.text.strip()
        except Exception as e:
            await self._audit.log_external_service_error(
                service="gemini",
                error_message=str(e),
            )
            raise CategorySuggestionError("Failed to get suggestion from AI.") from e

        return parse_classification(text)

    async def suggest(self, description: str) -> Category:
        """
        Suggest a category for a transaction description.

        Returns the model's category if confident, else Category.OTHER.

        Raises:
            CategorySuggestionError: If the description is empty or the model fails
        """
        if not description or not description.strip():
            raise CategorySuggestionError(
                "Please enter a description to get a category suggestion."
            )

        classification = await self.classify(description.strip())
        category = apply_suggestion_policy(classification, self._threshold)

        await self._audit.log_category_suggested(
            category=category.value,
            confidence=classification.confidence,
            accepted=category.value == classification.suggested_category,
        )
        return category
