"""
Transaction Categorization Agents

DESIGN DECISION: The LLM is a black-box collaborator behind a small
abstract interface:

    categorize(transactions, categories, language)
        -> {transaction identity: existing category id | new name | None}

The engine owns everything else (filtering, batching, reconciling new
category names, persisting assignments). Swapping providers means
writing one new CategorizationAgent subclass.

BOUNDARIES:
- CAN: pick an existing category id or propose a new category name
- CAN: answer null when a transaction is ambiguous
- CANNOT: persist anything
- CANNOT: see transactions outside the batch it is given

A batch either yields a parsed mapping or fails as a whole with
InferenceBatchFailure; the engine skips failed batches.
"""

import json
from abc import ABC, abstractmethod
from typing import Any, Optional, Sequence

import google.generativeai as genai
import structlog
from tenacity import retry, stop_after_attempt, wait_exponential

from finance_tracker.config import get_settings
from finance_tracker.models.category import Category


logger = structlog.get_logger("finance_tracker.agents")


LANGUAGE_NAMES = {
    "de": "German (Deutsch)",
    "en": "English",
}


class InferenceBatchFailure(Exception):
    """One categorization batch could not be inferred or parsed."""

    def __init__(self, message: str, raw_response: Optional[str] = None):
        self.message = message
        self.raw_response = raw_response
        super().__init__(message)


class CategorizationAgent(ABC):
    """Abstract categorization collaborator."""

    @abstractmethod
    async def categorize(
        self,
        transactions: Sequence[dict[str, Any]],
        categories: Sequence[Category],
        language: str,
    ) -> dict[str, Optional[str]]:
        """
        Categorize one batch of transaction summaries.

        Args:
            transactions: Summaries with keys id, creditor, debtor, amount,
                          reference, raw_reference (optional) and date
            categories: Current category catalog
            language: "de" or "en", the language for new category names

        Returns:
            Mapping of transaction id to category id, new category name or None

        Raises:
            InferenceBatchFailure: If the batch fails as a whole
        """
        pass


def build_categorization_prompt(
    transactions: Sequence[dict[str, Any]],
    categories: Sequence[Category],
    language: str,
) -> str:
    """Render the categorization prompt for one batch."""
    category_list = [{"id": c.id, "name": c.name} for c in categories]
    language_name = LANGUAGE_NAMES.get(language, LANGUAGE_NAMES["en"])

    return f"""You are an intelligent financial assistant.
Your goal is to categorize bank transactions into one of the provided categories.

Here are the available transaction categories:
{json.dumps(category_list, ensure_ascii=False)}

Here is a list of uncategorized transactions:
{json.dumps(list(transactions), ensure_ascii=False, default=str)}

INSTRUCTIONS:
1. Analyze each transaction (creditor, debtor, amount, reference).
2. Assign the MOST APPROPRIATE category ID from the available list.
3. If a transaction clearly fits a category (e.g. a supermarket -> Groceries, a fuel station -> Mobility), ASSIGN IT.
4. If NO existing category fits but the transaction clearly belongs to a common category, you may suggest a NEW category name.
   Keep the category list COMPACT: prefer broad categories such as "Shopping", "Mobility", "Living" or "Lifestyle"
   over granular ones like "Coffee" or "Gym". Ideally the TOTAL number of categories stays around 6-7.
5. If a transaction is ambiguous or fits no category (existing or new), assign null.
6. Return a STRICT valid JSON object whose keys are transaction IDs and whose values are either:
   - An existing category ID (a string starting with "cat_")
   - A NEW category name (human readable). The new category name MUST be in {language_name}.
   - null

Example output format:
{{
  "tx_123": "cat_456",
  "tx_789": "New Category Name",
  "tx_000": null
}}
"""


def parse_assignment_response(text: str) -> dict[str, Optional[str]]:
    """
    Parse the model's answer into an assignment mapping.

    Markdown code fences are stripped. Values that are not strings
    are treated as "no category".

    Raises:
        InferenceBatchFailure: If the text is not a JSON object
    """
    cleaned = text.replace("```json", "").replace("```", "").strip()
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise InferenceBatchFailure(
            f"Unparseable categorization response: {e}",
            raw_response=text,
        ) from e

    if not isinstance(data, dict):
        raise InferenceBatchFailure(
            "Categorization response is not a JSON object",
            raw_response=text,
        )

    return {
        str(tx_id): value.strip() if isinstance(value, str) and value.strip() else None
        for tx_id, value in data.items()
    }


class GeminiCategorizationAgent(CategorizationAgent):
    """
    Categorization backed by Google Gemini.

    Transient API errors are retried with exponential backoff; after
    the last attempt the batch fails with InferenceBatchFailure.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model_name: Optional[str] = None,
    ):
        self._settings = get_settings().gemini
        self._configure_genai(
            api_key or self._settings.api_key,
            model_name or self._settings.model_name,
        )
        self._generate = retry(
            stop=stop_after_attempt(self._settings.max_attempts),
            wait=wait_exponential(multiplier=1, min=2, max=10),
            reraise=True,
        )(self._generate_once)

    def _configure_genai(self, api_key: str, model_name: str):
        """Configure Google Generative AI."""
        genai.configure(api_key=api_key)
        self._model = genai.GenerativeModel(
            model_name=model_name,
            generation_config={
                "temperature": self._settings.temperature,
                "max_output_tokens": self._settings.max_output_tokens,
            }
        )

    async def _generate_once(self, prompt: str) -> str:
        response = await self._model.generate_content_async(prompt)
        return response.text or ""

    async def categorize(
        self,
        transactions: Sequence[dict[str, Any]],
        categories: Sequence[Category],
        language: str,
    ) -> dict[str, Optional[str]]:
        prompt = build_categorization_prompt(transactions, categories, language)

        try:
            text = await self._generate(prompt)
        except Exception as e:
            logger.warning(
                "categorization_request_failed",
                batch_size=len(transactions),
                error=str(e),
            )
            raise InferenceBatchFailure(str(e)) from e

        if not text.strip():
            return {}

        return parse_assignment_response(text)
