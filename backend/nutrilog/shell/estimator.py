"""Nutrition Estimator - Calorie/protein estimates from free text via OpenAI.

The raw model response is passed through the core clamp before it is
returned, so callers always get non-negative, rounded values.
"""

import json
import logging
import math
import time

from openai import APIConnectionError, APITimeoutError, AsyncOpenAI, OpenAIError, RateLimitError
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ..core.errors import InvalidInputError
from ..core.estimates import clamp_estimate
from ..core.models import NutritionEstimate


logger = logging.getLogger(__name__)


SYSTEM_PROMPT = "You are a helpful nutrition expert. Always respond with valid JSON only."

ESTIMATE_PROMPT = """You are a nutrition expert. Estimate the calories and protein content for the following food description.

Food description: "{description}"{quantity}

Provide your response in JSON format with the following structure:
{{
  "calories": <number>,
  "protein": <number in grams>,
  "breakdown": "<brief explanation of your estimation>"
}}

Be accurate and realistic. If the description is vague, make a reasonable estimate based on typical serving sizes.
If multiple items are mentioned, estimate the total for all items combined.

Only respond with valid JSON, no additional text."""


class EstimationError(Exception):
    """The estimation service is unavailable or returned unusable output."""


def build_prompt(description: str, grams: float | None = None, cooked: bool | None = None) -> str:
    """Render the estimation prompt, with quantity hints when given."""
    hints = []
    if grams is not None:
        hints.append(f"Quantity: {grams:g} grams")
    if cooked is not None:
        hints.append("Weighed: cooked" if cooked else "Weighed: raw")
    quantity = "".join(f"\n{hint}" for hint in hints)
    return ESTIMATE_PROMPT.format(description=description, quantity=quantity)


class NutritionEstimator:
    """OpenAI chat client that estimates nutrition for a food description.

    Example:
        >>> estimator = NutritionEstimator(api_key="sk-...")
        >>> estimate = await estimator.estimate("2 eggs and toast")
        >>> estimate.calories, estimate.protein
    """

    def __init__(
        self,
        api_key: str | None,
        model: str = "gpt-4o-mini",
        temperature: float = 0.3,
        client: AsyncOpenAI | None = None,
    ) -> None:
        """Initialize estimator.

        Args:
            api_key: OpenAI API key; without one every estimate fails
            model: Chat model name
            temperature: Sampling temperature
            client: Pre-built client (mainly for tests)
        """
        self._model = model
        self._temperature = temperature
        self._client = client
        if self._client is None and api_key:
            self._client = AsyncOpenAI(api_key=api_key)

    @property
    def configured(self) -> bool:
        return self._client is not None

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=8),
        retry=retry_if_exception_type((APIConnectionError, APITimeoutError, RateLimitError)),
        reraise=True,
    )
    async def _complete(self, prompt: str) -> str | None:
        completion = await self._client.chat.completions.create(
            model=self._model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            temperature=self._temperature,
            response_format={"type": "json_object"},
        )
        if not completion.choices:
            return None
        return completion.choices[0].message.content

    async def estimate(
        self,
        description: str,
        grams: float | None = None,
        cooked: bool | None = None,
    ) -> NutritionEstimate:
        """Estimate calories and protein for a food description.

        Args:
            description: Free text such as "bowl of oatmeal with banana"
            grams: Optional weight of the portion
            cooked: Optional flag saying whether the weight is cooked or raw

        Returns:
            NutritionEstimate with clamped values

        Raises:
            InvalidInputError: If the description is empty or grams is not positive
            EstimationError: If the service is unconfigured, fails, or returns bad JSON
        """
        if not isinstance(description, str) or not description.strip():
            raise InvalidInputError("Food description is required")
        if grams is not None and not (math.isfinite(grams) and grams > 0):
            raise InvalidInputError("grams must be a positive number")
        if not self.configured:
            raise EstimationError("OpenAI API key is not configured")

        start_time = time.time()
        try:
            content = await self._complete(build_prompt(description.strip(), grams, cooked))
        except OpenAIError as e:
            logger.error("Estimation request failed: %s", str(e))
            raise EstimationError("Failed to estimate nutrition") from e

        if not content:
            raise EstimationError("No response from OpenAI")

        try:
            raw = json.loads(content)
        except json.JSONDecodeError as e:
            logger.error("Estimation response was not JSON: %s", content[:200])
            raise EstimationError("Estimation response was not valid JSON") from e
        if not isinstance(raw, dict):
            raise EstimationError("Estimation response was not a JSON object")

        estimate = clamp_estimate(raw)
        logger.info(
            "Estimated %d cal / %.1fg protein in %d ms",
            estimate.calories,
            estimate.protein,
            int((time.time() - start_time) * 1000),
        )
        return estimate
