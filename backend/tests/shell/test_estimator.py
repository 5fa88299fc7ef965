"""Unit tests for the nutrition estimator with a mocked OpenAI client."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from openai import OpenAIError

from nutrilog.core.errors import InvalidInputError
from nutrilog.shell.estimator import EstimationError, NutritionEstimator, build_prompt


def completion(content: str | None) -> MagicMock:
    message = MagicMock()
    message.content = content
    choice = MagicMock()
    choice.message = message
    result = MagicMock()
    result.choices = [choice]
    return result


def make_estimator(content: str | None = None, error: Exception | None = None):
    client = AsyncMock()
    if error is not None:
        client.chat.completions.create.side_effect = error
    else:
        client.chat.completions.create.return_value = completion(content)
    return NutritionEstimator(api_key=None, client=client), client


class TestBuildPrompt:
    """Tests for build_prompt."""

    def test_description_only(self):
        prompt = build_prompt("two eggs")
        assert 'Food description: "two eggs"' in prompt
        assert "Quantity" not in prompt

    def test_quantity_hints(self):
        """Grams and cooked flag are added to the prompt."""
        prompt = build_prompt("rice", grams=150, cooked=True)
        assert "Quantity: 150 grams" in prompt
        assert "Weighed: cooked" in prompt

    def test_raw_hint(self):
        assert "Weighed: raw" in build_prompt("chicken breast", cooked=False)


class TestEstimate:
    """Tests for NutritionEstimator.estimate."""

    def test_parses_and_clamps(self):
        """A JSON response is parsed and rounded."""
        estimator, client = make_estimator(
            '{"calories": 155.6, "protein": 12.64, "breakdown": "2 large eggs"}'
        )
        estimate = asyncio.run(estimator.estimate("two eggs"))

        assert estimate.calories == 156
        assert estimate.protein == 12.6
        assert estimate.breakdown == "2 large eggs"

        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["response_format"] == {"type": "json_object"}

    def test_negative_values_clamped(self):
        """Noisy model output is clamped to zero, not rejected."""
        estimator, _ = make_estimator('{"calories": -20, "protein": -1}')
        estimate = asyncio.run(estimator.estimate("water"))
        assert (estimate.calories, estimate.protein) == (0, 0)

    def test_empty_description(self):
        estimator, client = make_estimator("{}")
        with pytest.raises(InvalidInputError):
            asyncio.run(estimator.estimate("   "))
        client.chat.completions.create.assert_not_called()

    def test_non_positive_grams(self):
        estimator, _ = make_estimator("{}")
        with pytest.raises(InvalidInputError):
            asyncio.run(estimator.estimate("rice", grams=0))

    def test_unconfigured(self):
        """Without an API key estimation fails with EstimationError."""
        estimator = NutritionEstimator(api_key=None)
        assert estimator.configured is False
        with pytest.raises(EstimationError, match="not configured"):
            asyncio.run(estimator.estimate("toast"))

    def test_invalid_json(self):
        estimator, _ = make_estimator("calories: lots")
        with pytest.raises(EstimationError):
            asyncio.run(estimator.estimate("toast"))

    def test_non_object_json(self):
        estimator, _ = make_estimator("[1, 2]")
        with pytest.raises(EstimationError):
            asyncio.run(estimator.estimate("toast"))

    def test_empty_response(self):
        estimator, _ = make_estimator(None)
        with pytest.raises(EstimationError, match="No response"):
            asyncio.run(estimator.estimate("toast"))

    def test_api_error_wrapped(self):
        """SDK errors surface as EstimationError."""
        estimator, _ = make_estimator(error=OpenAIError("boom"))
        with pytest.raises(EstimationError):
            asyncio.run(estimator.estimate("toast"))
