#!/usr/bin/env python3
"""Tests for the provider price table and cost estimation."""

import math
import unittest

import pytest

from showscribe.providers.pricing import (
    PRICE_TABLE,
    ModelPricing,
    calculate_chat_cost,
    estimate_chat_tokens,
    get_pricing,
)

pytestmark = [pytest.mark.unit]


class TestPricing(unittest.TestCase):
    def test_known_models(self):
        self.assertTrue(get_pricing("gpt-4o").is_chat)
        self.assertFalse(get_pricing("whisper-1").is_chat)
        self.assertEqual(get_pricing("whisper-1").flat_cost_per_call, 0.006)

    def test_unknown_model_raises(self):
        with self.assertRaises(KeyError):
            get_pricing("gpt-unknown")

    def test_chat_cost(self):
        pricing = ModelPricing(input_cost_per_1m_tokens=2.50, output_cost_per_1m_tokens=10.00)
        # 1M input + 100k output tokens: $2.50 + $1.00
        self.assertAlmostEqual(calculate_chat_cost(pricing, 1_000_000, 100_000), 3.50)

    def test_gpt4o_rates(self):
        cost = calculate_chat_cost(PRICE_TABLE["gpt-4o"], 1000, 300)
        self.assertAlmostEqual(cost, 0.0025 + 0.003)


class TestTokenEstimation(unittest.TestCase):
    def test_estimate_from_serialized_length(self):
        messages = [{"role": "user", "content": "x" * 400}]
        prompt_tokens, completion_tokens = estimate_chat_tokens(messages)
        # serialized JSON is a bit longer than the content itself
        self.assertGreater(prompt_tokens, 100)
        self.assertEqual(completion_tokens, math.ceil(prompt_tokens * 0.3))

    def test_longer_transcripts_estimate_more(self):
        short = estimate_chat_tokens([{"role": "user", "content": "a" * 100}])
        long = estimate_chat_tokens([{"role": "user", "content": "a" * 10000}])
        self.assertGreater(long[0], short[0])


if __name__ == "__main__":
    unittest.main()
