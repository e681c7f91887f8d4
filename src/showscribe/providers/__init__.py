"""Provider clients and price table.

The OpenAI client lives in ``providers.openai``; import it from there so that
the price table can be used without loading the SDK.
"""
