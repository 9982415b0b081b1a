"""
Shared utilities: errors, stream events and the LLM client.
"""
