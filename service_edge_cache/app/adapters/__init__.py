"""
Adapters for services outside the policy engine.
"""
