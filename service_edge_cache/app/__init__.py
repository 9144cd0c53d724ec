"""
Edge cache policy application package.
"""
