"""
Policy components: classification, cache keys, purge tags, directives and
canonical content types. All of them are synchronous and side-effect free
apart from the bounded tag memo.
"""
