"""
Domain layer package housing repository contracts and the key-space model.
"""
