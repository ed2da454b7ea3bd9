"""
Example programs and the argument/configuration scaffolding they share.
"""
