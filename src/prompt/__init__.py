"""Prompt rendering.

Templates are bundled under `templates/` and rendered into a single system prompt per request.
"""
