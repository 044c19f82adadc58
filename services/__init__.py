# services/__init__.py
"""services package initializer: one subpackage per deployable QMS service."""

__all__ = ["assessment", "quiz"]
