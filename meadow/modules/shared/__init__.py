"""Shared domain building blocks: exceptions, base classes, formulas, constants."""
