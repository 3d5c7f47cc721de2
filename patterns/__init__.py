"""Reusable patterns shared by marketplace verticals.

Each module is a self-contained pattern: a pure-function rules engine,
an async repository layer, and frozen-dataclass domain configuration.
"""
