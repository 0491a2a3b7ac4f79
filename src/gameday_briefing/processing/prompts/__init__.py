"""Prompt templates for language-model calls."""
