"""Prompt templates for the reasoning service."""
