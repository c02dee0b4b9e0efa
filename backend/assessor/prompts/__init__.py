"""Prompt templates bundled with the pipeline."""

from assessor.prompts.library import (
    PROMPT_VERSION,
    PromptSet,
    PromptTemplateError,
    load_template,
    method_guides_text,
    section,
)

__all__ = ["PROMPT_VERSION", "PromptSet", "PromptTemplateError", "load_template", "method_guides_text", "section"]
