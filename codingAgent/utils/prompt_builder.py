"""Prompt template builder for codingAgent.

Templates are Jinja2 files under codingAgent/config/prompt_templates, rendered
in a sandboxed environment.
"""
from functools import lru_cache
from pathlib import Path

from jinja2.sandbox import SandboxedEnvironment

from codingAgent.config.project_root import get_config_dir


class PromptBuilder:
    """Loads and renders the packaged prompt templates."""

    TEMPLATE_DIR = "prompt_templates"
    CLASSIFIER_TEMPLATE = "classifier.jinja2"
    DELEGATE_SYNTHESIS_TEMPLATE = "delegate_synthesis.jinja2"
    CORE_MANDATES_TEMPLATE = "core_mandates.jinja2"
    WORKFLOW_WRAPPER_TEMPLATE = "workflow_wrapper.jinja2"
    PARALLEL_EDIT_TEMPLATE = "parallel_edit.jinja2"
    SELECT_MEMORIES_TEMPLATE = "select_memories.jinja2"

    @staticmethod
    @lru_cache(maxsize=None)
    def _load_template(template_name: str) -> str:
        full_path: Path = get_config_dir() / PromptBuilder.TEMPLATE_DIR / template_name
        return full_path.read_text(encoding="utf-8")

    @staticmethod
    def _render_template(template: str, params: dict) -> str:
        env = SandboxedEnvironment(keep_trailing_newline=False)
        return env.from_string(template).render(**params).strip()

    @classmethod
    def render(cls, template_name: str, **params) -> str:
        """Render a packaged template by file name."""
        return cls._render_template(cls._load_template(template_name), params)

    @classmethod
    def load_classifier_prompt(cls, **params) -> str:
        return cls.render(cls.CLASSIFIER_TEMPLATE, **params)

    @classmethod
    def load_delegate_synthesis_prompt(cls, **params) -> str:
        return cls.render(cls.DELEGATE_SYNTHESIS_TEMPLATE, **params)

    @classmethod
    def load_core_mandates(cls) -> str:
        return cls.render(cls.CORE_MANDATES_TEMPLATE)

    @classmethod
    def load_workflow_wrapper(cls, **params) -> str:
        return cls.render(cls.WORKFLOW_WRAPPER_TEMPLATE, **params)

    @classmethod
    def load_parallel_edit_prompt(cls, **params) -> str:
        return cls.render(cls.PARALLEL_EDIT_TEMPLATE, **params)

    @classmethod
    def load_select_memories_prompt(cls, **params) -> str:
        return cls.render(cls.SELECT_MEMORIES_TEMPLATE, **params)
