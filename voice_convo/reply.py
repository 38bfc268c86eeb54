"""Reply generation for call mode."""

from __future__ import annotations

DEFAULT_TEMPLATE = "Danke, I understand you ask that {text}"


class TemplateReplyGenerator:
    """
    Deterministic templated reply. Swap for a dialogue engine later without
    touching the controller.

    Usage:
        >>> TemplateReplyGenerator().generate("turn on the light")
        'Danke, I understand you ask that turn on the light'
    """

    def __init__(self, template: str = DEFAULT_TEMPLATE) -> None:
        if "{text}" not in template:
            raise ValueError("Reply template must contain a '{text}' placeholder.")
        self.template = template

    def generate(self, user_text: str) -> str:
        # str.replace rather than format() so braces in user text are inert
        return self.template.replace("{text}", " ".join(user_text.split()))
