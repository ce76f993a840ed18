"""Message template loading and rendering."""

from pathlib import Path

import yaml


_templates: dict | None = None


def load_templates() -> dict:
    """
    Load message templates from YAML file.

    Caches templates after first load.
    """
    global _templates
    if _templates is not None:
        return _templates

    yaml_path = Path(__file__).parent / "messages.yaml"
    with open(yaml_path, encoding="utf-8") as f:
        _templates = yaml.safe_load(f)

    return _templates


def render_message(template: str, context: dict) -> str:
    """
    Render a message template with context variables.

    Args:
        template: String with {variable} placeholders
        context: Dict of variable names to values

    Returns:
        Rendered string

    Raises:
        KeyError: If a required variable is missing from context
    """
    return template.format(**context).strip()


def get_message(message_type: str, context: dict, channel: str = "whatsapp") -> str:
    """
    Get and render a message for a specific type and channel.

    Args:
        message_type: e.g., "slot_reminder", "broadcast", "daily_devotional"
        context: Variables to substitute
        channel: Template variant, currently only "whatsapp"

    Returns:
        Rendered message string
    """
    templates = load_templates()
    template = templates[message_type][channel]
    return render_message(template, context)


def get_prompt(prompt_name: str, context: dict) -> str:
    """Render one of the AI prompts, e.g. "devotional" or "broadcast_summary"."""
    templates = load_templates()
    return render_message(templates["prompts"][prompt_name], context)


def get_fallback_pool() -> list[str]:
    return list(load_templates()["fallback_devotionals"])


def get_weekly_themes() -> list[str]:
    return list(load_templates()["weekly_themes"])
