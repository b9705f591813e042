"""Utilities for preparing HTML snippets before rendering in Streamlit."""
import html
from textwrap import dedent


def html_block(template: str) -> str:
    """
    Normalize multi-line HTML so Streamlit doesn't treat it as Markdown code.

    Lines indented by four or more spaces would render as code blocks, so
    every line is dedented and left-stripped.
    """
    lines = dedent(template).splitlines()
    return "\n".join(line.lstrip() for line in lines).strip()


def escape(value: object) -> str:
    """Escape user-supplied text before embedding it in markup."""
    return html.escape(str(value), quote=True)
