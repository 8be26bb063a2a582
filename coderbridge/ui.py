"""
Prompt and output helpers for turning agent text into a WebView UI.

``build_prompt`` fills a task template around the agent's output before it is
sent to ``Engine.generate``; ``sanitize_html`` makes sure whatever comes back
can be loaded as an HTML page.
"""

import html

UI_MAX_TOKENS = 1024

AGENT_TEXT_PLACEHOLDER = "{{agent_text}}"
EMPTY_AGENT_TEXT = "No agent output provided."

USER_PROMPT_TEMPLATE = """TASK: Turn the agent output into a production-quality, mobile-first GUI for a WebView.

# runtime_config
{
  "pattern_hint": "auto",
  "interaction_style": "tap",
  "javascript": "minimal",
  "theme": { "mode": "light", "brand_color": "#0EA5E9" },
  "i18n_locale": "en-IN",
  "host_actions": ["open_link","call_contact","pay_bill","navigate","retry"]
}

# agent_text
{{agent_text}}

# constraints
- Output only ONE ```html code block.
- Use only inline CSS/SVG; no external assets.
- Put data-action and, when helpful, data-payload JSON on all interactive elements."""

MINIMAL_PROMPT_TEMPLATE = """Produce a mobile-friendly HTML UI inside a single ```html code block.

# agent_text
{{agent_text}}"""

_FALLBACK_PAGE = """<html>
<head>
    <meta charset="utf-8" />
    <style>
        body {{ font-family: sans-serif; padding: 16px; background-color: #FAFAFA; }}
        pre {{ white-space: pre-wrap; word-break: break-word; }}
    </style>
</head>
<body>
    <pre>{body}</pre>
</body>
</html>"""


def build_prompt(agent_text: str, minimal: bool = False) -> str:
    """Fill the UI task template with ``agent_text`` (blank text gets a placeholder)."""
    text = agent_text if agent_text and agent_text.strip() else EMPTY_AGENT_TEXT
    template = MINIMAL_PROMPT_TEMPLATE if minimal else USER_PROMPT_TEMPLATE
    return template.replace(AGENT_TEXT_PLACEHOLDER, text)


def sanitize_html(output: str) -> str:
    """
    Return ``output`` unchanged if it looks like an HTML document, otherwise
    wrap it, escaped, in a minimal page.
    """
    if "<html" in output.lower():
        return output
    return _FALLBACK_PAGE.format(body=html.escape(output, quote=False))
