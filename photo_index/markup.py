"""
Markdown rendering for album and photo descriptions.
"""
import markdown

MARKDOWN_EXTENSIONS = ["extra", "sane_lists"]


def render_markdown(text: str) -> str:
    # markdown.markdown builds a fresh Markdown instance per call, so this is
    # safe to use from the worker pool.
    return markdown.markdown(text, extensions=MARKDOWN_EXTENSIONS)
