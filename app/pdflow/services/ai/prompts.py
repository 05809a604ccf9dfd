"""
Prompt construction for per-page extraction.

A shared system prompt plus one instruction per output format, looked up by
format rather than branched on.
"""

# Handle both package imports and standalone imports
try:
    from ...models import OutputFormat
except ImportError:
    from models import OutputFormat

from ..exceptions import ValidationError

PAGE_SYSTEM_PROMPT = """You are a meticulous document transcription engine.
You receive the image of a single page of a PDF document and convert it into structured text.

## Rules:
1. Transcribe every piece of visible text in natural reading order. Do not summarize.
2. Preserve the document structure: headings, paragraphs, lists, tables, captions, footnotes.
3. Never invent content. If something is illegible, mark it as [illegible].
4. Describe figures, charts and photos briefly where they appear.
5. Return ONLY the requested output, with no commentary and no surrounding code fences."""


FORMAT_INSTRUCTIONS: dict[OutputFormat, str] = {
    OutputFormat.MARKDOWN: (
        "Output GitHub-flavored Markdown. Use #/##/### for headings, pipe tables for "
        "tabular data, and > blockquotes for callouts."
    ),
    OutputFormat.MDX: (
        "Output MDX: Markdown that may contain JSX components. Use plain Markdown for "
        "text and wrap figures in <Figure caption=\"...\" /> components."
    ),
    OutputFormat.JSON: (
        "Output a single JSON object with keys \"title\", \"sections\" (list of objects "
        "with \"heading\" and \"content\"), \"tables\" (list of row arrays) and "
        "\"images\" (list of short descriptions). The output must parse as JSON."
    ),
    OutputFormat.XML: (
        "Output a well-formed XML fragment rooted at <page>, with <section>, <heading>, "
        "<paragraph>, <table>/<row>/<cell> and <image> elements."
    ),
    OutputFormat.YAML: (
        "Output a YAML mapping with keys title, sections (list of heading/content "
        "mappings), tables and images. The output must parse as YAML."
    ),
    OutputFormat.HTML: (
        "Output a semantic HTML fragment (no <html> or <body> tags) using <h1>-<h3>, "
        "<p>, <ul>/<ol>, <table> and <figure> elements."
    ),
    OutputFormat.CSV: (
        "Output CSV. Put every table on the page into CSV rows with a header row; "
        "separate multiple tables with a blank line. Quote fields containing commas."
    ),
}


def build_page_prompt(page_number: int, output_format: OutputFormat | str) -> str:
    """
    Build the user prompt for one page.

    Args:
        page_number: 1-based page number, included for context.
        output_format: Target format of the page output.

    Returns:
        The prompt text.

    Raises:
        ValidationError: If the format has no instruction.
    """
    try:
        fmt = OutputFormat(output_format)
        instruction = FORMAT_INSTRUCTIONS[fmt]
    except (ValueError, KeyError) as e:
        raise ValidationError(f"Unsupported output format: {output_format}") from e

    return f"""Convert page {page_number} of this document.

## Output Format: {fmt.value}
{instruction}"""
