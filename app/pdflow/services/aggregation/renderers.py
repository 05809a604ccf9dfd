"""
Renderers turning ordered page extractions into one document.

One renderer per aggregation format, registered in ``RENDERERS``. Adding a
format means adding a renderer class and registering it.
"""

import html
import json
from abc import ABC, abstractmethod
from datetime import datetime

# Handle both package imports and standalone imports
try:
    from ...models import OutputFormat, PageExtraction
except ImportError:
    from models import OutputFormat, PageExtraction

DOCUMENT_TITLE = "Document Content"


class PageRenderer(ABC):
    """Renders a list of pages, already sorted by page number."""

    format: OutputFormat

    @abstractmethod
    def render(self, pages: list[PageExtraction], generated_at: datetime) -> str:
        """Return the combined document."""


class MarkdownRenderer(PageRenderer):
    format = OutputFormat.MARKDOWN

    def render(self, pages: list[PageExtraction], generated_at: datetime) -> str:
        parts = [
            f"# {DOCUMENT_TITLE}\n\n",
            f"*Generated on {generated_at.strftime('%Y-%m-%d')}*\n\n",
            "---\n\n",
        ]
        for page in pages:
            parts.append(f"## Page {page.page}\n\n")
            if page.format == OutputFormat.MARKDOWN:
                parts.append(f"{page.text}\n\n")
            else:
                parts.append(f"```{page.format.value}\n{page.text}\n```\n\n")

            if page.images:
                parts.append("### Images\n\n")
                for index, image in enumerate(page.images, start=1):
                    parts.append(f"{index}. {image}\n")
                parts.append("\n")

            parts.append("---\n\n")
        return "".join(parts)


class JsonRenderer(PageRenderer):
    format = OutputFormat.JSON

    def render(self, pages: list[PageExtraction], generated_at: datetime) -> str:
        document = {
            "metadata": {
                "title": DOCUMENT_TITLE,
                "generatedAt": generated_at.isoformat(),
                "totalPages": len(pages),
            },
            "pages": [
                {
                    "pageNumber": page.page,
                    "format": page.format.value,
                    "content": page.text,
                    "images": list(page.images),
                }
                for page in pages
            ],
        }
        return json.dumps(document, indent=2, ensure_ascii=False)


def _cdata(text: str) -> str:
    # "]]>" would close the section early; split it across two sections.
    return "<![CDATA[" + text.replace("]]>", "]]]]><![CDATA[>") + "]]>"


class XmlRenderer(PageRenderer):
    format = OutputFormat.XML

    def render(self, pages: list[PageExtraction], generated_at: datetime) -> str:
        lines = [
            '<?xml version="1.0" encoding="UTF-8"?>',
            "<document>",
            "  <metadata>",
            f"    <title>{DOCUMENT_TITLE}</title>",
            f"    <generatedAt>{generated_at.isoformat()}</generatedAt>",
            f"    <totalPages>{len(pages)}</totalPages>",
            "  </metadata>",
            "  <pages>",
        ]
        for page in pages:
            lines.append(f'    <page number="{page.page}" format="{page.format.value}">')
            lines.append(f"      <content>{_cdata(page.text)}</content>")
            if page.images:
                lines.append("      <images>")
                lines.extend(f"        <image>{_cdata(image)}</image>" for image in page.images)
                lines.append("      </images>")
            lines.append("    </page>")
        lines.extend(["  </pages>", "</document>"])
        return "\n".join(lines) + "\n"


HTML_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{title}</title>
    <style>
        body {{ font-family: Arial, sans-serif; max-width: 800px; margin: 0 auto; padding: 20px; }}
        .page {{ border-bottom: 1px solid #ccc; padding: 20px 0; }}
        .page:last-child {{ border-bottom: none; }}
        .page-header {{ font-size: 18px; font-weight: bold; margin-bottom: 10px; }}
        .content {{ line-height: 1.6; white-space: pre-wrap; }}
        .images {{ margin-top: 15px; }}
        .image {{ font-style: italic; color: #666; }}
        pre {{ background: #f5f5f5; padding: 10px; overflow-x: auto; }}
        .metadata {{ background: #f9f9f9; padding: 15px; border-radius: 5px; margin-bottom: 20px; }}
    </style>
</head>
<body>
    <div class="metadata">
        <h1>{title}</h1>
        <p>Generated on: {generated}</p>
        <p>Total Pages: {total_pages}</p>
    </div>
{pages}
</body>
</html>
"""


class HtmlRenderer(PageRenderer):
    format = OutputFormat.HTML

    def _render_page(self, page: PageExtraction) -> str:
        text = html.escape(page.text)
        body = text if page.format == OutputFormat.MARKDOWN else f"<pre>{text}</pre>"
        block = [
            '    <div class="page">',
            f'        <div class="page-header">Page {page.page}</div>',
            f'        <div class="content">{body}</div>',
        ]
        if page.images:
            block.append('        <div class="images">')
            block.append("            <strong>Images:</strong>")
            block.extend(
                f'            <div class="image">{html.escape(image)}</div>' for image in page.images
            )
            block.append("        </div>")
        block.append("    </div>")
        return "\n".join(block)

    def render(self, pages: list[PageExtraction], generated_at: datetime) -> str:
        return HTML_TEMPLATE.format(
            title=DOCUMENT_TITLE,
            generated=generated_at.strftime("%Y-%m-%d"),
            total_pages=len(pages),
            pages="\n".join(self._render_page(page) for page in pages),
        )


RENDERERS: dict[OutputFormat, PageRenderer] = {}


def register_renderer(renderer: PageRenderer) -> PageRenderer:
    """Register (or replace) the renderer for ``renderer.format``."""
    RENDERERS[renderer.format] = renderer
    return renderer


for _renderer in (MarkdownRenderer(), JsonRenderer(), XmlRenderer(), HtmlRenderer()):
    register_renderer(_renderer)
