"""
PDFlow backend application.

A FastAPI service converting PDF documents into Markdown, JSON, XML, YAML,
HTML or CSV by transcribing each rasterized page with a multimodal model
(OpenAI GPT-4.1) and aggregating the pages into one document.
"""

__version__ = "1.0.0"
