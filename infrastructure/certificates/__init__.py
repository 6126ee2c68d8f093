"""Certificate renderers."""
from .html_renderer import HtmlCertificateRenderer

__all__ = ["HtmlCertificateRenderer"]
