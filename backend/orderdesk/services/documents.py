"""Local receipt rendering (PDF) for orders staged offline, via WeasyPrint + Jinja2."""

import json
import logging
import pathlib
from datetime import datetime, timezone

from jinja2 import Environment, FileSystemLoader

from orderdesk.config import settings
from orderdesk.schemas.order import OrderPayload

logger = logging.getLogger(__name__)

_TEMPLATE_DIR = pathlib.Path(__file__).parent / "document_templates"
_jinja_env = Environment(
    loader=FileSystemLoader(str(_TEMPLATE_DIR)),
    autoescape=True,
)


def _theme_rows(order: OrderPayload) -> list[dict]:
    try:
        themes = json.loads(order.theme_selections or "[]")
    except (TypeError, ValueError):
        return []
    return [t for t in themes if isinstance(t, dict)] if isinstance(themes, list) else []


class OrderDocumentRenderer:
    """Renders the receipt a sales rep can hand over while fully offline."""

    template_name = "offline_receipt.html"

    def render_html(self, order: OrderPayload) -> str:
        template = _jinja_env.get_template(self.template_name)
        return template.render(
            order=order,
            themes=_theme_rows(order),
            app_name=settings.APP_NAME,
            app_version=settings.APP_VERSION,
            generated_at=datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M UTC"),
        )

    def render_pdf(self, order: OrderPayload) -> bytes:
        """Blocking; callers offload it to a thread."""
        # Imported lazily: WeasyPrint loads native Pango/Cairo libraries
        from weasyprint import HTML

        html_str = self.render_html(order)
        pdf = HTML(string=html_str).write_pdf()
        logger.debug("Rendered %d byte receipt for %s", len(pdf), order.order_code)
        return pdf
