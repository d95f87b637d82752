"""Offline receipt template."""

import json

from conftest import staged
from orderdesk.schemas.order import OrderPayload
from orderdesk.services.documents import OrderDocumentRenderer


def test_receipt_html_carries_order_details():
    order = OrderPayload.model_validate(
        staged(
            "OFF-LX2A",
            themeSelections=json.dumps(
                [{"theme": "Polar", "deliveryDate": "2026-04-01"}, "ignored"]
            ),
        )
    )

    html = OrderDocumentRenderer().render_html(order)

    assert "Bon de commande OFF-LX2A" in html
    assert "p.henry@librairie-du-port.fr" in html
    assert "Polar (livraison 2026-04-01)" in html
    assert "Signé à Lille" in html
    assert order.signature in html


def test_receipt_html_escapes_user_text():
    order = OrderPayload.model_validate(staged("OFF-1", remarks="<script>x</script>"))

    html = OrderDocumentRenderer().render_html(order)

    assert "<script>x</script>" not in html
    assert "&lt;script&gt;" in html


def test_malformed_theme_selections_render_without_themes():
    order = OrderPayload.model_validate(staged("OFF-1", themeSelections="not json"))

    html = OrderDocumentRenderer().render_html(order)

    assert "Thème" not in html
