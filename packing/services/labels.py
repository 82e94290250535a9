# packing/services/labels.py
"""
Box label payloads handed to the label printing service.

Only packed boxes get a label; the printer side decides how to render them.
"""
from __future__ import annotations

import base64
import io
from typing import Callable, Dict, List, Optional, Sequence

import barcode
from barcode.writer import ImageWriter

from packing.domain.models import Box


def box_barcode_text(order_no: str, box_number: int) -> str:
    return f"{order_no}-{box_number}"


def generate_barcode_base64(text: str) -> str:
    """Code128 PNG of ``text`` as a data URI, small enough for a 4in label."""
    buffer = io.BytesIO()
    barcode.get("code128", text, writer=ImageWriter()).write(
        buffer, options={"module_height": 8, "font_size": 8}
    )
    return "data:image/png;base64," + base64.b64encode(buffer.getvalue()).decode("ascii")


def get_box_label_data(order_no: str, boxes: Sequence[Box], *,
                       customer_name: Optional[str] = None,
                       ship_to: Optional[str] = None,
                       barcode_fn: Callable[[str], str] = generate_barcode_base64) -> List[Dict]:
    """
    One label dict per box, in box order.

    Each label carries the order header, "box i of N", the items with their
    split position, the packed total and estimated weight, and a Code128
    barcode of ``"{order_no}-{box_number}"``.
    """
    total = len(boxes)
    labels = []
    for box in boxes:
        code = box_barcode_text(order_no, box.box_number)
        labels.append({
            "order_no": order_no,
            "customer_name": customer_name,
            "ship_to": ship_to,
            "box_no": box.box_number,
            "box_count": total,
            "box_caption": f"{box.box_number}/{total}",
            "total_quantity": box.total_quantity,
            "total_weight": box.total_weight,
            "items": [
                {
                    "catalog_number": i.catalog_number,
                    "description": i.description,
                    "qty": i.quantity,
                    "split": f"{i.split_index}/{i.split_total}" if i.is_split else None,
                }
                for i in box.items
            ],
            "barcode_text": code,
            "barcode": barcode_fn(code),
        })
    return labels
