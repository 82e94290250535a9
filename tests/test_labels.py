from packing.domain.models import Box, BoxItem
from packing.services.labels import box_barcode_text, generate_barcode_base64, get_box_label_data


def _boxes():
    return [
        Box(1, [BoxItem("L_split_1", "WID-1", 10, "Widget", True, 1, 3),
                BoxItem("M", "GAD-2", 2, "Gadget")], total_weight=4.5, unit_ids=["L_split_1", "M"]),
        Box(2, [BoxItem("L_split_2", "WID-1", 10, "Widget", True, 2, 3)], unit_ids=["L_split_2"]),
    ]


def test_label_per_box_with_caption_and_items():
    labels = get_box_label_data("SO-1", _boxes(), customer_name="ACME", barcode_fn=lambda text: f"img:{text}")

    assert [lb["box_caption"] for lb in labels] == ["1/2", "2/2"]
    first = labels[0]
    assert first["customer_name"] == "ACME"
    assert first["total_quantity"] == 12
    assert first["total_weight"] == 4.5
    assert first["items"][0]["split"] == "1/3"
    assert first["items"][1]["split"] is None
    assert first["barcode_text"] == "SO-1-1"
    assert first["barcode"] == "img:SO-1-1"


def test_barcode_text():
    assert box_barcode_text("SO-1", 3) == "SO-1-3"


def test_barcode_is_png_data_uri():
    uri = generate_barcode_base64("SO-1-1")
    assert uri.startswith("data:image/png;base64,")
    assert len(uri) > 100
