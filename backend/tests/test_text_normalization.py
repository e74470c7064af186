from __future__ import annotations

import csv
from io import StringIO

import pytest

from disputeshield.export.text import (
    csv_escape,
    display_value,
    format_attachment_entry,
    normalize_sentence_case,
    normalize_timeline_event,
    sanitize_filename_part,
    wrap_text,
)


def test_sentence_case_lowercases_then_capitalizes_first_letter() -> None:
    assert normalize_sentence_case("  ORDER WAS REFUNDED In Full  ") == "Order was refunded in full"


def test_sentence_case_blank_input_returns_empty_string() -> None:
    assert normalize_sentence_case("   \t ") == ""
    assert normalize_sentence_case("") == ""


def test_sentence_case_restores_carrier_names() -> None:
    assert normalize_sentence_case("handed to ups, then usps") == "Handed to UPS, then USPS"
    assert normalize_sentence_case("FEDEX picked up; dhl lost it") == "FedEx picked up; DHL lost it"
    assert normalize_sentence_case("ups delivered") == "UPS delivered"


def test_sentence_case_only_fixes_whole_words() -> None:
    assert normalize_sentence_case("SETUPS and groups") == "Setups and groups"


@pytest.mark.parametrize(
    "raw",
    [
        "Shipped via UPS",
        "customer emailed support about FedEx delay",
        "2026-02-10 order placed",
        "a",
    ],
)
def test_sentence_case_is_a_fixed_point(raw: str) -> None:
    once = normalize_sentence_case(raw)
    assert normalize_sentence_case(once) == once


def test_timeline_event_preserves_date_and_separator() -> None:
    assert normalize_timeline_event("2026-02-10: order shipped early") == "2026-02-10: Order shipped early"
    assert normalize_timeline_event("2026-02-11 -  DELIVERED BY ups") == "2026-02-11 -  Delivered by UPS"
    assert normalize_timeline_event("2026-02-12-refund requested") == "2026-02-12-Refund requested"


def test_timeline_event_without_date_is_sentence_cased() -> None:
    assert normalize_timeline_event("  CUSTOMER opened dispute ") == "Customer opened dispute"
    assert normalize_timeline_event("Feb 10: ORDER SHIPPED") == "Feb 10: order shipped"


def test_timeline_event_blank_returns_empty_string() -> None:
    assert normalize_timeline_event("   ") == ""


def test_wrap_text_greedy_lines_respect_limit() -> None:
    text = "the quick brown fox jumps over the lazy dog " * 5
    lines = wrap_text(text, 20)
    assert all(len(line) <= 20 for line in lines)
    assert " ".join(lines) == " ".join(text.split())


def test_wrap_text_keeps_long_word_whole_on_its_own_line() -> None:
    long_word = "x" * 30
    assert wrap_text(f"short {long_word} tail", 10) == ["short", long_word, "tail"]


def test_wrap_text_blank_input_yields_single_empty_line() -> None:
    assert wrap_text("", 90) == [""]
    assert wrap_text(" \n\t ", 90) == [""]


def test_wrap_text_exact_fit_stays_on_one_line() -> None:
    assert wrap_text("abcd efgh", 9) == ["abcd efgh"]
    assert wrap_text("abcd efgh", 8) == ["abcd", "efgh"]


def test_csv_escape_round_trips_through_csv_reader() -> None:
    values = ['He said "ship it"', "a,b,c", "plain", "", 'both, "quoted"']
    line = ",".join(csv_escape(value) for value in values)
    parsed = next(csv.reader(StringIO(line)))
    assert parsed == values
    assert csv_escape('say "hi"') == '"say ""hi"""'


def test_sanitize_filename_part() -> None:
    assert sanitize_filename_part("ORD 10/42") == "ORD_10_42"
    assert sanitize_filename_part("  __order-7__ ") == "order-7"
    assert sanitize_filename_part("///") == "unknown"
    assert sanitize_filename_part("") == "unknown"


def test_display_value_and_attachment_entry() -> None:
    assert display_value("  ") == "—"
    assert display_value(" Acme ") == "Acme"
    assert format_attachment_entry("receipt.pdf", "  ") == "receipt.pdf"
    assert format_attachment_entry("receipt.pdf", " signed copy ") == "receipt.pdf — signed copy"
