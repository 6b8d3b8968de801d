from conftest import make_pdf
from skriptor.core.pdf_handle import open_pdf
from skriptor.core.text_extract import extract_page_texts, extract_text


def test_extract_text_merges_pages_in_order():
    data = make_pdf([{"text": "Seite eins"}, {"text": ""}, {"text": "Seite drei"}])
    with open_pdf(data) as handle:
        result = extract_text(handle)

    assert result.page_count == 3
    assert result.text.index("Seite eins") < result.text.index("Seite drei")
    assert "\n\n\n" not in result.text


def test_extract_page_texts_returns_one_entry_per_page():
    data = make_pdf([{"text": "A"}, {"text": "B"}])
    with open_pdf(data) as handle:
        pages = extract_page_texts(handle)

    assert len(pages) == 2
    assert pages[0].strip() == "A"
    assert pages[1].strip() == "B"


def test_extract_text_keeps_page_texts():
    data = make_pdf([{"text": "Seite eins"}, {"text": "Seite zwei"}])
    with open_pdf(data) as handle:
        result = extract_text(handle)

    assert len(result.pages) == 2
    assert "Seite zwei" in result.pages[1]
