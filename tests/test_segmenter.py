from skriptor.core.models import ParsedSection, SectionType
from skriptor.core.segmenter import (
    CONTENT_TITLE,
    INTRO_TITLE,
    clean_text,
    fallback_document,
    match_header,
    merge_short_sections,
    split_page_sections,
    split_sections,
    tag_lines,
)

LONG = (
    "Dieser Absatz beschreibt ausführlich die Grundlagen des Fachgebiets und "
    "enthält genug Text, damit er nicht zusammengeführt wird."
)


def test_match_header_patterns():
    assert match_header("1. Grundlagen") == "1. Grundlagen"
    assert match_header("2.3 Methoden der Analyse") == "2.3 Methoden der Analyse"
    assert match_header("Kapitel 4: Ergebnisse") == "Kapitel 4 Ergebnisse"
    assert match_header("IV. Diskussion") == "IV. Diskussion"
    assert match_header("ZUSAMMENFASSUNG") == "ZUSAMMENFASSUNG"
    assert match_header("Ein ganz normaler Satz.") is None


def test_clean_text_collapses_blank_runs():
    assert clean_text("a\r\n\n\n\n\nb  \n") == "a\n\nb"


def test_short_section_is_merged_into_next():
    text = f"1. Kurz\nNur ein Satz.\n2. Lang\n{LONG}"

    sections = split_sections(text)

    assert [s.title for s in sections] == ["1. Kurz - 2. Lang"]
    assert sections[0].content == f"Nur ein Satz.\n\n{LONG}"
    assert sections[0].order_index == 0


def test_leading_text_becomes_introduction():
    text = f"Vorbemerkung des Autors.\n{LONG}\n1. Grundlagen\n{LONG}"

    sections = split_sections(text)

    assert [s.title for s in sections] == [INTRO_TITLE, "1. Grundlagen"]
    assert sections[0].content.startswith("Vorbemerkung des Autors.")
    assert [s.order_index for s in sections] == [0, 1]


def test_trailing_short_section_is_kept():
    sections = split_sections(f"1. Anfang\n{LONG}\n2. Ende\nKurz.")

    assert [s.title for s in sections] == ["1. Anfang", "2. Ende"]
    assert sections[-1].content == "Kurz."


def test_title_like_line_after_blank_line():
    text = f"1. Anfang\n{LONG}\n\nMein eigener Abschnitt\n{LONG}"

    titles = [s.title for s in split_sections(text)]

    assert titles == ["1. Anfang", "Mein eigener Abschnitt"]


def test_empty_text_yields_single_content_section():
    sections = split_sections("  \n\n ")

    assert len(sections) == 1
    assert sections[0].title == CONTENT_TITLE
    assert sections[0].content == ""


def test_merge_does_not_mutate_input():
    original = [
        ParsedSection(title="A", content="a", order_index=0),
        ParsedSection(title="B", content=LONG, order_index=1),
    ]

    merged = merge_short_sections(original)

    assert merged[0].title == "A - B"
    assert original[1].title == "B"


def test_fallback_document_numbers_chapters():
    document = fallback_document(f"Vorwort des Autors.\n{LONG}\n1. Teil\n{LONG}\n2. Teil\n{LONG}", "Skript_WS24.pdf", 12)

    assert document.title == "Skript_WS24"
    assert [s.chapter_number for s in document.sections] == ["intro", "1", "2"]
    assert all(s.section_type == SectionType.CHAPTER for s in document.sections)
    assert [entry.title for entry in document.table_of_contents] == [s.title for s in document.sections]
    assert document.sections[0].page_start is None


def test_fallback_document_single_section_spans_all_pages():
    document = fallback_document("", "leer.pdf", 4)

    assert len(document.sections) == 1
    section = document.sections[0]
    assert (section.page_start, section.page_end) == (1, 4)
    assert section.chapter_number == "1"


def test_short_introduction_merges_into_first_title():
    sections = split_sections(f"A\n\nShort\n{LONG}")

    assert [s.title for s in sections] == ["Einleitung - Short"]
    assert sections[0].content == f"A\n\n{LONG}"
    assert not sections[0].is_intro


def test_merged_introduction_is_numbered_as_chapter():
    document = fallback_document(f"Vorwort.\n1. Grundlagen\n{LONG}\n2. Vertiefung\n{LONG}", "skript.pdf", 3)

    assert [s.title for s in document.sections] == ["Einleitung - 1. Grundlagen", "2. Vertiefung"]
    assert [s.chapter_number for s in document.sections] == ["1", "2"]


def test_tag_lines_collapses_blank_runs_across_pages():
    tagged = tag_lines(["\n\nerste Zeile\n\n\n\nzweite Zeile\n", "dritte Zeile\n\n\n"])

    assert tagged == [("erste Zeile", 1), ("", 1), ("zweite Zeile", 1), ("dritte Zeile", 2)]


def test_page_sections_carry_page_ranges():
    pages = [
        f"1. Anfang\n{LONG}\n",
        f"{LONG}\n2. Mitte\n{LONG}\n",
        f"{LONG}\n",
        f"3. Ende\n{LONG}\n",
    ]

    sections = split_page_sections(pages)

    assert [(s.title, s.page_start, s.page_end) for s in sections] == [
        ("1. Anfang", 1, 2),
        ("2. Mitte", 2, 3),
        ("3. Ende", 4, 4),
    ]


def test_merged_page_section_starts_on_short_section_page():
    sections = split_page_sections(["1. Kurz\nNur ein Satz.\n", f"2. Lang\n{LONG}\n"])

    assert [(s.title, s.page_start, s.page_end) for s in sections] == [("1. Kurz - 2. Lang", 1, 2)]


def test_fallback_document_uses_page_texts():
    pages = [f"1. Anfang\n{LONG}\n", f"2. Ende\n{LONG}\n"]

    document = fallback_document("\n".join(pages), "skript.pdf", 2, page_texts=pages)

    assert [(s.page_start, s.page_end) for s in document.sections] == [(1, 1), (2, 2)]
    assert [entry.page for entry in document.table_of_contents] == [1, 2]
