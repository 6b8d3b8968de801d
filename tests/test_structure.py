import json

import pytest

from conftest import FakeOpenAI
from skriptor.core.errors import StructuringError
from skriptor.core.models import SectionType
from skriptor.core.prompts import TRUNCATION_MARKER, image_hint
from skriptor.core.structure import (
    DocumentStructurer,
    degraded_document,
    normalize_section,
    parse_structured_response,
    truncate_text,
)

TEXT = "1. Grundlagen\nDer Begriff Marketing ...\nAufgabe 1.1\nErläutern Sie ..."

MODEL_ANSWER = {
    "metadata": {"title": "Marketing I", "author": "Prof. Dr. Schulz", "institution": "FernUni"},
    "summary": "Einführung in das Marketing.",
    "sections": [
        {
            "title": "Grundlagen",
            "content": "Der Begriff Marketing ...",
            "section_type": "chapter",
            "level": 0,
            "chapter_number": "1",
            "pageStart": 1,
            "pageEnd": 3,
            "keywords": ["Marketing", "Markt"],
        },
        {
            "title": "Aufgabe 1.1",
            "content": "Erläutern Sie ...",
            "section_type": "Task",
            "level": 7,
            "chapter_number": 1,
            "pageStart": 4,
            "pageEnd": 2,
            "task_number": "1.1",
        },
        {"title": "", "content": "   "},
        {"title": "Ohne Typ", "content": "x", "section_type": "appendix", "level": -3},
    ],
    "tableOfContents": [
        {"title": "Grundlagen", "page": 1, "section_type": "chapter", "level": 0, "chapter_number": "1"},
        {"page": 9},
    ],
}


def test_structure_normalizes_model_answer():
    client = FakeOpenAI(MODEL_ANSWER)
    structurer = DocumentStructurer(client)

    document = structurer.structure(TEXT, "marketing.pdf", 5)

    assert document.title == "Marketing I"
    assert document.summary == "Einführung in das Marketing."
    assert document.metadata.author == "Prof. Dr. Schulz"
    assert [s.title for s in document.sections] == ["Grundlagen", "Aufgabe 1.1", "Ohne Typ"]

    task = document.sections[1]
    assert task.section_type == SectionType.TASK
    assert task.level == 2
    assert task.chapter_number == "1"
    assert (task.page_start, task.page_end) == (4, 4)
    assert task.task_number == "1.1"

    fallback = document.sections[2]
    assert fallback.section_type == SectionType.CHAPTER
    assert fallback.level == 0
    assert fallback.chapter_number == "0"

    assert [entry.title for entry in document.table_of_contents] == ["Grundlagen"]


def test_structure_request_shape():
    client = FakeOpenAI(MODEL_ANSWER)

    DocumentStructurer(client).structure(TEXT, "marketing.pdf", 5, {2: [{"pageNumber": 2, "imageIndex": 0}]})

    call = client.calls[0]
    assert call["model"] == "gpt-4o-mini"
    assert call["temperature"] == 0.3
    assert call["response_format"] == {"type": "json_object"}
    system, user = call["messages"]
    assert system["role"] == "system"
    assert '"marketing.pdf" (5 Seiten)' in user["content"]
    assert "Bilder im Dokument auf folgenden Seiten: 2" in user["content"]
    assert TEXT in user["content"]


def test_long_text_is_truncated_for_the_model():
    client = FakeOpenAI(MODEL_ANSWER)
    text = "A" * 50

    DocumentStructurer(client, max_chars=20).structure(text, "lang.pdf", 1)

    user_prompt = client.calls[0]["messages"][1]["content"]
    assert "A" * 20 + TRUNCATION_MARKER in user_prompt
    assert "A" * 21 not in user_prompt


@pytest.mark.parametrize(
    "answer",
    [
        "",
        "not json at all",
        json.dumps(["a", "list"]),
        json.dumps({"sections": []}),
        json.dumps({"sections": [{"title": None, "content": ""}]}),
        ConnectionError("model unavailable"),
    ],
)
def test_failures_degrade_to_single_section(answer):
    text = "Vollständiger Text\n" * 100
    client = FakeOpenAI(answer)

    document = DocumentStructurer(client, max_chars=50).structure(text, "Studienbrief 3.pdf", 7)

    assert document.title == "Studienbrief 3"
    assert len(document.sections) == 1
    section = document.sections[0]
    assert section.title == "Inhalt"
    assert section.content == text
    assert section.section_type == SectionType.CHAPTER
    assert (section.page_start, section.page_end) == (1, 7)


def test_parse_rejects_missing_sections():
    with pytest.raises(StructuringError):
        parse_structured_response(json.dumps({"summary": "x"}), "a.pdf")


def test_parse_falls_back_to_filename_title():
    document = parse_structured_response(json.dumps({"sections": [{"title": "T", "content": "c"}]}), "Skript.pdf")

    assert document.title == "Skript"
    assert document.metadata is None


def test_normalize_section_accepts_snake_case_pages():
    section = normalize_section({"title": "T", "content": "c", "page_start": "2", "page_end": 0}, 0)

    assert section.page_start == 2
    assert section.page_end is None


def test_normalize_section_names_untitled_content():
    section = normalize_section({"content": "Text ohne Titel"}, 4)

    assert section.title == "Abschnitt 5"


def test_degraded_document_without_pages():
    document = degraded_document("", "x.pdf", 0)

    assert document.sections[0].page_start is None
    assert document.sections[0].page_end is None


def test_truncate_text_keeps_short_text():
    assert truncate_text("kurz", 10) == "kurz"


def test_image_hint_lists_sorted_pages():
    assert image_hint({}) == ""
    assert image_hint({5: [{}], 2: [{}], 3: []}) == "\n\nBilder im Dokument auf folgenden Seiten: 2, 5"
