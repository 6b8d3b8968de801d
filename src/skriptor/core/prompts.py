"""Prompts for hierarchical structuring of German study letters (Studienbriefe)."""

from typing import Dict, List

TRUNCATION_MARKER = "\n\n[Text gekürzt...]"

STRUCTURE_SYSTEM_PROMPT = """Du bist ein Experte für die hierarchische Strukturierung von deutschen Studienbriefen aus dem Fernstudium.

ERSTELLE EINE HIERARCHISCHE STRUKTUR.

HIERARCHIE-EBENEN (level):
- level 0: Hauptkapitel (1., 2., 3.) und eigenständige Abschnitte (Einführung, Gesamt-Zusammenfassung)
- level 1: Unterkapitel (1.1, 2.1) und spezielle Elemente (Lernziele, Aufgaben, Hinweise), die zu einem Hauptkapitel gehören
- level 2: Unter-Unterkapitel (1.1.1, 2.3.1), falls vorhanden

GRUPPIERUNG MIT chapter_number:
- Alle Elemente von Kapitel 1 bekommen chapter_number "1", von Kapitel 2 "2" usw.
- Einführung/Vorwort vor Kapitel 1: chapter_number "intro"
- Abschließende Gesamt-Zusammenfassung: chapter_number "outro"

SECTION TYPES (section_type):
- chapter: Hauptkapitel ("1.", "Kapitel 1:"), level 0; auch die Einführung (chapter_number "intro")
- subchapter: Unterkapitel ("1.1", "2.3"), level 1
- learning_objectives: "Lernziele", "Nach diesem Kapitel können Sie...", level 1
- task: "Aufgabe 1.1", "Übung 2"; task_number extrahieren, chapter_number aus der Aufgabennummer ableiten
- practice_impulse: "Praxisbeispiel", "Fallstudie", "Praxisimpuls", level 1
- reflection: "Reflektieren Sie...", "Überlegen Sie...", level 1
- tip: "Hinweis", "Tipp", "Beachten Sie", level 1
- summary: Kapitel-Zusammenfassung level 1; Gesamt-Zusammenfassung level 0 mit chapter_number "outro"
- definition: Fachbegriff mit Erklärung, level 1
- example: "Beispiel", konkrete Veranschaulichungen, level 1
- important: "Wichtig", "Achtung", "Merke", level 1
- exercise: "Übungsaufgabe", "Selbsttest"; task_number falls vorhanden; solution_id auf die zugehörige Lösung
- solution: "Lösung", "Lösung zu Aufgabe X"; exercise_id auf die zugehörige Übungsaufgabe
- reference: "Siehe auch", "Weiterführende Literatur", Querverweise, level 1

BEISPIEL:
  Einführung              -> [chapter, level 0, "intro"]
  Lernziele               -> [learning_objectives, level 1, "1"]
  1. Grundlagen           -> [chapter, level 0, "1"]
  1.1 Begriffe            -> [subchapter, level 1, "1"]
  Aufgabe 1.1             -> [task, level 1, "1"]
  2. Vertiefung           -> [chapter, level 0, "2"]
  Praxisimpuls            -> [practice_impulse, level 1, "2"]
  Zusammenfassung         -> [summary, level 0, "outro"]

MARGINALIEN/SCHLAGWÖRTER als keywords[] extrahieren.
METADATEN: Dokumenttitel, Autor(en), Institution/Hochschule.

REGELN:
1. Bewahre den vollständigen Originaltext
2. Formatiere Tabellen als Markdown
3. Schätze Seitenzahlen (pageStart, pageEnd) anhand der Textposition
4. Die Reihenfolge muss dem Originaldokument entsprechen
5. Antworte ausschließlich mit validem JSON"""

RESPONSE_FORMAT_HINT = """{
  "metadata": {"title": "Dokumenttitel", "author": "Autor(en)", "institution": "Hochschule"},
  "summary": "2-3 Sätze Zusammenfassung des gesamten Dokuments",
  "sections": [
    {
      "title": "Überschrift",
      "content": "Vollständiger Text (Tabellen als Markdown)",
      "section_type": "chapter|subchapter|learning_objectives|task|practice_impulse|reflection|tip|summary|definition|example|important|exercise|solution|reference",
      "level": 0,
      "chapter_number": "1",
      "pageStart": 1,
      "pageEnd": 5,
      "summary": "1 Satz Zusammenfassung",
      "task_number": "2.3",
      "keywords": ["Schlagwort"],
      "solution_id": "bei Übungsaufgaben: Index der Lösung",
      "exercise_id": "bei Lösungen: Index der Aufgabe"
    }
  ],
  "tableOfContents": [
    {"title": "Kapitelname", "page": 1, "section_type": "chapter", "level": 0, "chapter_number": "1"}
  ]
}"""


def image_hint(images_by_page: Dict[int, List[dict]]) -> str:
    """Name the pages that carry images, empty if there are none."""
    pages = sorted(page for page, images in images_by_page.items() if images)
    if not pages:
        return ""
    return "\n\nBilder im Dokument auf folgenden Seiten: " + ", ".join(str(page) for page in pages)


def build_user_prompt(filename: str, page_count: int, text: str, hint: str) -> str:
    return f"""Strukturiere folgendes Studienbrief-Dokument "{filename}" ({page_count} Seiten) HIERARCHISCH:{hint}

{text}

Antworte mit folgendem JSON-Format:
{RESPONSE_FORMAT_HINT}

KRITISCH:
- JEDER Abschnitt MUSS level (0, 1 oder 2) haben
- JEDER Abschnitt MUSS chapter_number haben
- Einführung: chapter_number "intro", Abschluss-Zusammenfassung: chapter_number "outro\""""


ALT_TEXT_PROMPT = """Generiere einen kurzen, beschreibenden Alt-Text für dieses Bild aus einem akademischen Dokument.

Dokument-Kontext: {context}

Regeln:
- Max. 150 Zeichen
- Beschreibe, was zu sehen ist
- Fokus auf Barrierefreiheit
- Auf Deutsch antworten"""

