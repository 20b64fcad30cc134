"""Tests for legal citation extraction."""

from case_analysis.utils.citations import extract_citations, merge_citations


class TestExtractCitations:

    def test_statute_with_subsection_absorbs_bare_section(self):
        citations = extract_citations("The dealer violated Tex. Bus. & Com. Code § 17.46(b) by lying.")

        assert citations == [{"type": "statute", "citation": "Tex. Bus. & Com. Code § 17.46(b)"}]

    def test_bare_section_and_acronym(self):
        citations = extract_citations("Relief is available under the DTPA, see § 17.50.")

        assert {"type": "statute", "citation": "DTPA"} in citations
        assert {"type": "statute", "citation": "§ 17.50"} in citations

    def test_reporter_and_case_name(self):
        text = "See Amstadt v. U.S. Brass Corp., 919 S.W.2d 644 (Tex. 1996)."

        citations = extract_citations(text)
        kinds = {citation["type"]: citation["citation"] for citation in citations}

        assert kinds["reporter"] == "919 S.W.2d 644 (Tex. 1996)"
        assert kinds["case"].startswith("Amstadt v. U.S. Brass")

    def test_duplicates_are_dropped_in_order(self):
        text = "DTPA claims. Magnuson-Moss Warranty Act claims. dtpa again. DTPA once more."

        citations = extract_citations(text)

        assert [citation["citation"] for citation in citations] == ["DTPA", "Magnuson-Moss Warranty Act"]

    def test_empty_text(self):
        assert extract_citations("") == []
        assert extract_citations("Nothing to cite here.") == []


class TestMergeCitations:

    def test_drops_exact_duplicates_across_groups(self):
        web = ["https://example.com/a", "https://example.com/b"]
        cases = [{"type": "case", "id": "1"}, {"id": "1", "type": "case"}]

        merged = merge_citations(web, ["https://example.com/a"], cases, None)

        assert merged == ["https://example.com/a", "https://example.com/b", {"type": "case", "id": "1"}]
