"""Unit tests for client input clean-up."""

from agenda.utils.sanitize import sanitize_name, sanitize_phone, sanitize_text


class TestSanitizeName:
    def test_collapses_whitespace_and_drops_markup(self):
        assert sanitize_name("  João   da Silva <> ") == "João da Silva"

    def test_keeps_accents_apostrophes_and_hyphens(self):
        assert sanitize_name("Ana-Lúcia D'Ávila") == "Ana-Lúcia D'Ávila"


class TestSanitizePhone:
    def test_national_number_gets_country_code(self):
        assert sanitize_phone("(11) 99999-0000") == "5511999990000"

    def test_international_number_kept(self):
        assert sanitize_phone("+55 11 99999-0000") == "5511999990000"

    def test_empty_values(self):
        assert sanitize_phone(None) is None
        assert sanitize_phone("---") is None


class TestSanitizeText:
    def test_strips_script_vectors(self):
        assert sanitize_text('<img onerror=alert(1)> javascript:go()') == "img alert(1) go()"

    def test_blank_becomes_none(self):
        assert sanitize_text("   ") is None
        assert sanitize_text(None) is None
