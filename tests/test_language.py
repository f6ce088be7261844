from feedhub.services.language import LanguageDetector


class TestLanguageDetector:
    def test_english(self):
        assert LanguageDetector().detect('The study of behavior and the results of treatment') == 'en'

    def test_portuguese(self):
        assert LanguageDetector().detect('O estudo da análise do comportamento em crianças') == 'pt'

    def test_spanish(self):
        assert LanguageDetector().detect('El estudio del análisis y la investigación') == 'es'

    def test_empty_uses_default(self):
        assert LanguageDetector().detect('') == 'en'
        assert LanguageDetector(default='pt').detect('   ') == 'pt'

    def test_no_signal_uses_default(self):
        assert LanguageDetector().detect('12345 !!!') == 'en'

    def test_tie_uses_default(self):
        # "que" is both Portuguese and Spanish
        detector = LanguageDetector()
        scores = detector.scores('que')
        assert scores['pt'] == scores['es'] == 1
        assert detector.detect('que') == 'en'
