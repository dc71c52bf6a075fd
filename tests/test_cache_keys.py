"""
Unit tests for cache key derivation
"""
from quizforge.models import QuizGenerationOptions
from quizforge.services.cache import create_pdf_key, create_quiz_key, generate_text_hash


class TestTextHash:
    def test_known_values(self):
        """Test the rolling hash against hand-computed values"""
        assert generate_text_hash("") == "0"
        # 97 * 31^2 + 98 * 31 + 99 = 96354
        assert generate_text_hash("abc") == "22ci"

    def test_overflow_wraps_to_32_bits(self):
        """Test a string hashing to the most negative 32-bit value"""
        # This string hashes to -2**31, whose magnitude is 2147483648
        assert generate_text_hash("polygenelubricants") == "zik0zk"

    def test_deterministic_and_sensitive(self):
        """Test equal text hashes equally and a one-letter change does not"""
        text = "Neural networks are inspired by the human brain."
        assert generate_text_hash(text) == generate_text_hash(text)
        assert generate_text_hash(text) != generate_text_hash(text.replace("brain", "train"))

    def test_non_ascii_text(self):
        """Test text outside the BMP hashes without error"""
        assert generate_text_hash("quiz \U0001F9E0 time").isalnum()


class TestKeys:
    def test_pdf_key(self):
        """Test pdf keys are deterministic and depend on name and size"""
        key = create_pdf_key("report.pdf", 204800)

        assert key == create_pdf_key("report.pdf", 204800)
        assert key == "pdf_report.pdf_204800"
        assert key != create_pdf_key("report.pdf", 204801)
        assert key != create_pdf_key("report2.pdf", 204800)

    def test_quiz_key_from_model(self):
        """Test quiz keys serialize generation options"""
        options = QuizGenerationOptions(question_count=10)

        key = create_quiz_key("abc", options)

        assert key.startswith("quiz_abc_{")
        assert key == create_quiz_key("abc", QuizGenerationOptions(question_count=10))
        assert key != create_quiz_key("abc", QuizGenerationOptions(question_count=5))

    def test_quiz_key_from_dict(self):
        """Test plain dict options produce order-independent keys"""
        assert create_quiz_key("h", {"b": 1, "a": 2}) == create_quiz_key("h", {"a": 2, "b": 1})
        assert create_quiz_key("h", {"a": 2}) == 'quiz_h_{"a":2}'
