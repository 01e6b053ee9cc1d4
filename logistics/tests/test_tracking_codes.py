"""
Tests for tracking code generation and validation.
"""

from unittest.mock import patch

from django.test import SimpleTestCase

from logistics.tracking_codes import (
    TRACKING_CODE_ALPHABET,
    generate_tracking_code,
    is_trackable_code,
    is_valid_tracking_code,
    normalize_tracking_code,
)


class TestGenerateTrackingCode(SimpleTestCase):

    def test_format(self):
        """Generated codes look like SE-XXXX-XXXX-XXXX."""
        code = generate_tracking_code()
        self.assertEqual(len(code), 17)
        prefix, *groups = code.split('-')
        self.assertEqual(prefix, 'SE')
        self.assertEqual([len(g) for g in groups], [4, 4, 4])

    def test_uses_unambiguous_alphabet(self):
        for _ in range(50):
            body = generate_tracking_code()[3:].replace('-', '')
            self.assertTrue(set(body) <= set(TRACKING_CODE_ALPHABET))
            self.assertFalse(set(body) & set('01OI'))

    def test_generated_codes_are_valid(self):
        for _ in range(50):
            self.assertTrue(is_valid_tracking_code(generate_tracking_code()))

    def test_uses_secure_random_source(self):
        with patch('logistics.tracking_codes.secrets.choice', return_value='A') as choice:
            self.assertEqual(generate_tracking_code(), 'SE-AAAA-AAAA-AAAA')
        self.assertEqual(choice.call_count, 12)


class TestValidateTrackingCode(SimpleTestCase):

    def test_valid_code(self):
        self.assertTrue(is_valid_tracking_code('SE-ABCD-EFGH-JK23'))

    def test_rejects_wrong_prefix(self):
        self.assertFalse(is_valid_tracking_code('XX-ABCD-EFGH-JK23'))

    def test_rejects_lowercase(self):
        self.assertFalse(is_valid_tracking_code('se-abcd-efgh-jk23'))

    def test_rejects_ambiguous_characters(self):
        """0, 1, O and I never appear in issued codes."""
        self.assertFalse(is_valid_tracking_code('SE-AB12-CD34-EF56'))
        self.assertFalse(is_valid_tracking_code('SE-ABCO-EFGH-JK23'))

    def test_rejects_wrong_grouping(self):
        self.assertFalse(is_valid_tracking_code('SE-ABCDEFGHJK23'))
        self.assertFalse(is_valid_tracking_code('SE-ABCD-EFGH'))
        self.assertFalse(is_valid_tracking_code('SE-ABCD-EFGH-JK23-'))
        self.assertFalse(is_valid_tracking_code('SE-ABCD-EFGH-JK2'))

    def test_rejects_non_strings(self):
        self.assertFalse(is_valid_tracking_code(None))
        self.assertFalse(is_valid_tracking_code(12345))
        self.assertFalse(is_valid_tracking_code(''))

    def test_normalize(self):
        self.assertEqual(normalize_tracking_code('  se-abcd-efgh-jk23 '), 'SE-ABCD-EFGH-JK23')
        self.assertEqual(normalize_tracking_code(None), '')


class TestTrackableCode(SimpleTestCase):
    """Lookups accept any stored code shape, including older 0/1/O/I codes."""

    def test_accepts_issued_codes(self):
        self.assertTrue(is_trackable_code('SE-ABCD-EFGH-JK23'))

    def test_accepts_digits_and_ambiguous_letters(self):
        self.assertTrue(is_trackable_code('SE-AB12-CD34-EF56'))
        self.assertTrue(is_trackable_code('SE-TEST-0001-AAAA'))

    def test_rejects_bad_shapes(self):
        self.assertFalse(is_trackable_code('SE-AB12-CD34-EF5'))
        self.assertFalse(is_trackable_code('se-ab12-cd34-ef56'))
        self.assertFalse(is_trackable_code('XX-AB12-CD34-EF56'))
        self.assertFalse(is_trackable_code(None))
