import re
import unittest

from tesoreria_app.services.number_words import integer_to_words, number_to_words


class NumberToWordsTests(unittest.TestCase):
    def test_zero_keeps_words_line(self):
        self.assertEqual(number_to_words(0), "Cero con 00/100")

    def test_hundred_is_irregular(self):
        self.assertEqual(number_to_words(100), "Cien con 00/100")

    def test_twenties_are_single_words(self):
        self.assertEqual(number_to_words(21.50), "Veintiuno con 50/100")
        self.assertEqual(number_to_words(26), "Veintiséis con 00/100")

    def test_tens_join_units_with_y(self):
        self.assertEqual(number_to_words(35), "Treinta y cinco con 00/100")
        self.assertEqual(number_to_words(90), "Noventa con 00/100")

    def test_thousands_teens_and_cents(self):
        self.assertEqual(number_to_words(1015.05), "Mil quince con 05/100")

    def test_teens_and_units(self):
        self.assertEqual(number_to_words(16), "Dieciséis con 00/100")
        self.assertEqual(number_to_words(7), "Siete con 00/100")

    def test_hundreds(self):
        self.assertEqual(number_to_words(115), "Ciento quince con 00/100")
        self.assertEqual(number_to_words(200), "Doscientos con 00/100")
        self.assertEqual(number_to_words(999.99), "Novecientos noventa y nueve con 99/100")

    def test_thousands_multiplier_has_no_cents_suffix(self):
        self.assertEqual(number_to_words(2000), "Dos mil con 00/100")
        self.assertEqual(number_to_words(45250), "Cuarenta y cinco mil doscientos cincuenta con 00/100")

    def test_hundred_inside_larger_amounts(self):
        self.assertEqual(number_to_words(1100), "Mil cien con 00/100")
        self.assertEqual(number_to_words(100000), "Cien mil con 00/100")

    def test_one_is_shortened_before_mil(self):
        self.assertEqual(number_to_words(21000), "Veintiún mil con 00/100")
        self.assertEqual(number_to_words(101000), "Ciento un mil con 00/100")
        self.assertEqual(number_to_words(31001), "Treinta y un mil uno con 00/100")

    def test_millions_use_their_own_words(self):
        # Decision: one million reads "un millón", never "mil mil".
        self.assertEqual(number_to_words(1_000_000), "Un millón con 00/100")
        self.assertEqual(number_to_words(2_500_000), "Dos millones quinientos mil con 00/100")
        self.assertEqual(integer_to_words(21_000_000), "veintiún millones")

    def test_cents_are_zero_padded(self):
        self.assertEqual(number_to_words(0.5), "Cero con 50/100")
        self.assertEqual(number_to_words(3.07), "Tres con 07/100")

    def test_cents_rounding_carries_into_units(self):
        self.assertEqual(number_to_words(0.999), "Uno con 00/100")

    def test_suffix_always_has_two_digit_cents(self):
        pattern = re.compile(r" con \d{2}/100$")
        for amount in (0, 0.01, 1, 9.9, 10.1, 120.45, 1999.5, 45678.91):
            with self.subTest(amount=amount):
                self.assertRegex(number_to_words(amount), pattern)

    def test_accepts_decimal_strings(self):
        self.assertEqual(number_to_words("40.00"), "Cuarenta con 00/100")

    def test_negative_amount_is_rejected(self):
        with self.assertRaises(ValueError):
            number_to_words(-1)


if __name__ == "__main__":
    unittest.main()
