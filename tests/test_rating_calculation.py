from __future__ import annotations

import unittest

from gigshift.errors import ValidationFailedError
from gigshift.services.ratings import calculate_rating


class RatingCalculationTests(unittest.TestCase):
    def test_three_of_four_days_with_four_star_brand_rating(self) -> None:
        result = calculate_rating(3, 4, 4)

        self.assertEqual(result.attendance_rating, 1.5)
        self.assertEqual(result.brand_rating_stars, 2.4)
        self.assertEqual(result.final_rating, 3.9)

    def test_full_attendance_and_top_brand_rating_is_five_stars(self) -> None:
        result = calculate_rating(5, 5, 5)

        self.assertEqual(result.attendance_rating, 2.0)
        self.assertEqual(result.brand_rating_stars, 3.0)
        self.assertEqual(result.final_rating, 5.0)

    def test_no_attendance_and_lowest_brand_rating(self) -> None:
        result = calculate_rating(0, 3, 1)

        self.assertEqual(result.attendance_rating, 0.0)
        self.assertEqual(result.brand_rating_stars, 0.6)
        self.assertEqual(result.final_rating, 0.6)

    def test_components_are_rounded_to_two_decimals(self) -> None:
        result = calculate_rating(1, 3, 2)

        self.assertEqual(result.attendance_rating, 0.67)
        self.assertEqual(result.brand_rating_stars, 1.2)
        self.assertEqual(result.final_rating, 1.87)

    def test_attendance_above_total_days_is_capped(self) -> None:
        result = calculate_rating(7, 4, 3)

        self.assertEqual(result.attendance_days, 4)
        self.assertEqual(result.attendance_rating, 2.0)
        self.assertEqual(result.final_rating, 3.8)

    def test_final_rating_stays_within_bounds(self) -> None:
        for total_days in range(1, 6):
            for attended in range(0, total_days + 1):
                for brand_rating in range(1, 6):
                    result = calculate_rating(attended, total_days, brand_rating)
                    self.assertGreaterEqual(result.final_rating, 0.0)
                    self.assertLessEqual(result.final_rating, 5.0)
                    self.assertEqual(
                        result.final_rating,
                        round(result.attendance_rating + result.brand_rating_stars, 2),
                    )

    def test_zero_total_days_is_rejected(self) -> None:
        with self.assertRaises(ValidationFailedError) as ctx:
            calculate_rating(0, 0, 3)
        self.assertEqual(ctx.exception.code, "INVALID_TOTAL_GIG_DAYS")

    def test_negative_attendance_is_rejected(self) -> None:
        with self.assertRaises(ValidationFailedError) as ctx:
            calculate_rating(-1, 3, 3)
        self.assertEqual(ctx.exception.code, "INVALID_ATTENDANCE_DAYS")

    def test_brand_rating_out_of_range_is_rejected(self) -> None:
        for brand_rating in (0, 6):
            with self.assertRaises(ValidationFailedError) as ctx:
                calculate_rating(1, 1, brand_rating)
            self.assertEqual(ctx.exception.code, "INVALID_BRAND_RATING")
            self.assertEqual(ctx.exception.status_code, 422)


if __name__ == "__main__":
    unittest.main()
