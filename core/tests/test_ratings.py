from django.test import SimpleTestCase

from core.ratings import EMPTY_AGGREGATE, RatingAggregate, aggregate


class AggregateTests(SimpleTestCase):

    def test_empty_collection(self):
        self.assertEqual(aggregate([]), EMPTY_AGGREGATE)
        self.assertEqual(aggregate([]).average, 0.0)

    def test_mean_and_count(self):
        self.assertEqual(aggregate([5, 4, 3]), RatingAggregate(average=4.0, count=3))

    def test_average_is_not_rounded(self):
        result = aggregate([5, 4, 4])
        self.assertAlmostEqual(result.average, 13 / 3)
        self.assertEqual(result.count, 3)

    def test_accepts_any_iterable(self):
        self.assertEqual(aggregate(iter([1, 2])).average, 1.5)
