"""Tests for summarize_rating_stats — zero-review neutral shape and rounding."""

from vinyl_exchange.core.rating_stats import summarize_rating_stats


def test_zero_reviews_yields_zero_averages():
    stats = summarize_rating_stats(0, {
        "overall": None, "communication": None, "item_accuracy": None, "shipping": None,
    })
    assert stats == {
        "overall_avg": 0.0,
        "communication_avg": 0.0,
        "item_accuracy_avg": 0.0,
        "shipping_avg": 0.0,
        "total_reviews": 0,
    }


def test_none_total_treated_as_zero():
    assert summarize_rating_stats(None, {})["total_reviews"] == 0


def test_averages_rounded_to_two_decimals():
    stats = summarize_rating_stats(3, {
        "overall": 4.666666, "communication": 5, "item_accuracy": 3.333333, "shipping": 4.005,
    })
    assert stats["overall_avg"] == 4.67
    assert stats["communication_avg"] == 5.0
    assert stats["item_accuracy_avg"] == 3.33
    assert stats["total_reviews"] == 3
