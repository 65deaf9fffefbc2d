import asyncio

import pytest

from sitelens.services.competitors import (
    build_competitors,
    calculate_average_price,
    estimate_footfall,
    top_by_reviews,
)


@pytest.mark.parametrize(
    "tier, expected",
    [(None, None), (0, None), (1, 400), (2, 800), (3, 1500), (4, 2500), (7, None)],
)
def test_calculate_average_price(tier, expected):
    assert calculate_average_price(tier) == expected


def test_estimate_footfall_sums_reviews(make_place):
    places = [make_place("a", reviews=10), make_place("b", reviews=150), make_place("c")]
    assert estimate_footfall(places) == 160
    assert estimate_footfall([]) == 0


def test_top_by_reviews_orders_and_truncates(make_place):
    places = [make_place(str(i), reviews=i * 10) for i in range(15)]
    top = top_by_reviews(places, 10)
    assert len(top) == 10
    assert [p.user_ratings_total for p in top] == [140, 130, 120, 110, 100, 90, 80, 70, 60, 50]


def test_details_override_basic_fields(make_place, fake_maps):
    place = make_place("Third Wave", rating=4.1, reviews=90, price=1)
    maps = fake_maps(
        details={
            "id-Third Wave": {
                "name": "Third Wave Coffee",
                "formatted_address": "12 Church St, Bengaluru",
                "geometry": {"location": {"lat": 12.975, "lng": 77.605}},
                "rating": 4.4,
                "user_ratings_total": 120,
                "price_level": 2,
                "website": "https://thirdwave.example",
                "formatted_phone_number": "080 1234 5678",
                "url": "https://maps.google.com/?cid=1",
            }
        }
    )
    [profile] = asyncio.run(build_competitors(maps, [place]))

    assert profile.name == "Third Wave Coffee"
    assert profile.address == "12 Church St, Bengaluru"
    assert profile.coordinates.lat == 12.975
    assert profile.rating == 4.4
    assert profile.user_ratings_total == 120
    assert profile.footfall == 120
    assert profile.price_level == 2
    assert profile.average_price_for_2 == 800
    assert profile.website == "https://thirdwave.example"
    assert profile.phone == "080 1234 5678"
    assert profile.google_url == "https://maps.google.com/?cid=1"
    assert profile.revenue is None


def test_failed_details_fall_back_per_place(make_place, fake_maps):
    ok = make_place("ok", reviews=50, price=3)
    broken = make_place("broken", reviews=80, price=0)
    maps = fake_maps(details={"id-ok": {"website": "https://ok.example"}})

    profiles = asyncio.run(build_competitors(maps, [ok, broken]))

    by_name = {p.name: p for p in profiles}
    assert by_name["ok"].website == "https://ok.example"
    assert by_name["ok"].average_price_for_2 == 1500
    assert by_name["broken"].website is None
    assert by_name["broken"].footfall == 80
    assert by_name["broken"].average_price_for_2 is None
    assert by_name["broken"].address == "broken street"


def test_builds_at_most_ten_sorted_by_reviews(make_place, fake_maps):
    places = [make_place(str(i), reviews=i) for i in range(12)]
    maps = fake_maps()
    profiles = asyncio.run(build_competitors(maps, places))

    assert len(profiles) == 10
    assert [p.user_ratings_total for p in profiles] == list(range(11, 1, -1))
    assert len(maps.details_calls) == 10


def test_place_without_id_skips_details(make_place, fake_maps):
    place = make_place("anon", place_id="", reviews=5)
    maps = fake_maps()
    [profile] = asyncio.run(build_competitors(maps, [place]))
    assert maps.details_calls == []
    assert profile.footfall == 5


def test_missing_review_count_defaults_to_zero(make_place, fake_maps):
    [profile] = asyncio.run(build_competitors(fake_maps(), [make_place("quiet")]))
    assert profile.user_ratings_total == 0
    assert profile.footfall == 0
