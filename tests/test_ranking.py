from staymarket.logic.ranking import competitive_summary, price_leaders, top_performers


def test_top_performers_require_reviews(make_listing):
    listings = [
        make_listing(1, score=9.9, reviews=5),
        make_listing(2, score=8.0, reviews=20),
        make_listing(3, score=9.0, reviews=200),
        make_listing(4),
    ]
    result = top_performers(listings)
    assert [entry.listing_id for entry in result] == [3, 2]
    assert result[0].rank == 1
    assert result[0].value == 9.0


def test_top_performers_ties_by_id(make_listing):
    listings = [make_listing(i, score=9.0, reviews=30) for i in (7, 3, 5, 1, 9, 2)]
    assert [entry.listing_id for entry in top_performers(listings)] == [1, 2, 3, 5, 7]


def test_price_leaders(make_listing):
    listings = [
        make_listing(4, 300.0),
        make_listing(2, 500.0),
        make_listing(6, 300.0),
        make_listing(1, 100.0),
        make_listing(3, 300.0),
        make_listing(5, 50.0),
    ]
    result = price_leaders(listings)
    assert [entry.listing_id for entry in result] == [2, 3, 4, 6, 1]
    assert [entry.value for entry in result] == [500.0, 300.0, 300.0, 300.0, 100.0]


def test_competitive_summary_empty():
    summary = competitive_summary([])
    assert summary.top_performers == ()
    assert summary.price_leaders == ()
