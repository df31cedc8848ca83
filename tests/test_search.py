"""Tests for search, category filtering and facets."""

from subly.views.search import (
    category_facets,
    filter_budgets,
    filter_documents,
    filter_goals,
    filter_subscriptions,
)


class TestDocumentSearch:

    def test_title_and_tag_matching(self, make_document):
        doc = make_document(title="Car Insurance Receipt", tags=["auto"], file_name="scan.pdf")
        assert filter_documents([doc], "insurance") == [doc]
        assert filter_documents([doc], "auto") == [doc]
        assert filter_documents([doc], "medical") == []

    def test_filename_matching(self, make_document):
        doc = make_document(title="Lease", file_name="Apartment_2024.PDF")
        assert filter_documents([doc], "apartment") == [doc]

    def test_case_insensitive_query(self, make_document):
        doc = make_document(title="car insurance")
        assert filter_documents([doc], "INSURANCE") == [doc]

    def test_category_filter_is_exact(self, make_document):
        receipt = make_document(title="A", category="receipts")
        contract = make_document(title="B", category="contracts")
        assert filter_documents([receipt, contract], "", "receipts") == [receipt]
        assert filter_documents([receipt, contract], "", "receipt") == []

    def test_empty_query_matches_all(self, make_document):
        docs = [make_document(), make_document()]
        assert filter_documents(docs) == docs


class TestSubscriptionSearch:

    def test_name_notes_and_category(self, make_subscription):
        netflix = make_subscription(service_name="Netflix", notes="Family plan", category="entertainment")
        notion = make_subscription(service_name="Notion", notes=None, category="productivity")

        assert filter_subscriptions([netflix, notion], "net") == [netflix]
        assert filter_subscriptions([netflix, notion], "family") == [netflix]
        assert filter_subscriptions([netflix, notion], "product") == [notion]

    def test_query_and_category_are_conjoined(self, make_subscription):
        netflix = make_subscription(service_name="Netflix", category="entertainment")
        assert filter_subscriptions([netflix], "netflix", "productivity") == []
        assert filter_subscriptions([netflix], "netflix", "entertainment") == [netflix]

    def test_missing_notes_do_not_match(self, make_subscription):
        sub = make_subscription(service_name="Gym", notes=None, category="health")
        assert filter_subscriptions([sub], "none") == []


class TestBudgetAndGoalSearch:

    def test_budgets_match_on_category(self, make_budget):
        food = make_budget(category="food")
        rent = make_budget(category="rent")
        assert filter_budgets([food, rent], "FO") == [food]
        assert filter_budgets([food, rent], "", "rent") == [rent]

    def test_goals_match_on_name(self, make_goal):
        car = make_goal(name="New Car")
        trip = make_goal(name="Japan trip")
        assert filter_goals([car, trip], "car") == [car]
        assert filter_goals([car, trip]) == [car, trip]


class TestCategoryFacets:

    def test_duplicates_collapse(self, make_budget):
        budgets = [make_budget(category=c) for c in ["a", "b", "a", "c"]]
        facets = category_facets(budgets)
        assert len(facets) == 3
        assert set(facets) == {"a", "b", "c"}

    def test_stable_order(self, make_budget):
        budgets = [make_budget(category=c) for c in ["b", "a", "b"]]
        assert category_facets(budgets) == category_facets(budgets) == ["b", "a"]

    def test_empty(self):
        assert category_facets([]) == []
