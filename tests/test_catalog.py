"""Tests for the mod catalog accessor."""

import pytest
import requests

from verifier_bot.catalog import ModCatalog, format_mod_options
from verifier_bot.errors import RetrievalError
from verifier_bot.records import ModDescriptor


def test_list_parses_catalog_fresh_each_time(store, github_session, catalog_location):
    github_session.seed(catalog_location, "M1|Mod one|x|y|0,\nP1|Premium|x|y|1,")
    catalog = ModCatalog(store, catalog_location)

    first = catalog.list()
    github_session.seed(catalog_location, "m2|Other|x|y|0,")
    second = catalog.list()

    assert [(m.mod_id, m.mod_type) for m in first] == [
        ("m1", "basic"),
        ("p1", "premium"),
    ]
    assert [m.mod_id for m in second] == ["m2"]
    assert catalog.location == catalog_location


def test_list_propagates_retrieval_error(store, github_session, catalog_location):
    github_session.get_error = requests.ConnectionError("down")
    with pytest.raises(RetrievalError):
        ModCatalog(store, catalog_location).list()


class TestFormatModOptions:
    MODS = [
        ModDescriptor("b1", "basic"),
        ModDescriptor("p1", "premium"),
        ModDescriptor("b2", "basic"),
    ]

    def test_basic_only(self):
        listing = format_mod_options(self.MODS, include_premium=False)
        assert listing == ":star: **b1**\n:star: **b2**"

    def test_includes_premium_and_channel_link(self):
        listing = format_mod_options(
            self.MODS, include_premium=True, mod_list_channel_id=123
        )
        assert listing.splitlines() == [
            "__See full mod list here -> <#123>__",
            ":star: **b1**",
            ":star2: **p1**",
            ":star: **b2**",
        ]
