"""Tests for the typed record schema."""

import pytest

from verifier_bot.records import (
    ModDescriptor,
    PendingRecord,
    UserInfoRecord,
    VerifiedRecord,
    all_mods_selection,
    clean_input,
    find_mod,
    is_valid_external_id,
    parse_catalog,
    parse_user_info,
    parse_verified,
    split_records,
)


class TestCleanInput:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("  Cancel ", "cancel"),
            ("Steam ID: 7656-1198 000000001", "76561198000000001"),
            ("ID: abc", "abc"),
            ("**Cool_Mod!**", "coolmod"),
            ("MiXeD123", "mixed123"),
            ("", ""),
        ],
    )
    def test_normalizes_to_lowercase_alphanumerics(self, raw, expected):
        assert clean_input(raw) == expected

    def test_valid_external_id_lengths(self):
        assert is_valid_external_id("a" * 17)
        assert is_valid_external_id("a" * 32)
        for length in (0, 16, 18, 31, 33):
            assert not is_valid_external_id("a" * length)


class TestModDescriptor:
    def test_parses_basic_and_premium_flags(self):
        basic = ModDescriptor.from_record("Speed-Flip|Speed flip trainer|x|y|0")
        premium = ModDescriptor.from_record("Rings|Ring map|x|y|1")

        assert basic == ModDescriptor(
            "speedflip", "basic", ("Speed flip trainer", "x", "y")
        )
        assert premium.is_premium
        assert premium.mod_id == "rings"

    def test_missing_type_field_is_not_basic(self):
        mod = ModDescriptor.from_record("broken|only|three")
        assert mod is not None
        assert mod.mod_type == "premium"

    def test_blank_id_is_skipped(self):
        assert ModDescriptor.from_record(" |a|b|c|0") is None

    def test_parse_catalog_skips_blank_records(self):
        content = "m1|a|b|c|0,\n\nm2|a|b|c|1,\n ,"
        mods = parse_catalog(content)
        assert [m.mod_id for m in mods] == ["m1", "m2"]
        assert find_mod(mods, "m2").is_premium
        assert find_mod(mods, "m3") is None


class TestVerifiedRecord:
    def test_line_format(self):
        assert VerifiedRecord("id123", "m1").to_line() == "id123|m1,"
        assert VerifiedRecord("id123").to_line() == "id123|,"

    def test_from_line(self):
        record = VerifiedRecord.from_line(" id123|all_a_b_c,\n")
        assert record == VerifiedRecord("id123", "all_a_b_c")

    def test_parse_verified_handles_newline_separated_lines(self):
        records = parse_verified("a|m1,\nb|m2,\n")
        assert [r.external_id for r in records] == ["a", "b"]


class TestUserInfoRecord:
    def test_round_trip_line(self):
        record = UserInfoRecord("tester", "4242", "hash", ("1", "2"), "id123")
        line = record.to_line()
        assert line == "tester|4242|hash|1.2|id123,"
        assert UserInfoRecord.from_line(line) == record

    def test_missing_avatar_written_as_null(self):
        line = UserInfoRecord("tester", "4242", None).to_line()
        assert line.startswith("tester|4242|null|")
        assert UserInfoRecord.from_line(line).avatar is None

    def test_legacy_four_field_line(self):
        record = UserInfoRecord.from_line("tester|4242|hash|1.2.3,")
        assert record.role_ids == ("1", "2", "3")
        assert record.external_id == ""

    def test_parse_user_info(self):
        content = "a|1|h|9|x,\nb|2|h|9|y,"
        assert [r.user_id for r in parse_user_info(content)] == ["1", "2"]


class TestPendingRecord:
    def test_initial_record(self):
        record = PendingRecord.from_text(PendingRecord.initial_text("id123"))
        assert record.external_id == "id123"
        assert record.tokens == []
        assert not record.premium_used

    def test_tokens_and_premium_marker(self):
        record = PendingRecord.from_text("id123|b1_p1PREMIUM_b2_")
        assert record.selected_ids == ["b1", "p1", "b2"]
        assert record.premium_used
        assert record.has_selected("p1")
        assert not record.has_selected("p")
        assert record.committed_selection() == "b1_p1_b2"

    def test_selection_token(self):
        assert PendingRecord.selection_token(ModDescriptor("b1", "basic")) == "b1_"
        assert (
            PendingRecord.selection_token(ModDescriptor("p1", "premium"))
            == "p1PREMIUM_"
        )


def test_all_mods_selection():
    assert all_mods_selection(["a", "b", "c"]) == "all_a_b_c"
    assert all_mods_selection([]) == "all"


def test_split_records_strips_whitespace():
    assert split_records("a|1,\n b|2 ,,") == ["a|1", "b|2"]
