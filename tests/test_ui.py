"""Tests for the interactive prompt helpers."""

from prompt_toolkit.document import Document

from split_ledger.ledger.ui import PersonCompleter, confirm_split, fuzzy_match
from split_ledger.money import MoneyAmount


class TestFuzzyMatch:
    """Characters must appear in order."""

    def test_matches(self):
        assert fuzzy_match("crl", "carol")
        assert fuzzy_match("", "anyone")

    def test_out_of_order(self):
        assert not fuzzy_match("lrc", "carol")


class TestPersonCompleter:
    def test_completes_known_people(self):
        completer = PersonCompleter(["bob", "carol", "alice", "bob"])

        completions = list(completer.get_completions(Document("ae"), None))

        assert [c.text for c in completions] == ["alice"]

    def test_empty_query_lists_everyone(self):
        completer = PersonCompleter(["bob", "alice"])

        completions = list(completer.get_completions(Document(""), None))

        assert [c.text for c in completions] == ["alice", "bob"]


class TestConfirmSplit:
    def test_default_is_yes(self, monkeypatch, capsys):
        monkeypatch.setattr("builtins.input", lambda _: "")

        assert confirm_split({"a": MoneyAmount.parse("5")})
        assert "a: $5.00" in capsys.readouterr().out

    def test_no(self, monkeypatch):
        monkeypatch.setattr("builtins.input", lambda _: "n")

        assert not confirm_split({"a": MoneyAmount.parse("5")})
