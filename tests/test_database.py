"""Tests for user and conversation persistence."""

import pytest

from reportai import database as db
from reportai.errors import InvalidInput, NotFound


class TestUsers:
    def test_email_is_normalized(self):
        user = db.create_user(" Ana ", "  Ana@Example.COM ", "hash")
        assert user["email"] == "ana@example.com"
        assert user["name"] == "Ana"
        assert "password" not in user

    def test_lookup_by_email_includes_hash(self):
        db.create_user("Ana", "ana@example.com", "hash")
        found = db.get_user_by_email("ANA@example.com")
        assert found["password"] == "hash"

    def test_duplicate_email_rejected(self):
        db.create_user("Ana", "ana@example.com", "hash")
        with pytest.raises(InvalidInput):
            db.create_user("Other", " ANA@example.com", "hash2")
        assert db.get_user_by_email("ana@example.com")["name"] == "Ana"

    def test_unknown_user(self):
        assert db.get_user("missing") is None
        assert db.get_user_by_email("nobody@example.com") is None

    def test_update_last_login(self):
        user = db.create_user("Ana", "ana@example.com", "hash")
        db.update_last_login(user["id"])
        assert db.get_user(user["id"])["last_login"] >= user["last_login"]


class TestCreateConversation:
    def test_returns_id_and_stores_context_and_seed(self, user_id):
        cid = db.create_conversation(
            user_id, "Q3 report", "single",
            {"document_text": "Revenue rose."},
            [{"role": "bot", "content": "Summary..."}],
        )
        convo = db.get_conversation(cid, user_id)
        assert convo["id"] == cid
        assert convo["title"] == "Q3 report"
        assert convo["type"] == "single"
        assert convo["context"]["document_text"] == "Revenue rose."
        assert convo["context"]["left_text"] is None
        assert [(m["role"], m["content"]) for m in convo["messages"]] == [("bot", "Summary...")]

    def test_compare_context(self, user_id):
        context = {"left_text": "A", "right_text": "B", "differences_text": "D"}
        cid = db.create_conversation(user_id, "Comparison", "compare", context)
        stored = db.get_conversation(cid, user_id)["context"]
        assert stored == {"document_text": None, "left_text": "A", "right_text": "B", "differences_text": "D"}

    def test_title_required(self, user_id):
        with pytest.raises(InvalidInput):
            db.create_conversation(user_id, "", "single")

    def test_unknown_type_rejected(self, user_id):
        with pytest.raises(InvalidInput):
            db.create_conversation(user_id, "t", "triple")

    def test_invalid_seed_message_rejected(self, user_id):
        with pytest.raises(InvalidInput):
            db.create_conversation(user_id, "t", "single", {}, [{"role": "assistant", "content": "x"}])


class TestAppendMessages:
    def test_pair_appended_after_existing(self, user_id):
        seed = [{"role": "bot", "content": f"m{i}"} for i in range(3)]
        cid = db.create_conversation(user_id, "t", "single", {}, seed)
        before = db.get_conversation(cid, user_id)["messages"]

        count = db.append_messages(cid, user_id, [
            {"role": "user", "content": "What changed?"},
            {"role": "bot", "content": "Revenue."},
        ])

        after = db.get_conversation(cid, user_id)["messages"]
        assert count == len(before) + 2
        assert after[:len(before)] == before
        assert [(m["role"], m["content"]) for m in after[-2:]] == [("user", "What changed?"), ("bot", "Revenue.")]

    def test_order_is_call_order(self, user_id):
        cid = db.create_conversation(user_id, "t")
        for i in range(5):
            db.append_messages(cid, user_id, [{"role": "user", "content": str(i)}])
        messages = db.get_conversation(cid, user_id)["messages"]
        assert [m["content"] for m in messages] == ["0", "1", "2", "3", "4"]
        assert all(m["created_at"] is not None for m in messages)

    def test_bumps_updated_at(self, user_id):
        cid = db.create_conversation(user_id, "t")
        first = db.get_conversation(cid, user_id)["updated_at"]
        db.append_messages(cid, user_id, [{"role": "system", "content": "note"}])
        assert db.get_conversation(cid, user_id)["updated_at"] >= first

    def test_empty_or_invalid_messages_rejected(self, user_id):
        cid = db.create_conversation(user_id, "t")
        with pytest.raises(InvalidInput):
            db.append_messages(cid, user_id, [])
        with pytest.raises(InvalidInput):
            db.append_messages(cid, user_id, [{"role": "user", "content": ""}])
        assert db.get_conversation(cid, user_id)["messages"] == []

    def test_missing_conversation(self, user_id):
        with pytest.raises(NotFound):
            db.append_messages("missing", user_id, [{"role": "user", "content": "hi"}])


class TestOwnership:
    def test_other_user_cannot_read_or_write(self, user_id):
        other = db.create_user("Eve", "eve@example.com", "hash")["id"]
        cid = db.create_conversation(user_id, "private")
        with pytest.raises(NotFound):
            db.get_conversation(cid, other)
        with pytest.raises(NotFound):
            db.append_messages(cid, other, [{"role": "user", "content": "hi"}])
        with pytest.raises(NotFound):
            db.rename_conversation(cid, other, "mine")
        assert db.list_conversations(other) == []


class TestListAndRename:
    def test_list_most_recently_updated_first(self, user_id):
        old = db.create_conversation(user_id, "old")
        new = db.create_conversation(user_id, "new")
        db.append_messages(old, user_id, [{"role": "user", "content": "bump"}])
        ids = [c["id"] for c in db.list_conversations(user_id)]
        assert ids == [old, new]

    def test_list_limit(self, user_id):
        for i in range(4):
            db.create_conversation(user_id, f"c{i}")
        assert len(db.list_conversations(user_id, limit=2)) == 2

    def test_rename_keeps_messages(self, user_id):
        cid = db.create_conversation(user_id, "before", "single", {}, [{"role": "bot", "content": "hello"}])
        assert db.rename_conversation(cid, user_id, "after") == {"id": cid, "title": "after"}
        convo = db.get_conversation(cid, user_id)
        assert convo["title"] == "after"
        assert [m["content"] for m in convo["messages"]] == ["hello"]

    def test_rename_requires_title(self, user_id):
        cid = db.create_conversation(user_id, "t")
        with pytest.raises(InvalidInput):
            db.rename_conversation(cid, user_id, "")
