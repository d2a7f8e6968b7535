"""
Unit tests for mail documents and request payloads.
"""

from datetime import datetime, timezone

from bson import ObjectId

from mail_benchmark.models import (
    MAIL_TYPE_SENT,
    ListMailsRequest,
    Mail,
    MailRequest,
    OperationWeights,
    SearchMailsRequest,
    ThreadMail,
)


class TestMail:

    def test_document_field_names(self):
        mail = Mail(
            user_id="u1",
            from_user="u1",
            to=["u2"],
            subject="Team Sync",
            content="body",
            thread_id="t1",
            type=MAIL_TYPE_SENT,
        )

        doc = mail.to_document()

        assert doc["userId"] == "u1"
        assert doc["from"] == "u1"
        assert doc["threadId"] == "t1"
        assert doc["type"] == 1
        assert "cc" not in doc
        assert "replyTo" not in doc

    def test_from_store_document(self):
        oid = ObjectId()
        created = datetime(2024, 1, 1, tzinfo=timezone.utc)

        mail = Mail.from_document(
            {"_id": oid, "userId": "u2", "from": "u1", "to": ["u2"], "cc": None, "createdAt": created}
        )

        assert mail.id == str(oid)
        assert mail.cc == []
        assert mail.created_at == created

    def test_from_api_document_with_nanoseconds(self):
        mail = Mail.from_document(
            {"id": "abc", "subject": "s", "createdAt": "2024-05-01T10:20:30.123456789Z"}
        )

        assert mail.id == "abc"
        assert mail.created_at == datetime(2024, 5, 1, 10, 20, 30, 123456, tzinfo=timezone.utc)

    def test_unparseable_timestamp(self):
        assert Mail.from_document({"createdAt": "yesterday"}).created_at is None


class TestPayloads:

    def test_mail_request_payload(self):
        request = MailRequest(from_user="a", to=["b"], subject="s", content="c", bcc=["d"], reply_to="m1")

        payload = request.to_payload()

        assert payload == {"from": "a", "to": ["b"], "subject": "s", "content": "c", "bcc": ["d"], "replyTo": "m1"}
        assert request.recipients == ["b", "d"]

    def test_list_payload_omits_zero_paging(self):
        assert ListMailsRequest("u").to_payload() == {"userId": "u"}
        assert ListMailsRequest("u", limit=20, offset=5).to_payload() == {"userId": "u", "limit": 20, "offset": 5}

    def test_search_payload(self):
        assert SearchMailsRequest("u", "Budget").to_payload() == {"userId": "u", "searchTerm": "Budget", "limit": 50}

    def test_thread_mail_document(self):
        doc = ThreadMail(from_user="a", msg_id="m", subject="s", content="c", to=["b"], cc=["c"]).to_document()

        assert doc["msg_id"] == "m"
        assert doc["cc"] == ["c"]
        assert "bcc" not in doc

    def test_weights_total(self):
        assert OperationWeights().total == 100
