"""
Unit tests for the request generator.
"""

import random

import pytest

from mail_benchmark.config import ConfigError
from mail_benchmark.generator import SEARCH_LIMIT, SUBJECTS, RequestGenerator, new_user_ids


class TestRequestGenerator:

    def test_empty_user_list_rejected(self):
        """Generator refuses an empty user pool."""
        with pytest.raises(ConfigError):
            RequestGenerator([])

    def test_sender_never_in_recipients(self, user_ids):
        """Sender id never appears in its own To/Cc/Bcc lists."""
        gen = RequestGenerator(user_ids[:3], random.Random(7))

        for _ in range(2000):
            request = gen.generate_create_request()
            assert request.from_user not in request.to
            assert request.from_user not in request.cc
            assert request.from_user not in request.bcc
            assert len(request.to) <= 3
            assert len(request.cc) <= 1
            assert len(request.bcc) <= 1

    def test_single_user_mails_have_no_recipients(self):
        """With one user every draw hits the sender and is discarded."""
        gen = RequestGenerator(new_user_ids(1), random.Random(1))

        request = gen.generate_create_request()

        assert request.recipients == []

    def test_content_mentions_subject(self, generator):
        request = generator.generate_create_request(reply_to="abc")

        assert request.subject in SUBJECTS
        assert request.subject in request.content
        assert request.reply_to == "abc"

    def test_list_request_ranges(self, generator, user_ids):
        """Limit in [20, 99], offset in [0, 99]."""
        for _ in range(500):
            request = generator.generate_list_request()
            assert 20 <= request.limit < 100
            assert 0 <= request.offset < 100
            assert request.user_id in user_ids

    def test_search_request_uses_subject_terms(self, generator):
        for _ in range(100):
            request = generator.generate_search_request()
            assert request.search_term in SUBJECTS
            assert request.limit == SEARCH_LIMIT

    def test_same_seed_same_sequence(self, user_ids):
        """Seeded generators are reproducible."""
        first = RequestGenerator(user_ids, random.Random(3))
        second = RequestGenerator(user_ids, random.Random(3))

        for _ in range(20):
            assert first.generate_create_request() == second.generate_create_request()

    def test_user_ids_is_a_copy(self, generator):
        ids = generator.user_ids
        ids.clear()

        assert generator.user_ids
