"""Unit tests for the ID generator utilities."""

import re
import string

from dockfleet.utils.id_generator import generate_connection_id, generate_nanoid, generate_request_id

FULL_ALPHABET = string.ascii_letters + string.digits + "_-"


class TestGenerateNanoid:
    """Tests for the generate_nanoid function."""

    def test_default_length_is_21(self):
        assert len(generate_nanoid()) == 21

    def test_custom_length(self):
        for length in [1, 5, 12, 50]:
            assert len(generate_nanoid(length)) == length

    def test_all_chars_valid(self):
        for _ in range(50):
            assert all(char in FULL_ALPHABET for char in generate_nanoid())

    def test_unique(self):
        assert len({generate_nanoid() for _ in range(100)}) == 100


class TestGenerateConnectionId:
    """Tests for connection ids."""

    def test_scoped_to_container_prefix(self):
        connection_id = generate_connection_id("0123456789abcdef0123")

        assert re.fullmatch(r"ws-0123456789ab-[A-Za-z0-9_-]{12}", connection_id)

    def test_short_container_id(self):
        assert generate_connection_id("web").startswith("ws-web-")

    def test_unique_per_call(self):
        assert generate_connection_id("abc") != generate_connection_id("abc")


class TestGenerateRequestId:
    def test_request_id(self):
        assert len(generate_request_id()) == 21
