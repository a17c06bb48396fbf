"""
Tests for wallet.secure - wipeable secret containers.
"""

import pytest

from wallet.errors import KeyWiped
from wallet.secure import SecretBuffer, scoped_secret, wipe_bytearray


class TestSecretBuffer:

    def test_reveal(self):
        buf = SecretBuffer.from_text("seed words")
        assert buf.reveal_text() == "seed words"
        assert len(buf) == 10

    def test_wipe_zero_fills_backing_storage(self):
        buf = SecretBuffer(b"\xff" * 16)
        backing = buf._data
        buf.wipe()
        assert backing == bytearray(16)
        assert buf.is_wiped
        assert len(buf) == 0

    def test_reveal_after_wipe(self):
        buf = SecretBuffer(b"secret")
        buf.wipe()
        with pytest.raises(KeyWiped):
            buf.reveal()

    def test_wipe_is_idempotent(self):
        buf = SecretBuffer(b"secret")
        buf.wipe()
        buf.wipe()
        assert buf.is_wiped

    def test_exposed(self):
        buf = SecretBuffer.from_text("phrase")
        with buf.exposed() as text:
            assert text == "phrase"

    def test_repr_hides_content(self):
        buf = SecretBuffer.from_text("hunter2")
        assert "hunter2" not in repr(buf)
        buf.wipe()
        assert "wiped" in repr(buf)

    def test_input_is_copied(self):
        source = bytearray(b"abc")
        buf = SecretBuffer(source)
        source[0] = 0
        assert buf.reveal() == b"abc"


class TestHelpers:

    def test_wipe_bytearray(self):
        data = bytearray(b"key material")
        wipe_bytearray(data)
        assert data == bytearray(len(b"key material"))

    def test_scoped_secret_wipes_on_exit(self):
        with scoped_secret(b"temporary") as buf:
            assert buf.reveal() == b"temporary"
        assert buf.is_wiped

    def test_scoped_secret_wipes_on_error(self):
        with pytest.raises(RuntimeError):
            with scoped_secret(b"temporary") as buf:
                raise RuntimeError("boom")
        assert buf.is_wiped
