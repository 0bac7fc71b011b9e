"""Testes para o PasswordHasher."""

import pytest
from argon2 import PasswordHasher as Argon2Hasher

from credential_vault import KeyDerivationError, PasswordHasher


def test_hash_and_verify(fast_hasher):
    """Testa hash e verificação da senha mestra."""
    record = fast_hasher.hash("pw1")

    assert record.startswith("$argon2id$")
    assert "pw1" not in record
    assert fast_hasher.verify("pw1", record) is True
    assert fast_hasher.verify("anything-else", record) is False


def test_hash_uses_random_salt_per_call(fast_hasher):
    """Testa que cada hash embute um salt diferente."""
    assert fast_hasher.hash("pw") != fast_hasher.hash("pw")


@pytest.mark.parametrize(
    "record",
    [
        "",
        None,
        123,
        b"$argon2id$",
        "not-a-hash",
        "$argon2id$v=19$m=64,t=1,p=1$garbage",
        "$argon2id$é",
    ],
)
def test_verify_malformed_record_returns_false(fast_hasher, record):
    """Testa que registros malformados resultam em False, sem exceção."""
    assert fast_hasher.verify("pw", record) is False


def test_verify_non_string_password(fast_hasher):
    """Testa que senha de tipo errado resulta em False."""
    record = fast_hasher.hash("pw")
    assert fast_hasher.verify(None, record) is False


def test_verify_record_from_other_parameters(fast_hasher):
    """Testa que registros com outros parâmetros continuam verificáveis."""
    other = PasswordHasher(time_cost=2, memory_cost=128, parallelism=1)
    record = other.hash("pw")

    assert fast_hasher.verify("pw", record) is True
    assert fast_hasher.needs_rehash(record) is True
    assert fast_hasher.needs_rehash(fast_hasher.hash("pw")) is False


def test_needs_rehash_malformed_record(fast_hasher):
    """Testa que registro malformado sempre precisa de rehash."""
    assert fast_hasher.needs_rehash("not-a-hash") is True


def test_invalid_parameter_types():
    """Testa erro para parâmetros de tipo inválido."""
    with pytest.raises(KeyDerivationError, match="Parâmetros de hash inválidos"):
        PasswordHasher(time_cost="1")


def test_password_with_lone_surrogate(fast_hasher):
    """Testa que qualquer str é aceita como senha."""
    password = "pw\ud800"
    record = fast_hasher.hash(password)

    assert fast_hasher.verify(password, record) is True
    assert fast_hasher.verify("pw", record) is False


def test_non_ascii_password_matches_plain_utf8_hash(fast_hasher):
    """Testa compatibilidade com registros gerados a partir da str."""
    record = Argon2Hasher(time_cost=1, memory_cost=64, parallelism=1).hash("senha-ção")
    assert fast_hasher.verify("senha-ção", record) is True
