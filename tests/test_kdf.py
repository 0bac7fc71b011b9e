"""Testes para a derivação de chave."""

import pytest

from credential_vault import (
    DEFAULT_KDF_PARAMS,
    EncryptionKey,
    KdfParams,
    KeyDerivationError,
    derive_key,
    generate_salt,
)
from credential_vault.kdf import SALT_LENGTH


def test_default_params():
    """Testa os parâmetros padrão (1 passada, 64 MiB, 4 lanes)."""
    assert DEFAULT_KDF_PARAMS.time_cost == 1
    assert DEFAULT_KDF_PARAMS.memory_cost == 64 * 1024
    assert DEFAULT_KDF_PARAMS.parallelism == 4


def test_derive_key_is_deterministic(fast_params):
    """Testa que a mesma entrada sempre gera a mesma chave."""
    salt = generate_salt()

    key1 = derive_key("correct horse", salt, fast_params)
    key2 = derive_key("correct horse", salt, fast_params)

    assert isinstance(key1, EncryptionKey)
    assert len(key1) == 32
    assert key1 == key2


def test_derive_key_depends_on_salt_password_and_params(fast_params):
    """Testa que salt, senha e parâmetros alteram a chave."""
    salt = generate_salt()
    base = derive_key("pw", salt, fast_params)

    assert derive_key("pw", generate_salt(), fast_params) != base
    assert derive_key("pw2", salt, fast_params) != base
    assert derive_key("pw", salt, KdfParams(time_cost=2, memory_cost=64, parallelism=1)) != base


def test_derive_key_accepts_empty_password(fast_params):
    """Testa que qualquer par senha/salt é entrada válida."""
    assert len(derive_key("", generate_salt(), fast_params)) == 32


def test_derive_key_rejects_salt_shorter_than_argon2_minimum(fast_params):
    """Testa que o Argon2 recusa salts com menos de 8 bytes."""
    with pytest.raises(KeyDerivationError, match="Falha na derivação"):
        derive_key("pw", b"abc", fast_params)


def test_derive_key_rejects_non_params():
    """Testa erro quando params não é KdfParams."""
    with pytest.raises(KeyDerivationError, match="KdfParams"):
        derive_key("pw", generate_salt(), {"time_cost": 1})


@pytest.mark.parametrize(
    "kwargs, message",
    [
        ({"time_cost": 0}, "time_cost"),
        ({"parallelism": 0}, "parallelism"),
        ({"memory_cost": 0}, "memory_cost"),
        ({"memory_cost": 16, "parallelism": 4}, "memory_cost"),
        ({"time_cost": "1"}, "inteiro"),
        ({"memory_cost": True}, "inteiro"),
    ],
)
def test_invalid_params(kwargs, message):
    """Testa que parâmetros malformados levantam KeyDerivationError."""
    with pytest.raises(KeyDerivationError, match=message):
        KdfParams(**kwargs)


def test_params_dict_conversion():
    """Testa conversão de parâmetros para e de dicionário."""
    params = KdfParams(time_cost=2, memory_cost=128, parallelism=2)
    assert KdfParams.from_dict(params.to_dict()) == params
    assert KdfParams.from_dict({"time_cost": "2", "memory_cost": "128", "parallelism": "2"}) == params

    with pytest.raises(KeyDerivationError, match="inválidos"):
        KdfParams.from_dict({"time_cost": 1})


def test_generate_salt():
    """Testa tamanho e aleatoriedade do salt."""
    salt = generate_salt()
    assert len(salt) == SALT_LENGTH
    assert SALT_LENGTH >= 16
    assert generate_salt() != salt
    assert len(generate_salt(32)) == 32


def test_derive_key_accepts_lone_surrogate(fast_params):
    """Testa que senhas com surrogates isolados também derivam chave."""
    salt = generate_salt()
    key = derive_key("pw\ud800", salt, fast_params)

    assert len(key) == 32
    assert key == derive_key("pw\ud800", salt, fast_params)
    assert key != derive_key("pw", salt, fast_params)
