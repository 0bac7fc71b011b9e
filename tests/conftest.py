"""Fixtures compartilhadas: parâmetros Argon2 baratos para os testes."""

import os

import pytest

from credential_vault import (
    AuthManager,
    EncryptionKey,
    InMemoryCredentialStore,
    InMemoryMasterCredentialStore,
    KdfParams,
    PasswordHasher,
)

FAST_PARAMS = KdfParams(time_cost=1, memory_cost=64, parallelism=1)


@pytest.fixture
def fast_params():
    return FAST_PARAMS


@pytest.fixture
def fast_hasher():
    return PasswordHasher(time_cost=1, memory_cost=64, parallelism=1)


@pytest.fixture
def key():
    return EncryptionKey(os.urandom(32))


@pytest.fixture
def other_key():
    return EncryptionKey(os.urandom(32))


@pytest.fixture
def entry_store():
    return InMemoryCredentialStore()


@pytest.fixture
def credential_store():
    return InMemoryMasterCredentialStore()


@pytest.fixture
def make_auth(credential_store, entry_store, fast_params, fast_hasher):
    """Fábrica de AuthManager sobre os mesmos armazenamentos."""

    def factory(credentials=None, entries=None, params=None):
        return AuthManager(
            credentials or credential_store,
            entries or entry_store,
            kdf_params=params or fast_params,
            hasher=fast_hasher,
        )

    return factory
