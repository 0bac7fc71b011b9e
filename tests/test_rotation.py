"""Testes para a rotação de chave."""

import logging

import pytest

from credential_vault import (
    AuthManager,
    InMemoryCredentialStore,
    InMemoryMasterCredentialStore,
    IntegrityError,
    RotationError,
    RotationProtocol,
    SqliteCredentialStore,
    SqliteMasterCredentialStore,
    StoreError,
    VaultEntry,
    decrypt,
    encrypt,
)


class FailingUpdateStore(InMemoryCredentialStore):
    """Armazenamento em memória que falha na N-ésima atualização."""

    def __init__(self, fail_on: int):
        super().__init__()
        self.fail_on = fail_on
        self.armed = False
        self.updates = 0

    def update(self, entry):
        if self.armed:
            self.updates += 1
            if self.updates == self.fail_on:
                raise StoreError("disco cheio")
        super().update(entry)


class FailingUpdateSqliteStore(SqliteCredentialStore):
    """Armazenamento SQLite que falha na N-ésima atualização."""

    def __init__(self, path, fail_on: int):
        super().__init__(path)
        self.fail_on = fail_on
        self.updates = 0

    def update(self, entry):
        self.updates += 1
        if self.updates == self.fail_on:
            raise StoreError("disco cheio")
        super().update(entry)


class FailingSaveCredentialStore(InMemoryMasterCredentialStore):
    """Credencial mestra cuja gravação falha depois de armada."""

    def __init__(self, error=None):
        super().__init__()
        self.armed = False
        self.error = error or StoreError("sem permissão de escrita")

    def save(self, credential):
        if self.armed:
            raise self.error
        super().save(credential)


def _populate(store, key, count=3):
    ids = []
    for i in range(count):
        entry = VaultEntry(
            title=f"site{i}",
            username=f"user{i}",
            secret=encrypt(f"secret-{i}".encode(), key),
        )
        ids.append(store.create(entry))
    return ids


def _secrets(store, key):
    return {entry.id: decrypt(entry.secret, key) for entry in store.list()}


def test_rotate_reencrypts_all_entries(entry_store, key, other_key):
    """Testa que todas as entradas passam a decifrar apenas com a nova chave."""
    ids = _populate(entry_store, key)
    before = {entry.id: entry.secret for entry in entry_store.list()}

    count = RotationProtocol(entry_store).rotate(key, other_key)

    assert count == 3
    for entry in entry_store.list():
        assert decrypt(entry.secret, other_key) == f"secret-{ids.index(entry.id)}".encode()
        assert entry.secret.nonce != before[entry.id].nonce
        with pytest.raises(IntegrityError):
            decrypt(entry.secret, key)


def test_rotate_preserves_other_fields(entry_store, key, other_key):
    """Testa que apenas o segredo muda na rotação."""
    entry_id = entry_store.create(
        VaultEntry(title="bank", username="alice", secret=encrypt(b"s", key), notes="n", url="u")
    )

    RotationProtocol(entry_store).rotate(key, other_key)

    entry = entry_store.get(entry_id)
    assert (entry.title, entry.username, entry.notes, entry.url) == ("bank", "alice", "n", "u")


def test_rotate_empty_store(entry_store, key, other_key):
    """Testa rotação sem entradas."""
    assert RotationProtocol(entry_store).rotate(key, other_key) == 0


def test_rotate_aborts_on_undecryptable_entry(entry_store, key, other_key):
    """Testa que uma entrada ruim aborta a rotação inteira."""
    _populate(entry_store, key, count=2)
    bad_id = entry_store.create(
        VaultEntry(title="bad", username="x", secret=encrypt(b"other", other_key))
    )
    snapshot = {entry.id: entry.secret for entry in entry_store.list()}

    with pytest.raises(RotationError) as excinfo:
        RotationProtocol(entry_store).rotate(key, other_key)

    assert excinfo.value.entry_id == bad_id
    assert str(bad_id) in str(excinfo.value)
    assert isinstance(excinfo.value.__cause__, IntegrityError)
    assert {entry.id: entry.secret for entry in entry_store.list()} == snapshot


def test_rotate_rolls_back_on_store_failure(key, other_key, caplog):
    """Testa rollback quando o armazenamento falha no meio do commit."""
    store = FailingUpdateStore(fail_on=2)
    _populate(store, key)
    store.armed = True
    caplog.set_level(logging.WARNING)

    with pytest.raises(RotationError, match="disco cheio"):
        RotationProtocol(store).rotate(key, other_key)

    assert len(_secrets(store, key)) == 3
    assert "transação revertida" in caplog.text


def test_rotate_rolls_back_on_sqlite_failure(tmp_path, key, other_key):
    """Testa rollback real da transação SQLite."""
    store = FailingUpdateSqliteStore(tmp_path / "vault.db", fail_on=3)
    _populate(store, key, count=4)

    with pytest.raises(RotationError):
        RotationProtocol(store).rotate(key, other_key)

    assert len(_secrets(store, key)) == 4
    store.close()


def test_change_password_store_failure_keeps_old_state(
    fast_params, fast_hasher, credential_store
):
    """Testa que falha no commit mantém credencial e chave antigas."""
    store = FailingUpdateStore(fail_on=2)
    auth = AuthManager(credential_store, store, kdf_params=fast_params, hasher=fast_hasher)
    auth.initialize("old")
    with auth.session() as s:
        for i in range(3):
            store.create(VaultEntry(title=f"t{i}", username="u", secret=s.encrypt(b"v")))
    before = credential_store.load()
    store.armed = True

    with pytest.raises(RotationError):
        auth.change_password("old", "new")

    assert credential_store.load() == before
    assert auth.verify("old") is True
    assert auth.verify("new") is False
    assert [auth.decrypt(entry.secret) for entry in store.list()] == [b"v"] * 3
    assert auth.get_statistics()["rotations"] == 0


def test_change_password_credential_save_failure_reverts_entries(
    entry_store, fast_params, fast_hasher, caplog
):
    """Testa rotação compensatória quando a credencial não pode ser gravada."""
    credentials = FailingSaveCredentialStore()
    auth = AuthManager(credentials, entry_store, kdf_params=fast_params, hasher=fast_hasher)
    auth.initialize("old")
    with auth.session() as s:
        entry_id = entry_store.create(VaultEntry(title="t", username="u", secret=s.encrypt(b"v")))
    credentials.armed = True
    caplog.set_level(logging.ERROR)

    with pytest.raises(RotationError, match="Rotação revertida"):
        auth.change_password("old", "new")

    assert auth.verify("old") is True
    assert auth.decrypt(entry_store.get(entry_id).secret) == b"v"
    assert "revertendo entradas" in caplog.text

    # Um processo novo ainda abre o cofre com a senha antiga
    fresh = AuthManager(credentials, entry_store, kdf_params=fast_params, hasher=fast_hasher)
    fresh.unlock("old")
    assert fresh.decrypt(entry_store.get(entry_id).secret) == b"v"


def test_rotation_failure_is_not_retried(key, other_key):
    """Testa que a rotação não repete operações após falha."""
    store = FailingUpdateStore(fail_on=1)
    _populate(store, key, count=2)
    store.armed = True

    with pytest.raises(RotationError):
        RotationProtocol(store).rotate(key, other_key)

    assert store.updates == 1


def test_change_password_interrupted_credential_save_reverts_entries(
    entry_store, fast_params, fast_hasher
):
    """Testa rotação compensatória quando a gravação é interrompida."""
    credentials = FailingSaveCredentialStore(error=KeyboardInterrupt())
    auth = AuthManager(credentials, entry_store, kdf_params=fast_params, hasher=fast_hasher)
    auth.initialize("old")
    entry_id = entry_store.create(VaultEntry(title="t", username="u", secret=auth.encrypt(b"v")))
    credentials.armed = True

    with pytest.raises(KeyboardInterrupt):
        auth.change_password("old", "new")

    fresh = AuthManager(credentials, entry_store, kdf_params=fast_params, hasher=fast_hasher)
    fresh.unlock("old")
    assert fresh.decrypt(entry_store.get(entry_id).secret) == b"v"
    assert auth.decrypt(entry_store.get(entry_id).secret) == b"v"


def _sqlite_auth(store, fast_params, fast_hasher):
    return AuthManager(
        SqliteMasterCredentialStore(store), store, kdf_params=fast_params, hasher=fast_hasher
    )


def test_sqlite_change_password_commits_credential_with_entries(tmp_path, fast_params, fast_hasher):
    """Testa que entradas e credencial no mesmo banco são confirmadas juntas."""
    store = SqliteCredentialStore(tmp_path / "vault.db")
    auth = _sqlite_auth(store, fast_params, fast_hasher)
    auth.initialize("old")
    _populate(store, auth._active_key)

    assert auth.change_password("old", "new") == 3

    fresh = _sqlite_auth(store, fast_params, fast_hasher)
    fresh.unlock("new")
    assert sorted(fresh.decrypt(entry.secret) for entry in store.list()) == [
        b"secret-0",
        b"secret-1",
        b"secret-2",
    ]
    store.close()


@pytest.mark.parametrize(
    "error, expected",
    [
        (KeyboardInterrupt(), KeyboardInterrupt),
        (StoreError("disco cheio"), RotationError),
    ],
)
def test_sqlite_change_password_interrupted_credential_write(
    tmp_path, fast_params, fast_hasher, monkeypatch, error, expected
):
    """Testa que interromper a gravação da credencial reverte também as entradas."""
    store = SqliteCredentialStore(tmp_path / "vault.db")
    auth = _sqlite_auth(store, fast_params, fast_hasher)
    auth.initialize("old")
    entry_id = store.create(VaultEntry(title="t", username="u", secret=auth.encrypt(b"v")))

    def interrupted_write(values):
        raise error

    monkeypatch.setattr(store, "write_config", interrupted_write)

    with pytest.raises(expected):
        auth.change_password("old", "new")

    monkeypatch.undo()
    fresh = _sqlite_auth(store, fast_params, fast_hasher)
    fresh.unlock("old")
    assert fresh.decrypt(store.get(entry_id).secret) == b"v"
    assert auth.decrypt(store.get(entry_id).secret) == b"v"
    assert auth.verify("new") is False
    store.close()


def test_rotate_aborts_on_corrupted_sqlite_row(tmp_path, key, other_key):
    """Testa que um registro ilegível aborta a rotação informando a entrada."""
    store = SqliteCredentialStore(tmp_path / "vault.db")
    good_ids = _populate(store, key, count=2)
    bad_id = store.create(VaultEntry(title="bad", username="x", secret=encrypt(b"v", key)))
    store._conn.execute("UPDATE entries SET secret = '!!notb64' WHERE id = ?", (str(bad_id),))

    with pytest.raises(RotationError) as excinfo:
        RotationProtocol(store).rotate(key, other_key)

    assert excinfo.value.entry_id == bad_id
    assert str(bad_id) in str(excinfo.value)
    for entry_id in good_ids:
        decrypt(store.get(entry_id).secret, key)
    store.close()
