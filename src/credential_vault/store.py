"""Armazenamento de entradas e da credencial mestra.

O motor de segurança conversa com o armazenamento apenas pelas interfaces
CredentialStore e MasterCredentialStore. Entradas cruzam esta fronteira
sempre com o segredo cifrado; a chave nunca é entregue ao armazenamento.
"""

import logging
import sqlite3
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from threading import RLock
from typing import Any, Dict, Iterator, List, Mapping, Optional, Union
from uuid import UUID, uuid4

from .cipher import EncryptedBlob
from .errors import EntryNotFoundError, FormatError, KeyDerivationError, StoreError
from .kdf import KdfParams
from .models import MasterCredential, VaultEntry
from .utils import (
    ENV_CHECKSUM_KEY,
    compute_env_checksum,
    decode_b64,
    encode_b64,
    locked_file,
    parse_env_file,
    write_env_file,
)

HASH_KEY = "VAULT_MASTER_PASSWORD_HASH"
SALT_KEY = "VAULT_MASTER_SALT"
TIME_COST_KEY = "VAULT_MASTER_KDF_TIME_COST"
MEMORY_COST_KEY = "VAULT_MASTER_KDF_MEMORY_COST"
PARALLELISM_KEY = "VAULT_MASTER_KDF_PARALLELISM"


def credential_to_mapping(credential: MasterCredential) -> Dict[str, str]:
    """Converte a credencial mestra para pares chave/valor textuais."""
    return {
        HASH_KEY: credential.password_hash,
        SALT_KEY: encode_b64(credential.salt),
        TIME_COST_KEY: str(credential.kdf_params.time_cost),
        MEMORY_COST_KEY: str(credential.kdf_params.memory_cost),
        PARALLELISM_KEY: str(credential.kdf_params.parallelism),
    }


def credential_from_mapping(mapping: Mapping[str, str]) -> MasterCredential:
    """Reconstrói a credencial mestra a partir de pares chave/valor.

    Retorna a credencial vazia quando não há hash gravado.

    Raises:
        FormatError: Se salt ou parâmetros estiverem corrompidos
    """
    password_hash = mapping.get(HASH_KEY) or ""
    if not password_hash:
        return MasterCredential.empty()

    try:
        salt = decode_b64(mapping.get(SALT_KEY) or "")
        params = KdfParams.from_dict(
            {
                "time_cost": mapping.get(TIME_COST_KEY),
                "memory_cost": mapping.get(MEMORY_COST_KEY),
                "parallelism": mapping.get(PARALLELISM_KEY),
            }
        )
    except (TypeError, ValueError, KeyDerivationError) as exc:
        raise FormatError(f"Credencial mestra corrompida: {exc}") from exc

    if not salt:
        raise FormatError("Credencial mestra sem salt de registro")

    return MasterCredential(password_hash=password_hash, salt=salt, kdf_params=params)


class CredentialStore(ABC):
    """Persistência abstrata de VaultEntry."""

    @abstractmethod
    def create(self, entry: VaultEntry) -> UUID:
        """Persiste uma nova entrada e retorna o id gerado."""

    @abstractmethod
    def get(self, entry_id: UUID) -> VaultEntry:
        """Retorna a entrada ou levanta EntryNotFoundError."""

    @abstractmethod
    def list(self) -> List[VaultEntry]:
        """Retorna todas as entradas."""

    @abstractmethod
    def update(self, entry: VaultEntry) -> None:
        """Substitui a entrada de mesmo id ou levanta EntryNotFoundError."""

    @abstractmethod
    def delete(self, entry_id: UUID) -> None:
        """Remove a entrada ou levanta EntryNotFoundError."""

    @abstractmethod
    def transaction(self):
        """Context manager: commit ao sair, rollback se houver exceção."""


class MasterCredentialStore(ABC):
    """Persistência abstrata da credencial mestra."""

    @abstractmethod
    def load(self) -> MasterCredential:
        """Retorna a credencial gravada, ou a credencial vazia."""

    @abstractmethod
    def save(self, credential: MasterCredential) -> None:
        """Grava a credencial por completo ou não grava nada."""

    def shares_transaction(self, entry_store: CredentialStore) -> bool:
        """Indica se save() participa de entry_store.transaction().

        Quando verdadeiro, a rotação das entradas e a nova credencial são
        confirmadas no mesmo commit.
        """
        return False


class InMemoryCredentialStore(CredentialStore):
    """Armazenamento em memória, útil para testes e processos efêmeros."""

    def __init__(self, logger: Optional[Any] = None):
        self._entries: Dict[UUID, VaultEntry] = {}
        self._lock = RLock()
        self._logger = logger or logging.getLogger(__name__)

    def create(self, entry: VaultEntry) -> UUID:
        entry_id = uuid4()
        now = datetime.now(timezone.utc)
        with self._lock:
            self._entries[entry_id] = replace(entry, id=entry_id, created_at=now, updated_at=now)
        return entry_id

    def get(self, entry_id: UUID) -> VaultEntry:
        with self._lock:
            if entry_id not in self._entries:
                raise EntryNotFoundError(f"Entrada '{entry_id}' não encontrada")
            return replace(self._entries[entry_id])

    def list(self) -> List[VaultEntry]:
        with self._lock:
            return [replace(entry) for entry in self._entries.values()]

    def update(self, entry: VaultEntry) -> None:
        with self._lock:
            if entry.id not in self._entries:
                raise EntryNotFoundError(f"Entrada '{entry.id}' não encontrada")
            self._entries[entry.id] = replace(
                entry,
                created_at=self._entries[entry.id].created_at,
                updated_at=datetime.now(timezone.utc),
            )

    def delete(self, entry_id: UUID) -> None:
        with self._lock:
            if entry_id not in self._entries:
                raise EntryNotFoundError(f"Entrada '{entry_id}' não encontrada")
            del self._entries[entry_id]

    @contextmanager
    def transaction(self) -> Iterator[None]:
        with self._lock:
            snapshot = dict(self._entries)
            try:
                yield
            except BaseException:
                self._entries = snapshot
                self._logger.debug("Transação revertida")
                raise


class InMemoryMasterCredentialStore(MasterCredentialStore):
    """Credencial mestra mantida apenas em memória."""

    def __init__(self, credential: Optional[MasterCredential] = None):
        self._credential = credential or MasterCredential.empty()
        self._lock = RLock()

    def load(self) -> MasterCredential:
        with self._lock:
            return self._credential

    def save(self, credential: MasterCredential) -> None:
        with self._lock:
            self._credential = credential


class SqliteCredentialStore(CredentialStore):
    """Armazenamento SQLite das entradas do cofre.

    A conexão opera em modo autocommit; transaction() abre um BEGIN IMMEDIATE
    explícito e todas as escritas feitas dentro dele são confirmadas ou
    revertidas juntas. Transações aninhadas se juntam à transação externa.

    Attributes:
        path: Caminho do arquivo do banco (ou ":memory:")
    """

    _COLUMNS = "id, title, username, secret, notes, url, created_at, updated_at"

    def __init__(self, path: Union[str, Path] = ":memory:", logger: Optional[Any] = None):
        self.path = str(path)
        self._logger = logger or logging.getLogger(__name__)
        self._lock = RLock()
        self._tx_depth = 0

        if self.path != ":memory:":
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)

        try:
            self._conn = sqlite3.connect(self.path, check_same_thread=False, isolation_level=None)
            self._create_schema()
        except sqlite3.Error as exc:
            raise StoreError(f"Falha ao abrir banco do cofre '{self.path}': {exc}") from exc

    def _create_schema(self) -> None:
        self._conn.execute(
            """
            CREATE TABLE IF NOT EXISTS entries (
                id TEXT PRIMARY KEY,
                title TEXT NOT NULL,
                username TEXT NOT NULL,
                secret TEXT NOT NULL,
                notes TEXT NOT NULL DEFAULT '',
                url TEXT NOT NULL DEFAULT '',
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
            """
        )
        self._conn.execute(
            """
            CREATE TABLE IF NOT EXISTS vault_config (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL
            )
            """
        )

    def _execute(self, sql: str, params: tuple = ()) -> sqlite3.Cursor:
        try:
            return self._conn.execute(sql, params)
        except sqlite3.Error as exc:
            raise StoreError(f"Erro no banco do cofre: {exc}") from exc

    @staticmethod
    def _row_to_entry(row: tuple) -> VaultEntry:
        entry_id, title, username, secret, notes, url, created_at, updated_at = row
        entry_id = UUID(entry_id)
        try:
            blob = EncryptedBlob.from_b64(secret)
        except FormatError as exc:
            raise FormatError(f"Entrada '{entry_id}' corrompida: {exc}", entry_id=entry_id) from exc
        return VaultEntry(
            id=entry_id,
            title=title,
            username=username,
            secret=blob,
            notes=notes,
            url=url,
            created_at=datetime.fromisoformat(created_at),
            updated_at=datetime.fromisoformat(updated_at),
        )

    def create(self, entry: VaultEntry) -> UUID:
        entry_id = uuid4()
        now = datetime.now(timezone.utc).isoformat()
        with self._lock:
            self._execute(
                f"INSERT INTO entries ({self._COLUMNS}) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    str(entry_id),
                    entry.title,
                    entry.username,
                    entry.secret.to_b64(),
                    entry.notes,
                    entry.url,
                    now,
                    now,
                ),
            )
        self._logger.debug(f"Entrada criada: {entry_id}")
        return entry_id

    def get(self, entry_id: UUID) -> VaultEntry:
        with self._lock:
            row = self._execute(
                f"SELECT {self._COLUMNS} FROM entries WHERE id = ?",
                (str(entry_id),),
            ).fetchone()
        if row is None:
            raise EntryNotFoundError(f"Entrada '{entry_id}' não encontrada")
        return self._row_to_entry(row)

    def list(self) -> List[VaultEntry]:
        with self._lock:
            rows = self._execute(
                f"SELECT {self._COLUMNS} FROM entries ORDER BY created_at, id"
            ).fetchall()
        return [self._row_to_entry(row) for row in rows]

    def update(self, entry: VaultEntry) -> None:
        now = datetime.now(timezone.utc).isoformat()
        with self._lock:
            cursor = self._execute(
                "UPDATE entries SET title = ?, username = ?, secret = ?, notes = ?, url = ?, "
                "updated_at = ? WHERE id = ?",
                (
                    entry.title,
                    entry.username,
                    entry.secret.to_b64(),
                    entry.notes,
                    entry.url,
                    now,
                    str(entry.id),
                ),
            )
        if cursor.rowcount == 0:
            raise EntryNotFoundError(f"Entrada '{entry.id}' não encontrada")

    def delete(self, entry_id: UUID) -> None:
        with self._lock:
            cursor = self._execute("DELETE FROM entries WHERE id = ?", (str(entry_id),))
        if cursor.rowcount == 0:
            raise EntryNotFoundError(f"Entrada '{entry_id}' não encontrada")
        self._logger.debug(f"Entrada removida: {entry_id}")

    @contextmanager
    def transaction(self) -> Iterator[None]:
        with self._lock:
            if self._tx_depth:
                self._tx_depth += 1
                try:
                    yield
                finally:
                    self._tx_depth -= 1
                return

            self._execute("BEGIN IMMEDIATE")
            self._tx_depth = 1
            try:
                yield
            except BaseException:
                self._tx_depth = 0
                self._rollback()
                self._logger.debug("Transação revertida")
                raise
            self._tx_depth = 0
            try:
                self._conn.execute("COMMIT")
            except sqlite3.Error as exc:
                self._rollback()
                raise StoreError(f"Falha ao confirmar transação: {exc}") from exc

    def _rollback(self) -> None:
        if self._conn.in_transaction:
            self._conn.execute("ROLLBACK")

    def read_config(self) -> Dict[str, str]:
        """Lê a tabela vault_config como dicionário."""
        with self._lock:
            rows = self._execute("SELECT key, value FROM vault_config").fetchall()
        return {key: value for key, value in rows}

    def write_config(self, values: Mapping[str, str]) -> None:
        """Grava pares na tabela vault_config em uma única transação."""
        with self.transaction():
            for key, value in values.items():
                self._execute(
                    "INSERT INTO vault_config (key, value) VALUES (?, ?) "
                    "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                    (key, value),
                )

    def close(self) -> None:
        with self._lock:
            self._conn.close()


class SqliteMasterCredentialStore(MasterCredentialStore):
    """Credencial mestra gravada na tabela vault_config do banco do cofre."""

    def __init__(self, store: SqliteCredentialStore):
        self._store = store

    def load(self) -> MasterCredential:
        return credential_from_mapping(self._store.read_config())

    def save(self, credential: MasterCredential) -> None:
        self._store.write_config(credential_to_mapping(credential))

    def shares_transaction(self, entry_store: CredentialStore) -> bool:
        return entry_store is self._store


class EnvFileMasterCredentialStore(MasterCredentialStore):
    """Credencial mestra gravada em um arquivo .env.

    Formato:
        VAULT_MASTER_PASSWORD_HASH="$argon2id$..."
        VAULT_MASTER_SALT="<base64>"
        VAULT_MASTER_KDF_TIME_COST="1"
        VAULT_MASTER_KDF_MEMORY_COST="65536"
        VAULT_MASTER_KDF_PARALLELISM="4"
        VAULT_CREDENTIAL_CHECKSUM="<sha256>"

    Outras variáveis presentes no arquivo são preservadas. A gravação é feita
    sob lock exclusivo em um arquivo temporário que substitui o original.
    """

    def __init__(self, path: Union[str, Path], logger: Optional[Any] = None):
        self.path = Path(path)
        self._lock_path = self.path.with_name(self.path.name + ".lock")
        self._logger = logger or logging.getLogger(__name__)

    def _read(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        data = parse_env_file(self.path)
        checksum = data.get(ENV_CHECKSUM_KEY)
        if checksum and compute_env_checksum(data) != checksum:
            raise FormatError(f"Checksum do arquivo de credencial inválido: {self.path}")
        return data

    def load(self) -> MasterCredential:
        try:
            data = self._read()
        except OSError as exc:
            raise StoreError(f"Falha ao ler credencial mestra: {exc}") from exc
        return credential_from_mapping(data)

    def save(self, credential: MasterCredential) -> None:
        try:
            with locked_file(self._lock_path):
                data = self._read()
                data.update(credential_to_mapping(credential))
                data[ENV_CHECKSUM_KEY] = compute_env_checksum(data)
                write_env_file(self.path, data)
        except OSError as exc:
            raise StoreError(f"Falha ao gravar credencial mestra: {exc}") from exc

        self._logger.info(f"Credencial mestra persistida em: {self.path}")
