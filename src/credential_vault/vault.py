"""VaultService - operações de entrada do cofre sobre o AuthManager."""

import logging
from dataclasses import replace
from typing import Any, List, Optional
from uuid import UUID

from .auth import AuthManager, CipherSession
from .config import VaultConfig
from .hasher import PasswordHasher
from .models import PlainEntry, VaultEntry
from .store import (
    EnvFileMasterCredentialStore,
    MasterCredentialStore,
    SqliteCredentialStore,
    SqliteMasterCredentialStore,
)


class VaultService:
    """CRUD de entradas do cofre com segredos cifrados em repouso.

    Cada operação roda dentro de AuthManager.session(), de modo que nenhuma
    entrada é gravada sob uma chave que está sendo rotacionada.

    Attributes:
        auth: AuthManager dono da chave ativa
    """

    def __init__(self, auth: AuthManager, logger: Optional[Any] = None):
        self.auth = auth
        self.store = auth.entry_store
        self._logger = logger or logging.getLogger(__name__)

    @staticmethod
    def _to_plain(entry: VaultEntry, session: CipherSession) -> PlainEntry:
        return PlainEntry(
            id=entry.id,
            title=entry.title,
            username=entry.username,
            secret=session.decrypt(entry.secret).decode("utf-8"),
            notes=entry.notes,
            url=entry.url,
            created_at=entry.created_at,
            updated_at=entry.updated_at,
        )

    def add_entry(
        self,
        title: str,
        username: str,
        secret: str,
        notes: str = "",
        url: str = "",
    ) -> UUID:
        """Cifra o segredo e cria a entrada.

        Returns:
            UUID: id gerado pelo armazenamento
        """
        if not title:
            raise ValueError("Título da entrada é obrigatório")

        with self.auth.session() as s:
            entry = VaultEntry(
                title=title,
                username=username,
                secret=s.encrypt(secret.encode("utf-8")),
                notes=notes,
                url=url,
            )
            entry_id = self.store.create(entry)

        self._logger.info(f"Entrada adicionada: {entry_id}")
        return entry_id

    def get_entry(self, entry_id: UUID) -> PlainEntry:
        """Retorna a entrada com o segredo decifrado.

        Raises:
            EntryNotFoundError: Se a entrada não existir
            IntegrityError: Se o segredo armazenado não autenticar
        """
        with self.auth.session() as s:
            return self._to_plain(self.store.get(entry_id), s)

    def list_entries(self) -> List[PlainEntry]:
        with self.auth.session() as s:
            return [self._to_plain(entry, s) for entry in self.store.list()]

    def update_entry(
        self,
        entry_id: UUID,
        title: Optional[str] = None,
        username: Optional[str] = None,
        secret: Optional[str] = None,
        notes: Optional[str] = None,
        url: Optional[str] = None,
    ) -> None:
        """Atualiza os campos informados; o segredo é recifrado com nonce novo."""
        with self.auth.session() as s:
            entry = self.store.get(entry_id)
            changes = {
                name: value
                for name, value in (
                    ("title", title),
                    ("username", username),
                    ("notes", notes),
                    ("url", url),
                )
                if value is not None
            }
            if secret is not None:
                changes["secret"] = s.encrypt(secret.encode("utf-8"))
            self.store.update(replace(entry, **changes))

        self._logger.info(f"Entrada atualizada: {entry_id}")

    def delete_entry(self, entry_id: UUID) -> None:
        with self.auth.session():
            self.store.delete(entry_id)

        self._logger.info(f"Entrada removida: {entry_id}")

    def change_master_password(self, current: str, new: str) -> int:
        """Atalho para AuthManager.change_password()."""
        return self.auth.change_password(current, new)


def open_vault(config: VaultConfig, logger: Optional[Any] = None) -> VaultService:
    """Monta o cofre a partir da configuração.

    Entradas ficam no banco SQLite de config.database_path. A credencial
    mestra fica em config.credential_file quando informado, senão na tabela
    vault_config do mesmo banco. Se config.master_password estiver presente e o
    cofre já estiver inicializado, a chave é derivada e instalada.

    Raises:
        InvalidCredentialsError: Se a senha mestra fornecida não conferir
    """
    logger = logger or config.logger or logging.getLogger(__name__)

    entry_store = SqliteCredentialStore(config.database_path, logger=logger)
    credential_store: MasterCredentialStore
    if config.credential_file:
        credential_store = EnvFileMasterCredentialStore(config.credential_file, logger=logger)
    else:
        credential_store = SqliteMasterCredentialStore(entry_store)

    auth = AuthManager(
        credential_store,
        entry_store,
        kdf_params=config.kdf_params,
        hasher=PasswordHasher(
            time_cost=config.hash_time_cost,
            memory_cost=config.hash_memory_cost,
            parallelism=config.hash_parallelism,
            logger=logger,
        ),
        logger=logger,
    )

    if config.master_password:
        if auth.is_initialized():
            auth.unlock(config.master_password)
        else:
            logger.info("Senha mestra fornecida, mas cofre não inicializado; aguardando initialize()")

    return VaultService(auth, logger=logger)
