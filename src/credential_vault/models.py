"""Modelos de dados do cofre."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional
from uuid import UUID

from .cipher import EncryptedBlob
from .kdf import DEFAULT_KDF_PARAMS, KdfParams


@dataclass(frozen=True)
class MasterCredential:
    """Credencial mestra persistida.

    Invariante: password_hash vazio significa cofre não inicializado.

    Attributes:
        password_hash: Registro PHC do hash da senha mestra
        salt: Salt de registro da derivação de chave
        kdf_params: Parâmetros usados para derivar a chave atual
    """

    password_hash: str = ""
    salt: bytes = b""
    kdf_params: KdfParams = DEFAULT_KDF_PARAMS

    @property
    def is_initialized(self) -> bool:
        return bool(self.password_hash)

    @classmethod
    def empty(cls) -> "MasterCredential":
        return cls()


@dataclass
class VaultEntry:
    """Registro do cofre como trafega para o armazenamento.

    O campo secret está sempre cifrado. id, created_at e updated_at são
    atribuídos pelo armazenamento; o valor enviado pelo chamador é ignorado.
    """

    title: str
    username: str
    secret: EncryptedBlob
    notes: str = ""
    url: str = ""
    id: Optional[UUID] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass
class PlainEntry:
    """Visão decifrada de uma entrada, entregue à camada de requisição."""

    id: UUID
    title: str
    username: str
    secret: str = field(repr=False)
    notes: str = ""
    url: str = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
