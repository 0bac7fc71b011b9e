"""Hierarquia de erros do cofre de credenciais."""

from typing import Optional
from uuid import UUID


class VaultError(Exception):
    """Erro base do cofre de credenciais."""

    pass


class KeyDerivationError(VaultError):
    """Parâmetros de derivação de chave inválidos (erro de configuração)."""

    pass


class InvalidCredentialsError(VaultError):
    """Senha mestra incorreta."""

    pass


class IntegrityError(VaultError):
    """Tag de autenticação não confere (dado adulterado ou chave errada)."""

    pass


class FormatError(VaultError):
    """Blob armazenado malformado ou corrompido.

    Attributes:
        entry_id: Entrada cujo registro está corrompido, quando conhecida
    """

    def __init__(self, message: str, entry_id: Optional[UUID] = None):
        super().__init__(message)
        self.entry_id = entry_id



class RotationError(VaultError):
    """Falha durante a recriptografia das entradas.

    Attributes:
        entry_id: Entrada que abortou a rotação, quando conhecida
    """

    def __init__(self, message: str, entry_id: Optional[UUID] = None):
        super().__init__(message)
        self.entry_id = entry_id


class AlreadyInitializedError(VaultError):
    """Tentativa de inicializar um cofre que já possui senha mestra."""

    pass


class NotInitializedError(VaultError):
    """Operação exige um cofre inicializado."""

    pass


class KeyUnavailableError(VaultError):
    """Nenhuma chave de criptografia ativa no processo."""

    pass


class EntryNotFoundError(VaultError):
    """Entrada inexistente no armazenamento."""

    pass


class StoreError(VaultError):
    """Falha de escrita ou leitura no armazenamento."""

    pass


class ConfigurationError(VaultError):
    """Configuração do cofre inválida."""

    pass
