"""credential_vault - Cofre de credenciais com criptografia em repouso.

Este pacote fornece:
- Derivação de chave Argon2id a partir da senha mestra
- Hash de autenticação independente da chave (Argon2id, formato PHC)
- Criptografia de envelope AES-256-GCM por segredo
- Troca de senha mestra com rotação atômica de todas as entradas
- Armazenamento em memória, SQLite e arquivo .env
"""

from .auth import AuthManager, AuthState, CipherSession
from .cipher import EncryptedBlob, EncryptionKey, decrypt, encrypt
from .config import VaultConfig
from .errors import (
    AlreadyInitializedError,
    ConfigurationError,
    EntryNotFoundError,
    FormatError,
    IntegrityError,
    InvalidCredentialsError,
    KeyDerivationError,
    KeyUnavailableError,
    NotInitializedError,
    RotationError,
    StoreError,
    VaultError,
)
from .hasher import PasswordHasher
from .kdf import DEFAULT_KDF_PARAMS, KdfParams, derive_key, generate_salt
from .models import MasterCredential, PlainEntry, VaultEntry
from .rotation import RotationProtocol
from .store import (
    CredentialStore,
    EnvFileMasterCredentialStore,
    InMemoryCredentialStore,
    InMemoryMasterCredentialStore,
    MasterCredentialStore,
    SqliteCredentialStore,
    SqliteMasterCredentialStore,
)
from .vault import VaultService, open_vault

__version__ = "0.1.0"

__all__ = [
    # Classes principais
    "AuthManager",
    "AuthState",
    "CipherSession",
    "RotationProtocol",
    "VaultService",
    "open_vault",
    # Criptografia
    "EncryptedBlob",
    "EncryptionKey",
    "encrypt",
    "decrypt",
    "KdfParams",
    "DEFAULT_KDF_PARAMS",
    "derive_key",
    "generate_salt",
    "PasswordHasher",
    # Modelos
    "MasterCredential",
    "VaultEntry",
    "PlainEntry",
    # Armazenamento
    "CredentialStore",
    "MasterCredentialStore",
    "InMemoryCredentialStore",
    "InMemoryMasterCredentialStore",
    "SqliteCredentialStore",
    "SqliteMasterCredentialStore",
    "EnvFileMasterCredentialStore",
    # Configuração
    "VaultConfig",
    # Erros
    "VaultError",
    "KeyDerivationError",
    "InvalidCredentialsError",
    "IntegrityError",
    "FormatError",
    "RotationError",
    "AlreadyInitializedError",
    "NotInitializedError",
    "KeyUnavailableError",
    "EntryNotFoundError",
    "StoreError",
    "ConfigurationError",
]
