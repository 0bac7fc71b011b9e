"""Configuração do cofre de credenciais."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Self

from .errors import ConfigurationError, KeyDerivationError
from .kdf import KdfParams
from .utils import ENV_CHECKSUM_KEY, compute_env_checksum, parse_env_file

# Variável de ambiente -> (campo, conversor)
_ENV_FIELDS = {
    "VAULT_DATABASE_PATH": ("database_path", str),
    "VAULT_CREDENTIAL_FILE": ("credential_file", str),
    "VAULT_MASTER_PASSWORD": ("master_password", str),
    "VAULT_KDF_TIME_COST": ("kdf_time_cost", int),
    "VAULT_KDF_MEMORY_COST": ("kdf_memory_cost", int),
    "VAULT_KDF_PARALLELISM": ("kdf_parallelism", int),
    "VAULT_HASH_TIME_COST": ("hash_time_cost", int),
    "VAULT_HASH_MEMORY_COST": ("hash_memory_cost", int),
    "VAULT_HASH_PARALLELISM": ("hash_parallelism", int),
}


@dataclass
class VaultConfig:
    """Configuração do cofre.

    Attributes:
        database_path: Banco SQLite das entradas (padrão: vault.db)
        credential_file: Arquivo .env da credencial mestra; se None, a
            credencial fica na tabela vault_config do banco
        master_password: Senha mestra fornecida fora de banda (opcional)
        kdf_time_cost: Passadas do Argon2id da derivação de chave (padrão: 1)
        kdf_memory_cost: Memória em KiB da derivação de chave (padrão: 65536)
        kdf_parallelism: Lanes da derivação de chave (padrão: 4)
        hash_time_cost: Passadas do hash de autenticação (padrão: 3)
        hash_memory_cost: Memória em KiB do hash de autenticação (padrão: 65536)
        hash_parallelism: Lanes do hash de autenticação (padrão: 4)
        logger: Logger opcional para mensagens (usa logging padrão se None)
    """

    database_path: str = "vault.db"
    credential_file: Optional[str] = None
    master_password: Optional[str] = field(default=None, repr=False)
    kdf_time_cost: int = 1
    kdf_memory_cost: int = 64 * 1024
    kdf_parallelism: int = 4
    hash_time_cost: int = 3
    hash_memory_cost: int = 64 * 1024
    hash_parallelism: int = 4
    logger: Optional[Any] = None  # logging.Logger

    def __post_init__(self) -> None:
        """Valida configuração após inicialização."""
        if not self.database_path:
            raise ConfigurationError("database_path não pode ser vazio")

        try:
            self.kdf_params
        except KeyDerivationError as exc:
            raise ConfigurationError(f"Parâmetros de derivação inválidos: {exc}") from exc

        for name in ("hash_time_cost", "hash_memory_cost", "hash_parallelism"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                raise ConfigurationError(f"'{name}' deve ser inteiro positivo, recebido: {value!r}")

        # Mínimo do Argon2: 8 KiB por lane
        if self.hash_memory_cost < 8 * self.hash_parallelism:
            raise ConfigurationError(
                f"'hash_memory_cost' deve ser ao menos 8 * hash_parallelism "
                f"({8 * self.hash_parallelism}), recebido: {self.hash_memory_cost}"
            )

    @property
    def kdf_params(self) -> KdfParams:
        return KdfParams(
            time_cost=self.kdf_time_cost,
            memory_cost=self.kdf_memory_cost,
            parallelism=self.kdf_parallelism,
        )

    @classmethod
    def from_environment(cls, **kwargs: Any) -> Self:
        """Cria configuração a partir de variáveis de ambiente.

        Formato esperado:
            VAULT_DATABASE_PATH=/var/lib/vault/vault.db
            VAULT_CREDENTIAL_FILE=/etc/vault/credential.env (opcional)
            VAULT_MASTER_PASSWORD=... (opcional)
            VAULT_KDF_TIME_COST=1
            VAULT_KDF_MEMORY_COST=65536
            VAULT_KDF_PARALLELISM=4
            VAULT_HASH_TIME_COST=3 (idem MEMORY_COST, PARALLELISM)

        Args:
            **kwargs: Argumentos que sobrepõem os valores do ambiente

        Returns:
            VaultConfig configurado a partir do ambiente

        Raises:
            ConfigurationError: Se algum valor for inválido
        """
        return cls._from_mapping(os.environ, **kwargs)

    @classmethod
    def from_file(cls, filename: str, **kwargs: Any) -> Self:
        """Cria configuração a partir de um arquivo .env.

        Args:
            filename: Caminho do arquivo .env
            **kwargs: Argumentos que sobrepõem os valores do arquivo

        Returns:
            VaultConfig configurado a partir do arquivo

        Raises:
            FileNotFoundError: Se o arquivo não existir
            ConfigurationError: Se o checksum ou algum valor for inválido
        """
        env_path = Path(filename)
        if not env_path.exists():
            raise FileNotFoundError(f"Arquivo .env não encontrado: {filename}")

        data = parse_env_file(env_path)
        checksum = data.get(ENV_CHECKSUM_KEY)
        if checksum:
            computed = compute_env_checksum(data)
            if computed != checksum:
                raise ConfigurationError("Checksum do arquivo .env inválido")

        return cls._from_mapping(data, **kwargs)

    @classmethod
    def _from_mapping(cls, mapping: Mapping[str, str], **kwargs: Any) -> Self:
        """Cria configuração a partir de um mapeamento de variáveis."""
        values: Dict[str, Any] = {}

        for env_key, (name, convert) in _ENV_FIELDS.items():
            raw = mapping.get(env_key)
            if raw is None or raw == "":
                continue

            # Remover aspas (problema comum com dotenv)
            raw = raw.strip("\"'") if convert is int else raw
            try:
                values[name] = convert(raw)
            except ValueError as exc:
                raise ConfigurationError(
                    f"Valor inválido para {env_key}: esperado inteiro, recebido {raw!r}"
                ) from exc

        values.update(kwargs)
        return cls(**values)
