"""Derivação de chave a partir da senha mestra (Argon2id)."""

import os
from dataclasses import dataclass
from typing import Any, Dict, Optional

from argon2.exceptions import HashingError
from argon2.low_level import Type, hash_secret_raw

from .cipher import KEY_LENGTH, EncryptionKey
from .errors import KeyDerivationError
from .utils import encode_password

SALT_LENGTH = 16

# Limite mínimo de memória imposto pelo Argon2: 8 KiB por lane
_MIN_MEMORY_PER_LANE = 8


@dataclass(frozen=True)
class KdfParams:
    """Parâmetros imutáveis e validados do Argon2id.

    Attributes:
        time_cost: Número de passadas sobre a memória (padrão: 1)
        memory_cost: Memória de trabalho em KiB (padrão: 64 MiB)
        parallelism: Número de lanes (padrão: 4)
    """

    time_cost: int = 1
    memory_cost: int = 64 * 1024
    parallelism: int = 4

    def __post_init__(self) -> None:
        """Valida parâmetros após inicialização."""
        for name in ("time_cost", "memory_cost", "parallelism"):
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool):
                raise KeyDerivationError(f"Parâmetro '{name}' deve ser inteiro, recebido: {value!r}")

        if self.time_cost < 1:
            raise KeyDerivationError(f"time_cost deve ser >= 1, recebido: {self.time_cost}")
        if self.parallelism < 1:
            raise KeyDerivationError(f"parallelism deve ser >= 1, recebido: {self.parallelism}")

        minimum = _MIN_MEMORY_PER_LANE * self.parallelism
        if self.memory_cost < minimum:
            raise KeyDerivationError(
                f"memory_cost deve ser >= {minimum} KiB para parallelism={self.parallelism}, "
                f"recebido: {self.memory_cost}"
            )

    def to_dict(self) -> Dict[str, int]:
        return {
            "time_cost": self.time_cost,
            "memory_cost": self.memory_cost,
            "parallelism": self.parallelism,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "KdfParams":
        """Reconstrói parâmetros persistidos.

        Raises:
            KeyDerivationError: Se algum valor estiver ausente ou inválido
        """
        try:
            return cls(
                time_cost=int(data["time_cost"]),
                memory_cost=int(data["memory_cost"]),
                parallelism=int(data["parallelism"]),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise KeyDerivationError(f"Parâmetros de derivação inválidos: {data!r}") from exc


DEFAULT_KDF_PARAMS = KdfParams()


def generate_salt(length: int = SALT_LENGTH) -> bytes:
    """Gera salt criptograficamente aleatório."""
    return os.urandom(length)


def derive_key(password: str, salt: bytes, params: Optional[KdfParams] = None) -> EncryptionKey:
    """Deriva a chave de criptografia a partir da senha mestra.

    Função pura e determinística: a mesma tripla (password, salt, params)
    sempre produz a mesma chave.

    Args:
        password: Senha mestra
        salt: Salt de registro da credencial mestra
        params: Parâmetros do Argon2id (usa DEFAULT_KDF_PARAMS se None)

    Returns:
        EncryptionKey de 32 bytes

    Raises:
        KeyDerivationError: Se os parâmetros forem inválidos ou o Argon2
            rejeitar a entrada (salt menor que 8 bytes)
    """
    params = params or DEFAULT_KDF_PARAMS
    if not isinstance(params, KdfParams):
        raise KeyDerivationError(f"Parâmetros devem ser KdfParams, recebido: {type(params)}")

    try:
        raw = hash_secret_raw(
            secret=encode_password(password),
            salt=bytes(salt),
            time_cost=params.time_cost,
            memory_cost=params.memory_cost,
            parallelism=params.parallelism,
            hash_len=KEY_LENGTH,
            type=Type.ID,
        )
    except HashingError as exc:
        raise KeyDerivationError(f"Falha na derivação de chave: {exc}") from exc

    return EncryptionKey(bytearray(raw))
