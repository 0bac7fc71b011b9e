"""Hash unidirecional da senha mestra para autenticação."""

import logging
from typing import Any, Optional

from argon2 import PasswordHasher as _Argon2Hasher
from argon2.exceptions import HashingError, InvalidHashError, VerificationError

from .errors import KeyDerivationError
from .utils import encode_password


class PasswordHasher:
    """Hash adaptativo (Argon2id) da senha mestra.

    O salt deste hash é aleatório por chamada e fica embutido no registro
    (formato PHC). É independente do salt da derivação de chave: a verificação
    de autenticação nunca recalcula a chave de criptografia.

    Attributes:
        time_cost: Passadas do Argon2id
        memory_cost: Memória em KiB
        parallelism: Número de lanes
    """

    def __init__(
        self,
        time_cost: int = 3,
        memory_cost: int = 64 * 1024,
        parallelism: int = 4,
        logger: Optional[Any] = None,
    ):
        self._logger = logger or logging.getLogger(__name__)
        try:
            self._hasher = _Argon2Hasher(
                time_cost=time_cost,
                memory_cost=memory_cost,
                parallelism=parallelism,
            )
        except TypeError as exc:
            raise KeyDerivationError(f"Parâmetros de hash inválidos: {exc}") from exc

        self.time_cost = time_cost
        self.memory_cost = memory_cost
        self.parallelism = parallelism

    def hash(self, password: str) -> str:
        """Calcula o registro de hash da senha.

        Args:
            password: Senha em texto plano

        Returns:
            str: Registro PHC ($argon2id$v=19$...)
        """
        try:
            return self._hasher.hash(encode_password(password))
        except HashingError as exc:
            raise KeyDerivationError(f"Falha ao calcular hash da senha: {exc}") from exc

    def verify(self, password: str, record: Any) -> bool:
        """Verifica a senha contra um registro de hash.

        A comparação é feita em tempo constante pela biblioteca argon2.
        Registros malformados, vazios ou de tipo errado resultam em False.

        Returns:
            bool: True se a senha confere
        """
        if not isinstance(record, str) or not record:
            return False
        if not isinstance(password, str):
            return False

        try:
            return self._hasher.verify(record, encode_password(password))
        except VerificationError:
            return False
        except (InvalidHashError, ValueError):
            self._logger.debug("Registro de hash malformado")
            return False

    def needs_rehash(self, record: str) -> bool:
        """Indica se o registro foi gerado com parâmetros diferentes dos atuais."""
        try:
            return self._hasher.check_needs_rehash(record)
        except (InvalidHashError, ValueError):
            return True
