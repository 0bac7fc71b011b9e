"""Rotação de chave: recriptografia atômica de todas as entradas do cofre.

Todas as entradas são decifradas com a chave antiga e recifradas com a nova
antes de qualquer escrita. As atualizações são então confirmadas em uma única
transação do armazenamento. Uma entrada que não decifra aborta a rotação
inteira: um cofre migrado pela metade não pode ser aberto com uma só chave.

NOTA DE SEGURANÇA: o plaintext existe em memória apenas durante a rotação.
Nunca registre plaintext ou ciphertext em log, apenas ids e contagens.
"""

import logging
from dataclasses import replace
from typing import Any, List, Optional

from . import cipher
from .cipher import EncryptionKey
from .errors import FormatError, RotationError, VaultError
from .models import VaultEntry
from .store import CredentialStore


class RotationProtocol:
    """Recriptografa o segredo de cada VaultEntry de uma chave para outra."""

    def __init__(self, store: CredentialStore, logger: Optional[Any] = None):
        self.store = store
        self._logger = logger or logging.getLogger(__name__)

    def _stage(self, old_key: EncryptionKey, new_key: EncryptionKey) -> List[VaultEntry]:
        staged = []
        for entry in self.store.list():
            try:
                plaintext = cipher.decrypt(entry.secret, old_key)
            except VaultError as exc:
                raise RotationError(
                    f"Falha ao decifrar entrada '{entry.id}' durante a rotação: {exc}",
                    entry_id=entry.id,
                ) from exc
            staged.append(replace(entry, secret=cipher.encrypt(plaintext, new_key)))
        return staged

    def rotate(self, old_key: EncryptionKey, new_key: EncryptionKey) -> int:
        """Recriptografa todas as entradas de old_key para new_key.

        Args:
            old_key: Chave sob a qual as entradas estão cifradas hoje
            new_key: Chave de destino

        Returns:
            int: Número de entradas recriptografadas

        Raises:
            RotationError: Se alguma entrada não decifrar ou se o commit
                falhar. Neste caso nenhuma entrada fica alterada.
        """
        try:
            staged = self._stage(old_key, new_key)
        except RotationError as exc:
            self._logger.warning(f"Rotação abortada antes do commit (entrada {exc.entry_id})")
            raise
        except FormatError as exc:
            self._logger.warning(f"Rotação abortada antes do commit (entrada {exc.entry_id})")
            raise RotationError(
                f"Registro corrompido durante a rotação: {exc}", entry_id=exc.entry_id
            ) from exc
        except VaultError as exc:
            raise RotationError(f"Falha ao listar entradas para rotação: {exc}") from exc

        current: Optional[VaultEntry] = None
        try:
            with self.store.transaction():
                for current in staged:
                    self.store.update(current)
        except Exception as exc:
            entry_id = current.id if current is not None else None
            self._logger.warning(f"Commit da rotação falhou, transação revertida (entrada {entry_id})")
            raise RotationError(
                f"Falha ao gravar entradas recriptografadas: {exc}", entry_id=entry_id
            ) from exc

        self._logger.info(f"Rotação concluída: {len(staged)} entrada(s) recriptografada(s)")
        return len(staged)
