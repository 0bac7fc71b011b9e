"""AuthManager - autenticação da senha mestra e posse da chave ativa."""

import gc
import logging
from contextlib import contextmanager
from enum import Enum
from typing import Any, Iterator, Optional, Union

from . import cipher
from .cipher import EncryptedBlob, EncryptionKey
from .errors import (
    AlreadyInitializedError,
    InvalidCredentialsError,
    KeyUnavailableError,
    NotInitializedError,
    RotationError,
)
from .hasher import PasswordHasher
from .kdf import DEFAULT_KDF_PARAMS, KdfParams, derive_key, generate_salt
from .models import MasterCredential
from .rotation import RotationProtocol
from .store import CredentialStore, MasterCredentialStore
from .utils import AtomicCounter, ReadWriteLock


class AuthState(str, Enum):
    """Estados do cofre."""

    UNINITIALIZED = "uninitialized"
    INITIALIZED = "initialized"


class CipherSession:
    """Cifra amarrada à chave ativa enquanto o acesso compartilhado é mantido.

    Obtida via AuthManager.session(); não deve escapar do bloco with.
    """

    def __init__(self, key: EncryptionKey, stats: dict):
        self._key = key
        self._stats = stats

    def encrypt(self, plaintext: bytes) -> EncryptedBlob:
        blob = cipher.encrypt(plaintext, self._key)
        self._stats["encryptions"].increment()
        return blob

    def decrypt(self, blob: Union[EncryptedBlob, bytes]) -> bytes:
        plaintext = cipher.decrypt(blob, self._key)
        self._stats["decryptions"].increment()
        return plaintext


class AuthManager:
    """Dono exclusivo da credencial mestra e da chave de criptografia ativa.

    Esta classe fornece:
    - Inicialização única da senha mestra
    - Verificação da senha (sem instalar chave)
    - Desbloqueio: verificação + derivação e instalação da chave
    - Troca de senha com rotação atômica de todas as entradas
    - Acesso compartilhado à cifra via session()

    Concorrência: encrypt/decrypt/verify rodam em paralelo sob acesso
    compartilhado; initialize, unlock, change_password e lock exigem acesso
    exclusivo, de modo que nenhuma operação observa a chave no meio de uma
    rotação.

    Attributes:
        kdf_params: Parâmetros aplicados a novas credenciais
    """

    def __init__(
        self,
        credential_store: MasterCredentialStore,
        entry_store: CredentialStore,
        kdf_params: Optional[KdfParams] = None,
        hasher: Optional[PasswordHasher] = None,
        rotation: Optional[RotationProtocol] = None,
        logger: Optional[Any] = None,
    ):
        self._logger = logger or logging.getLogger(__name__)
        self._credential_store = credential_store
        self._entry_store = entry_store
        self.kdf_params = kdf_params or DEFAULT_KDF_PARAMS
        self._hasher = hasher or PasswordHasher(logger=self._logger)
        self._rotation = rotation or RotationProtocol(entry_store, logger=self._logger)

        self._active_key: Optional[EncryptionKey] = None
        self._lock = ReadWriteLock()

        self._stats = {
            "encryptions": AtomicCounter(),
            "decryptions": AtomicCounter(),
            "failed_verifications": AtomicCounter(),
            "rotations": AtomicCounter(),
        }

    # ------------------------------------------------------------------
    # Estado
    # ------------------------------------------------------------------

    def is_initialized(self) -> bool:
        """Indica se há hash de senha mestra gravado."""
        return self._credential_store.load().is_initialized

    @property
    def state(self) -> AuthState:
        if self.is_initialized():
            return AuthState.INITIALIZED
        return AuthState.UNINITIALIZED

    @property
    def has_key(self) -> bool:
        """Indica se o processo possui uma chave derivada."""
        return self._active_key is not None

    @property
    def entry_store(self) -> CredentialStore:
        return self._entry_store

    def _install_key(self, key: EncryptionKey) -> None:
        previous = self._active_key
        self._active_key = key
        if previous is not None and previous is not key:
            previous.cleanup()

    def _verify(self, password: str, credential: MasterCredential) -> bool:
        if not credential.is_initialized:
            return False
        if self._hasher.verify(password, credential.password_hash):
            return True
        self._stats["failed_verifications"].increment()
        return False

    @staticmethod
    def _derive(password: str, credential: MasterCredential) -> EncryptionKey:
        return derive_key(password, credential.salt, credential.kdf_params)

    # ------------------------------------------------------------------
    # Operações
    # ------------------------------------------------------------------

    def initialize(self, password: str) -> None:
        """Define a senha mestra de um cofre novo e instala a chave.

        Args:
            password: Senha mestra inicial

        Raises:
            AlreadyInitializedError: Se já existir credencial gravada
            ValueError: Se a senha for vazia
        """
        if not password:
            raise ValueError("Senha mestra não pode ser vazia")

        with self._lock.write_locked():
            if self._credential_store.load().is_initialized:
                raise AlreadyInitializedError(
                    "Cofre já inicializado. Use change_password() para trocar a senha mestra."
                )

            params = self.kdf_params
            salt = generate_salt()
            credential = MasterCredential(
                password_hash=self._hasher.hash(password),
                salt=salt,
                kdf_params=params,
            )
            key = derive_key(password, salt, params)

            try:
                self._credential_store.save(credential)
            except Exception:
                key.cleanup()
                raise

            self._install_key(key)

        self._logger.info("Cofre inicializado com senha mestra")

    def verify(self, password: str) -> bool:
        """Verifica a senha mestra sem instalar chave.

        Returns:
            bool: True se a senha confere; False em qualquer outro caso,
            inclusive com o cofre não inicializado
        """
        with self._lock.read_locked():
            return self._verify(password, self._credential_store.load())

    def unlock(self, password: str) -> None:
        """Verifica a senha e instala a chave derivada do salt de registro.

        Raises:
            NotInitializedError: Se o cofre não foi inicializado
            InvalidCredentialsError: Se a senha não confere
        """
        with self._lock.write_locked():
            credential = self._credential_store.load()
            if not credential.is_initialized:
                raise NotInitializedError("Cofre não inicializado")
            if not self._verify(password, credential):
                raise InvalidCredentialsError("Senha mestra inválida")
            self._install_key(self._derive(password, credential))

        self._logger.info("Chave de criptografia instalada")

    def change_password(self, current: str, new: str) -> int:
        """Troca a senha mestra e recriptografa todas as entradas.

        Sequência:
        1. Verifica a senha atual
        2. Gera novo salt, novo hash e nova chave
        3. Recriptografa todas as entradas (RotationProtocol) e grava a nova
           credencial
        4. Só então troca a chave em memória

        Quando a credencial mora no mesmo banco das entradas, ambas são
        confirmadas em uma única transação. Caso contrário as entradas são
        confirmadas primeiro e, se a gravação da credencial falhar ou for
        interrompida, uma rotação compensatória as devolve à chave antiga.

        Args:
            current: Senha mestra atual
            new: Nova senha mestra

        Returns:
            int: Número de entradas recriptografadas

        Raises:
            NotInitializedError: Se o cofre não foi inicializado
            InvalidCredentialsError: Se a senha atual não confere
            RotationError: Se a rotação falhar; credencial e chave antigas
                continuam valendo
        """
        if not new:
            raise ValueError("Senha mestra não pode ser vazia")

        with self._lock.write_locked():
            credential = self._credential_store.load()
            if not credential.is_initialized:
                raise NotInitializedError("Cofre não inicializado")
            if not self._verify(current, credential):
                self._logger.warning("Troca de senha mestra recusada: senha atual inválida")
                raise InvalidCredentialsError("Senha mestra atual inválida")

            derived_old = self._active_key is None
            old_key = self._derive(current, credential) if derived_old else self._active_key

            params = self.kdf_params
            new_salt = generate_salt()
            new_credential = MasterCredential(
                password_hash=self._hasher.hash(new),
                salt=new_salt,
                kdf_params=params,
            )
            new_key = derive_key(new, new_salt, params)

            try:
                if self._credential_store.shares_transaction(self._entry_store):
                    count = self._rotate_and_save(old_key, new_key, new_credential)
                else:
                    count = self._rotation.rotate(old_key, new_key)
                    self._save_or_revert(new_credential, old_key, new_key)
            except BaseException:
                # Após uma reversão que falhou, new_key é a chave ativa
                if self._active_key is not new_key:
                    new_key.cleanup()
                if derived_old:
                    old_key.cleanup()
                raise

            self._install_key(new_key)
            if derived_old:
                old_key.cleanup()

        self._stats["rotations"].increment()
        self._logger.info(f"Senha mestra alterada; {count} entrada(s) recriptografada(s)")
        return count

    def _rotate_and_save(
        self, old_key: EncryptionKey, new_key: EncryptionKey, credential: MasterCredential
    ) -> int:
        """Rotação e nova credencial confirmadas na mesma transação."""
        try:
            with self._entry_store.transaction():
                count = self._rotation.rotate(old_key, new_key)
                self._credential_store.save(credential)
        except RotationError:
            raise
        except Exception as exc:
            self._logger.error("Falha ao persistir nova credencial mestra; transação revertida")
            raise RotationError(
                f"Falha ao persistir nova credencial mestra: {exc}. Rotação revertida."
            ) from exc
        return count

    def _save_or_revert(
        self, credential: MasterCredential, old_key: EncryptionKey, new_key: EncryptionKey
    ) -> None:
        """Grava a credencial em armazenamento separado das entradas.

        As entradas já foram confirmadas sob new_key; se a gravação for
        interrompida, uma rotação compensatória as devolve a old_key.
        """
        try:
            self._credential_store.save(credential)
        except BaseException as exc:
            self._logger.error("Falha ao persistir nova credencial mestra; revertendo entradas")
            self._revert(old_key, new_key, exc)
            if not isinstance(exc, Exception):
                raise
            raise RotationError(
                f"Falha ao persistir nova credencial mestra: {exc}. Rotação revertida."
            ) from exc

    def _revert(self, old_key: EncryptionKey, new_key: EncryptionKey, cause: BaseException) -> None:
        """Rotação compensatória de new_key de volta para old_key.

        Se a própria reversão falhar, as entradas continuam sob new_key; a
        nova chave é mantida como ativa para que os dados sigam legíveis e
        change_password possa ser repetido.
        """
        try:
            self._rotation.rotate(new_key, old_key)
        except RotationError as revert_exc:
            self._logger.critical(
                "Reversão da rotação falhou: entradas permanecem sob a nova chave, "
                "que foi mantida em memória"
            )
            self._install_key(new_key)
            raise RotationError(
                f"Falha ao persistir nova credencial mestra ({cause}) e ao reverter a rotação",
                entry_id=revert_exc.entry_id,
            ) from revert_exc

    @contextmanager
    def session(self) -> Iterator[CipherSession]:
        """Acesso compartilhado à cifra sob a chave ativa.

        Raises:
            KeyUnavailableError: Se nenhuma chave estiver instalada

        Examples:
            >>> with auth.session() as s:
            ...     blob = s.encrypt(b"s3cr3t")
        """
        with self._lock.read_locked():
            if self._active_key is None:
                raise KeyUnavailableError(
                    "Nenhuma chave de criptografia ativa. Chame initialize() ou unlock()."
                )
            yield CipherSession(self._active_key, self._stats)

    def encrypt(self, plaintext: bytes) -> EncryptedBlob:
        """Cifra com a chave ativa."""
        with self.session() as s:
            return s.encrypt(plaintext)

    def decrypt(self, blob: Union[EncryptedBlob, bytes]) -> bytes:
        """Decifra com a chave ativa."""
        with self.session() as s:
            return s.decrypt(blob)

    def lock(self) -> None:
        """Descarta e zera a chave ativa."""
        with self._lock.write_locked():
            if self._active_key is not None:
                self._active_key.cleanup()
                self._active_key = None

        self._logger.debug("Chave de criptografia descartada")

    def get_statistics(self) -> dict:
        """Retorna estatísticas de uso.

        Returns:
            dict: Contadores de operações

        Examples:
            >>> stats = auth.get_statistics()
            >>> print(f"Falhas de verificação: {stats['failed_verifications']}")
        """
        return {name: counter.value() for name, counter in self._stats.items()}

    def cleanup(self) -> None:
        """Securely clear key material from memory.

        Zeroes the active key, drops the reference and forces garbage
        collection. Best-effort: Python may keep transient copies.
        """
        self.lock()
        gc.collect()

        self._logger.info("Sensitive data securely cleared from memory")
