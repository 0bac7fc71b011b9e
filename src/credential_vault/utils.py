"""Funções auxiliares do cofre de credenciais."""

import base64
import binascii
import hashlib
import os
import tempfile
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from threading import Condition, Lock
from typing import Dict, Iterator, Mapping, TextIO

from dotenv import dotenv_values


ENV_CHECKSUM_KEY = "VAULT_CREDENTIAL_CHECKSUM"


class AtomicCounter:
    """Thread-safe counter for statistics tracking.

    Uses a lock to ensure atomic increment and read operations,
    preventing race conditions under concurrent access.
    """

    def __init__(self) -> None:
        """Initialize counter with zero value."""
        self._value = 0
        self._lock = Lock()

    def increment(self) -> None:
        """Atomically increment the counter by 1."""
        with self._lock:
            self._value += 1

    def value(self) -> int:
        """Atomically read the current counter value.

        Returns:
            int: Current counter value
        """
        with self._lock:
            return self._value


class ReadWriteLock:
    """Lock de um escritor e múltiplos leitores.

    Leitores não esperam por escritores na fila; um escritor espera até que
    não reste nenhum leitor ativo e bloqueia novos leitores enquanto escreve.
    Não é reentrante.
    """

    def __init__(self) -> None:
        self._cond = Condition(Lock())
        self._readers = 0
        self._writer = False

    @contextmanager
    def read_locked(self) -> Iterator[None]:
        """Acesso compartilhado."""
        with self._cond:
            while self._writer:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write_locked(self) -> Iterator[None]:
        """Acesso exclusivo."""
        with self._cond:
            while self._writer or self._readers:
                self._cond.wait()
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


def escape_env_value(value: str) -> str:
    """Escapa valores para escrita segura em arquivos .env."""
    return value.replace("\\", "\\\\").replace('"', '\\"')


def compute_env_checksum(values: Mapping[str, str]) -> str:
    """Calcula checksum SHA256 determinístico para um mapeamento .env."""
    items = []
    for key in sorted(values):
        if key == ENV_CHECKSUM_KEY:
            continue
        value = values.get(key)
        if value is None:
            continue
        items.append(f"{key}={value}")
    payload = "\n".join(items).encode("utf-8")
    return hashlib.sha256(payload).hexdigest()


def parse_env_stream(stream: TextIO) -> Dict[str, str]:
    """Parseia um stream .env usando python-dotenv (sem interpolação de variáveis)."""
    data = dotenv_values(stream=stream, interpolate=False)
    return {key: value for key, value in data.items() if value is not None}


def parse_env_file(path: Path) -> Dict[str, str]:
    """Parseia um arquivo .env usando python-dotenv."""
    with path.open("r", encoding="utf-8", errors="strict") as f:
        return parse_env_stream(f)


def write_env_file(path: Path, data: Mapping[str, str]) -> None:
    """Grava um arquivo .env de forma atômica (tudo ou nada).

    O conteúdo é escrito em um arquivo temporário no mesmo diretório, que
    então substitui o destino via os.replace.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=str(path.parent))
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")
            f.write(f"# Atualizado em {timestamp}\n")
            for k, v in sorted(data.items()):
                f.write(f'{k}="{escape_env_value(v)}"\n')
            f.flush()
            os.fsync(f.fileno())
        os.chmod(tmp_name, 0o600)
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


def _lock_file(file_handle: TextIO) -> None:
    if os.name == "nt":
        import msvcrt

        file_handle.seek(0)
        msvcrt.locking(file_handle.fileno(), msvcrt.LK_LOCK, 1)
        return

    import fcntl

    fcntl.flock(file_handle.fileno(), fcntl.LOCK_EX)


def _unlock_file(file_handle: TextIO) -> None:
    if os.name == "nt":
        import msvcrt

        file_handle.seek(0)
        msvcrt.locking(file_handle.fileno(), msvcrt.LK_UNLCK, 1)
        return

    import fcntl

    fcntl.flock(file_handle.fileno(), fcntl.LOCK_UN)


@contextmanager
def locked_file(path: Path) -> Iterator[TextIO]:
    """Abre o arquivo e aplica lock exclusivo enquanto estiver em uso."""
    path.parent.mkdir(parents=True, exist_ok=True)
    file_handle = path.open("a+", encoding="utf-8", errors="strict")
    _lock_file(file_handle)
    try:
        yield file_handle
    finally:
        _unlock_file(file_handle)
        file_handle.close()


def encode_b64(data: bytes) -> str:
    """Codifica bytes em base64 (ASCII)."""
    return base64.b64encode(data).decode("ascii")


def decode_b64(value: str) -> bytes:
    """Decodifica base64 estrito.

    Raises:
        ValueError: Se o valor não for base64 válido

    Examples:
        >>> decode_b64("c2FsdA==")
        b'salt'
    """
    if not isinstance(value, str):
        raise TypeError(f"Valor base64 deve ser str, recebido: {type(value)}")
    try:
        return base64.b64decode(value.encode("ascii"), validate=True)
    except (binascii.Error, UnicodeEncodeError) as exc:
        raise ValueError(f"Valor base64 inválido: {exc}") from exc


def encode_password(password: str) -> bytes:
    """Codifica a senha em UTF-8 aceitando surrogates isolados.

    Toda str é entrada válida para o Argon2; senhas comuns produzem os mesmos
    bytes da codificação UTF-8 estrita.
    """
    return password.encode("utf-8", "surrogatepass")
