"""Cifra de envelope: AES-256-GCM por campo, com nonce aleatório por chamada.

Formato armazenado de um segredo:

    nonce (12 bytes) || ciphertext || tag (16 bytes)

codificado em base64 para persistência.

NOTA DE SEGURANÇA: nunca registre em log plaintext, ciphertext ou material de
chave. Apenas identificadores e contagens.
"""

import base64
import binascii
import os
from dataclasses import dataclass
from typing import Union

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from .errors import FormatError, IntegrityError

KEY_LENGTH = 32  # AES-256
NONCE_LENGTH = 12  # 96 bits, recomendado para GCM
TAG_LENGTH = 16
MIN_BLOB_LENGTH = NONCE_LENGTH + TAG_LENGTH


class EncryptionKey:
    """Chave simétrica de 32 bytes mantida apenas em memória.

    Usa bytearray para permitir limpeza explícita via cleanup(). Assim como em
    qualquer código Python, isto é segurança de melhor esforço: o interpretador
    pode manter cópias transitórias do material de chave.
    """

    __slots__ = ("_material",)

    def __init__(self, material: Union[bytes, bytearray]):
        if len(material) != KEY_LENGTH:
            raise ValueError(
                f"Chave deve ter exatamente {KEY_LENGTH} bytes, recebido: {len(material)}"
            )
        self._material = bytearray(material)

    def __bytes__(self) -> bytes:
        return bytes(self._material)

    def __len__(self) -> int:
        return len(self._material)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, EncryptionKey):
            return NotImplemented
        return self._material == other._material

    __hash__ = None  # mutável

    def __repr__(self) -> str:
        return "EncryptionKey(<redacted>)"

    @property
    def is_cleared(self) -> bool:
        """Indica se o material já foi zerado."""
        return not any(self._material)

    def cleanup(self) -> None:
        """Zera o material da chave no local.

        Após cleanup() a instância não deve mais ser usada para cifrar.
        """
        for i in range(len(self._material)):
            self._material[i] = 0


@dataclass(frozen=True)
class EncryptedBlob:
    """Segredo cifrado com AEAD.

    Attributes:
        nonce: Nonce de 96 bits usado na cifragem
        ciphertext: Texto cifrado (mesmo tamanho do plaintext)
        tag: Tag de autenticação GCM de 128 bits
    """

    nonce: bytes
    ciphertext: bytes
    tag: bytes

    def __post_init__(self) -> None:
        if len(self.nonce) != NONCE_LENGTH:
            raise FormatError(f"Nonce deve ter {NONCE_LENGTH} bytes, recebido: {len(self.nonce)}")
        if len(self.tag) != TAG_LENGTH:
            raise FormatError(f"Tag deve ter {TAG_LENGTH} bytes, recebido: {len(self.tag)}")

    def pack(self) -> bytes:
        """Serializa como nonce || ciphertext || tag."""
        return self.nonce + self.ciphertext + self.tag

    @classmethod
    def unpack(cls, data: bytes) -> "EncryptedBlob":
        """Reconstrói um blob a partir da forma empacotada.

        Raises:
            FormatError: Se o blob for menor que nonce + tag
        """
        if len(data) < MIN_BLOB_LENGTH:
            raise FormatError(
                f"Blob cifrado muito curto: {len(data)} bytes (mínimo {MIN_BLOB_LENGTH})"
            )
        return cls(
            nonce=data[:NONCE_LENGTH],
            ciphertext=data[NONCE_LENGTH:-TAG_LENGTH],
            tag=data[-TAG_LENGTH:],
        )

    def to_b64(self) -> str:
        """Codifica a forma empacotada em base64 para armazenamento."""
        return base64.b64encode(self.pack()).decode("ascii")

    @classmethod
    def from_b64(cls, value: str) -> "EncryptedBlob":
        """Decodifica um blob armazenado em base64.

        Raises:
            FormatError: Se o valor não for base64 válido ou for curto demais
        """
        try:
            data = base64.b64decode(value.encode("ascii"), validate=True)
        except (binascii.Error, UnicodeEncodeError) as exc:
            raise FormatError("Blob cifrado não é base64 válido") from exc
        return cls.unpack(data)


def _key_bytes(key: Union[EncryptionKey, bytes]) -> bytes:
    if isinstance(key, EncryptionKey):
        return bytes(key)
    if len(key) != KEY_LENGTH:
        raise ValueError(f"Chave deve ter exatamente {KEY_LENGTH} bytes, recebido: {len(key)}")
    return bytes(key)


def encrypt(plaintext: bytes, key: Union[EncryptionKey, bytes]) -> EncryptedBlob:
    """Cifra plaintext com AES-256-GCM e um nonce novo.

    Args:
        plaintext: Dados em texto plano
        key: Chave de 32 bytes

    Returns:
        EncryptedBlob com nonce, ciphertext e tag separados

    Examples:
        >>> blob = encrypt(b"s3cr3t", key)
        >>> stored = blob.to_b64()
    """
    nonce = os.urandom(NONCE_LENGTH)
    sealed = AESGCM(_key_bytes(key)).encrypt(nonce, plaintext, None)
    return EncryptedBlob(nonce=nonce, ciphertext=sealed[:-TAG_LENGTH], tag=sealed[-TAG_LENGTH:])


def decrypt(blob: Union[EncryptedBlob, bytes], key: Union[EncryptionKey, bytes]) -> bytes:
    """Decifra e autentica um blob.

    Args:
        blob: EncryptedBlob ou sua forma empacotada (bytes)
        key: Chave de 32 bytes usada na cifragem

    Returns:
        Plaintext original

    Raises:
        FormatError: Se a forma empacotada for curta demais
        IntegrityError: Se a tag não conferir (adulteração ou chave errada)
    """
    if not isinstance(blob, EncryptedBlob):
        blob = EncryptedBlob.unpack(bytes(blob))

    try:
        return AESGCM(_key_bytes(key)).decrypt(blob.nonce, blob.ciphertext + blob.tag, None)
    except InvalidTag as exc:
        raise IntegrityError("Falha na verificação de integridade do segredo") from exc
