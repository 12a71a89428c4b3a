"""欄位加密與雜湊工具

敏感欄位（姓名、電話、Email、密碼、工單內容）以 AES-256-CBC 加密後存入資料庫，
格式為 ``hex(iv):hex(ciphertext)``。每次加密都使用新的隨機 IV，因此同一明文兩次加密
結果不同，無法直接以密文做等值查詢；需要唯一性或查詢的欄位另外存一個
``hash_value(明文)`` 欄位。
"""

import hashlib
import os
from functools import lru_cache
from typing import Optional

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from sqlalchemy import String, Text
from sqlalchemy.types import TypeDecorator

IV_LENGTH = 16
KEY_LENGTH = 32


class DecryptionError(ValueError):
    """密文格式錯誤或金鑰不符"""


class FieldCipher:
    """以固定金鑰進行 AES-256-CBC 加解密"""

    def __init__(self, key: bytes | str):
        if isinstance(key, str):
            key = key.encode("utf-8")
        if len(key) != KEY_LENGTH:
            raise ValueError(f"AES key must be {KEY_LENGTH} bytes, got {len(key)}")
        self._key = key

    def encrypt(self, plaintext: str) -> str:
        """
        加密字串

        Args:
            plaintext: 明文

        Returns:
            str: ``iv:ciphertext``（皆為 hex）
        """
        iv = os.urandom(IV_LENGTH)
        padder = padding.PKCS7(algorithms.AES.block_size).padder()
        padded = padder.update(plaintext.encode("utf-8")) + padder.finalize()

        encryptor = Cipher(algorithms.AES(self._key), modes.CBC(iv)).encryptor()
        ciphertext = encryptor.update(padded) + encryptor.finalize()
        return f"{iv.hex()}:{ciphertext.hex()}"

    def decrypt(self, value: str) -> str:
        """
        解密 ``encrypt`` 產生的字串

        Raises:
            DecryptionError: 格式錯誤、IV 長度錯誤或金鑰不符
        """
        try:
            iv_hex, ciphertext_hex = value.split(":")
            iv = bytes.fromhex(iv_hex)
            ciphertext = bytes.fromhex(ciphertext_hex)
        except (AttributeError, ValueError) as e:
            raise DecryptionError(f"Malformed encrypted value: {e}") from e

        if len(iv) != IV_LENGTH or not ciphertext or len(ciphertext) % IV_LENGTH:
            raise DecryptionError("Malformed encrypted value")

        decryptor = Cipher(algorithms.AES(self._key), modes.CBC(iv)).decryptor()
        padded = decryptor.update(ciphertext) + decryptor.finalize()
        try:
            unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
            data = unpadder.update(padded) + unpadder.finalize()
            return data.decode("utf-8")
        except ValueError as e:
            # 金鑰錯誤時 padding 或 UTF-8 解碼會失敗
            raise DecryptionError("Unable to decrypt value") from e


def hash_value(plaintext: str) -> str:
    """產生固定長度（64 字元 hex）的查詢用雜湊，只用於唯一性與等值查詢"""
    return hashlib.sha256(plaintext.encode("utf-8")).hexdigest()


@lru_cache
def get_cipher() -> FieldCipher:
    """取得以 AES_SECRET 建立的加密器"""
    from phonebook.config import settings

    return FieldCipher(settings.AES_SECRET)


def encrypt(plaintext: str) -> str:
    return get_cipher().encrypt(plaintext)


def decrypt(value: str) -> str:
    return get_cipher().decrypt(value)


class EncryptedString(TypeDecorator):
    """
    加密欄位型別

    寫入資料庫時加密、讀出時解密，模型物件上永遠是明文。
    None 原樣保存。
    """

    impl = String
    cache_ok = True

    def process_bind_param(self, value: Optional[str], dialect) -> Optional[str]:
        if value is None:
            return None
        return get_cipher().encrypt(str(value))

    def process_result_value(self, value: Optional[str], dialect) -> Optional[str]:
        if value is None:
            return None
        return get_cipher().decrypt(value)


class EncryptedText(EncryptedString):
    """長文字的加密欄位（工單內容等）"""

    impl = Text
    cache_ok = True
