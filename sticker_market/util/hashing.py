import hashlib


def sha256_hex_bytes(b: bytes) -> str:
    return hashlib.sha256(b).hexdigest()
