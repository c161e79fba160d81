import hashlib
from urllib.parse import urlsplit, urlunsplit


def normalize_origin_url(url: str) -> str:
    """원본 URL의 스킴/호스트 대소문자와 공백을 정리한다. 쿼리는 서명 값일 수 있어 유지."""
    parts = urlsplit(url.strip())
    return urlunsplit((parts.scheme.lower(), parts.netloc.lower(), parts.path, parts.query, ""))


def compute_media_key(url: str) -> str:
    """원본 미디어 URL의 SHA-256 해시. URL에 '/'가 있어 문서 ID로 직접 쓸 수 없다."""
    return hashlib.sha256(normalize_origin_url(url).encode("utf-8")).hexdigest()
