"""Firebase Firestore 클라이언트 초기화.

firebase-admin SDK로 초기화한 뒤 Firestore 클라이언트를 제공한다.
서비스 계정 키 JSON 파일 또는 ADC(GOOGLE_APPLICATION_CREDENTIALS) 인증.
"""

from __future__ import annotations

import logging
from pathlib import Path

import firebase_admin
from firebase_admin import credentials, firestore

logger = logging.getLogger(__name__)

# Firestore batch 한도는 500. 여유를 두고 끊어서 커밋한다
BATCH_LIMIT = 400
# `in` 쿼리/get_all 한 번에 넘길 문서 수
LOOKUP_CHUNK = 30


def init_firebase(
    credential_path: str | None = None,
    project_id: str | None = None,
):
    """Firebase 앱을 초기화하고 Firestore 클라이언트를 반환.

    Args:
        credential_path: 서비스 계정 키 JSON 파일 경로.
                         파일이 없으면 ADC 사용.
        project_id: Firebase 프로젝트 ID (선택).
    """
    if firebase_admin._apps:
        # 이미 초기화됨
        return firestore.client()

    if credential_path and Path(credential_path).exists():
        cred = credentials.Certificate(credential_path)
    else:
        logger.info("서비스 계정 키 파일 없음 — ADC로 인증")
        cred = credentials.ApplicationDefault()

    options = {}
    if project_id:
        options["projectId"] = project_id

    firebase_admin.initialize_app(cred, options)
    logger.info("Firebase Firestore 초기화 완료")
    return firestore.client()


def chunked(items: list, size: int = LOOKUP_CHUNK):
    for i in range(0, len(items), size):
        yield items[i : i + size]
