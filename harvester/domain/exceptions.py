"""도메인 레이어 예외 정의."""


class DomainError(Exception):
    """도메인 레이어 최상위 예외."""


class ConfigurationError(DomainError):
    """시작 시 필수 설정이 없을 때. 실행을 중단시키는 유일한 오류."""


class CredentialUnavailableError(DomainError):
    """세션 자격 증명을 어디서도 가져올 수 없을 때."""


# ─── 수집 ───


class CollectionError(DomainError):
    """수집 중 발생한 오류."""


class TransientFetchError(CollectionError):
    """네트워크/타임아웃 등 재시도로 회복 가능한 오류."""


class SessionExpiredError(CollectionError):
    """로그인 세션이 만료되었을 때."""

    def __init__(self, platform: str, detail: str = ""):
        self.platform = platform
        message = f"{platform} 로그인 세션이 만료되었습니다."
        if detail:
            message += f" ({detail})"
        super().__init__(message)


class MalformedPayloadError(CollectionError):
    """응답에 예상 필드가 없거나 형식이 다를 때. 해당 게시물/페이지만 건너뛴다."""


class ProducerAborted(CollectionError):
    """현재 Producer의 남은 수집을 포기해야 할 때 (실행 전체는 계속)."""


class SessionRefreshExhausted(ProducerAborted):
    def __init__(self, refreshes: int):
        self.refreshes = refreshes
        super().__init__(f"세션 갱신 {refreshes}회 후에도 만료 상태")


class FetchRetriesExhausted(ProducerAborted):
    def __init__(self, operation: str, attempts: int):
        self.operation = operation
        self.attempts = attempts
        super().__init__(f"{operation}: {attempts}회 시도 실패")


# ─── 미디어 수집 ───


class IngestionError(DomainError):
    """미디어 단위 처리 오류. 해당 항목만 건너뛴다."""


class DownloadError(IngestionError):
    """원본 다운로드 실패 또는 용량 초과."""


class UnsupportedMediaKind(IngestionError):
    """지원하지 않는 미디어 형식."""


class TranscodeError(IngestionError):
    """이미지 변환 실패."""


class UploadFailure(IngestionError):
    """오브젝트 스토어 업로드 실패 (재시도 대상)."""


# ─── 게시물 상태 ───


class InvalidTransition(DomainError):
    """허용되지 않은 게시물 상태 전이."""

    def __init__(self, post_key: str, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"{post_key}: {current} → {target} 전이는 허용되지 않습니다.")
