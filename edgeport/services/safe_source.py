# [파일 설명]
# - 목적: 소스 요약 정보를 계산해 안전한 로그 출력에 활용한다.
# - 제공 기능: 길이/해시 등의 요약 데이터를 생성한다.
# - 입력/출력: 원문 소스를 입력으로 받아 요약 dict를 반환한다.
# - 주의 사항: 원문 소스 자체는 반환하거나 로그에 남기지 않는다.
# - 연관 모듈: 변환 서비스(edgeport.services.*)에서 로그 요약에 사용된다.
from __future__ import annotations

import hashlib


# [함수 설명]
# - 목적: summarize_source 처리 로직을 수행한다.
# - 입력: source: str
# - 출력: len, sha256_8 키를 가진 dict를 반환한다.
# - 에러 처리: 예외 없이 항상 요약을 반환한다.
# - 결정론: 동일 입력에 대해 항상 동일한 해시를 반환한다.
# - 보안: 원문 소스 등 민감 정보는 로그에 직접 남기지 않도록 요약한다.
def summarize_source(source: str) -> dict[str, int | str]:
    source_hash = hashlib.sha256(source.encode("utf-8")).hexdigest()[:8]
    return {"len": len(source), "sha256_8": source_hash}


# [함수 설명]
# - 목적: 텍스트의 줄 수를 계산한다.
# - 입력: source: str
# - 출력: 줄 수(int). 빈 문자열은 0으로 본다.
# - 에러 처리: 예외 없이 안전한 기본값을 사용한다.
# - 결정론: 동일 입력에 대해 동일 결과를 반환한다.
# - 보안: 원문을 노출하지 않는다.
def count_lines(source: str) -> int:
    if not source:
        return 0
    return len(source.split("\n"))
