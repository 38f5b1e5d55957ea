"""변환 작업 실행 (단일 패스, 업스케일 파이프라인, 디스패치)."""
