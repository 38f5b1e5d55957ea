"""변환 요청 및 미디어 분석 데이터 모델."""
